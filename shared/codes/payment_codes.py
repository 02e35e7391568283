"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    VERIFICATION_MISMATCH = 60002
    GATEWAY_DISABLED = 60004


# ZarinPal v4 result codes. 100 = success, 101 = already verified.
ZARINPAL_SUCCESS_CODES = {100, 101}

# Codes meaning the session amount differs from the one being verified.
ZARINPAL_AMOUNT_MISMATCH_CODES = {-50}

ZARINPAL_ERROR_MESSAGES = {
    -9: "validation error",
    -10: "terminal is not valid",
    -11: "terminal is not active",
    -12: "too many attempts",
    -15: "terminal suspended",
    -16: "merchant access level too low",
    -30: "terminal does not allow floating wage",
    -50: "session amount mismatch",
    -51: "session is not paid",
    -52: "unexpected gateway error",
    -53: "session does not belong to this merchant",
    -54: "invalid authority",
}


# Reason codes carried by the failure redirect of the settlement callback.
class SettlementReason:
    CANCELLED = "cancelled"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    VERIFICATION_FAILED = "verification_failed"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    ERROR = "error"
