"""
Shared business codes used across layers (Domain/Core/API).

This package exposes BusinessCode at `shared.codes` and keeps
payment-specific codes under `shared.codes.payment_codes`.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003

    # Business errors (2xxxx)
    BUSINESS_ERROR = 20000
    USER_NOT_FOUND = 20001
    NOT_FOUND = 20006  # Generic resource not found
    COURSE_NOT_FOUND = 20101
    COURSE_NOT_PUBLISHED = 20102
    ENROLLMENT_NOT_FOUND = 20103
    ENROLLMENT_CONFLICT = 20104
    ENROLLMENT_PENDING = 20105
    ENROLLMENT_NOT_REFUNDABLE = 20106
    ILLEGAL_STATE_TRANSITION = 20107

    # Authorization errors (3xxxx)
    PERMISSION_ERROR = 30000
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002
    TOKEN_INVALID = 30003
    TOKEN_EXPIRED = 30004

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003


__all__ = ["BusinessCode"]
