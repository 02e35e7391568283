"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from application.dtos.payments import (
    PaymentRequest,
    PaymentRequestResult,
    PaymentVerification,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Redirect-based gateway: request a payment, later verify it by authority.

    Implementations raise ``PaymentGatewayError`` for non-success responses,
    ``PaymentRecoverableError`` for timeouts/transport failures and
    ``PaymentVerificationMismatch`` when the gateway reports a different
    amount than the one being verified.
    """

    provider: str

    async def request_payment(self, req: PaymentRequest) -> PaymentRequestResult: ...

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerification: ...
