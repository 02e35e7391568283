"""
Application service wrapping the payment gateway port.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API), keeping dependencies one-way. Every call is
logged on the way in and out; errors propagate unchanged.
"""
from __future__ import annotations

from decimal import Decimal

from application.dtos.payments import (
    PaymentRequest,
    PaymentRequestResult,
    PaymentVerification,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import PaymentGatewayError


logger = get_logger(__name__)


class PaymentService:
    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    @property
    def provider(self) -> str:
        return self.gateway.provider

    async def request_payment(self, req: PaymentRequest) -> PaymentRequestResult:
        logger.info(
            "payment_request_started",
            provider=self.provider,
            amount=str(req.amount),
            callback_url=req.callback_url,
        )
        try:
            result = await self.gateway.request_payment(req)
        except PaymentGatewayError as exc:
            logger.warning(
                "payment_request_failed",
                provider=self.provider,
                error_type=exc.error_type,
                error=exc.message,
                provider_code=exc.provider_code,
            )
            raise
        logger.info("payment_request_succeeded", provider=self.provider, authority=result.authority)
        return result

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerification:
        logger.info("payment_verify_started", provider=self.provider, authority=authority, amount=str(amount))
        try:
            result = await self.gateway.verify_payment(authority, amount)
        except PaymentGatewayError as exc:
            logger.warning(
                "payment_verify_failed",
                provider=self.provider,
                authority=authority,
                error_type=exc.error_type,
                error=exc.message,
                provider_code=exc.provider_code,
            )
            raise
        logger.info(
            "payment_verify_succeeded",
            provider=self.provider,
            authority=authority,
            ref_id=result.ref_id,
            already_verified=result.already_verified,
        )
        return result

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()
