"""
Simulated payment gateway for development and tests.

Pending simulated payments are rows in ``simulated_payments``, so they survive
restarts and are shared by every worker. It mirrors the ZarinPal result codes
so settlement behaves the same as against the real gateway.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional
from urllib.parse import urlencode
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from application.dtos.payments import (
    PaymentRequest,
    PaymentRequestResult,
    PaymentVerification,
    SimulatedPaymentResult,
)
from core.config import settings
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.exceptions import (
    NotFoundException,
    PaymentGatewayDisabledException,
    PaymentGatewayError,
    PaymentVerificationMismatch,
)
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.models.simulated_payment import SimulatedPaymentModel
from shared.codes.payment_codes import ZARINPAL_ERROR_MESSAGES


logger = get_logger(__name__)


class SimulatedPaymentStatus:
    REQUESTED = "requested"
    PAID = "paid"
    VERIFIED = "verified"


class SimulatedPaymentGateway(BasePaymentClient):
    provider = "simulator"

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        if settings.is_production or not payment_settings.simulator.enabled:
            raise PaymentGatewayDisabledException(self.provider)
        super().__init__()
        self._session_factory = session_factory
        self.amount_multiplier = payment_settings.simulator.amount_multiplier
        self.payment_url = payment_settings.simulator.payment_url.rstrip("/")

    def _reject(self, code: int, authority: str) -> PaymentGatewayError:
        return PaymentGatewayError(
            ZARINPAL_ERROR_MESSAGES.get(code, f"Simulator error: {code}"),
            provider=self.provider,
            provider_code=str(code),
            details={"authority": authority},
        )

    async def _get(self, session: AsyncSession, authority: str) -> Optional[SimulatedPaymentModel]:
        result = await session.execute(
            select(SimulatedPaymentModel).where(SimulatedPaymentModel.authority == authority)
        )
        return result.scalar_one_or_none()

    async def request_payment(self, req: PaymentRequest) -> PaymentRequestResult:  # type: ignore[override]
        authority = f"SIM{uuid.uuid4().hex.upper()}"
        amount_minor = self._to_gateway_amount(req.amount)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    SimulatedPaymentModel(
                        authority=authority,
                        amount_minor=amount_minor,
                        description=req.description,
                        callback_url=req.callback_url,
                        status=SimulatedPaymentStatus.REQUESTED,
                    )
                )
        self._log("gateway_payment_requested", authority=authority, amount_minor=amount_minor)
        return PaymentRequestResult(
            authority=authority,
            payment_url=f"{self.payment_url}/{authority}",
            provider=self.provider,
        )

    async def simulate_success(self, authority: str) -> SimulatedPaymentResult:
        """模拟用户在网关完成支付"""
        async with self._session_factory() as session:
            async with session.begin():
                payment = await self._get(session, authority)
                if payment is None:
                    raise NotFoundException(
                        "Simulated payment not found",
                        error_type="SimulatedPaymentNotFound",
                        details={"authority": authority},
                    )
                if payment.status == SimulatedPaymentStatus.REQUESTED:
                    payment.status = SimulatedPaymentStatus.PAID
                    payment.ref_id = str(uuid.uuid4().int % 10**12)
                    payment.paid_at = datetime.now(timezone.utc)
                ref_id = payment.ref_id
                amount_minor = payment.amount_minor
                callback_url = payment.callback_url

        self._log("gateway_payment_simulated", authority=authority, ref_id=ref_id)
        query = urlencode({"Authority": authority, "Status": "OK"})
        return SimulatedPaymentResult(
            authority=authority,
            ref_id=ref_id,
            verify_url=f"{callback_url}?{query}",
            amount=Decimal(amount_minor) / self.amount_multiplier,
        )

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerification:  # type: ignore[override]
        amount_minor = self._to_gateway_amount(amount)
        async with self._session_factory() as session:
            async with session.begin():
                payment = await self._get(session, authority)
                if payment is None:
                    raise self._reject(-54, authority)
                if payment.amount_minor != amount_minor:
                    raise PaymentVerificationMismatch(
                        ZARINPAL_ERROR_MESSAGES[-50],
                        provider=self.provider,
                        provider_code="-50",
                        details={
                            "authority": authority,
                            "expected_minor": payment.amount_minor,
                            "amount_minor": amount_minor,
                        },
                    )
                if payment.status == SimulatedPaymentStatus.REQUESTED:
                    raise self._reject(-51, authority)

                already_verified = payment.status == SimulatedPaymentStatus.VERIFIED
                if not already_verified:
                    payment.status = SimulatedPaymentStatus.VERIFIED
                    payment.verified_at = datetime.now(timezone.utc)
                ref_id = payment.ref_id

        self._log("gateway_payment_verified", authority=authority, ref_id=ref_id, already_verified=already_verified)
        return PaymentVerification(
            authority=authority,
            ref_id=ref_id,
            provider=self.provider,
            card_pan="6037-99**-****-0000",
            card_hash=None,
            already_verified=already_verified,
        )
