"""
结算回调处理 - turns a gateway redirect into exactly one terminal transition.

The handler never raises: every outcome is expressed as a redirect to the
frontend success or failure page, with a reason code on failure.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlencode

from application.ports.payment_gateway import PaymentGateway
from application.services.enrollment_service import publish_events
from application.services.payment_service import PaymentService
from core.logging_config import get_logger
from domain.common.exceptions import (
    CourseNotFoundException,
    PaymentGatewayError,
    PaymentRecoverableError,
    PaymentVerificationMismatch,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.enrollment.entity import Enrollment, EnrollmentStatus
from domain.enrollment.events import EnrollmentCompleted, EnrollmentFailed
from shared.codes.payment_codes import SettlementReason


logger = get_logger(__name__)

GATEWAY_STATUS_OK = "OK"


@dataclass(frozen=True)
class SettlementOutcome:
    success: bool
    redirect_url: str
    enrollment_id: Optional[int] = None
    reason: Optional[str] = None


class SettlementCallbackHandler:
    """支付回调处理器"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        frontend_url: str,
    ) -> None:
        self._uow_factory = uow_factory
        self._payments = PaymentService(gateway)
        self._frontend_url = frontend_url.rstrip("/")

    def _success(self, enrollment_id: int) -> SettlementOutcome:
        query = urlencode({"enrollmentId": enrollment_id})
        return SettlementOutcome(
            success=True,
            redirect_url=f"{self._frontend_url}/payment/success?{query}",
            enrollment_id=enrollment_id,
        )

    def _failure(self, reason: str, enrollment_id: Optional[int] = None) -> SettlementOutcome:
        query = urlencode({"reason": reason})
        return SettlementOutcome(
            success=False,
            redirect_url=f"{self._frontend_url}/payment/failed?{query}",
            enrollment_id=enrollment_id,
            reason=reason,
        )

    async def handle_callback(self, authority: Optional[str], status: Optional[str]) -> SettlementOutcome:
        if status != GATEWAY_STATUS_OK:
            # User cancelled at the gateway; the record stays pending
            logger.info("settlement_cancelled", authority=authority, status=status)
            return self._failure(SettlementReason.CANCELLED)
        if not authority:
            logger.warning("settlement_invalid_request", status=status)
            return self._failure(SettlementReason.INVALID_REQUEST)

        try:
            return await self._settle(authority)
        except Exception as exc:
            logger.error("settlement_unexpected_error", authority=authority, error=str(exc), exc_info=True)
            return self._failure(SettlementReason.ERROR)

    async def _settle(self, authority: str) -> SettlementOutcome:
        async with self._uow_factory(readonly=True) as uow:
            enrollment = await uow.enrollment_repository.get_pending_by_authority(authority)
        if enrollment is None:
            logger.info("settlement_pending_not_found", authority=authority)
            return self._failure(SettlementReason.NOT_FOUND)

        try:
            verification = await self._payments.verify_payment(authority, enrollment.payment_amount)
        except PaymentRecoverableError:
            logger.warning("settlement_gateway_unavailable", enrollment_id=enrollment.id, authority=authority)
            return self._failure(SettlementReason.GATEWAY_UNAVAILABLE, enrollment.id)
        except PaymentVerificationMismatch as exc:
            return await self._fail(enrollment, f"amount_mismatch:{exc.provider_code}")
        except PaymentGatewayError as exc:
            return await self._fail(enrollment, f"verification_rejected:{exc.provider_code}")

        return await self._complete(enrollment, verification.ref_id)

    async def _complete(self, enrollment: Enrollment, ref_id: str) -> SettlementOutcome:
        updated = enrollment.mark_completed(ref_id)
        async with self._uow_factory() as uow:
            course = await uow.course_repository.get_by_id(enrollment.course_id)
            if course is None:
                raise CourseNotFoundException(enrollment.course_id)
            won = await uow.enrollment_repository.save_transition(
                updated,
                expected_status=enrollment.payment_status,
                expected_version=enrollment.version,
            )
            if won:
                await uow.stats.on_completed(enrollment.course_id, course.instructor_id)

        if not won:
            return await self._after_lost_race(enrollment)

        logger.info(
            "enrollment_settled",
            enrollment_id=enrollment.id,
            authority=enrollment.payment_authority,
            ref_id=ref_id,
            amount=str(enrollment.payment_amount),
        )
        publish_events([
            EnrollmentCompleted(
                enrollment_id=enrollment.id,
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                payment_method=enrollment.payment_method,
                amount=enrollment.payment_amount,
                ref_id=ref_id,
            )
        ])
        return self._success(enrollment.id)

    async def _fail(self, enrollment: Enrollment, reason: str) -> SettlementOutcome:
        updated = enrollment.mark_failed(reason)
        async with self._uow_factory() as uow:
            won = await uow.enrollment_repository.save_transition(
                updated,
                expected_status=enrollment.payment_status,
                expected_version=enrollment.version,
            )
        if not won:
            return await self._after_lost_race(enrollment)

        logger.info("enrollment_failed", enrollment_id=enrollment.id, reason=reason)
        publish_events([
            EnrollmentFailed(
                enrollment_id=enrollment.id,
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                reason=reason,
            )
        ])
        return self._failure(SettlementReason.VERIFICATION_FAILED, enrollment.id)

    async def _after_lost_race(self, enrollment: Enrollment) -> SettlementOutcome:
        async with self._uow_factory(readonly=True) as uow:
            current = await uow.enrollment_repository.get_by_id(enrollment.id)
        logger.info(
            "settlement_race_lost",
            enrollment_id=enrollment.id,
            current_status=current.payment_status.value if current else None,
        )
        if current is not None and current.payment_status == EnrollmentStatus.COMPLETED:
            return self._success(current.id)
        return self._failure(SettlementReason.NOT_FOUND, enrollment.id)


__all__ = ["SettlementCallbackHandler", "SettlementOutcome", "GATEWAY_STATUS_OK"]
