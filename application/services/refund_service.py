"""退款处理 - administrative completed → refunded transition (no gateway call)."""
from __future__ import annotations

from typing import Callable

from application.dto import EnrollmentResponseDTO
from application.services.enrollment_service import publish_events
from core.logging_config import get_logger
from domain.common.exceptions import (
    CourseNotFoundException,
    EnrollmentNotFoundException,
    EnrollmentNotRefundableException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.enrollment.entity import EnrollmentStatus
from domain.enrollment.events import EnrollmentRefunded


logger = get_logger(__name__)


class RefundProcessor:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def refund(self, enrollment_id: int) -> EnrollmentResponseDTO:
        async with self._uow_factory() as uow:
            enrollment = await uow.enrollment_repository.get_by_id(enrollment_id)
            if enrollment is None:
                raise EnrollmentNotFoundException(enrollment_id)
            if enrollment.payment_status != EnrollmentStatus.COMPLETED:
                raise EnrollmentNotRefundableException(enrollment_id, enrollment.payment_status.value)

            course = await uow.course_repository.get_by_id(enrollment.course_id)
            if course is None:
                raise CourseNotFoundException(enrollment.course_id)

            refunded = enrollment.mark_refunded()
            won = await uow.enrollment_repository.save_transition(
                refunded,
                expected_status=EnrollmentStatus.COMPLETED,
                expected_version=enrollment.version,
            )
            if not won:
                # Another refund committed between our read and write
                logger.info("refund_race_lost", enrollment_id=enrollment_id)
                raise EnrollmentNotRefundableException(enrollment_id, EnrollmentStatus.REFUNDED.value)
            await uow.stats.on_refunded(enrollment.course_id, course.instructor_id)

        logger.info(
            "enrollment_refunded",
            enrollment_id=enrollment_id,
            course_id=enrollment.course_id,
            amount=str(enrollment.payment_amount),
        )
        publish_events([
            EnrollmentRefunded(
                enrollment_id=enrollment_id,
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                amount=enrollment.payment_amount,
            )
        ])
        return EnrollmentResponseDTO.from_entity(refunded)
