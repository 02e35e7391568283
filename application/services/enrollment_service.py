"""
报名应用服务 - initiates enrollments (free or gateway-paid) and serves read paths.

Gateway calls are made between units of work, never inside one, so no store
transaction is held open while the network call is in flight.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Tuple

from application.dto import (
    CurrentUserDTO,
    EnrollmentCheckDTO,
    EnrollmentInitiatedDTO,
    EnrollmentResponseDTO,
    PaginationParams,
    PaymentInfoDTO,
)
from application.dtos.payments import PaymentRequest
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import PaymentService
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    AlreadyEnrolledException,
    ConflictException,
    CourseNotFoundException,
    CourseNotPublishedException,
    EnrollmentClosedException,
    EnrollmentNotFoundException,
    ForbiddenException,
    PendingEnrollmentExistsException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.course.entity import Course
from domain.enrollment.entity import Enrollment, EnrollmentStatus
from domain.enrollment.events import EnrollmentCompleted, EnrollmentEvent, EnrollmentInitiated
from domain.user.entity import UserRole


logger = get_logger(__name__)


def publish_events(events: Iterable[EnrollmentEvent]) -> None:
    """Events are only logged for now; a message bus can subscribe here later."""
    for event in events:
        logger.info(
            "enrollment_event",
            event_name=event.name,
            event_id=event.event_id,
            enrollment_id=event.enrollment_id,
            course_id=event.course_id,
            student_id=event.student_id,
        )


class EnrollmentApplicationService:
    """报名应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
    ) -> None:
        self._uow_factory = uow_factory
        self._payments = PaymentService(gateway)

    async def initiate(self, student: CurrentUserDTO, course_id: int) -> EnrollmentInitiatedDTO:
        """
        报名入口

        - 免费课程：同一事务内创建 completed 记录并更新统计
        - 付费课程：先请求网关，成功后创建 pending 记录
        """
        if student.role != UserRole.STUDENT:
            raise ForbiddenException("Only students can enroll in courses", error_type="StudentRoleRequired")

        async with self._uow_factory(readonly=True) as uow:
            course = await uow.course_repository.get_by_id(course_id)
            if course is None:
                raise CourseNotFoundException(course_id)
            if not course.is_published:
                raise CourseNotPublishedException(course_id)
            existing = await uow.enrollment_repository.get_by_student_and_course(student.id, course_id)

        if existing is not None:
            self._reject_existing(existing)

        price = course.effective_price()
        if price == 0:
            return await self._enroll_free(student, course)
        return await self._enroll_paid(student, course, price)

    def _reject_existing(self, existing: Enrollment) -> None:
        if existing.payment_status == EnrollmentStatus.COMPLETED:
            raise AlreadyEnrolledException(existing.course_id)
        if existing.payment_status == EnrollmentStatus.PENDING:
            raise PendingEnrollmentExistsException(
                EnrollmentResponseDTO.from_entity(existing).model_dump(mode="json")
            )
        # failed/refunded: no re-enrollment path
        raise EnrollmentClosedException(existing.course_id, existing.payment_status.value)

    async def _enroll_free(self, student: CurrentUserDTO, course: Course) -> EnrollmentInitiatedDTO:
        async with self._uow_factory() as uow:
            enrollment = await uow.enrollment_repository.create(
                Enrollment.new_free(student.id, course.id)
            )
            await uow.stats.on_completed(course.id, course.instructor_id)

        logger.info(
            "enrollment_completed_free",
            enrollment_id=enrollment.id,
            student_id=student.id,
            course_id=course.id,
        )
        publish_events([
            EnrollmentCompleted(
                enrollment_id=enrollment.id,
                student_id=student.id,
                course_id=course.id,
                payment_method=enrollment.payment_method,
                amount=enrollment.payment_amount,
                ref_id=enrollment.payment_ref_id,
            )
        ])
        return EnrollmentInitiatedDTO(enrollment=EnrollmentResponseDTO.from_entity(enrollment))

    async def _enroll_paid(
        self, student: CurrentUserDTO, course: Course, price: Decimal
    ) -> EnrollmentInitiatedDTO:
        # Gateway errors propagate; nothing has been written yet
        result = await self._payments.request_payment(
            PaymentRequest(
                amount=price,
                description=f"Enrollment in course: {course.title}",
                callback_url=settings.payment_callback_url,
                email=student.email,
                mobile=student.phone,
            )
        )

        try:
            async with self._uow_factory() as uow:
                enrollment = await uow.enrollment_repository.create(
                    Enrollment.new_pending(
                        student.id,
                        course.id,
                        amount=price,
                        method=self._payments.provider,
                        authority=result.authority,
                    )
                )
        except ConflictException:
            # A concurrent initiate for the same pair won; this authority is never used
            logger.warning(
                "enrollment_create_conflict_after_payment_request",
                student_id=student.id,
                course_id=course.id,
                authority=result.authority,
            )
            raise

        logger.info(
            "enrollment_pending_created",
            enrollment_id=enrollment.id,
            student_id=student.id,
            course_id=course.id,
            authority=result.authority,
            amount=str(price),
        )
        publish_events([
            EnrollmentInitiated(
                enrollment_id=enrollment.id,
                student_id=student.id,
                course_id=course.id,
                authority=result.authority,
                amount=price,
            )
        ])
        return EnrollmentInitiatedDTO(
            enrollment=EnrollmentResponseDTO.from_entity(enrollment),
            payment=PaymentInfoDTO(
                authority=result.authority,
                payment_url=result.payment_url,
                amount=price,
            ),
        )

    async def list_my_enrollments(
        self,
        student_id: int,
        pagination: PaginationParams,
        status: Optional[EnrollmentStatus] = None,
        is_completed: Optional[bool] = None,
    ) -> Tuple[List[EnrollmentResponseDTO], int]:
        async with self._uow_factory(readonly=True) as uow:
            items = await uow.enrollment_repository.list_by_student(
                student_id,
                skip=pagination.skip,
                limit=pagination.limit,
                status=status,
                is_completed=is_completed,
            )
            total = await uow.enrollment_repository.count_by_student(
                student_id, status=status, is_completed=is_completed
            )
        return [EnrollmentResponseDTO.from_entity(e) for e in items], total

    async def get_enrollment(self, enrollment_id: int, viewer: CurrentUserDTO) -> EnrollmentResponseDTO:
        """Visible to the enrolled student, the course instructor and admins."""
        async with self._uow_factory(readonly=True) as uow:
            enrollment = await uow.enrollment_repository.get_by_id(enrollment_id)
            if enrollment is None:
                raise EnrollmentNotFoundException(enrollment_id)
            course = await uow.course_repository.get_by_id(enrollment.course_id)

        is_instructor = course is not None and course.instructor_id == viewer.id
        if not (enrollment.is_owned_by(viewer.id) or is_instructor or viewer.role == UserRole.ADMIN):
            raise ForbiddenException("Not authorized to view this enrollment")
        return EnrollmentResponseDTO.from_entity(enrollment)

    async def check_enrollment(self, student_id: int, course_id: int) -> EnrollmentCheckDTO:
        async with self._uow_factory(readonly=True) as uow:
            enrollment = await uow.enrollment_repository.get_by_student_and_course(student_id, course_id)
        if enrollment is None:
            return EnrollmentCheckDTO(is_enrolled=False, enrollment=None)
        return EnrollmentCheckDTO(
            is_enrolled=enrollment.is_active,
            enrollment=EnrollmentResponseDTO.from_entity(enrollment),
        )

    async def list_all(
        self,
        pagination: PaginationParams,
        status: Optional[EnrollmentStatus] = None,
        course_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> Tuple[List[EnrollmentResponseDTO], int, Decimal]:
        """Admin listing; revenue is the sum over every completed enrollment, unfiltered."""
        async with self._uow_factory(readonly=True) as uow:
            repo = uow.enrollment_repository
            items = await repo.list_all(
                skip=pagination.skip,
                limit=pagination.limit,
                status=status,
                course_id=course_id,
                student_id=student_id,
            )
            total = await repo.count_all(status=status, course_id=course_id, student_id=student_id)
            revenue = await repo.total_revenue()
        return [EnrollmentResponseDTO.from_entity(e) for e in items], total, revenue
