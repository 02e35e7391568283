import asyncio
from decimal import Decimal

import pytest

from application.dto import CurrentUserDTO, PaginationParams
from application.services.enrollment_service import EnrollmentApplicationService, publish_events
from application.services.settlement_service import SettlementCallbackHandler
from domain.common.exceptions import (
    AlreadyEnrolledException,
    ConflictException,
    CourseNotFoundException,
    CourseNotPublishedException,
    EnrollmentClosedException,
    EnrollmentNotFoundException,
    ForbiddenException,
    PaymentGatewayError,
    PaymentRecoverableError,
    PendingEnrollmentExistsException,
)
from domain.enrollment.entity import EnrollmentStatus
from domain.enrollment.events import (
    EnrollmentCompleted,
    EnrollmentFailed,
    EnrollmentInitiated,
    EnrollmentRefunded,
)
from domain.user.entity import UserRole
from shared.codes import BusinessCode


@pytest.fixture
def service(uow_factory, gateway):
    return EnrollmentApplicationService(uow_factory=uow_factory, gateway=gateway)


@pytest.mark.asyncio
async def test_free_course_completes_without_gateway(service, gateway, student, seed, read_counters):
    result = await service.initiate(student, seed.free_course)

    assert result.payment is None
    assert result.enrollment.payment_status == EnrollmentStatus.COMPLETED
    assert result.enrollment.payment_method == "free"
    assert result.enrollment.payment_amount == Decimal("0")
    assert gateway.requests == []
    assert await read_counters(seed.free_course) == (1, 1)


@pytest.mark.asyncio
async def test_paid_course_creates_pending_record(service, gateway, student, seed, read_counters):
    result = await service.initiate(student, seed.paid_course)

    assert result.enrollment.payment_status == EnrollmentStatus.PENDING
    assert result.enrollment.payment_method == "stub"
    assert result.enrollment.payment_authority == "A1"
    assert result.payment.authority == "A1"
    assert result.payment.payment_url.endswith("/A1")
    assert result.payment.amount == Decimal("100000")

    [req] = gateway.requests
    assert req.amount == Decimal("100000")
    assert req.callback_url == "http://backend.test/api/v1/enrollments/verify"
    assert req.email == "sara@example.com"
    # Pending records do not count yet
    assert await read_counters(seed.paid_course) == (0, 0)


@pytest.mark.asyncio
async def test_discount_price_is_charged(service, gateway, student, seed):
    result = await service.initiate(student, seed.discounted_course)
    assert result.enrollment.payment_amount == Decimal("150000")
    assert gateway.requests[0].amount == Decimal("150000")


@pytest.mark.asyncio
async def test_only_students_can_enroll(service, seed):
    instructor = CurrentUserDTO(id=seed.instructor_id, email="t@example.com", full_name="T",
                                role=UserRole.INSTRUCTOR, is_active=True)
    with pytest.raises(ForbiddenException):
        await service.initiate(instructor, seed.paid_course)


@pytest.mark.asyncio
async def test_missing_and_unpublished_courses(service, student, seed):
    with pytest.raises(CourseNotFoundException):
        await service.initiate(student, 999)
    with pytest.raises(CourseNotPublishedException) as exc:
        await service.initiate(student, seed.draft_course)
    assert exc.value.code == BusinessCode.COURSE_NOT_PUBLISHED


@pytest.mark.asyncio
async def test_gateway_failure_creates_no_record(service, gateway, student, seed, count_enrollments):
    gateway.request_error = PaymentGatewayError("terminal is not valid", provider="stub", provider_code="-10")
    with pytest.raises(PaymentGatewayError):
        await service.initiate(student, seed.paid_course)
    assert await count_enrollments(student.id, seed.paid_course) == 0

    gateway.request_error = PaymentRecoverableError("timeout", provider="stub")
    with pytest.raises(PaymentRecoverableError):
        await service.initiate(student, seed.paid_course)
    assert await count_enrollments(student.id, seed.paid_course) == 0


@pytest.mark.asyncio
async def test_completed_enrollment_rejects_second_initiate(service, gateway, student, seed):
    await service.initiate(student, seed.free_course)
    with pytest.raises(AlreadyEnrolledException):
        await service.initiate(student, seed.free_course)


@pytest.mark.asyncio
async def test_pending_enrollment_conflict_carries_record(service, student, seed):
    first = await service.initiate(student, seed.paid_course)
    with pytest.raises(PendingEnrollmentExistsException) as exc:
        await service.initiate(student, seed.paid_course)

    assert exc.value.code == BusinessCode.ENROLLMENT_PENDING
    pending = exc.value.details["enrollment"]
    assert pending["id"] == first.enrollment.id
    assert pending["payment_authority"] == "A1"


@pytest.mark.asyncio
async def test_failed_enrollment_cannot_be_reopened(service, uow_factory, gateway, student, seed):
    await service.initiate(student, seed.paid_course)
    gateway.verify_error = PaymentGatewayError("session is not paid", provider="stub", provider_code="-51")
    handler = SettlementCallbackHandler(uow_factory, gateway, "http://frontend.test")
    await handler.handle_callback("A1", "OK")

    with pytest.raises(EnrollmentClosedException):
        await service.initiate(student, seed.paid_course)


@pytest.mark.asyncio
async def test_concurrent_initiate_leaves_one_record(service, student, seed, count_enrollments):
    results = await asyncio.gather(
        *(service.initiate(student, seed.paid_course) for _ in range(4)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictException)]
    assert len(succeeded) == 1
    assert len(conflicts) == 3
    assert await count_enrollments(student.id, seed.paid_course) == 1


@pytest.mark.asyncio
async def test_concurrent_free_initiate_counts_once(service, student, seed, read_counters, count_enrollments):
    results = await asyncio.gather(
        *(service.initiate(student, seed.free_course) for _ in range(3)),
        return_exceptions=True,
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(isinstance(r, ConflictException) for r in results if isinstance(r, Exception))
    assert await count_enrollments(student.id, seed.free_course) == 1
    assert await read_counters(seed.free_course) == (1, 1)


@pytest.mark.asyncio
async def test_list_and_check_my_enrollments(service, student, seed):
    await service.initiate(student, seed.free_course)
    await service.initiate(student, seed.paid_course)

    items, total = await service.list_my_enrollments(student.id, PaginationParams(page=1, size=10))
    assert total == 2
    assert {e.course_id for e in items} == {seed.free_course, seed.paid_course}

    items, total = await service.list_my_enrollments(
        student.id, PaginationParams(page=1, size=10), status=EnrollmentStatus.PENDING
    )
    assert total == 1 and items[0].course_id == seed.paid_course

    items, total = await service.list_my_enrollments(
        student.id, PaginationParams(page=1, size=10), is_completed=True
    )
    assert total == 0 and items == []

    check = await service.check_enrollment(student.id, seed.free_course)
    assert check.is_enrolled is True
    pending_check = await service.check_enrollment(student.id, seed.paid_course)
    assert pending_check.is_enrolled is False
    assert pending_check.enrollment.payment_status == EnrollmentStatus.PENDING
    missing = await service.check_enrollment(student.id, seed.discounted_course)
    assert missing.is_enrolled is False and missing.enrollment is None


@pytest.mark.asyncio
async def test_get_enrollment_access_rules(service, student, admin, seed):
    created = await service.initiate(student, seed.free_course)
    enrollment_id = created.enrollment.id

    assert (await service.get_enrollment(enrollment_id, student)).id == enrollment_id
    assert (await service.get_enrollment(enrollment_id, admin)).id == enrollment_id
    instructor = CurrentUserDTO(id=seed.instructor_id, email="t@example.com", full_name="T",
                                role=UserRole.INSTRUCTOR, is_active=True)
    assert (await service.get_enrollment(enrollment_id, instructor)).id == enrollment_id

    other = CurrentUserDTO(id=seed.other_student_id, email="o@example.com", full_name="O",
                           role=UserRole.STUDENT, is_active=True)
    with pytest.raises(ForbiddenException):
        await service.get_enrollment(enrollment_id, other)
    with pytest.raises(EnrollmentNotFoundException):
        await service.get_enrollment(9999, admin)


@pytest.mark.asyncio
async def test_list_all_reports_completed_revenue(service, uow_factory, gateway, student, seed):
    other = CurrentUserDTO(id=seed.other_student_id, email="o@example.com", full_name="O",
                           role=UserRole.STUDENT, is_active=True)
    await service.initiate(student, seed.paid_course)
    await service.initiate(other, seed.discounted_course)
    await service.initiate(other, seed.free_course)
    handler = SettlementCallbackHandler(uow_factory, gateway, "http://frontend.test")
    await handler.handle_callback("A1", "OK")

    items, total, revenue = await service.list_all(PaginationParams(page=1, size=20))
    assert total == 3
    # A2 is still pending and does not count
    assert revenue == Decimal("100000")

    items, total, _ = await service.list_all(PaginationParams(page=1, size=20), student_id=other.id)
    assert total == 2
    items, total, _ = await service.list_all(
        PaginationParams(page=1, size=20), status=EnrollmentStatus.COMPLETED, course_id=seed.paid_course
    )
    assert total == 1 and items[0].student_id == student.id


def test_publish_events_logs_every_event_type():
    publish_events([
        EnrollmentInitiated(enrollment_id=1, student_id=2, course_id=11, authority="A1", amount=Decimal("100000")),
        EnrollmentCompleted(enrollment_id=1, student_id=2, course_id=11, payment_method="stub", ref_id="1000"),
        EnrollmentFailed(enrollment_id=1, student_id=2, course_id=11, reason="verification_rejected:-51"),
        EnrollmentRefunded(enrollment_id=1, student_id=2, course_id=11, amount=Decimal("100000")),
    ])


@pytest.mark.asyncio
async def test_free_enrollment_returns_after_commit(service, student, seed, count_enrollments):
    result = await service.initiate(student, seed.free_course)
    assert result.enrollment.id is not None
    assert await count_enrollments(student.id, seed.free_course) == 1
