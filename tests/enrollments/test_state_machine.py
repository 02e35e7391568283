from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException, IllegalStateTransitionException
from domain.course.entity import Course, CourseStatus
from domain.enrollment.entity import (
    FREE_PAYMENT_METHOD,
    TRANSITIONS,
    Enrollment,
    EnrollmentStatus,
    can_transition,
    is_terminal,
)


def _pending(**overrides) -> Enrollment:
    data = dict(amount=Decimal("100000"), method="zarinpal", authority="A1")
    data.update(overrides)
    enrollment = Enrollment.new_pending(2, 11, **data)
    enrollment.id = 1
    return enrollment


def test_transition_table_is_explicit():
    assert TRANSITIONS[EnrollmentStatus.PENDING] == {EnrollmentStatus.COMPLETED, EnrollmentStatus.FAILED}
    assert TRANSITIONS[EnrollmentStatus.COMPLETED] == {EnrollmentStatus.REFUNDED}
    assert is_terminal(EnrollmentStatus.FAILED)
    assert is_terminal(EnrollmentStatus.REFUNDED)
    assert not can_transition(EnrollmentStatus.COMPLETED, EnrollmentStatus.PENDING)
    assert not can_transition(EnrollmentStatus.PENDING, EnrollmentStatus.REFUNDED)


def test_new_free_is_completed_with_zero_amount():
    enrollment = Enrollment.new_free(2, 10)
    assert enrollment.payment_status == EnrollmentStatus.COMPLETED
    assert enrollment.payment_method == FREE_PAYMENT_METHOD
    assert enrollment.payment_amount == Decimal("0")
    assert enrollment.payment_authority.startswith("FREE-")
    assert enrollment.payment_ref_id.startswith("FREE-REF-")
    assert enrollment.paid_at is not None


def test_free_records_must_be_zero_priced():
    with pytest.raises(DomainValidationException):
        Enrollment(
            id=None, student_id=2, course_id=10,
            payment_status=EnrollmentStatus.COMPLETED,
            payment_method=FREE_PAYMENT_METHOD,
            payment_amount=Decimal("10"),
        )


def test_new_pending_requires_positive_amount_and_authority():
    with pytest.raises(DomainValidationException):
        Enrollment.new_pending(2, 11, amount=Decimal("0"), method="zarinpal", authority="A1")
    with pytest.raises(DomainValidationException):
        Enrollment.new_pending(2, 11, amount=Decimal("10"), method="zarinpal", authority="")


def test_mark_completed_returns_new_version_and_leaves_original():
    pending = _pending()
    completed = pending.mark_completed("REF-1")

    assert completed.payment_status == EnrollmentStatus.COMPLETED
    assert completed.payment_ref_id == "REF-1"
    assert completed.paid_at is not None
    assert completed.version == pending.version + 1
    assert pending.payment_status == EnrollmentStatus.PENDING
    assert pending.payment_ref_id is None


def test_ref_id_is_written_once():
    completed = _pending().mark_completed("REF-1")
    with pytest.raises(IllegalStateTransitionException):
        completed.mark_completed("REF-2")


def test_failed_is_terminal():
    failed = _pending().mark_failed("verification_rejected:-51")
    assert failed.failure_reason == "verification_rejected:-51"
    with pytest.raises(IllegalStateTransitionException):
        failed.mark_completed("REF-1")
    with pytest.raises(IllegalStateTransitionException):
        failed.mark_refunded()


def test_refund_only_from_completed():
    with pytest.raises(IllegalStateTransitionException):
        _pending().mark_refunded()

    refunded = _pending().mark_completed("REF-1").mark_refunded()
    assert refunded.payment_status == EnrollmentStatus.REFUNDED
    assert refunded.refunded_at is not None
    assert refunded.version == 3
    with pytest.raises(IllegalStateTransitionException):
        refunded.mark_refunded()


@pytest.mark.parametrize(
    "price, discount, expected",
    [
        ("250000", "150000", "150000"),
        ("250000", None, "250000"),
        ("250000", "300000", "250000"),
        ("250000", "250000", "250000"),
        ("250000", "0", "0"),
    ],
)
def test_effective_price(price, discount, expected):
    course = Course(
        id=1, title="c", instructor_id=1,
        price=Decimal(price),
        discount_price=Decimal(discount) if discount is not None else None,
        status=CourseStatus.PUBLISHED,
    )
    assert course.effective_price() == Decimal(expected)
