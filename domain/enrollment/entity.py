"""
报名领域实体 - Enrollment aggregate and its payment state machine
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from domain.common.exceptions import DomainValidationException, IllegalStateTransitionException


FREE_PAYMENT_METHOD = "free"


class EnrollmentStatus(str, Enum):
    """报名支付状态"""
    PENDING = "pending"        # 等待网关结算
    COMPLETED = "completed"    # 已支付/免费报名
    FAILED = "failed"          # 网关校验失败（终态）
    REFUNDED = "refunded"      # 已退款（终态）


# Legal transition graph. Anything not listed here is rejected.
TRANSITIONS: dict[EnrollmentStatus, frozenset[EnrollmentStatus]] = {
    EnrollmentStatus.PENDING: frozenset({EnrollmentStatus.COMPLETED, EnrollmentStatus.FAILED}),
    EnrollmentStatus.COMPLETED: frozenset({EnrollmentStatus.REFUNDED}),
    EnrollmentStatus.FAILED: frozenset(),
    EnrollmentStatus.REFUNDED: frozenset(),
}


def can_transition(current: EnrollmentStatus, target: EnrollmentStatus) -> bool:
    return target in TRANSITIONS[current]


def is_terminal(status: EnrollmentStatus) -> bool:
    return not TRANSITIONS[status]


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Enrollment:
    """
    报名聚合根

    业务规则：
    1. (student_id, course_id) 唯一，由存储层唯一约束保证
    2. 免费报名金额必须为 0
    3. 状态转换必须遵循 TRANSITIONS
    4. payment_ref_id 只在 completed 时写入一次
    """

    id: Optional[int]
    student_id: int
    course_id: int
    payment_status: EnrollmentStatus
    payment_method: str
    payment_amount: Decimal
    payment_authority: Optional[str] = None
    payment_ref_id: Optional[str] = None
    failure_reason: Optional[str] = None
    version: int = 1

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    # Progress fields belong to the progress subsystem; carried, never changed here
    progress: int = 0
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.payment_status, EnrollmentStatus):
            self.payment_status = EnrollmentStatus(self.payment_status)
        self.payment_amount = Decimal(str(self.payment_amount))
        self._validate_amount()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)
        self.refunded_at = _ensure_utc(self.refunded_at)
        self.completed_at = _ensure_utc(self.completed_at)
        self.last_accessed_at = _ensure_utc(self.last_accessed_at)

    def _validate_amount(self) -> None:
        if self.payment_amount < 0:
            raise DomainValidationException(
                f"Payment amount cannot be negative: {self.payment_amount}",
                field="payment_amount",
            )
        if self.payment_method == FREE_PAYMENT_METHOD and self.payment_amount != 0:
            raise DomainValidationException(
                "Free enrollments must have a zero payment amount",
                field="payment_amount",
            )

    @classmethod
    def new_free(cls, student_id: int, course_id: int) -> "Enrollment":
        """Completed enrollment for a zero-price course with a synthetic authority/ref pair."""
        now = datetime.now(timezone.utc)
        token = uuid.uuid4().hex
        return cls(
            id=None,
            student_id=student_id,
            course_id=course_id,
            payment_status=EnrollmentStatus.COMPLETED,
            payment_method=FREE_PAYMENT_METHOD,
            payment_amount=Decimal("0"),
            payment_authority=f"FREE-{token}",
            payment_ref_id=f"FREE-REF-{token}",
            created_at=now,
            updated_at=now,
            paid_at=now,
        )

    @classmethod
    def new_pending(
        cls,
        student_id: int,
        course_id: int,
        *,
        amount: Decimal,
        method: str,
        authority: str,
    ) -> "Enrollment":
        if amount <= 0:
            raise DomainValidationException(
                f"Paid enrollments need a positive amount: {amount}",
                field="payment_amount",
            )
        if not authority:
            raise DomainValidationException("Payment authority is required", field="payment_authority")
        now = datetime.now(timezone.utc)
        return cls(
            id=None,
            student_id=student_id,
            course_id=course_id,
            payment_status=EnrollmentStatus.PENDING,
            payment_method=method,
            payment_amount=amount,
            payment_authority=authority,
            created_at=now,
            updated_at=now,
        )

    def _transition(self, target: EnrollmentStatus, **changes) -> "Enrollment":
        """Return the next state as a new object; ``self`` stays as read from the store."""
        if not can_transition(self.payment_status, target):
            raise IllegalStateTransitionException(self.payment_status.value, target.value)
        now = datetime.now(timezone.utc)
        return replace(
            self,
            payment_status=target,
            updated_at=now,
            version=self.version + 1,
            **changes,
        )

    def mark_completed(self, ref_id: str) -> "Enrollment":
        if not ref_id:
            raise DomainValidationException("Settlement reference id is required", field="payment_ref_id")
        if self.payment_ref_id:
            raise IllegalStateTransitionException(self.payment_status.value, EnrollmentStatus.COMPLETED.value)
        return self._transition(
            EnrollmentStatus.COMPLETED,
            payment_ref_id=ref_id,
            paid_at=datetime.now(timezone.utc),
            failure_reason=None,
        )

    def mark_failed(self, reason: Optional[str] = None) -> "Enrollment":
        return self._transition(EnrollmentStatus.FAILED, failure_reason=reason)

    def mark_refunded(self) -> "Enrollment":
        return self._transition(EnrollmentStatus.REFUNDED, refunded_at=datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        return self.payment_status == EnrollmentStatus.COMPLETED

    def is_owned_by(self, user_id: int) -> bool:
        return self.student_id == user_id
