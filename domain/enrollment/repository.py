"""
报名仓储接口 - EnrollmentStore contract
"""
from abc import ABC, abstractmethod
from typing import Optional, List
from decimal import Decimal

from .entity import Enrollment, EnrollmentStatus


class EnrollmentRepository(ABC):
    """报名仓储抽象接口

    ``create`` must rely on the store's unique constraints on
    (student_id, course_id) and payment_authority, never on a prior read.
    ``save_transition`` is a conditional write: it only succeeds when the
    stored row still has ``expected_status`` and ``expected_version``.
    """

    @abstractmethod
    async def create(self, enrollment: Enrollment) -> Enrollment:
        """创建报名记录；唯一约束冲突时抛出 ConflictException"""
        pass

    @abstractmethod
    async def get_by_id(self, enrollment_id: int) -> Optional[Enrollment]:
        pass

    @abstractmethod
    async def get_by_student_and_course(self, student_id: int, course_id: int) -> Optional[Enrollment]:
        pass

    @abstractmethod
    async def get_pending_by_authority(self, authority: str) -> Optional[Enrollment]:
        """Only returns a record whose status is still pending."""
        pass

    @abstractmethod
    async def save_transition(
        self,
        enrollment: Enrollment,
        *,
        expected_status: EnrollmentStatus,
        expected_version: int,
    ) -> bool:
        """Persist the transitioned entity; False when another writer got there first."""
        pass

    @abstractmethod
    async def list_by_student(
        self,
        student_id: int,
        skip: int = 0,
        limit: int = 10,
        status: Optional[EnrollmentStatus] = None,
        is_completed: Optional[bool] = None,
    ) -> List[Enrollment]:
        pass

    @abstractmethod
    async def count_by_student(
        self,
        student_id: int,
        status: Optional[EnrollmentStatus] = None,
        is_completed: Optional[bool] = None,
    ) -> int:
        pass

    @abstractmethod
    async def list_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[EnrollmentStatus] = None,
        course_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> List[Enrollment]:
        pass

    @abstractmethod
    async def count_all(
        self,
        status: Optional[EnrollmentStatus] = None,
        course_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> int:
        pass

    @abstractmethod
    async def total_revenue(self) -> Decimal:
        """Sum of payment_amount over completed enrollments."""
        pass
