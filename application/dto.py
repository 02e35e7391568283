"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, Field, model_serializer, ConfigDict
from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal

from core.config import settings
from domain.enrollment.entity import Enrollment, EnrollmentStatus
from domain.user.entity import User, UserRole


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class CurrentUserDTO(DTOBase):
    """Authenticated caller as seen by the API layer"""
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool

    @classmethod
    def from_entity(cls, user: User) -> "CurrentUserDTO":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            phone=user.phone,
            role=user.role,
            is_active=user.is_active,
        )


class EnrollmentCreateDTO(DTOBase):
    """报名请求DTO"""
    course_id: int = Field(..., gt=0, description="Course to enroll in")


class EnrollmentResponseDTO(DTOBase):
    """报名响应DTO"""
    id: int
    student_id: int
    course_id: int
    payment_status: EnrollmentStatus
    payment_method: str
    payment_amount: Decimal
    payment_authority: Optional[str] = None
    payment_ref_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    progress: int = 0
    is_completed: bool = False

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_entity(cls, enrollment: Enrollment) -> "EnrollmentResponseDTO":
        return cls.model_validate(enrollment)


class PaymentInfoDTO(DTOBase):
    authority: str
    payment_url: str
    amount: Decimal


class EnrollmentInitiatedDTO(DTOBase):
    """Result of POST /enrollments; ``payment`` is absent for free courses"""
    enrollment: EnrollmentResponseDTO
    payment: Optional[PaymentInfoDTO] = None


class EnrollmentCheckDTO(DTOBase):
    is_enrolled: bool
    enrollment: Optional[EnrollmentResponseDTO] = None


class PaginationParams(DTOBase):
    """分页参数（页码/每页大小），自动派生 skip/limit"""
    page: int = Field(1, ge=1, description="页码，从1开始")
    size: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="每页大小",
    )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size
