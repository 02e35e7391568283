"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


# Taxonomy roots. Concrete errors below subclass one of these so callers can
# catch by category (NotFound / Forbidden / Conflict / ValidationError).

class NotFoundException(BusinessException):
    def __init__(self, message: str = "Resource not found", *, code: int = BusinessCode.NOT_FOUND,
                 error_type: str = "NotFound", details: Optional[dict] = None):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class ForbiddenException(BusinessException):
    def __init__(self, message: str = "Forbidden", *, code: int = BusinessCode.FORBIDDEN,
                 error_type: str = "Forbidden", details: Optional[dict] = None):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class ConflictException(BusinessException):
    def __init__(self, message: str, *, code: int = BusinessCode.ENROLLMENT_CONFLICT,
                 error_type: str = "Conflict", details: Optional[dict] = None):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.PARAM_VALIDATION_ERROR,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class UserNotFoundException(NotFoundException):
    def __init__(self, user_id: Optional[int] = None):
        details = {"user_id": user_id} if user_id is not None else None
        super().__init__("User not found", code=BusinessCode.USER_NOT_FOUND,
                         error_type="UserNotFound", details=details)


class CourseNotFoundException(NotFoundException):
    def __init__(self, course_id: int):
        super().__init__("Course not found", code=BusinessCode.COURSE_NOT_FOUND,
                         error_type="CourseNotFound", details={"course_id": course_id})


class CourseNotPublishedException(DomainValidationException):
    def __init__(self, course_id: int):
        super().__init__(
            "This course is not available for enrollment",
            code=BusinessCode.COURSE_NOT_PUBLISHED,
            field="course_id",
            details={"course_id": course_id},
        )


class EnrollmentNotFoundException(NotFoundException):
    def __init__(self, enrollment_id: Optional[int] = None):
        details = {"enrollment_id": enrollment_id} if enrollment_id is not None else None
        super().__init__("Enrollment not found", code=BusinessCode.ENROLLMENT_NOT_FOUND,
                         error_type="EnrollmentNotFound", details=details)


class AlreadyEnrolledException(ConflictException):
    def __init__(self, course_id: int):
        super().__init__("You are already enrolled in this course",
                         error_type="AlreadyEnrolled", details={"course_id": course_id})


class PendingEnrollmentExistsException(ConflictException):
    """Carries the pending record so the client can resume verification."""

    def __init__(self, enrollment: dict):
        super().__init__(
            "You have a pending payment for this course",
            code=BusinessCode.ENROLLMENT_PENDING,
            error_type="PendingEnrollmentExists",
            details={"enrollment": enrollment},
        )


class EnrollmentClosedException(ConflictException):
    def __init__(self, course_id: int, status: str):
        super().__init__(
            "An enrollment for this course already exists and cannot be reopened",
            error_type="EnrollmentClosed",
            details={"course_id": course_id, "payment_status": status},
        )


class EnrollmentNotRefundableException(ConflictException):
    def __init__(self, enrollment_id: int, status: str):
        super().__init__(
            "Only completed enrollments can be refunded",
            code=BusinessCode.ENROLLMENT_NOT_REFUNDABLE,
            error_type="EnrollmentNotRefundable",
            details={"enrollment_id": enrollment_id, "payment_status": status},
        )


class IllegalStateTransitionException(ConflictException):
    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition enrollment from {current} to {target}",
            code=BusinessCode.ILLEGAL_STATE_TRANSITION,
            error_type="IllegalStateTransition",
            details={"from": current, "to": target},
        )


# Payment gateway failures. Raised by gateway adapters, handled by the
# enrollment/settlement services; the classes live here so application code
# never imports infrastructure.

class PaymentGatewayError(BusinessException):
    """Non-success response from the payment provider."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: Optional[str] = None,
        details: Optional[dict] = None,
        code: int = PaymentCode.PROVIDER_ERROR,
        error_type: str = "PaymentGatewayError",
    ):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        self.provider = provider
        self.provider_code = provider_code
        super().__init__(code=code, message=message, error_type=error_type, details=full_details)


class PaymentRecoverableError(PaymentGatewayError):
    """Timeout or transport failure; the outcome at the provider is unknown."""

    def __init__(self, message: str, *, provider: str, provider_code: Optional[str] = None,
                 details: Optional[dict] = None):
        super().__init__(
            message,
            provider=provider,
            provider_code=provider_code,
            details=details,
            code=PaymentCode.PROVIDER_RECOVERABLE,
            error_type="PaymentRecoverableError",
        )


class PaymentVerificationMismatch(PaymentGatewayError):
    """The provider settled a different amount than the one stored on the enrollment."""

    def __init__(self, message: str, *, provider: str, provider_code: Optional[str] = None,
                 details: Optional[dict] = None):
        super().__init__(
            message,
            provider=provider,
            provider_code=provider_code,
            details=details,
            code=PaymentCode.VERIFICATION_MISMATCH,
            error_type="PaymentVerificationMismatch",
        )


class PaymentGatewayDisabledException(ForbiddenException):
    def __init__(self, provider: str):
        super().__init__(
            f"Payment provider '{provider}' is not available in this environment",
            code=PaymentCode.GATEWAY_DISABLED,
            error_type="PaymentGatewayDisabled",
            details={"provider": provider},
        )


class DuplicateEnrollmentException(ConflictException):
    """Unique (student, course) constraint rejected a concurrent create."""

    def __init__(self, student_id: int, course_id: int):
        super().__init__(
            "An enrollment for this course already exists",
            error_type="DuplicateEnrollment",
            details={"student_id": student_id, "course_id": course_id},
        )


class DuplicateAuthorityException(ConflictException):
    def __init__(self, authority: str):
        super().__init__(
            "Payment authority is already bound to another enrollment",
            error_type="DuplicateAuthority",
            details={"authority": authority},
        )
