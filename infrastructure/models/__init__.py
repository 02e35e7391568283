"""Infrastructure models package exports."""
from .base import Base, metadata
from .user import UserModel
from .course import CourseModel
from .enrollment import EnrollmentModel
from .simulated_payment import SimulatedPaymentModel

__all__ = [
    "Base",
    "metadata",
    "UserModel",
    "CourseModel",
    "EnrollmentModel",
    "SimulatedPaymentModel",
]
