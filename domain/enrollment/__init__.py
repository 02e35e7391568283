from .entity import Enrollment, EnrollmentStatus, TRANSITIONS, FREE_PAYMENT_METHOD
from .repository import EnrollmentRepository
from .stats import StatsAggregator

__all__ = [
    "Enrollment",
    "EnrollmentStatus",
    "TRANSITIONS",
    "FREE_PAYMENT_METHOD",
    "EnrollmentRepository",
    "StatsAggregator",
]
