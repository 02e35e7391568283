"""
Enrollment domain events.

Dataclass events record settlement lifecycle facts for downstream handling
(logging today, messaging later). Domain stays free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid


@dataclass
class EnrollmentEvent:
    enrollment_id: int
    student_id: int
    course_id: int
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass
class EnrollmentInitiated(EnrollmentEvent):
    authority: Optional[str] = None
    amount: Decimal = Decimal("0")


@dataclass
class EnrollmentCompleted(EnrollmentEvent):
    payment_method: str = ""
    amount: Decimal = Decimal("0")
    ref_id: Optional[str] = None


@dataclass
class EnrollmentFailed(EnrollmentEvent):
    reason: Optional[str] = None


@dataclass
class EnrollmentRefunded(EnrollmentEvent):
    amount: Decimal = Decimal("0")
