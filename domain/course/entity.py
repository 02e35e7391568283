"""
课程实体 - only the slice of the Course aggregate the enrollment flow reads
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


@dataclass
class Course:
    id: int
    title: str
    instructor_id: int
    price: Decimal
    discount_price: Optional[Decimal] = None
    status: CourseStatus = CourseStatus.DRAFT
    total_enrollments: int = 0
    published_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.status, CourseStatus):
            self.status = CourseStatus(self.status)
        self.price = Decimal(str(self.price))
        if self.discount_price is not None:
            self.discount_price = Decimal(str(self.discount_price))

    @property
    def is_published(self) -> bool:
        return self.status == CourseStatus.PUBLISHED

    def effective_price(self) -> Decimal:
        """Discount wins only when it is set and below the list price."""
        if self.discount_price is not None and 0 <= self.discount_price < self.price:
            return self.discount_price
        return self.price
