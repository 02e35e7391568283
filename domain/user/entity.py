"""
用户领域实体 - the parts of a marketplace user the enrollment flow depends on
"""
from datetime import datetime, timezone
from typing import Optional
from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


@dataclass
class User:
    """用户实体"""

    id: Optional[int]
    email: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = None
    is_active: bool = True
    total_students_enrolled: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.role, UserRole):
            self.role = UserRole(self.role)
        if self.created_at is not None and self.created_at.tzinfo is None:
            self.created_at = self.created_at.replace(tzinfo=timezone.utc)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
