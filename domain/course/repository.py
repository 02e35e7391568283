"""
课程仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Course


class CourseRepository(ABC):

    @abstractmethod
    async def get_by_id(self, course_id: int) -> Optional[Course]:
        pass

    @abstractmethod
    async def increment_total_enrollments(self, course_id: int, delta: int) -> None:
        """Atomic in-store counter change; never read-modify-write."""
        pass
