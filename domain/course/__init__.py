from .entity import Course, CourseStatus
from .repository import CourseRepository

__all__ = ["Course", "CourseStatus", "CourseRepository"]
