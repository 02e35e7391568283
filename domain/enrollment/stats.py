"""
StatsAggregator - the only writer of course/instructor enrollment counters.

Callers invoke it inside the same unit of work as the state transition that
justifies the change, and only after that transition won its conditional
update. That pairing is what keeps the counters exactly in step with the
number of completed (minus refunded) enrollments.
"""
from __future__ import annotations

from domain.course.repository import CourseRepository
from domain.user.repository import UserRepository


class StatsAggregator:

    def __init__(self, course_repository: CourseRepository, user_repository: UserRepository) -> None:
        self.course_repository = course_repository
        self.user_repository = user_repository

    async def on_completed(self, course_id: int, instructor_id: int) -> None:
        await self._apply(course_id, instructor_id, +1)

    async def on_refunded(self, course_id: int, instructor_id: int) -> None:
        await self._apply(course_id, instructor_id, -1)

    async def _apply(self, course_id: int, instructor_id: int, delta: int) -> None:
        await self.course_repository.increment_total_enrollments(course_id, delta)
        await self.user_repository.increment_students_enrolled(instructor_id, delta)
