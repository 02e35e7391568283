"""
课程仓储实现
"""
from typing import Optional
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from domain.course.entity import Course, CourseStatus
from domain.course.repository import CourseRepository
from infrastructure.models.course import CourseModel


class SQLAlchemyCourseRepository(CourseRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CourseModel) -> Course:
        return Course(
            id=model.id,
            title=model.title,
            instructor_id=model.instructor_id,
            price=Decimal(str(model.price)),
            discount_price=Decimal(str(model.discount_price)) if model.discount_price is not None else None,
            status=CourseStatus(model.status),
            total_enrollments=model.total_enrollments,
            published_at=model.published_at,
        )

    async def get_by_id(self, course_id: int) -> Optional[Course]:
        result = await self.session.execute(
            select(CourseModel).where(CourseModel.id == course_id)
        )
        db_course = result.scalar_one_or_none()
        return self._to_entity(db_course) if db_course else None

    async def increment_total_enrollments(self, course_id: int, delta: int) -> None:
        # 原子自增，避免读改写
        await self.session.execute(
            update(CourseModel)
            .where(CourseModel.id == course_id)
            .values(total_enrollments=CourseModel.total_enrollments + delta)
            .execution_options(synchronize_session=False)
        )
