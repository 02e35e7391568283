"""
报名仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError

from domain.enrollment.entity import Enrollment, EnrollmentStatus
from domain.enrollment.repository import EnrollmentRepository
from domain.common.exceptions import DuplicateAuthorityException, DuplicateEnrollmentException
from infrastructure.models.enrollment import EnrollmentModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyEnrollmentRepository(EnrollmentRepository):
    """报名仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: EnrollmentModel) -> Enrollment:
        """将数据库模型转换为领域实体"""
        return Enrollment(
            id=model.id,
            student_id=model.student_id,
            course_id=model.course_id,
            payment_status=EnrollmentStatus(model.payment_status),
            payment_method=model.payment_method,
            payment_amount=Decimal(str(model.payment_amount)),
            payment_authority=model.payment_authority,
            payment_ref_id=model.payment_ref_id,
            failure_reason=model.failure_reason,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            refunded_at=model.refunded_at,
            progress=model.progress,
            is_completed=model.is_completed,
            completed_at=model.completed_at,
            last_accessed_at=model.last_accessed_at,
        )

    def _to_model(self, entity: Enrollment) -> EnrollmentModel:
        """将领域实体转换为数据库模型"""
        return EnrollmentModel(
            id=entity.id,
            student_id=entity.student_id,
            course_id=entity.course_id,
            payment_status=entity.payment_status.value,
            payment_method=entity.payment_method,
            payment_amount=entity.payment_amount,
            payment_authority=entity.payment_authority,
            payment_ref_id=entity.payment_ref_id,
            failure_reason=entity.failure_reason,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
            refunded_at=entity.refunded_at,
            progress=entity.progress,
            is_completed=entity.is_completed,
            completed_at=entity.completed_at,
            last_accessed_at=entity.last_accessed_at,
        )

    async def create(self, enrollment: Enrollment) -> Enrollment:
        """创建报名记录"""
        try:
            db_enrollment = self._to_model(enrollment)
            self.session.add(db_enrollment)
            await self.session.flush()
            await self.session.refresh(db_enrollment)
            logger.info(
                "enrollment_created",
                enrollment_id=db_enrollment.id,
                student_id=db_enrollment.student_id,
                course_id=db_enrollment.course_id,
                payment_status=db_enrollment.payment_status,
                payment_method=db_enrollment.payment_method,
            )
            return self._to_entity(db_enrollment)
        except IntegrityError as e:
            await self.session.rollback()
            # e.orig excludes the INSERT statement text, which names every column
            msg = str(e.orig).lower()
            if "payment_authority" in msg:
                logger.warning("enrollment_create_conflict", field="payment_authority",
                               authority=enrollment.payment_authority)
                raise DuplicateAuthorityException(enrollment.payment_authority)
            if "student_id" in msg or "uq_enrollments_student_course" in msg:
                logger.warning("enrollment_create_conflict", field="student_course",
                               student_id=enrollment.student_id, course_id=enrollment.course_id)
                raise DuplicateEnrollmentException(enrollment.student_id, enrollment.course_id)
            raise

    async def get_by_id(self, enrollment_id: int) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(EnrollmentModel).where(EnrollmentModel.id == enrollment_id)
        )
        db_enrollment = result.scalar_one_or_none()
        return self._to_entity(db_enrollment) if db_enrollment else None

    async def get_by_student_and_course(self, student_id: int, course_id: int) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(EnrollmentModel).where(
                EnrollmentModel.student_id == student_id,
                EnrollmentModel.course_id == course_id,
            )
        )
        db_enrollment = result.scalar_one_or_none()
        return self._to_entity(db_enrollment) if db_enrollment else None

    async def get_pending_by_authority(self, authority: str) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(EnrollmentModel).where(
                EnrollmentModel.payment_authority == authority,
                EnrollmentModel.payment_status == EnrollmentStatus.PENDING.value,
            )
        )
        db_enrollment = result.scalar_one_or_none()
        return self._to_entity(db_enrollment) if db_enrollment else None

    async def save_transition(
        self,
        enrollment: Enrollment,
        *,
        expected_status: EnrollmentStatus,
        expected_version: int,
    ) -> bool:
        """条件更新：WHERE id AND payment_status AND version，影响行数决定胜负"""
        stmt = (
            update(EnrollmentModel)
            .where(
                EnrollmentModel.id == enrollment.id,
                EnrollmentModel.payment_status == expected_status.value,
                EnrollmentModel.version == expected_version,
            )
            .values(
                payment_status=enrollment.payment_status.value,
                payment_ref_id=enrollment.payment_ref_id,
                failure_reason=enrollment.failure_reason,
                version=enrollment.version,
                updated_at=enrollment.updated_at,
                paid_at=enrollment.paid_at,
                refunded_at=enrollment.refunded_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        won = result.rowcount == 1
        logger.info(
            "enrollment_transition",
            enrollment_id=enrollment.id,
            from_status=expected_status.value,
            to_status=enrollment.payment_status.value,
            expected_version=expected_version,
            applied=won,
        )
        return won

    def _student_filters(self, student_id: int, status, is_completed) -> list:
        filters = [EnrollmentModel.student_id == student_id]
        if status:
            filters.append(EnrollmentModel.payment_status == status.value)
        if is_completed is not None:
            filters.append(EnrollmentModel.is_completed == is_completed)
        return filters

    def _admin_filters(self, status, course_id, student_id) -> list:
        filters = []
        if status:
            filters.append(EnrollmentModel.payment_status == status.value)
        if course_id is not None:
            filters.append(EnrollmentModel.course_id == course_id)
        if student_id is not None:
            filters.append(EnrollmentModel.student_id == student_id)
        return filters

    async def list_by_student(
        self,
        student_id: int,
        skip: int = 0,
        limit: int = 10,
        status: Optional[EnrollmentStatus] = None,
        is_completed: Optional[bool] = None,
    ) -> List[Enrollment]:
        """获取学生的报名列表（按最近访问、创建时间倒序）"""
        query = (
            select(EnrollmentModel)
            .where(*self._student_filters(student_id, status, is_completed))
            .order_by(EnrollmentModel.last_accessed_at.desc(), EnrollmentModel.created_at.desc(),
                      EnrollmentModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_student(
        self,
        student_id: int,
        status: Optional[EnrollmentStatus] = None,
        is_completed: Optional[bool] = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count(EnrollmentModel.id)).where(
                *self._student_filters(student_id, status, is_completed)
            )
        )
        return result.scalar() or 0

    async def list_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[EnrollmentStatus] = None,
        course_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> List[Enrollment]:
        query = (
            select(EnrollmentModel)
            .where(*self._admin_filters(status, course_id, student_id))
            .order_by(EnrollmentModel.created_at.desc(), EnrollmentModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_all(
        self,
        status: Optional[EnrollmentStatus] = None,
        course_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count(EnrollmentModel.id)).where(
                *self._admin_filters(status, course_id, student_id)
            )
        )
        return result.scalar() or 0

    async def total_revenue(self) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(EnrollmentModel.payment_amount), 0)).where(
                EnrollmentModel.payment_status == EnrollmentStatus.COMPLETED.value
            )
        )
        return Decimal(str(result.scalar() or 0))
