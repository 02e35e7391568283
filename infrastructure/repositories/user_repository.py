"""
用户仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from domain.user.entity import User, UserRole
from domain.user.repository import UserRepository
from infrastructure.models.user import UserModel


class SQLAlchemyUserRepository(UserRepository):
    """用户仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: UserModel) -> User:
        """将数据库模型转换为领域实体"""
        return User(
            id=model.id,
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            role=UserRole(model.role),
            phone=model.phone,
            is_active=model.is_active,
            total_students_enrolled=model.total_students_enrolled,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """根据ID获取用户"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def increment_students_enrolled(self, user_id: int, delta: int) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(total_students_enrolled=UserModel.total_students_enrolled + delta)
            .execution_options(synchronize_session=False)
        )
