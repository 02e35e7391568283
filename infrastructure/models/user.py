"""
用户数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime, timezone

from .base import Base


class UserModel(Base):
    """
    用户数据库模型

    所有业务规则都在 domain.user.entity.User 中
    """
    __tablename__ = "users"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    # 用户基本信息
    email = Column(String(100), unique=True, index=True, nullable=False, comment="邮箱")
    first_name = Column(String(50), nullable=False, default="", comment="名")
    last_name = Column(String(50), nullable=False, default="", comment="姓")
    phone = Column(String(20), nullable=True, comment="手机号")
    role = Column(String(20), nullable=False, default="student", index=True, comment="角色: student/instructor/admin")

    # 状态信息
    is_active = Column(Boolean, default=True, nullable=False, comment="是否激活")

    # 讲师统计，只能通过 StatsAggregator 原子增减
    total_students_enrolled = Column(Integer, default=0, nullable=False, comment="讲师累计报名学生数")

    # 时间信息
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    def __repr__(self):
        return f"<UserModel(id={self.id}, email='{self.email}', role='{self.role}')>"
