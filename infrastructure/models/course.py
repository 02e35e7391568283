"""
课程数据库模型 - only the columns the enrollment flow reads or counts
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from datetime import datetime, timezone

from .base import Base


class CourseModel(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, comment="课程标题")
    instructor_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="讲师ID"
    )

    # 价格（Toman）
    price = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="标价")
    discount_price = Column(Numeric(precision=15, scale=2), nullable=True, comment="折扣价")

    status = Column(String(20), nullable=False, default="draft", index=True, comment="状态: draft/published/archived")
    total_enrollments = Column(Integer, nullable=False, default=0, comment="报名总数")

    published_at = Column(DateTime(timezone=True), nullable=True, comment="发布时间")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return f"<CourseModel(id={self.id}, title='{self.title}', status='{self.status}')>"
