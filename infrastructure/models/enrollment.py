"""
报名数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, Boolean,
    Index, ForeignKey, UniqueConstraint
)
from datetime import datetime, timezone

from .base import Base


class EnrollmentModel(Base):
    """
    报名数据库模型

    所有业务规则都在 domain.enrollment.entity.Enrollment 中；
    唯一约束是并发创建的最终裁决者
    """
    __tablename__ = "enrollments"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="学生ID")
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True, comment="课程ID")

    # 支付信息
    payment_status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="支付状态: pending/completed/failed/refunded"
    )
    payment_method = Column(String(50), nullable=False, comment="支付方式: free/zarinpal/simulator")
    payment_amount = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="实付金额")
    payment_authority = Column(String(100), nullable=True, comment="网关授权码")
    payment_ref_id = Column(String(100), nullable=True, comment="网关结算流水号")
    failure_reason = Column(Text, nullable=True, comment="失败原因")

    # 乐观锁版本号，每次状态转换 +1
    version = Column(Integer, nullable=False, default=1, comment="版本号")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="退款时间")

    # 学习进度（由进度子系统维护）
    progress = Column(Integer, nullable=False, default=0, comment="进度百分比")
    is_completed = Column(Boolean, nullable=False, default=False, comment="是否学完")
    completed_at = Column(DateTime(timezone=True), nullable=True, comment="学完时间")
    last_accessed_at = Column(DateTime(timezone=True), nullable=True, comment="最后访问时间")

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        UniqueConstraint("payment_authority", name="uq_enrollments_payment_authority"),
        Index("ix_enrollments_student_status", "student_id", "payment_status"),
        Index("ix_enrollments_course_status", "course_id", "payment_status"),
    )

    def __repr__(self):
        return (
            f"<EnrollmentModel(id={self.id}, student_id={self.student_id}, "
            f"course_id={self.course_id}, status='{self.payment_status}')>"
        )
