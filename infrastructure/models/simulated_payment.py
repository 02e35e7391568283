"""
模拟网关支付记录 - backing store of the non-production simulator gateway
"""
from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime, timezone

from .base import Base


class SimulatedPaymentModel(Base):
    __tablename__ = "simulated_payments"

    id = Column(Integer, primary_key=True, index=True)
    authority = Column(String(100), unique=True, index=True, nullable=False, comment="模拟授权码")

    # 网关单位金额（Rial）
    amount_minor = Column(Integer, nullable=False, comment="网关金额")
    description = Column(String(500), nullable=True, comment="描述")
    callback_url = Column(String(500), nullable=False, comment="回调地址")

    status = Column(String(20), nullable=False, default="requested", comment="状态: requested/paid/verified")
    ref_id = Column(String(100), nullable=True, comment="模拟结算流水号")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="模拟支付时间")
    verified_at = Column(DateTime(timezone=True), nullable=True, comment="校验时间")

    def __repr__(self):
        return f"<SimulatedPaymentModel(authority='{self.authority}', status='{self.status}')>"
