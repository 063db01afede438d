"""Price model - what a plan costs per billing cycle."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from subscription_engine.core.database import Base
from subscription_engine.models.shared import UUIDType, generate_uuid


class Price(Base):
    __tablename__ = "prices"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    plan_id = Column(
        UUIDType,
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit_amount = Column(Integer, nullable=False)  # smallest currency unit
    currency = Column(String(3), nullable=False, default="USD")
    billing_interval = Column(String(20), nullable=True)  # PlanInterval value
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
