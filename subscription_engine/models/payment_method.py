"""PaymentMethod model for storing customer payment methods."""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, String, func

from subscription_engine.core.database import Base
from subscription_engine.models.shared import UUIDType, generate_uuid


class PaymentMethodStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentMethod(Base):
    """PaymentMethod model - stores saved payment methods for customers."""

    __tablename__ = "payment_methods"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    customer_id = Column(UUIDType, nullable=False, index=True)

    # Provider info
    provider = Column(String(50), nullable=False)  # stripe / simulated
    provider_payment_method_id = Column(String(255), nullable=False)

    type = Column(String(50), nullable=False, default="card")
    status = Column(String(20), nullable=False, default=PaymentMethodStatus.ACTIVE.value)
    is_default = Column(Boolean, nullable=False, default=False)

    # Extra details (last4, brand, exp_month, exp_year, etc.)
    details = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
