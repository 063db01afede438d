"""Payment model - immutable audit record of every payment attempt."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func

from subscription_engine.core.database import Base
from subscription_engine.models.shared import UUIDType, generate_uuid


class PaymentStatus(str, Enum):
    """Payment status enum."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentAttemptType(str, Enum):
    """Why the engine tried to charge the customer."""

    TRIAL_CONVERSION = "trial_conversion"
    RENEWAL = "renewal"
    RETRY = "retry"


class Payment(Base):
    """Payment model - one row per attempt, never updated."""

    __tablename__ = "payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    customer_id = Column(UUIDType, nullable=False, index=True)
    subscription_id = Column(
        UUIDType,
        ForeignKey("subscriptions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False)
    attempt_type = Column(String(30), nullable=False)

    provider = Column(String(50), nullable=True)
    provider_payment_id = Column(String(255), nullable=True, index=True)
    failure_reason = Column(Text, nullable=True)
    payment_metadata = Column(JSON, nullable=True, default=dict)

    attempted_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
