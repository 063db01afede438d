"""Invoice model - one paid invoice per successful subscription charge."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func

from subscription_engine.core.database import Base
from subscription_engine.models.shared import UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    FINALIZED = "finalized"
    PAID = "paid"
    VOIDED = "voided"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_id = Column(UUIDType, nullable=False, index=True)
    subscription_id = Column(
        UUIDType,
        ForeignKey("subscriptions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    payment_id = Column(UUIDType, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.PAID.value)

    # Billing period
    billing_period_start = Column(DateTime(timezone=True), nullable=False)
    billing_period_end = Column(DateTime(timezone=True), nullable=False)

    # Amounts in minor units
    subtotal = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    # Line items stored as JSON array
    line_items = Column(JSON, nullable=False, default=list)
    invoice_metadata = Column(JSON, nullable=True, default=dict)

    issued_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
