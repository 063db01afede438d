from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from subscription_engine.models.invoice import InvoiceStatus


class InvoiceLineItem(BaseModel):
    description: str
    quantity: int = Field(..., ge=1)
    unit_amount: int = Field(..., ge=0)
    amount: int = Field(..., ge=0)
    price_id: UUID | None = None


class InvoiceCreate(BaseModel):
    customer_id: UUID
    subscription_id: UUID
    payment_id: UUID | None = None
    status: InvoiceStatus = InvoiceStatus.PAID
    billing_period_start: datetime
    billing_period_end: datetime
    currency: str = Field(default="USD", min_length=3, max_length=3)
    line_items: list[InvoiceLineItem] = Field(min_length=1)
    issued_at: datetime
    paid_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    customer_id: UUID
    subscription_id: UUID
    payment_id: UUID | None
    status: str
    billing_period_start: datetime
    billing_period_end: datetime
    subtotal: int
    total: int
    currency: str
    line_items: list[dict[str, Any]]
    issued_at: datetime
    paid_at: datetime | None

    model_config = {"from_attributes": True}
