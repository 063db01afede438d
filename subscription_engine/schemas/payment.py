from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from subscription_engine.models.payment import PaymentAttemptType, PaymentStatus


class PaymentRecordCreate(BaseModel):
    customer_id: UUID
    subscription_id: UUID
    amount: int = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    status: PaymentStatus
    attempt_type: PaymentAttemptType
    attempted_at: datetime
    provider: str | None = None
    provider_payment_id: str | None = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentResponse(BaseModel):
    id: UUID
    customer_id: UUID
    subscription_id: UUID
    amount: int
    currency: str
    status: str
    attempt_type: str
    provider: str | None = None
    provider_payment_id: str | None = None
    failure_reason: str | None = None
    attempted_at: datetime

    model_config = {"from_attributes": True}
