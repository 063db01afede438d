from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from subscription_engine.models.subscription import SubscriptionStatus


class SubscriptionCreate(BaseModel):
    customer_id: UUID
    plan_id: UUID
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    quantity: int = Field(default=1, ge=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SubscriptionUpdate(BaseModel):
    status: SubscriptionStatus | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool | None = None
    canceled_at: datetime | None = None

