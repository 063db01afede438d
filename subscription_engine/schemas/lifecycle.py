"""Schemas for the subscription lifecycle engine: state, events and configuration."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from subscription_engine.core.config import Settings, settings


class LifecycleEventType(str, Enum):
    TRIAL_ENDING = "subscription.trial_ending"
    TRIAL_ENDED = "subscription.trial_ended"
    TRIAL_CONVERTED = "subscription.trial_converted"
    EXPIRING = "subscription.expiring"
    RENEWED = "subscription.renewed"
    RENEWAL_FAILED = "subscription.renewal_failed"
    GRACE_PERIOD_STARTED = "subscription.grace_period_started"
    GRACE_PERIOD_ENDING = "subscription.grace_period_ending"
    CANCELED_NONPAYMENT = "subscription.canceled_nonpayment"
    PAYMENT_RETRY_SCHEDULED = "payment.retry_scheduled"
    PAYMENT_RETRY_ATTEMPTED = "payment.retry_attempted"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"


class CancellationReason(str, Enum):
    TRIAL_PAYMENT_FAILED = "trial_payment_failed"
    CANCELED_AT_PERIOD_END = "canceled_at_period_end"
    GRACE_PERIOD_EXPIRED = "grace_period_expired"


class InvalidTimestampError(ValueError):
    """A stored timestamp could not be interpreted."""


class LifecycleState(BaseModel):
    """Per-subscription bookkeeping owned by the lifecycle engine.

    The reminder anchors record which trial end / period end the sent sets
    belong to, so the sets can be emptied when the covering period changes.
    """

    trial_reminders_sent: list[int] = Field(default_factory=list)
    trial_reminders_anchor: datetime | None = None
    renewal_reminders_sent: list[int] = Field(default_factory=list)
    renewal_reminders_anchor: datetime | None = None
    in_grace_period: bool = False
    grace_period_started_at: datetime | None = None
    grace_period_ending_notified: bool = False
    payment_retry_attempts: int = Field(default=0, ge=0)
    last_payment_attempt_at: datetime | None = None

    @model_validator(mode="after")
    def _check_grace_invariant(self) -> "LifecycleState":
        if self.in_grace_period != (self.grace_period_started_at is not None):
            raise ValueError(
                "in_grace_period must be set exactly when grace_period_started_at is set"
            )
        return self

    @classmethod
    def load(cls, raw: dict[str, Any] | None) -> "LifecycleState":
        """Build the state from its stored JSON form; missing state means a fresh one."""
        if not raw:
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise InvalidTimestampError(f"Unreadable lifecycle state: {exc}") from exc

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def start_grace_period(self, now: datetime) -> None:
        self.in_grace_period = True
        self.grace_period_started_at = now
        self.grace_period_ending_notified = False
        self.payment_retry_attempts = 1
        self.last_payment_attempt_at = now

    def clear_grace_period(self) -> None:
        self.in_grace_period = False
        self.grace_period_started_at = None
        self.grace_period_ending_notified = False
        self.payment_retry_attempts = 0
        self.last_payment_attempt_at = None


class LifecycleEvent(BaseModel):
    """An immutable record of one lifecycle transition.

    ``data`` keys are snake_case throughout, so a consumer expecting the
    camelCase payload names reads ``days_remaining`` for ``daysRemaining``,
    ``grace_period_days`` for ``gracePeriodDays`` and ``payment_id`` for
    ``paymentId``.
    """

    model_config = ConfigDict(frozen=True)

    type: LifecycleEventType
    subscription_id: UUID
    customer_id: UUID
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class LifecycleConfig(BaseModel):
    """Per-run engine configuration."""

    model_config = ConfigDict(frozen=True)

    trial_ending_reminder_days: tuple[int, ...] = (7, 3, 1)
    renewal_reminder_days: tuple[int, ...] = (7, 3, 1)
    grace_period_days: int = Field(default=7, ge=1)
    payment_retry_days: tuple[int, ...] = (1, 3, 5)
    default_billing_cycle_days: int = Field(default=30, ge=1)

    @field_validator("trial_ending_reminder_days", "renewal_reminder_days")
    @classmethod
    def _positive_thresholds(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if any(day <= 0 for day in value):
            raise ValueError("reminder thresholds must be positive day counts")
        return value

    @field_validator("payment_retry_days")
    @classmethod
    def _non_negative_retries(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("at least one retry offset is required")
        if any(day < 0 for day in value):
            raise ValueError("retry offsets cannot be negative")
        return value

    @classmethod
    def from_settings(cls, app_settings: Settings | None = None) -> "LifecycleConfig":
        s = app_settings or settings
        return cls(
            trial_ending_reminder_days=tuple(s.LIFECYCLE_TRIAL_REMINDER_DAYS),
            renewal_reminder_days=tuple(s.LIFECYCLE_RENEWAL_REMINDER_DAYS),
            grace_period_days=s.LIFECYCLE_GRACE_PERIOD_DAYS,
            payment_retry_days=tuple(s.LIFECYCLE_PAYMENT_RETRY_DAYS),
            default_billing_cycle_days=s.LIFECYCLE_DEFAULT_BILLING_CYCLE_DAYS,
        )


class SubscriptionRunError(BaseModel):
    subscription_id: UUID
    error: str


class LifecycleRunResult(BaseModel):
    """Outcome of one driver pass."""

    now: datetime
    events: list[LifecycleEvent] = Field(default_factory=list)
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[SubscriptionRunError] = Field(default_factory=list)


class LifecycleRunRequest(BaseModel):
    now: datetime | None = None


class LifecycleStateResponse(BaseModel):
    subscription_id: UUID
    status: str
    version: int
    lifecycle_state: LifecycleState
