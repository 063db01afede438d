from subscription_engine.schemas.invoice import InvoiceCreate, InvoiceLineItem, InvoiceResponse
from subscription_engine.schemas.lifecycle import (
    CancellationReason,
    InvalidTimestampError,
    LifecycleConfig,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleRunRequest,
    LifecycleRunResult,
    LifecycleState,
    LifecycleStateResponse,
    SubscriptionRunError,
)
from subscription_engine.schemas.payment import PaymentRecordCreate, PaymentResponse
from subscription_engine.schemas.subscription import SubscriptionCreate, SubscriptionUpdate

__all__ = [
    "CancellationReason",
    "InvalidTimestampError",
    "InvoiceCreate",
    "InvoiceLineItem",
    "InvoiceResponse",
    "LifecycleConfig",
    "LifecycleEvent",
    "LifecycleEventType",
    "LifecycleRunRequest",
    "LifecycleRunResult",
    "LifecycleState",
    "LifecycleStateResponse",
    "PaymentRecordCreate",
    "PaymentResponse",
    "SubscriptionCreate",
    "SubscriptionRunError",
    "SubscriptionUpdate",
]
