"""Subscription lifecycle API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from subscription_engine.core.database import get_db
from subscription_engine.repositories.invoice_repository import InvoiceRepository
from subscription_engine.repositories.payment_repository import PaymentRepository
from subscription_engine.repositories.subscription_repository import SubscriptionRepository
from subscription_engine.schemas.invoice import InvoiceResponse
from subscription_engine.schemas.lifecycle import (
    InvalidTimestampError,
    LifecycleRunRequest,
    LifecycleRunResult,
    LifecycleState,
    LifecycleStateResponse,
)
from subscription_engine.schemas.payment import PaymentResponse
from subscription_engine.services.event_sink import get_event_sink
from subscription_engine.services.lifecycle_driver import LifecycleDriver

router = APIRouter()


@router.post(
    "/lifecycle/run",
    response_model=LifecycleRunResult,
    summary="Run a lifecycle pass",
    responses={422: {"description": "Validation error"}},
)
async def run_lifecycle(
    data: LifecycleRunRequest,
    db: Session = Depends(get_db),
) -> LifecycleRunResult:
    """Advance every subscription to ``now`` (default: current time)."""
    driver = LifecycleDriver(db, sink=get_event_sink())
    return driver.run_detailed(data.now)


@router.get(
    "/subscriptions/{subscription_id}/lifecycle_state",
    response_model=LifecycleStateResponse,
    summary="Get subscription lifecycle state",
    responses={
        404: {"description": "Subscription not found"},
        409: {"description": "Stored lifecycle state is unreadable"},
    },
)
async def get_lifecycle_state(
    subscription_id: UUID,
    db: Session = Depends(get_db),
) -> LifecycleStateResponse:
    """Return the engine's bookkeeping for one subscription."""
    subscription = SubscriptionRepository(db).get_by_id(subscription_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    try:
        state = LifecycleState.load(subscription.lifecycle_state)
    except InvalidTimestampError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return LifecycleStateResponse(
        subscription_id=subscription_id,
        status=str(subscription.status),
        version=int(subscription.version),
        lifecycle_state=state,
    )


@router.get(
    "/subscriptions/{subscription_id}/payments",
    response_model=list[PaymentResponse],
    summary="List payment attempts for a subscription",
    responses={404: {"description": "Subscription not found"}},
)
async def list_subscription_payments(
    subscription_id: UUID,
    db: Session = Depends(get_db),
) -> list[PaymentResponse]:
    """Audit trail of every payment attempt, newest first."""
    if not SubscriptionRepository(db).get_by_id(subscription_id):
        raise HTTPException(status_code=404, detail="Subscription not found")
    payments = PaymentRepository(db).get_by_subscription(subscription_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get(
    "/subscriptions/{subscription_id}/invoices",
    response_model=list[InvoiceResponse],
    summary="List invoices for a subscription",
    responses={404: {"description": "Subscription not found"}},
)
async def list_subscription_invoices(
    subscription_id: UUID,
    db: Session = Depends(get_db),
) -> list[InvoiceResponse]:
    """Invoices written for successful charges, newest first."""
    if not SubscriptionRepository(db).get_by_id(subscription_id):
        raise HTTPException(status_code=404, detail="Subscription not found")
    invoices = InvoiceRepository(db).get_by_subscription(subscription_id)
    return [InvoiceResponse.model_validate(i) for i in invoices]
