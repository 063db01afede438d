"""Payment attempts for subscription renewals, trial conversions and retries."""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.payment import PaymentAttemptType, PaymentStatus
from subscription_engine.models.subscription import Subscription
from subscription_engine.repositories.payment_method_repository import PaymentMethodRepository
from subscription_engine.repositories.payment_repository import PaymentRepository
from subscription_engine.repositories.plan_repository import PlanRepository
from subscription_engine.schemas.lifecycle import LifecycleEvent, LifecycleEventType
from subscription_engine.schemas.payment import PaymentRecordCreate
from subscription_engine.services.payment_gateway import PaymentGatewayBase

logger = logging.getLogger(__name__)

NO_PAYMENT_METHOD = "no_payment_method"


class PlanConfigurationError(ValueError):
    """The subscription's plan cannot be charged (no price configured)."""


@dataclass
class PaymentAttemptResult:
    """Outcome of one recorded payment attempt."""

    succeeded: bool
    amount: int
    currency: str
    billing_interval: str | None
    payment_id: UUID
    event: LifecycleEvent
    price_id: UUID
    unit_amount: int
    quantity: int
    failure_reason: str | None = None


class PaymentAttemptOrchestrator:
    """Charges a subscription once and records the attempt.

    Never changes subscription state: the caller decides what a success or a
    failure means for the lifecycle.
    """

    def __init__(self, db: Session, gateway: PaymentGatewayBase):
        self.db = db
        self.gateway = gateway
        self.plan_repo = PlanRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.payment_method_repo = PaymentMethodRepository(db)

    def attempt_payment(
        self,
        subscription: Subscription,
        now: datetime,
        attempt_type: PaymentAttemptType,
    ) -> PaymentAttemptResult:
        """Charge the subscription's price times quantity.

        1. Resolve the plan's first active price (none: PlanConfigurationError)
        2. Find a payment method (saved, or collected at subscription creation)
        3. Without a method, fail without contacting the gateway
        4. Otherwise charge through the gateway
        5. Record the attempt and build the payment.succeeded/failed event

        Raises:
            PlanConfigurationError: the plan has no price.
            GatewayUnavailableError: the gateway could not be reached; nothing
                is recorded.
        """
        subscription_id = UUID(str(subscription.id))
        customer_id = UUID(str(subscription.customer_id))

        prices = self.plan_repo.get_prices(UUID(str(subscription.plan_id)))
        if not prices:
            logger.warning(
                "No price found for plan %s (subscription %s)",
                subscription.plan_id,
                subscription_id,
            )
            raise PlanConfigurationError(f"No price found for plan {subscription.plan_id}")

        price = prices[0]
        unit_amount = int(price.unit_amount)
        quantity = int(subscription.quantity)
        amount = unit_amount * quantity
        currency = str(price.currency)
        billing_interval = str(price.billing_interval) if price.billing_interval else None

        provider_method_id = self._find_payment_method(subscription, customer_id)
        has_payment_method = provider_method_id is not None

        provider: str | None = None
        provider_payment_id: str | None = None
        if provider_method_id is None:
            succeeded = False
            failure_reason: str | None = NO_PAYMENT_METHOD
        else:
            charge = self.gateway.charge(
                customer_id=customer_id,
                amount=amount,
                currency=currency,
                payment_method_id=provider_method_id,
                metadata={
                    "subscription_id": str(subscription_id),
                    "type": attempt_type.value,
                    "idempotency_key": f"{subscription_id}:{attempt_type.value}:{now.isoformat()}",
                },
            )
            provider = self.gateway.provider_name
            provider_payment_id = charge.provider_payment_id
            succeeded = charge.succeeded
            failure_reason = None if succeeded else (charge.failure_reason or "payment_declined")

        payment = self.payment_repo.record(
            PaymentRecordCreate(
                customer_id=customer_id,
                subscription_id=subscription_id,
                amount=amount,
                currency=currency,
                status=PaymentStatus.SUCCEEDED if succeeded else PaymentStatus.FAILED,
                attempt_type=attempt_type,
                attempted_at=now,
                provider=provider,
                provider_payment_id=provider_payment_id,
                failure_reason=failure_reason,
                metadata={"subscription_id": str(subscription_id)},
            )
        )
        payment_id = UUID(str(payment.id))

        if not succeeded:
            logger.info(
                "Payment %s failed for subscription %s: %s",
                payment_id,
                subscription_id,
                failure_reason,
            )

        event = LifecycleEvent(
            type=(
                LifecycleEventType.PAYMENT_SUCCEEDED
                if succeeded
                else LifecycleEventType.PAYMENT_FAILED
            ),
            subscription_id=subscription_id,
            customer_id=customer_id,
            data={
                "payment_id": str(payment_id),
                "amount": amount,
                "currency": currency,
                "attempt_type": attempt_type.value,
                "has_payment_method": has_payment_method,
                "failure_reason": failure_reason,
            },
            timestamp=now,
        )
        return PaymentAttemptResult(
            succeeded=succeeded,
            amount=amount,
            currency=currency,
            billing_interval=billing_interval,
            payment_id=payment_id,
            event=event,
            price_id=UUID(str(price.id)),
            unit_amount=unit_amount,
            quantity=quantity,
            failure_reason=failure_reason,
        )

    def _find_payment_method(self, subscription: Subscription, customer_id: UUID) -> str | None:
        """Provider id of the method to charge, or None when the customer has none."""
        saved = self.payment_method_repo.get_active_for_customer(customer_id)
        if saved is not None:
            return str(saved.provider_payment_method_id)

        # Card captured while creating the subscription (e.g. trial with card)
        metadata = subscription.subscription_metadata or {}
        if metadata.get("payment_method_collected") is True:
            return str(metadata.get("payment_method_id") or f"collected_{subscription.id}")
        return None
