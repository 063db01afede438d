"""Per-subscription lifecycle state machine.

Decides, for one subscription at one instant, which reminders are due and
whether the trial converts, the period renews, a grace-period retry runs or
the subscription is canceled.
"""

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.payment import PaymentAttemptType
from subscription_engine.models.shared import ensure_utc
from subscription_engine.models.subscription import Subscription, SubscriptionStatus
from subscription_engine.repositories.invoice_repository import InvoiceRepository
from subscription_engine.repositories.subscription_repository import SubscriptionRepository
from subscription_engine.schemas.invoice import InvoiceCreate, InvoiceLineItem
from subscription_engine.schemas.lifecycle import (
    CancellationReason,
    LifecycleConfig,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleState,
)
from subscription_engine.schemas.subscription import SubscriptionUpdate
from subscription_engine.services.payment_orchestrator import (
    PaymentAttemptOrchestrator,
    PaymentAttemptResult,
)
from subscription_engine.services.reminder_scheduler import due_reminders
from subscription_engine.services.subscription_dates import (
    coerce_timestamp,
    days_since,
    days_until,
    next_period_end,
)

logger = logging.getLogger(__name__)

INERT_STATUSES = frozenset({SubscriptionStatus.CANCELED.value, SubscriptionStatus.PAUSED.value})


class SubscriptionStateMachine:
    """Advances a single subscription given the current time.

    Every state change is committed before the event describing it is
    appended to the caller's list, so a failure halfway through a pass never
    leaves an event without the change behind it.
    """

    def __init__(
        self,
        db: Session,
        config: LifecycleConfig,
        orchestrator: PaymentAttemptOrchestrator,
    ):
        self.db = db
        self.config = config
        self.orchestrator = orchestrator
        self.subscription_repo = SubscriptionRepository(db)
        self.invoice_repo = InvoiceRepository(db)

    def process(
        self,
        subscription: Subscription,
        now: datetime,
        events: list[LifecycleEvent],
    ) -> bool:
        """Run one pass for ``subscription`` at ``now``.

        Returns:
            False when the subscription is paused or canceled and was left
            untouched, True otherwise.

        Raises:
            InvalidTimestampError: a trial/period/grace timestamp is unreadable.
            PlanConfigurationError: a payment was due but the plan has no price.
        """
        if subscription.status in INERT_STATUSES:
            return False

        dirty = subscription.lifecycle_state is None
        state = LifecycleState.load(subscription.lifecycle_state)

        if subscription.status == SubscriptionStatus.TRIALING.value:
            self._process_trialing(subscription, state, now, events, dirty)
        elif subscription.status == SubscriptionStatus.ACTIVE.value:
            if state.in_grace_period:
                self._process_grace_period(subscription, state, now, events)
            else:
                self._process_active(subscription, state, now, events, dirty)
        else:
            logger.warning(
                "Subscription %s has unknown status %r, skipping",
                subscription.id,
                subscription.status,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Trialing
    # ------------------------------------------------------------------

    def _process_trialing(
        self,
        subscription: Subscription,
        state: LifecycleState,
        now: datetime,
        events: list[LifecycleEvent],
        dirty: bool,
    ) -> None:
        trial_end = coerce_timestamp(subscription.trial_end, "trial_end")

        if state.trial_reminders_anchor is None or ensure_utc(state.trial_reminders_anchor) != trial_end:
            state.trial_reminders_sent = []
            state.trial_reminders_anchor = trial_end
            dirty = True

        days_remaining = days_until(trial_end, now)
        due = due_reminders(
            self.config.trial_ending_reminder_days, days_remaining, state.trial_reminders_sent
        )
        if due:
            state.trial_reminders_sent = sorted(set(state.trial_reminders_sent) | set(due), reverse=True)
            self._save(subscription, state)
            events.append(
                self._event(
                    LifecycleEventType.TRIAL_ENDING,
                    subscription,
                    now,
                    days_remaining=days_remaining,
                    thresholds=due,
                    trial_end=trial_end.isoformat(),
                )
            )
        elif dirty:
            self._save(subscription, state)

        if now < trial_end:
            return

        # Claim the row before charging so an overlapping pass fails its write
        # instead of charging a second time.
        self._save(subscription, state)
        result = self.orchestrator.attempt_payment(
            subscription, now, PaymentAttemptType.TRIAL_CONVERSION
        )
        events.append(result.event)

        if result.succeeded:
            period_end = next_period_end(
                now, result.billing_interval, self.config.default_billing_cycle_days
            )
            invoice_id = self._create_invoice(
                subscription,
                result,
                now,
                period_start=now,
                period_end=period_end,
                description=f"Trial conversion - {subscription.plan_id}",
                trial_conversion_date=now.isoformat(),
            )
            state.trial_reminders_sent = []
            state.trial_reminders_anchor = None
            state.renewal_reminders_sent = []
            state.renewal_reminders_anchor = None
            state.clear_grace_period()
            self.subscription_repo.update(
                subscription,
                SubscriptionUpdate(
                    status=SubscriptionStatus.ACTIVE,
                    current_period_start=now,
                    current_period_end=period_end,
                    trial_start=None,
                    trial_end=None,
                ),
                lifecycle_state=state,
            )
            logger.info("Subscription %s converted from trial", subscription.id)
            events.append(
                self._event(
                    LifecycleEventType.TRIAL_CONVERTED,
                    subscription,
                    now,
                    converted_at=now.isoformat(),
                    new_period_start=now.isoformat(),
                    new_period_end=period_end.isoformat(),
                    amount=result.amount,
                    currency=result.currency,
                    payment_id=str(result.payment_id),
                    invoice_id=str(invoice_id),
                )
            )
            return

        # No grace period for trials: a failed conversion cancels immediately.
        state.trial_reminders_sent = []
        state.trial_reminders_anchor = None
        state.clear_grace_period()
        self.subscription_repo.cancel(subscription, now, lifecycle_state=state)
        logger.info("Subscription %s canceled: trial payment failed", subscription.id)
        events.append(
            self._event(
                LifecycleEventType.TRIAL_ENDED,
                subscription,
                now,
                ended_at=now.isoformat(),
                converted=False,
                reason=result.failure_reason,
            )
        )
        events.append(
            self._event(
                LifecycleEventType.CANCELED_NONPAYMENT,
                subscription,
                now,
                canceled_at=now.isoformat(),
                reason=CancellationReason.TRIAL_PAYMENT_FAILED.value,
            )
        )

    # ------------------------------------------------------------------
    # Active
    # ------------------------------------------------------------------

    def _process_active(
        self,
        subscription: Subscription,
        state: LifecycleState,
        now: datetime,
        events: list[LifecycleEvent],
        dirty: bool,
    ) -> None:
        period_end = coerce_timestamp(subscription.current_period_end, "current_period_end")

        if (
            state.renewal_reminders_anchor is None
            or ensure_utc(state.renewal_reminders_anchor) != period_end
        ):
            state.renewal_reminders_sent = []
            state.renewal_reminders_anchor = period_end
            dirty = True

        days_remaining = days_until(period_end, now)
        due = due_reminders(
            self.config.renewal_reminder_days, days_remaining, state.renewal_reminders_sent
        )
        if due:
            state.renewal_reminders_sent = sorted(
                set(state.renewal_reminders_sent) | set(due), reverse=True
            )
            self._save(subscription, state)
            events.append(
                self._event(
                    LifecycleEventType.EXPIRING,
                    subscription,
                    now,
                    days_remaining=days_remaining,
                    thresholds=due,
                    current_period_end=period_end.isoformat(),
                )
            )
        elif dirty:
            self._save(subscription, state)

        if now < period_end:
            return

        if subscription.cancel_at_period_end:
            state.renewal_reminders_sent = []
            state.renewal_reminders_anchor = None
            state.clear_grace_period()
            self.subscription_repo.cancel(subscription, now, lifecycle_state=state)
            logger.info("Subscription %s canceled at period end", subscription.id)
            events.append(
                self._event(
                    LifecycleEventType.CANCELED_NONPAYMENT,
                    subscription,
                    now,
                    canceled_at=now.isoformat(),
                    reason=CancellationReason.CANCELED_AT_PERIOD_END.value,
                )
            )
            return

        self._save(subscription, state)
        result = self.orchestrator.attempt_payment(subscription, now, PaymentAttemptType.RENEWAL)
        events.append(result.event)

        if result.succeeded:
            new_period_end, invoice_id = self._renew(
                subscription,
                state,
                period_end,
                result,
                now,
                description=f"Subscription renewal - {subscription.plan_id}",
                renewal_date=now.isoformat(),
            )
            events.append(
                self._event(
                    LifecycleEventType.RENEWED,
                    subscription,
                    now,
                    renewed_at=now.isoformat(),
                    previous_period_end=period_end.isoformat(),
                    new_period_end=new_period_end.isoformat(),
                    amount=result.amount,
                    currency=result.currency,
                    payment_id=str(result.payment_id),
                    invoice_id=str(invoice_id),
                )
            )
            return

        state.start_grace_period(now)
        self._save(subscription, state)
        grace_period_end = now + timedelta(days=self.config.grace_period_days)
        logger.info(
            "Renewal failed for subscription %s, grace period until %s",
            subscription.id,
            grace_period_end.isoformat(),
        )
        events.append(
            self._event(
                LifecycleEventType.RENEWAL_FAILED,
                subscription,
                now,
                failed_at=now.isoformat(),
                reason=result.failure_reason,
            )
        )
        events.append(
            self._event(
                LifecycleEventType.GRACE_PERIOD_STARTED,
                subscription,
                now,
                started_at=now.isoformat(),
                ends_at=grace_period_end.isoformat(),
                grace_period_days=self.config.grace_period_days,
            )
        )

    # ------------------------------------------------------------------
    # Active + grace period
    # ------------------------------------------------------------------

    def _process_grace_period(
        self,
        subscription: Subscription,
        state: LifecycleState,
        now: datetime,
        events: list[LifecycleEvent],
    ) -> None:
        grace_start = coerce_timestamp(state.grace_period_started_at, "grace_period_started_at")
        grace_days = self.config.grace_period_days
        grace_end = grace_start + timedelta(days=grace_days)
        retry_days = self.config.payment_retry_days

        attempts = state.payment_retry_attempts
        last_attempt = (
            ensure_utc(state.last_payment_attempt_at)
            if state.last_payment_attempt_at is not None
            else grace_start
        )

        if attempts < len(retry_days) and days_since(last_attempt, now) >= retry_days[attempts]:
            self._save(subscription, state)
            result = self.orchestrator.attempt_payment(subscription, now, PaymentAttemptType.RETRY)
            # Announced only once the attempt is recorded
            events.append(
                self._event(
                    LifecycleEventType.PAYMENT_RETRY_ATTEMPTED,
                    subscription,
                    now,
                    attempt_number=attempts + 1,
                    attempted_at=now.isoformat(),
                )
            )
            events.append(result.event)

            if result.succeeded:
                period_end = coerce_timestamp(
                    subscription.current_period_end, "current_period_end"
                )
                new_period_end, invoice_id = self._renew(
                    subscription,
                    state,
                    period_end,
                    result,
                    now,
                    description=f"Payment retry - {subscription.plan_id}",
                    retry_date=now.isoformat(),
                    retry_attempt=attempts + 1,
                )
                logger.info(
                    "Subscription %s recovered from grace period on attempt %d",
                    subscription.id,
                    attempts + 1,
                )
                events.append(
                    self._event(
                        LifecycleEventType.RENEWED,
                        subscription,
                        now,
                        renewed_at=now.isoformat(),
                        recovered_from_grace_period=True,
                        attempt_number=attempts + 1,
                        previous_period_end=period_end.isoformat(),
                        new_period_end=new_period_end.isoformat(),
                        amount=result.amount,
                        currency=result.currency,
                        payment_id=str(result.payment_id),
                        invoice_id=str(invoice_id),
                    )
                )
                return

            attempts += 1
            state.payment_retry_attempts = attempts
            state.last_payment_attempt_at = now
            self._save(subscription, state)
            if attempts < len(retry_days):
                events.append(
                    self._event(
                        LifecycleEventType.PAYMENT_RETRY_SCHEDULED,
                        subscription,
                        now,
                        scheduled_for=(now + timedelta(days=retry_days[attempts])).isoformat(),
                        attempt_number=attempts + 1,
                    )
                )

        if (
            days_until(grace_end, now) == 1
            and days_since(grace_start, now) <= grace_days - 1
            and not state.grace_period_ending_notified
        ):
            state.grace_period_ending_notified = True
            self._save(subscription, state)
            events.append(
                self._event(
                    LifecycleEventType.GRACE_PERIOD_ENDING,
                    subscription,
                    now,
                    ends_at=grace_end.isoformat(),
                    days_remaining=1,
                )
            )

        if now >= grace_end:
            total_attempts = state.payment_retry_attempts
            state.clear_grace_period()
            self.subscription_repo.cancel(subscription, now, lifecycle_state=state)
            logger.info(
                "Subscription %s canceled: grace period expired after %d attempts",
                subscription.id,
                total_attempts,
            )
            events.append(
                self._event(
                    LifecycleEventType.CANCELED_NONPAYMENT,
                    subscription,
                    now,
                    canceled_at=now.isoformat(),
                    reason=CancellationReason.GRACE_PERIOD_EXPIRED.value,
                    grace_period_days=grace_days,
                    total_retry_attempts=total_attempts,
                )
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _renew(
        self,
        subscription: Subscription,
        state: LifecycleState,
        period_end: datetime,
        result: PaymentAttemptResult,
        now: datetime,
        description: str,
        **invoice_metadata: Any,
    ) -> tuple[datetime, UUID]:
        """Invoice the paid charge and start the next period at the old period end.

        Returns the new period end and the invoice id.
        """
        new_period_end = next_period_end(
            period_end, result.billing_interval, self.config.default_billing_cycle_days
        )
        invoice_id = self._create_invoice(
            subscription,
            result,
            now,
            period_start=period_end,
            period_end=new_period_end,
            description=description,
            **invoice_metadata,
        )
        state.renewal_reminders_sent = []
        state.renewal_reminders_anchor = new_period_end
        state.clear_grace_period()
        self.subscription_repo.update(
            subscription,
            SubscriptionUpdate(
                current_period_start=period_end,
                current_period_end=new_period_end,
            ),
            lifecycle_state=state,
        )
        return new_period_end, invoice_id

    def _create_invoice(
        self,
        subscription: Subscription,
        result: PaymentAttemptResult,
        now: datetime,
        period_start: datetime,
        period_end: datetime,
        description: str,
        **metadata: Any,
    ) -> UUID:
        invoice = self.invoice_repo.create(
            InvoiceCreate(
                customer_id=UUID(str(subscription.customer_id)),
                subscription_id=UUID(str(subscription.id)),
                payment_id=result.payment_id,
                billing_period_start=period_start,
                billing_period_end=period_end,
                currency=result.currency,
                line_items=[
                    InvoiceLineItem(
                        description=description,
                        quantity=result.quantity,
                        unit_amount=result.unit_amount,
                        amount=result.amount,
                        price_id=result.price_id,
                    )
                ],
                issued_at=now,
                paid_at=now,
                metadata={**metadata, "payment_id": str(result.payment_id)},
            )
        )
        return UUID(str(invoice.id))

    def _save(self, subscription: Subscription, state: LifecycleState) -> None:
        self.subscription_repo.save_lifecycle_state(subscription, state)

    @staticmethod
    def _event(
        event_type: LifecycleEventType,
        subscription: Subscription,
        now: datetime,
        **data: Any,
    ) -> LifecycleEvent:
        return LifecycleEvent(
            type=event_type,
            subscription_id=UUID(str(subscription.id)),
            customer_id=UUID(str(subscription.customer_id)),
            data=data,
            timestamp=now,
        )
