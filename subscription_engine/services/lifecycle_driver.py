"""Service that runs the lifecycle state machine over every subscription."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import StatementError
from sqlalchemy.orm import Session

from subscription_engine.models.shared import ensure_utc, utc_now
from subscription_engine.models.subscription import Subscription
from subscription_engine.repositories.subscription_repository import SubscriptionRepository
from subscription_engine.schemas.lifecycle import (
    InvalidTimestampError,
    LifecycleConfig,
    LifecycleEvent,
    LifecycleRunResult,
    SubscriptionRunError,
)
from subscription_engine.services.event_sink import EventSinkBase
from subscription_engine.services.lifecycle_state_machine import SubscriptionStateMachine
from subscription_engine.services.payment_gateway import PaymentGatewayBase, get_payment_gateway
from subscription_engine.services.payment_orchestrator import (
    PaymentAttemptOrchestrator,
    PlanConfigurationError,
)

logger = logging.getLogger(__name__)


class LifecycleDriver:
    """Processes all subscriptions for one instant, one at a time.

    Each subscription is processed to completion (state committed, events
    dispatched) before the next one is read. At most one driver may work on a
    given subscription at a time; overlapping runs are caught by the versioned
    writes in ``SubscriptionRepository.update`` and the losing subscription is
    left for the next run.
    """

    def __init__(
        self,
        db: Session,
        sink: EventSinkBase,
        gateway: PaymentGatewayBase | None = None,
        config: LifecycleConfig | None = None,
    ):
        self.db = db
        self.sink = sink
        self.config = config or LifecycleConfig.from_settings()
        self.subscription_repo = SubscriptionRepository(db)
        self.orchestrator = PaymentAttemptOrchestrator(db, gateway or get_payment_gateway())
        self.state_machine = SubscriptionStateMachine(db, self.config, self.orchestrator)

    def run(self, now: datetime | None = None) -> list[LifecycleEvent]:
        """Advance every subscription to ``now`` and return the emitted events."""
        return self.run_detailed(now).events

    def run_detailed(self, now: datetime | None = None) -> LifecycleRunResult:
        """Like ``run`` but also reports per-run counters and errors."""
        now = ensure_utc(now) if now is not None else utc_now()
        result = LifecycleRunResult(now=now)

        for subscription_id in self.subscription_repo.list_ids():
            events: list[LifecycleEvent] = []
            try:
                subscription = self._load(subscription_id)
                if subscription is None:
                    # Deleted since the ids were listed
                    result.skipped += 1
                elif self.state_machine.process(subscription, now, events):
                    result.processed += 1
                else:
                    result.skipped += 1
            except InvalidTimestampError as exc:
                self.db.rollback()
                logger.warning("Skipping subscription %s: %s", subscription_id, exc)
                result.skipped += 1
                result.errors.append(
                    SubscriptionRunError(subscription_id=subscription_id, error=str(exc))
                )
            except PlanConfigurationError as exc:
                self.db.rollback()
                logger.warning(
                    "Skipping subscription %s until its plan is fixed: %s", subscription_id, exc
                )
                result.skipped += 1
                result.errors.append(
                    SubscriptionRunError(subscription_id=subscription_id, error=str(exc))
                )
            except Exception as exc:
                self.db.rollback()
                logger.exception("Lifecycle processing failed for subscription %s", subscription_id)
                result.failed += 1
                result.errors.append(
                    SubscriptionRunError(subscription_id=subscription_id, error=str(exc))
                )
            finally:
                # Events collected before a failure describe committed changes.
                self._dispatch(events)
                result.events.extend(events)

        logger.info(
            "Lifecycle run at %s: %d processed, %d skipped, %d failed, %d events",
            now.isoformat(),
            result.processed,
            result.skipped,
            result.failed,
            len(result.events),
        )
        return result

    def _load(self, subscription_id: UUID) -> Subscription | None:
        """Load one subscription, reporting unreadable stored columns as bad timestamps."""
        try:
            return self.subscription_repo.get_by_id(subscription_id)
        except (ValueError, StatementError) as exc:
            raise InvalidTimestampError(
                f"Unreadable stored fields on subscription {subscription_id}: {exc}"
            ) from exc

    def _dispatch(self, events: list[LifecycleEvent]) -> None:
        for event in events:
            try:
                self.sink.emit(event)
            except Exception:
                logger.exception(
                    "Event sink rejected %s for subscription %s",
                    event.type.value,
                    event.subscription_id,
                )
