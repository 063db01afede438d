from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.subscription import Subscription, SubscriptionStatus
from subscription_engine.schemas.lifecycle import LifecycleState
from subscription_engine.schemas.subscription import SubscriptionCreate, SubscriptionUpdate


class ConcurrentUpdateError(RuntimeError):
    """The subscription row changed since it was read."""


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_ids(self) -> list[UUID]:
        """Ids of every non-deleted subscription, without loading the rows."""
        rows = (
            self.db.query(Subscription.id)
            .filter(Subscription.deleted_at.is_(None))
            .order_by(Subscription.created_at, Subscription.id)
            .all()
        )
        return [row[0] for row in rows]

    def get_by_id(self, subscription_id: UUID) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.deleted_at.is_(None))
            .first()
        )

    def get_by_customer_id(self, customer_id: UUID) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.customer_id == customer_id, Subscription.deleted_at.is_(None))
            .all()
        )

    def create(self, data: SubscriptionCreate) -> Subscription:
        subscription = Subscription(
            customer_id=data.customer_id,
            plan_id=data.plan_id,
            status=data.status.value,
            trial_start=data.trial_start,
            trial_end=data.trial_end,
            current_period_start=data.current_period_start,
            current_period_end=data.current_period_end,
            cancel_at_period_end=data.cancel_at_period_end,
            quantity=data.quantity,
            subscription_metadata=data.metadata,
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def update(
        self,
        subscription: Subscription,
        data: SubscriptionUpdate | None = None,
        lifecycle_state: LifecycleState | None = None,
    ) -> Subscription:
        """Write field changes and/or lifecycle state in one versioned update.

        The row is only written when its version still matches the version
        read into ``subscription``; otherwise ``ConcurrentUpdateError`` is
        raised and nothing is changed.
        """
        update_data = data.model_dump(exclude_unset=True) if data is not None else {}
        if "status" in update_data:
            if update_data["status"] is not None:
                update_data["status"] = update_data["status"].value
            else:
                del update_data["status"]  # Don't try to set status to NULL
        if lifecycle_state is not None:
            update_data["lifecycle_state"] = lifecycle_state.dump()

        expected_version = int(subscription.version)
        update_data["version"] = expected_version + 1
        rows = (
            self.db.query(Subscription)
            .filter(
                Subscription.id == subscription.id,
                Subscription.version == expected_version,
            )
            .update(update_data, synchronize_session=False)
        )
        if rows == 0:
            self.db.rollback()
            raise ConcurrentUpdateError(
                f"Subscription {subscription.id} was modified concurrently "
                f"(expected version {expected_version})"
            )
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def save_lifecycle_state(
        self, subscription: Subscription, state: LifecycleState
    ) -> Subscription:
        return self.update(subscription, lifecycle_state=state)

    def cancel(
        self,
        subscription: Subscription,
        canceled_at: datetime,
        lifecycle_state: LifecycleState | None = None,
    ) -> Subscription:
        """Cancel a subscription."""
        return self.update(
            subscription,
            SubscriptionUpdate(status=SubscriptionStatus.CANCELED, canceled_at=canceled_at),
            lifecycle_state=lifecycle_state,
        )

    def delete(self, subscription_id: UUID, deleted_at: datetime) -> bool:
        """Soft-delete a subscription so the engine no longer sees it."""
        subscription = self.get_by_id(subscription_id)
        if not subscription:
            return False
        subscription.deleted_at = deleted_at  # type: ignore[assignment]
        self.db.commit()
        return True
