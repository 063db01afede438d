"""Payment repository for data access."""

from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.payment import Payment, PaymentStatus
from subscription_engine.schemas.payment import PaymentRecordCreate


class PaymentRepository:
    """Repository for Payment model.

    Payments are an append-only audit trail, so there is no update method.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(self, data: PaymentRecordCreate) -> Payment:
        """Persist one payment attempt."""
        payment = Payment(
            customer_id=data.customer_id,
            subscription_id=data.subscription_id,
            amount=data.amount,
            currency=data.currency,
            status=data.status.value,
            attempt_type=data.attempt_type.value,
            provider=data.provider,
            provider_payment_id=data.provider_payment_id,
            failure_reason=data.failure_reason,
            payment_metadata=data.metadata,
            attempted_at=data.attempted_at,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def get_by_subscription(
        self,
        subscription_id: UUID,
        status: PaymentStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Payment]:
        """Attempts for a subscription, newest first."""
        query = self.db.query(Payment).filter(Payment.subscription_id == subscription_id)
        if status:
            query = query.filter(Payment.status == status.value)
        return query.order_by(Payment.attempted_at.desc()).offset(skip).limit(limit).all()
