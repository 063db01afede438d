"""Repository for PaymentMethod lookups."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.payment_method import PaymentMethod, PaymentMethodStatus


class PaymentMethodRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_customer_id(self, customer_id: UUID) -> list[PaymentMethod]:
        return self.db.query(PaymentMethod).filter(PaymentMethod.customer_id == customer_id).all()

    def get_active_for_customer(self, customer_id: UUID) -> PaymentMethod | None:
        """The customer's default active method, else any active one."""
        return (
            self.db.query(PaymentMethod)
            .filter(
                PaymentMethod.customer_id == customer_id,
                PaymentMethod.status == PaymentMethodStatus.ACTIVE.value,
            )
            .order_by(PaymentMethod.is_default.desc(), PaymentMethod.created_at)
            .first()
        )

    def create(
        self,
        customer_id: UUID,
        provider: str,
        provider_payment_method_id: str,
        is_default: bool = False,
        type: str = "card",
    ) -> PaymentMethod:
        payment_method = PaymentMethod(
            customer_id=customer_id,
            provider=provider,
            provider_payment_method_id=provider_payment_method_id,
            type=type,
            is_default=is_default,
        )
        self.db.add(payment_method)
        self.db.commit()
        self.db.refresh(payment_method)
        return payment_method

    def deactivate(self, payment_method_id: UUID) -> PaymentMethod | None:
        payment_method = (
            self.db.query(PaymentMethod).filter(PaymentMethod.id == payment_method_id).first()
        )
        if not payment_method:
            return None
        payment_method.status = PaymentMethodStatus.INACTIVE.value  # type: ignore[assignment]
        payment_method.is_default = False  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(payment_method)
        return payment_method
