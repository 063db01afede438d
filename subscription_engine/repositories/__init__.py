from subscription_engine.repositories.invoice_repository import InvoiceRepository
from subscription_engine.repositories.payment_method_repository import PaymentMethodRepository
from subscription_engine.repositories.payment_repository import PaymentRepository
from subscription_engine.repositories.plan_repository import PlanRepository
from subscription_engine.repositories.subscription_repository import (
    ConcurrentUpdateError,
    SubscriptionRepository,
)

__all__ = [
    "ConcurrentUpdateError",
    "InvoiceRepository",
    "PaymentMethodRepository",
    "PaymentRepository",
    "PlanRepository",
    "SubscriptionRepository",
]
