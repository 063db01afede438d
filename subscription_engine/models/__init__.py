from subscription_engine.models.invoice import Invoice, InvoiceStatus
from subscription_engine.models.payment import Payment, PaymentAttemptType, PaymentStatus
from subscription_engine.models.payment_method import PaymentMethod, PaymentMethodStatus
from subscription_engine.models.plan import Plan, PlanInterval
from subscription_engine.models.price import Price
from subscription_engine.models.subscription import Subscription, SubscriptionStatus

__all__ = [
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentAttemptType",
    "PaymentMethod",
    "PaymentMethodStatus",
    "PaymentStatus",
    "Plan",
    "PlanInterval",
    "Price",
    "Subscription",
    "SubscriptionStatus",
]
