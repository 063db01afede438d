"""Payment gateway abstraction layer.

The lifecycle engine only needs one capability from a provider: charge a
saved payment method off-session and report whether it worked.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from subscription_engine.core.config import settings


class GatewayUnavailableError(RuntimeError):
    """The gateway could not be reached; the charge outcome is unknown."""


@dataclass
class ChargeResult:
    """Outcome of a charge attempt."""

    succeeded: bool
    provider_payment_id: str | None = None
    failure_reason: str | None = None


class PaymentGatewayBase(ABC):
    """Abstract base class for payment gateways."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier stored on payment records."""
        pass  # pragma: no cover

    @abstractmethod
    def charge(
        self,
        customer_id: UUID,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChargeResult:
        """Charge ``amount`` (smallest currency unit) to a saved payment method.

        A declined charge is a normal ``ChargeResult``; only transport-level
        problems raise ``GatewayUnavailableError``.
        """
        pass  # pragma: no cover


class SimulatedPaymentGateway(PaymentGatewayBase):
    """Gateway stand-in that succeeds with a fixed probability."""

    def __init__(
        self,
        success_rate: float | None = None,
        rng: random.Random | None = None,
    ):
        rate = settings.SIMULATED_PAYMENT_SUCCESS_RATE if success_rate is None else success_rate
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"success_rate must be between 0 and 1, got {rate}")
        self.success_rate = rate
        self.rng = rng or random.Random()
        self._counter = 0

    @property
    def provider_name(self) -> str:
        return "simulated"

    def charge(
        self,
        customer_id: UUID,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChargeResult:
        self._counter += 1
        provider_payment_id = f"pay_sim_{self._counter}_{self.rng.getrandbits(32):08x}"
        if self.rng.random() < self.success_rate:
            return ChargeResult(succeeded=True, provider_payment_id=provider_payment_id)
        return ChargeResult(
            succeeded=False,
            provider_payment_id=provider_payment_id,
            failure_reason="payment_declined",
        )


class StripePaymentGateway(PaymentGatewayBase):
    """Stripe gateway: confirms an off-session PaymentIntent."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or settings.stripe_api_key
        self._stripe: Any = None

    @property
    def stripe(self) -> Any:
        """Lazy-load stripe module."""
        if self._stripe is None:
            try:
                import stripe

                stripe.api_key = self.api_key
                self._stripe = stripe
            except ImportError as e:
                raise ImportError("stripe package not installed. Run: pip install stripe") from e
        return self._stripe

    @property
    def provider_name(self) -> str:
        return "stripe"

    def charge(
        self,
        customer_id: UUID,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChargeResult:
        metadata = dict(metadata or {})
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "payment_method": payment_method_id,
            "off_session": True,
            "confirm": True,
            "metadata": {"customer_id": str(customer_id), **{k: str(v) for k, v in metadata.items()}},
        }
        provider_customer_id = metadata.get("provider_customer_id")
        if provider_customer_id:
            params["customer"] = provider_customer_id
        idempotency_key = metadata.get("idempotency_key")
        if idempotency_key:
            params["idempotency_key"] = str(idempotency_key)

        try:
            intent = self.stripe.PaymentIntent.create(**params)
        except self.stripe.CardError as e:
            intent_id = None
            if getattr(e, "error", None) is not None and getattr(e.error, "payment_intent", None):
                intent_id = e.error.payment_intent.get("id")
            return ChargeResult(
                succeeded=False,
                provider_payment_id=intent_id,
                failure_reason=e.code or "payment_declined",
            )
        except (self.stripe.APIConnectionError, self.stripe.RateLimitError) as e:
            raise GatewayUnavailableError(f"Stripe unreachable: {e}") from e

        if intent.status == "succeeded":
            return ChargeResult(succeeded=True, provider_payment_id=intent.id)
        return ChargeResult(
            succeeded=False,
            provider_payment_id=intent.id,
            failure_reason=f"payment_intent_{intent.status}",
        )


def get_payment_gateway(name: str | None = None) -> PaymentGatewayBase:
    """Factory function to get the configured payment gateway."""
    gateways: dict[str, type[PaymentGatewayBase]] = {
        "simulated": SimulatedPaymentGateway,
        "stripe": StripePaymentGateway,
    }

    gateway_name = name or settings.PAYMENT_GATEWAY
    gateway_class = gateways.get(gateway_name)
    if not gateway_class:
        raise ValueError(f"Unsupported payment gateway: {gateway_name}")

    return gateway_class()
