"""Tests for payment gateway implementations."""

import random
import uuid
from unittest.mock import MagicMock

import pytest

from subscription_engine.services.payment_gateway import (
    GatewayUnavailableError,
    SimulatedPaymentGateway,
    StripePaymentGateway,
    get_payment_gateway,
)

CUSTOMER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")


class _CardError(Exception):
    def __init__(self, code, payment_intent=None):
        super().__init__(code)
        self.code = code
        self.error = MagicMock(payment_intent=payment_intent)


class _APIConnectionError(Exception):
    pass


class _RateLimitError(Exception):
    pass


@pytest.fixture
def mock_stripe():
    stripe = MagicMock()
    stripe.CardError = _CardError
    stripe.APIConnectionError = _APIConnectionError
    stripe.RateLimitError = _RateLimitError
    return stripe


@pytest.fixture
def stripe_gateway(mock_stripe):
    gateway = StripePaymentGateway(api_key="sk_test_123")
    gateway._stripe = mock_stripe
    return gateway


class TestSimulatedPaymentGateway:
    def test_always_succeeds_at_rate_one(self):
        gateway = SimulatedPaymentGateway(success_rate=1.0, rng=random.Random(1))
        results = [gateway.charge(CUSTOMER_ID, 1000, "USD", "pm_1") for _ in range(10)]
        assert all(r.succeeded for r in results)
        assert len({r.provider_payment_id for r in results}) == 10

    def test_always_fails_at_rate_zero(self):
        gateway = SimulatedPaymentGateway(success_rate=0.0, rng=random.Random(1))
        result = gateway.charge(CUSTOMER_ID, 1000, "USD", "pm_1")
        assert result.succeeded is False
        assert result.failure_reason == "payment_declined"

    def test_seeded_rng_is_reproducible(self):
        first = SimulatedPaymentGateway(success_rate=0.5, rng=random.Random(42))
        second = SimulatedPaymentGateway(success_rate=0.5, rng=random.Random(42))
        a = [first.charge(CUSTOMER_ID, 1, "USD", "pm").succeeded for _ in range(20)]
        b = [second.charge(CUSTOMER_ID, 1, "USD", "pm").succeeded for _ in range(20)]
        assert a == b

    def test_rejects_invalid_rate(self):
        with pytest.raises(ValueError, match="success_rate"):
            SimulatedPaymentGateway(success_rate=1.5)

    def test_provider_name(self):
        assert SimulatedPaymentGateway(success_rate=1.0).provider_name == "simulated"


class TestStripePaymentGateway:
    def test_successful_charge(self, stripe_gateway, mock_stripe):
        mock_stripe.PaymentIntent.create.return_value = MagicMock(id="pi_123", status="succeeded")

        result = stripe_gateway.charge(
            CUSTOMER_ID,
            2900,
            "USD",
            "pm_card",
            metadata={"idempotency_key": "sub:renewal:1", "provider_customer_id": "cus_1"},
        )

        assert result.succeeded is True
        assert result.provider_payment_id == "pi_123"
        kwargs = mock_stripe.PaymentIntent.create.call_args.kwargs
        assert kwargs["amount"] == 2900
        assert kwargs["currency"] == "usd"
        assert kwargs["off_session"] is True
        assert kwargs["confirm"] is True
        assert kwargs["customer"] == "cus_1"
        assert kwargs["idempotency_key"] == "sub:renewal:1"
        assert kwargs["metadata"]["customer_id"] == str(CUSTOMER_ID)

    def test_card_declined(self, stripe_gateway, mock_stripe):
        mock_stripe.PaymentIntent.create.side_effect = _CardError(
            "card_declined", payment_intent={"id": "pi_declined"}
        )
        result = stripe_gateway.charge(CUSTOMER_ID, 2900, "USD", "pm_card")
        assert result.succeeded is False
        assert result.failure_reason == "card_declined"
        assert result.provider_payment_id == "pi_declined"

    def test_requires_action_is_failure(self, stripe_gateway, mock_stripe):
        mock_stripe.PaymentIntent.create.return_value = MagicMock(
            id="pi_456", status="requires_action"
        )
        result = stripe_gateway.charge(CUSTOMER_ID, 2900, "USD", "pm_card")
        assert result.succeeded is False
        assert result.failure_reason == "payment_intent_requires_action"

    @pytest.mark.parametrize("error_cls", [_APIConnectionError, _RateLimitError])
    def test_transport_errors_raise_unavailable(self, stripe_gateway, mock_stripe, error_cls):
        mock_stripe.PaymentIntent.create.side_effect = error_cls("boom")
        with pytest.raises(GatewayUnavailableError, match="Stripe unreachable"):
            stripe_gateway.charge(CUSTOMER_ID, 2900, "USD", "pm_card")


class TestGetPaymentGateway:
    def test_simulated(self):
        assert isinstance(get_payment_gateway("simulated"), SimulatedPaymentGateway)

    def test_stripe(self):
        assert isinstance(get_payment_gateway("stripe"), StripePaymentGateway)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unsupported payment gateway"):
            get_payment_gateway("paypal")
