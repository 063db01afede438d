"""Tests for lifecycle event sinks."""

import hashlib
import hmac
import json
import logging
import uuid
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from subscription_engine.schemas.lifecycle import LifecycleEvent, LifecycleEventType
from subscription_engine.services.event_sink import (
    CompositeEventSink,
    InMemoryEventSink,
    LoggingEventSink,
    WebhookEventSink,
    generate_hmac_signature,
    get_event_sink,
)

SUB_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
SUB_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


def _event(event_type=LifecycleEventType.EXPIRING, subscription_id=SUB_A, **data):
    return LifecycleEvent(
        type=event_type,
        subscription_id=subscription_id,
        customer_id=uuid.uuid4(),
        data=data,
        timestamp=datetime(2026, 3, 15, 12, 0, tzinfo=UTC),
    )


class TestInMemoryEventSink:
    def test_keeps_events_in_order_and_filters(self):
        sink = InMemoryEventSink()
        sink.emit(_event(LifecycleEventType.EXPIRING, SUB_A))
        sink.emit(_event(LifecycleEventType.RENEWED, SUB_B))
        sink.emit(_event(LifecycleEventType.RENEWED, SUB_A))

        assert sink.types() == [
            "subscription.expiring",
            "subscription.renewed",
            "subscription.renewed",
        ]
        assert sink.types(SUB_A) == ["subscription.expiring", "subscription.renewed"]
        assert len(sink.filter(event_type=LifecycleEventType.RENEWED)) == 2

        sink.clear()
        assert sink.events == []


class TestCompositeEventSink:
    def test_fans_out(self):
        first, second = InMemoryEventSink(), InMemoryEventSink()
        event = _event()

        CompositeEventSink([first, second]).emit(event)

        assert first.events == [event]
        assert second.events == [event]


class TestLoggingEventSink:
    def test_logs_event(self, caplog):
        with caplog.at_level(logging.INFO, logger="subscription_engine.services.event_sink"):
            LoggingEventSink().emit(_event(days_remaining=3))
        assert "subscription.expiring" in caplog.text
        assert str(SUB_A) in caplog.text


class TestWebhookEventSink:
    def test_posts_signed_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200)

        sink = WebhookEventSink(
            url="https://hooks.example.test/lifecycle",
            secret="s3cret",
            transport=httpx.MockTransport(handler),
        )

        sink.emit(_event(days_remaining=7, thresholds=[7]))

        request = captured["request"]
        body = request.content
        assert request.url == "https://hooks.example.test/lifecycle"
        assert request.headers["X-Lifecycle-Event-Type"] == "subscription.expiring"
        assert request.headers["X-Lifecycle-Signature-Algorithm"] == "hmac-sha256"
        expected = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        assert request.headers["X-Lifecycle-Signature"] == expected

        payload = json.loads(body)
        assert payload["type"] == "subscription.expiring"
        assert payload["subscription_id"] == str(SUB_A)
        assert payload["data"] == {"days_remaining": 7, "thresholds": [7]}

    def test_rejected_delivery_is_logged_not_raised(self, caplog):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        sink = WebhookEventSink(url="https://hooks.example.test/x", secret="s", transport=transport)

        with caplog.at_level(logging.WARNING):
            sink.emit(_event())

        assert "HTTP 500" in caplog.text

    def test_transport_error_is_logged_not_raised(self, caplog):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        sink = WebhookEventSink(
            url="https://hooks.example.test/x", secret="s", transport=httpx.MockTransport(handler)
        )

        with caplog.at_level(logging.WARNING):
            sink.emit(_event())

        assert "delivery failed" in caplog.text

    def test_each_delivery_closes_its_client(self):
        mock_response = MagicMock()
        mock_response.status_code = 200

        with patch("subscription_engine.services.event_sink.httpx.Client") as mock_client_cls:
            mock_client = MagicMock()
            mock_client.__enter__ = MagicMock(return_value=mock_client)
            mock_client.__exit__ = MagicMock(return_value=False)
            mock_client.post.return_value = mock_response
            mock_client_cls.return_value = mock_client

            sink = WebhookEventSink(url="https://hooks.example.test/x", secret="s", timeout=5.0)
            sink.emit(_event())
            sink.emit(_event())

        assert mock_client_cls.call_count == 2
        mock_client_cls.assert_called_with(timeout=5.0, transport=None)
        assert mock_client.__exit__.call_count == 2
        assert mock_client.post.call_count == 2

    def test_client_closed_when_post_raises(self):
        with patch("subscription_engine.services.event_sink.httpx.Client") as mock_client_cls:
            mock_client = MagicMock()
            mock_client.__enter__ = MagicMock(return_value=mock_client)
            mock_client.__exit__ = MagicMock(return_value=False)
            mock_client.post.side_effect = httpx.ConnectError("refused")
            mock_client_cls.return_value = mock_client

            WebhookEventSink(url="https://hooks.example.test/x", secret="s").emit(_event())

        mock_client.__exit__.assert_called_once()


class TestSignature:
    def test_generate_hmac_signature(self):
        assert generate_hmac_signature(b"{}", "key") == hmac.new(
            b"key", b"{}", hashlib.sha256
        ).hexdigest()


class TestGetEventSink:
    def test_logging_only_without_webhook_url(self):
        with patch("subscription_engine.services.event_sink.settings") as mock_settings:
            mock_settings.lifecycle_webhook_enabled = False
            sink = get_event_sink()
        assert isinstance(sink, CompositeEventSink)
        assert [type(s) for s in sink.sinks] == [LoggingEventSink]

    def test_adds_webhook_when_configured(self):
        with patch("subscription_engine.services.event_sink.settings") as mock_settings:
            mock_settings.lifecycle_webhook_enabled = True
            mock_settings.LIFECYCLE_WEBHOOK_URL = "https://hooks.example.test/lifecycle"
            mock_settings.webhook_secret = "s3cret"
            sink = get_event_sink()
        assert [type(s) for s in sink.sinks] == [LoggingEventSink, WebhookEventSink]
        assert sink.sinks[1].url == "https://hooks.example.test/lifecycle"


@pytest.mark.parametrize("event_type", list(LifecycleEventType))
def test_every_event_type_serializes(event_type):
    sink = InMemoryEventSink()
    sink.emit(_event(event_type))
    assert json.loads(sink.events[0].model_dump_json())["type"] == event_type.value
