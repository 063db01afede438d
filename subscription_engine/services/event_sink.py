"""Consumers of the lifecycle event stream."""

import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from uuid import UUID

import httpx

from subscription_engine.core.config import settings
from subscription_engine.schemas.lifecycle import LifecycleEvent, LifecycleEventType

logger = logging.getLogger(__name__)


def generate_hmac_signature(payload_bytes: bytes, secret: str) -> str:
    """Generate HMAC-SHA256 signature for a webhook payload.

    Args:
        payload_bytes: The raw payload bytes to sign.
        secret: The secret key for HMAC generation.

    Returns:
        Hex-encoded HMAC-SHA256 signature.
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload_bytes,
        hashlib.sha256,
    ).hexdigest()


class EventSinkBase(ABC):
    """Receives lifecycle events in the order they were produced."""

    @abstractmethod
    def emit(self, event: LifecycleEvent) -> None:
        pass  # pragma: no cover


class InMemoryEventSink(EventSinkBase):
    """Keeps every event in memory, e.g. for tests or a simulation UI."""

    def __init__(self) -> None:
        self.events: list[LifecycleEvent] = []

    def emit(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def filter(
        self,
        event_type: LifecycleEventType | None = None,
        subscription_id: UUID | None = None,
    ) -> list[LifecycleEvent]:
        return [
            e
            for e in self.events
            if (event_type is None or e.type == event_type)
            and (subscription_id is None or e.subscription_id == subscription_id)
        ]

    def types(self, subscription_id: UUID | None = None) -> list[str]:
        return [e.type.value for e in self.filter(subscription_id=subscription_id)]

    def clear(self) -> None:
        self.events.clear()


class CompositeEventSink(EventSinkBase):
    """Fans every event out to several sinks."""

    def __init__(self, sinks: Iterable[EventSinkBase]):
        self.sinks = list(sinks)

    def emit(self, event: LifecycleEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)


class WebhookEventSink(EventSinkBase):
    """POSTs each event as signed JSON to a single endpoint.

    Delivery failures are logged and dropped; they never interrupt a run.
    """

    def __init__(
        self,
        url: str | None = None,
        secret: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url or settings.LIFECYCLE_WEBHOOK_URL
        self.secret = secret or settings.webhook_secret
        self.timeout = timeout
        self.transport = transport

    def emit(self, event: LifecycleEvent) -> None:
        payload_bytes = json.dumps(event.model_dump(mode="json"), default=str).encode("utf-8")
        signature = generate_hmac_signature(payload_bytes, self.secret)
        headers = {
            "Content-Type": "application/json",
            "X-Lifecycle-Signature": signature,
            "X-Lifecycle-Signature-Algorithm": "hmac-sha256",
            "X-Lifecycle-Event-Type": event.type.value,
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(self.url, content=payload_bytes, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Lifecycle webhook delivery failed for %s: %s", event.type.value, exc)
            return

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "Lifecycle webhook for %s rejected with HTTP %d",
                event.type.value,
                resp.status_code,
            )


class LoggingEventSink(EventSinkBase):
    """Writes each event to the application log."""

    def emit(self, event: LifecycleEvent) -> None:
        logger.info(
            "Lifecycle event %s for subscription %s: %s",
            event.type.value,
            event.subscription_id,
            event.data,
        )


def get_event_sink() -> EventSinkBase:
    """Sink configured for background runs: always log, and POST when a URL is set."""
    sinks: list[EventSinkBase] = [LoggingEventSink()]
    if settings.lifecycle_webhook_enabled:
        sinks.append(WebhookEventSink())
    return CompositeEventSink(sinks)
