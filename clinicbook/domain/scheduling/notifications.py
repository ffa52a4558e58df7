"""
Appointment change notifications

One ChangeEvent is published per committed transition, after the commit.
Local subscribers receive events through an in-process queue; when enabled,
events are also published as JSON on Redis pub/sub channels so other
workers and UI gateways can refresh. Delivery is at-least-once and
consumers dedupe on (appointment_id, new_status).
"""

import json
import logging
import queue
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Iterator, Optional

from ...config import NOTIFICATIONS_CHANNEL_PREFIX, NOTIFICATIONS_REDIS_ENABLED
from ...redis_client import get_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    appointment_id: str
    provider_id: str
    patient_id: str
    old_status: Optional[str]
    new_status: str
    occurred_at: datetime = field(default_factory=datetime.now)

    @property
    def dedupe_key(self) -> str:
        return f"{self.appointment_id}:{self.new_status}"

    def to_dict(self) -> dict:
        return {
            "appointment_id": self.appointment_id,
            "provider_id": self.provider_id,
            "patient_id": self.patient_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "occurred_at": self.occurred_at.isoformat(),
        }


class Subscription:
    """Iterable stream of events for one provider or patient"""

    def __init__(self, notifier: "ChangeNotifier", key: str):
        self._notifier = notifier
        self.key = key
        self._queue: "queue.Queue[ChangeEvent]" = queue.Queue()
        self.closed = False

    def deliver(self, event: ChangeEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None if nothing arrives within timeout"""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ChangeEvent]:
        """All events received so far, without blocking"""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        self.closed = True
        self._notifier._unsubscribe(self)

    def __iter__(self) -> Iterator[ChangeEvent]:
        while not self.closed:
            event = self.get(timeout=1.0)
            if event is not None:
                yield event


class ChangeNotifier:
    """Fan-out of change events to local subscribers and Redis"""

    def __init__(
        self,
        redis_enabled: bool = NOTIFICATIONS_REDIS_ENABLED,
        channel_prefix: str = NOTIFICATIONS_CHANNEL_PREFIX,
    ):
        self.redis_enabled = redis_enabled
        self.channel_prefix = channel_prefix
        self.redis_client = None
        self._subscribers: dict[str, list[Subscription]] = {}
        self._lock = Lock()

    @staticmethod
    def provider_key(provider_id: str) -> str:
        return f"provider:{provider_id}"

    @staticmethod
    def patient_key(patient_id: str) -> str:
        return f"patient:{patient_id}"

    def subscribe(
        self, provider_id: Optional[str] = None, patient_id: Optional[str] = None
    ) -> Subscription:
        """Subscribe to events for exactly one provider or one patient"""
        if (provider_id is None) == (patient_id is None):
            raise ValueError("Subscribe to either a provider_id or a patient_id")
        key = self.provider_key(provider_id) if provider_id else self.patient_key(patient_id)
        subscription = Subscription(self, key)
        with self._lock:
            self._subscribers.setdefault(key, []).append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.key, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an already-committed change; never raises"""
        keys = [self.provider_key(event.provider_id), self.patient_key(event.patient_id)]
        with self._lock:
            targets = [sub for key in keys for sub in self._subscribers.get(key, [])]
        for subscription in targets:
            subscription.deliver(event)

        if self.redis_enabled:
            self._publish_redis(keys, event)

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis notifications unavailable: {e}")
                return None
        return self.redis_client

    def _publish_redis(self, keys: list[str], event: ChangeEvent) -> None:
        client = self._get_client()
        if not client:
            return

        payload = json.dumps(event.to_dict())
        for key in keys:
            channel = f"{self.channel_prefix}:{key}"
            try:
                client.publish(channel, payload)
                logger.debug(f"📣 Published {event.dedupe_key} to {channel}")
            except Exception as e:
                logger.error(f"❌ Failed to publish {event.dedupe_key} to {channel}: {e}")


# Process-wide notifier used by the HTTP layer
notifier = ChangeNotifier()
