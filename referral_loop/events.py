"""In-process fan-out of portal and dashboard events."""

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

CHANNELS = ("patient", "physician")


@dataclass
class Subscriber:
    id: str
    channel: str
    callback: Callable[[dict], None]
    patient_id: str | None = None


class EventBroadcaster:
    """Delivers events to subscribers of the patient and physician channels."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def subscribe(
        self, channel: str, callback: Callable[[dict], None], patient_id: str | None = None
    ) -> str:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        subscriber = Subscriber(f"sub-{uuid.uuid4()}", channel, callback, patient_id)
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber.id

    def unsubscribe(self, subscriber_id: str) -> None:
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s.id != subscriber_id]

    def broadcast(self, channel: str, event: dict, patient_id: str | None = None) -> int:
        """Send an event; returns the number of subscribers reached."""
        with self._lock:
            targets = [
                s for s in self._subscribers
                if s.channel == channel
                and not (patient_id and s.patient_id and s.patient_id != patient_id)
            ]

        delivered = 0
        for subscriber in targets:
            try:
                subscriber.callback(event)
                delivered += 1
            except Exception:
                # A broken subscriber is dropped, like a disconnected stream
                logger.exception("Subscriber %s failed; removing it", subscriber.id)
                self.unsubscribe(subscriber.id)
        logger.debug("Broadcast %s on %s to %d subscriber(s)", event.get("type"), channel, delivered)
        return delivered


broadcaster = EventBroadcaster()
