"""In-process topic publish/subscribe hub for live league views."""

import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

PUBLIC_LEAGUE_TABLE_TOPIC = "public:league:table"
PUBLIC_LEAGUE_SCHEDULE_TOPIC = "public:league:schedule"
PUBLIC_LEAGUE_RESULTS_TOPIC = "public:league:results"

Subscriber = Callable[[str, Any], None]


def season_topic(topic: str, season_id: int) -> str:
    return f"{topic}:{season_id}"


class TopicHub:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback(topic, payload). Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: Any) -> int:
        """Deliver payload to every subscriber; a failing subscriber does not stop the others."""
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
        delivered = 0
        for callback in callbacks:
            try:
                callback(topic, payload)
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber failed for topic {topic}")
        return delivered

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, []))


default_hub = TopicHub()
