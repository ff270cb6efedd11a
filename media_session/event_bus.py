import logging
from typing import Any, Callable, Dict, List, Optional

_LOGGER = logging.getLogger(__name__)

SESSION_STATE_CHANGED = "session_state_changed"


class EventBus:
    """A simple synchronous publish/subscribe event bus."""

    def __init__(self):
        # A dictionary to hold listeners for specific string topics
        self.topics: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, topic: str, listener: Callable[[Any], None]) -> Callable[[], None]:
        """
        Subscribes a listener to a topic.

        Returns a callable that removes the subscription again.
        """
        if topic not in self.topics:
            self.topics[topic] = []
        self.topics[topic].append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(topic, listener)

        return _unsubscribe

    def unsubscribe(self, topic: str, listener: Callable[[Any], None]) -> None:
        listeners = self.topics.get(topic)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def publish(self, topic: str, data: Optional[Dict[str, Any]] = None) -> None:
        """
        Publishes an event to all subscribed listeners.
        """
        if data is None:
            data = {}

        data['__topic'] = topic

        # Copy so listeners may unsubscribe while being notified
        listeners = list(self.topics.get(topic, []))
        for listener in listeners:
            try:
                listener(data)
            except Exception:
                _LOGGER.exception("Error in event listener for topic %s", topic)
