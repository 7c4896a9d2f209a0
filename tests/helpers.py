from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class PublishedEvent:
    topic: str
    data: Any


class CapturingBus:
    """
    Wraps the EventBus interface: subscribe(topic, handler), publish(topic, data).
    Useful for asserting what got published.
    """
    def __init__(self) -> None:
        self.events: list[PublishedEvent] = []
        self.subscribers: dict[str, list[Callable[[Any], None]]] = {}

    def subscribe(self, topic: str, handler: Callable[[Any], None]) -> None:
        self.subscribers.setdefault(topic, []).append(handler)

    def publish(self, topic: str, data: Any) -> None:
        self.events.append(PublishedEvent(topic, data))
        for h in self.subscribers.get(topic, []):
            h(data)

    def topics(self) -> list[str]:
        return [e.topic for e in self.events]

    def of(self, topic: str) -> list[Any]:
        return [e.data for e in self.events if e.topic == topic]

    def last(self, topic: str) -> Optional[PublishedEvent]:
        for e in reversed(self.events):
            if e.topic == topic:
                return e
        return None
