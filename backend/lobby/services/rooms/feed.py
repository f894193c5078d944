"""In-process change feed.

Committed room mutations publish the topics they touched; subscribers
re-read whatever they watch and receive the full current state, never a
diff. Handles must be released with ``unsubscribe()``.
"""

import itertools
from typing import Callable, Dict

from flask import current_app


WAITING_ROOMS_TOPIC = 'rooms:waiting'


def room_topic(room_id: str) -> str:
    return f"room:{room_id}"


def players_topic(room_id: str) -> str:
    return f"room:{room_id}:players"


class Subscription:
    def __init__(self, feed: 'ChangeFeed', topic: str, key: int):
        self._feed = feed
        self.topic = topic
        self._key = key
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._remove(self.topic, self._key)


class ChangeFeed:
    def __init__(self):
        self._subscribers: Dict[str, Dict[int, Callable[[], None]]] = {}
        self._keys = itertools.count(1)

    def subscribe(self, topic: str, callback: Callable[[], None]) -> Subscription:
        key = next(self._keys)
        self._subscribers.setdefault(topic, {})[key] = callback
        return Subscription(self, topic, key)

    def _remove(self, topic: str, key: int) -> None:
        callbacks = self._subscribers.get(topic)
        if callbacks is None:
            return
        callbacks.pop(key, None)
        if not callbacks:
            self._subscribers.pop(topic, None)

    def subscriber_count(self, topic: str = None) -> int:
        if topic is not None:
            return len(self._subscribers.get(topic, {}))
        return sum(len(callbacks) for callbacks in self._subscribers.values())

    def publish(self, *topics: str) -> None:
        for topic in topics:
            for callback in list(self._subscribers.get(topic, {}).values()):
                try:
                    callback()
                except Exception as exc:
                    current_app.logger.warning(f"[feed] subscriber on {topic} failed: {exc}")


feed = ChangeFeed()


def publish_room_changed(room_id: str) -> None:
    feed.publish(WAITING_ROOMS_TOPIC, room_topic(room_id), players_topic(room_id))
