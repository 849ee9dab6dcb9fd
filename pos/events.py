from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple

__all__ = [
    'PRODUCTS_CHANGED', 'TRANSACTIONS_CHANGED', 'EXPENSES_CHANGED',
    'Event', 'EventBus', 'Subscription', 'changed_event',
]

PRODUCTS_CHANGED = "PRODUCTS_CHANGED"
TRANSACTIONS_CHANGED = "TRANSACTIONS_CHANGED"
EXPENSES_CHANGED = "EXPENSES_CHANGED"

_BY_COLLECTION = {
    "products": PRODUCTS_CHANGED,
    "transactions": TRANSACTIONS_CHANGED,
    "expenses": EXPENSES_CHANGED,
}


def changed_event(collection: str) -> str:
    try:
        return _BY_COLLECTION[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection!r}") from None


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], Any]


class Subscription:
    """Handle returned by EventBus.subscribe; close() detaches the handler.

    Usable as a context manager so the owner's teardown always releases it.
    """

    def __init__(self, bus: "EventBus", name: str, handler: Handler):
        self._bus = bus
        self.name = name
        self.handler = handler
        self.active = True

    def close(self) -> None:
        if self.active:
            self._bus.unsubscribe(self.name, self.handler)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> Subscription:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)
        return Subscription(self, name, handler)

    def publish(self, name: str, payload: dict) -> List[Any]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        # handlers may unsubscribe while being notified
        for handler in list(self._subscribers[name]):
            result = handler(event, payload)
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, ()))
