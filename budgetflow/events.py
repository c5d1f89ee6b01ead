from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

__all__ = ['event_bus', 'TRANSACTION_ADMITTED', 'BUFFER_USED', 'BUDGET_LOCK_CHANGED',
           'Event', 'EventBus', 'budget_alert_handler', 'buffer_audit_handler', 'lock_notice_handler']


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if handler in self._subscribers.get(name, []):
            self._subscribers[name].remove(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = self._subscribers.get(name)
        if not handlers:
            return []
        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        return [handler(event, payload) for handler in handlers]


TRANSACTION_ADMITTED = "TRANSACTION_ADMITTED"
BUFFER_USED = "BUFFER_USED"
BUDGET_LOCK_CHANGED = "BUDGET_LOCK_CHANGED"

event_bus = EventBus()


def budget_alert_handler(event: Event, payload: dict) -> dict:
    total = payload.get("total_spent", 0)
    threshold = payload.get("threshold", 0)
    usable = payload.get("usable_amount", 0)
    if threshold > 0 and usable > 0 and total >= threshold:
        return {
            "alert": f"You've used {total / usable * 100:.0f}% of your daily usable amount",
            "total_spent": total,
            "threshold": threshold,
        }
    return {}


def buffer_audit_handler(event: Event, payload: dict) -> dict:
    return {
        "audit": f"Buffer used for {payload.get('amount', 0):.2f} in "
                 f"{payload.get('category', '?')}: {payload.get('reason', '')}",
        "transaction_id": payload.get("transaction_id"),
        "ts": event.ts,
    }


def lock_notice_handler(event: Event, payload: dict) -> dict:
    if payload.get("locked"):
        return {"notice": "Your budget is now locked. No new transactions allowed."}
    return {"notice": "Your budget is now unlocked. You can add transactions."}


def register_default_handlers(bus: EventBus = event_bus) -> EventBus:
    bus.subscribe(TRANSACTION_ADMITTED, budget_alert_handler)
    bus.subscribe(BUFFER_USED, buffer_audit_handler)
    bus.subscribe(BUDGET_LOCK_CHANGED, lock_notice_handler)
    return bus


register_default_handlers()
