# ledger_system/events/event_bus.py
"""
Post-commit ledger events.

Services emit only after their transaction has committed, so a handler
always sees the persisted state. Dispatch is synchronous and
fire-and-forget: the emitting service never learns that a handler failed.
"""
from typing import Dict, List, Callable, Any, FrozenSet
import logging
import threading

logger = logging.getLogger(__name__)


class LedgerEvents:
    """Catalogue of ledger events. The bus rejects names outside it."""

    QUOTA_DEBITED = "quota.debited"
    QUOTA_LOW = "quota.low"
    QUOTA_EMPTY = "quota.empty"

    SUBSCRIPTION_APPROVED = "subscription.approved"
    SUBSCRIPTION_REJECTED = "subscription.rejected"

    COMMISSION_ACCRUED = "commission.accrued"
    COMMISSION_PAID = "commission.paid"
    COMMISSION_REJECTED = "commission.rejected"

    WITHDRAWAL_REQUESTED = "withdrawal.requested"
    WITHDRAWAL_APPROVED = "withdrawal.approved"
    WITHDRAWAL_REJECTED = "withdrawal.rejected"

    KAS_GENERATED = "kas.generated"
    KAS_BILLED = "kas.billed"
    KAS_REMINDER = "kas.reminder"

    @classmethod
    def all(cls) -> FrozenSet[str]:
        return frozenset(
            value for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


class EventBus:
    """
    Process-wide singleton. Subscriptions may change while another thread
    is emitting; each emit works on a snapshot of the handler list.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._handlers = {}
            cls._instance._lock = threading.Lock()
        return cls._instance

    @staticmethod
    def _checkEvent(eventName: str):
        if eventName not in LedgerEvents.all():
            raise ValueError(f"Unknown ledger event: {eventName}")

    def subscribe(self, eventName: str, handler: Callable):
        """Subscribe handler to event. Subscribing the same handler twice is a no-op."""
        self._checkEvent(eventName)
        with self._lock:
            handlers = self._handlers.setdefault(eventName, [])
            if handler in handlers:
                return
            handlers.append(handler)
        logger.debug(f"Handler {getattr(handler, '__name__', handler)} subscribed to {eventName}")

    def unsubscribe(self, eventName: str, handler: Callable):
        with self._lock:
            handlers = self._handlers.get(eventName, [])
            if handler not in handlers:
                return
            handlers.remove(handler)
        logger.debug(f"Handler {getattr(handler, '__name__', handler)} unsubscribed from {eventName}")

    def handlerCount(self, eventName: str) -> int:
        with self._lock:
            return len(self._handlers.get(eventName, []))

    def emit(self, eventName: str, data: Dict[str, Any]) -> int:
        """
        Call every handler of `eventName` with its own copy of `data`.
        Returns the number of handlers that completed without raising.
        """
        self._checkEvent(eventName)
        with self._lock:
            handlers: List[Callable] = list(self._handlers.get(eventName, []))

        if not handlers:
            return 0

        logger.debug(f"Emitting {eventName} to {len(handlers)} handlers: {data}")

        delivered = 0
        for handler in handlers:
            try:
                handler(dict(data))
                delivered += 1
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)} for event {eventName}: {e}")
        return delivered

    def clear(self):
        with self._lock:
            self._handlers.clear()


# Глобальный экземпляр
eventBus = EventBus()
