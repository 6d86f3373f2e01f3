"""
Events the sync engine emits for external consumers.

Delivery (email, chat, websockets) is someone else's job: consumers
subscribe handlers on an EventDispatcher and the engine awaits them after
its own writes are done. A failing handler is logged and never fails the
sync that produced the event.
"""

import inspect
import logging
from collections import defaultdict, deque
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class SyncCompletedEvent(BaseModel):
    sync_log_id: int
    owner_id: int
    store_integration_id: int
    kind: str
    products_synced: int = 0
    timestamp: datetime


class StockAlertTriggeredEvent(BaseModel):
    alert_id: int
    product_id: int
    owner_id: int
    store_integration_id: int
    product_title: str
    sku: Optional[str] = None
    current_quantity: int
    threshold: int
    notification_method: str
    triggered_at: datetime


EventHandler = Callable[[BaseModel], Any]


class EventDispatcher:
    def __init__(self):
        self._handlers: Dict[Type[BaseModel], List[EventHandler]] = defaultdict(list)
        self.emitted = deque(maxlen=500)  # recent events, newest last

    def subscribe(self, event_type: Type[BaseModel], handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    async def emit(self, event: BaseModel) -> None:
        self.emitted.append(event)
        for handler in self._handlers.get(type(event), []):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Event handler {handler!r} failed for {type(event).__name__}")
