"""
Order tracking

Holds one order and its status history (newest first). Status changes
arrive as inserts on order_status_history from the realtime channel;
apply_event folds each one into the local state.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from agribridge.adapters.supabase_client import RemoteDataStore
from agribridge.core.exceptions import DataStoreError
from agribridge.core.utils import timestamp_sort_key
from agribridge.schemas.order import OrderRecord, OrderStatusEvent, OrderTrackingResponse

logger = logging.getLogger(__name__)


class OrderTracker:
    def __init__(self, data_store: RemoteDataStore):
        self.data_store = data_store
        self.order: Optional[OrderRecord] = None
        self.history: List[OrderStatusEvent] = []

    async def load(self, order_id: Any) -> OrderTrackingResponse:
        """
        Fetch the order and its history.

        Raises:
            DataStoreError: fetch failed or the order does not exist
        """
        row = await self.data_store.fetch_order(order_id)
        if row is None:
            raise DataStoreError(
                "Order not found",
                resource="orders",
                http_status=404,
                code="ORDER_NOT_FOUND",
            )
        history_rows = await self.data_store.fetch_order_status_history(order_id)

        self.order = OrderRecord.model_validate(row)
        history = [OrderStatusEvent.model_validate(r) for r in history_rows]
        history.sort(key=lambda event: timestamp_sort_key(event.created_at), reverse=True)
        self.history = history
        return self.snapshot()

    def snapshot(self) -> OrderTrackingResponse:
        if self.order is None:
            raise RuntimeError("OrderTracker.load() has not been called")
        return OrderTrackingResponse(order=self.order, history=list(self.history))

    def apply_event(self, event: Union[OrderStatusEvent, Dict[str, Any]]) -> bool:
        """
        Apply a realtime status insert.

        Events for other orders and repeats of a known event id are ignored.
        Returns True when the tracked state changed.
        """
        if self.order is None:
            return False
        if not isinstance(event, OrderStatusEvent):
            event = OrderStatusEvent.model_validate(event)

        if str(event.order_id) != str(self.order.id):
            return False
        if event.id is not None and any(existing.id == event.id for existing in self.history):
            return False

        self.history = [event, *self.history]
        self.order = self.order.model_copy(update={"status": event.status})
        logger.info(f"Order {self.order.id} status updated: {event.status}")
        return True
