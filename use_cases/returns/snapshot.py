"""
Order Snapshot Loader.

Fetches orders for a saga and, when an order came from the list endpoint
without its line items, fetches full item detail on first expansion.
"""

import logging
from typing import Any, Dict, Optional

from core.data import ListFilters, Page

from .models import Order
from .services import OrderService

logger = logging.getLogger(__name__)


class OrderSnapshotLoader:
    """Loads immutable order snapshots, expanding line items lazily."""

    def __init__(self, orders: OrderService):
        self._orders = orders
        self._expanded: Dict[int, Order] = {}

    async def list(self, filters: Optional[ListFilters] = None) -> Page[Order]:
        """List orders; items may or may not be embedded per order."""
        page = await self._orders.list(filters)
        return Page(
            data=[self.from_listing(raw) for raw in page.data],
            total=page.total,
            current_page=page.current_page,
            last_page=page.last_page,
        )

    def from_listing(self, raw: Dict[str, Any]) -> Order:
        """Build a snapshot from a list row. Missing items stay None."""
        return Order.model_validate(raw)

    async def load(self, order_id: int) -> Order:
        """Fetch a fresh snapshot with its items."""
        raw = await self._orders.get_by_id(order_id)
        order = Order.model_validate(raw)
        if order.items is None:
            order = order.model_copy(update={"items": []})
        self._expanded[order.id] = order
        logger.info(f"Loaded order {order.order_number} with {len(order.items)} items")
        return order

    async def expand(self, order: Order) -> Order:
        """
        Return the order with items present.

        Orders that already carry items are returned unchanged; otherwise
        the detail is fetched once and reused on later expansions.
        """
        if order.items is not None:
            return order
        cached = self._expanded.get(order.id)
        if cached is not None:
            return cached
        logger.debug(f"Expanding order {order.id}: items not embedded")
        return await self.load(order.id)

    def invalidate(self, order_id: int):
        self._expanded.pop(order_id, None)
