"""
Commerce Backend Services for the Returns Use Case.

Provides remote access to the order, return and refund resources.
Each method is one HTTP call; sequencing is the lifecycle drivers' job.
"""

import logging
from typing import Any, Dict, List, Optional

from core.data import ListFilters, Page, RemoteResource

logger = logging.getLogger(__name__)


class OrderService(RemoteResource):
    """Client for the order resource."""

    resource = "orders"

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def list(self, filters: Optional[ListFilters] = None) -> Page[Dict[str, Any]]:
        """List orders, one page at a time."""
        filters = filters or ListFilters()
        payload = await self._get(params=filters.to_params(), fallback_error="Failed to load orders")
        return Page.from_payload(payload)

    async def get_by_id(self, order_id: int) -> Dict[str, Any]:
        """Get a specific order by ID, with items embedded."""
        return await self._get(order_id, fallback_error="Failed to load order")

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def create(
        self, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        logger.info(f"Creating order for customer {payload.get('customer_id')}")
        return await self._create(
            payload, idempotency_key=idempotency_key, fallback_error="Failed to create order"
        )

    async def complete(self, order_id: int, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        return await self._transition(
            order_id, "complete",
            idempotency_key=idempotency_key,
            fallback_error="Failed to complete order",
        )

    async def cancel(self, order_id: int, reason: str) -> Dict[str, Any]:
        logger.info(f"Cancelling order {order_id}: {reason}")
        return await self._transition(
            order_id, "cancel", {"reason": reason}, fallback_error="Failed to cancel order"
        )


class ReturnService(RemoteResource):
    """Client for the product return resource."""

    resource = "returns"

    async def get(self, return_id: int) -> Dict[str, Any]:
        return await self._get(return_id, fallback_error="Failed to load return")

    async def create(
        self, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._create(
            payload, idempotency_key=idempotency_key, fallback_error="Failed to create return"
        )

    async def update(
        self, return_id: int, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._transition(
            return_id, "update", payload,
            idempotency_key=idempotency_key,
            fallback_error="Failed to update return",
        )

    async def approve(
        self, return_id: int, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._transition(
            return_id, "approve", payload,
            idempotency_key=idempotency_key,
            fallback_error="Failed to approve return",
        )

    async def process(
        self, return_id: int, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._transition(
            return_id, "process", payload,
            idempotency_key=idempotency_key,
            fallback_error="Failed to process return",
        )

    async def complete(self, return_id: int, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        return await self._transition(
            return_id, "complete",
            idempotency_key=idempotency_key,
            fallback_error="Failed to complete return",
        )


class RefundService(RemoteResource):
    """Client for the refund resource."""

    resource = "refunds"

    async def get(self, refund_id: int) -> Dict[str, Any]:
        return await self._get(refund_id, fallback_error="Failed to load refund")

    async def create(
        self, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._create(
            payload, idempotency_key=idempotency_key, fallback_error="Failed to create refund"
        )

    async def process(self, refund_id: int, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        return await self._transition(
            refund_id, "process",
            idempotency_key=idempotency_key,
            fallback_error="Failed to process refund",
        )

    async def complete(
        self, refund_id: int, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._transition(
            refund_id, "complete", payload,
            idempotency_key=idempotency_key,
            fallback_error="Failed to complete refund",
        )
