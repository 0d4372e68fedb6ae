"""
Commerce Backend Service for Defective Products.

Each defective item is an independent remote resource with one-shot
transitions: sell, return to vendor, dispose.
"""

import logging
from typing import Any, Dict, Optional

from core.data import RemoteResource

logger = logging.getLogger(__name__)


class DefectService(RemoteResource):
    """Client for the defective-product resource."""

    resource = "defects"

    async def get(self, defect_id: int) -> Dict[str, Any]:
        return await self._get(defect_id, fallback_error="Failed to load defective product")

    async def mark_sold(
        self,
        defect_id: int,
        order_id: int,
        selling_price: float,
        sale_notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"order_id": order_id, "selling_price": selling_price}
        if sale_notes:
            payload["sale_notes"] = sale_notes
        return await self._transition(
            defect_id, "sell", payload, fallback_error="Failed to mark defective product as sold"
        )

    async def return_to_vendor(self, defect_id: int, vendor_id: int, vendor_notes: str) -> Dict[str, Any]:
        return await self._transition(
            defect_id,
            "return_to_vendor",
            {"vendor_id": vendor_id, "vendor_notes": vendor_notes},
            fallback_error="Unknown error",
        )

    async def dispose(self, defect_id: int, disposal_notes: str) -> Dict[str, Any]:
        return await self._transition(
            defect_id,
            "dispose",
            {"disposal_notes": disposal_notes},
            fallback_error="Unknown error",
        )
