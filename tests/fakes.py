"""
Fake commerce backend for the orchestrator tests.

FakeCommerceBackend is an in-memory httpx.MockTransport handler that
keeps order, return and refund state. Every answer is wrapped in the
{success, message, data} envelope and every call is recorded in order.
Tests assert on the exact call sequence.
"""

import copy
import itertools
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from api_client import CommerceApiClient

BASE_URL = "http://commerce.test/api/"
API_ROOT = "/api"


@dataclass
class RecordedCall:
    method: str
    path: str
    json: Any
    headers: httpx.Headers

    @property
    def idempotency_key(self) -> Optional[str]:
        return self.headers.get("Idempotency-Key")


def make_order_payload(order_id: int = 1, with_items: bool = True) -> Dict[str, Any]:
    """A completed sale: 3 x 500 + 1 x 500, 5% VAT, amounts as strings."""
    payload = {
        "id": order_id,
        "order_number": f"ORD-2024-{order_id:04d}",
        "order_type": "counter",
        "status": "completed",
        "store": {"id": 3, "name": "Dhanmondi"},
        "customer": {"id": 42, "name": "Rahim Uddin", "phone": "01700000000"},
        "subtotal": "2,000.00",
        "tax_amount": "100.00",
        "discount_amount": "0.00",
        "total_amount": "2,100.00",
        "paid_amount": "2,100.00",
        "outstanding_amount": "0.00",
    }
    if with_items:
        payload["items"] = [
            {
                "id": 10,
                "product_id": 5,
                "product_name": "Cotton Shirt",
                "product_sku": "SH-001",
                "batch_id": 7,
                "barcode_id": 70,
                "barcode": "8901000000070",
                "quantity": 3,
                "unit_price": "500.00",
                "total_amount": "1,500.00",
            },
            {
                "id": 11,
                "product_id": 6,
                "product_name": "Leather Belt",
                "product_sku": "BL-002",
                "batch_id": 8,
                "barcode_id": 80,
                "barcode": "8901000000080",
                "quantity": 1,
                "unit_price": "500.00",
                "total_amount": "500.00",
            },
        ]
    return payload


class FakeCommerceBackend:
    """In-memory stand-in for the commerce backend's REST API."""

    def __init__(self, orders: Optional[List[Dict[str, Any]]] = None):
        self.orders: Dict[int, Dict[str, Any]] = {
            o["id"]: copy.deepcopy(o) for o in (orders or [make_order_payload()])
        }
        self.returns: Dict[int, Dict[str, Any]] = {}
        self.refunds: Dict[int, Dict[str, Any]] = {}
        self.defects: Dict[int, Dict[str, Any]] = {}
        self.calls: List[RecordedCall] = []
        self._failures: Dict[Tuple[str, str], Tuple[int, Optional[str], bool]] = {}
        self._return_ids = itertools.count(501)
        self._refund_ids = itertools.count(701)
        self._order_ids = itertools.count(901)

    # =========================================================================
    # TEST CONTROLS
    # =========================================================================

    def fail(self, method: str, path: str, message: Optional[str] = "Backend error",
             status: int = 500, once: bool = True):
        """Make the next (or every) call to method+path fail."""
        self._failures[(method, path)] = (status, message, once)

    def client(self, token: str = "test-token") -> CommerceApiClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self._handle), base_url=BASE_URL)
        return CommerceApiClient(http, token)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [f"{c.method} {c.path}" for c in self.calls if method is None or c.method == method]

    def writes(self) -> List[RecordedCall]:
        return [c for c in self.calls if c.method != "GET"]

    # =========================================================================
    # ROUTING
    # =========================================================================

    def _handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(API_ROOT):]
        body = json.loads(request.content) if request.content else None
        self.calls.append(RecordedCall(request.method, path, body, request.headers))

        failure = self._failures.get((request.method, path))
        if failure is not None:
            status, message, once = failure
            if once:
                del self._failures[(request.method, path)]
            content = {"success": False}
            if message:
                content["message"] = message
            return httpx.Response(status, json=content)

        parts = path.strip("/").split("/")
        resource = parts[0]
        entity_id = int(parts[1]) if len(parts) > 1 else None
        action = parts[2] if len(parts) > 2 else None

        if resource == "orders":
            return self._orders(request.method, entity_id, action, body)
        if resource == "returns":
            return self._lifecycle(
                self.returns, self._return_ids, "return_number", "RET",
                request.method, entity_id, action, body,
            )
        if resource == "refunds":
            return self._lifecycle(
                self.refunds, self._refund_ids, "refund_number", "REF",
                request.method, entity_id, action, body,
            )
        if resource == "defective-products":
            return self._defects(entity_id, action, body)
        return _error(404, "Not found")

    def _orders(self, method, entity_id, action, body) -> httpx.Response:
        if method == "GET" and entity_id is None:
            rows = []
            for order in self.orders.values():
                row = {k: v for k, v in order.items() if k != "items"}
                rows.append(row)
            return _ok({"data": rows, "total": len(rows), "current_page": 1, "last_page": 1})

        if method == "POST" and entity_id is None:
            new_id = next(self._order_ids)
            order = {**body, "id": new_id, "order_number": f"ORD-2024-{new_id:04d}", "status": "pending"}
            self.orders[new_id] = order
            return _ok(order)

        order = self.orders.get(entity_id)
        if order is None:
            return _error(404, "Order not found")
        if method == "GET":
            return _ok(order)
        if action == "complete":
            order["status"] = "completed"
        elif action == "cancel":
            order["status"] = "cancelled"
            order["cancel_reason"] = (body or {}).get("reason")
        return _ok(order)

    def _lifecycle(
        self, store, ids, number_field, prefix, method, entity_id, action, body
    ) -> httpx.Response:
        if method == "POST" and entity_id is None:
            new_id = next(ids)
            record = {**body, "id": new_id, number_field: f"{prefix}-{new_id}", "status": "pending"}
            store[new_id] = record
            return _ok(record)

        record = store.get(entity_id)
        if record is None:
            return _error(404, "Not found")
        if method == "GET":
            return _ok(record)
        if method == "PATCH":
            record.update(body or {})
        elif action == "approve":
            record["status"] = "approved"
        elif action == "process":
            record["status"] = "processed" if prefix == "RET" else "processing"
        elif action == "complete":
            record["status"] = "completed"
            record.update(body or {})
        return _ok(record)

    def _defects(self, entity_id, action, body) -> httpx.Response:
        status = {"return-to-vendor": "returned_to_vendor", "dispose": "disposed", "sell": "sold"}[action]
        record = {"id": entity_id, "status": status, **(body or {})}
        self.defects[entity_id] = record
        return _ok(record)


def _ok(data: Any) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "message": "OK", "data": copy.deepcopy(data)})


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"success": False, "message": message})
