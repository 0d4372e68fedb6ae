"""
Shared fixtures for the orchestrator tests.

Every test talks to a fresh FakeCommerceBackend through a real
CommerceApiClient, so the transport, envelope handling and headers are
exercised exactly as in production.
"""

from typing import Any, Dict

import pytest

from api_client import CommerceApiClient
from use_cases.returns.models import Order

from fakes import FakeCommerceBackend, make_order_payload


@pytest.fixture
def order_payload() -> Dict[str, Any]:
    return make_order_payload()


@pytest.fixture
def order(order_payload) -> Order:
    return Order.model_validate(order_payload)


@pytest.fixture
def backend() -> FakeCommerceBackend:
    return FakeCommerceBackend()


@pytest.fixture
def client(backend) -> CommerceApiClient:
    return backend.client()
