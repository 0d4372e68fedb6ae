"""
Returns & Exchanges Use Case.

This module drives the return, refund and exchange saga for completed
sales against the remote commerce backend.

Components:
- ReturnsOrchestrator: Entry point used by the HTTP layer
- ReturnSaga / ExchangeSaga: Per-order sagas with resume support
- Lifecycle drivers: Return, refund and replacement-order stage machines
- Domain: Financial delta, tender splitting, validation
- Session: Selection model, replacement cart, tender form

Usage:
    from use_cases.returns import ReturnsOrchestrator

    orchestrator = ReturnsOrchestrator()
    result = await orchestrator.start_return(client, order_id, submission)
"""

from use_cases.returns.server import ReturnsOrchestrator
from use_cases.returns.workflow import ExchangeSaga, ReturnSaga, SagaResult
from use_cases.returns.lifecycle import (
    ExchangeOrderCreator,
    RefundLifecycleDriver,
    ReturnLifecycleDriver,
)
from use_cases.returns.models import (
    CancelRequest,
    ExchangeSubmission,
    Order,
    OrderItem,
    QuoteRequest,
    ReplacementLine,
    ReturnSubmission,
    SelectionEntry,
    Tender,
)
from use_cases.returns.session import ReplacementCart, SelectionModel, TenderForm
from use_cases.returns.snapshot import OrderSnapshotLoader

__all__ = [
    # Orchestrator
    "ReturnsOrchestrator",
    # Sagas
    "ExchangeSaga",
    "ReturnSaga",
    "SagaResult",
    # Drivers
    "ExchangeOrderCreator",
    "RefundLifecycleDriver",
    "ReturnLifecycleDriver",
    # Models
    "CancelRequest",
    "ExchangeSubmission",
    "Order",
    "OrderItem",
    "QuoteRequest",
    "ReplacementLine",
    "ReturnSubmission",
    "SelectionEntry",
    "Tender",
    # Local state
    "ReplacementCart",
    "SelectionModel",
    "TenderForm",
    # Loading
    "OrderSnapshotLoader",
]
