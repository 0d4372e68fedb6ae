"""
Returns Domain Layer.

Contains pure business logic for the return and exchange flows.
No remote calls or I/O - just business rules and calculations.
"""

from .policies import (
    NOTE_DENOMINATIONS,
    RefundRequirementPolicy,
    ReturnReason,
    ReturnType,
    ExchangeSubmissionValidator,
    ReturnSubmissionValidator,
    SelectionValidator,
    TenderValidator,
)
from .services import (
    FinancialDelta,
    FinancialDeltaCalculator,
    TenderSplitter,
    TenderSummary,
    cash_from_notes,
    infer_vat_rate,
    settlement_label,
)

__all__ = [
    "NOTE_DENOMINATIONS",
    "RefundRequirementPolicy",
    "ReturnReason",
    "ReturnType",
    "ExchangeSubmissionValidator",
    "ReturnSubmissionValidator",
    "SelectionValidator",
    "TenderValidator",
    "FinancialDelta",
    "FinancialDeltaCalculator",
    "TenderSplitter",
    "TenderSummary",
    "cash_from_notes",
    "infer_vat_rate",
    "settlement_label",
]
