"""
Domain Services - Financial Calculations.

These services compute what the customer is owed or owes without any I/O.
Amounts stay in floating units parsed from the backend's strings; rounding
happens only when the numbers are displayed.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional

from core.domain import DomainService

from .policies import NOTE_DENOMINATIONS
from ..models import Order, ReplacementLine, SelectionEntry, Tender


SETTLEMENT_PAYMENT = "payment"
SETTLEMENT_REFUND = "refund"
SETTLEMENT_NONE = "none"


def settlement_label(difference: float) -> str:
    """
    Classify a signed difference.

    The sign is read at cent resolution so float noise on an even exchange
    does not register as a payment or refund.
    """
    cents = round(difference, 2)
    if cents > 0:
        return SETTLEMENT_PAYMENT
    if cents < 0:
        return SETTLEMENT_REFUND
    return SETTLEMENT_NONE


def infer_vat_rate(order: Order) -> float:
    """Recover the VAT rate implied by an order: (total - subtotal) / subtotal."""
    if order.subtotal <= 0:
        return 0.0
    return (order.total_amount - order.subtotal) / order.subtotal


def cash_from_notes(note_counts: Mapping[int, int]) -> float:
    """Sum a note-denomination count."""
    return float(sum(int(d) * count for d, count in note_counts.items() if int(d) in NOTE_DENOMINATIONS))


# =============================================================================
# FINANCIAL DELTA
# =============================================================================

@dataclass
class FinancialDelta:
    """Derived money picture of a return or exchange."""
    original_amount: float
    new_subtotal: float
    vat_rate: float
    vat_amount: float
    total_new_amount: float
    difference: float

    @property
    def outcome(self) -> str:
        return settlement_label(self.difference)

    @property
    def amount_owed(self) -> float:
        return abs(self.difference)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["outcome"] = self.outcome
        return data


class FinancialDeltaCalculator(DomainService):
    """
    Computes the financial delta for a selection and replacement set.

    An empty selection gives original_amount = 0, so the same calculation
    serves a plain sale as well as a return or an exchange.
    """

    def execute(
        self,
        order: Order,
        selection: List[SelectionEntry],
        replacements: Optional[List[ReplacementLine]] = None,
        vat_rate: float = 0.0,
    ) -> FinancialDelta:
        """
        Calculate the delta.

        Args:
            order: The loaded order (items must be present for a non-empty selection)
            selection: Lines taken back
            replacements: Lines handed out (exchanges only)
            vat_rate: Fractional VAT rate applied to the replacement subtotal

        Returns:
            FinancialDelta with the signed difference
        """
        original_amount = 0.0
        for entry in selection:
            line = order.find_item(entry.order_item_id)
            if line is None:
                raise ValueError(f"Item {entry.order_item_id} is not part of order {order.id}")
            original_amount += entry.quantity * line.unit_price

        new_subtotal = sum(line.amount for line in replacements or [])
        vat_amount = new_subtotal * vat_rate
        total_new_amount = new_subtotal + vat_amount

        return FinancialDelta(
            original_amount=original_amount,
            new_subtotal=new_subtotal,
            vat_rate=vat_rate,
            vat_amount=vat_amount,
            total_new_amount=total_new_amount,
            difference=total_new_amount - original_amount,
        )


# =============================================================================
# TENDER
# =============================================================================

@dataclass
class TenderSummary:
    """How a tender covers the amount owed in either direction."""
    notes_total: float
    effective_cash: float
    total_tendered: float
    fee: float
    owed: float
    due: float
    direction: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TenderSplitter(DomainService):
    """
    Splits a tender into effective cash and total tendered, and works out
    what remains due.

    Counted notes win over a typed cash figure when any are counted. The
    transaction fee only applies when collecting from the customer.
    """

    def execute(self, tender: Tender, difference: float) -> TenderSummary:
        notes_total = cash_from_notes(tender.note_counts)
        effective_cash = notes_total if notes_total > 0 else tender.cash
        total_tendered = effective_cash + tender.card + tender.bkash + tender.nagad

        direction = settlement_label(difference)
        if direction == SETTLEMENT_PAYMENT:
            due = max(0.0, difference - total_tendered + tender.fee)
        elif direction == SETTLEMENT_REFUND:
            due = max(0.0, abs(difference) - total_tendered)
        else:
            due = 0.0

        return TenderSummary(
            notes_total=notes_total,
            effective_cash=effective_cash,
            total_tendered=total_tendered,
            fee=tender.fee,
            owed=abs(difference) if direction != SETTLEMENT_NONE else 0.0,
            due=due,
            direction=direction,
        )

    def refund_method_details(self, tender: Tender) -> Dict[str, float]:
        """The per-instrument breakdown sent with a refund request."""
        notes_total = cash_from_notes(tender.note_counts)
        return {
            "cash": notes_total if notes_total > 0 else tender.cash,
            "card": tender.card,
            "bkash": tender.bkash,
            "nagad": tender.nagad,
        }
