"""
Returns Session State.

Extends the base SessionContext with the per-order state of the return
and exchange flows, and holds the local, network-free models the operator
edits before confirming: the selection, the replacement cart and the
tender form.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from enum import Enum

from core.domain import SagaValidationError, ValidationError
from core.session import SessionContext

from .domain.policies import NOTE_DENOMINATIONS
from .models import Order, ReplacementLine, SelectionEntry, Tender


class ReturnFlowStep(Enum):
    """Steps in the return / exchange flow."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_RECONCILIATION = "needs_reconciliation"


# =============================================================================
# SELECTION MODEL
# =============================================================================

class SelectionModel:
    """
    Which order lines are marked for return, and how many of each.

    The selected-id set and the quantity map are kept consistent: there is
    never a quantity for an id that is not selected.
    """

    def __init__(self, order: Order):
        self._order = order
        self._selected: Set[int] = set()
        self._quantities: Dict[int, int] = {}

    @property
    def selected_ids(self) -> Set[int]:
        return set(self._selected)

    @property
    def quantities(self) -> Dict[int, int]:
        return dict(self._quantities)

    def toggle(self, item_id: int) -> bool:
        """
        Add or remove a line from the selection, clearing its quantity.

        Returns:
            False if the id does not belong to the loaded order
        """
        if self._order.find_item(item_id) is None:
            return False
        self._quantities.pop(item_id, None)
        if item_id in self._selected:
            self._selected.remove(item_id)
        else:
            self._selected.add(item_id)
        return True

    def set_quantity(self, item_id: int, qty: int) -> bool:
        """Set the quantity for a selected line; out-of-range values are ignored."""
        if item_id not in self._selected:
            return False
        line = self._order.find_item(item_id)
        if line is None or qty < 1 or qty > line.quantity:
            return False
        self._quantities[item_id] = qty
        return True

    def is_complete(self) -> bool:
        return bool(self._selected) and all(i in self._quantities for i in self._selected)

    def entries(self) -> List[SelectionEntry]:
        """Selected lines that have a quantity, as request entries."""
        entries = []
        for item in self._order.items or []:
            if item.id in self._selected and item.id in self._quantities:
                entries.append(SelectionEntry(
                    order_item_id=item.id,
                    quantity=self._quantities[item.id],
                    product_barcode_id=item.barcode_id,
                ))
        return entries

    @classmethod
    def from_entries(cls, order: Order, entries: List[SelectionEntry]) -> "SelectionModel":
        model = cls(order)
        for entry in entries:
            if entry.order_item_id not in model._selected:
                model.toggle(entry.order_item_id)
            model.set_quantity(entry.order_item_id, entry.quantity)
        return model


# =============================================================================
# REPLACEMENT CART
# =============================================================================

class ReplacementCart:
    """Replacement products for an exchange, capped by available stock."""

    def __init__(self):
        self._lines: Dict[str, ReplacementLine] = {}

    @property
    def lines(self) -> List[ReplacementLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def add(self, line: ReplacementLine) -> ReplacementLine:
        """Add a line, merging with an existing line for the same product and batch."""
        existing = self._lines.get(line.key)
        quantity = line.quantity + (existing.quantity if existing else 0)
        available = line.available if line.available is not None else (
            existing.available if existing else None
        )
        self._check_stock(line.key, quantity, available)
        merged = line.model_copy(update={"quantity": quantity, "available": available})
        self._lines[line.key] = merged
        return merged

    def set_quantity(self, key: str, qty: int) -> Optional[ReplacementLine]:
        """Change a line's quantity; zero or less removes it."""
        line = self._lines.get(key)
        if line is None:
            return None
        if qty < 1:
            self.remove(key)
            return None
        self._check_stock(key, qty, line.available)
        updated = line.model_copy(update={"quantity": qty})
        self._lines[key] = updated
        return updated

    def remove(self, key: str):
        self._lines.pop(key, None)

    def _check_stock(self, key: str, quantity: int, available: Optional[int]):
        if available is not None and quantity > available:
            raise SagaValidationError([ValidationError(
                field=f"replacements[{key}].quantity",
                message=f"Only {available} units available",
                code="insufficient_stock",
            )])


# =============================================================================
# TENDER FORM
# =============================================================================

@dataclass
class TenderForm:
    """
    The counter's tender entry: either typed cash or a note count, plus
    card and mobile wallet amounts.

    Switching between typed cash and the note counter zeroes the other.
    """
    cash: float = 0.0
    card: float = 0.0
    bkash: float = 0.0
    nagad: float = 0.0
    fee: float = 0.0
    note_counts: Dict[int, int] = field(
        default_factory=lambda: {d: 0 for d in NOTE_DENOMINATIONS}
    )

    def use_note_counter(self):
        self.cash = 0.0

    def use_manual_cash(self):
        self.note_counts = {d: 0 for d in NOTE_DENOMINATIONS}

    def set_note_count(self, denomination: int, count: int):
        if denomination not in NOTE_DENOMINATIONS:
            raise SagaValidationError([ValidationError(
                field="note_counts",
                message=f"Unknown note denomination: {denomination}",
                code="invalid_choice",
            )])
        self.note_counts[denomination] = max(0, count)

    def to_tender(self) -> Tender:
        return Tender(
            cash=self.cash,
            card=self.card,
            bkash=self.bkash,
            nagad=self.nagad,
            fee=self.fee,
            note_counts={d: c for d, c in self.note_counts.items() if c},
        )


# =============================================================================
# SESSION CONTEXT
# =============================================================================

@dataclass
class ReturnSessionContext(SessionContext):
    """
    Session context for one order's return or exchange.

    Tracks the flow step and the identifiers of remote resources created
    so far, so a failed saga can be found again.
    """

    order_number: Optional[str] = None
    saga_id: Optional[str] = None
    flow_step: ReturnFlowStep = ReturnFlowStep.NOT_STARTED

    def set_flow_step(self, step: ReturnFlowStep):
        self.flow_step = step
        self.set_step(step.value)

    def has_open_saga(self) -> bool:
        """True when a retained saga could still be resumed."""
        saga = self.saga
        return saga is not None and getattr(saga, "is_resumable", False)
