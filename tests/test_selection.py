"""
Selection, Replacement Cart and Tender Form Tests

Local, network-free state the operator edits before confirming a return
or exchange.

Run with: pytest tests/test_selection.py -v
"""
import pytest

from core.domain import SagaValidationError
from use_cases.returns.domain.policies import (
    ExchangeSubmissionValidator,
    ReturnSubmissionValidator,
    SelectionValidator,
)
from use_cases.returns.models import ReplacementLine, SelectionEntry, Tender
from use_cases.returns.session import ReplacementCart, SelectionModel, TenderForm


# ============================================================================
# SELECTION MODEL
# ============================================================================

class TestSelectionModel:
    """Selected ids and quantities stay consistent."""

    def test_toggle_adds_and_removes(self, order):
        model = SelectionModel(order)

        assert model.toggle(10) is True
        assert model.selected_ids == {10}
        assert model.toggle(10) is True
        assert model.selected_ids == set()

    def test_toggle_clears_quantity(self, order):
        model = SelectionModel(order)
        model.toggle(10)
        model.set_quantity(10, 2)

        model.toggle(10)
        model.toggle(10)

        assert model.quantities == {}
        assert not model.is_complete()

    def test_toggle_unknown_item_is_ignored(self, order):
        model = SelectionModel(order)

        assert model.toggle(999) is False
        assert model.selected_ids == set()

    @pytest.mark.parametrize("qty", [0, -1, 4])
    def test_out_of_range_quantity_is_ignored(self, order, qty):
        model = SelectionModel(order)
        model.toggle(10)
        model.set_quantity(10, 1)

        assert model.set_quantity(10, qty) is False
        assert model.quantities == {10: 1}

    def test_quantity_needs_selection(self, order):
        model = SelectionModel(order)

        assert model.set_quantity(10, 1) is False
        assert model.quantities == {}

    def test_entries_carry_barcode(self, order):
        model = SelectionModel(order)
        model.toggle(10)
        model.set_quantity(10, 2)
        model.toggle(11)

        assert not model.is_complete()
        assert model.entries() == [
            SelectionEntry(order_item_id=10, quantity=2, product_barcode_id=70)
        ]

        model.set_quantity(11, 1)
        assert model.is_complete()
        assert [e.order_item_id for e in model.entries()] == [10, 11]

    def test_from_entries(self, order):
        model = SelectionModel.from_entries(order, [
            SelectionEntry(order_item_id=10, quantity=3),
            SelectionEntry(order_item_id=999, quantity=1),
        ])

        assert model.selected_ids == {10}
        assert model.quantities == {10: 3}


class TestSelectionValidation:

    def test_empty_selection(self, order):
        errors = SelectionValidator().validate({"order": order, "selection": []})

        assert errors[0].code == "min_length"

    def test_quantity_above_sold(self, order):
        errors = SelectionValidator().validate({
            "order": order,
            "selection": [SelectionEntry(order_item_id=11, quantity=2)],
        })

        assert [e.code for e in errors] == ["out_of_range"]

    def test_duplicate_line(self, order):
        errors = SelectionValidator().validate({
            "order": order,
            "selection": [
                SelectionEntry(order_item_id=10, quantity=1),
                SelectionEntry(order_item_id=10, quantity=1),
            ],
        })

        assert [e.code for e in errors] == ["duplicate"]

    def test_invalid_reason_and_missing_store(self, order):
        errors = ReturnSubmissionValidator().validate({
            "order": order,
            "selection": [SelectionEntry(order_item_id=10, quantity=1)],
            "return_reason": "bored",
            "return_type": "customer_return",
            "store_id": None,
        })

        assert {e.field for e in errors} == {"return_reason", "store_id"}

    def test_exchange_needs_replacements(self, order):
        with pytest.raises(SagaValidationError) as exc_info:
            ExchangeSubmissionValidator().check({
                "order": order,
                "selection": [SelectionEntry(order_item_id=10, quantity=1)],
                "replacements": [],
                "return_reason": "size_issue",
                "return_type": "customer_return",
                "store_id": 3,
            })

        assert [e.field for e in exc_info.value.errors] == ["replacements"]

    def test_exchange_replacement_above_stock(self, order):
        errors = ExchangeSubmissionValidator().validate({
            "order": order,
            "selection": [SelectionEntry(order_item_id=10, quantity=1)],
            "replacements": [
                ReplacementLine(product_id=9, batch_id=1, quantity=5, unit_price=100, available=2)
            ],
            "return_reason": "size_issue",
            "return_type": "customer_return",
            "store_id": 3,
        })

        assert [e.code for e in errors] == ["insufficient_stock"]


# ============================================================================
# REPLACEMENT CART
# ============================================================================

class TestReplacementCart:

    def _line(self, quantity=1, available=3):
        return ReplacementLine(
            product_id=9, batch_id=90, quantity=quantity, unit_price=800, available=available
        )

    def test_same_product_and_batch_merge(self):
        cart = ReplacementCart()
        cart.add(self._line())
        merged = cart.add(self._line(quantity=2))

        assert len(cart) == 1
        assert merged.quantity == 3
        assert merged.amount == 2400

    def test_merge_above_stock_is_rejected(self):
        cart = ReplacementCart()
        cart.add(self._line(quantity=2))

        with pytest.raises(SagaValidationError):
            cart.add(self._line(quantity=2))
        assert cart.lines[0].quantity == 2

    def test_set_quantity_below_one_removes(self):
        cart = ReplacementCart()
        line = cart.add(self._line())

        assert cart.set_quantity(line.key, 0) is None
        assert len(cart) == 0

    def test_set_quantity_above_stock_is_rejected(self):
        cart = ReplacementCart()
        line = cart.add(self._line())

        with pytest.raises(SagaValidationError):
            cart.set_quantity(line.key, 4)

    def test_remove(self):
        cart = ReplacementCart()
        line = cart.add(self._line())
        cart.remove(line.key)

        assert cart.lines == []


# ============================================================================
# TENDER FORM
# ============================================================================

class TestTenderForm:
    """Switching between typed cash and the note counter."""

    def test_note_counter_zeroes_typed_cash(self):
        form = TenderForm(cash=500)
        form.use_note_counter()
        form.set_note_count(1000, 1)

        tender = form.to_tender()

        assert tender.cash == 0
        assert tender.note_counts == {1000: 1}

    def test_manual_cash_zeroes_note_counts(self):
        form = TenderForm()
        form.set_note_count(500, 2)
        form.use_manual_cash()
        form.cash = 250

        tender = form.to_tender()

        assert tender.note_counts == {}
        assert tender.cash == 250

    def test_unknown_denomination(self):
        with pytest.raises(SagaValidationError):
            TenderForm().set_note_count(300, 1)

    def test_to_tender_keeps_wallets(self):
        tender = TenderForm(card=100, bkash=20, nagad=30, fee=5).to_tender()

        assert tender == Tender(card=100, bkash=20, nagad=30, fee=5)
