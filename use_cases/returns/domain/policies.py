"""
Return Policies - Pure Business Rules.

These policies encapsulate the business rules for returns and exchanges.
They have NO dependencies on the commerce backend or any other service.
All data needed for evaluation is passed in as parameters.
"""

from enum import Enum
from typing import Any, Dict, List

from core.domain import (
    PolicyEngine,
    PolicyDecision,
    PolicyResult,
    Validator,
    ValidationError,
)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ReturnReason(str, Enum):
    """Reason codes accepted by the return service."""
    DEFECTIVE_PRODUCT = "defective_product"
    WRONG_ITEM = "wrong_item"
    NOT_AS_DESCRIBED = "not_as_described"
    CUSTOMER_DISSATISFACTION = "customer_dissatisfaction"
    SIZE_ISSUE = "size_issue"
    COLOR_ISSUE = "color_issue"
    QUALITY_ISSUE = "quality_issue"
    LATE_DELIVERY = "late_delivery"
    CHANGED_MIND = "changed_mind"
    DUPLICATE_ORDER = "duplicate_order"
    OTHER = "other"


class ReturnType(str, Enum):
    """Where the returned goods are received."""
    CUSTOMER_RETURN = "customer_return"
    STORE_RETURN = "store_return"
    WAREHOUSE_RETURN = "warehouse_return"


VALID_REASONS = [r.value for r in ReturnReason]
VALID_RETURN_TYPES = [t.value for t in ReturnType]

# Cash note denominations the counter recognises, largest first
NOTE_DENOMINATIONS = [1000, 500, 200, 100, 50, 20, 10, 5, 2, 1]


# =============================================================================
# POLICIES
# =============================================================================

class RefundRequirementPolicy(PolicyEngine):
    """
    Decides whether a refund lifecycle must run after the return completes.

    Context required:
        - kind: "return" or "exchange"
        - difference: signed financial difference (new total minus original)
    """

    def evaluate(self, context: Dict[str, Any]) -> PolicyDecision:
        kind = context.get("kind", "return")
        difference = context.get("difference", 0.0)

        if kind == "exchange":
            return PolicyDecision(
                result=PolicyResult.APPROVED,
                reason="Exchanges always refund the returned items before the new order",
                metadata={"kind": kind},
            )

        # Same cent resolution as the settlement label
        cents = round(difference, 2)
        if cents != 0:
            return PolicyDecision(
                result=PolicyResult.APPROVED,
                reason=f"Return moves money ({abs(cents):.2f})",
                metadata={"kind": kind, "amount": abs(cents)},
            )

        return PolicyDecision(
            result=PolicyResult.DENIED,
            reason="No money moves on this return",
            metadata={"kind": kind},
        )


# =============================================================================
# VALIDATORS
# =============================================================================

class SelectionValidator(Validator):
    """
    Validates a selection against the loaded order.

    Data:
        - order: the Order snapshot (with items loaded)
        - selection: list of SelectionEntry
    """

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []
        order = data.get("order")
        selection = data.get("selection") or []

        if not selection:
            errors.append(ValidationError(
                field="selection",
                message="Select at least one item",
                code="min_length",
            ))
            return errors

        seen = set()
        for i, entry in enumerate(selection):
            line = order.find_item(entry.order_item_id) if order is not None else None
            if line is None:
                errors.append(ValidationError(
                    field=f"selection[{i}].order_item_id",
                    message=f"Item {entry.order_item_id} is not part of this order",
                    code="unknown_item",
                ))
                continue
            if entry.order_item_id in seen:
                errors.append(ValidationError(
                    field=f"selection[{i}].order_item_id",
                    message=f"Item {entry.order_item_id} is selected more than once",
                    code="duplicate",
                ))
            seen.add(entry.order_item_id)
            if entry.quantity < 1 or entry.quantity > line.quantity:
                errors.append(ValidationError(
                    field=f"selection[{i}].quantity",
                    message=f"Quantity must be between 1 and {line.quantity}",
                    code="out_of_range",
                ))

        return errors


class TenderValidator(Validator):
    """Validates a tender: known denominations and no negative amounts."""

    AMOUNT_FIELDS = ["cash", "card", "bkash", "nagad", "fee"]

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []
        tender = data.get("tender")
        if tender is None:
            return errors

        for name in self.AMOUNT_FIELDS:
            if getattr(tender, name) < 0:
                errors.append(ValidationError(
                    field=f"tender.{name}",
                    message=f"{name} cannot be negative",
                    code="negative",
                ))

        for denomination, count in tender.note_counts.items():
            if denomination not in NOTE_DENOMINATIONS:
                errors.append(ValidationError(
                    field="tender.note_counts",
                    message=f"Unknown note denomination: {denomination}",
                    code="invalid_choice",
                ))
            elif count < 0:
                errors.append(ValidationError(
                    field="tender.note_counts",
                    message=f"Note count for {denomination} cannot be negative",
                    code="negative",
                ))

        return errors


class ReturnSubmissionValidator(Validator):
    """
    Validates a return request before any remote call.

    Data:
        - order, selection: as for SelectionValidator
        - return_reason, return_type: codes
        - store_id: resolved receiving store
        - tender: optional Tender
    """

    def __init__(self):
        self.selection_validator = SelectionValidator()
        self.tender_validator = TenderValidator()

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = self.selection_validator.validate(data)

        reason = data.get("return_reason")
        if not reason:
            errors.append(ValidationError(
                field="return_reason",
                message="return_reason is required",
                code="required",
            ))
        elif reason not in VALID_REASONS:
            errors.append(ValidationError(
                field="return_reason",
                message=f"Invalid return reason. Must be one of: {', '.join(VALID_REASONS)}",
                code="invalid_choice",
            ))

        return_type = data.get("return_type")
        if return_type not in VALID_RETURN_TYPES:
            errors.append(ValidationError(
                field="return_type",
                message=f"Invalid return type. Must be one of: {', '.join(VALID_RETURN_TYPES)}",
                code="invalid_choice",
            ))

        if not data.get("store_id"):
            errors.append(ValidationError(
                field="store_id",
                message="A receiving store is required",
                code="required",
            ))

        errors.extend(self.tender_validator.validate(data))
        return errors


class ExchangeSubmissionValidator(ReturnSubmissionValidator):
    """
    Validates an exchange: a return plus a non-empty replacement set.

    Data (in addition to ReturnSubmissionValidator):
        - replacements: list of ReplacementLine
    """

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = super().validate(data)

        replacements = data.get("replacements") or []
        if not replacements:
            errors.append(ValidationError(
                field="replacements",
                message="Add at least one replacement product",
                code="min_length",
            ))

        for i, line in enumerate(replacements):
            if line.quantity < 1:
                errors.append(ValidationError(
                    field=f"replacements[{i}].quantity",
                    message="Quantity must be at least 1",
                    code="out_of_range",
                ))
            elif line.available is not None and line.quantity > line.available:
                errors.append(ValidationError(
                    field=f"replacements[{i}].quantity",
                    message=f"Only {line.available} units available",
                    code="insufficient_stock",
                ))
            if line.unit_price < 0:
                errors.append(ValidationError(
                    field=f"replacements[{i}].unit_price",
                    message="Unit price cannot be negative",
                    code="negative",
                ))

        return errors
