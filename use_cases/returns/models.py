"""
Wire and request models for the returns use case.

Order snapshots come from the commerce backend with monetary fields as
strings ("1,250.00"); they are coerced to floats on the way in and never
mutated locally. Submissions are the in-memory request objects the HTTP
layer hands to a saga.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.domain import parse_amount


# =============================================================================
# ORDER SNAPSHOT
# =============================================================================

class StoreRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: Optional[str] = None


class CustomerRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class OrderItem(BaseModel):
    """One sold line of an order."""
    model_config = ConfigDict(extra="ignore")

    id: int
    product_id: int
    product_name: str = ""
    product_sku: Optional[str] = None
    batch_id: Optional[int] = None
    batch_number: Optional[str] = None
    barcode_id: Optional[int] = None
    barcode: Optional[str] = None
    quantity: int
    unit_price: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0

    @field_validator(
        "unit_price", "discount_amount", "tax_amount", "total_amount", mode="before"
    )
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)


class Order(BaseModel):
    """
    Immutable snapshot of a completed sale.

    `items` is None when the list endpoint did not embed line items; the
    snapshot loader fetches them on first expansion.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    order_number: str
    order_type: Optional[str] = None
    status: Optional[str] = None
    store: Optional[StoreRef] = None
    customer: Optional[CustomerRef] = None
    items: Optional[List[OrderItem]] = None
    subtotal: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    shipping_amount: float = 0.0
    total_amount: float = 0.0
    paid_amount: float = 0.0
    outstanding_amount: float = 0.0

    @field_validator(
        "subtotal",
        "tax_amount",
        "discount_amount",
        "shipping_amount",
        "total_amount",
        "paid_amount",
        "outstanding_amount",
        mode="before",
    )
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)

    @property
    def has_items(self) -> bool:
        return self.items is not None

    def find_item(self, item_id: int) -> Optional[OrderItem]:
        for item in self.items or []:
            if item.id == item_id:
                return item
        return None


# =============================================================================
# SELECTION / REPLACEMENT / TENDER
# =============================================================================

class SelectionEntry(BaseModel):
    """One order line marked for return, with the quantity taken back."""
    order_item_id: int
    quantity: int
    product_barcode_id: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "order_item_id": self.order_item_id,
            "quantity": self.quantity,
        }
        if self.product_barcode_id is not None:
            payload["product_barcode_id"] = self.product_barcode_id
        return payload


class ReplacementLine(BaseModel):
    """A product handed to the customer in an exchange."""
    product_id: int
    batch_id: int
    quantity: int = 1
    unit_price: float
    barcode: Optional[str] = None
    barcode_id: Optional[int] = None
    available: Optional[int] = None
    product_name: Optional[str] = None

    @field_validator("unit_price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> float:
        return parse_amount(value)

    @property
    def key(self) -> str:
        return f"{self.product_id}:{self.batch_id}"

    @property
    def amount(self) -> float:
        return self.unit_price * self.quantity

    def to_order_item(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "barcode": self.barcode,
            "barcode_id": self.barcode_id,
        }


class Tender(BaseModel):
    """Payment instruments covering an amount (collected or refunded)."""
    cash: float = 0.0
    card: float = 0.0
    bkash: float = 0.0
    nagad: float = 0.0
    fee: float = 0.0
    note_counts: Dict[int, int] = Field(default_factory=dict)

    @field_validator("cash", "card", "bkash", "nagad", "fee", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)


# =============================================================================
# SUBMISSIONS
# =============================================================================

class ReturnSubmission(BaseModel):
    """Everything a return saga needs, passed across one call boundary."""
    selection: List[SelectionEntry]
    return_reason: str
    return_type: str = "customer_return"
    received_at_store_id: Optional[int] = None
    customer_notes: Optional[str] = None
    tender: Tender = Field(default_factory=Tender)


class ExchangeSubmission(BaseModel):
    """Everything an exchange saga needs, passed across one call boundary."""
    selection: List[SelectionEntry]
    replacements: List[ReplacementLine]
    exchange_store_id: Optional[int] = None
    return_reason: str = "other"
    return_type: str = "customer_return"
    tender: Tender = Field(default_factory=Tender)


class QuoteRequest(BaseModel):
    """Inputs to a side-effect-free financial quote."""
    selection: List[SelectionEntry] = Field(default_factory=list)
    replacements: List[ReplacementLine] = Field(default_factory=list)
    tender: Tender = Field(default_factory=Tender)
    vat_percent: Optional[float] = None


class CancelRequest(BaseModel):
    reason: str = "Cancelled by user"
