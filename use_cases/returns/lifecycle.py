"""
Return, Refund and Replacement-Order Lifecycle Drivers.

Each driver walks one remote resource through its fixed, forward-only
stages. A stage is one remote call carrying an Idempotency-Key; the next
stage is issued only after the previous one resolved. Failures propagate
immediately with the backend's message and nothing is rolled back.

Stage payloads form a discriminated union keyed by `stage`. A payload for
any stage other than the next expected one is rejected with
StageOrderError before a call is made.
"""

import logging
import time
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, Field, TypeAdapter

from core.data import RemoteCallError
from core.orchestration import (
    SagaNotResumableError,
    StageMachine,
    StageOrderError,
    idempotency_key,
)
from stage_status import StageTracker

from .models import ReplacementLine, SelectionEntry
from .services import OrderService, RefundService, ReturnService

logger = logging.getLogger(__name__)


# =============================================================================
# STAGES
# =============================================================================

class ReturnStage(str, Enum):
    CREATED = "created"
    QUALITY_CHECKED = "quality_checked"
    APPROVED = "approved"
    PROCESSED = "processed"
    COMPLETED = "completed"


class RefundStage(str, Enum):
    CREATED = "created"
    PROCESSED = "processed"
    COMPLETED = "completed"


class ExchangeOrderStage(str, Enum):
    CREATED = "created"
    COMPLETED = "completed"


RETURN_STAGES = [s.value for s in ReturnStage]
REFUND_STAGES = [s.value for s in RefundStage]
EXCHANGE_ORDER_STAGES = [s.value for s in ExchangeOrderStage]


# =============================================================================
# STAGE PAYLOADS
# =============================================================================

class CreateReturnPayload(BaseModel):
    stage: Literal["created"] = "created"
    order_id: int
    received_at_store_id: Optional[int] = None
    return_reason: str
    return_type: str
    items: List[SelectionEntry]
    customer_notes: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        body = {
            "order_id": self.order_id,
            "return_reason": self.return_reason,
            "return_type": self.return_type,
            "items": [item.to_payload() for item in self.items],
        }
        if self.received_at_store_id is not None:
            body["received_at_store_id"] = self.received_at_store_id
        if self.customer_notes:
            body["customer_notes"] = self.customer_notes
        return body


class QualityCheckPayload(BaseModel):
    stage: Literal["quality_checked"] = "quality_checked"
    quality_check_passed: Literal[True] = True
    quality_check_notes: str

    def to_body(self) -> Dict[str, Any]:
        return {
            "quality_check_passed": self.quality_check_passed,
            "quality_check_notes": self.quality_check_notes,
        }


class ApproveReturnPayload(BaseModel):
    stage: Literal["approved"] = "approved"
    internal_notes: str

    def to_body(self) -> Dict[str, Any]:
        return {"internal_notes": self.internal_notes}


class ProcessReturnPayload(BaseModel):
    stage: Literal["processed"] = "processed"
    restore_inventory: bool = True

    def to_body(self) -> Dict[str, Any]:
        return {"restore_inventory": self.restore_inventory}


class CompleteReturnPayload(BaseModel):
    stage: Literal["completed"] = "completed"


ReturnStagePayload = Annotated[
    Union[
        CreateReturnPayload,
        QualityCheckPayload,
        ApproveReturnPayload,
        ProcessReturnPayload,
        CompleteReturnPayload,
    ],
    Field(discriminator="stage"),
]


class CreateRefundPayload(BaseModel):
    stage: Literal["created"] = "created"
    return_id: int
    refund_type: Literal["full"] = "full"
    refund_method: Literal["cash"] = "cash"
    refund_method_details: Dict[str, float] = Field(default_factory=dict)
    internal_notes: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        body = {
            "return_id": self.return_id,
            "refund_type": self.refund_type,
            "refund_method": self.refund_method,
            "refund_method_details": self.refund_method_details,
        }
        if self.internal_notes:
            body["internal_notes"] = self.internal_notes
        return body


class ProcessRefundPayload(BaseModel):
    stage: Literal["processed"] = "processed"


class CompleteRefundPayload(BaseModel):
    stage: Literal["completed"] = "completed"
    transaction_reference: str

    def to_body(self) -> Dict[str, Any]:
        return {"transaction_reference": self.transaction_reference}


RefundStagePayload = Annotated[
    Union[CreateRefundPayload, ProcessRefundPayload, CompleteRefundPayload],
    Field(discriminator="stage"),
]


class CreateExchangeOrderPayload(BaseModel):
    stage: Literal["created"] = "created"
    order_type: Optional[str] = None
    store_id: int
    customer_id: Optional[int] = None
    items: List[ReplacementLine]
    payment_method_id: int
    notes: str

    @property
    def total(self) -> float:
        return sum(line.unit_price * line.quantity for line in self.items)

    def to_body(self) -> Dict[str, Any]:
        return {
            "order_type": self.order_type,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "items": [line.to_order_item() for line in self.items],
            "payment": {
                "payment_method_id": self.payment_method_id,
                "amount": self.total,
                "payment_type": "full",
            },
            "notes": self.notes,
        }


class CompleteExchangeOrderPayload(BaseModel):
    stage: Literal["completed"] = "completed"


ExchangeOrderStagePayload = Annotated[
    Union[CreateExchangeOrderPayload, CompleteExchangeOrderPayload],
    Field(discriminator="stage"),
]

RETURN_PAYLOADS = TypeAdapter(ReturnStagePayload)
REFUND_PAYLOADS = TypeAdapter(RefundStagePayload)
EXCHANGE_ORDER_PAYLOADS = TypeAdapter(ExchangeOrderStagePayload)


# =============================================================================
# BASE DRIVER
# =============================================================================

class LifecycleDriver:
    """
    Shared mechanics of a single-resource lifecycle.

    Subclasses set `resource_name`, `stages` and `payload_adapter`, and
    implement `payload_for`, `_issue`, `_fetch` and `_stage_from_remote`.
    """

    resource_name = ""
    stages: List[str] = []
    payload_adapter: Optional[TypeAdapter] = None
    payload_types: Tuple[Type[BaseModel], ...] = ()

    def __init__(self, saga_key: str, tracker: StageTracker):
        self.saga_key = saga_key
        self.tracker = tracker
        self.machine = StageMachine(self.stages)
        self.entity_id: Optional[int] = None
        self.entity_number: Optional[str] = None
        self.record: Dict[str, Any] = {}

    @property
    def is_finished(self) -> bool:
        return self.machine.is_finished

    @property
    def has_started(self) -> bool:
        return self.entity_id is not None

    def qualified(self, stage: str) -> str:
        return f"{self.resource_name}.{stage}"

    def parse_payload(self, data: Any) -> BaseModel:
        """Accept a payload model of this lifecycle, or validate a raw dict against its union."""
        if isinstance(data, BaseModel):
            if not isinstance(data, self.payload_types):
                raise TypeError(
                    f"{type(data).__name__} is not a {self.resource_name} stage payload"
                )
            return data
        return self.payload_adapter.validate_python(data)

    async def advance(self, payload: Any) -> Dict[str, Any]:
        """Issue one stage. Raises StageOrderError if it is not the next stage."""
        payload = self.parse_payload(payload)
        stage = payload.stage
        self.machine.expect(stage)
        self._check_preconditions(stage)

        name = self.qualified(stage)
        key = idempotency_key(self.saga_key, name)
        self.tracker.start(name)
        try:
            data = await self._issue(payload, key)
        except RemoteCallError as e:
            self.tracker.fail(name, e.message)
            raise

        self._remember(data)
        self.machine.advance(stage)
        self.tracker.finish(name)
        return data

    async def run(self) -> Dict[str, Any]:
        """Issue every remaining stage in order."""
        while not self.machine.is_finished:
            await self.advance(self.payload_for(self.machine.next_stage))
        return self.record

    async def refresh(self):
        """
        Re-read the remote entity and reposition the stage machine.

        Without an entity id nothing exists remotely, so the lifecycle
        restarts from its first stage.
        """
        if self.entity_id is None:
            self.machine.restore(None)
            return
        data = await self._fetch()
        self._remember(data)
        stage = self._stage_from_remote(data)
        logger.info(
            f"[{self.saga_key}] {self.resource_name} {self.entity_id} is "
            f"'{data.get('status')}', resuming after {stage}"
        )
        self.machine.restore(stage)

    def _remember(self, data: Any):
        if not isinstance(data, dict):
            return
        self.record = {**self.record, **data}
        if data.get("id") is not None and self.entity_id is None:
            self.entity_id = data["id"]

    def _check_preconditions(self, stage: str):
        pass

    def payload_for(self, stage: str) -> BaseModel:
        raise NotImplementedError

    async def _issue(self, payload: BaseModel, key: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def _fetch(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _stage_from_remote(self, data: Dict[str, Any]) -> Optional[str]:
        raise NotImplementedError


# =============================================================================
# RETURN LIFECYCLE
# =============================================================================

class ReturnLifecycleDriver(LifecycleDriver):
    """
    Drives a return through created -> quality_checked -> approved ->
    processed -> completed.

    `processed` restores inventory; a failure after it leaves stock
    restored without the rest of the saga having happened.
    """

    resource_name = "return"
    stages = RETURN_STAGES
    payload_adapter = RETURN_PAYLOADS
    payload_types = (
        CreateReturnPayload,
        QualityCheckPayload,
        ApproveReturnPayload,
        ProcessReturnPayload,
        CompleteReturnPayload,
    )

    def __init__(
        self,
        service: ReturnService,
        saga_key: str,
        tracker: StageTracker,
        create_payload: CreateReturnPayload,
        quality_check_notes: str,
        approval_notes: str,
    ):
        super().__init__(saga_key, tracker)
        self.service = service
        self.create_payload = create_payload
        self.quality_check_notes = quality_check_notes
        self.approval_notes = approval_notes

    @property
    def return_id(self) -> Optional[int]:
        return self.entity_id

    @property
    def return_number(self) -> Optional[str]:
        return self.record.get("return_number")

    @property
    def inventory_restored(self) -> bool:
        return self.machine.has_reached(ReturnStage.PROCESSED.value)

    def payload_for(self, stage: str) -> BaseModel:
        if stage == ReturnStage.CREATED.value:
            return self.create_payload
        if stage == ReturnStage.QUALITY_CHECKED.value:
            return QualityCheckPayload(quality_check_notes=self.quality_check_notes)
        if stage == ReturnStage.APPROVED.value:
            return ApproveReturnPayload(internal_notes=self.approval_notes)
        if stage == ReturnStage.PROCESSED.value:
            return ProcessReturnPayload()
        return CompleteReturnPayload()

    async def _issue(self, payload: BaseModel, key: str) -> Dict[str, Any]:
        if isinstance(payload, CreateReturnPayload):
            return await self.service.create(payload.to_body(), idempotency_key=key)
        if isinstance(payload, QualityCheckPayload):
            return await self.service.update(self.entity_id, payload.to_body(), idempotency_key=key)
        if isinstance(payload, ApproveReturnPayload):
            return await self.service.approve(self.entity_id, payload.to_body(), idempotency_key=key)
        if isinstance(payload, ProcessReturnPayload):
            return await self.service.process(self.entity_id, payload.to_body(), idempotency_key=key)
        return await self.service.complete(self.entity_id, idempotency_key=key)

    async def _fetch(self) -> Dict[str, Any]:
        return await self.service.get(self.entity_id)

    def _stage_from_remote(self, data: Dict[str, Any]) -> Optional[str]:
        status = (data.get("status") or "").lower()
        if status == "pending":
            if data.get("quality_check_passed"):
                return ReturnStage.QUALITY_CHECKED.value
            return ReturnStage.CREATED.value
        if status == "approved":
            return ReturnStage.APPROVED.value
        if status == "processed":
            return ReturnStage.PROCESSED.value
        if status in ("completed", "refunded"):
            return ReturnStage.COMPLETED.value
        raise SagaNotResumableError(
            f"Return {self.entity_id} is '{status or 'unknown'}' and cannot be resumed"
        )


# =============================================================================
# REFUND LIFECYCLE
# =============================================================================

class RefundLifecycleDriver(LifecycleDriver):
    """
    Drives a refund through created -> processed -> completed.

    The refund is only created once the linked return has completed.
    """

    resource_name = "refund"
    stages = REFUND_STAGES
    payload_adapter = REFUND_PAYLOADS
    payload_types = (CreateRefundPayload, ProcessRefundPayload, CompleteRefundPayload)

    def __init__(
        self,
        service: RefundService,
        saga_key: str,
        tracker: StageTracker,
        reference_kind: str,
        refund_method_details: Dict[str, float],
        internal_notes: Optional[str] = None,
    ):
        super().__init__(saga_key, tracker)
        self.service = service
        self.reference_kind = reference_kind
        self.refund_method_details = refund_method_details
        self.internal_notes = internal_notes
        self.return_id: Optional[int] = None
        self.return_completed = False
        self.transaction_reference: Optional[str] = None

    @property
    def refund_id(self) -> Optional[int]:
        return self.entity_id

    @property
    def refund_number(self) -> Optional[str]:
        return self.record.get("refund_number")

    def bind_return(self, return_driver: ReturnLifecycleDriver):
        """Link the refund to a return and record whether it has completed."""
        self.return_id = return_driver.return_id
        self.return_completed = return_driver.is_finished

    def _check_preconditions(self, stage: str):
        if stage == RefundStage.CREATED.value and not (self.return_id and self.return_completed):
            raise StageOrderError("return.completed", self.qualified(stage))

    def payload_for(self, stage: str) -> BaseModel:
        if stage == RefundStage.CREATED.value:
            return CreateRefundPayload(
                return_id=self.return_id or 0,
                refund_method_details=self.refund_method_details,
                internal_notes=self.internal_notes,
            )
        if stage == RefundStage.PROCESSED.value:
            return ProcessRefundPayload()
        if self.transaction_reference is None:
            self.transaction_reference = f"{self.reference_kind}-REFUND-{int(time.time() * 1000)}"
        return CompleteRefundPayload(transaction_reference=self.transaction_reference)

    async def _issue(self, payload: BaseModel, key: str) -> Dict[str, Any]:
        if isinstance(payload, CreateRefundPayload):
            return await self.service.create(payload.to_body(), idempotency_key=key)
        if isinstance(payload, ProcessRefundPayload):
            return await self.service.process(self.entity_id, idempotency_key=key)
        return await self.service.complete(self.entity_id, payload.to_body(), idempotency_key=key)

    async def _fetch(self) -> Dict[str, Any]:
        return await self.service.get(self.entity_id)

    def _stage_from_remote(self, data: Dict[str, Any]) -> Optional[str]:
        status = (data.get("status") or "").lower()
        if status == "pending":
            return RefundStage.CREATED.value
        if status == "processing":
            return RefundStage.PROCESSED.value
        if status == "completed":
            return RefundStage.COMPLETED.value
        raise SagaNotResumableError(
            f"Refund {self.entity_id} is '{status or 'unknown'}' and cannot be resumed"
        )


# =============================================================================
# EXCHANGE ORDER CREATOR
# =============================================================================

class ExchangeOrderCreator(LifecycleDriver):
    """
    Creates the replacement order for an exchange and completes it.

    The new order always carries one full payment equal to its own total;
    the net cash movement with the customer is reported separately.
    """

    resource_name = "exchange_order"
    stages = EXCHANGE_ORDER_STAGES
    payload_adapter = EXCHANGE_ORDER_PAYLOADS
    payload_types = (CreateExchangeOrderPayload, CompleteExchangeOrderPayload)

    def __init__(
        self,
        service: OrderService,
        saga_key: str,
        tracker: StageTracker,
        order_type: Optional[str],
        store_id: int,
        customer_id: Optional[int],
        replacements: List[ReplacementLine],
        payment_method_id: int,
        original_order_number: str,
    ):
        super().__init__(saga_key, tracker)
        self.service = service
        self.order_type = order_type
        self.store_id = store_id
        self.customer_id = customer_id
        self.replacements = replacements
        self.payment_method_id = payment_method_id
        self.original_order_number = original_order_number
        self.return_number: Optional[str] = None
        self.refund_completed = False

    @property
    def order_id(self) -> Optional[int]:
        return self.entity_id

    @property
    def order_number(self) -> Optional[str]:
        return self.record.get("order_number")

    @property
    def new_order_total(self) -> float:
        return sum(line.unit_price * line.quantity for line in self.replacements)

    def bind_refund(self, return_driver: ReturnLifecycleDriver, refund_driver: RefundLifecycleDriver):
        self.return_number = return_driver.return_number
        self.refund_completed = refund_driver.is_finished

    def _check_preconditions(self, stage: str):
        if stage == ExchangeOrderStage.CREATED.value and not self.refund_completed:
            raise StageOrderError("refund.completed", self.qualified(stage))

    def payload_for(self, stage: str) -> BaseModel:
        if stage == ExchangeOrderStage.CREATED.value:
            return CreateExchangeOrderPayload(
                order_type=self.order_type,
                store_id=self.store_id,
                customer_id=self.customer_id,
                items=self.replacements,
                payment_method_id=self.payment_method_id,
                notes=f"Exchange from order #{self.original_order_number} | Return: #{self.return_number}",
            )
        return CompleteExchangeOrderPayload()

    async def _issue(self, payload: BaseModel, key: str) -> Dict[str, Any]:
        if isinstance(payload, CreateExchangeOrderPayload):
            return await self.service.create(payload.to_body(), idempotency_key=key)
        return await self.service.complete(self.entity_id, idempotency_key=key)

    async def _fetch(self) -> Dict[str, Any]:
        return await self.service.get_by_id(self.entity_id)

    def _stage_from_remote(self, data: Dict[str, Any]) -> Optional[str]:
        status = (data.get("status") or "").lower()
        if status == "completed":
            return ExchangeOrderStage.COMPLETED.value
        if status == "cancelled":
            raise SagaNotResumableError(
                f"Replacement order {self.entity_id} was cancelled and cannot be resumed"
            )
        return ExchangeOrderStage.CREATED.value
