"""
Return and Exchange Sagas.

A saga owns one order's confirmed return or exchange. It validates the
request locally, prices it, then drives the lifecycle drivers in order:

    return -> refund (when money moves)                      (ReturnSaga)
    return -> refund -> replacement order                    (ExchangeSaga)

A failed saga is kept in memory with its drivers positioned where the
backend stopped. `resume()` re-reads the remote state of whatever was
started and carries on from there instead of creating a second return.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import settings
from core.data import RemoteCallError
from core.orchestration import SagaNotResumableError, SagaStatus
from stage_status import StageTracker

from .domain.policies import (
    ExchangeSubmissionValidator,
    RefundRequirementPolicy,
    ReturnSubmissionValidator,
)
from .domain.services import (
    FinancialDelta,
    FinancialDeltaCalculator,
    TenderSplitter,
    TenderSummary,
    infer_vat_rate,
)
from .lifecycle import (
    CreateReturnPayload,
    ExchangeOrderCreator,
    LifecycleDriver,
    RefundLifecycleDriver,
    ReturnLifecycleDriver,
)
from .models import ExchangeSubmission, Order, ReturnSubmission
from .services import OrderService, RefundService, ReturnService
from .stage_status import RETURN_STAGE_STATUS_MESSAGES

logger = logging.getLogger(__name__)


@dataclass
class SagaResult:
    """Snapshot of a saga's outcome, safe to hand to the HTTP layer."""
    saga_id: str
    kind: str
    order_id: int
    order_number: str
    status: SagaStatus
    delta: FinancialDelta
    tender: TenderSummary
    settlement: str
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    return_id: Optional[int] = None
    return_number: Optional[str] = None
    refund_id: Optional[int] = None
    refund_number: Optional[str] = None
    replacement_order_id: Optional[int] = None
    replacement_order_number: Optional[str] = None
    replacement_total: Optional[float] = None
    steps: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def needs_reconciliation(self) -> bool:
        return self.status == SagaStatus.NEEDS_RECONCILIATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "saga_id": self.saga_id,
            "kind": self.kind,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "status": self.status.value,
            "failed_stage": self.failed_stage,
            "error": self.error,
            "return_id": self.return_id,
            "return_number": self.return_number,
            "refund_id": self.refund_id,
            "refund_number": self.refund_number,
            "replacement_order_id": self.replacement_order_id,
            "replacement_order_number": self.replacement_order_number,
            "replacement_total": self.replacement_total,
            "delta": self.delta.to_dict(),
            "tender": self.tender.to_dict(),
            "settlement": self.settlement,
            "steps": list(self.steps),
        }


class OrderSaga:
    """
    Shared mechanics of the return and exchange sagas.

    Subclasses build their drivers in __init__ and implement `_validation_data`
    and `_drive`.
    """

    kind = ""
    reference_kind = ""

    def __init__(self, client: Any, order: Order, saga_id: Optional[str] = None):
        self.saga_id = saga_id or uuid.uuid4().hex
        self.order = order
        self.tracker = StageTracker(
            stage_messages=RETURN_STAGE_STATUS_MESSAGES,
            saga_key=self.saga_id,
        )
        self.status = SagaStatus.PENDING
        self.failed_stage: Optional[str] = None
        self.error: Optional[str] = None
        self.delta: Optional[FinancialDelta] = None
        self.tender_summary: Optional[TenderSummary] = None
        self._client = client

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def order_key(self) -> str:
        return str(self.order.id)

    @property
    def drivers(self) -> List[LifecycleDriver]:
        return []

    @property
    def is_resumable(self) -> bool:
        return self.status in (SagaStatus.FAILED, SagaStatus.NEEDS_RECONCILIATION)

    @property
    def return_driver(self) -> ReturnLifecycleDriver:
        raise NotImplementedError

    def bind_client(self, client: Any):
        """Point every driver at a (possibly re-authenticated) client."""
        self._client = client
        self._bind_services(client)

    def _bind_services(self, client: Any):
        raise NotImplementedError

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def validate(self):
        """Raise SagaValidationError before anything remote happens."""
        raise NotImplementedError

    def price(self):
        raise NotImplementedError

    async def run(self) -> SagaResult:
        """Validate, price and drive every stage from the start."""
        self.validate()
        self.price()
        logger.info(
            f"[{self.saga_id}] Starting {self.kind} for order {self.order.order_number} "
            f"(difference {self.delta.difference:.2f}, {self.delta.outcome})"
        )
        return await self._execute()

    async def resume(self) -> SagaResult:
        """
        Continue a failed saga.

        Every driver that created a remote entity but did not finish is
        re-read first, so the next transition matches the backend's state.
        """
        if self.status == SagaStatus.COMPLETED:
            return self.result()
        if not self.is_resumable:
            raise SagaNotResumableError(f"Saga {self.saga_id} is {self.status.value}")

        logger.info(f"[{self.saga_id}] Resuming {self.kind} after {self.failed_stage}")
        for driver in self.drivers:
            if driver.has_started and not driver.is_finished:
                await driver.refresh()
        return await self._execute()

    async def _execute(self) -> SagaResult:
        self.status = SagaStatus.RUNNING
        self.failed_stage = None
        self.error = None
        try:
            await self._drive()
        except RemoteCallError as e:
            self._record_failure(e.message)
            return self.result()

        self.status = SagaStatus.COMPLETED
        logger.info(f"[{self.saga_id}] {self.kind.capitalize()} completed for order {self.order.order_number}")
        return self.result()

    async def _drive(self):
        raise NotImplementedError

    def _record_failure(self, message: str):
        failed = self.tracker.failed_step
        self.failed_stage = failed.stage if failed else None
        self.error = message
        if self.return_driver.inventory_restored:
            self.status = SagaStatus.NEEDS_RECONCILIATION
            logger.warning(
                f"[{self.saga_id}] Order {self.order.order_number}: inventory restored by return "
                f"{self.return_driver.return_number or self.return_driver.return_id} but "
                f"{self.failed_stage} failed. Manual reconciliation required."
            )
        else:
            self.status = SagaStatus.FAILED
            logger.error(f"[{self.saga_id}] {self.kind.capitalize()} failed at {self.failed_stage}: {message}")

    def result(self) -> SagaResult:
        raise NotImplementedError

    def _base_result(self) -> Dict[str, Any]:
        driver = self.return_driver
        return {
            "saga_id": self.saga_id,
            "kind": self.kind,
            "order_id": self.order.id,
            "order_number": self.order.order_number,
            "status": self.status,
            "delta": self.delta,
            "tender": self.tender_summary,
            "settlement": self.delta.outcome,
            "failed_stage": self.failed_stage,
            "error": self.error,
            "return_id": driver.return_id,
            "return_number": driver.return_number,
            "steps": self.tracker.to_list(),
        }

    def _store_id(self, requested: Optional[int]) -> Optional[int]:
        if requested:
            return requested
        return self.order.store.id if self.order.store else None


# =============================================================================
# RETURN SAGA
# =============================================================================

class ReturnSaga(OrderSaga):
    """Return of selected lines, refunded when money moves."""

    kind = "return"
    reference_kind = "ORD"

    def __init__(
        self,
        client: Any,
        order: Order,
        submission: ReturnSubmission,
        saga_id: Optional[str] = None,
    ):
        super().__init__(client, order, saga_id)
        self.submission = submission
        self.store_id = self._store_id(submission.received_at_store_id)
        self.refund_policy = RefundRequirementPolicy()
        self.refund_required = False

        self._return = ReturnLifecycleDriver(
            ReturnService(client),
            self.saga_id,
            self.tracker,
            create_payload=CreateReturnPayload(
                order_id=order.id,
                received_at_store_id=self.store_id,
                return_reason=submission.return_reason,
                return_type=submission.return_type,
                items=submission.selection,
                customer_notes=submission.customer_notes or "Return initiated at counter",
            ),
            quality_check_notes=settings.quality_check_notes,
            approval_notes=settings.approval_notes,
        )
        self._refund = RefundLifecycleDriver(
            RefundService(client),
            self.saga_id,
            self.tracker,
            reference_kind=self.reference_kind,
            refund_method_details=TenderSplitter().refund_method_details(submission.tender),
            internal_notes=f"Refund for order {order.order_number}",
        )

    @property
    def return_driver(self) -> ReturnLifecycleDriver:
        return self._return

    @property
    def refund_driver(self) -> RefundLifecycleDriver:
        return self._refund

    @property
    def drivers(self) -> List[LifecycleDriver]:
        return [self._return, self._refund]

    def _bind_services(self, client: Any):
        self._return.service = ReturnService(client)
        self._refund.service = RefundService(client)

    def validate(self):
        ReturnSubmissionValidator().check({
            "order": self.order,
            "selection": self.submission.selection,
            "return_reason": self.submission.return_reason,
            "return_type": self.submission.return_type,
            "store_id": self.store_id,
            "tender": self.submission.tender,
        })

    def price(self):
        self.delta = FinancialDeltaCalculator().execute(self.order, self.submission.selection)
        self.tender_summary = TenderSplitter().execute(self.submission.tender, self.delta.difference)
        decision = self.refund_policy.evaluate({"kind": self.kind, "difference": self.delta.difference})
        self.refund_required = decision.is_approved
        logger.debug(f"[{self.saga_id}] Refund decision: {decision.reason}")

    async def _drive(self):
        await self._return.run()
        if self.refund_required:
            self._refund.bind_return(self._return)
            await self._refund.run()

    def result(self) -> SagaResult:
        return SagaResult(
            **self._base_result(),
            refund_id=self._refund.refund_id,
            refund_number=self._refund.refund_number,
        )


# =============================================================================
# EXCHANGE SAGA
# =============================================================================

class ExchangeSaga(OrderSaga):
    """Return of selected lines, full refund, then a fully paid replacement order."""

    kind = "exchange"
    reference_kind = "EXCHANGE"

    def __init__(
        self,
        client: Any,
        order: Order,
        submission: ExchangeSubmission,
        saga_id: Optional[str] = None,
    ):
        super().__init__(client, order, saga_id)
        self.submission = submission
        self.store_id = self._store_id(submission.exchange_store_id)

        self._return = ReturnLifecycleDriver(
            ReturnService(client),
            self.saga_id,
            self.tracker,
            create_payload=CreateReturnPayload(
                order_id=order.id,
                received_at_store_id=self.store_id,
                return_reason=submission.return_reason,
                return_type=submission.return_type,
                items=submission.selection,
                customer_notes=f"Exchange transaction - Original Order: {order.order_number}",
            ),
            quality_check_notes=f"Exchange - {settings.quality_check_notes}",
            approval_notes=f"Exchange - {settings.approval_notes}",
        )
        self._refund = RefundLifecycleDriver(
            RefundService(client),
            self.saga_id,
            self.tracker,
            reference_kind=self.reference_kind,
            refund_method_details=TenderSplitter().refund_method_details(submission.tender),
            internal_notes=f"Full refund for exchange - Original Order: {order.order_number}",
        )
        self._replacement = ExchangeOrderCreator(
            OrderService(client),
            self.saga_id,
            self.tracker,
            order_type=order.order_type,
            store_id=self.store_id or 0,
            customer_id=order.customer.id if order.customer else None,
            replacements=submission.replacements,
            payment_method_id=settings.exchange_payment_method_id,
            original_order_number=order.order_number,
        )

    @property
    def return_driver(self) -> ReturnLifecycleDriver:
        return self._return

    @property
    def refund_driver(self) -> RefundLifecycleDriver:
        return self._refund

    @property
    def replacement_driver(self) -> ExchangeOrderCreator:
        return self._replacement

    @property
    def drivers(self) -> List[LifecycleDriver]:
        return [self._return, self._refund, self._replacement]

    def _bind_services(self, client: Any):
        self._return.service = ReturnService(client)
        self._refund.service = RefundService(client)
        self._replacement.service = OrderService(client)

    def validate(self):
        ExchangeSubmissionValidator().check({
            "order": self.order,
            "selection": self.submission.selection,
            "replacements": self.submission.replacements,
            "return_reason": self.submission.return_reason,
            "return_type": self.submission.return_type,
            "store_id": self.store_id,
            "tender": self.submission.tender,
        })

    def price(self):
        self.delta = FinancialDeltaCalculator().execute(
            self.order,
            self.submission.selection,
            self.submission.replacements,
            vat_rate=infer_vat_rate(self.order),
        )
        self.tender_summary = TenderSplitter().execute(self.submission.tender, self.delta.difference)

    async def _drive(self):
        await self._return.run()
        self._refund.bind_return(self._return)
        await self._refund.run()
        self._replacement.bind_refund(self._return, self._refund)
        await self._replacement.run()

    def result(self) -> SagaResult:
        return SagaResult(
            **self._base_result(),
            refund_id=self._refund.refund_id,
            refund_number=self._refund.refund_number,
            replacement_order_id=self._replacement.order_id,
            replacement_order_number=self._replacement.order_number,
            replacement_total=self._replacement.new_order_total,
        )
