"""
Returns Orchestrator.

Entry point of the returns use case. It extends SagaOrchestrator and wires
the snapshot loader, the sagas, the per-order session guard and the
notification composer together for the HTTP layer.
"""

import logging
from typing import Any, Callable, Dict, Optional

from config import settings
from core.orchestration import SagaOrchestrator, SagaStatus
from core.session import SagaInProgressError

from .domain.policies import SelectionValidator, TenderValidator
from .domain.services import FinancialDeltaCalculator, TenderSplitter, infer_vat_rate
from .models import ExchangeSubmission, Order, QuoteRequest, ReturnSubmission
from .presentation import ReturnNotificationComposer
from .services import OrderService
from .session import ReturnFlowStep, ReturnSessionContext
from .snapshot import OrderSnapshotLoader
from .workflow import ExchangeSaga, OrderSaga, ReturnSaga, SagaResult

logger = logging.getLogger(__name__)


_FLOW_STEPS = {
    SagaStatus.COMPLETED: ReturnFlowStep.COMPLETED,
    SagaStatus.FAILED: ReturnFlowStep.FAILED,
    SagaStatus.NEEDS_RECONCILIATION: ReturnFlowStep.NEEDS_RECONCILIATION,
}


class ReturnsOrchestrator(SagaOrchestrator):
    """
    Runs return and exchange sagas, one at a time per order.

    A saga that fails is kept so it can be resumed; until then no new
    saga may start for the same order. A completed saga is dropped along
    with its order session, and only its result is remembered.
    """

    def __init__(self):
        super().__init__(
            session_context_class=ReturnSessionContext,
            result_history=settings.saga_result_history,
        )

    def create_notification_composer(self) -> ReturnNotificationComposer:
        return ReturnNotificationComposer(currency=settings.currency_symbol)

    # =========================================================================
    # READS
    # =========================================================================

    async def load_order(self, client: Any, order_id: int) -> Order:
        return await OrderSnapshotLoader(OrderService(client)).load(order_id)

    async def cancel_order(self, client: Any, order_id: int, reason: str) -> Dict[str, Any]:
        return await OrderService(client).cancel(order_id, reason)

    async def quote(self, client: Any, order_id: int, request: QuoteRequest) -> Dict[str, Any]:
        """
        Price a selection and replacement set without side effects.

        The VAT rate is the operator's percentage when given, otherwise the
        rate implied by the original order.
        """
        order = await self.load_order(client, order_id)
        data = {"order": order, "selection": request.selection, "tender": request.tender}
        if request.selection:
            SelectionValidator().check(data)
        TenderValidator().check(data)

        if request.vat_percent is not None:
            vat_rate = request.vat_percent / 100
        else:
            vat_rate = infer_vat_rate(order)

        delta = FinancialDeltaCalculator().execute(
            order, request.selection, request.replacements, vat_rate=vat_rate
        )
        tender = TenderSplitter().execute(request.tender, delta.difference)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "delta": delta.to_dict(),
            "tender": tender.to_dict(),
            "settlement": delta.outcome,
            "settlement_lines": self.composer.compose_settlement_lines(delta, tender),
        }

    # =========================================================================
    # SAGAS
    # =========================================================================

    async def start_return(self, client: Any, order_id: int, submission: ReturnSubmission) -> SagaResult:
        return await self._start(
            client, order_id, lambda order: ReturnSaga(client, order, submission)
        )

    async def start_exchange(self, client: Any, order_id: int, submission: ExchangeSubmission) -> SagaResult:
        return await self._start(
            client, order_id, lambda order: ExchangeSaga(client, order, submission)
        )

    async def resume(self, client: Any, saga_id: str) -> SagaResult:
        saga: Optional[OrderSaga] = self.get_saga(saga_id)
        if saga is None:
            finished = self.get_retired_result(saga_id)
            if finished is None:
                raise KeyError(saga_id)
            return finished

        session = self.session_manager.begin_processing(saga.order_key)
        try:
            saga.bind_client(client)
            result = await saga.resume()
        finally:
            self._release(session, saga)
        return result

    def saga_result(self, saga_id: str) -> Optional[SagaResult]:
        saga = self.get_saga(saga_id)
        if saga is not None:
            return saga.result()
        return self.get_retired_result(saga_id)

    async def _start(
        self, client: Any, order_id: int, build: Callable[[Order], OrderSaga]
    ) -> SagaResult:
        key = str(order_id)
        session = self.session_manager.get_or_create(key)
        if session.has_open_saga():
            raise SagaInProgressError(
                key, f"has an unfinished saga {session.saga_id}; resume it first"
            )

        self.session_manager.begin_processing(key)
        saga: Optional[OrderSaga] = None
        try:
            order = await self.load_order(client, order_id)
            saga = build(order)
            saga.validate()

            session.order_number = order.order_number
            session.saga_id = saga.saga_id
            session.attach_saga(saga)
            self.register_saga(saga.saga_id, saga)
            session.set_flow_step(ReturnFlowStep.RUNNING)

            result = await saga.run()
        finally:
            self._release(session, saga)

        composed = self.composer.compose_saga_result(result)
        logger.info(f"Order {order_id}: {composed.title} {composed.message}")
        return result

    def _release(self, session: ReturnSessionContext, saga: Optional[OrderSaga]):
        step = _FLOW_STEPS.get(saga.status, ReturnFlowStep.NOT_STARTED) if saga else ReturnFlowStep.NOT_STARTED
        self.session_manager.end_processing(session.key, step.value)
        session.flow_step = step

        if saga is not None and saga.status == SagaStatus.COMPLETED:
            self.retire_saga(saga.saga_id, saga.result())
            session.attach_saga(None)
        if not session.has_open_saga():
            self.session_manager.clear(session.key)
