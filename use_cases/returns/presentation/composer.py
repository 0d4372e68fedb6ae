"""
Returns Notification Composer.

Turns saga results and quotes into the operator notifications the console
shows at the end of a return or exchange.
All wording is centralized here for consistency.
"""

from typing import Callable, Dict, List

from core.orchestration import SagaStatus
from core.presentation import (
    Notification,
    NotificationComposer,
    NotificationLevel,
    NotificationTheme,
    TextFormatter,
)

from ..domain.services import SETTLEMENT_PAYMENT, SETTLEMENT_REFUND, FinancialDelta, TenderSummary
from ..stage_status import stage_label
from ..workflow import SagaResult

PROCESS_STAGE = "return.processed"


class ReturnsNotificationTheme(NotificationTheme):
    """Custom theme for return and exchange notifications."""

    def __init__(self):
        super().__init__()
        self.icons.update({
            "new_order": "🛒",
            "pay": "💳",
            "give_back": "💵",
            "even": "📊",
        })


class ReturnNotificationComposer(NotificationComposer):
    """
    Notification composer for the return and exchange sagas.

    Provides methods for building every notification those flows end with.
    """

    def __init__(self, currency: str = "৳"):
        super().__init__(theme=ReturnsNotificationTheme(), currency=currency)

    def get_builders(self) -> Dict[str, Callable]:
        """Return mapping of notification names to builder methods."""
        return {
            "saga": self.compose_saga_result,
            "settlement": self.compose_settlement_lines,
        }

    # =========================================================================
    # SAGA OUTCOME
    # =========================================================================

    def compose_saga_result(self, result: SagaResult) -> Notification:
        if result.status == SagaStatus.COMPLETED:
            return self._compose_success(result)
        if result.status == SagaStatus.NEEDS_RECONCILIATION:
            return self._compose_reconciliation(result)
        return self._compose_failure(result)

    def _compose_success(self, result: SagaResult) -> Notification:
        label = "Exchange" if result.kind == "exchange" else "Return"
        details = [f"{self.theme.icon('return')} Return: #{result.return_number or result.return_id}"]
        if result.refund_number or result.refund_id:
            details.append(f"{self.theme.icon('refund')} Refund: #{result.refund_number or result.refund_id}")
        if result.replacement_order_number or result.replacement_order_id:
            details.append(
                f"{self.theme.icon('new_order')} New Order: "
                f"#{result.replacement_order_number or result.replacement_order_id}"
            )
        details.extend(self.compose_settlement_lines(result.delta, result.tender))

        return Notification(
            level=NotificationLevel.SUCCESS,
            title=self._titled("success", f"{label} processed successfully!"),
            message=f"Order #{result.order_number}",
            details=details,
            refresh=True,
        )

    def _compose_failure(self, result: SagaResult) -> Notification:
        stage = stage_label(result.failed_stage) if result.failed_stage else "Saga"
        details = self._created_identifiers(result)
        if result.failed_stage == PROCESS_STAGE:
            # No confirmation came back, so the restore may still have happened
            details.append(
                "The backend may have restored inventory before the error; "
                "resume re-reads the return before continuing."
            )
        return Notification(
            level=NotificationLevel.ERROR,
            title=self._titled("error", f"{result.kind.capitalize()} failed"),
            message=f"{stage} failed: {result.error}",
            details=details,
        )

    def _compose_reconciliation(self, result: SagaResult) -> Notification:
        stage = stage_label(result.failed_stage) if result.failed_stage else "A later step"
        details = self._created_identifiers(result)
        details.append("Inventory has been restored; the money or replacement side did not finish.")
        return Notification(
            level=NotificationLevel.ERROR,
            title=self._titled("warning", "Manual reconciliation required"),
            message=f"{stage} failed: {result.error}",
            details=details,
            refresh=True,
        )

    def _created_identifiers(self, result: SagaResult) -> List[str]:
        lines = []
        if result.return_id:
            lines.append(f"Return: #{result.return_number or result.return_id}")
        if result.refund_id:
            lines.append(f"Refund: #{result.refund_number or result.refund_id}")
        if result.replacement_order_id:
            lines.append(f"New Order: #{result.replacement_order_number or result.replacement_order_id}")
        return lines

    # =========================================================================
    # SETTLEMENT
    # =========================================================================

    def compose_settlement_lines(self, delta: FinancialDelta, tender: TenderSummary) -> List[str]:
        """Net settlement instruction for the operator."""
        lines = []
        if delta.outcome == SETTLEMENT_PAYMENT:
            lines.append(
                f"{self.theme.icon('pay')} Collect from customer: {self._money(delta.amount_owed)}"
            )
        elif delta.outcome == SETTLEMENT_REFUND:
            lines.append(
                f"{self.theme.icon('give_back')} Give customer back: {self._money(delta.amount_owed)}"
            )
        else:
            lines.append(f"{self.theme.icon('even')} Even exchange (no difference)")

        if tender.total_tendered > 0:
            lines.append(f"Tendered: {self._money(tender.total_tendered)}")
        if tender.due > 0:
            lines.append(f"Outstanding: {TextFormatter.currency(tender.due, self.currency)}")
        return lines
