"""
Return and Exchange Saga Tests

End-to-end sequencing of the return, refund and replacement-order
lifecycles against the fake commerce backend, including failure
classification and resume.

Run with: pytest tests/test_workflow.py -v
"""
import dataclasses

import pytest

from core.domain import SagaValidationError
from core.orchestration import SagaStatus
from core.presentation import NotificationLevel
from use_cases.returns.domain.policies import RefundRequirementPolicy
from use_cases.returns.domain.services import SETTLEMENT_NONE, SETTLEMENT_REFUND, settlement_label
from use_cases.returns.models import (
    ExchangeSubmission,
    ReplacementLine,
    ReturnSubmission,
    SelectionEntry,
    Tender,
)
from use_cases.returns.presentation import ReturnNotificationComposer
from use_cases.returns.workflow import ExchangeSaga, ReturnSaga

RETURN_CALLS = [
    "POST /returns",
    "PATCH /returns/501",
    "POST /returns/501/approve",
    "POST /returns/501/process",
    "POST /returns/501/complete",
]
REFUND_CALLS = [
    "POST /refunds",
    "POST /refunds/701/process",
    "POST /refunds/701/complete",
]
REPLACEMENT_CALLS = [
    "POST /orders",
    "PATCH /orders/901/complete",
]


def return_submission(**overrides) -> ReturnSubmission:
    data = {
        "selection": [SelectionEntry(order_item_id=10, quantity=2, product_barcode_id=70)],
        "return_reason": "defective_product",
        "tender": Tender(cash=1000),
    }
    data.update(overrides)
    return ReturnSubmission(**data)


def exchange_submission(**overrides) -> ExchangeSubmission:
    data = {
        "selection": [SelectionEntry(order_item_id=10, quantity=1, product_barcode_id=70)],
        "replacements": [
            ReplacementLine(
                product_id=9, batch_id=90, quantity=1, unit_price="800.00",
                barcode="8901000000090", barcode_id=95, available=4,
            )
        ],
        "return_reason": "size_issue",
        "tender": Tender(cash=340),
    }
    data.update(overrides)
    return ExchangeSubmission(**data)


# ============================================================================
# RETURN SAGA
# ============================================================================

@pytest.mark.asyncio
class TestReturnSaga:

    async def test_return_then_refund(self, backend, client, order):
        """2 of 3 units back at 500: return completes, then a refund for 1000."""
        saga = ReturnSaga(client, order, return_submission())

        result = await saga.run()

        assert result.status == SagaStatus.COMPLETED
        assert backend.paths() == RETURN_CALLS + REFUND_CALLS
        assert result.delta.difference == -1000
        assert result.settlement == "refund"
        assert result.return_number == "RET-501"
        assert result.refund_number == "REF-701"
        assert backend.calls[5].json["refund_method_details"]["cash"] == 1000
        assert backend.calls[0].json["received_at_store_id"] == 3

    async def test_idempotency_keys_share_saga_id(self, backend, client, order):
        saga = ReturnSaga(client, order, return_submission())
        await saga.run()

        assert all(c.idempotency_key.startswith(f"{saga.saga_id}:") for c in backend.calls)
        assert len({c.idempotency_key for c in backend.calls}) == len(backend.calls)

    async def test_validation_fails_before_any_call(self, backend, client, order):
        saga = ReturnSaga(client, order, return_submission(selection=[]))

        with pytest.raises(SagaValidationError):
            await saga.run()

        assert backend.calls == []

    async def test_failure_before_processing_is_failed(self, backend, client, order):
        backend.fail("POST", "/returns/501/approve", "Approval limit exceeded", status=422)
        saga = ReturnSaga(client, order, return_submission())

        result = await saga.run()

        assert result.status == SagaStatus.FAILED
        assert result.failed_stage == "return.approved"
        assert result.error == "Approval limit exceeded"
        assert backend.refunds == {}

    async def test_refund_failure_needs_reconciliation(self, backend, client, order):
        backend.fail("POST", "/refunds", "Cash drawer closed")
        saga = ReturnSaga(client, order, return_submission())

        result = await saga.run()

        assert result.status == SagaStatus.NEEDS_RECONCILIATION
        assert result.needs_reconciliation
        assert result.failed_stage == "refund.created"
        assert backend.returns[501]["status"] == "completed"

    async def test_resume_continues_with_refund(self, backend, client, order):
        backend.fail("POST", "/refunds/701/process", "Payment gateway down")
        saga = ReturnSaga(client, order, return_submission())
        await saga.run()
        issued = len(backend.calls)

        result = await saga.resume()

        assert result.status == SagaStatus.COMPLETED
        assert backend.paths()[issued:] == [
            "GET /refunds/701",
            "POST /refunds/701/process",
            "POST /refunds/701/complete",
        ]
        assert backend.paths().count("POST /returns") == 1

    async def test_resume_of_completed_saga_is_a_no_op(self, backend, client, order):
        saga = ReturnSaga(client, order, return_submission())
        await saga.run()
        issued = len(backend.calls)

        result = await saga.resume()

        assert result.status == SagaStatus.COMPLETED
        assert len(backend.calls) == issued


class TestRefundRequirement:

    def test_return_without_money_skips_refund(self):
        decision = RefundRequirementPolicy().evaluate({"kind": "return", "difference": 0.0})
        assert decision.is_denied

    def test_return_with_money_refunds(self):
        decision = RefundRequirementPolicy().evaluate({"kind": "return", "difference": -1000.0})
        assert decision.is_approved

    @pytest.mark.parametrize("difference", [0.004, -0.004, 1e-9])
    def test_sub_cent_noise_agrees_with_settlement(self, difference):
        decision = RefundRequirementPolicy().evaluate({"kind": "return", "difference": difference})

        assert decision.is_denied
        assert settlement_label(difference) == SETTLEMENT_NONE

    def test_one_cent_refunds(self):
        decision = RefundRequirementPolicy().evaluate({"kind": "return", "difference": -0.01})

        assert decision.is_approved
        assert settlement_label(-0.01) == SETTLEMENT_REFUND

    def test_exchange_always_refunds(self):
        decision = RefundRequirementPolicy().evaluate({"kind": "exchange", "difference": 0.0})
        assert decision.is_approved


# ============================================================================
# EXCHANGE SAGA
# ============================================================================

@pytest.mark.asyncio
class TestExchangeSaga:

    async def test_full_sequence(self, backend, client, order):
        saga = ExchangeSaga(client, order, exchange_submission())

        result = await saga.run()

        assert result.status == SagaStatus.COMPLETED
        assert backend.paths() == RETURN_CALLS + REFUND_CALLS + REPLACEMENT_CALLS
        assert result.replacement_order_number == "ORD-2024-0901"
        assert result.replacement_total == 800
        assert backend.orders[901]["status"] == "completed"

    async def test_difference_uses_inferred_vat(self, client, order):
        result = await ExchangeSaga(client, order, exchange_submission()).run()

        assert result.delta.vat_rate == pytest.approx(0.05)
        assert result.delta.difference == pytest.approx(340)
        assert result.settlement == "payment"
        assert result.tender.due == pytest.approx(0, abs=1e-6)

    async def test_replacement_order_payload(self, backend, client, order):
        await ExchangeSaga(client, order, exchange_submission()).run()
        create = next(c for c in backend.calls if c.method == "POST" and c.path == "/orders")

        assert create.json == {
            "order_type": "counter",
            "store_id": 3,
            "customer_id": 42,
            "items": [{
                "product_id": 9,
                "batch_id": 90,
                "quantity": 1,
                "unit_price": 800.0,
                "barcode": "8901000000090",
                "barcode_id": 95,
            }],
            "payment": {"payment_method_id": 1, "amount": 800.0, "payment_type": "full"},
            "notes": "Exchange from order #ORD-2024-0001 | Return: #RET-501",
        }

    async def test_replacement_fully_paid_even_when_customer_is_refunded(self, backend, client, order):
        """Returning 2 x 500 for one 300 item still pays the new order in full."""
        submission = exchange_submission(
            selection=[SelectionEntry(order_item_id=10, quantity=2)],
            replacements=[ReplacementLine(product_id=9, batch_id=90, quantity=1, unit_price=300)],
        )

        result = await ExchangeSaga(client, order, submission).run()

        create = next(c for c in backend.calls if c.method == "POST" and c.path == "/orders")
        assert create.json["payment"]["amount"] == 300
        assert result.settlement == "refund"

    async def test_exchange_refund_reference_and_notes(self, backend, client, order):
        await ExchangeSaga(client, order, exchange_submission()).run()
        by_path = {f"{c.method} {c.path}": c for c in backend.calls}

        assert by_path["POST /returns"].json["customer_notes"] == (
            "Exchange transaction - Original Order: ORD-2024-0001"
        )
        assert by_path["POST /refunds/701/complete"].json["transaction_reference"].startswith(
            "EXCHANGE-REFUND-"
        )

    async def test_exchange_store_overrides_original(self, backend, client, order):
        await ExchangeSaga(client, order, exchange_submission(exchange_store_id=8)).run()
        by_path = {f"{c.method} {c.path}": c for c in backend.calls}

        assert by_path["POST /returns"].json["received_at_store_id"] == 8
        assert by_path["POST /orders"].json["store_id"] == 8

    async def test_replacement_failure_needs_reconciliation(self, backend, client, order):
        backend.fail("POST", "/orders", "Stock reservation failed")
        saga = ExchangeSaga(client, order, exchange_submission())

        result = await saga.run()

        assert result.status == SagaStatus.NEEDS_RECONCILIATION
        assert result.failed_stage == "exchange_order.created"
        assert result.refund_number == "REF-701"
        assert result.replacement_order_id is None

    async def test_resume_creates_replacement_without_second_return(self, backend, client, order):
        backend.fail("POST", "/orders", "Stock reservation failed")
        saga = ExchangeSaga(client, order, exchange_submission())
        await saga.run()
        issued = len(backend.calls)

        result = await saga.resume()

        assert result.status == SagaStatus.COMPLETED
        assert backend.paths()[issued:] == REPLACEMENT_CALLS
        assert backend.paths().count("POST /returns") == 1
        assert backend.paths().count("POST /refunds") == 1

    async def test_empty_replacements_rejected(self, backend, client, order):
        with pytest.raises(SagaValidationError):
            await ExchangeSaga(client, order, exchange_submission(replacements=[])).run()

        assert backend.calls == []


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@pytest.mark.asyncio
class TestSagaNotifications:

    async def test_success(self, client, order):
        result = await ExchangeSaga(client, order, exchange_submission()).run()

        notification = ReturnNotificationComposer(currency="৳").compose_saga_result(result)

        assert notification.level == NotificationLevel.SUCCESS
        assert notification.refresh
        assert "Exchange processed successfully!" in notification.title
        assert any("Collect from customer: ৳340.00" in line for line in notification.details)

    async def test_success_without_return_number(self, client, order):
        result = await ReturnSaga(client, order, return_submission()).run()
        result = dataclasses.replace(result, return_number=None)

        notification = ReturnNotificationComposer().compose_saga_result(result)

        assert any(line.endswith("Return: #501") for line in notification.details)
        assert not any("#None" in line for line in notification.details)

    async def test_failure_names_the_stage(self, backend, client, order):
        backend.fail("POST", "/returns/501/process", "Inventory service unavailable")
        result = await ReturnSaga(client, order, return_submission()).run()

        notification = ReturnNotificationComposer().compose_saga_result(result)

        assert notification.level == NotificationLevel.ERROR
        assert notification.message == (
            "Processing return and restoring inventory failed: Inventory service unavailable"
        )

    async def test_failed_process_warns_inventory_may_be_restored(self, backend, client, order):
        backend.fail("POST", "/returns/501/process", "Gateway timeout", status=504)
        result = await ReturnSaga(client, order, return_submission()).run()

        notification = ReturnNotificationComposer().compose_saga_result(result)

        assert result.status == SagaStatus.FAILED
        assert notification.details[-1] == (
            "The backend may have restored inventory before the error; "
            "resume re-reads the return before continuing."
        )

    async def test_earlier_failure_has_no_inventory_warning(self, backend, client, order):
        backend.fail("POST", "/returns/501/approve", "Approver missing")
        result = await ReturnSaga(client, order, return_submission()).run()

        notification = ReturnNotificationComposer().compose_saga_result(result)

        assert not any("restored inventory" in line for line in notification.details)

    async def test_reconciliation(self, backend, client, order):
        backend.fail("POST", "/refunds", "Cash drawer closed")
        result = await ReturnSaga(client, order, return_submission()).run()

        notification = ReturnNotificationComposer().compose_saga_result(result)

        assert "Manual reconciliation required" in notification.title
        assert "Return: #RET-501" in notification.details
