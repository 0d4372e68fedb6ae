"""
Bulk Defective-Item Tests

Vendor returns and disposals run one item at a time; a failing item is
counted and reported but never stops the rest.

Run with: pytest tests/test_bulk_defects.py -v
"""
import pytest

from core.domain import SagaValidationError
from core.presentation import NotificationLevel
from use_cases.defects import (
    BulkDefectRequest,
    BulkDisposalCoordinator,
    BulkVendorReturnCoordinator,
    DefectService,
)


def vendor_request(**overrides) -> BulkDefectRequest:
    data = {"defect_ids": [1, 2, 3], "vendor_id": 12, "notes": "Batch recall"}
    data.update(overrides)
    return BulkDefectRequest(**data)


@pytest.mark.asyncio
class TestBulkVendorReturn:

    async def test_partial_failure_is_counted(self, backend, client):
        """Item 2 rejects: two succeed, one fails, the loop carries on."""
        backend.fail("POST", "/defective-products/2/return-to-vendor", "Item already disposed", status=422)
        coordinator = BulkVendorReturnCoordinator(DefectService(client))

        result = await coordinator.run(vendor_request())

        assert result.success_count == 2
        assert result.error_count == 1
        assert result.total == 3
        assert result.succeeded == [1, 3]
        assert [(e.id, e.message) for e in result.errors] == [(2, "Item already disposed")]
        assert backend.paths() == [
            "POST /defective-products/1/return-to-vendor",
            "POST /defective-products/2/return-to-vendor",
            "POST /defective-products/3/return-to-vendor",
        ]

        notification = coordinator.compose(result)
        assert notification.level == NotificationLevel.WARNING
        assert notification.message == "Returned 2 items. 1 failed."
        assert notification.details == ["Item 2: Item already disposed"]
        assert notification.refresh

    async def test_all_succeed(self, backend, client):
        coordinator = BulkVendorReturnCoordinator(DefectService(client))

        result = await coordinator.run(vendor_request())

        assert backend.calls[0].json == {"vendor_id": 12, "vendor_notes": "Batch recall"}
        notification = coordinator.compose(result)
        assert notification.level == NotificationLevel.SUCCESS
        assert notification.message == "Successfully returned 3 items to vendor."

    async def test_single_item_wording(self, client):
        coordinator = BulkVendorReturnCoordinator(DefectService(client))

        result = await coordinator.run(vendor_request(defect_ids=[4]))

        assert coordinator.compose(result).message == "Successfully returned 1 item to vendor."

    async def test_all_fail(self, backend, client):
        for defect_id in (1, 2):
            backend.fail("POST", f"/defective-products/{defect_id}/return-to-vendor", message=None)
        coordinator = BulkVendorReturnCoordinator(DefectService(client))

        result = await coordinator.run(vendor_request(defect_ids=[1, 2]))

        notification = coordinator.compose(result)
        assert result.success_count == 0
        assert not result.refresh_requested
        assert notification.level == NotificationLevel.ERROR
        assert notification.message == "Failed to return 2 items"
        assert notification.details == ["Item 1: Unknown error", "Item 2: Unknown error"]

    @pytest.mark.parametrize("overrides,field", [
        ({"defect_ids": []}, "defect_ids"),
        ({"vendor_id": None}, "vendor_id"),
        ({"notes": "   "}, "notes"),
    ])
    async def test_validation_before_any_call(self, backend, client, overrides, field):
        coordinator = BulkVendorReturnCoordinator(DefectService(client))

        with pytest.raises(SagaValidationError) as exc_info:
            await coordinator.run(vendor_request(**overrides))

        assert [e.field for e in exc_info.value.errors] == [field]
        assert backend.calls == []


@pytest.mark.asyncio
class TestBulkDisposal:

    async def test_disposal_needs_no_vendor(self, backend, client):
        coordinator = BulkDisposalCoordinator(DefectService(client))

        result = await coordinator.run(vendor_request(vendor_id=None, notes="Water damage"))

        assert result.success_count == 3
        assert backend.calls[0].path == "/defective-products/1/dispose"
        assert backend.calls[0].json == {"disposal_notes": "Water damage"}
        assert coordinator.compose(result).message == "Successfully disposed 3 items."


@pytest.mark.asyncio
class TestDefectService:

    async def test_mark_sold(self, backend, client):
        await DefectService(client).mark_sold(7, order_id=1, selling_price=250.0, sale_notes="Sold as-is")

        assert backend.calls[0].path == "/defective-products/7/sell"
        assert backend.calls[0].json == {"order_id": 1, "selling_price": 250.0, "sale_notes": "Sold as-is"}
        assert backend.defects[7]["status"] == "sold"
