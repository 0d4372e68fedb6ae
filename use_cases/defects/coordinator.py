"""
Bulk Defect Transition Coordinator.

Applies one remote transition to each of a list of independently selected
defective items. Items are processed one after another so every failure
can be attributed to its item; a failure never stops the remaining items.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from core.data import RemoteCallError
from core.domain import Validator, ValidationError
from core.presentation import Notification, NotificationLevel, TextFormatter

from .services import DefectService

logger = logging.getLogger(__name__)


class BulkDefectRequest(BaseModel):
    """Bulk transition over independently selected defective items."""
    defect_ids: List[int]
    vendor_id: Optional[int] = None
    notes: str = ""


@dataclass
class ItemFailure:
    id: int
    message: str

    def to_line(self) -> str:
        return f"Item {self.id}: {self.message}"


@dataclass
class BulkTransitionResult:
    """Tally of a bulk run: every id ends up counted exactly once."""
    action: str
    success_count: int = 0
    error_count: int = 0
    succeeded: List[int] = field(default_factory=list)
    errors: List[ItemFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.error_count

    @property
    def refresh_requested(self) -> bool:
        return self.success_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "succeeded": list(self.succeeded),
            "errors": [{"id": e.id, "message": e.message} for e in self.errors],
            "refresh": self.refresh_requested,
        }


# =============================================================================
# VALIDATION
# =============================================================================

class BulkDefectValidator(Validator):
    """
    Validates a bulk request before any call.

    Data:
        - defect_ids: selected ids
        - vendor_id: required when require_vendor is set
        - notes: free-text notes (required)
    """

    def __init__(self, require_vendor: bool = True):
        self.require_vendor = require_vendor

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []
        if not data.get("defect_ids"):
            errors.append(ValidationError(
                field="defect_ids",
                message="Select at least one item",
                code="min_length",
            ))
        if self.require_vendor and not data.get("vendor_id"):
            errors.append(ValidationError(
                field="vendor_id",
                message="A vendor is required",
                code="required",
            ))
        if not (data.get("notes") or "").strip():
            errors.append(ValidationError(
                field="notes",
                message="Notes are required",
                code="required",
            ))
        return errors


# =============================================================================
# COORDINATOR
# =============================================================================

class BulkTransitionCoordinator:
    """
    Sequential, non-aborting loop over a single-transition bulk action.

    Subclasses set `action` and implement `build_validator`, `_transition`
    and `compose`.
    """

    action = ""

    def __init__(self, service: DefectService):
        self.service = service

    def build_validator(self) -> Validator:
        raise NotImplementedError

    async def _transition(self, defect_id: int, request: BulkDefectRequest) -> Any:
        raise NotImplementedError

    async def run(self, request: BulkDefectRequest) -> BulkTransitionResult:
        self.build_validator().check(request.model_dump())

        result = BulkTransitionResult(action=self.action)
        logger.info(f"Bulk {self.action}: {len(request.defect_ids)} items")
        for defect_id in request.defect_ids:
            try:
                await self._transition(defect_id, request)
            except RemoteCallError as e:
                result.error_count += 1
                result.errors.append(ItemFailure(id=defect_id, message=e.message))
                logger.warning(f"Bulk {self.action}: item {defect_id} failed: {e.message}")
                continue
            result.success_count += 1
            result.succeeded.append(defect_id)

        logger.info(
            f"Bulk {self.action} finished: {result.success_count} succeeded, "
            f"{result.error_count} failed"
        )
        return result

    def compose(self, result: BulkTransitionResult) -> Notification:
        raise NotImplementedError


class BulkVendorReturnCoordinator(BulkTransitionCoordinator):
    """Returns selected defective items to a vendor."""

    action = "return_to_vendor"

    def build_validator(self) -> Validator:
        return BulkDefectValidator(require_vendor=True)

    async def _transition(self, defect_id: int, request: BulkDefectRequest) -> Any:
        return await self.service.return_to_vendor(defect_id, request.vendor_id, request.notes)

    def compose(self, result: BulkTransitionResult) -> Notification:
        ok = TextFormatter.pluralize(result.success_count, "item")
        failed = TextFormatter.pluralize(result.error_count, "item")
        if result.success_count > 0 and result.error_count == 0:
            return Notification(
                level=NotificationLevel.SUCCESS,
                title="Returned to vendor",
                message=f"Successfully returned {ok} to vendor.",
                refresh=True,
            )
        if result.success_count > 0:
            return Notification(
                level=NotificationLevel.WARNING,
                title="Partially returned to vendor",
                message=f"Returned {ok}. {result.error_count} failed.",
                details=[e.to_line() for e in result.errors],
                refresh=True,
            )
        return Notification(
            level=NotificationLevel.ERROR,
            title="Return to vendor failed",
            message=f"Failed to return {failed}",
            details=[e.to_line() for e in result.errors],
        )


class BulkDisposalCoordinator(BulkTransitionCoordinator):
    """Disposes selected defective items."""

    action = "dispose"

    def build_validator(self) -> Validator:
        return BulkDefectValidator(require_vendor=False)

    async def _transition(self, defect_id: int, request: BulkDefectRequest) -> Any:
        return await self.service.dispose(defect_id, request.notes)

    def compose(self, result: BulkTransitionResult) -> Notification:
        ok = TextFormatter.pluralize(result.success_count, "item")
        failed = TextFormatter.pluralize(result.error_count, "item")
        if result.success_count > 0 and result.error_count == 0:
            return Notification(
                level=NotificationLevel.SUCCESS,
                title="Disposed",
                message=f"Successfully disposed {ok}.",
                refresh=True,
            )
        if result.success_count > 0:
            return Notification(
                level=NotificationLevel.WARNING,
                title="Partially disposed",
                message=f"Disposed {ok}. {result.error_count} failed.",
                details=[e.to_line() for e in result.errors],
                refresh=True,
            )
        return Notification(
            level=NotificationLevel.ERROR,
            title="Disposal failed",
            message=f"Failed to dispose {failed}",
            details=[e.to_line() for e in result.errors],
        )
