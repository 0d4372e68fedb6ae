"""
Defective Products Use Case.

Bulk transitions over independently selected defective items:
returning them to a vendor or disposing of them.

Usage:
    from use_cases.defects import BulkVendorReturnCoordinator, DefectService

    coordinator = BulkVendorReturnCoordinator(DefectService(client))
    result = await coordinator.run(request)
"""

from use_cases.defects.services import DefectService
from use_cases.defects.coordinator import (
    BulkDefectRequest,
    BulkDisposalCoordinator,
    BulkTransitionResult,
    BulkVendorReturnCoordinator,
)

__all__ = [
    "DefectService",
    "BulkDefectRequest",
    "BulkDisposalCoordinator",
    "BulkTransitionResult",
    "BulkVendorReturnCoordinator",
]
