"""
Returns-specific stage status messages for saga progress logs.

Each stage maps to a (start_message, end_message, icon) tuple.
Stage names are "<resource>.<stage reached>".
"""

from typing import Dict

RETURN_STAGE_STATUS_MESSAGES: Dict[str, tuple] = {
    # Return lifecycle
    "return.created": (
        "Creating return request...",
        "Return created",
        "write",
    ),
    "return.quality_checked": (
        "Recording quality check...",
        "Quality check passed",
        "check-circle",
    ),
    "return.approved": (
        "Approving return...",
        "Return approved",
        "check",
    ),
    "return.processed": (
        "Processing return and restoring inventory...",
        "Inventory restored",
        "cube",
    ),
    "return.completed": (
        "Completing return...",
        "Return completed",
        "check-circle-filled",
    ),

    # Refund lifecycle
    "refund.created": (
        "Creating refund...",
        "Refund created",
        "write",
    ),
    "refund.processed": (
        "Processing refund...",
        "Refund processing",
        "reload",
    ),
    "refund.completed": (
        "Completing refund...",
        "Refund completed",
        "check-circle-filled",
    ),

    # Replacement order
    "exchange_order.created": (
        "Creating replacement order...",
        "Replacement order created",
        "suitcase",
    ),
    "exchange_order.completed": (
        "Completing replacement order...",
        "Replacement order completed",
        "check-circle-filled",
    ),
}


def stage_label(stage_name: str) -> str:
    """Short operator-facing name of a stage, taken from its start message."""
    start = RETURN_STAGE_STATUS_MESSAGES.get(stage_name, (stage_name,))[0]
    return start.rstrip(".")
