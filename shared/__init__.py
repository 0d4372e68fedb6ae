"""
Shared modules for the Returns & Exchanges Orchestrator.

This package contains resource path configuration used across the application.
"""

from shared.api_paths import (
    RESOURCE_PATHS,
    TRANSITIONS,
    get_resource_path,
    get_transition,
)

__all__ = [
    "RESOURCE_PATHS",
    "TRANSITIONS",
    "get_resource_path",
    "get_transition",
]
