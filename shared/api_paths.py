"""
Commerce Backend Resource Paths.

Centralized path configuration for every remote resource the sagas touch.
This keeps the services, scripts and tests agreeing on the same endpoints.
"""

# =============================================================================
# RESOURCE BASE PATHS
# =============================================================================

# Logical resource name -> base path under COMMERCE_API_URL
RESOURCE_PATHS = {
    "orders": "/orders",
    "returns": "/returns",
    "refunds": "/refunds",
    "defects": "/defective-products",
}

# =============================================================================
# TRANSITION ENDPOINTS
# =============================================================================

# Logical transition name -> (HTTP method, path suffix appended to "<base>/{id}")
TRANSITIONS = {
    "returns": {
        "update": ("PATCH", ""),
        "approve": ("POST", "/approve"),
        "process": ("POST", "/process"),
        "complete": ("POST", "/complete"),
    },
    "refunds": {
        "process": ("POST", "/process"),
        "complete": ("POST", "/complete"),
    },
    "orders": {
        "complete": ("PATCH", "/complete"),
        "cancel": ("PATCH", "/cancel"),
    },
    "defects": {
        "sell": ("POST", "/sell"),
        "return_to_vendor": ("POST", "/return-to-vendor"),
        "dispose": ("POST", "/dispose"),
    },
}

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_resource_path(logical_name: str) -> str:
    """Get the base path for a logical resource name."""
    if logical_name in RESOURCE_PATHS:
        return RESOURCE_PATHS[logical_name]
    raise ValueError(f"Unknown resource: {logical_name}")


def get_transition(logical_name: str, transition: str) -> tuple:
    """Get (method, suffix) for a transition on a resource."""
    try:
        return TRANSITIONS[logical_name][transition]
    except KeyError:
        raise ValueError(f"Unknown transition '{transition}' for resource '{logical_name}'")
