"""
Data Layer Base Classes.

The data layer provides the remote-repository pattern for data access.
Every resource of the commerce backend (orders, returns, refunds, defects)
is reached through a RemoteResource subclass that owns its paths and
payload shapes, while the shared CommerceApiClient owns the transport.

Key principles:
- Resources handle remote CRUD and state transitions only
- No business logic in resources
- Every call unwraps the backend's {success, message, data} envelope
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, TYPE_CHECKING

from shared.api_paths import get_resource_path, get_transition

if TYPE_CHECKING:
    from api_client import CommerceApiClient

# Type variable for entity types
T = TypeVar("T")


class RemoteCallError(Exception):
    """
    A remote call to the commerce backend failed.

    Attributes:
        message: The backend's message when available, else a fallback
        status_code: HTTP status code (None for transport failures)
        payload: The decoded error body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


@dataclass
class ListFilters:
    """Filters and pagination for list queries."""
    page: int = 1
    per_page: int = 20
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": self.page, "per_page": self.per_page}
        if self.sort_by:
            params["sort_by"] = self.sort_by
        if self.sort_order:
            params["sort_order"] = self.sort_order
        for key, value in self.filters.items():
            if value is not None:
                params[key] = value
        return params


@dataclass
class Page(Generic[T]):
    """One page of a paginated list response."""
    data: List[T]
    total: int
    current_page: int
    last_page: int

    @property
    def has_more(self) -> bool:
        return self.current_page < self.last_page

    @classmethod
    def from_payload(cls, payload: Any) -> "Page[Dict[str, Any]]":
        """Build a page from a paginated payload, tolerating a bare list."""
        if isinstance(payload, list):
            return cls(data=payload, total=len(payload), current_page=1, last_page=1)
        payload = payload or {}
        return cls(
            data=payload.get("data") or [],
            total=payload.get("total") or 0,
            current_page=payload.get("current_page") or 1,
            last_page=payload.get("last_page") or 1,
        )


class RemoteResource:
    """
    Base class for remote resources.

    A RemoteResource provides access to one resource family of the
    commerce backend. Subclasses set `resource` to the logical name
    registered in shared.api_paths.

    Example:
        class RefundService(RemoteResource):
            resource = "refunds"

            async def process(self, refund_id: int) -> Dict[str, Any]:
                return await self._transition(refund_id, "process")
    """

    resource: str = ""

    def __init__(self, client: "CommerceApiClient"):
        self._client = client
        self._base_path = get_resource_path(self.resource)

    def _path(self, entity_id: Optional[Any] = None, suffix: str = "") -> str:
        if entity_id is None:
            return f"{self._base_path}{suffix}"
        return f"{self._base_path}/{entity_id}{suffix}"

    async def _get(
        self,
        entity_id: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        fallback_error: str = "Request failed",
    ) -> Any:
        return await self._client.request(
            "GET", self._path(entity_id), params=params, fallback_error=fallback_error
        )

    async def _create(
        self,
        payload: Dict[str, Any],
        idempotency_key: Optional[str] = None,
        fallback_error: str = "Request failed",
    ) -> Any:
        return await self._client.request(
            "POST",
            self._path(),
            json=payload,
            idempotency_key=idempotency_key,
            fallback_error=fallback_error,
        )

    async def _transition(
        self,
        entity_id: Any,
        transition: str,
        payload: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        fallback_error: str = "Request failed",
    ) -> Any:
        method, suffix = get_transition(self.resource, transition)
        return await self._client.request(
            method,
            self._path(entity_id, suffix),
            json=payload if payload is not None else {},
            idempotency_key=idempotency_key,
            fallback_error=fallback_error,
        )
