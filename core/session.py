"""
Session Management for Use Cases.

Provides per-order session tracking for the duration of a saga.
This enables:
- Rejecting a second saga for an order that is already being processed
- Holding the in-memory saga so a failed one can be resumed
- Tracking the operator-facing flow step
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class FlowStep(Enum):
    """Generic flow steps that can be extended by use cases."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SagaInProgressError(RuntimeError):
    """Another saga already owns this order."""

    def __init__(self, key: str, reason: str = "is already being processed"):
        self.key = key
        super().__init__(f"Order {key} {reason}")


@dataclass
class SessionContext:
    """
    Base session context that tracks one order's saga state.

    Each use case should extend this with use-case-specific fields.
    The session context is:
    - Scoped to a single order
    - Kept in memory only (lost on restart)
    - Marked busy while a saga is in flight
    """
    # Identity
    key: str = ""

    # Current flow state
    current_step: str = FlowStep.NOT_STARTED.value
    is_processing: bool = False

    # The saga attached to this order, if any
    saga: Optional[Any] = None

    # Timestamps
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def set_step(self, step: str):
        """Set the current flow step."""
        self.current_step = step
        self._touch()

    def attach_saga(self, saga: Any):
        self.saga = saga
        self._touch()

    def _touch(self):
        """Update the timestamp."""
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "key": self.key,
            "current_step": self.current_step,
            "is_processing": self.is_processing,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SessionManager:
    """
    Manages session contexts across orders.

    This is a simple in-memory manager; saga progress does not survive a
    process restart.
    """

    def __init__(self, context_class: type = SessionContext):
        """
        Initialize the session manager.

        Args:
            context_class: The SessionContext class to use (can be a subclass)
        """
        self._sessions: Dict[str, SessionContext] = {}
        self._context_class = context_class

    def get_or_create(self, key: str) -> SessionContext:
        """
        Get an existing session or create a new one.

        Args:
            key: The order key to get/create a session for

        Returns:
            The session context for this order
        """
        if key not in self._sessions:
            session = self._context_class()
            session.key = key
            self._sessions[key] = session
            logger.debug(f"Created new session for order {key}")
        return self._sessions[key]

    def get(self, key: str) -> Optional[SessionContext]:
        """Get an existing session, or None."""
        return self._sessions.get(key)

    def begin_processing(self, key: str) -> SessionContext:
        """
        Mark an order busy for the duration of a saga.

        Raises:
            SagaInProgressError: If the order is already being processed
        """
        session = self.get_or_create(key)
        if session.is_processing:
            raise SagaInProgressError(key)
        session.is_processing = True
        session.set_step(FlowStep.IN_PROGRESS.value)
        logger.debug(f"Order {key} marked as processing")
        return session

    def end_processing(self, key: str, step: str = FlowStep.COMPLETED.value):
        """Release the busy flag set by begin_processing."""
        session = self._sessions.get(key)
        if session is None:
            return
        session.is_processing = False
        session.set_step(step)
        logger.debug(f"Order {key} released ({step})")

    def clear(self, key: str):
        """
        Clear a session.

        Args:
            key: The order key to clear
        """
        if key in self._sessions:
            del self._sessions[key]
            logger.debug(f"Cleared session for order {key}")

