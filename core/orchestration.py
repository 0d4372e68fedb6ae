"""
Orchestration Layer Base Classes.

The orchestration layer wires together all components:
- Domain services for business logic
- Remote resources for data access
- Notification composers for presentation
- Session management for per-order state

Every multi-step remote flow is modelled as a saga: an ordered list of
named stages driven by a forward-only StageMachine. There is no server-side
transaction, so a saga that fails midway stays where it stopped and can be
resumed once the remote state has been re-read.
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type

from .session import SessionContext, SessionManager
from .presentation import NotificationComposer

logger = logging.getLogger(__name__)


class SagaStatus(str, Enum):
    """Lifecycle status of a saga."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_RECONCILIATION = "needs_reconciliation"


class StageOrderError(RuntimeError):
    """A stage was requested out of order."""

    def __init__(self, expected: Optional[str], got: str):
        self.expected = expected
        self.got = got
        if expected is None:
            message = f"Stage '{got}' requested after the saga already finished"
        else:
            message = f"Stage '{got}' requested but '{expected}' is next"
        super().__init__(message)


class SagaNotResumableError(RuntimeError):
    """The remote state reached by a saga cannot be driven forward."""


def idempotency_key(saga_key: str, stage: str) -> str:
    """Build the Idempotency-Key header value for one stage of a saga."""
    return f"{saga_key}:{stage}"


class StageMachine:
    """
    Forward-only progression through a fixed list of stages.

    `completed` holds the stages already confirmed by the backend;
    `next_stage` is the only stage that may be issued.

    Example:
        machine = StageMachine(["created", "approved", "completed"])
        machine.expect("created")
        machine.advance("created")
        machine.next_stage  # "approved"
    """

    def __init__(self, stages: Sequence[str]):
        if not stages:
            raise ValueError("A stage machine needs at least one stage")
        self._stages: List[str] = list(stages)
        self._position = 0

    @property
    def stages(self) -> List[str]:
        return list(self._stages)

    @property
    def next_stage(self) -> Optional[str]:
        if self._position >= len(self._stages):
            return None
        return self._stages[self._position]

    @property
    def current(self) -> Optional[str]:
        """The last stage confirmed, or None before the first one."""
        if self._position == 0:
            return None
        return self._stages[self._position - 1]

    @property
    def completed(self) -> List[str]:
        return self._stages[: self._position]

    @property
    def is_finished(self) -> bool:
        return self._position >= len(self._stages)

    def has_reached(self, stage: str) -> bool:
        """True if `stage` has been confirmed."""
        return stage in self.completed

    def expect(self, stage: str):
        """Raise StageOrderError unless `stage` is the next one to issue."""
        if stage not in self._stages:
            raise ValueError(f"Unknown stage: {stage}")
        if stage != self.next_stage:
            raise StageOrderError(self.next_stage, stage)

    def advance(self, stage: str):
        """Mark `stage` as confirmed. It must be the next stage."""
        self.expect(stage)
        self._position += 1
        logger.debug(f"Stage confirmed: {stage}")

    def restore(self, stage: Optional[str]):
        """
        Reposition the machine after re-reading remote state.

        Args:
            stage: The last stage the backend has confirmed, or None if none
        """
        if stage is None:
            self._position = 0
            return
        if stage not in self._stages:
            raise ValueError(f"Unknown stage: {stage}")
        self._position = self._stages.index(stage) + 1


class SagaOrchestrator(ABC):
    """
    Abstract base class for use case orchestrators.

    Provides:
    - Session management keyed by order id
    - Notification composer integration
    - A registry of sagas so failed ones can be looked up and resumed
    - A bounded history of finished saga results

    Each use case should extend this class and implement:
    - create_notification_composer(): Create the notification composer
    """

    def __init__(
        self,
        session_context_class: Type[SessionContext] = SessionContext,
        result_history: int = 200,
    ):
        self.session_manager = SessionManager(session_context_class)
        self._sagas: Dict[str, Any] = {}
        self._results: "OrderedDict[str, Any]" = OrderedDict()
        self._result_history = result_history
        self._composer: Optional[NotificationComposer] = None

    @property
    def composer(self) -> NotificationComposer:
        """Get the notification composer."""
        if self._composer is None:
            self._composer = self.create_notification_composer()
        return self._composer

    @abstractmethod
    def create_notification_composer(self) -> NotificationComposer:
        """
        Create the notification composer for this use case.

        Returns:
            A NotificationComposer instance
        """
        pass

    def register_saga(self, saga_id: str, saga: Any):
        self._sagas[saga_id] = saga

    def get_saga(self, saga_id: str) -> Optional[Any]:
        return self._sagas.get(saga_id)

    def retire_saga(self, saga_id: str, result: Any):
        """
        Drop a finished saga, keeping only its result.

        The oldest results are evicted once the history is full.
        """
        self._sagas.pop(saga_id, None)
        self._results[saga_id] = result
        self._results.move_to_end(saga_id)
        while len(self._results) > self._result_history:
            evicted, _ = self._results.popitem(last=False)
            logger.debug(f"Evicted result of saga {evicted}")

    def get_retired_result(self, saga_id: str) -> Optional[Any]:
        return self._results.get(saga_id)

    @property
    def active_saga_count(self) -> int:
        return len(self._sagas)
