"""
Stage Status Tracking for Saga Execution.

This module records progress indicators for each remote stage a saga issues.
When a saga runs, the operator sees a step log like:
  🔄 Creating return request...
  ✅ Return created
  ❌ Processing return failed: Inventory service unavailable

This is a GENERIC framework - each use case provides its own stage status
messages. See use_cases/returns/stage_status.py for an example.

Usage:
    from stage_status import StageTracker
    from use_cases.returns.stage_status import RETURN_STAGE_STATUS_MESSAGES

    tracker = StageTracker(stage_messages=RETURN_STAGE_STATUS_MESSAGES)
    tracker.start("return.created")
    tracker.finish("return.created")
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT STAGE STATUS (used when no custom mapping is provided)
# =============================================================================

DEFAULT_STAGE_STATUS = (
    "Processing...",
    "Done",
    "dot",
)


def get_stage_status(stage_name: str, stage_messages: Dict[str, tuple] = None) -> tuple:
    """Get the status messages for a stage.

    Args:
        stage_name: The qualified stage name, e.g. "refund.processed"
        stage_messages: Optional custom mapping of stage names to status tuples

    Returns:
        Tuple of (start_message, end_message, icon)
    """
    if stage_messages:
        return stage_messages.get(stage_name, DEFAULT_STAGE_STATUS)
    return DEFAULT_STAGE_STATUS


# =============================================================================
# STAGE STATUS TRACKER
# =============================================================================

@dataclass
class StageStep:
    """One recorded stage execution."""
    stage: str
    title: str
    icon: str
    state: str = "running"
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "title": self.title,
            "icon": self.icon,
            "state": self.state,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class StageTracker:
    """Tracks stage executions for a saga's progress log.

    This is a generic tracker that works with any use case.
    Pass custom stage_messages to provide domain-specific status text.
    """

    stage_messages: Dict[str, tuple] = field(default_factory=dict)
    saga_key: str = ""
    steps: List[StageStep] = field(default_factory=list)
    _open: Dict[str, int] = field(default_factory=dict)

    def start(self, stage_name: str) -> StageStep:
        """Record that a stage has been issued."""
        start_msg, _, icon = get_stage_status(stage_name, self.stage_messages)
        step = StageStep(stage=stage_name, title=start_msg, icon=icon)
        self._open[stage_name] = len(self.steps)
        self.steps.append(step)
        logger.info(f"[{self.saga_key}] {stage_name}: {start_msg}")
        return step

    def finish(self, stage_name: str):
        """Record that the backend confirmed a stage."""
        _, end_msg, _ = get_stage_status(stage_name, self.stage_messages)
        step = self._pop(stage_name)
        if step is None:
            return
        step.title = f"✓ {end_msg}"
        step.icon = "check-circle-filled"
        step.state = "done"
        step.finished_at = datetime.now(timezone.utc)
        logger.info(f"[{self.saga_key}] {stage_name}: {end_msg}")

    def fail(self, stage_name: str, error: str):
        """Record that a stage failed with the given message."""
        step = self._pop(stage_name)
        if step is None:
            step = self.start(stage_name)
            self._pop(stage_name)
        step.state = "failed"
        step.error = error
        step.icon = "bug"
        step.finished_at = datetime.now(timezone.utc)
        logger.error(f"[{self.saga_key}] {stage_name} failed: {error}")

    def _pop(self, stage_name: str) -> Optional[StageStep]:
        index = self._open.pop(stage_name, None)
        if index is None:
            return None
        return self.steps[index]

    @property
    def failed_step(self) -> Optional[StageStep]:
        for step in reversed(self.steps):
            if step.state == "failed":
                return step
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        return [step.to_dict() for step in self.steps]
