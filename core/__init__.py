"""
Core Framework for the Returns Orchestrator.

This module provides the extensible base classes and interfaces
that all use cases should implement. The layered architecture ensures:

1. Domain Layer - Pure business rules, no I/O
2. Data Layer - Remote resources over the commerce API
3. Presentation Layer - Operator notifications
4. Orchestration Layer - Sagas that wire everything together

Each use case follows this pattern for consistency and reusability.
"""

from .domain import DomainService, PolicyEngine, SagaValidationError, ValidationError
from .data import RemoteCallError, RemoteResource
from .presentation import Notification, NotificationComposer
from .orchestration import SagaOrchestrator, SagaStatus, StageMachine, StageOrderError
from .session import SagaInProgressError, SessionManager, SessionContext

__all__ = [
    # Domain
    "DomainService",
    "PolicyEngine",
    "SagaValidationError",
    "ValidationError",
    # Data
    "RemoteCallError",
    "RemoteResource",
    # Presentation
    "Notification",
    "NotificationComposer",
    # Orchestration
    "SagaOrchestrator",
    "SagaStatus",
    "StageMachine",
    "StageOrderError",
    # Session
    "SagaInProgressError",
    "SessionManager",
    "SessionContext",
]
