"""
Use Cases Package.

This package contains the use case implementations of the orchestrator.
Each use case is a self-contained module with its own:
- Models and remote services
- Domain rules and calculations
- Sagas / coordinators
- Notification composer

Available use cases:
- returns: Return, refund and exchange sagas for completed sales
- defects: Bulk vendor return and disposal of defective items

Architecture:
Each use case follows the layered architecture pattern defined in core/:
- domain/: Pure business logic (policies, services)
- services.py: RemoteResource clients for the commerce backend
- presentation/: Notification composition
- session.py: Use-case-specific session context
- server.py: Orchestrator extending SagaOrchestrator
"""
