"""
Returns Presentation Layer.

Contains the NotificationComposer for return and exchange outcomes.
"""

from .composer import ReturnNotificationComposer

__all__ = ["ReturnNotificationComposer"]
