"""
Presentation Layer Base Classes.

The presentation layer turns domain results into operator notifications.
The console renders them; this service only decides what they say.

Key principles:
- Notifications are stateless representations
- No business logic in composers
- Consistent wording across use cases
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from enum import Enum


class NotificationLevel(str, Enum):
    """Severity of an operator notification."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class NotificationTheme:
    """
    Theme configuration for notifications.

    Provides consistent status wording and icons across use cases.
    """
    # Status colors the console maps onto badges
    status_colors: Dict[str, str] = field(default_factory=lambda: {
        "pending": "warning",
        "running": "info",
        "approved": "success",
        "processed": "info",
        "completed": "success",
        "failed": "danger",
        "needs_reconciliation": "danger",
        "rejected": "danger",
        "cancelled": "secondary",
    })

    icons: Dict[str, str] = field(default_factory=lambda: {
        "order": "📦",
        "return": "🔄",
        "refund": "💰",
        "exchange": "🔁",
        "vendor": "🏭",
        "warning": "⚠️",
        "success": "✅",
        "error": "❌",
        "info": "ℹ️",
    })

    def get_status_color(self, status: str) -> str:
        """Get the color for a status."""
        return self.status_colors.get(status.lower(), "secondary")

    def icon(self, name: str) -> str:
        """Get an icon by name."""
        return self.icons.get(name, "")


# Default theme instance
DEFAULT_THEME = NotificationTheme()


@dataclass
class Notification:
    """A single operator-facing message."""
    level: NotificationLevel
    title: str
    message: str
    details: List[str] = field(default_factory=list)
    refresh: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "details": list(self.details),
            "refresh": self.refresh,
        }


class NotificationComposer(ABC):
    """
    Abstract base class for notification composers.

    A NotificationComposer transforms domain results into Notifications.
    Each use case has its own composer that knows how to describe its
    specific results.
    """

    def __init__(self, theme: Optional[NotificationTheme] = None, currency: str = "৳"):
        """
        Initialize the composer with a theme.

        Args:
            theme: Optional custom theme (uses DEFAULT_THEME if not provided)
            currency: Currency symbol for amounts
        """
        self.theme = theme or DEFAULT_THEME
        self.currency = currency

    def _money(self, amount: float) -> str:
        return TextFormatter.currency(amount, self.currency)

    def _titled(self, icon: str, title: str) -> str:
        mark = self.theme.icon(icon)
        return f"{mark} {title}" if mark else title

    @abstractmethod
    def get_builders(self) -> Dict[str, Callable]:
        """
        Return a dictionary of notification builder methods.

        Returns:
            Dict mapping notification names to builder methods
        """
        pass


class TextFormatter:
    """
    Utility class for formatting text in notifications.

    Provides consistent formatting for common data types.
    """

    @staticmethod
    def currency(amount: float, currency: str = "৳") -> str:
        """Format a currency amount."""
        sign = "-" if amount < 0 else ""
        return f"{sign}{currency}{abs(amount):,.2f}"

    @staticmethod
    def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
        """Pluralize a word based on count."""
        if count == 1:
            return f"{count} {singular}"
        return f"{count} {plural or singular + 's'}"
