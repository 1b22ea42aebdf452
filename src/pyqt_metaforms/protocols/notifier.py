"""Notification and navigation protocols.

Forms never show toasts or change pages themselves; they call whichever
Notifier and Navigator the application registered.
"""

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Protocol for transient user notifications."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...


class Navigator(Protocol):
    """Protocol for navigating after a successful submit."""

    def push(self, url: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier that writes notifications to the log."""

    def success(self, message: str) -> None:
        logger.info(f"[notify:success] {message}")

    def error(self, message: str) -> None:
        logger.error(f"[notify:error] {message}")

    def warning(self, message: str) -> None:
        logger.warning(f"[notify:warning] {message}")


# Global instances (set by application)
_notifier: Optional[Notifier] = None
_navigator: Optional[Navigator] = None


def register_notifier(notifier: Notifier) -> None:
    """Register a notifier implementation."""
    global _notifier
    _notifier = notifier


def get_notifier() -> Notifier:
    """Get the registered notifier, falling back to LoggingNotifier."""
    if _notifier is None:
        return LoggingNotifier()
    return _notifier


def register_navigator(navigator: Navigator) -> None:
    """Register a navigator implementation."""
    global _navigator
    _navigator = navigator


def get_navigator() -> Optional[Navigator]:
    """Get the registered navigator, or None."""
    return _navigator
