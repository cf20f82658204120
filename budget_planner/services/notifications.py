"""
Outward Collaborators

The planner never renders anything itself. It tells a Notifier that the
data changed or that there is a message for the user, and it asks an
IdentityProvider for credentials when the user wants to sign in.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from budget_planner.audit import get_logger
from budget_planner.models.records import Identity


class Severity(str, Enum):
    """How a user notice should be presented."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notifier(ABC):
    """Receives view refresh requests and user-facing notices."""

    @abstractmethod
    def notify_changed(self) -> None:
        """The record store changed; views should re-read it."""
        pass

    @abstractmethod
    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        """Show a transient notice."""
        pass

    @abstractmethod
    def notify_persistent(self, message: str, key: str) -> None:
        """
        Show a notice that stays until the user dismisses it.

        key identifies the alert so a host can replace rather than stack it.
        """
        pass


class LoggingNotifier(Notifier):
    """Notifier that only writes notices to the structured log."""

    def __init__(self):
        self._logger = get_logger("budget_planner.notices")

    def notify_changed(self) -> None:
        self._logger.debug("view_refresh")

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        if severity == Severity.ERROR:
            self._logger.error("notice", message=message)
        elif severity == Severity.WARNING:
            self._logger.warning("notice", message=message)
        else:
            self._logger.info("notice", message=message)

    def notify_persistent(self, message: str, key: str) -> None:
        self._logger.warning("persistent_notice", message=message, key=key)


class IdentityProvider(ABC):
    """Source of credentials for sign-in."""

    @abstractmethod
    async def prompt_identity(self) -> Optional[Identity]:
        """
        Ask the user to authenticate.

        Returns:
            The authenticated identity, or None if the user cancelled
        """
        pass
