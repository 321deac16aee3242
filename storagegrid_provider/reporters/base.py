"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from storagegrid_provider.models import CommandOutcome


class Reporter(ABC):
    """Abstract base class for command result reporters."""

    @abstractmethod
    def on_command_start(self, command: str, target: Optional[str]) -> None:
        """Called before a command talks to the grid."""
        pass

    @abstractmethod
    def on_command_complete(self, outcome: "CommandOutcome") -> None:
        """Called when a command completes."""
        pass

    @abstractmethod
    def on_run_complete(self, outcomes: list["CommandOutcome"]) -> None:
        """Called when all commands are complete."""
        pass
