"""Base resource handler interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from storagegrid_provider.diagnostics import Result

if TYPE_CHECKING:
    from storagegrid_provider.client import StorageGridClient


def error_result(summary: str, error: Any) -> Result:
    """Build a Result carrying a single error diagnostic."""
    result = Result()
    result.diagnostics.add_error(summary, str(error))
    return result


def removed_result(summary: str = "", detail: str = "") -> Result:
    """Build a Result telling the caller to drop the object from state."""
    result = Result(removed=True)
    if summary:
        result.diagnostics.add_warning(summary, detail)
    return result


class Resource(ABC):
    """Abstract base class for managed objects.

    Handlers receive plans and states as plain attribute dictionaries
    and return a Result with the new state.
    """

    type_name: str = ""

    def __init__(self, client: "StorageGridClient"):
        self.client = client

    @abstractmethod
    def create(self, plan: dict[str, Any]) -> Result:
        """Create the object described by the plan."""
        pass

    @abstractmethod
    def read(self, state: dict[str, Any]) -> Result:
        """Refresh the state from the API."""
        pass

    @abstractmethod
    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        """Apply the plan to an existing object."""
        pass

    @abstractmethod
    def delete(self, state: dict[str, Any]) -> Result:
        """Delete the object."""
        pass

    @abstractmethod
    def import_state(self, import_id: str) -> Result:
        """Build the state of an existing object from its import ID."""
        pass


class DataSource(ABC):
    """Abstract base class for read-only lookups."""

    type_name: str = ""

    def __init__(self, client: "StorageGridClient"):
        self.client = client

    @abstractmethod
    def read(self, config: dict[str, Any]) -> Result:
        """Look up the object described by the configuration."""
        pass
