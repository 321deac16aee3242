"""Diagnostics returned by resource and data source handlers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Severity(Enum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single error or warning with a short summary and a detail line."""

    severity: Severity
    summary: str
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "summary": self.summary,
            "detail": self.detail,
        }


class Diagnostics(list):
    """Ordered collection of diagnostics."""

    def add_error(self, summary: str, detail: str = "") -> None:
        self.append(Diagnostic(Severity.ERROR, summary, detail))

    def add_warning(self, summary: str, detail: str = "") -> None:
        self.append(Diagnostic(Severity.WARNING, summary, detail))

    def has_error(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self if d.severity is Severity.WARNING]


@dataclass
class Result:
    """Outcome of a handler call.

    Attributes:
        state: The new state, or None when nothing should be stored
        diagnostics: Errors and warnings raised along the way
        removed: True when the object is gone and must leave the state
    """

    state: Optional[dict[str, Any]] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    removed: bool = False

    @property
    def ok(self) -> bool:
        return not self.diagnostics.has_error()
