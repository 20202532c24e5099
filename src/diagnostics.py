"""
Diagnostics - Accumulated error and warning records for one operation.

A Diagnostics sink is created by the caller for a single reconciler
operation. Reconcilers only append to it; once an error is present the
operation's success side effects are suppressed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List


class ErrorKind(Enum):
    """Classification of a diagnostic."""

    CONFIG_RESOLUTION = "ConfigResolutionError"
    QUERY_FAILED = "QueryFailed"
    REQUEST_FAILED = "RequestFailed"
    STRUCTURED_BACKEND = "StructuredBackendError"
    IMMUTABLE_FIELD = "ImmutableFieldError"
    UNSUPPORTED_OPERATION = "UnsupportedOperation"
    TUNNEL_UNAVAILABLE = "TunnelUnavailable"
    GET_INSTANCE_FAILED = "GetInstanceFailed"
    DELETE_TIMEOUT = "DeleteTimeout"
    UPDATE_FAILED = "UpdateFailed"
    DECODE_FAILED = "DecodeFailed"
    IMPORT_FAILED = "ImportFailed"
    INVALID_DECLARATION = "InvalidDeclaration"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single human-readable record keyed by a short summary."""

    kind: ErrorKind
    summary: str
    detail: str = ""
    severity: Severity = Severity.ERROR

    def __str__(self) -> str:
        if self.detail:
            return f"{self.summary}: {self.detail}"
        return self.summary


class Diagnostics:
    """
    Append-only, ordered collection of diagnostics.

    Scoped to the lifetime of one reconciler operation and never shared
    between operations, so no locking is needed.
    """

    def __init__(self):
        self._items: List[Diagnostic] = []

    def add_error(self, kind: ErrorKind, summary: str, detail: str = "") -> None:
        """Record an error diagnostic."""
        self._items.append(Diagnostic(kind=kind, summary=summary, detail=detail))

    def add_warning(self, kind: ErrorKind, summary: str, detail: str = "") -> None:
        """Record a warning diagnostic. Warnings never fail an operation."""
        self._items.append(
            Diagnostic(
                kind=kind, summary=summary, detail=detail, severity=Severity.WARNING
            )
        )

    def append(self, diagnostic: Diagnostic) -> None:
        self._items.append(diagnostic)

    def extend(self, diagnostics) -> None:
        for diagnostic in diagnostics:
            self._items.append(diagnostic)

    def has_error(self) -> bool:
        """Return True if any error (not warning) has been recorded."""
        return any(d.severity is Severity.ERROR for d in self._items)

    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.ERROR]

    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    def kinds(self) -> List[ErrorKind]:
        """Kinds of all recorded diagnostics, in order."""
        return [d.kind for d in self._items]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Diagnostics({self._items!r})"
