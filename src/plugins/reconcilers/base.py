"""
Reconciler Plugin Base - Abstract interface for resource reconcilers.

A reconciler owns the full lifecycle of one resource kind: create, read,
update, delete and import. Each operation converges remote state toward a
record and reports failures as diagnostics rather than raising.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Tuple, Type, TypeVar

from clients.errors import ClientError, GraphQLErrorList
from clients.graphql import ControlAPIClient
from clients.machines import MachinesClient
from config import LifecycleConfig
from diagnostics import Diagnostics, ErrorKind

logger = logging.getLogger(__name__)

# Message of the structured error the control API returns for a missing object.
NOT_FOUND_MESSAGE = "Could not resolve "

T = TypeVar("T")


@dataclass
class ReconcileResult(Generic[T]):
    """
    Result of a reconciler operation.

    ``state`` is the record the caller should store. ``removed`` tells the
    caller to stop tracking the resource.
    """

    state: Optional[T] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    removed: bool = False

    @property
    def success(self) -> bool:
        return not self.diagnostics.has_error()


@dataclass
class ReconcilerDependencies:
    """Collaborators injected into reconcilers at construction."""

    control_api: Optional[ControlAPIClient] = None
    machines: Optional[MachinesClient] = None
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)


def record_client_error(
    diagnostics: Diagnostics,
    error: ClientError,
    kind: ErrorKind,
    summary: str,
) -> None:
    """
    Normalize a client error into diagnostics.

    A structured error list becomes one diagnostic per entry (summary is the
    entry message, detail its path). Anything else becomes a single
    diagnostic of the given kind.
    """
    if isinstance(error, GraphQLErrorList):
        for entry in error:
            diagnostics.add_error(
                ErrorKind.STRUCTURED_BACKEND, entry.message, entry.path_string
            )
    else:
        diagnostics.add_error(kind, summary, str(error))


def record_lookup_error(
    diagnostics: Diagnostics,
    error: ClientError,
    summary: str,
) -> bool:
    """
    Normalize a client error raised by a lookup query.

    Entries are processed in order; reaching the not-found entry stops
    processing and reports the object as gone.

    Returns:
        True if the backend reported the object as not found.
    """
    if not isinstance(error, GraphQLErrorList):
        diagnostics.add_error(ErrorKind.QUERY_FAILED, summary, str(error))
        return False

    for entry in error:
        if entry.message == NOT_FOUND_MESSAGE:
            return True
        diagnostics.add_error(
            ErrorKind.STRUCTURED_BACKEND, entry.message, entry.path_string
        )
    return False


class ReconcilerPlugin(ABC, Generic[T]):
    """
    Abstract base class for resource reconcilers.

    Subclasses set ``kind`` (the resource kind they handle),
    ``record_type`` (the dataclass holding the resource's configuration) and
    ``diff_fields`` (declared attributes compared against tracked state).
    Reconcilers are discovered via Python entry points in the
    'flyconverge.reconcilers' group.
    """

    kind: str = ""
    record_type: Type[Any] = object
    diff_fields: Tuple[str, ...] = ()

    @classmethod
    @abstractmethod
    def from_dependencies(cls, deps: ReconcilerDependencies) -> "ReconcilerPlugin":
        """Build the reconciler from injected collaborators."""
        pass

    @abstractmethod
    async def create(self, desired: T) -> ReconcileResult[T]:
        """
        Create the remote object described by ``desired``.

        Args:
            desired: Planned record; unknown fields are None.

        Returns:
            ReconcileResult with the record as echoed by the backend.
        """
        pass

    @abstractmethod
    async def read(self, state: T) -> ReconcileResult[T]:
        """
        Refresh a stored record from the backend.

        Args:
            state: The stored record.

        Returns:
            ReconcileResult with the refreshed record, or ``removed`` set
            when the object no longer exists.
        """
        pass

    @abstractmethod
    async def update(self, plan: T, state: T) -> ReconcileResult[T]:
        """
        Apply the mutable differences between ``plan`` and ``state``.

        Args:
            plan: Planned record.
            state: Previously stored record.

        Returns:
            ReconcileResult with the record to store.
        """
        pass

    @abstractmethod
    async def delete(self, state: T) -> ReconcileResult[T]:
        """
        Delete the remote object.

        Args:
            state: The stored record.

        Returns:
            ReconcileResult with ``removed`` set when the caller should stop
            tracking the resource.
        """
        pass

    @abstractmethod
    def import_state(self, import_id: str) -> ReconcileResult[T]:
        """
        Build a minimal record from an import identifier.

        The caller follows up with read() to populate the rest.
        """
        pass
