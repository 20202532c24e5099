"""
Controller - Drives declared resources through their reconcilers.

Applies declarations in order (create when untracked, update when the
declaration differs from tracked state), refreshes tracked resources, and
destroys them in reverse order. Tracked state is kept in a StateStore.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from diagnostics import Diagnostics, ErrorKind
from plugins.base import Operation, ResourceDeclaration
from plugins.reconcilers.base import ReconcileResult
from plugins.registry import PluginRegistry
from statefile import StateStore
from validation import validate_declaration

logger = logging.getLogger(__name__)

# Kinds whose record carries the declaration name as its "name" attribute
NAMED_KINDS = ("app", "machine")


@dataclass
class OperationReport:
    """Outcome of one reconciler operation on one resource."""

    key: str
    operation: Operation
    diagnostics: Diagnostics

    @property
    def success(self) -> bool:
        return not self.diagnostics.has_error()


class Controller:
    """
    Host-side driver for reconcilers.

    Each operation on a single resource runs to completion before the state
    store is updated. Refresh reads independent resources concurrently,
    bounded by ``max_concurrency``.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        store: StateStore,
        max_concurrency: int = 5,
    ):
        self.registry = registry
        self.store = store
        self.semaphore = asyncio.Semaphore(max_concurrency)

    def _planned_record(self, declaration: ResourceDeclaration) -> Any:
        spec = dict(declaration.spec)
        if declaration.kind in NAMED_KINDS:
            spec.setdefault("name", declaration.name)
        return spec

    def _apply_result(
        self, key: str, kind: str, result: ReconcileResult
    ) -> None:
        if result.removed:
            self.store.remove(key)
        elif result.state is not None:
            self.store.put(key, kind, result.state.to_dict())

    @staticmethod
    def _differs(
        planned: Dict[str, Any], stored: Dict[str, Any], fields: Iterable[str]
    ) -> bool:
        """True if any declared diff field differs from its tracked value."""
        return any(
            planned.get(name) is not None and stored.get(name) != planned[name]
            for name in fields
        )

    async def apply(self, declaration: ResourceDeclaration) -> OperationReport:
        """
        Converge one declared resource.

        Args:
            declaration: The declared resource.

        Returns:
            OperationReport for the create or update that ran, or an empty
            read report when the resource is already converged.
        """
        key = declaration.key
        planned = self._planned_record(declaration)

        is_valid, error = validate_declaration(declaration.kind, planned)
        if not is_valid:
            diagnostics = Diagnostics()
            diagnostics.add_error(
                ErrorKind.INVALID_DECLARATION, f"Invalid declaration {key}", error
            )
            return OperationReport(key, Operation.CREATE, diagnostics)

        reconciler = self.registry.get_reconciler(declaration.kind)
        record_type = self.registry.get_record_type(declaration.kind)
        plan = record_type.from_dict(planned)
        stored = self.store.get(key)

        if stored is None:
            logger.info(f"Creating {key}")
            result = await reconciler.create(plan)
            operation = Operation.CREATE
        elif self._differs(planned, stored, reconciler.diff_fields):
            logger.info(f"Updating {key}")
            result = await reconciler.update(plan, record_type.from_dict(stored))
            operation = Operation.UPDATE
        else:
            logger.info(f"{key} is up to date")
            return OperationReport(key, Operation.READ, Diagnostics())

        self._apply_result(key, declaration.kind, result)
        return OperationReport(key, operation, result.diagnostics)

    async def apply_all(
        self, declarations: List[ResourceDeclaration]
    ) -> List[OperationReport]:
        """Apply declarations in order; stop at the first failed one."""
        reports = []
        for declaration in declarations:
            report = await self.apply(declaration)
            reports.append(report)
            if not report.success:
                logger.error(f"Apply of {report.key} failed, stopping")
                break
        return reports

    async def _refresh_one(self, key: str, kind: str, state: Dict[str, Any]):
        async with self.semaphore:
            reconciler = self.registry.get_reconciler(kind)
            record_type = self.registry.get_record_type(kind)
            result = await reconciler.read(record_type.from_dict(state))
            if result.removed:
                logger.info(f"{key} no longer exists, dropping it from state")
            return key, kind, result

    async def refresh(self) -> List[OperationReport]:
        """Read every tracked resource, dropping those that no longer exist."""
        tasks = [
            self._refresh_one(key, kind, state)
            for key, kind, state in self.store.items()
        ]
        results = await asyncio.gather(*tasks)

        reports = []
        for key, kind, result in results:
            if result.success or result.removed:
                self._apply_result(key, kind, result)
            reports.append(OperationReport(key, Operation.READ, result.diagnostics))
        return reports

    async def destroy(self, keys: Optional[List[str]] = None) -> List[OperationReport]:
        """
        Delete tracked resources in reverse tracking order.

        Args:
            keys: Resource keys to delete; all tracked resources if None.
        """
        tracked = [
            (key, kind, state)
            for key, kind, state in self.store.items()
            if keys is None or key in keys
        ]

        reports = []
        for key, kind, state in reversed(tracked):
            reconciler = self.registry.get_reconciler(kind)
            record_type = self.registry.get_record_type(kind)
            logger.info(f"Deleting {key}")
            result = await reconciler.delete(record_type.from_dict(state))
            if result.removed:
                self.store.remove(key)
            else:
                logger.warning(f"{key} is still tracked after delete")
            reports.append(OperationReport(key, Operation.DELETE, result.diagnostics))
        return reports

    async def import_resource(
        self, kind: str, name: str, import_id: str
    ) -> OperationReport:
        """Import an existing remote object and read its full state."""
        key = ResourceDeclaration(kind=kind, name=name).key
        reconciler = self.registry.get_reconciler(kind)

        imported = reconciler.import_state(import_id)
        if not imported.success:
            return OperationReport(key, Operation.IMPORT, imported.diagnostics)

        result = await reconciler.read(imported.state)
        if result.removed:
            result.diagnostics.add_error(
                ErrorKind.IMPORT_FAILED,
                f"Cannot import {key}",
                f"No remote object found for {import_id!r}",
            )
        elif result.success:
            self.store.put(key, kind, result.state.to_dict())
        return OperationReport(key, Operation.IMPORT, result.diagnostics)
