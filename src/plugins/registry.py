"""
Plugin Registry - Discovery and registration of reconciler plugins.

This module provides the central registry mapping resource kinds to
reconciler classes, handling discovery, registration and instantiation
with injected dependencies.
"""

from importlib.metadata import entry_points
from typing import Any, Dict, Optional, Type

from plugins.base import logger
from plugins.reconcilers.base import ReconcilerDependencies, ReconcilerPlugin

ENTRY_POINT_GROUP = "flyconverge.reconcilers"


class PluginRegistry:
    """
    Central registry for reconciler plugins.

    Each resource kind is claimed by exactly one reconciler class.
    """

    def __init__(self):
        # Registered reconciler classes keyed by resource kind
        self._reconciler_plugins: Dict[str, Type[ReconcilerPlugin]] = {}

        # Instances built from the most recent dependencies, keyed by kind
        self._reconciler_instances: Dict[str, ReconcilerPlugin] = {}

    def register_reconciler_plugin(self, plugin_class: Type[ReconcilerPlugin]) -> None:
        """
        Register a reconciler plugin class.

        Args:
            plugin_class: The ReconcilerPlugin subclass to register

        Raises:
            ValueError: If the kind is empty or already claimed by another class
        """
        kind = plugin_class.kind
        if not kind:
            raise ValueError(f"Reconciler {plugin_class.__name__} declares no kind")

        existing = self._reconciler_plugins.get(kind)
        if existing is not None and existing is not plugin_class:
            raise ValueError(
                f"Resource kind '{kind}' is already claimed by "
                f"reconciler '{existing.__name__}'. "
                f"Cannot register '{plugin_class.__name__}'."
            )

        self._reconciler_plugins[kind] = plugin_class
        logger.info(f"Registered reconciler plugin: {plugin_class.__name__} ({kind})")

    def create_reconcilers(self, deps: ReconcilerDependencies) -> None:
        """
        Instantiate every registered reconciler with the given dependencies.

        Args:
            deps: Collaborators injected into each reconciler
        """
        self._reconciler_instances = {
            kind: plugin_class.from_dependencies(deps)
            for kind, plugin_class in self._reconciler_plugins.items()
        }

    def get_reconciler(self, kind: str) -> ReconcilerPlugin:
        """
        Get the reconciler instance for a resource kind.

        Args:
            kind: The resource kind

        Returns:
            A ReconcilerPlugin instance

        Raises:
            ValueError: If no reconciler handles the kind, or reconcilers
                have not been created yet
        """
        if kind not in self._reconciler_plugins:
            available = ", ".join(self._reconciler_plugins.keys()) or "none"
            raise ValueError(
                f"Unknown resource kind: {kind}. Available kinds: {available}"
            )

        if kind not in self._reconciler_instances:
            raise ValueError(
                f"Reconciler for '{kind}' has not been created; "
                "call create_reconcilers() first"
            )

        return self._reconciler_instances[kind]

    def get_record_type(self, kind: str) -> Optional[Type[Any]]:
        """Return the record dataclass for a kind, or None if unknown."""
        plugin_class = self._reconciler_plugins.get(kind)
        return plugin_class.record_type if plugin_class else None

    def list_kinds(self) -> list[str]:
        """List all registered resource kinds."""
        return list(self._reconciler_plugins.keys())

    def has_kind(self, kind: str) -> bool:
        """Check if a reconciler is registered for a kind."""
        return kind in self._reconciler_plugins


# Global registry instance
_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the global plugin registry singleton."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_plugins() -> None:
    """
    Register the built-in reconcilers and discover additional reconciler
    plugins via entry points.
    """
    from plugins.reconcilers.app import AppReconciler
    from plugins.reconcilers.ip_address import IpAddressReconciler
    from plugins.reconcilers.machine import MachineReconciler

    registry = get_registry()

    for plugin_class in (AppReconciler, MachineReconciler, IpAddressReconciler):
        registry.register_reconciler_plugin(plugin_class)

    # Discover and register reconciler plugins via entry points
    discovered = entry_points(group=ENTRY_POINT_GROUP)
    for ep in discovered:
        try:
            reconciler_class = ep.load()
            registry.register_reconciler_plugin(reconciler_class)
        except Exception as e:
            logger.warning(f"Could not load reconciler plugin {ep.name}: {e}")
