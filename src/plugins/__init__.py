"""
Plugin system for flyconverge.

This package provides the reconciler plugins and the registry that maps
resource kinds to them.
"""

from plugins.base import Operation, ResourceDeclaration
from plugins.reconcilers.base import (
    ReconcilerPlugin,
    ReconcilerDependencies,
    ReconcileResult,
)
from plugins.registry import PluginRegistry, get_registry

__all__ = [
    "Operation",
    "ResourceDeclaration",
    "ReconcilerPlugin",
    "ReconcilerDependencies",
    "ReconcileResult",
    "PluginRegistry",
    "get_registry",
]
