"""
Reconciler plugins package.

Each reconciler owns the lifecycle of one resource kind. Additional
reconcilers are discovered via Python entry points
(group: 'flyconverge.reconcilers').
"""

from plugins.reconcilers.base import (
    ReconcilerPlugin,
    ReconcilerDependencies,
    ReconcileResult,
)

__all__ = ["ReconcilerPlugin", "ReconcilerDependencies", "ReconcileResult"]
