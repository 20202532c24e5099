"""
Drift Detection - Immutable field checks for planned updates.

Compares a planned record against the stored record and reports every
immutable field the plan tries to change. All fields are checked so the
caller sees every violation in one pass.
"""

import logging
from typing import Any, Iterable, List

from diagnostics import Diagnostic, ErrorKind

logger = logging.getLogger(__name__)


def _display(value: Any) -> str:
    return "" if value is None else str(value)


def check_immutable_fields(
    plan: Any,
    state: Any,
    fields: Iterable[str],
    resource_label: str,
) -> List[Diagnostic]:
    """
    Report immutable fields changed by a plan.

    A field counts as changed only when the plan value is known (not None)
    and differs from the stored value.

    Args:
        plan: The planned record.
        state: The previously stored record.
        fields: Names of immutable attributes to compare.
        resource_label: Human-readable resource label, e.g. "app".

    Returns:
        One IMMUTABLE_FIELD diagnostic per changed field, in field order.
    """
    diagnostics = []

    for name in fields:
        planned = getattr(plan, name)
        stored = getattr(state, name)
        if planned is None or planned == stored:
            continue

        logger.debug(
            f"Immutable field {name} of {resource_label} changed: "
            f"{stored!r} -> {planned!r}"
        )
        diagnostics.append(
            Diagnostic(
                kind=ErrorKind.IMMUTABLE_FIELD,
                summary=f"Can't mutate {name} of existing {resource_label}",
                detail=(
                    f"Can't switch {name} {_display(stored)!r} "
                    f"to {_display(planned)!r}"
                ),
            )
        )

    return diagnostics
