"""
Schema Validation - JSON Schema validation of resource declarations.

Each resource kind declares the attributes a user may set. Declarations
are checked before any reconciler runs.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

logger = logging.getLogger(__name__)

APP_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "id": {"type": "string"},
        "network": {"type": "string"},
        "org": {"type": "string"},
        "preferred_region": {"type": "string"},
        "regions": {"type": "array", "items": {"type": "string"}},
    },
}

MACHINE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "region", "app", "image"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "region": {"type": "string", "minLength": 1},
        "app": {"type": "string", "minLength": 1},
        "image": {"type": "string", "minLength": 1},
        "cpus": {"type": "integer", "minimum": 1},
        "memory_mb": {"type": "integer", "minimum": 1},
        "cpu_kind": {"type": "string"},
    },
}

IP_ADDRESS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["app", "type"],
    "additionalProperties": False,
    "properties": {
        "app": {"type": "string", "minLength": 1},
        "type": {"type": "string", "enum": ["v4", "v6"]},
        "region": {"type": "string"},
    },
}

SCHEMAS: Dict[str, Dict[str, Any]] = {
    "app": APP_SCHEMA,
    "machine": MACHINE_SCHEMA,
    "ip_address": IP_ADDRESS_SCHEMA,
}


def validate_declaration(
    kind: str, spec: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a resource declaration against its kind's schema.

    Args:
        kind: The resource kind
        spec: The declared attributes

    Returns:
        Tuple of (is_valid, error_message)
    """
    schema = SCHEMAS.get(kind)
    if schema is None:
        return False, f"Unknown resource kind: {kind}"

    try:
        validator = Draft7Validator(schema)
        errors = sorted(
            validator.iter_errors(spec), key=lambda e: [str(p) for p in e.path]
        )

        if not errors:
            return True, None

        # Collect all validation errors
        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"
