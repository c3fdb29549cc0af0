"""
Schema Validation - JSON Schema validation utilities.

Validates declared resource configuration against a kind's schema and
checks the layout of persisted state records before they are migrated.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

if TYPE_CHECKING:
    from kinds.base import ResourceKind
    from state import DesiredConfiguration

logger = logging.getLogger(__name__)

PERSISTED_STATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["identifier"],
    "properties": {
        "identifier": {"type": "string", "minLength": 1},
        "schema_version": {"type": "integer", "minimum": 0},
        "last_known_attributes": {"type": "object"},
    },
}


def validate_schema(schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate that a schema is a valid JSON Schema (Draft 7).

    Args:
        schema: The schema to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        Draft7Validator.check_schema(schema)
        return True, None
    except Exception as e:
        return False, f"Invalid schema: {str(e)}"


def validate_against_schema(
    data: Mapping[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a document against a JSON Schema.

    Args:
        data: The document to validate
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
        errors = list(validator.iter_errors(data))

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
    except Exception as e:
        logger.error(f"Unexpected error during validation: {e}")
        return False, f"Validation failed: {str(e)}"


def validate_persisted_state(
    raw_state: Mapping[str, Any],
) -> Tuple[bool, Optional[str]]:
    """Check a raw persisted state record has the expected layout."""
    return validate_against_schema(raw_state, PERSISTED_STATE_SCHEMA)


def validate_declaration(
    kind: "ResourceKind", desired: "DesiredConfiguration"
) -> Tuple[bool, Optional[str]]:
    """
    Validate a declaration for a resource kind.

    Checks the name, that every scope field the kind needs is present and
    non-empty, and the attributes against the kind's schema.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not desired.name:
        return False, "name: must not be empty"

    name_error = kind.validate_name(desired.name)
    if name_error:
        return False, f"name: {name_error}"

    missing = [
        segment.field
        for segment in kind.scope_segments
        if segment.field is not None and not desired.scope.get(segment.field)
    ]
    if missing:
        return False, f"scope: missing fields: {', '.join(missing)}"

    return validate_against_schema(desired.attributes, kind.schema)
