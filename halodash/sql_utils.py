"""SQL and naming helpers for report text handled by the validator."""

from __future__ import annotations

import re


def validate_artifact_name(name: str) -> str:
    """Validate a report or dashboard name before sending it to the platform.

    Args:
        name: The proposed name

    Returns:
        The trimmed name

    Raises:
        ValueError: If the name is empty, too long or contains control characters
    """
    trimmed = name.strip()
    if not trimmed:
        raise ValueError("Name cannot be empty.")
    if len(trimmed) > 255:
        raise ValueError(f"Name too long: {trimmed[:40]}... Maximum 255 characters allowed.")
    if re.search(r"[\x00-\x1f]", trimmed):
        raise ValueError(f"Invalid name: {trimmed!r}. Control characters are not allowed.")
    return trimmed


def normalize_sql(sql: str) -> str:
    """Strip surrounding whitespace and a trailing statement terminator."""

    stripped = sql.strip()
    while stripped.endswith(";"):
        stripped = stripped[:-1].rstrip()
    return stripped


def bracket_identifier(identifier: str) -> str:
    """Quote a T-SQL identifier with square brackets, escaping ``]``."""

    if identifier.startswith("[") and identifier.endswith("]"):
        return identifier
    return "[" + identifier.replace("]", "]]") + "]"


def underscore_to_spaced(identifier: str) -> str:
    """``Priority_Description`` -> ``[Priority Description]``."""

    return bracket_identifier(identifier.replace("_", " "))
