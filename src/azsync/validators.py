"""
Input validation for names sent to Azure.

Provides validation for Key Vault secret names and blob names so invalid
keys fail locally with a clear message instead of as an HTTP 400.
"""

import re

_SECRET_NAME_PATTERN = re.compile(r"^[0-9A-Za-z-]{1,127}$")

MAX_BLOB_NAME_LENGTH = 1024


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Secret name")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_secret_name(name: str) -> tuple[bool, str]:
    """
    Validate a Key Vault secret name.

    Args:
        name: The secret name (hyphenated form) to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty
        - 1-127 characters from [0-9A-Za-z-]
    """
    if not name:
        return (
            False,
            format_validation_error("Secret name", "cannot be empty"),
        )

    if not _SECRET_NAME_PATTERN.match(name):
        return (
            False,
            format_validation_error(
                "Secret name",
                f"'{name}' must be 1-127 letters, digits or hyphens",
            ),
        )

    return (True, "")


def validate_blob_name(name: str) -> tuple[bool, str]:
    """
    Validate a blob name.

    Args:
        name: The blob name to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot exceed 1024 characters
        - Cannot end with '.' or '/'
        - Cannot contain '..' path segments
    """
    if not name or not name.strip():
        return (
            False,
            format_validation_error("Blob name", "cannot be empty"),
        )

    if len(name) > MAX_BLOB_NAME_LENGTH:
        return (
            False,
            format_validation_error(
                "Blob name",
                f"exceeds maximum length of {MAX_BLOB_NAME_LENGTH} characters",
            ),
        )

    if name.endswith((".", "/")):
        return (
            False,
            format_validation_error(
                "Blob name", "cannot end with '.' or '/'"
            ),
        )

    if ".." in name.split("/"):
        return (
            False,
            format_validation_error("Blob name", "cannot contain '..'"),
        )

    return (True, "")
