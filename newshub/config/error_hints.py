"""Hints for configuration validation errors.

Maps pydantic error types and field names to short remediation steps.
"""

from typing import Final


ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "This field is required. Please add it to your configuration.",
    "extra_forbidden": "Unknown field. Check the spelling against the documentation.",
    "enum": "Check the allowed values in the documentation.",
    "int_parsing": "This field must be an integer (whole number).",
    "int_type": "This field must be an integer (whole number).",
    "bool_parsing": "This field must be true or false.",
    "string_type": "This field must be a text string.",
    "list_type": "This field must be a list.",
    "tuple_type": "This field must be a list.",
    "dict_type": "This field must be a mapping.",
    "greater_than_equal": "The value is too small. Check the minimum allowed.",
    "less_than_equal": "The value is too large. Check the maximum allowed.",
    "too_short": "The list is too short. Add at least one entry.",
    "string_too_short": "The text is too short. Check minimum length requirement.",
    "string_too_long": "The text is too long. Check maximum length requirement.",
    "string_pattern_mismatch": (
        "The format is invalid. Use lowercase letters, numbers, hyphens, "
        "or underscores only."
    ),
    "value_error": "Check the value format and the referenced ids.",
    "file_not_found": "The file does not exist. Check the file path.",
    "yaml_parse_error": "Invalid YAML syntax. Check indentation and formatting.",
}

FIELD_HINTS: Final[dict[str, str]] = {
    "id": "Use lowercase letters, numbers, hyphens, or underscores (e.g. 'bbc-world').",
    "url": "Must be an HTTP/HTTPS feed URL (e.g. 'https://example.org/rss.xml').",
    "categories": "Use category names such as all, tech, software, india, sports.",
    "preload_category_order": "List category names without repeats.",
    "priority": "Must be between 0 (preferred) and 10.",
    "retry_delays_ms": "List of delays in milliseconds, e.g. [300, 1000].",
}

_DEFAULT_HINT = "Check the configuration documentation for valid values."


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The pydantic error type (e.g. 'missing', 'enum').
        field_name: Optional dotted field path for field-specific hints.

    Returns:
        A hint string.
    """
    if field_name:
        for part in reversed(field_name.split(".")):
            if part in FIELD_HINTS:
                return FIELD_HINTS[part]
    return ERROR_HINTS.get(error_type, _DEFAULT_HINT)


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Format a validation error with optional hint.

    Args:
        location: The error location (e.g. 'sources.0.url').
        message: The original error message.
        error_type: The error type.
        include_hint: Whether to include a hint.

    Returns:
        Formatted error string.
    """
    base = f"{location}: {message}"
    if include_hint:
        return f"{base}\n    Hint: {get_error_hint(error_type, location)}"
    return base
