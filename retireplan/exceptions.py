"""
Custom exceptions for RetirePlan.

Purpose
-------
Provides a unified exception hierarchy for the code that surrounds the
projection engine: request loading, the settings repository and the CLI.
The engine itself never raises across `plan_retirement`; bad planning input
is clamped into a degenerate result instead.

Exception Hierarchy
-------------------
RetirePlanError (base)
├── ConfigurationError - Invalid settings or unsupported options
├── ValidationError - Structurally malformed request data
│   └── SchemaVersionError - Request written by an incompatible version
└── SerializationError - Files that cannot be read or written

Usage
-----
>>> from retireplan.exceptions import ValidationError
>>> try:
...     request = load_request(path)
... except RetirePlanError as e:
...     print(f"RetirePlan error: {e}")
"""


class RetirePlanError(Exception):
    """
    Base exception for all RetirePlan errors.

    Examples
    --------
    >>> try:
    ...     repo.load_selection("default")
    ... except RetirePlanError as e:
    ...     logger.error(f"Could not load strategy: {e}")
    """
    pass


class ConfigurationError(RetirePlanError):
    """
    Invalid configuration or parameters outside the engine boundary.

    Raised when:
    - An unknown income strategy name is requested from the CLI
    - The settings store path is not a writable location

    Examples
    --------
    >>> raise ConfigurationError(
    ...     "Unknown income strategy 'AGGRESSIVE'. "
    ...     "Use one of: SUSTAINABLE, SAFE_4_PERCENT, SIMPLE_DEPLETION."
    ... )
    """
    pass


class ValidationError(RetirePlanError):
    """
    Structurally malformed request data.

    Raised when a request payload is not a mapping, or a record collection
    is not a list. Individual bad field values are NOT errors; they are
    defaulted during aggregation.

    Examples
    --------
    >>> raise ValidationError("'investments' must be a list, got dict")
    """
    pass


class SchemaVersionError(ValidationError):
    """
    Request or plan written by an incompatible schema version.

    Examples
    --------
    >>> raise SchemaVersionError(
    ...     "Unsupported schema_version '2.0.0' (expected major version 0)."
    ... )
    """
    pass


class SerializationError(RetirePlanError):
    """
    File could not be read, parsed or written.

    Examples
    --------
    >>> raise SerializationError(f"Invalid JSON in {path}: {err}")
    """
    pass
