"""Model-level validation utilities for data integrity.

Reusable validators that enforce business rules at the ORM level, so invalid
amounts never reach the shared store regardless of which service writes them.
"""

from decimal import Decimal


def non_negative(key: str, value):
    """Validate that a numeric value is >= 0."""
    if value is not None:
        v = Decimal(str(value)) if not isinstance(value, Decimal) else value
        if v < 0:
            raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    """Validate that a numeric value is > 0."""
    if value is not None:
        v = Decimal(str(value)) if not isinstance(value, Decimal) else value
        if v <= 0:
            raise ValueError(f"{key} must be positive, got {value}")
    return value


def validate_list_of_dicts(key: str, value):
    """Validate that a JSON column value is a list of dicts (or None)."""
    if value is not None:
        if not isinstance(value, list):
            raise ValueError(f"{key} must be a list, got {type(value).__name__}")
        for i, item in enumerate(value):
            if not isinstance(item, dict):
                raise ValueError(f"{key}[{i}] must be a dict, got {type(item).__name__}")
    return value


def validate_dict(key: str, value):
    """Validate that a JSON column value is a dict (or None)."""
    if value is not None and not isinstance(value, dict):
        raise ValueError(f"{key} must be a dict, got {type(value).__name__}")
    return value
