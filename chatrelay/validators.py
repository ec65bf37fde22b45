"""
Shared validation helpers for chatrelay services.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from chatrelay.errors import ValidationIssue

_WHITESPACE_RE = re.compile(r"\s+")


def validate_required_text(value: Any, field: str, max_len: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} is required", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")
    return value


def validate_optional_text(value: Any, field: str, max_len: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")
    return value


def validate_limit(value: int, field: str, max_value: int) -> int:
    if value <= 0 or value > max_value:
        raise ValidationIssue(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")
    return value


def normalize_identity(value: str) -> str:
    return value.strip().lower()


def normalize_phrase(value: str) -> str:
    """Trim, case-fold and collapse inner whitespace."""
    return _WHITESPACE_RE.sub(" ", value.strip()).casefold()


def normalize_memory_key(value: str) -> str:
    return normalize_phrase(value)
