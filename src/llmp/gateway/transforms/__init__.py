"""Byte-level transforms applied to request bodies."""

from .json_fields import FieldSpan, MalformedJSONError, locate_fields, replace_value

__all__ = [
    "FieldSpan",
    "MalformedJSONError",
    "locate_fields",
    "replace_value",
]
