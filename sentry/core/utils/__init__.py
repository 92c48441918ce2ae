"""
Core utilities module for SENTRY.
"""

from sentry.core.utils.json_parser import (
    JSONParseError,
    extract_first_json_object,
    extract_json_from_markdown,
    load_json_object,
)

__all__ = [
    "JSONParseError",
    "extract_json_from_markdown",
    "extract_first_json_object",
    "load_json_object",
]
