"""Utility functions for the LiteLLM Operator."""

from .conditions import (
    set_error_conditions,
    set_progressing_conditions,
    set_success_conditions,
    update_condition,
)
from .errors import classify_error, sanitize_exception
from .events import emit_event
from .kubernetes import create_or_update_with_retry
from .secrets import get_secret_value, read_secret_data

__all__ = [
    "update_condition",
    "set_success_conditions",
    "set_error_conditions",
    "set_progressing_conditions",
    "classify_error",
    "sanitize_exception",
    "emit_event",
    "create_or_update_with_retry",
    "get_secret_value",
    "read_secret_data",
]
