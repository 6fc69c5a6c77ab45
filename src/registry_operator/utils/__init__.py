"""Utility functions for the Image Registry Operator."""

from .conditions import (
    find_condition,
    set_available_condition,
    set_degraded_condition,
    set_progressing_condition,
    update_condition,
)
from .errors import sanitize_error_message, sanitize_exception
from .events import emit_event

__all__ = [
    "update_condition",
    "find_condition",
    "set_available_condition",
    "set_progressing_condition",
    "set_degraded_condition",
    "sanitize_error_message",
    "sanitize_exception",
    "emit_event",
]
