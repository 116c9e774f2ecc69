"""Utility modules for kmainline.

This module exports commonly used utility functions.
"""

from kmainline.utils.formatting import (
    console,
    err_console,
    format_bytes,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from kmainline.utils.urls import basename, join_url

__all__ = [
    "basename",
    "console",
    "err_console",
    "format_bytes",
    "join_url",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
