"""Utility functions for the pattern training engine.

This sub-package provides utility functions for:
- JSON persistence
- Validation of raw vision output
"""

from .file_utils import ensure_directory, load_json, save_json
from .validation import validate_raw_element, validate_screen_size

__all__ = [
    "ensure_directory",
    "load_json",
    "save_json",
    "validate_raw_element",
    "validate_screen_size",
]
