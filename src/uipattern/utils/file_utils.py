"""File utility functions for pattern store persistence."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from ..core.logger import log


def ensure_directory(directory_path: str) -> str:
    """Ensure a directory exists, creating it if necessary.

    Args:
        directory_path: Path to the directory.

    Returns:
        Absolute path to the directory.
    """
    path = Path(directory_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return str(path)


def save_json(data: Any, filepath: str, indent: int = 2) -> bool:
    """Save data to a JSON file.

    The file is written to a temporary sibling first and moved into place,
    so readers never observe a half-written document.

    Args:
        data: Data to save.
        filepath: Path to the JSON file.
        indent: JSON indentation level.

    Returns:
        True if save successful, False otherwise.
    """
    try:
        directory = os.path.dirname(filepath)
        if directory:
            ensure_directory(directory)

        tmp_path = f"{filepath}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
        os.replace(tmp_path, filepath)

        log.debug(f"Data saved to {filepath}")
        return True

    except (OSError, TypeError, ValueError) as e:
        log.error(f"Failed to save JSON to {filepath}: {e}")
        return False


def load_json(filepath: str) -> Optional[Any]:
    """Load data from a JSON file.

    Args:
        filepath: Path to the JSON file.

    Returns:
        Loaded data or None if failed.
    """
    try:
        if not os.path.exists(filepath):
            log.warning(f"JSON file not found: {filepath}")
            return None

        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        log.debug(f"Data loaded from {filepath}")
        return data

    except (OSError, ValueError) as e:
        log.error(f"Failed to load JSON from {filepath}: {e}")
        return None
