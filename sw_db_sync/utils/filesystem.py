"""
Utilities for filesystem operations
"""

from pathlib import Path
from typing import Union


def ensure_dir_exists(directory: Path) -> None:
    """
    Ensures that a directory exists, creating it if necessary

    Args:
        directory: Directory path
    """
    directory.mkdir(parents=True, exist_ok=True)


def file_size(file_path: Path) -> int:
    """
    Size of a file in bytes, 0 if it does not exist
    """
    if not file_path.is_file():
        return 0
    return file_path.stat().st_size


def format_file_size(size: Union[int, float]) -> str:
    """
    Formats a byte count for humans

    Args:
        size: Number of bytes

    Returns:
        str: Size with the largest fitting unit (B, KB, MB, GB)
    """
    units = ["B", "KB", "MB", "GB"]
    unit_index = 0
    value = float(size)

    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1

    return f"{round(value, 2):g} {units[unit_index]}"


def remove_file(file_path: Path) -> bool:
    """
    Deletes a file if it exists

    Returns:
        bool: True if a file was deleted
    """
    if file_path.exists():
        file_path.unlink()
        return True
    return False
