"""
Display formatting helpers used when finalizing reports.
"""

from datetime import datetime
from typing import Optional


_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_bytes(size: Optional[int], decimals: int = 2) -> str:
    """
    Format a byte count for display.

    Args:
        size: Number of bytes; None or 0 renders as "0 Bytes"
        decimals: Decimal places for scaled values

    Returns:
        Human readable size such as "1.5 MB"
    """
    if not size or size <= 0:
        return "0 Bytes"

    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1

    if unit == 0:
        return f"{int(value)} Bytes"
    text = f"{value:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit]}"


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a timestamp as ``YYYY-MM-DD HH:MM`` or an empty string."""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


def format_percentage(part: int, whole: int) -> float:
    """Percentage of ``part`` in ``whole`` rounded to one decimal."""
    if whole <= 0:
        return 0.0
    return round(part * 100.0 / whole, 1)
