from __future__ import annotations

import os
import random
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional


if TYPE_CHECKING:
    pass


logger = logging.getLogger(__name__)


DEFAULT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_source_dir() -> str:
    """Return the source directory of the project."""
    this_fpath = os.path.abspath(__file__)
    utils_dir = os.path.dirname(this_fpath)
    srs_export_dir = os.path.dirname(utils_dir)
    source_dir = os.path.dirname(srs_export_dir)
    return source_dir


def format_datetime(value: Optional[datetime], fmt: str = DEFAULT_DATETIME_FORMAT) -> str:
    """Return the datetime formatted with fmt, or an empty string if value is None."""
    if value is None:
        return ""
    return value.strftime(fmt)


def normalize_rgb_color(color_data: Any, default: Optional[List[int]] = None) -> List[int]:
    """
    Normalize color data to valid RGB values [0-255].
    
    Args:
        color_data: Input color (list/tuple of 3 ints)
        default: Fallback color if invalid. If None, generates random.
    
    Returns:
        List of 3 integers in range [0, 255]
    """
    try:
        if not color_data or len(color_data) != 3:
            raise ValueError("Color must have exactly 3 components")
        
        color = [int(c) for c in color_data]
        
    except (ValueError, TypeError, AttributeError):
        logger.warning(f"Invalid color data '{color_data}'; using fallback color.")
        return default if default else [random.randint(0, 255) for _ in range(3)]
    
    # Clamp to valid range
    return [min(max(c, 0), 255) for c in color]


def format_rgb_hex(color_data: Any) -> str:
    """Return the color as an opaque '#AARRGGBB' string (alpha fixed to FF)."""
    r, g, b = normalize_rgb_color(color_data, default=[0, 0, 0])
    return f"#FF{r:02X}{g:02X}{b:02X}"


def format_rgba(color_data: Any, alpha: int = 1) -> str:
    """Return the color as a CSS 'rgba(R, G, B, A)' string."""
    r, g, b = normalize_rgb_color(color_data, default=[0, 0, 0])
    return f"rgba({r}, {g}, {b}, {alpha})"
