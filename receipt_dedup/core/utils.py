"""
Utility functions and constants for duplicate detection.
"""

import re
import datetime as dt
from pathlib import Path
from typing import Optional

# File type constants
IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp", ".gif"}

# Fingerprint geometry shared by the extractor and the scorer
GRID_SIZE = 16
HISTOGRAM_BINS = 16
PERCEPTUAL_THRESHOLD = 128  # gray level above which a pixel is "on"
EDGE_THRESHOLD = 30         # summed horizontal + vertical gradient

# Extractor timestamp format is "YYYY.MM.DD HH:MM:SS"
DATETIME_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
]

_DOTTED_DATE = re.compile(r"^(\d{4})\.(\d{1,2})\.(\d{1,2})")


def normalize_file_name(name: str) -> str:
    """Case-normalized name used as file identity."""
    return (name or "").strip().lower()


def is_image_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in IMAGE_EXTS


def parse_receipt_datetime(value: Optional[str]) -> Optional[dt.datetime]:
    """
    Parse an extracted timestamp.

    Dots in the date portion are converted to dashes first. Returns None
    when the value cannot be parsed.
    """
    if not value or not isinstance(value, str):
        return None
    s = _DOTTED_DATE.sub(r"\1-\2-\3", value.strip())
    for fmt in DATETIME_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def percent_fmt(v: float) -> str:
    """Format a 0-100 score with one decimal."""
    return f"{v:.1f}%"


def money_fmt(v: Optional[float], currency: str = "") -> str:
    """Format amount with an optional currency code."""
    if v is None:
        return ""
    return f"{currency} {v:,.2f}".strip()
