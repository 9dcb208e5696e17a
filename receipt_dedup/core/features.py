"""
Perceptual feature extraction for uploaded receipt images.
"""

import io
from pathlib import Path
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from .models import ImageFingerprint
from .utils import (GRID_SIZE, HISTOGRAM_BINS, PERCEPTUAL_THRESHOLD, EDGE_THRESHOLD,
                    normalize_file_name)


class DecodeError(ValueError):
    """Image bytes could not be decoded into pixels."""

    def __init__(self, file_name: str, reason: str):
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.reason = reason


def _decode_grid(image_bytes: bytes, file_name: str, grid_size: int) -> List[tuple]:
    """Decode bytes and resample to a grid_size x grid_size RGB pixel list (row-major)."""
    if not image_bytes:
        raise DecodeError(file_name, "empty file")
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img = img.convert("RGB").resize((grid_size, grid_size), Image.Resampling.BILINEAR)
            data = img.tobytes()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, EOFError,
            SyntaxError, ValueError) as e:
        # Oversized headers raise DecompressionBombError, a plain Exception
        raise DecodeError(file_name, str(e) or type(e).__name__) from e
    return [tuple(data[i:i + 3]) for i in range(0, len(data), 3)]


def grayscale(pixels: List[tuple]) -> List[float]:
    """Average of the three channels per pixel."""
    return [(r + g + b) / 3 for r, g, b in pixels]


def perceptual_bits(gray: List[float]) -> tuple:
    return tuple(1 if v > PERCEPTUAL_THRESHOLD else 0 for v in gray)


def color_histogram(gray: List[float], bins: int = HISTOGRAM_BINS) -> tuple:
    """Count pixels per brightness bin; values at the top end clamp to the last bin."""
    width = 256 // bins
    counts = [0] * bins
    for v in gray:
        counts[min(int(v // width), bins - 1)] += 1
    return tuple(counts)


def edge_bits(gray: List[float], grid_size: int) -> tuple:
    """
    One bit per pixel that has a right and a lower neighbour.

    A bit is set when |g(x,y)-g(x+1,y)| + |g(x,y)-g(x,y+1)| exceeds
    EDGE_THRESHOLD.
    """
    bits = []
    for y in range(grid_size - 1):
        row = y * grid_size
        for x in range(grid_size - 1):
            here = gray[row + x]
            edge = abs(here - gray[row + x + 1]) + abs(here - gray[row + grid_size + x])
            bits.append(1 if edge > EDGE_THRESHOLD else 0)
    return tuple(bits)


def extract_features(image_bytes: bytes, file_name: str,
                     file_size: Optional[int] = None,
                     grid_size: int = GRID_SIZE) -> ImageFingerprint:
    """
    Compute the fingerprint of an image.

    Args:
        image_bytes: Raw PNG/JPEG/... file content
        file_name: Original file name (stored case-normalized)
        file_size: Size in bytes; defaults to len(image_bytes)
        grid_size: Side of the downsampled grid, must be at least 2

    Returns:
        ImageFingerprint

    Raises:
        DecodeError: if the bytes are not a decodable image
    """
    if grid_size < 2:
        raise ValueError(f"grid_size must be at least 2, got {grid_size}")

    name = normalize_file_name(file_name)
    gray = grayscale(_decode_grid(image_bytes, name, grid_size))

    return ImageFingerprint(
        perceptual_bits=perceptual_bits(gray),
        color_histogram=color_histogram(gray),
        edge_bits=edge_bits(gray, grid_size),
        mean_brightness=sum(gray) / len(gray),
        file_name=name,
        file_size=len(image_bytes) if file_size is None else file_size,
    )


def fingerprint_file(path: Path, grid_size: int = GRID_SIZE) -> ImageFingerprint:
    """Read an image from disk and fingerprint it."""
    data = path.read_bytes()
    return extract_features(data, path.name, file_size=len(data), grid_size=grid_size)
