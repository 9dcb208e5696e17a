"""
Shared fixtures for the receipt-dedup test suite.

Most images are drawn at the fingerprint grid size (16x16) so that the
resample step is an exact copy and feature values can be asserted exactly.
"""

import io
import json
import struct
import zlib

import pytest
from PIL import Image, ImageDraw

from receipt_dedup.core.batch import UploadedFile
from receipt_dedup.core.models import ReceiptItem, ReceiptRecord

PAPER = 250
INK = 5

# Text-line bars of a tiny "receipt" (inclusive rectangle coordinates)
RECEIPT_BARS = [
    (2, 1, 13, 2),
    (2, 5, 10, 5),
    (2, 8, 12, 8),
    (2, 10, 7, 10),
    (8, 12, 13, 13),
]


def png_bytes(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def receipt_image(bars=RECEIPT_BARS, size: int = 16, noise_seed: int = 0) -> Image.Image:
    """
    Dark bars on light paper. A non-zero noise_seed adds a small
    deterministic +/-3 jitter to every pixel, like a re-scan of the same paper.
    """
    img = Image.new("RGB", (size, size), (PAPER, PAPER, PAPER))
    draw = ImageDraw.Draw(img)
    for bar in bars:
        draw.rectangle(bar, fill=(INK, INK, INK))
    if noise_seed:
        px = img.load()
        for y in range(size):
            for x in range(size):
                delta = ((x * (noise_seed + 4) + y * (noise_seed + 10)) % 7) - 3
                r, g, b = px[x, y]
                px[x, y] = (r + delta, g + delta, b + delta)
    return img


def half_split_image(size: int = 16) -> Image.Image:
    """Left half black, right half white."""
    img = Image.new("RGB", (size, size), (255, 255, 255))
    ImageDraw.Draw(img).rectangle((0, 0, size // 2 - 1, size - 1), fill=(0, 0, 0))
    return img


def solid_image(color, size: int = 16, mode: str = "RGB") -> Image.Image:
    return Image.new(mode, (size, size), color)


def _png_chunk(kind: bytes, body: bytes) -> bytes:
    return (struct.pack(">I", len(body)) + kind + body
            + struct.pack(">I", zlib.crc32(kind + body) & 0xFFFFFFFF))


def oversized_png(width: int = 20000, height: int = 20000) -> bytes:
    """A tiny PNG whose header declares dimensions past Pillow's pixel limit."""
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", header)
            + _png_chunk(b"IDAT", zlib.compress(b"\x00")) + _png_chunk(b"IEND", b""))


def upload(name: str, img: Image.Image) -> UploadedFile:
    return UploadedFile(name=name, data=png_bytes(img))


@pytest.fixture
def receipt_png():
    return png_bytes(receipt_image())


@pytest.fixture
def rescanned_png():
    """Same receipt as receipt_png with scanner noise."""
    return png_bytes(receipt_image(noise_seed=1))


@pytest.fixture
def other_png():
    return png_bytes(half_split_image())


@pytest.fixture
def broken_upload():
    return UploadedFile(name="broken.png", data=b"this is not an image")


def make_record(store="Cafe X", total=12.50, when="2025.01.01 10:00:00", items=None, **kwargs):
    return ReceiptRecord(store_name=store, total_price=total, datetime=when,
                         items=list(items or []), **kwargs)


def make_items(names_and_prices):
    return [ReceiptItem(name=n, total_price_with_discount=p) for n, p in names_and_prices]


@pytest.fixture
def records_json(tmp_path):
    """Write a list of receipt dicts to a JSON file and return its path."""
    def _write(data, name="receipts.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write
