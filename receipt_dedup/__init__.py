"""
Receipt Dedup

Near-duplicate detection for receipt uploads: perceptual image
fingerprints before extraction, tiered record comparison after it.
"""

__version__ = "1.0.0"
__author__ = "Receipt Dedup Contributors"

from receipt_dedup.core.models import (ImageFingerprint, DuplicateImageWarning,
                                       ReceiptRecord, DuplicateReceiptGroup)
from receipt_dedup.core.features import DecodeError, extract_features
from receipt_dedup.core.scoring import score
from receipt_dedup.core.batch import UploadBatch, UploadedFile
from receipt_dedup.core.records import find_duplicates

__all__ = [
    "ImageFingerprint",
    "DuplicateImageWarning",
    "ReceiptRecord",
    "DuplicateReceiptGroup",
    "DecodeError",
    "extract_features",
    "score",
    "UploadBatch",
    "UploadedFile",
    "find_duplicates",
]
