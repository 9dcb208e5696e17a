"""
Similarity scoring between two image fingerprints.
"""

from typing import Sequence

from .models import ImageFingerprint, SimilarityScore
from .settings import ImageThresholds, DEFAULT_IMAGE_THRESHOLDS


def bit_similarity(a: Sequence[int], b: Sequence[int]) -> float:
    """Percentage of positions where the two bit sequences agree. 0 if shapes differ."""
    if not a or len(a) != len(b):
        return 0.0
    matches = sum(1 for x, y in zip(a, b) if x == y)
    return matches / len(a) * 100


def color_similarity(a: Sequence[int], b: Sequence[int]) -> float:
    """
    Compare two histograms after normalizing each to sum to 1.

    The L1 distance between normalized histograms is at most 2, so
    100 - 50 * distance maps identical to 100 and disjoint to 0.
    """
    if not a or len(a) != len(b):
        return 0.0
    total_a, total_b = sum(a), sum(b)
    if total_a <= 0 or total_b <= 0:
        return 0.0
    distance = sum(abs(x / total_a - y / total_b) for x, y in zip(a, b))
    return max(0.0, 100 - 50 * distance)


def brightness_similarity(a: float, b: float) -> float:
    return max(0.0, 100 - abs(a - b))


def score(a: ImageFingerprint, b: ImageFingerprint,
          thresholds: ImageThresholds = DEFAULT_IMAGE_THRESHOLDS) -> SimilarityScore:
    """
    Decide whether two fingerprints belong to the same receipt.

    Same name and byte size is treated as a re-upload of the same file.
    Otherwise the verdict needs the weighted score and both bit-level
    scores to clear their thresholds; no single signal is enough.
    """
    if a.file_name == b.file_name and a.file_size == b.file_size:
        return SimilarityScore(is_duplicate=True, confidence=100.0)

    hash_sim = bit_similarity(a.perceptual_bits, b.perceptual_bits)
    edge_sim = bit_similarity(a.edge_bits, b.edge_bits)
    color_sim = color_similarity(a.color_histogram, b.color_histogram)
    bright_sim = brightness_similarity(a.mean_brightness, b.mean_brightness)

    combined = (thresholds.hash_weight * hash_sim
                + thresholds.edge_weight * edge_sim
                + thresholds.color_weight * color_sim
                + thresholds.brightness_weight * bright_sim)

    return SimilarityScore(
        is_duplicate=(combined > thresholds.min_combined
                      and hash_sim > thresholds.min_hash
                      and edge_sim > thresholds.min_edge),
        confidence=combined,
        hash_similarity=hash_sim,
        edge_similarity=edge_sim,
        color_similarity=color_sim,
        brightness_similarity=bright_sim,
    )
