"""
Duplicate detection over extracted receipt records.
"""

from typing import List, Optional, Sequence, Set, Tuple

from .models import Confidence, DuplicateReceiptGroup, ReceiptRecord
from .settings import RecordThresholds, DEFAULT_RECORD_THRESHOLDS
from .utils import parse_receipt_datetime

REASON_EXACT = "Identical store, amount, and datetime"
REASON_NEAR_TIME = "Same store, amount, and time within {hours:g} hour{plural}"


def hours_apart(a: ReceiptRecord, b: ReceiptRecord) -> Optional[float]:
    """Absolute time between two receipts in hours, or None if either timestamp is unparseable."""
    ta = parse_receipt_datetime(a.datetime)
    tb = parse_receipt_datetime(b.datetime)
    if ta is None or tb is None:
        return None
    return abs((ta - tb).total_seconds()) / 3600


def amount_difference_percent(a: float, b: float) -> Optional[float]:
    """Difference relative to the average of the two amounts; None when the average is 0."""
    avg = (a + b) / 2
    if avg == 0:
        return None
    return abs(a - b) / avg * 100


def item_overlap_percent(a: ReceiptRecord, b: ReceiptRecord) -> Optional[float]:
    """
    Share of items present on both receipts.

    An item of `a` counts as common when `b` has an item with the same
    name (case-insensitive) and the same discounted total. The count is
    divided by the longer item list. None when either receipt has no items.
    """
    if not a.items or not b.items:
        return None
    other = {(item.name.lower(), item.total_price_with_discount) for item in b.items}
    common = sum(1 for item in a.items
                 if (item.name.lower(), item.total_price_with_discount) in other)
    return common / max(len(a.items), len(b.items)) * 100


def _near_time_reason(hours: float) -> str:
    return REASON_NEAR_TIME.format(hours=hours, plural="" if hours == 1 else "s")


def compare_records(a: ReceiptRecord, b: ReceiptRecord,
                    thresholds: RecordThresholds = DEFAULT_RECORD_THRESHOLDS
                    ) -> List[Tuple[str, Confidence]]:
    """
    Every rule that flags the pair, in priority order.

    An exact or near-time match ends the evaluation for the pair; the
    fuzzy-amount and item-overlap rules are independent of each other.
    """
    matches = []
    same_store = a.store_name == b.store_name

    if same_store and a.total_price == b.total_price:
        if a.datetime == b.datetime:
            return [(REASON_EXACT, Confidence.HIGH)]
        hours = hours_apart(a, b)
        if hours is not None and hours <= thresholds.near_time_hours:
            return [(_near_time_reason(thresholds.near_time_hours), Confidence.HIGH)]

    if same_store:
        diff = amount_difference_percent(a.total_price, b.total_price)
        if diff is not None and diff <= thresholds.amount_tolerance_percent:
            matches.append((f"Same store, amount differs by {diff:.1f}%", Confidence.MEDIUM))

    similarity = item_overlap_percent(a, b)
    if similarity is not None and similarity >= thresholds.item_overlap_percent:
        confidence = (Confidence.HIGH if similarity >= thresholds.item_overlap_high_percent
                      else Confidence.MEDIUM)
        matches.append((f"{similarity:.0f}% identical items", confidence))

    return matches


def find_duplicates(records: Sequence[ReceiptRecord],
                    thresholds: RecordThresholds = DEFAULT_RECORD_THRESHOLDS
                    ) -> List[DuplicateReceiptGroup]:
    """
    Scan all pairs of a batch of records for likely duplicates.

    Returns:
        One group per flagged pair (first matching rule wins), ordered by
        (i, j).
    """
    candidates = []
    for i in range(len(records)):
        for j in range(i + 1, len(records)):
            for reason, confidence in compare_records(records[i], records[j], thresholds):
                candidates.append(DuplicateReceiptGroup(
                    indices=(i, j),
                    reason=reason,
                    confidence=confidence,
                    records=(records[i], records[j]),
                ))
    return collapse_groups(candidates)


def collapse_groups(groups: Sequence[DuplicateReceiptGroup]) -> List[DuplicateReceiptGroup]:
    """Keep the first group for each unordered index pair."""
    seen: Set[Tuple[int, int]] = set()
    unique = []
    for group in groups:
        if group.key in seen:
            continue
        seen.add(group.key)
        unique.append(group)
    return unique


def flagged_indices(groups: Sequence[DuplicateReceiptGroup]) -> Set[int]:
    """Positions of every record that takes part in at least one group."""
    return {idx for group in groups for idx in group.indices}
