"""
Data models for duplicate detection.
"""

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import List, Optional, Tuple


class Tristate(str, Enum):
    """Yes/no flag that the extractor may leave undetermined."""
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "Tristate":
        """Accept booleans and the "True"/"False"/"unknown" strings the extractor emits."""
        if isinstance(value, cls):
            return value
        if value is True:
            return cls.YES
        if value is False:
            return cls.NO
        if isinstance(value, str):
            v = value.strip().lower()
            if v in ("true", "yes"):
                return cls.YES
            if v in ("false", "no"):
                return cls.NO
        return cls.UNKNOWN


class PaymentMethod(str, Enum):
    """How the receipt was paid."""
    CARD = "card"
    CASH = "cash"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "PaymentMethod":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class Confidence(str, Enum):
    """Coarse certainty of a duplicate flag."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ImageFingerprint:
    """Perceptual features of one uploaded image."""
    perceptual_bits: Tuple[int, ...]
    color_histogram: Tuple[int, ...]
    edge_bits: Tuple[int, ...]
    mean_brightness: float
    file_name: str
    file_size: int


@dataclass(frozen=True)
class SimilarityScore:
    """Result of comparing two fingerprints. All scores are on a 0-100 scale."""
    is_duplicate: bool
    confidence: float
    hash_similarity: float = 100.0
    edge_similarity: float = 100.0
    color_similarity: float = 100.0
    brightness_similarity: float = 100.0


@dataclass(frozen=True, eq=False)
class DuplicateImageWarning:
    """Two uploaded files that look like the same receipt."""
    file_name_a: str
    file_name_b: str
    confidence_percent: float

    def names(self) -> frozenset:
        return frozenset((self.file_name_a, self.file_name_b))

    def references(self, file_name: str) -> bool:
        return file_name in (self.file_name_a, self.file_name_b)

    def __eq__(self, other):
        if not isinstance(other, DuplicateImageWarning):
            return NotImplemented
        return (self.names() == other.names()
                and self.confidence_percent == other.confidence_percent)

    def __hash__(self):
        return hash((self.names(), self.confidence_percent))

    def to_dict(self):
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ReceiptItem:
    """One line item of an extracted receipt."""
    name: str
    quantity: float = 1.0
    measurement_unit: str = "ks"
    total_price_without_discount: float = 0.0
    unit_price: float = 0.0
    total_price_with_discount: float = 0.0
    discount: float = 0.0
    category: str = "Other"
    item_price_with_tax: Tristate = Tristate.UNKNOWN


@dataclass
class TaxItem:
    """One tax line of an extracted receipt."""
    tax_name: str
    percentage: float = 0.0
    tax_from_amount: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    tax_included: Tristate = Tristate.UNKNOWN


@dataclass
class ReceiptRecord:
    """Structured fields extracted from a receipt image."""
    store_name: str
    total_price: float
    datetime: str = ""
    country: str = "unknown"
    receipt_type: str = "unknown"
    address: str = "unknown"
    currency: str = ""
    sub_total_amount: Optional[float] = None
    total_discount: float = 0.0
    all_items_price_with_tax: Tristate = Tristate.UNKNOWN
    payment_method: PaymentMethod = PaymentMethod.UNKNOWN
    rounding: float = 0.0
    tax: float = 0.0
    taxes_not_included_sum: float = 0.0
    tips: float = 0.0
    items: List[ReceiptItem] = field(default_factory=list)
    taxs_items: List[TaxItem] = field(default_factory=list)

    def to_dict(self):
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class DuplicateReceiptGroup:
    """A pair of records flagged as the same purchase."""
    indices: Tuple[int, int]
    reason: str
    confidence: Confidence
    records: Tuple[ReceiptRecord, ReceiptRecord]

    @property
    def key(self) -> Tuple[int, int]:
        """Unordered pair key."""
        i, j = self.indices
        return (i, j) if i <= j else (j, i)

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "indices": list(self.indices),
            "reason": self.reason,
            "confidence": self.confidence.value,
            "records": [asdict(r) for r in self.records],
        }
