"""
Parsers turning extraction output into receipt records.
"""

import json
import re
from pathlib import Path
from typing import Dict, List, Optional

from .models import PaymentMethod, ReceiptItem, ReceiptRecord, TaxItem, Tristate

NOT_FOUND_MARKER = "receipt not found"

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def normalize_amount(value, default: Optional[float] = 0.0) -> Optional[float]:
    """Coerce an extracted money/quantity value to float."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip().replace(",", "").replace(" ", "")
    try:
        return float(s)
    except ValueError:
        return default


def _text(value, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def extract_json_block(text: str) -> Optional[str]:
    """
    Return the JSON payload of a model response.

    The body of the first fenced code block wins; otherwise the whole
    stripped text is returned. None for empty input.
    """
    if not text or not text.strip():
        return None
    m = _FENCED_BLOCK.search(text)
    if m:
        return m.group(1).strip()
    return text.strip()


def item_from_dict(data: Dict) -> ReceiptItem:
    return ReceiptItem(
        name=_text(data.get("name")),
        quantity=normalize_amount(data.get("quantity"), 1.0),
        measurement_unit=_text(data.get("measurement_unit"), "ks") or "ks",
        total_price_without_discount=normalize_amount(data.get("total_price_without_discount")),
        unit_price=normalize_amount(data.get("unit_price")),
        total_price_with_discount=normalize_amount(data.get("total_price_with_discount")),
        discount=normalize_amount(data.get("discount")),
        category=_text(data.get("category"), "Other") or "Other",
        item_price_with_tax=Tristate.parse(data.get("item_price_with_tax")),
    )


def tax_item_from_dict(data: Dict) -> TaxItem:
    return TaxItem(
        tax_name=_text(data.get("tax_name")),
        percentage=normalize_amount(data.get("percentage")),
        tax_from_amount=normalize_amount(data.get("tax_from_amount")),
        tax=normalize_amount(data.get("tax")),
        total=normalize_amount(data.get("total")),
        tax_included=Tristate.parse(data.get("tax_included")),
    )


def receipt_from_dict(data: Dict) -> ReceiptRecord:
    """
    Build a record from an extraction dict.

    Unreadable money fields become 0.0, except sub_total_amount which
    becomes None ("unknown"). Item entries that are not objects are dropped.
    """
    items = data.get("items") or []
    tax_items = data.get("taxs_items") or []
    return ReceiptRecord(
        store_name=_text(data.get("store_name")),
        total_price=normalize_amount(data.get("total_price")),
        datetime=_text(data.get("datetime")),
        country=_text(data.get("country"), "unknown"),
        receipt_type=_text(data.get("receipt_type"), "unknown"),
        address=_text(data.get("address"), "unknown"),
        currency=_text(data.get("currency")),
        sub_total_amount=normalize_amount(data.get("sub_total_amount"), None),
        total_discount=normalize_amount(data.get("total_discount")),
        all_items_price_with_tax=Tristate.parse(data.get("all_items_price_with_tax")),
        payment_method=PaymentMethod.parse(data.get("payment_method")),
        rounding=normalize_amount(data.get("rounding")),
        tax=normalize_amount(data.get("tax")),
        taxes_not_included_sum=normalize_amount(data.get("taxes_not_included_sum")),
        tips=normalize_amount(data.get("tips")),
        items=[item_from_dict(i) for i in items if isinstance(i, dict)],
        taxs_items=[tax_item_from_dict(t) for t in tax_items if isinstance(t, dict)],
    )


def parse_receipt_response(text: str) -> Optional[ReceiptRecord]:
    """
    Parse a raw extraction response.

    Returns None when no receipt was found or the response holds no JSON
    object. Never raises on malformed input.
    """
    payload = extract_json_block(text)
    if payload is None or payload.strip('"\' ').lower().startswith(NOT_FOUND_MARKER):
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return receipt_from_dict(data)


def load_records(path: Path) -> List[ReceiptRecord]:
    """
    Load records from a JSON file.

    Accepts a list of receipt objects or {"receipts": [...]}.
    """
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("receipts", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of receipts")
    return [receipt_from_dict(d) for d in data if isinstance(d, dict)]
