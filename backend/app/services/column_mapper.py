"""
Header -> field mapping for pharmacy stock sheets.

Supplier sheets name their columns loosely ("Medicine Name", "MEDICINE",
"Batch No.", "Expiry Dt", "Purchase Rat."), and different sheets in the same
workbook rarely agree. Each header is lower-cased and stripped of all
whitespace, then matched against COLUMN_RULES in order. The first rule that
matches decides the header's field; if several headers land on the same
field the right-most one wins.
"""
import re
from typing import Dict, List, Optional, Sequence, Tuple

# Canonical field names
MEDICINE = "medicine"
BATCH = "batch"
PURCHASE_RATE = "purchase_rate"
MRP = "mrp"
EXPIRY = "expiry"
QTY = "qty"
PACK = "pack"
COMBINATION = "combination"
ROUTE = "route"
AMPOULE = "ampoule"
BRAND = "brand"
PRODUCT = "product"

REQUIRED_FIELD = MEDICINE

# (field, match kind, tokens). "contains" = substring, "equals" = whole header.
COLUMN_RULES: List[Tuple[str, str, Tuple[str, ...]]] = [
    (MEDICINE, "contains", ("medicine",)),
    (BATCH, "contains", ("batchno",)),
    (PURCHASE_RATE, "contains", ("purchaserat",)),
    (MRP, "equals", ("mrp",)),
    (EXPIRY, "contains", ("expiry",)),
    (QTY, "equals", ("qty", "quantity")),
    (PACK, "equals", ("pack",)),
    (COMBINATION, "contains", ("combination",)),
    (ROUTE, "contains", ("iv", "im")),
    (AMPOULE, "contains", ("ampolue", "ampoule")),
    (BRAND, "contains", ("brand",)),
    (PRODUCT, "contains", ("product",)),
]

_WHITESPACE = re.compile(r"\s+")


def normalize_header(header) -> str:
    """Lower-case a header cell and drop all whitespace ("Batch No" -> "batchno")."""
    if header is None:
        return ""
    return _WHITESPACE.sub("", str(header).strip().lower())


def match_field(header) -> Optional[str]:
    """Return the canonical field for one header, or None."""
    key = normalize_header(header)
    if not key:
        return None
    for field, kind, tokens in COLUMN_RULES:
        if kind == "equals" and key in tokens:
            return field
        if kind == "contains" and any(token in key for token in tokens):
            return field
    return None


def map_columns(headers: Sequence) -> Dict[str, int]:
    """
    Map canonical field -> 0-based column index from a sheet's header row.
    Unrecognized and empty headers are ignored.
    """
    column_map: Dict[str, int] = {}
    for idx, header in enumerate(headers):
        field = match_field(header)
        if field:
            column_map[field] = idx
    return column_map


def missing_required(column_map: Dict[str, int]) -> bool:
    """True when the sheet has no medicine-name column and must be rejected."""
    return REQUIRED_FIELD not in column_map


def get_cell(row: Sequence, column_map: Dict[str, int], field: str):
    """Value of ``field`` in a data row, None when unmapped or past the row's end."""
    idx = column_map.get(field)
    if idx is None or idx >= len(row):
        return None
    return row[idx]
