"""
Best-effort medication classification from free text.

These categories are a default for new catalog entries created by uploads,
not a validated clinical classification; pharmacists can edit them later.
The dosage-form rule table can be replaced without a code change by pointing
CATEGORY_RULES_FILE at a JSON file:

    [{"category": "Injectable", "keywords": ["injection", "iv", "im"]}, ...]
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from app.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General Medicine"

CategoryRules = List[Tuple[str, Tuple[str, ...]]]

# Dosage-form categories for the Excel bulk upload. Order matters: first match wins.
DEFAULT_CATEGORY_RULES: CategoryRules = [
    ("Injectable", ("injection", "iv", "im")),
    ("Tablet", ("tablet", "tab")),
    ("Capsule", ("capsule", "cap")),
    ("Liquid", ("syrup", "suspension", "liquid")),
    ("Topical", ("cream", "ointment", "gel")),
    ("Drops", ("drop", "eye", "ear")),
    ("Respiratory", ("inhaler", "nebulizer")),
    ("Powder", ("powder", "sachet")),
]

# Therapeutic classes for the CSV catalog upload, matched on name and generic name.
THERAPEUTIC_CLASS_RULES: CategoryRules = [
    ("Antibiotics", ("antibiotic", "amox", "azith", "cef", "augmentin", "levoflox")),
    ("Cardiovascular", ("amlodipine", "atenolol", "metoprolol", "losartan")),
    ("Pain Management", ("paracetamol", "ibuprofen", "diclofenac", "ketorol")),
    ("Vitamins & Supplements", ("vitamin", "multivitamin", "zinc", "calcium")),
    ("Gastrointestinal", ("pantoprazole", "omeprazole", "ranitidine")),
    ("Respiratory", ("salbutamol", "montelukast")),
    ("Diabetes", ("metformin", "glimepiride")),
    ("Neurology", ("levetiracetam", "phenytoin")),
]


def load_category_rules(path) -> CategoryRules:
    """
    Read a rule table from JSON. Raises ValueError when the file is not a
    list of {"category": str, "keywords": [str, ...]} objects.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Category rules in {path} must be a JSON list")
    rules: CategoryRules = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict) or not entry.get("category") or not isinstance(entry.get("keywords"), list):
            raise ValueError(f"Category rule #{idx} in {path} needs 'category' and a 'keywords' list")
        keywords = tuple(str(k).strip().lower() for k in entry["keywords"] if str(k).strip())
        rules.append((str(entry["category"]).strip(), keywords))
    return rules


@lru_cache(maxsize=None)
def _rules_from_file(path: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    return tuple(load_category_rules(path))


def get_category_rules() -> CategoryRules:
    """Active dosage-form rules: CATEGORY_RULES_FILE when set, else the built-in table."""
    if settings.CATEGORY_RULES_FILE:
        try:
            return list(_rules_from_file(settings.CATEGORY_RULES_FILE))
        except (OSError, ValueError) as e:
            logger.warning("Could not load CATEGORY_RULES_FILE=%s, using defaults: %s", settings.CATEGORY_RULES_FILE, e)
    return DEFAULT_CATEGORY_RULES


def _classify(text: str, rules: Sequence[Tuple[str, Sequence[str]]]) -> str:
    for category, keywords in rules:
        if any(keyword in text for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def derive_category(name: str, combination: str = "", product: str = "",
                    rules: Optional[Sequence[Tuple[str, Sequence[str]]]] = None) -> str:
    """Dosage-form category from name, combination and product text."""
    text = f"{name or ''} {combination or ''} {product or ''}".lower()
    return _classify(text, get_category_rules() if rules is None else rules)


def derive_therapeutic_class(name: str, generic_name: str = "") -> str:
    """Therapeutic class from medication name and generic name."""
    text = f"{name or ''} {generic_name or ''}".lower()
    return _classify(text, THERAPEUTIC_CLASS_RULES)


def derive_unit(product: str) -> str:
    """Stock unit implied by the product/form column."""
    lower = (product or "").lower()
    if "tablet" in lower or "tab" in lower:
        return "tablets"
    if "injection" in lower:
        return "ampoules"
    return "units"
