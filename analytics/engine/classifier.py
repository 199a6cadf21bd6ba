"""
Product label classification.

The category is taken from the label prefix ("prod...", "acq...", "mkt...",
anything else is MISC). The subtype is the first vocabulary word contained
anywhere in the label.
"""
from __future__ import annotations

from typing import Any, Tuple

from models.analytics_models import Category, Classification, ProductSubtype

CATEGORY_PREFIXES: Tuple[Tuple[str, Category], ...] = (
    ("prod", Category.PROD),
    ("acq", Category.ACQ),
    ("mkt", Category.MKT),
)

SUBTYPE_VOCABULARY: Tuple[ProductSubtype, ...] = (
    ProductSubtype.CASINO,
    ProductSubtype.SPORT,
    ProductSubtype.POKER,
    ProductSubtype.LOTTO,
)


def classify_category(product_label: Any) -> Category:
    if not isinstance(product_label, str):
        return Category.MISC
    label = product_label.strip().lower()
    for prefix, category in CATEGORY_PREFIXES:
        if label.startswith(prefix):
            return category
    return Category.MISC


def classify_subtype(product_label: Any) -> ProductSubtype:
    if not isinstance(product_label, str):
        return ProductSubtype.NONE
    label = product_label.strip().lower()
    for subtype in SUBTYPE_VOCABULARY:
        if subtype.value in label:
            return subtype
    return ProductSubtype.NONE


def classify(product_label: Any) -> Classification:
    """Map a free-text product label to its (category, subtype)."""
    return Classification(
        category=classify_category(product_label),
        subtype=classify_subtype(product_label),
    )
