# rate_pipeline/dedupe.py

from __future__ import annotations
from typing import Dict, Iterable, List, Tuple

from .models import CurrencyIndex, Offer, ProductType, Segment

GroupKey = Tuple[ProductType, CurrencyIndex, Segment]


def group_key(offer: Offer) -> GroupKey:
    # Channel is ignored: the same economic offer shows up in several sections
    return (offer.product_type, offer.currency_index, offer.segment)


def dedupe(offers: Iterable[Offer]) -> List[Offer]:
    """
    Keep one offer per (product_type, currency_index, segment).

    The survivor is the offer with the lowest comparison value; on a tie the
    first one seen wins. Groups come out in the order they were first seen,
    which makes dedupe(dedupe(x)) == dedupe(x).
    """
    best: Dict[GroupKey, Offer] = {}

    for offer in offers:
        key = group_key(offer)
        current = best.get(key)
        if current is None or offer.comparison_value < current.comparison_value:
            best[key] = offer

    return list(best.values())
