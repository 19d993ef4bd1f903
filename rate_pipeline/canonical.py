# rate_pipeline/canonical.py

from __future__ import annotations
import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Union

from .config_behavior import MAX_EXCERPT_LEN
from .models import (
    BankIdentity,
    Channel,
    CurrencyIndex,
    ExtractedRate,
    ExtractionInfo,
    ExtractionMethod,
    FixedRate,
    IndexedSpreadRate,
    Offer,
    OfferConditions,
    OfferSource,
    ProductType,
    Rate,
    Segment,
    SourceType,
)

OFFER_ID_LENGTH = 16


@dataclass
class SourceMeta:
    """
    Per-document facts shared by every offer extracted from that document
    """

    url: str
    source_type: SourceType
    document_label: str
    retrieved_at: datetime
    content_fingerprint: str
    method: ExtractionMethod = ExtractionMethod.REGEX


# --- ID + fingerprint helpers ----------------------------------------------


def content_fingerprint(raw: Union[bytes, str]) -> str:
    """
    SHA-256 of the raw document bytes.

    Byte-identical documents always give the same fingerprint, so consumers
    can tell whether a disclosure changed between runs.
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _format_rate(value: float) -> str:
    # 12.6 and 12.60 must hash identically
    return repr(round(float(value), 6))


def generate_offer_id(
    bank_id: str,
    product_type: ProductType,
    currency_index: CurrencyIndex,
    segment: Segment,
    channel: Channel,
    rate_from: float,
) -> str:
    """
    Stable ID derived from the offer's identifying fields.

    The tuple order matters: swapping two fields gives a different ID.
    """
    parts = [
        str(getattr(bank_id, "value", bank_id)),
        product_type.value,
        currency_index.value,
        segment.value,
        channel.value,
        _format_rate(rate_from),
    ]
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return digest[:OFFER_ID_LENGTH]


def build_rate(extracted: ExtractedRate) -> Rate:
    if extracted.currency_index == CurrencyIndex.UVR:
        return IndexedSpreadRate(spread_from=extracted.rate_from, spread_to=extracted.rate_to)
    return FixedRate(
        percent_from=extracted.rate_from,
        percent_to=extracted.rate_to,
        monthly_from=extracted.monthly_from,
        monthly_to=extracted.monthly_to,
    )


# --- Main builder ----------------------------------------------------------


def build_offer(
    bank: BankIdentity,
    extracted: ExtractedRate,
    channel: Channel,
    source_meta: SourceMeta,
) -> Offer:
    """
    Convert an ExtractedRate into a canonical Offer.

    The (method, locator, excerpt) triple in source.extraction points back
    to the exact pattern or selector that produced the number.
    """
    rate = build_rate(extracted)
    excerpt = " ".join(extracted.description.split())[:MAX_EXCERPT_LEN]

    return Offer(
        id=generate_offer_id(
            bank_id=bank.bank_id,
            product_type=extracted.product_type,
            currency_index=extracted.currency_index,
            segment=extracted.segment,
            channel=channel,
            rate_from=extracted.rate_from,
        ),
        bank_id=bank.bank_id,
        bank_name=bank.name,
        product_type=extracted.product_type,
        currency_index=extracted.currency_index,
        segment=extracted.segment,
        channel=channel,
        rate=rate,
        conditions=extracted.conditions or OfferConditions(),
        source=OfferSource(
            url=source_meta.url,
            source_type=source_meta.source_type,
            document_label=source_meta.document_label,
            retrieved_at=source_meta.retrieved_at,
            content_fingerprint=source_meta.content_fingerprint,
            extraction=ExtractionInfo(
                method=source_meta.method,
                locator=extracted.locator,
                excerpt=excerpt,
            ),
        ),
    )
