# rate_pipeline/banks/fna.py

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import Tag

from ..documents import extract_html_sections, load_html
from ..models import (
    BankId,
    CurrencyIndex,
    DiscountType,
    ExtractedRate,
    ExtractionMethod,
    OfferConditions,
    PayrollDiscount,
    ProductType,
    Segment,
)
from ..numbers import parse_colombian_number
from .base import BankExtractor, compile_markers

RATE_TABLE_SELECTOR = "table.table-bordered"

# "Generación FNA": 50 bps off the rate for applicants under 30
YOUTH_DISCOUNT_BPS = 50

_UVR_PREFIX = re.compile(r"UVR\s*\+", re.IGNORECASE)

FUNDING_LABELS = {"CESANTIAS": "Cesantías", "AVC": "AVC"}

# Income bands (in SMLV) that map onto a segment; 2-4 SMLV has no counterpart
SEGMENT_BANDS = [
    ("0-2", Segment.VIS, "0-2 SMLV income"),
    ("4+", Segment.NO_VIS, "4+ SMLV income"),
]


@dataclass
class RateTable:
    caption: str
    funding_source: str
    currency_index: CurrencyIndex
    product_type: ProductType
    rates: dict = field(default_factory=dict)   # income band -> rate


def classify_caption(caption: str):
    funding = None
    if "Cesantías" in caption or "Cesantias" in caption:
        funding = "CESANTIAS"
    elif "AVC" in caption:
        funding = "AVC"

    currency = None
    if "UVR" in caption:
        currency = CurrencyIndex.UVR
    elif "Pesos" in caption or "E.A" in caption:
        currency = CurrencyIndex.COP

    return funding, currency


def income_band(low: str, high: str) -> Optional[str]:
    if "0" in low and "2" in high:
        return "0-2"
    if "2" in low and "4" in high:
        return "2-4"
    if "4" in low:
        return "4+"
    return None


def clean_rate(raw: str) -> float:
    return parse_colombian_number(_UVR_PREFIX.sub("", raw))


def _product_type(table: Tag) -> ProductType:
    container = table.find_parent(class_="contenedor-tasas")
    if container is not None:
        heading = container.find_previous_sibling("h2")
        if heading is not None and "Leasing" in heading.get_text():
            return ProductType.LEASING
    return ProductType.HIPOTECARIO


def parse_rate_tables(html, warnings: List[str]) -> List[RateTable]:
    """
    Every captioned rate table whose funding source and currency can be
    told from the caption. Tables like "Tasa única" (compra de cartera)
    have neither and are skipped.
    """
    soup = load_html(html)
    tables: List[RateTable] = []

    for table in soup.select(RATE_TABLE_SELECTOR):
        # Older pages put the text straight in <caption>, without the <h3>
        heading = table.select_one("caption h3") or table.find("caption")
        caption = heading.get_text(strip=True) if heading else ""
        if not caption:
            continue

        funding, currency = classify_caption(caption)
        if funding is None or currency is None:
            continue

        parsed = RateTable(
            caption=caption,
            funding_source=funding,
            currency_index=currency,
            product_type=_product_type(table),
        )

        for row in table.select("tbody tr"):
            cells = row.find_all("td")
            if len(cells) < 3:
                continue
            low, high, rate_text = (c.get_text(strip=True) for c in cells[:3])

            band = income_band(low, high)
            if band is None:
                continue
            try:
                parsed.rates.setdefault(band, clean_rate(rate_text))
            except ValueError as e:
                warnings.append(f'Failed to parse rate "{rate_text}" in {caption}: {e}')

        if parsed.rates:
            tables.append(parsed)

    return tables


def build_extracted_rates(tables: List[RateTable]) -> List[ExtractedRate]:
    rates: List[ExtractedRate] = []
    for table in tables:
        label = FUNDING_LABELS[table.funding_source]
        for band, segment, income_note in SEGMENT_BANDS:
            value = table.rates.get(band)
            if value is None:
                continue
            discount = PayrollDiscount(
                type=DiscountType.BPS_OFF,
                value=YOUTH_DISCOUNT_BPS,
                applies_to="RATE",
                note=(
                    f"Generación FNA: {YOUTH_DISCOUNT_BPS} bps off for applicants under 30. "
                    f"Funding: {label}. Income range: {income_note}"
                ),
            )
            rates.append(
                ExtractedRate(
                    product_type=table.product_type,
                    currency_index=table.currency_index,
                    segment=segment,
                    rate_from=value,
                    description=(
                        f"{table.product_type.value} {label} "
                        f"{table.currency_index.value} {segment.value}: {value}%"
                    ),
                    locator=f'table caption h3:-soup-contains("{label}")',
                    conditions=OfferConditions(payroll_discount=discount),
                )
            )
    return rates


class FnaExtractor(BankExtractor):
    """
    The FNA publishes rates as HTML tables, one per funding source
    (Cesantías / AVC) and currency, rows keyed by household income band.
    """

    bank_id = BankId.FNA
    method = ExtractionMethod.CSS_SELECTOR
    # Captions of the funding-source tables
    section_markers = compile_markers(r"Cesant[ií]as", r"\bAVC\b")
    missing_section_warning = "Could not find the Cesantías/AVC rate tables"

    def acquire(self) -> bytes:
        result = self.fetcher.fetch(self.bank.source_url, deadline=self.deadline)
        self.source_url = result.url
        return result.content

    def extract_text(self, raw: bytes) -> List[str]:
        return extract_html_sections(raw)

    def match(self, pages, raw, warnings):
        return build_extracted_rates(parse_rate_tables(raw, warnings))
