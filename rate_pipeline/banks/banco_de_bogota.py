# rate_pipeline/banks/banco_de_bogota.py

from __future__ import annotations
import re
from datetime import date
from typing import List, Pattern, Tuple

from ..fetcher import month_url
from ..models import BankId, CurrencyIndex, ExtractedRate, ProductType, Segment
from ..numbers import parse_colombian_number
from .base import BankExtractor, compile_markers

# Each line reads "<PRODUCT> <plazo in months> <rate>% <rate>%"
PRODUCT_LINES: List[Tuple[str, Pattern, ProductType, CurrencyIndex, Segment]] = [
    (
        "credito_no_vis",
        re.compile(r"CR[ÉE]DITO\s+NO\s+VIS\s+\d+\s+(\d+[,.]\d+)\s*%", re.IGNORECASE),
        ProductType.HIPOTECARIO,
        CurrencyIndex.COP,
        Segment.NO_VIS,
    ),
    (
        "credito_vis_vip",
        re.compile(r"CR[ÉE]DITO\s+VIS\s+O\s+VIP\s+\d+\s+(\d+[,.]\d+)\s*%", re.IGNORECASE),
        ProductType.HIPOTECARIO,
        CurrencyIndex.COP,
        Segment.VIS,
    ),
    (
        "leasing_habitacional",
        re.compile(r"LEASING\s+HABITACIONAL\s+\d+\s+(\d+[,.]\d+)\s*%", re.IGNORECASE),
        ProductType.LEASING,
        CurrencyIndex.COP,
        Segment.UNKNOWN,
    ),
    (
        "credito_uvr_no_vis",
        re.compile(
            r"CR[ÉE]DITO\s+DIRECTO\s+UVR\s+NO\s+VIS\s+\d+\s+(\d+[,.]\d+)\s*%", re.IGNORECASE
        ),
        ProductType.HIPOTECARIO,
        CurrencyIndex.UVR,
        Segment.NO_VIS,
    ),
    (
        "credito_uvr_vis",
        re.compile(r"CR[ÉE]DITO\s+DIRECTO\s+UVR\s+VIS\s+\d+\s+(\d+[,.]\d+)\s*%", re.IGNORECASE),
        ProductType.HIPOTECARIO,
        CurrencyIndex.UVR,
        Segment.VIS,
    ),
]


def parse_vivienda_rates(text: str) -> List[ExtractedRate]:
    """
    Rates from the "PORTAFOLIO DE VIVIENDA" table. Banco de Bogotá publishes
    a single rate per product, not a range.
    """
    rates: List[ExtractedRate] = []

    for locator, pattern, product_type, currency_index, segment in PRODUCT_LINES:
        match = pattern.search(text)
        if not match:
            continue
        rates.append(
            ExtractedRate(
                product_type=product_type,
                currency_index=currency_index,
                segment=segment,
                rate_from=parse_colombian_number(match.group(1)),
                description=match.group(0).strip(),
                locator=f"vivienda_section:{locator}",
            )
        )

    return rates


class BancoDeBogotaExtractor(BankExtractor):
    bank_id = BankId.BANCO_DE_BOGOTA
    section_markers = compile_markers(
        r"PORTAFOLIO\s+DE\s+VIVIENDA",
        r"LEASING\s+HABITACIONAL",
    )
    missing_section_warning = "Could not find 'PORTAFOLIO DE VIVIENDA' or mortgage section"

    def acquire(self) -> bytes:
        # The document path embeds this month's name; falls back one month on 404
        result = self.fetcher.fetch_monthly(
            self.bank.source_url,
            use_browser_identity=True,
            deadline=self.deadline,
        )
        self.source_url = result.url
        return result.content

    def fixture_source_url(self) -> str:
        return month_url(self.bank.source_url, date.today())

    def match(self, pages, raw, warnings):
        return parse_vivienda_rates(" ".join(pages))
