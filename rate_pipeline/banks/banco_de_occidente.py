# rate_pipeline/banks/banco_de_occidente.py

from __future__ import annotations
import re
from typing import List, Optional

from ..browser import BrowserSessionError, BrowserSessionFetcher
from ..models import BankId, CurrencyIndex, ExtractedRate, ProductType, Segment
from ..numbers import try_parse_number
from .base import BankExtractor, compile_markers

# PDF extraction splits digits apart: "1 1 , 62 %" is 11,62%
SPACED_RATE = re.compile(r"(\d\s*\d?\s*,\s*\d\s*\d?\s*%)")

VIVIENDA_TABLE = re.compile(
    r"(?:Tasas\s+Vivienda|CR[ÉE]DITO\s+HIPOTECARIO\s+LEASING\s+HABITACIONAL)[\s\S]*?"
    r"DESDE\s+HASTA\s+DESDE\s+HASTA[\s\S]*?"
    r"((?:\d\s*\d?\s*,\s*\d\s*\d?\s*%\s*){4})",
    re.IGNORECASE,
)

# How far past a bare "Vivienda" heading the fallback looks for rates
FALLBACK_WINDOW = 500


def _rates_block(text: str) -> Optional[str]:
    table = VIVIENDA_TABLE.search(text)
    if table:
        return table.group(1)

    heading = text.find("Vivienda")
    if heading == -1:
        return None
    return text[heading: heading + FALLBACK_WINDOW]


def parse_vivienda_rates(text: str) -> List[ExtractedRate]:
    """
    The vivienda table lists four numbers under
    "CRÉDITO HIPOTECARIO | LEASING HABITACIONAL" x "DESDE | HASTA":

        11,62%   16,51%   11,25%   16,00%

    Occidente does not split by segment, so both offers are UNKNOWN.
    """
    block = _rates_block(text)
    if block is None:
        return []

    found = SPACED_RATE.findall(block)
    if len(found) < 4:
        return []

    values = [try_parse_number(raw) for raw in found[:4]]
    rates: List[ExtractedRate] = []

    for product_type, label, (low, high), (raw_low, raw_high) in (
        (ProductType.HIPOTECARIO, "Crédito Hipotecario", values[0:2], found[0:2]),
        (ProductType.LEASING, "Leasing Habitacional", values[2:4], found[2:4]),
    ):
        if low is None or high is None:
            continue
        raw_low = re.sub(r"\s+", "", raw_low)
        raw_high = re.sub(r"\s+", "", raw_high)
        rates.append(
            ExtractedRate(
                product_type=product_type,
                currency_index=CurrencyIndex.COP,
                segment=Segment.UNKNOWN,
                rate_from=min(low, high),
                rate_to=max(low, high),
                description=f"{label}: {raw_low} - {raw_high}",
                locator=f"vivienda_section:{product_type.value.lower()}",
            )
        )

    return rates


class BancoDeOccidenteExtractor(BankExtractor):
    """
    The PDF sits behind CloudFront bot protection that rejects plain HTTP
    clients, so live mode goes through a browser session.
    """

    bank_id = BankId.BANCO_DE_OCCIDENTE
    section_markers = compile_markers(r"Vivienda", r"CR[ÉE]DITO\s+HIPOTECARIO")
    missing_section_warning = "Could not find 'Vivienda' or mortgage section"

    def acquire(self) -> bytes:
        if self.session_fetcher is None:
            self.session_fetcher = BrowserSessionFetcher()
        if not self.bank.home_url:
            raise BrowserSessionError(f"No home page configured for {self.bank_id.value}")
        return self.session_fetcher.fetch_via_session(self.bank.source_url, self.bank.home_url)

    def match(self, pages, raw, warnings):
        return parse_vivienda_rates(" ".join(pages))
