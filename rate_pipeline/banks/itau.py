# rate_pipeline/banks/itau.py

from __future__ import annotations
import re
from typing import List, Optional

from ..models import BankId, CurrencyIndex, ExtractedRate, ProductType, Segment
from ..numbers import parse_colombian_number
from .base import BankExtractor, SourceUnavailable, compile_markers

# Numbers come out of the PDF split into fragments, e.g. "1 3 , 1 4 0"
ADQUISICION_RANGE = re.compile(
    r"Adquisici[óo]n\s+de\s+vivienda\s+nueva\s+y\s+usada\s+"
    r"Desde\s+(\d[\d\s,.]*)%\s*E\.?A\.?\s+"
    r"Hasta\s+(?:el\s+)?(\d[\d\s,.]*)%\s*E\.?A\.?",
    re.IGNORECASE,
)
LEASING_HEADING = re.compile(r"Leasing\s+habitacional", re.IGNORECASE)


def _range(text: str, product_type: ProductType, label: str) -> Optional[ExtractedRate]:
    match = ADQUISICION_RANGE.search(text)
    if not match:
        return None
    low = parse_colombian_number(match.group(1))
    high = parse_colombian_number(match.group(2))
    return ExtractedRate(
        product_type=product_type,
        currency_index=CurrencyIndex.COP,
        segment=Segment.UNKNOWN,
        rate_from=low,
        rate_to=high,
        description=f"Adquisición de vivienda nueva y usada ({label})",
        locator=f"itau_{product_type.value.lower()}",
    )


def parse_rates(text: str) -> List[ExtractedRate]:
    """
    Page 1 carries the hipotecario "Adquisición de vivienda nueva y usada"
    row; page 2 repeats the same row under "Leasing habitacional".

    Only pesos, no VIS/NO VIS split, rates are published as ranges.
    """
    rates: List[ExtractedRate] = []

    hipotecario = _range(text, ProductType.HIPOTECARIO, "Hipotecario")
    if hipotecario:
        rates.append(hipotecario)

    heading = LEASING_HEADING.search(text)
    if heading:
        leasing = _range(text[heading.end():], ProductType.LEASING, "Leasing Habitacional")
        if leasing:
            rates.append(leasing)

    return rates


class ItauExtractor(BankExtractor):
    bank_id = BankId.ITAU
    section_markers = compile_markers(r"Adquisici[óo]n\s+de\s+vivienda\s+nueva\s+y\s+usada")
    missing_section_warning = "Could not find 'Adquisición de vivienda nueva y usada' section"

    def acquire(self) -> bytes:
        # The PDF answers 403 to any automated client
        raise SourceUnavailable(
            f"Itaú PDF fixture not found. Please download manually from "
            f"{self.bank.source_url} and save to fixtures/itau/{self.bank.fixture_name}"
        )

    def match(self, pages, raw, warnings):
        return parse_rates(" ".join(pages))
