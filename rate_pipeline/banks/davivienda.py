# rate_pipeline/banks/davivienda.py

from __future__ import annotations
import re
from typing import List, Optional, Tuple

from ..config_behavior import COP_EA_BOUNDS, UVR_SPREAD_BOUNDS
from ..models import BankId, CurrencyIndex, ExtractedRate, ProductType, Segment
from ..numbers import is_plausible, parse_colombian_number
from .base import BankExtractor, compile_markers

VIVIENDA_PAGE = re.compile(r"FINANCIACI[ÓO]N\s+DE\s+VIVIENDA", re.IGNORECASE)

# COP_EA% COP_MV% UVR_EA% UVR_MV%
RATE_GROUP = re.compile(
    r"(\d{1,2}[,.]\d+)\s*%\s+(\d[,.]\d+)\s*%\s+(\d[,.]\d+)\s*%\s+(\d[,.]\d+)\s*%"
)

# Bounds per position in the group; the monthly columns are not checked
GROUP_BOUNDS = (COP_EA_BOUNDS, None, UVR_SPREAD_BOUNDS, None)

# The first four plausible groups, in document order
GROUP_LAYOUT: List[Tuple[ProductType, Segment]] = [
    (ProductType.HIPOTECARIO, Segment.VIS),
    (ProductType.HIPOTECARIO, Segment.NO_VIS),
    (ProductType.LEASING, Segment.VIS),
    (ProductType.LEASING, Segment.NO_VIS),
]


def find_vivienda_page(pages: List[str]) -> Optional[str]:
    for text in pages:
        if VIVIENDA_PAGE.search(text):
            return text
    return None


def plausible_groups(text: str) -> List[Tuple[Tuple[float, float, float, float], str]]:
    """
    All four-percentage groups whose COP E.A. and UVR spread fall inside the
    mortgage bounds, with the matched text.

    Several tables on the page share the same four-column shape (consumer
    loans, vehicles...), so text order alone cannot tell them apart.
    """
    groups = []
    for match in RATE_GROUP.finditer(text):
        values = tuple(parse_colombian_number(g) for g in match.groups())
        if is_plausible(values, GROUP_BOUNDS):
            groups.append((values, match.group(0)))
    return groups


def parse_vivienda_rates(pages: List[str]) -> List[ExtractedRate]:
    """
    Extract rates from the page holding "FINANCIACIÓN DE VIVIENDA".

    Page layout (values are extracted before their row labels):

        E.A      M.V     E.A     M.V
        12,60%   0,99%   6,95%   0,56%   <- VIS Hipotecario
        12,50%   0,99%   7,95%   0,64%   <- NO VIS Hipotecario
        12,10%   0,96%   6,95%   0,56%   <- VIS Leasing
        11,00%   0,87%   7,50%   0,60%   <- NO VIS Leasing

    Each group gives one COP rate and one UVR spread.
    """
    text = find_vivienda_page(pages)
    if text is None:
        return []

    rates: List[ExtractedRate] = []
    for (product_type, segment), (values, excerpt) in zip(GROUP_LAYOUT, plausible_groups(text)):
        cop_ea, cop_mv, uvr_ea, _uvr_mv = values
        locator = f"vivienda_section:{product_type.value.lower()}_{segment.value.lower()}"

        rates.append(
            ExtractedRate(
                product_type=product_type,
                currency_index=CurrencyIndex.COP,
                segment=segment,
                rate_from=cop_ea,
                monthly_from=cop_mv,
                description=f"{product_type.value} {segment.value} COP {excerpt}",
                locator=locator,
            )
        )
        rates.append(
            ExtractedRate(
                product_type=product_type,
                currency_index=CurrencyIndex.UVR,
                segment=segment,
                rate_from=uvr_ea,
                description=f"{product_type.value} {segment.value} UVR {excerpt}",
                locator=locator,
            )
        )

    return rates


class DaviviendaExtractor(BankExtractor):
    bank_id = BankId.DAVIVIENDA
    section_markers = compile_markers(
        r"FINANCIACI[ÓO]N\s+DE\s+VIVIENDA",
        r"Cr[ée]dito\s+Hipotecario",
    )
    missing_section_warning = "Could not find 'FINANCIACIÓN DE VIVIENDA' or mortgage section"

    def match(self, pages, raw, warnings):
        return parse_vivienda_rates(pages)
