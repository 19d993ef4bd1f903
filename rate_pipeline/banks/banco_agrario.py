# rate_pipeline/banks/banco_agrario.py

from __future__ import annotations
import logging
import re
from typing import List, Optional, Pattern, Tuple
from urllib.parse import urljoin

from ..config_banks import BANCO_AGRARIO_FALLBACK_PDF_URL
from ..documents import load_html
from ..models import BankId, CurrencyIndex, ExtractedRate, ProductType, Segment
from ..numbers import parse_colombian_number
from .base import BankExtractor, compile_markers

logger = logging.getLogger(__name__)

# Hipotecario lines come first; the pesos lines repeat under the leasing heading
LEASING_HEADING = re.compile(r"LEASING\s+HABITACIONAL", re.IGNORECASE)

_NUMBER = r"(\d+[,.]?\d*)"

HIPOTECARIO_LINES: List[Tuple[str, Pattern, CurrencyIndex, Segment]] = [
    (
        "vis_uvr",
        # VIVIENDA DE INTERÉS SOCIAL EN UVR ( UVR + 5.10% )
        re.compile(
            r"VIVIENDA\s+DE\s+INTER[EÉ]S\s+SOCIAL\s+EN\s+UVR\.?\s*\(\s*UVR\s*\+\s*"
            + _NUMBER
            + r"\s*%\s*\)",
            re.IGNORECASE,
        ),
        CurrencyIndex.UVR,
        Segment.VIS,
    ),
    (
        "vis_cop",
        # VIVIENDA DE INTERÉS SOCIAL EN PESOS 10.70%
        re.compile(
            r"VIVIENDA\s+DE\s+INTER[EÉ]S\s+SOCIAL\s+EN\s+PESOS\s+" + _NUMBER + r"\s*%?",
            re.IGNORECASE,
        ),
        CurrencyIndex.COP,
        Segment.VIS,
    ),
    (
        "no_vis_uvr",
        # VIVIENDA NO VIS EN UVR. ( UVR + 6.10% )
        re.compile(
            r"VIVIENDA\s+NO\s+VIS\s+EN\s+UVR\.?\s*\(\s*UVR\s*\+\s*" + _NUMBER + r"\s*%\s*\)",
            re.IGNORECASE,
        ),
        CurrencyIndex.UVR,
        Segment.NO_VIS,
    ),
    (
        "no_vis_cop",
        # VIVIENDA NO VIS EN PESOS 12.50%
        re.compile(r"VIVIENDA\s+NO\s+VIS\s+EN\s+PESOS\s+" + _NUMBER + r"\s*%?", re.IGNORECASE),
        CurrencyIndex.COP,
        Segment.NO_VIS,
    ),
]

# Leasing habitacional is only published in pesos
LEASING_LINES = [line for line in HIPOTECARIO_LINES if line[2] == CurrencyIndex.COP]

# Weekly PDF, e.g. ".../tasas_colocaciones_del_05_al_11_de_enero_2026_0.pdf"
PDF_LINK_HINT = re.compile(r"tasas[_-]?colocaci", re.IGNORECASE)


def split_sections(text: str) -> Tuple[str, str]:
    """
    Split the document into (hipotecario, leasing) parts at the leasing heading
    """
    heading = LEASING_HEADING.search(text)
    if heading is None:
        return text, ""
    return text[: heading.start()], text[heading.end():]


def _match_lines(
    text: str,
    lines: List[Tuple[str, Pattern, CurrencyIndex, Segment]],
    product_type: ProductType,
) -> List[ExtractedRate]:
    rates: List[ExtractedRate] = []
    for locator, pattern, currency_index, segment in lines:
        match = pattern.search(text)
        if not match:
            continue
        rates.append(
            ExtractedRate(
                product_type=product_type,
                currency_index=currency_index,
                segment=segment,
                rate_from=parse_colombian_number(match.group(1)),
                description=match.group(0),
                locator=f"housing_rates_section:{product_type.value.lower()}_{locator}",
            )
        )
    return rates


def parse_housing_rates(text: str) -> List[ExtractedRate]:
    """
    Rates from the housing page of the "tasas de colocación" PDF.

    VIS/NO VIS x UVR/pesos for hipotecario, then the pesos lines again
    under "LEASING HABITACIONAL".
    """
    hipotecario_text, leasing_text = split_sections(text)

    rates = _match_lines(hipotecario_text, HIPOTECARIO_LINES, ProductType.HIPOTECARIO)
    if leasing_text:
        rates.extend(_match_lines(leasing_text, LEASING_LINES, ProductType.LEASING))
    return rates


def find_rates_pdf_link(html: bytes, base_url: str) -> Optional[str]:
    """
    First link on the landing page that points at the weekly rates PDF
    """
    soup = load_html(html)
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if href.lower().endswith(".pdf") and PDF_LINK_HINT.search(href):
            return urljoin(base_url, href)
    return None


class BancoAgrarioExtractor(BankExtractor):
    bank_id = BankId.BANCO_AGRARIO
    section_markers = compile_markers(r"VIVIENDA", r"HIPOTECARIO")
    missing_section_warning = "Could not find housing rate section in PDF"

    def has_section_marker(self, text: str) -> bool:
        # Both words must appear, not just one of them
        return all(p.search(text) for p in self.section_markers)

    def acquire(self) -> bytes:
        # The PDF name changes weekly, so look it up on the landing page first
        page = self.fetcher.fetch(
            self.bank.source_url, use_browser_identity=True, deadline=self.deadline
        )
        pdf_url = find_rates_pdf_link(page.content, page.url)
        if pdf_url is None:
            logger.warning(
                "No rates PDF link found on %s, using fallback %s",
                self.bank.source_url,
                BANCO_AGRARIO_FALLBACK_PDF_URL,
            )
            pdf_url = BANCO_AGRARIO_FALLBACK_PDF_URL

        result = self.fetcher.fetch(pdf_url, use_browser_identity=True, deadline=self.deadline)
        self.source_url = result.url
        return result.content

    def match(self, pages, raw, warnings):
        return parse_housing_rates(" ".join(pages))
