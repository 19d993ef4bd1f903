# rate_pipeline/banks/bancoomeva.py

from __future__ import annotations
import logging
import re
from typing import List, Optional

from ..config_banks import BANCOOMEVA_DOWNLOAD_URL
from ..documents import load_html
from ..fetcher import FetchError
from ..models import (
    BankId,
    Channel,
    CurrencyIndex,
    ExtractedRate,
    OfferConditions,
    ProductType,
    Segment,
)
from ..numbers import parse_colombian_number
from .base import BankExtractor

logger = logging.getLogger(__name__)

_RATE = r"(\d+(?:,\d+)?)\s*%\s*E\.?A\.?"

# Each row: "<product> ... Desde $ x Hasta $ y Plazo 180 <rate>% E.A."
NO_VIS_COP = re.compile(
    r"Compra\s+vivienda\s+urbana[^$]*?\$\s*[\d.,]+[^$]*?\$\s*[\d.,]+\D*?180\s+" + _RATE,
    re.IGNORECASE,
)
NO_VIS_UVR = re.compile(
    r"Vivienda\s+UVR\s*-?\s*NO\s*VIS[^%]*?UVR\s*\+\s*" + _RATE,
    re.IGNORECASE,
)
# The 135 SMMLV row comes before the 150 SMMLV one; only the first is used
VIS_COP = re.compile(
    r"VIS\s+en\s+pesos[^$]*?\$\s*\d+[^$]*?M[áa]x\.?\s*80\s*%[^$]*?135\s*SMM?LV\D*?180\s+"
    + _RATE,
    re.IGNORECASE,
)
VIS_UVR = re.compile(
    r"Vivienda\s+VIS\s*-?\s*UVR[^%]*?UVR\s*\+\s*" + _RATE,
    re.IGNORECASE,
)

ROW_PATTERNS = [
    (NO_VIS_COP, CurrencyIndex.COP, Segment.NO_VIS, "Compra vivienda urbana - {}% E.A."),
    (NO_VIS_UVR, CurrencyIndex.UVR, Segment.NO_VIS, "Vivienda UVR NO VIS - UVR + {}% E.A."),
    (VIS_COP, CurrencyIndex.COP, Segment.VIS, "VIS en pesos - {}% E.A."),
    (VIS_UVR, CurrencyIndex.UVR, Segment.VIS, "Vivienda VIS UVR - UVR + {}% E.A."),
]

# Page 1 lists rates for bank clients, page 4 the cooperative-member rates
CLIENTES_PAGE = 0
ASOCIADOS_PAGE = 3
ASOCIADOS_NOTE = "Rate for Coomeva cooperative members"

FILE_ID = re.compile(r"descargar\.php\?idFile=(\d+)")


def parse_vivienda_section(text: str, associates: bool) -> List[ExtractedRate]:
    channel = Channel.BRANCH if associates else Channel.UNSPECIFIED
    locator = "asociados_vivienda" if associates else "clientes_vivienda"

    rates: List[ExtractedRate] = []
    for pattern, currency_index, segment, label in ROW_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        rates.append(
            ExtractedRate(
                product_type=ProductType.HIPOTECARIO,
                currency_index=currency_index,
                segment=segment,
                rate_from=parse_colombian_number(match.group(1)),
                description=label.format(match.group(1)),
                locator=locator,
                channel=channel,
                conditions=OfferConditions(notes=[ASOCIADOS_NOTE]) if associates else None,
            )
        )
    return rates


def parse_rate_pages(pages: List[str]) -> List[ExtractedRate]:
    clientes = pages[CLIENTES_PAGE] if len(pages) > CLIENTES_PAGE else ""
    asociados = pages[ASOCIADOS_PAGE] if len(pages) > ASOCIADOS_PAGE else ""
    return parse_vivienda_section(clientes, False) + parse_vivienda_section(asociados, True)


def find_download_url(html: bytes) -> Optional[str]:
    """
    The first idFile link on the page is the most recent PDF
    """
    soup = load_html(html)
    for a in soup.select('a[href*="descargar.php?idFile="]'):
        match = FILE_ID.search(a["href"])
        if match:
            return BANCOOMEVA_DOWNLOAD_URL.format(file_id=match.group(1))

    # Some months the link is only present inside inline markup
    match = FILE_ID.search(html.decode("utf-8", errors="replace"))
    if match:
        return BANCOOMEVA_DOWNLOAD_URL.format(file_id=match.group(1))
    return None


class BancoomevaExtractor(BankExtractor):
    """
    Offers keep the rates page as their source URL; the PDF behind it is
    replaced every month.
    """

    bank_id = BankId.BANCOOMEVA

    def acquire(self) -> bytes:
        # The server sends an incomplete certificate chain
        page = self.fetcher.fetch(
            self.bank.source_url,
            use_browser_identity=True,
            skip_tls_verification=True,
            deadline=self.deadline,
        )
        pdf_url = find_download_url(page.content)
        if pdf_url is None:
            raise FetchError(f"Could not find PDF download link on {self.bank.source_url}")

        logger.info("%s: latest rates PDF at %s", self.bank_id.value, pdf_url)
        result = self.fetcher.fetch(
            pdf_url,
            use_browser_identity=True,
            skip_tls_verification=True,
            deadline=self.deadline,
        )
        return result.content

    def match(self, pages, raw, warnings):
        if len(pages) < ASOCIADOS_PAGE + 1:
            warnings.append(f"Expected at least {ASOCIADOS_PAGE + 1} pages in PDF, found {len(pages)}")
        return parse_rate_pages(pages)
