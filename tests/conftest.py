# tests/conftest.py

import textwrap
import unicodedata
from datetime import datetime, timezone
from typing import Dict, List, Optional

import fitz
import pytest

from rate_pipeline.canonical import SourceMeta, build_offer
from rate_pipeline.config_banks import BANK_NAMES
from rate_pipeline.models import (
    BankId,
    BankIdentity,
    Channel,
    CurrencyIndex,
    ExtractedRate,
    OfferConditions,
    ProductType,
    Segment,
    SourceType,
)

RETRIEVED_AT = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        reason: str = "",
    ):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {"content-type": "application/pdf"}
        self.reason = reason


class FakeSession:
    """
    Stands in for requests.Session. Each URL maps to a list of responses
    (or exceptions) served in order; the last one repeats.
    """

    def __init__(self, routes: Dict[str, List]):
        self.routes = {url: list(items) for url, items in routes.items()}
        self.calls: List[Dict] = []

    def get(self, url, headers=None, timeout=None, allow_redirects=True, verify=True):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout, "verify": verify})
        if url not in self.routes:
            return FakeResponse(status_code=404, reason="Not Found")
        queue = self.routes[url]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def urls(self) -> List[str]:
        return [c["url"] for c in self.calls]


def _ascii(text: str) -> str:
    return unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")


def build_pdf(pages: List[List[str]]) -> bytes:
    """
    Render each page as a column of short text lines. Long lines are wrapped
    so no text falls outside the page, where extraction would clip it.
    Accents are folded to ASCII; every bank pattern accepts both spellings.
    """
    doc = fitz.open()
    try:
        for lines in pages:
            page = doc.new_page()
            y = 72
            for line in lines:
                for chunk in textwrap.wrap(_ascii(line), 80, break_on_hyphens=False):
                    page.insert_text((40, y), chunk, fontsize=9)
                    y += 14
        return doc.tobytes()
    finally:
        doc.close()


# Vivienda page laid out the way Davivienda publishes it: a consumer-loan
# table with the same four-column shape precedes the housing groups.
DAVIVIENDA_PAGES = [
    ["TASAS Y TARIFAS", "Credito de consumo", "24,00% 1,81% 9,00% 0,72%"],
    [
        "FINANCIACION DE VIVIENDA",
        "Credito Hipotecario y Leasing Habitacional",
        "E.A M.V E.A M.V",
        "12,60% 0,99% 6,95% 0,56%",
        "12,50% 0,99% 7,95% 0,64%",
        "12,10% 0,96% 6,95% 0,56%",
        "11,00% 0,87% 7,50% 0,60%",
        "VIS Hipotecario",
        "NO VIS Hipotecario",
        "VIS Leasing",
        "NO VIS Leasing",
    ],
]


@pytest.fixture
def davivienda_pdf() -> bytes:
    return build_pdf(DAVIVIENDA_PAGES)


def make_offer(
    bank_id: BankId = BankId.DAVIVIENDA,
    product_type: ProductType = ProductType.HIPOTECARIO,
    currency_index: CurrencyIndex = CurrencyIndex.COP,
    segment: Segment = Segment.VIS,
    rate_from: float = 12.0,
    channel: Channel = Channel.UNSPECIFIED,
    conditions: Optional[OfferConditions] = None,
    locator: str = "test_locator",
):
    """
    Offer built through the real canonicalizer, for dedupe/ranking tests
    """
    bank = BankIdentity(
        bank_id=bank_id,
        name=BANK_NAMES[bank_id],
        source_url=f"https://{bank_id.value}.test/rates.pdf",
        document_label="Test document",
    )
    extracted = ExtractedRate(
        product_type=product_type,
        currency_index=currency_index,
        segment=segment,
        rate_from=rate_from,
        description=f"{product_type.value} {segment.value} {rate_from}%",
        locator=locator,
        conditions=conditions,
    )
    meta = SourceMeta(
        url=bank.source_url,
        source_type=SourceType.PDF,
        document_label=bank.document_label,
        retrieved_at=RETRIEVED_AT,
        content_fingerprint="0" * 64,
    )
    return build_offer(bank, extracted, channel, meta)
