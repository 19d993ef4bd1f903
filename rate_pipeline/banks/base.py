# rate_pipeline/banks/base.py

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Pattern, Sequence, Union

from ..canonical import SourceMeta, build_offer, content_fingerprint
from ..browser import BrowserSessionFetcher
from ..config_banks import BANKS
from ..dedupe import dedupe
from ..documents import DocumentError, extract_pdf_pages
from ..fetcher import Fetcher
from ..models import (
    BankId,
    BankIdentity,
    BankParseResult,
    ExtractedRate,
    ExtractionMethod,
    Offer,
    ParseStage,
)

logger = logging.getLogger(__name__)


class SourceUnavailable(Exception):
    """
    The document cannot be obtained automatically and no fixture was supplied.
    Reported as a warning, not raised out of parse().
    """
    pass


def compile_markers(*patterns: str) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


class BankExtractor:
    """
    Shared contract for every bank: parse() always returns a BankParseResult.

    parse() runs FETCHING -> EXTRACTING_TEXT -> MATCHING -> BUILDING_OFFERS
    strictly in order. Layout problems (missing section, no matches, too few
    offers, unreadable numbers or ranges) end the run with warnings instead
    of exceptions, so one bank's layout change never stops the others.
    Transport failures (FetchError,
    BrowserSessionError) do propagate; the orchestrator turns them into an
    empty result for that bank.

    Subclasses set bank_id and section_markers and implement match().
    """

    bank_id: BankId
    method: ExtractionMethod = ExtractionMethod.REGEX

    # At least one must be present in the document text
    section_markers: Sequence[Pattern] = ()
    missing_section_warning: str = "Could not find the mortgage section"

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        session_fetcher: Optional[BrowserSessionFetcher] = None,
        fixture_path: Optional[Union[str, Path]] = None,
        deadline: Optional[float] = None,
        bank: Optional[BankIdentity] = None,
    ) -> None:
        """
        param fetcher: HTTP fetcher for live mode (one is created if omitted)
        param session_fetcher: headless-browser fetcher for bot-protected sources
        param fixture_path: read the document from this file instead of the network
        param deadline: time.monotonic() value after which fetches give up
        param bank: override the identity from config_banks.BANKS
        """
        self.bank = bank or BANKS[self.bank_id]
        self.fetcher = fetcher or Fetcher()
        self.session_fetcher = session_fetcher
        self.fixture_path = Path(fixture_path) if fixture_path else None
        self.deadline = deadline

        # Live acquisition may replace this with the URL that actually answered
        self.source_url = self.bank.source_url

    # -------- Hooks ------------------------------------------------------

    def acquire(self) -> bytes:
        """
        Fetch the live document. The default is a plain HTTP fetch of the
        configured URL with a browser User-Agent.
        """
        result = self.fetcher.fetch(
            self.source_url,
            use_browser_identity=True,
            deadline=self.deadline,
        )
        self.source_url = result.url
        return result.content

    def fixture_source_url(self) -> str:
        return self.bank.source_url

    def extract_text(self, raw: bytes) -> List[str]:
        return extract_pdf_pages(raw)

    def match(self, pages: List[str], raw: bytes, warnings: List[str]) -> List[ExtractedRate]:
        raise NotImplementedError

    # -------- Contract ---------------------------------------------------

    def load_bytes(self) -> bytes:
        if self.fixture_path is not None:
            if not self.fixture_path.exists():
                raise SourceUnavailable(f"Fixture not found at {self.fixture_path}")
            self.source_url = self.fixture_source_url()
            return self.fixture_path.read_bytes()
        return self.acquire()

    def has_section_marker(self, text: str) -> bool:
        if not self.section_markers:
            return True
        return any(p.search(text) for p in self.section_markers)

    def _stage(self, stage: ParseStage) -> ParseStage:
        logger.debug("%s: %s", self.bank_id.value, stage.value)
        return stage

    def _warn(self, result: BankParseResult, stage: ParseStage, message: str) -> None:
        logger.warning("%s: %s", self.bank_id.value, message)
        result.warnings.append(message)
        if result.failed_stage is None:
            result.failed_stage = stage

    def _finish(self, result: BankParseResult) -> BankParseResult:
        result.stage = ParseStage.DONE_WITH_WARNINGS if result.warnings else ParseStage.DONE
        self._stage(result.stage)
        return result

    def parse(self) -> BankParseResult:
        result = BankParseResult(bank_id=self.bank_id)
        retrieved_at = datetime.now(timezone.utc)

        stage = self._stage(ParseStage.FETCHING)
        try:
            raw = self.load_bytes()
        except SourceUnavailable as e:
            self._warn(result, stage, str(e))
            return self._finish(result)

        # Fingerprint first, so even a failed parse reports which bytes it saw
        result.content_fingerprint = content_fingerprint(raw)

        stage = self._stage(ParseStage.EXTRACTING_TEXT)
        try:
            pages = self.extract_text(raw)
        except DocumentError as e:
            self._warn(result, stage, f"Failed to extract document text: {e}")
            return self._finish(result)

        stage = self._stage(ParseStage.MATCHING)
        full_text = " ".join(pages)
        if not self.has_section_marker(full_text):
            self._warn(result, stage, self.missing_section_warning)
            return self._finish(result)

        match_warnings: List[str] = []
        try:
            extracted = self.match(pages, raw, match_warnings)
        except ValueError as e:
            extracted = []
            match_warnings.append(f"Failed to read rates from the document: {e}")
        for message in match_warnings:
            self._warn(result, stage, message)

        if not extracted:
            self._warn(
                result, stage, "No mortgage rates extracted - document structure may have changed"
            )
            return self._finish(result)

        stage = self._stage(ParseStage.BUILDING_OFFERS)
        source_meta = SourceMeta(
            url=self.source_url,
            source_type=self.bank.source_type,
            document_label=self.bank.document_label,
            retrieved_at=retrieved_at,
            content_fingerprint=result.content_fingerprint,
            method=self.method,
        )
        offers: List[Offer] = []
        for rate in extracted:
            try:
                offers.append(build_offer(self.bank, rate, rate.channel, source_meta))
            except ValueError as e:
                self._warn(result, stage, f"Skipped rate at {rate.locator}: {e}")
        result.offers = offers

        # Channel variants of one offer count once
        result.unique_offer_count = len(dedupe(offers))
        if result.unique_offer_count < self.bank.min_expected_offers:
            self._warn(
                result,
                stage,
                f"Only extracted {result.unique_offer_count} unique offers, expected at least "
                f"{self.bank.min_expected_offers}",
            )

        logger.info(
            "%s: extracted %d offer(s), %d unique, with %d warning(s)",
            self.bank_id.value,
            len(offers),
            result.unique_offer_count,
            len(result.warnings),
        )
        return self._finish(result)
