# rate_pipeline/fetcher.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

import requests
from requests import Response

from .config_behavior import (
    BROWSER_USER_AGENT,
    DEFAULT_USER_AGENT,
    FETCH_BACKOFF_FACTOR,
    FETCH_MAX_RETRIES,
    FETCH_TIMEOUT_SECONDS,
    SPANISH_MONTHS,
)

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """
    Raw HTTP-level result of fetching a document, before any text extraction
    """

    url: str                      # URL that produced the content (resolved, for month templates)
    content: bytes
    content_type: str
    status_code: int
    last_modified: Optional[str] = None
    etag: Optional[str] = None


class FetchError(Exception):
    """Raised when a document cannot be fetched after all retries"""
    pass


class HttpStatusError(FetchError):
    """The server answered, but with a non-2xx status"""

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} {reason}".strip() + f" for {url}")


class DeadlineExceeded(FetchError):
    """The caller-supplied deadline passed before the fetch could complete"""
    pass


def month_url(url_template: str, day: date) -> str:
    """
    Render a "{month}-{year}" style template with the Spanish month name
    """
    return url_template.format(month=SPANISH_MONTHS[day.month - 1], year=day.year)


def previous_month(day: date) -> date:
    if day.month == 1:
        return date(day.year - 1, 12, 1)
    return date(day.year, day.month - 1, 1)


class Fetcher:
    """
    HTTP fetcher for rate disclosure documents using the `requests` library

    Responsibilities:
    - Attach a self-identifying User-Agent, or a browser one when asked
    - Apply a hard per-attempt timeout
    - Retry timeouts, connection errors and non-2xx answers with exponential backoff
    - Relax TLS verification for a single call only, never globally
    """

    def __init__(
        self,
        timeout_seconds: float = FETCH_TIMEOUT_SECONDS,
        max_retries: int = FETCH_MAX_RETRIES,
        backoff_factor: float = FETCH_BACKOFF_FACTOR,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        param timeout_seconds: Per-attempt timeout to avoid hanging forever
        param max_retries: How many times a failed attempt is retried
        param backoff_factor: Sleep time grows like backoff_factor * (2 ** attempt)
        param session: Optional pre-built session (tests inject fakes here)
        """
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor

        # Use a Session for connection pooling and efficiency.
        self.session = session if session is not None else requests.Session()

    def _build_headers(
        self, headers: Optional[Dict[str, str]], use_browser_identity: bool
    ) -> Dict[str, str]:
        merged = {
            "User-Agent": BROWSER_USER_AGENT if use_browser_identity else DEFAULT_USER_AGENT,
        }
        if headers:
            merged.update(headers)
        return merged

    def _attempt_timeout(self, timeout: float, deadline: Optional[float]) -> float:
        if deadline is None:
            return timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceeded("Deadline passed before the request could be sent")
        return min(timeout, remaining)

    def _get(self, url: str, headers: Dict[str, str], timeout: float, verify: bool) -> Response:
        # verify is passed per request; session, process and warning filters are untouched.
        # urllib3 still emits its InsecureRequestWarning for unverified calls.
        return self.session.get(
            url, headers=headers, timeout=timeout, allow_redirects=True, verify=verify
        )

    def fetch(
        self,
        url: str,
        retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        use_browser_identity: bool = False,
        skip_tls_verification: bool = False,
        deadline: Optional[float] = None,
    ) -> FetchResult:
        """
        Fetch a single URL and return its raw bytes plus response metadata.

        Every failed attempt is logged; once retries are exhausted the last
        failure is raised as HttpStatusError (server answered) or FetchError
        (network problem).

        param deadline: time.monotonic() value after which no new attempt starts
        """
        retries = self.max_retries if retries is None else retries
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        request_headers = self._build_headers(headers, use_browser_identity)

        if skip_tls_verification:
            logger.info("TLS verification disabled for this request: %s", url)

        attempt = 0
        last_error: Optional[FetchError] = None

        while attempt <= retries:
            attempt_timeout = self._attempt_timeout(timeout, deadline)
            try:
                logger.debug("Fetching URL %s (attempt %d)", url, attempt + 1)
                resp = self._get(
                    url,
                    headers=request_headers,
                    timeout=attempt_timeout,
                    verify=not skip_tls_verification,
                )

                if 200 <= resp.status_code < 300:
                    logger.info("Fetched %s with status %d", url, resp.status_code)
                    return FetchResult(
                        url=url,
                        content=resp.content,
                        content_type=resp.headers.get("content-type", "unknown"),
                        status_code=resp.status_code,
                        last_modified=resp.headers.get("last-modified"),
                        etag=resp.headers.get("etag"),
                    )

                last_error = HttpStatusError(url, resp.status_code, getattr(resp, "reason", "") or "")

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_error = FetchError(f"Network error for {url}: {e}")
                last_error.__cause__ = e

            except requests.exceptions.RequestException as e:
                logger.error("Unexpected error fetching %s: %s", url, e, exc_info=True)
                raise FetchError(f"Unexpected error fetching {url}: {e}") from e

            logger.warning("Fetch attempt %d failed for %s: %s", attempt + 1, url, last_error)

            if attempt < retries:
                sleep_seconds = self.backoff_factor * (2 ** attempt)
                if deadline is not None and time.monotonic() + sleep_seconds >= deadline:
                    raise DeadlineExceeded(
                        f"Deadline reached while retrying {url}"
                    ) from last_error
                logger.info("Retrying %s after %s seconds", url, sleep_seconds)
                time.sleep(sleep_seconds)
            attempt += 1

        if last_error is None:
            raise FetchError(f"No fetch attempt was made for {url} (retries={retries})")
        raise last_error

    def fetch_monthly(
        self,
        url_template: str,
        today: Optional[date] = None,
        **kwargs,
    ) -> FetchResult:
        """
        Fetch a document whose path embeds the Spanish month name and year.

        Tries the current month once; on HTTP 404 (and only 404) falls back to
        the previous calendar month with the normal retry policy. Banks
        republish near month boundaries with a lag, so one step back is enough.

        The returned FetchResult.url is the URL that actually answered.
        """
        today = today or date.today()
        current_url = month_url(url_template, today)

        first_kwargs = dict(kwargs)
        first_kwargs["retries"] = 0
        try:
            return self.fetch(current_url, **first_kwargs)
        except HttpStatusError as e:
            if e.status_code != 404:
                raise

        prev_url = month_url(url_template, previous_month(today))
        logger.info(
            "Current month URL %s returned 404, trying previous month: %s",
            current_url,
            prev_url,
        )
        return self.fetch(prev_url, **kwargs)
