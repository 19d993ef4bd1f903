# rate_pipeline/documents.py

from __future__ import annotations
import logging
import re
from typing import List, Union

import fitz  # PyMuPDF
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"[\s\u200b\u200c\u200d\ufeff\xa0]+")

# Containers whose text is treated as one logical section of an HTML page
HTML_SECTION_TAGS = ["table", "section", "article"]


class DocumentError(Exception):
    """Raised when a document cannot be opened or read"""
    pass


def normalize_whitespace(text: str) -> str:
    """
    Collapse all whitespace (including zero-width and non-breaking spaces)
    into single spaces
    """
    return _WHITESPACE.sub(" ", text or "").strip()


def extract_pdf_pages(raw: bytes) -> List[str]:
    """
    Return one text block per PDF page.

    Each block is the page's words joined by single spaces, in the order the
    PDF stores them. That order is not guaranteed to be the visual reading
    order: numeric columns can come out before their labels.
    """
    try:
        doc = fitz.open(stream=raw, filetype="pdf")
    except Exception as e:  # PyMuPDF raises several unrelated types for bad input
        raise DocumentError(f"Could not open PDF: {e}") from e

    pages: List[str] = []
    try:
        for page in doc:
            words = page.get_text("words")
            pages.append(" ".join(w[4] for w in words))
    finally:
        doc.close()

    logger.debug("Extracted text from %d PDF page(s)", len(pages))
    return pages


def load_html(raw: Union[bytes, str]) -> BeautifulSoup:
    """
    Parse markup into a tree that extractors query with CSS selectors.
    Non-content tags are dropped up front.
    """
    soup = BeautifulSoup(raw, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup


def extract_html_sections(raw: Union[bytes, str]) -> List[str]:
    """
    Flatten an HTML page into one text block per table/section, falling back
    to the whole body when the page has none of those containers.
    """
    soup = load_html(raw)
    blocks = [
        normalize_whitespace(tag.get_text(separator=" "))
        for tag in soup.find_all(HTML_SECTION_TAGS)
    ]
    blocks = [b for b in blocks if b]
    if not blocks:
        root = soup.body or soup
        text = normalize_whitespace(root.get_text(separator=" "))
        blocks = [text] if text else []
    return blocks
