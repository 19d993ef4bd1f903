# rate_pipeline/numbers.py

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional, Sequence

# Characters that PDF/HTML extraction leaves inside numbers
_INVISIBLE_CHARS = re.compile(r"[\s\u200b\u200c\u200d\ufeff\xa0]+")

_UVR_SPREAD = re.compile(r"UVR\s*\+\s*(\d[\d\s.,]*)\s*%?", re.IGNORECASE)
_EA_PERCENT = re.compile(r"(\d[\d\s.,]*)\s*%\s*(?:E\.?\s*A\.?)?", re.IGNORECASE)


def parse_colombian_number(raw: str) -> float:
    """
    Parse a number written the Colombian way ("12,60", "1.234,5") or the
    English way ("17.41").

    - Spaces inside the number are ignored ("1 1 , 62" -> 11.62), since PDF
      extraction often splits digits into separate fragments.
    - When both "," and "." appear, the right-most one is the decimal mark.
    - A lone "," is always the decimal mark.

    Raises ValueError if no number can be read.
    """
    cleaned = _INVISIBLE_CHARS.sub("", raw or "").replace("%", "")
    if not cleaned:
        raise ValueError(f"Cannot parse number from {raw!r}")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if cleaned.count(",") > 1:
            raise ValueError(f"Ambiguous number {raw!r}")
        cleaned = cleaned.replace(",", ".")

    try:
        return float(cleaned)
    except ValueError as e:
        raise ValueError(f"Cannot parse number from {raw!r}") from e


def parse_uvr_spread(raw: str) -> float:
    """
    "UVR + 6,10%" -> 6.1
    """
    match = _UVR_SPREAD.search(raw or "")
    if not match:
        raise ValueError(f"No UVR spread found in {raw!r}")
    return parse_colombian_number(match.group(1))


def parse_ea_percent(raw: str) -> float:
    """
    "12,5% E.A." -> 12.5
    """
    match = _EA_PERCENT.search(raw or "")
    if not match:
        raise ValueError(f"No E.A. percentage found in {raw!r}")
    return parse_colombian_number(match.group(1))


def try_parse_number(raw: str) -> Optional[float]:
    try:
        return parse_colombian_number(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class PlausibilityBounds:
    """
    Closed numeric range a field is expected to fall in. Used to pick the
    right group among several textually similar matches.
    """

    low: float
    high: float

    def contains(self, value: Optional[float]) -> bool:
        if value is None:
            return False
        return self.low <= value <= self.high


def is_plausible(
    values: Sequence[Optional[float]],
    bounds: Sequence[Optional[PlausibilityBounds]],
) -> bool:
    """
    True when every value with a configured bound lies inside it.
    A None bound means that position is not checked.
    """
    for value, bound in zip(values, bounds):
        if bound is None:
            continue
        if not bound.contains(value):
            return False
    return True
