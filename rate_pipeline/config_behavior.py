# rate_pipeline/config_behavior.py
"""
Central configuration for rate_pipeline. This file contains the tunable values
and heuristics used by fetcher.py, browser.py, the bank extractors and
ranking.py.

Config is organized into three sections:
1. FETCH CONFIG     -> HTTP and browser-session behavior
2. EXTRACT CONFIG   -> number parsing and plausibility bounds
3. RANKING CONFIG   -> the named "best rate" scenarios
"""

from __future__ import annotations
from typing import List

from .models import Channel, CurrencyIndex, Offer, ProductType, Segment
from .numbers import PlausibilityBounds
from .ranking import ScenarioDefinition


# ======================================================================
# ============================ FETCH CONFIG =============================
# ======================================================================

# Conservative, self-identifying agent used by default
DEFAULT_USER_AGENT: str = (
    "RatePipeline/1.0 (mortgage rate aggregator; +https://github.com/rate-pipeline)"
)

# Desktop-browser signature for sources that block non-browser clients
BROWSER_USER_AGENT: str = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

FETCH_TIMEOUT_SECONDS: float = 30.0
FETCH_MAX_RETRIES: int = 3
FETCH_BACKOFF_FACTOR: float = 0.5

# Browser session (bot-protected sources)
BROWSER_TIMEOUT_SECONDS: float = 30.0
BROWSER_SETTLE_SECONDS: float = 1.0
BROWSER_VIEWPORT = {"width": 1920, "height": 1080}
BROWSER_LOCALE: str = "es-CO"
BROWSER_LAUNCH_ARGS: List[str] = ["--disable-blink-features=AutomationControlled"]
BROWSER_INIT_SCRIPT: str = (
    "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"
)

# Month names used by banks that embed "{month}-{year}" in document paths
SPANISH_MONTHS: List[str] = [
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
]


# ======================================================================
# =========================== EXTRACT CONFIG ============================
# ======================================================================

# Peso-denominated mortgage rates, effective annual
COP_EA_BOUNDS = PlausibilityBounds(low=10.0, high=14.0)

# Spreads over UVR, effective annual
UVR_SPREAD_BOUNDS = PlausibilityBounds(low=5.0, high=10.0)

# Excerpts stored in the audit trail are truncated to this length
MAX_EXCERPT_LEN: int = 100


# ======================================================================
# =========================== RANKING CONFIG ============================
# ======================================================================


def _base_value(offer: Offer) -> float:
    return offer.comparison_value


def _payroll_value(offer: Offer) -> float:
    discount = offer.conditions.payroll_discount
    if discount is None:
        return offer.comparison_value
    return round(offer.comparison_value - discount.percent_points, 4)


def _hipotecario(currency: CurrencyIndex, segment: Segment):
    def predicate(offer: Offer) -> bool:
        return (
            offer.product_type == ProductType.HIPOTECARIO
            and offer.currency_index == currency
            and offer.segment == segment
        )

    return predicate


def _hipotecario_payroll(currency: CurrencyIndex, segment: Segment):
    base = _hipotecario(currency, segment)

    def predicate(offer: Offer) -> bool:
        return base(offer) and (
            offer.conditions.payroll_discount is not None
            or offer.channel == Channel.PAYROLL
        )

    return predicate


def _digital_cop(offer: Offer) -> bool:
    return (
        offer.product_type == ProductType.HIPOTECARIO
        and offer.currency_index == CurrencyIndex.COP
        and offer.channel == Channel.DIGITAL
    )


SCENARIOS: List[ScenarioDefinition] = [
    # Base scenarios (without payroll)
    ScenarioDefinition(
        key="best_uvr_vis_hipotecario",
        label="Mejor UVR - VIS",
        description="Crédito hipotecario en UVR para vivienda de interés social",
        predicate=_hipotecario(CurrencyIndex.UVR, Segment.VIS),
        value=_base_value,
    ),
    ScenarioDefinition(
        key="best_uvr_no_vis_hipotecario",
        label="Mejor UVR - No VIS",
        description="Crédito hipotecario en UVR para vivienda de mayor valor",
        predicate=_hipotecario(CurrencyIndex.UVR, Segment.NO_VIS),
        value=_base_value,
    ),
    ScenarioDefinition(
        key="best_cop_vis_hipotecario",
        label="Mejor Pesos - VIS",
        description="Crédito hipotecario en pesos para vivienda de interés social",
        predicate=_hipotecario(CurrencyIndex.COP, Segment.VIS),
        value=_base_value,
    ),
    ScenarioDefinition(
        key="best_cop_no_vis_hipotecario",
        label="Mejor Pesos - No VIS",
        description="Crédito hipotecario en pesos para vivienda de mayor valor",
        predicate=_hipotecario(CurrencyIndex.COP, Segment.NO_VIS),
        value=_base_value,
    ),
    # Payroll scenarios: the discount is subtracted from the published rate
    ScenarioDefinition(
        key="best_uvr_vis_payroll",
        label="Mejor UVR - VIS (Nómina)",
        description="Crédito en UVR para VIS con descuento por nómina",
        predicate=_hipotecario_payroll(CurrencyIndex.UVR, Segment.VIS),
        value=_payroll_value,
    ),
    ScenarioDefinition(
        key="best_uvr_no_vis_payroll",
        label="Mejor UVR - No VIS (Nómina)",
        description="Crédito en UVR para No VIS con descuento por nómina",
        predicate=_hipotecario_payroll(CurrencyIndex.UVR, Segment.NO_VIS),
        value=_payroll_value,
    ),
    ScenarioDefinition(
        key="best_cop_vis_payroll",
        label="Mejor Pesos - VIS (Nómina)",
        description="Crédito en pesos para VIS con descuento por nómina",
        predicate=_hipotecario_payroll(CurrencyIndex.COP, Segment.VIS),
        value=_payroll_value,
    ),
    ScenarioDefinition(
        key="best_cop_no_vis_payroll",
        label="Mejor Pesos - No VIS (Nómina)",
        description="Crédito en pesos para No VIS con descuento por nómina",
        predicate=_hipotecario_payroll(CurrencyIndex.COP, Segment.NO_VIS),
        value=_payroll_value,
    ),
    # Other
    ScenarioDefinition(
        key="best_digital_hipotecario",
        label="Mejor Canal Digital",
        description="Mejor tasa en pesos disponible por canales digitales",
        predicate=_digital_cop,
        value=_base_value,
    ),
]
