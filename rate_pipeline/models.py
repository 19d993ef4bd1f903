# rate_pipeline/models.py

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class BankId(str, Enum):
    BANCOLOMBIA = "bancolombia"
    BBVA = "bbva"
    SCOTIABANK_COLPATRIA = "scotiabank_colpatria"
    CAJA_SOCIAL = "caja_social"
    AVVILLAS = "avvillas"
    ITAU = "itau"
    FNA = "fna"
    BANCO_POPULAR = "banco_popular"
    BANCO_DE_BOGOTA = "banco_de_bogota"
    BANCO_DE_OCCIDENTE = "banco_de_occidente"
    DAVIVIENDA = "davivienda"
    BANCO_AGRARIO = "banco_agrario"
    BANCOOMEVA = "bancoomeva"


class ProductType(str, Enum):
    HIPOTECARIO = "HIPOTECARIO"
    LEASING = "LEASING"


class CurrencyIndex(str, Enum):
    COP = "COP"  # quoted directly in pesos
    UVR = "UVR"  # spread over the inflation-indexed unit


class Segment(str, Enum):
    VIS = "VIS"
    NO_VIS = "NO_VIS"
    UNKNOWN = "UNKNOWN"


class Channel(str, Enum):
    UNSPECIFIED = "UNSPECIFIED"
    DIGITAL = "DIGITAL"
    BRANCH = "BRANCH"
    PAYROLL = "PAYROLL"


class SourceType(str, Enum):
    HTML = "HTML"
    PDF = "PDF"


class ExtractionMethod(str, Enum):
    REGEX = "REGEX"
    CSS_SELECTOR = "CSS_SELECTOR"


class DiscountType(str, Enum):
    BPS_OFF = "BPS_OFF"


class ParseStage(str, Enum):
    FETCHING = "FETCHING"
    EXTRACTING_TEXT = "EXTRACTING_TEXT"
    MATCHING = "MATCHING"
    BUILDING_OFFERS = "BUILDING_OFFERS"
    DONE = "DONE"
    DONE_WITH_WARNINGS = "DONE_WITH_WARNINGS"


def _to_json_value(value: Any) -> Any:
    """
    Recursively convert enums and datetimes into JSON-safe values
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    return value


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class BankIdentity:
    """
    Static description of a bank and where it publishes its rate disclosure.
    Loaded from config_banks.py and never mutated.
    """

    bank_id: BankId
    name: str
    source_url: str
    document_label: str = ""
    source_type: SourceType = SourceType.PDF
    home_url: Optional[str] = None
    fixture_name: str = "rates.pdf"
    min_expected_offers: int = 0


# --- Rates -----------------------------------------------------------------


@dataclass
class FixedRate:
    """
    A rate quoted directly as an effective annual percentage (E.A.) in pesos.
    The monthly (M.V.) figures are informational only.
    """

    percent_from: float
    percent_to: Optional[float] = None
    monthly_from: Optional[float] = None
    monthly_to: Optional[float] = None
    kind: str = "FIXED"

    def __post_init__(self) -> None:
        if self.percent_to is not None and self.percent_to < self.percent_from:
            raise ValueError(
                f"percent_to ({self.percent_to}) must be >= percent_from ({self.percent_from})"
            )
        if (
            self.monthly_from is not None
            and self.monthly_to is not None
            and self.monthly_to < self.monthly_from
        ):
            raise ValueError(
                f"monthly_to ({self.monthly_to}) must be >= monthly_from ({self.monthly_from})"
            )

    @property
    def comparison_value(self) -> float:
        return self.percent_from

    def to_serializable_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class IndexedSpreadRate:
    """
    A spread (E.A.) charged on top of the UVR inflation-indexed unit
    """

    spread_from: float
    spread_to: Optional[float] = None
    kind: str = "INDEXED_SPREAD"

    def __post_init__(self) -> None:
        if self.spread_to is not None and self.spread_to < self.spread_from:
            raise ValueError(
                f"spread_to ({self.spread_to}) must be >= spread_from ({self.spread_from})"
            )

    @property
    def comparison_value(self) -> float:
        return self.spread_from

    def to_serializable_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


Rate = Union[FixedRate, IndexedSpreadRate]


# --- Offer conditions --------------------------------------------------------


@dataclass
class PayrollDiscount:
    type: DiscountType
    value: float           # magnitude, in units of `type` (e.g. 50 bps)
    applies_to: str = "RATE"
    note: str = ""

    @property
    def percent_points(self) -> float:
        if self.type == DiscountType.BPS_OFF:
            return self.value / 100.0
        return self.value


@dataclass
class OfferConditions:
    payroll_discount: Optional[PayrollDiscount] = None
    notes: List[str] = field(default_factory=list)

    def to_serializable_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        if self.payroll_discount is not None:
            d["payroll_discount"] = _to_json_value(asdict(self.payroll_discount))
        if self.notes:
            d["notes"] = list(self.notes)
        return d


# --- Extraction / source audit trail ----------------------------------------


@dataclass
class ExtractedRate:
    """
    Transient record produced by a bank extractor for one matched pattern.
    Consumed immediately by canonical.build_offer, never persisted.
    """

    product_type: ProductType
    currency_index: CurrencyIndex
    segment: Segment
    rate_from: float
    rate_to: Optional[float] = None
    description: str = ""

    # Which pattern/selector produced this record
    locator: str = ""
    channel: Channel = Channel.UNSPECIFIED

    # Only meaningful for COP rates that also publish the monthly equivalent
    monthly_from: Optional[float] = None
    monthly_to: Optional[float] = None

    conditions: Optional[OfferConditions] = None


@dataclass
class ExtractionInfo:
    method: ExtractionMethod
    locator: str
    excerpt: str


@dataclass
class OfferSource:
    url: str
    source_type: SourceType
    document_label: str
    retrieved_at: datetime
    content_fingerprint: str
    extraction: ExtractionInfo


@dataclass
class Offer:
    """
    Canonical, persisted unit of the dataset: one published mortgage rate
    for one bank/product/currency/segment/channel combination.
    """

    # 1. Identity
    id: str
    bank_id: BankId
    bank_name: str

    # 2. Classification
    product_type: ProductType
    currency_index: CurrencyIndex
    segment: Segment
    channel: Channel

    # 3. Economics
    rate: Rate
    conditions: OfferConditions

    # 4. Audit trail back to the source document
    source: OfferSource

    @property
    def comparison_value(self) -> float:
        return self.rate.comparison_value

    def to_serializable_dict(self) -> Dict[str, Any]:
        """
        Convert the Offer into a JSON-serializable dict
        """
        return {
            "id": self.id,
            "bank_id": self.bank_id.value,
            "bank_name": self.bank_name,
            "product_type": self.product_type.value,
            "currency_index": self.currency_index.value,
            "segment": self.segment.value,
            "channel": self.channel.value,
            "rate": self.rate.to_serializable_dict(),
            "conditions": self.conditions.to_serializable_dict(),
            "source": _to_json_value(asdict(self.source)),
        }


@dataclass
class BankParseResult:
    """
    Outcome of one extractor run. Warnings carry every recoverable problem,
    so an empty offer list with warnings is a normal result.
    """

    bank_id: BankId
    offers: List[Offer] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    content_fingerprint: str = ""
    stage: ParseStage = ParseStage.DONE

    # Stage at which a warning cut the run short, if any
    failed_stage: Optional[ParseStage] = None

    # Offers left once channel variants collapse; what the dataset will hold
    unique_offer_count: int = 0

    def to_report_dict(self) -> Dict[str, Any]:
        return {
            "bank_id": self.bank_id.value,
            "offer_count": len(self.offers),
            "unique_offer_count": self.unique_offer_count,
            "offer_ids": [o.id for o in self.offers],
            "warnings": list(self.warnings),
            "content_fingerprint": self.content_fingerprint,
            "stage": self.stage.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
        }


# --- Output artifacts --------------------------------------------------------


@dataclass
class RankedEntry:
    offer_id: str
    bank_id: BankId
    value: float
    rank: int


@dataclass
class ScenarioRanking:
    key: str
    label: str
    description: str
    entries: List[RankedEntry] = field(default_factory=list)


@dataclass
class Rankings:
    generated_at: datetime
    scenarios: Dict[str, ScenarioRanking] = field(default_factory=dict)

    def to_serializable_dict(self) -> Dict[str, Any]:
        return _to_json_value(asdict(self))


@dataclass
class OffersDataset:
    generated_at: datetime
    offers: List[Offer] = field(default_factory=list)

    def to_serializable_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "offers": [o.to_serializable_dict() for o in self.offers],
        }
