# rate_pipeline/ranking.py

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from .models import Offer, RankedEntry, Rankings, ScenarioRanking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioDefinition:
    """
    A named market scenario: which offers compete, and what number they
    compete on (lower is better).
    """

    key: str
    label: str
    description: str
    predicate: Callable[[Offer], bool]
    value: Callable[[Offer], float]


def rank_scenario(offers: Iterable[Offer], scenario: ScenarioDefinition) -> List[RankedEntry]:
    """
    Filter offers matching the scenario and order them by value ascending.

    sorted() is stable, so equal values keep their input order. Ranks are
    1..N with no gaps.
    """
    candidates = [(scenario.value(o), o) for o in offers if scenario.predicate(o)]
    candidates.sort(key=lambda pair: pair[0])

    return [
        RankedEntry(offer_id=offer.id, bank_id=offer.bank_id, value=value, rank=position)
        for position, (value, offer) in enumerate(candidates, start=1)
    ]


def rank(
    offers: Sequence[Offer],
    scenarios: Sequence[ScenarioDefinition],
    generated_at: Optional[datetime] = None,
) -> Rankings:
    """
    Apply every scenario to the full offer set and collect the results
    """
    rankings = Rankings(generated_at=generated_at or datetime.now(timezone.utc))

    for scenario in scenarios:
        entries = rank_scenario(offers, scenario)
        rankings.scenarios[scenario.key] = ScenarioRanking(
            key=scenario.key,
            label=scenario.label,
            description=scenario.description,
            entries=entries,
        )
        logger.debug("Scenario %s ranked %d offer(s)", scenario.key, len(entries))

    return rankings
