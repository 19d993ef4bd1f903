# tests/test_ranking.py

from datetime import datetime, timezone

from rate_pipeline.config_behavior import SCENARIOS
from rate_pipeline.models import (
    BankId,
    Channel,
    CurrencyIndex,
    DiscountType,
    OfferConditions,
    PayrollDiscount,
    ProductType,
    Segment,
)
from rate_pipeline.ranking import ScenarioDefinition, rank, rank_scenario

from conftest import make_offer

GENERATED_AT = datetime(2026, 3, 10, tzinfo=timezone.utc)


def _youth_discount():
    return OfferConditions(
        payroll_discount=PayrollDiscount(type=DiscountType.BPS_OFF, value=50)
    )


def _offers():
    return [
        make_offer(bank_id=BankId.DAVIVIENDA, segment=Segment.VIS, rate_from=12.6),
        make_offer(bank_id=BankId.BANCO_DE_BOGOTA, segment=Segment.VIS, rate_from=15.71),
        make_offer(bank_id=BankId.BANCO_AGRARIO, segment=Segment.VIS, rate_from=10.7),
        make_offer(bank_id=BankId.FNA, segment=Segment.VIS, rate_from=11.5, conditions=_youth_discount()),
        make_offer(bank_id=BankId.BANCOOMEVA, segment=Segment.VIS, rate_from=12.6),
        make_offer(
            bank_id=BankId.DAVIVIENDA,
            currency_index=CurrencyIndex.UVR,
            segment=Segment.NO_VIS,
            rate_from=7.95,
        ),
        make_offer(bank_id=BankId.ITAU, product_type=ProductType.LEASING, rate_from=9.0),
        make_offer(bank_id=BankId.BBVA, segment=Segment.NO_VIS, rate_from=11.0, channel=Channel.DIGITAL),
    ]


def _scenario(key):
    return next(s for s in SCENARIOS if s.key == key)


def test_every_scenario_is_sorted_with_contiguous_ranks():
    rankings = rank(_offers(), SCENARIOS, generated_at=GENERATED_AT)

    assert set(rankings.scenarios) == {s.key for s in SCENARIOS}
    for scenario in rankings.scenarios.values():
        values = [e.value for e in scenario.entries]
        assert values == sorted(values)
        assert [e.rank for e in scenario.entries] == list(range(1, len(values) + 1))


def test_cop_vis_ranking_order_and_stable_ties():
    entries = rank_scenario(_offers(), _scenario("best_cop_vis_hipotecario"))

    assert [(e.bank_id, e.value) for e in entries] == [
        (BankId.BANCO_AGRARIO, 10.7),
        (BankId.FNA, 11.5),
        (BankId.DAVIVIENDA, 12.6),
        (BankId.BANCOOMEVA, 12.6),
        (BankId.BANCO_DE_BOGOTA, 15.71),
    ]


def test_leasing_is_excluded_from_hipotecario_scenarios():
    rankings = rank(_offers(), SCENARIOS, generated_at=GENERATED_AT)

    ranked_banks = {
        e.bank_id for s in rankings.scenarios.values() for e in s.entries
    }
    assert BankId.ITAU not in ranked_banks


def test_payroll_scenario_subtracts_discount():
    entries = rank_scenario(_offers(), _scenario("best_cop_vis_payroll"))

    assert len(entries) == 1
    assert entries[0].bank_id == BankId.FNA
    assert entries[0].value == 11.0


def test_digital_scenario_matches_channel_only():
    entries = rank_scenario(_offers(), _scenario("best_digital_hipotecario"))

    assert [e.bank_id for e in entries] == [BankId.BBVA]


def test_custom_scenarios_and_empty_results():
    above_twelve = ScenarioDefinition(
        key="above_twelve",
        label="Above 12",
        description="",
        predicate=lambda o: o.comparison_value > 12,
        value=lambda o: -o.comparison_value,
    )
    nothing = ScenarioDefinition(
        key="nothing",
        label="Nothing",
        description="",
        predicate=lambda o: False,
        value=lambda o: o.comparison_value,
    )

    rankings = rank(_offers(), [above_twelve, nothing], generated_at=GENERATED_AT)

    assert [e.value for e in rankings.scenarios["above_twelve"].entries] == [-15.71, -12.6, -12.6]
    assert rankings.scenarios["nothing"].entries == []


def test_ranking_does_not_depend_on_bank_arrival_order():
    offers = _offers()
    forward = rank(offers, SCENARIOS, generated_at=GENERATED_AT)
    backward = rank(list(reversed(offers)), SCENARIOS, generated_at=GENERATED_AT)

    for key in forward.scenarios:
        assert [e.value for e in forward.scenarios[key].entries] == [
            e.value for e in backward.scenarios[key].entries
        ]


def test_rankings_serialize_with_generated_at():
    record = rank(_offers(), SCENARIOS, generated_at=GENERATED_AT).to_serializable_dict()

    assert record["generated_at"] == "2026-03-10T00:00:00+00:00"
    top = record["scenarios"]["best_cop_vis_hipotecario"]["entries"][0]
    assert top["bank_id"] == "banco_agrario"
    assert top["rank"] == 1
