# tests/test_run_pipeline.py

import json
import time

import pytest

from rate_pipeline.banks.registry import EXTRACTORS, create_extractors, fixture_path
from rate_pipeline.fetcher import FetchError
from rate_pipeline.models import BankId, BankParseResult, ParseStage, Segment
from rate_pipeline.run_pipeline import (
    aggregate,
    main,
    parse_args,
    run_bank,
    run_extractors,
    run_pipeline,
)
from rate_pipeline.writer import OFFERS_FILENAME, PARSE_REPORT_FILENAME, RANKINGS_FILENAME

from conftest import RETRIEVED_AT, make_offer


class FakeExtractor:
    def __init__(self, bank_id, result=None, delay=0.0, error=None):
        self.bank_id = bank_id
        self.result = result or BankParseResult(bank_id=bank_id)
        self.delay = delay
        self.error = error

    def parse(self):
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fixtures_dir(tmp_path, davivienda_pdf):
    root = tmp_path / "fixtures"
    path = fixture_path(root, BankId.DAVIVIENDA)
    path.parent.mkdir(parents=True)
    path.write_bytes(davivienda_pdf)
    return root


def test_registry_builds_extractors_in_table_order(tmp_path):
    extractors = create_extractors(
        bank_ids=[BankId.ITAU, BankId.DAVIVIENDA], fixtures_dir=tmp_path
    )

    assert [e.bank_id for e in extractors] == [BankId.DAVIVIENDA, BankId.ITAU]
    assert extractors[0].fixture_path == tmp_path / "davivienda" / "rates.pdf"
    assert len(create_extractors()) == len(EXTRACTORS)


def test_registry_rejects_banks_without_extractor():
    with pytest.raises(ValueError, match="bbva"):
        create_extractors(bank_ids=[BankId.BBVA])


def test_transport_failure_becomes_empty_result():
    result = run_bank(FakeExtractor(BankId.FNA, error=FetchError("HTTP 503 for https://fna")))

    assert result.offers == []
    assert result.warnings == ["Failed to retrieve document: HTTP 503 for https://fna"]
    assert result.stage == ParseStage.DONE_WITH_WARNINGS
    assert result.failed_stage == ParseStage.FETCHING


def test_unexpected_failure_does_not_escape():
    result = run_bank(FakeExtractor(BankId.FNA, error=KeyError("boom")))

    assert result.offers == []
    assert result.warnings[0].startswith("Unexpected error")


def test_results_follow_extractor_order_not_completion_order():
    extractors = [
        FakeExtractor(BankId.DAVIVIENDA, delay=0.2),
        FakeExtractor(BankId.FNA, delay=0.0),
        FakeExtractor(BankId.ITAU, delay=0.1),
    ]

    results = run_extractors(extractors, max_workers=3)

    assert [r.bank_id for r in results] == [BankId.DAVIVIENDA, BankId.FNA, BankId.ITAU]


def test_deadline_keeps_finished_banks():
    extractors = [
        FakeExtractor(BankId.DAVIVIENDA, result=BankParseResult(BankId.DAVIVIENDA, offers=[make_offer()])),
        FakeExtractor(BankId.FNA, delay=1.0),
    ]

    results = run_extractors(extractors, max_workers=2, deadline=time.monotonic() + 0.3)

    assert len(results[0].offers) == 1
    assert results[1].bank_id == BankId.FNA
    assert results[1].warnings == ["Run deadline exceeded before completion"]


def test_aggregate_dedupes_per_bank_then_ranks():
    davivienda = BankParseResult(
        BankId.DAVIVIENDA,
        offers=[
            make_offer(BankId.DAVIVIENDA, rate_from=12.6, locator="general"),
            make_offer(BankId.DAVIVIENDA, rate_from=12.1, locator="promo"),
        ],
    )
    agrario = BankParseResult(
        BankId.BANCO_AGRARIO, offers=[make_offer(BankId.BANCO_AGRARIO, rate_from=12.1)]
    )

    run = aggregate([davivienda, agrario], generated_at=RETRIEVED_AT)

    assert [(o.bank_id, o.comparison_value) for o in run.dataset.offers] == [
        (BankId.DAVIVIENDA, 12.1),
        (BankId.BANCO_AGRARIO, 12.1),
    ]
    entries = run.rankings.scenarios["best_cop_vis_hipotecario"].entries
    assert [e.rank for e in entries] == [1, 2]
    assert run.dataset.generated_at == run.rankings.generated_at == RETRIEVED_AT


def test_fixture_pipeline_tolerates_missing_banks(fixtures_dir):
    run = run_pipeline(
        bank_ids=[BankId.DAVIVIENDA, BankId.ITAU],
        fixtures_dir=str(fixtures_dir),
        generated_at=RETRIEVED_AT,
    )

    davivienda, itau = run.results
    assert len(davivienda.offers) == 8
    assert itau.offers == [] and "Fixture not found" in itau.warnings[0]
    assert len(run.dataset.offers) == 8

    best_uvr_no_vis = run.rankings.scenarios["best_uvr_no_vis_hipotecario"].entries
    assert [(e.bank_id, e.value) for e in best_uvr_no_vis] == [(BankId.DAVIVIENDA, 7.95)]
    assert all(o.segment in (Segment.VIS, Segment.NO_VIS) for o in run.dataset.offers)


def test_pipeline_is_deterministic_apart_from_retrieval_time(fixtures_dir):
    def snapshot():
        run = run_pipeline(
            bank_ids=[BankId.DAVIVIENDA], fixtures_dir=str(fixtures_dir), generated_at=RETRIEVED_AT
        )
        offers = run.dataset.to_serializable_dict()["offers"]
        for offer in offers:
            offer["source"].pop("retrieved_at")
        return offers, run.rankings.to_serializable_dict()

    assert snapshot() == snapshot()


def test_main_writes_all_artifacts(fixtures_dir, tmp_path):
    output_dir = tmp_path / "out"

    main([
        "--banks", "davivienda",
        "--fixtures-dir", str(fixtures_dir),
        "--output-dir", str(output_dir),
        "--log-level", "WARNING",
    ])

    offers = json.loads((output_dir / OFFERS_FILENAME).read_text(encoding="utf-8"))
    rankings = json.loads((output_dir / RANKINGS_FILENAME).read_text(encoding="utf-8"))
    report = (output_dir / PARSE_REPORT_FILENAME).read_text(encoding="utf-8").splitlines()

    assert len(offers["offers"]) == 8
    assert "best_cop_vis_hipotecario" in rankings["scenarios"]
    assert json.loads(report[0])["bank_id"] == "davivienda"


def test_dry_run_prints_summary_and_writes_nothing(fixtures_dir, tmp_path, capsys):
    output_dir = tmp_path / "out"

    main([
        "--banks", "davivienda",
        "--fixtures-dir", str(fixtures_dir),
        "--output-dir", str(output_dir),
        "--dry-run",
    ])

    out = capsys.readouterr().out
    assert "davivienda" in out
    assert "8 offer(s) after dedupe" in out
    assert not output_dir.exists()


@pytest.mark.parametrize(
    "argv",
    [["--max-workers", "0"], ["--deadline-seconds", "-1"], ["--banks", "bbva"]],
)
def test_parse_args_rejects_bad_values(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)
