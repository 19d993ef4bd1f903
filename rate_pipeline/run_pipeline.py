#!/usr/bin/env python
"""
End-to-end runner: bank documents -> offers -> dedupe -> rankings -> JSON.

Usage examples:

    # Every registered bank, live
    python -m rate_pipeline.run_pipeline

    # Offline, from saved documents (<fixtures>/<bank_id>/<fixture_name>)
    python -m rate_pipeline.run_pipeline --fixtures-dir fixtures

    # Two banks, give up on slow sources after 90 seconds
    python -m rate_pipeline.run_pipeline --banks davivienda fna \
        --deadline-seconds 90

    # Dry run: parse and print a summary, no files written
    python -m rate_pipeline.run_pipeline --fixtures-dir fixtures --dry-run
"""

from __future__ import annotations

import argparse
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rate_pipeline.banks.base import BankExtractor
from rate_pipeline.banks.registry import EXTRACTORS, create_extractors
from rate_pipeline.browser import BrowserSessionError
from rate_pipeline.config_banks import DEFAULT_FIXTURES_DIR
from rate_pipeline.config_behavior import SCENARIOS
from rate_pipeline.dedupe import dedupe
from rate_pipeline.fetcher import Fetcher, FetchError
from rate_pipeline.models import BankId, BankParseResult, OffersDataset, ParseStage, Rankings
from rate_pipeline.ranking import rank
from rate_pipeline.writer import (
    OFFERS_FILENAME,
    PARSE_REPORT_FILENAME,
    RANKINGS_FILENAME,
    write_offers_dataset,
    write_parse_report_jsonl,
    write_rankings,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "output_data"
DEFAULT_MAX_WORKERS = 4


@dataclass
class PipelineRun:
    results: List[BankParseResult]
    dataset: OffersDataset
    rankings: Rankings


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Collect mortgage rates from Colombian bank disclosures and rank them."
    )

    parser.add_argument(
        "--banks",
        nargs="+",
        choices=[b.value for b in EXTRACTORS],
        default=None,
        help="Banks to process (default: every registered bank).",
    )

    parser.add_argument(
        "--fixtures-dir",
        type=str,
        default=None,
        help=(
            "Read documents from <dir>/<bank_id>/<fixture_name> instead of the network. "
            f"The conventional location is '{DEFAULT_FIXTURES_DIR}'."
        ),
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory for the output files. Default: {DEFAULT_OUTPUT_DIR}.",
    )

    parser.add_argument(
        "--max-workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f"Banks processed concurrently. Default: {DEFAULT_MAX_WORKERS}.",
    )

    parser.add_argument(
        "--deadline-seconds",
        type=float,
        default=None,
        help="Run-wide deadline; banks still running after it are reported empty.",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and print a per-bank summary, but do NOT write output files.",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO.",
    )

    args = parser.parse_args(argv)
    if args.max_workers <= 0:
        parser.error("--max-workers must be positive.")
    if args.deadline_seconds is not None and args.deadline_seconds <= 0:
        parser.error("--deadline-seconds must be positive.")
    return args


def _failed_result(bank_id: BankId, message: str) -> BankParseResult:
    return BankParseResult(
        bank_id=bank_id,
        warnings=[message],
        stage=ParseStage.DONE_WITH_WARNINGS,
        failed_stage=ParseStage.FETCHING,
    )


def run_bank(extractor: BankExtractor) -> BankParseResult:
    """
    Run one extractor; transport failures become an empty result so the
    remaining banks are unaffected.
    """
    bank_id = extractor.bank_id
    try:
        return extractor.parse()
    except (FetchError, BrowserSessionError) as e:
        logger.error("%s: could not retrieve document: %s", bank_id.value, e)
        return _failed_result(bank_id, f"Failed to retrieve document: {e}")
    except Exception as e:
        logger.error("%s: unexpected error during parse", bank_id.value, exc_info=True)
        return _failed_result(bank_id, f"Unexpected error: {e}")


def run_extractors(
    extractors: Sequence[BankExtractor],
    max_workers: int = DEFAULT_MAX_WORKERS,
    deadline: Optional[float] = None,
) -> List[BankParseResult]:
    """
    Run extractors on a bounded thread pool and return their results in
    the order the extractors were given, whatever order they finished in.

    Banks still running at `deadline` (a time.monotonic() value) get a
    deadline warning instead of a result. Their threads are not killed; the
    fetcher stops them at their next network call.
    """
    if not extractors:
        return []

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bank")
    try:
        futures: Dict[BankId, Future] = {
            ex.bank_id: executor.submit(run_bank, ex) for ex in extractors
        }
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        _done, not_done = wait(list(futures.values()), timeout=timeout)

        results: List[BankParseResult] = []
        for ex in extractors:
            future = futures[ex.bank_id]
            if future in not_done:
                future.cancel()
                logger.error("%s: did not finish before the run deadline", ex.bank_id.value)
                results.append(_failed_result(ex.bank_id, "Run deadline exceeded before completion"))
            else:
                results.append(future.result())
        return results
    finally:
        executor.shutdown(wait=deadline is None, cancel_futures=True)


def aggregate(
    results: Sequence[BankParseResult],
    generated_at: Optional[datetime] = None,
) -> PipelineRun:
    """
    Dedupe each bank's offers, merge them in result order, and rank.
    """
    generated_at = generated_at or datetime.now(timezone.utc)

    offers = []
    for result in results:
        offers.extend(dedupe(result.offers))

    return PipelineRun(
        results=list(results),
        dataset=OffersDataset(generated_at=generated_at, offers=offers),
        rankings=rank(offers, SCENARIOS, generated_at=generated_at),
    )


def run_pipeline(
    bank_ids: Optional[Sequence[BankId]] = None,
    fixtures_dir: Optional[str] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    deadline_seconds: Optional[float] = None,
    fetcher: Optional[Fetcher] = None,
    generated_at: Optional[datetime] = None,
) -> PipelineRun:
    deadline = None
    if deadline_seconds is not None:
        deadline = time.monotonic() + deadline_seconds

    extractors = create_extractors(
        bank_ids=bank_ids,
        fixtures_dir=fixtures_dir,
        fetcher=fetcher,
        deadline=deadline,
    )
    logger.info(
        "Running %d bank extractor(s): %s (max_workers=%d, deadline_seconds=%s)",
        len(extractors),
        ", ".join(ex.bank_id.value for ex in extractors),
        max_workers,
        deadline_seconds,
    )

    results = run_extractors(extractors, max_workers=max_workers, deadline=deadline)
    return aggregate(results, generated_at=generated_at)


def write_outputs(run: PipelineRun, output_dir: str) -> Dict[str, Path]:
    output_dir_path = Path(output_dir)
    return {
        "offers": write_offers_dataset(run.dataset, output_dir_path / OFFERS_FILENAME),
        "rankings": write_rankings(run.rankings, output_dir_path / RANKINGS_FILENAME),
        "parse_report": write_parse_report_jsonl(
            run.results, output_dir_path / PARSE_REPORT_FILENAME
        ),
    }


def print_summary(run: PipelineRun) -> None:
    for result in run.results:
        print("\n-----------------------------")
        print(f"    Bank:         {result.bank_id.value}")
        print(f"    Offers:       {len(result.offers)}")
        print(f"    Stage:        {result.stage.value}")
        print(f"    Fingerprint:  {result.content_fingerprint or '-'}")
        for warning in result.warnings:
            print(f"    Warning:      {warning}")
        for offer in result.offers:
            print(
                f"      {offer.product_type.value:<11} {offer.currency_index.value:<3} "
                f"{offer.segment.value:<7} {offer.channel.value:<11} "
                f"{offer.comparison_value:.2f}"
            )
        print("-----------------------------")

    print(f"\nDataset: {len(run.dataset.offers)} offer(s) after dedupe")
    for key, scenario in run.rankings.scenarios.items():
        top = scenario.entries[0] if scenario.entries else None
        leader = f"{top.bank_id.value} ({top.value:.2f})" if top else "-"
        print(f"    {key:<32} {len(scenario.entries):>3} ranked, best: {leader}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    bank_ids = [BankId(b) for b in args.banks] if args.banks else None
    if args.fixtures_dir:
        logger.info("Starting pipeline in FIXTURE mode: fixtures_dir=%s", args.fixtures_dir)
    else:
        logger.info("Starting pipeline in LIVE mode")

    run = run_pipeline(
        bank_ids=bank_ids,
        fixtures_dir=args.fixtures_dir,
        max_workers=args.max_workers,
        deadline_seconds=args.deadline_seconds,
    )

    if args.dry_run:
        print_summary(run)
        logger.info("Dry run complete. No output files written.")
        return

    paths = write_outputs(run, args.output_dir)
    failed = [r.bank_id.value for r in run.results if not r.offers]

    logger.info(
        "Pipeline completed. Wrote %d offer(s) to %s, rankings to %s, report to %s.",
        len(run.dataset.offers),
        paths["offers"],
        paths["rankings"],
        paths["parse_report"],
    )
    if failed:
        logger.warning("Banks without offers this run: %s", ", ".join(failed))


if __name__ == "__main__":
    main()
