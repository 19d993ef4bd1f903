# rate_pipeline/writer.py

from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from .models import BankParseResult, OffersDataset, Rankings

OFFERS_FILENAME = "offers-latest.json"
RANKINGS_FILENAME = "rankings-latest.json"
PARSE_REPORT_FILENAME = "parse-report.jsonl"


def _write_json(record: Dict[str, Any], output_path: Union[str, Path]) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(record, f, ensure_ascii=False, indent=2)
        f.write("\n")

    return output_path


def write_offers_dataset(dataset: OffersDataset, output_path: Union[str, Path]) -> Path:
    """
    Write the merged offers dataset as a single JSON document.

    Uses OffersDataset.to_serializable_dict() so enums and datetimes are
    JSON-safe. Returns the written path.
    """
    return _write_json(dataset.to_serializable_dict(), output_path)


def write_rankings(rankings: Rankings, output_path: Union[str, Path]) -> Path:
    return _write_json(rankings.to_serializable_dict(), output_path)


def write_parse_report_jsonl(
    results: Iterable[BankParseResult],
    output_path: Union[str, Path],
) -> Path:
    """
    One line per bank: offer count, warnings, fingerprint and final stage.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        for result in results:
            json_line = json.dumps(result.to_report_dict(), ensure_ascii=False)
            f.write(json_line + "\n")

    return output_path
