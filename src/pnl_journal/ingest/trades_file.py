from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from pnl_journal.models import Trade, trade_from_row

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    trades: list[Trade]
    skipped: int = 0


def load_trades(path: str | Path, *, owner_id: str) -> IngestResult:
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix == ".json":
        with source_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return load_trades_payload(payload, owner_id=owner_id)
    if suffix in {".csv", ".tsv"}:
        with source_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle, delimiter="\t" if suffix == ".tsv" else ",")
            trades, skipped = _normalize_records(reader, owner_id=owner_id)
        return IngestResult(trades=trades, skipped=skipped)
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def load_trades_payload(payload: Any, *, owner_id: str) -> IngestResult:
    records = _extract_records(payload)
    trades, skipped = _normalize_records(records, owner_id=owner_id)
    return IngestResult(trades=trades, skipped=skipped)


def _extract_records(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("trades", "data", "rows"):
            if key in payload and isinstance(payload[key], list):
                return payload[key]
    raise ValueError("Unsupported JSON format for trades payload")


def _normalize_records(records: Iterable[Any], *, owner_id: str) -> tuple[list[Trade], int]:
    trades: list[Trade] = []
    skipped = 0
    for raw in records:
        if not isinstance(raw, Mapping):
            skipped += 1
            continue
        try:
            # Imported rows always belong to the importing owner.
            row = {key: value for key, value in raw.items() if key not in {"owner_id", "ownerId", "user_id"}}
            trades.append(trade_from_row(row, owner_id=owner_id))
        except ValueError as exc:
            skipped += 1
            logger.debug("Skipping trade row: %s", exc)
    if skipped:
        logger.warning("Skipped %d trade rows during import", skipped)
    return trades, skipped
