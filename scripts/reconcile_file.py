import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json
import signal
import threading
from typing import Any

import structlog

from sync_reservations.db.engine import engine
from sync_reservations.logging_config import setup_logging
from sync_reservations.services.reconcile import reconcile_batch

setup_logging()
logger = structlog.get_logger(__name__)


def load_batch(path: Path) -> list[dict[str, Any]]:
    """Load a scraped batch: either a JSON list or {"reservations": [...]}."""
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("reservations", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a list of reservations")
    return data


def main() -> None:
    """
    Reconcile a scraped batch stored as JSON, e.g. a saved scraper run.

    Ctrl+C stops the batch after the record in flight; the remaining records are
    reported as skipped.
    """
    parser = argparse.ArgumentParser(description="Reconcile a JSON reservation batch")
    parser.add_argument("path", type=Path, help="JSON file with the raw reservations")
    parser.add_argument("--tenant", required=True, help="Tenant (hotel) identifier")
    parser.add_argument("--channel", required=True, help="OTA name or the walk-in channel")
    parser.add_argument("--dry-run", action="store_true", help="Normalize and classify only")
    args = parser.parse_args()

    stop_event = threading.Event()
    signal.signal(signal.SIGINT, lambda signum, frame: stop_event.set())

    records = load_batch(args.path)
    logger.info("batch_file_loaded", path=str(args.path), records_count=len(records))

    result = reconcile_batch(
        engine,
        args.tenant,
        args.channel,
        records,
        stop_event=stop_event,
        dry_run=args.dry_run,
    )
    print(result.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
