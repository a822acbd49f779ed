import argparse
import json
import logging

from src.intake.config import get_config
from src.intake.ingestion.intake_pipeline import run_from_config
from src.intake.services import (
    BoundedFastStore,
    ContentLedger,
    LedgerMaintenance,
    ProcessingLedger,
    export_reports,
)


def _open_maintenance(config):
    fast_store = BoundedFastStore(
        db_path=config.database.fast_store_path,
        capacity=config.fast_store.capacity,
        safety_margin=config.fast_store.safety_margin,
        eviction_batch=config.fast_store.eviction_batch,
    )
    return LedgerMaintenance(ProcessingLedger(config.database.ledger_path), fast_store)


def main():
    parser = argparse.ArgumentParser(description="Duplicate-aware document intake")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Process the inbox once")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old delivery tracking")
    cleanup_parser.add_argument("days", type=int, help="Remove entries older than this many days")
    cleanup_parser.add_argument("--dry-run", action="store_true")

    purge_parser = subparsers.add_parser("purge-failed", help="Drop failed delivery records")
    purge_parser.add_argument("--dry-run", action="store_true")

    subparsers.add_parser("stats", help="Show fast store and ledger usage")

    report_parser = subparsers.add_parser("report", help="Export ledgers as CSV")
    report_parser.add_argument("--dir", default=None, help="Export directory")

    args = parser.parse_args()
    config = get_config()
    logging.basicConfig(level=config.logging.level)

    if args.command == "cleanup":
        result = _open_maintenance(config).cleanup(args.days, dry_run=args.dry_run)
        print(f"{'DRY RUN: ' if result.dry_run else ''}cleanup older than {result.days_old} days")
        print(f"  - processing records: {result.processing_records_matched} matched, "
              f"{result.processing_records_deleted} deleted")
        print(f"  - fast store entries: {result.fast_store_entries_matched} matched, "
              f"{result.fast_store_entries_deleted} deleted")
    elif args.command == "purge-failed":
        count = _open_maintenance(config).purge_failed(dry_run=args.dry_run)
        print(f"Failed deliveries {'found' if args.dry_run else 'purged'}: {count}")
    elif args.command == "stats":
        print(json.dumps(_open_maintenance(config).stats(), indent=2))
    elif args.command == "report":
        paths = export_reports(
            ContentLedger(config.database.ledger_path),
            ProcessingLedger(config.database.ledger_path),
            args.dir or config.report.export_dir,
        )
        for name, path in paths.items():
            print(f"{name}: {path}")
    else:
        summary = run_from_config(config)
        print("Intake complete:")
        for name, value in summary.as_dict().items():
            print(f"  - {name}: {value}")


if __name__ == "__main__":
    main()
