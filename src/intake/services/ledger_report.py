"""Tabular CSV views of the ledgers for operator audits.

Both ledgers are rendered with the same fixed column layout so duplicate
decisions can be checked in any spreadsheet tool.
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from src.intake.services.content_ledger import ContentLedger
from src.intake.services.duplicate_coordinator import delivery_key
from src.intake.services.processing_ledger import ProcessingLedger

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "timestamp",
    "key",
    "sender",
    "subject",
    "attachment_names",
    "artifact_location",
    "status",
]

CONTENT_STATUS = "Stored"


def _in_range(value: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def content_ledger_rows(
    content_ledger: ContentLedger,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, str]]:
    """One row per unique content key, filtered on first-seen time."""
    return [
        {
            "timestamp": record.first_seen_at.isoformat(),
            "key": record.content_key,
            "sender": record.sender,
            "subject": record.subject,
            "attachment_names": ", ".join(record.attachment_names),
            "artifact_location": record.artifact_location,
            "status": CONTENT_STATUS,
        }
        for record in content_ledger.records()
        if _in_range(record.first_seen_at, start, end)
    ]


def processing_ledger_rows(
    processing_ledger: ProcessingLedger,
    content_ledger: ContentLedger,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, str]]:
    """One row per delivery, joined to the content ledger for artifact details."""
    content = {record.content_key: record for record in content_ledger.records()}
    rows = []
    for record in processing_ledger.records():
        if not _in_range(record.processed_at, start, end):
            continue
        stored = content.get(record.content_key) if record.content_key else None
        rows.append(
            {
                "timestamp": record.processed_at.isoformat(),
                "key": delivery_key(record.message_id, record.recipient),
                "sender": record.sender,
                "subject": record.subject,
                "attachment_names": ", ".join(stored.attachment_names) if stored else "",
                "artifact_location": stored.artifact_location if stored else "",
                "status": record.status.value,
            }
        )
    return rows


def write_report(rows: List[Dict[str, str]], path: Path) -> Path:
    """Write rows to a CSV file with the fixed report header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    logger.info(f"Wrote {len(rows)} rows to {path}")
    return path


def export_reports(
    content_ledger: ContentLedger,
    processing_ledger: ProcessingLedger,
    export_dir: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Path]:
    """Export both ledgers as CSV files.

    Args:
        content_ledger: Ledger of unique content.
        processing_ledger: Ledger of handled deliveries.
        export_dir: Directory the files are written to.
        start: Optional inclusive lower bound on the row timestamp.
        end: Optional inclusive upper bound on the row timestamp.

    Returns:
        Mapping of report name to written file path.
    """
    directory = Path(export_dir)
    return {
        "content": write_report(
            content_ledger_rows(content_ledger, start, end),
            directory / "content_ledger.csv",
        ),
        "processing": write_report(
            processing_ledger_rows(processing_ledger, content_ledger, start, end),
            directory / "processing_ledger.csv",
        ),
    }
