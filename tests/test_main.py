"""Tests for the command line entry point.

These tests verify:
- The default command processes the inbox once
- cleanup, purge-failed, stats and report run against the configured ledgers
"""

import json
import sys
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from pathlib import Path

import pytest

import main
from src.intake.models import ProcessingRecord, ProcessingStatus
from src.intake.services import ProcessingLedger


def _write_eml(path, message_id):
    message = EmailMessage()
    message["Message-ID"] = message_id
    message["From"] = "a@x.com"
    message["To"] = "b@x.com"
    message["Subject"] = "Loan Agreement"
    message["Date"] = "Sat, 22 Jun 2024 10:30:00 +0000"
    message.set_content("See attached.")
    message.add_attachment(b"%PDF-1.4", maintype="application", subtype="pdf", filename="loan.pdf")
    path.write_bytes(message.as_bytes())


def _record(message_id, status=ProcessingStatus.SUCCESS, age=timedelta(0)):
    return ProcessingRecord(
        message_id=message_id,
        recipient="b@x.com",
        processed_at=datetime.now(timezone.utc) - age,
        status=status,
        error="store offline" if status is ProcessingStatus.ERROR else None,
    )


@pytest.fixture
def run_cli(app_config, monkeypatch, capsys):
    """Run main() with the given arguments and return what it printed."""
    monkeypatch.setattr(main, "get_config", lambda: app_config)

    def _run(*args):
        monkeypatch.setattr(sys, "argv", ["main.py", *args])
        main.main()
        return capsys.readouterr().out

    return _run


@pytest.fixture
def ledger_records(app_config):
    """Seed the processing ledger with an old, a recent and a failed delivery."""
    with ProcessingLedger(app_config.database.ledger_path) as ledger:
        ledger.append(_record("old", age=timedelta(days=40)))
        ledger.append(_record("new"))
        ledger.append(_record("failed", status=ProcessingStatus.ERROR))
    return app_config.database.ledger_path


class TestMain:
    """Test the sub-commands of main.py."""

    def test_run_is_default(self, run_cli, app_config):
        """Test that no sub-command processes the inbox."""
        inbox = Path(app_config.intake.inbox_dir)
        inbox.mkdir()
        _write_eml(inbox / "first.eml", "<msg-1@x.com>")

        output = run_cli()

        assert "Intake complete:" in output
        assert "deliveries_novel: 1" in output
        assert "messages_seen: 1" in output

    def test_cleanup_dry_run(self, run_cli, ledger_records):
        """Test that a dry run reports matches and keeps the records."""
        output = run_cli("cleanup", "30", "--dry-run")

        assert output.startswith("DRY RUN: cleanup older than 30 days")
        assert "processing records: 1 matched, 0 deleted" in output

        with ProcessingLedger(ledger_records) as ledger:
            assert ledger.count() == 3

    def test_cleanup(self, run_cli, ledger_records):
        output = run_cli("cleanup", "30")

        assert "processing records: 1 matched, 1 deleted" in output
        with ProcessingLedger(ledger_records) as ledger:
            assert ledger.lookup("old", "b@x.com") is None

    def test_purge_failed(self, run_cli, ledger_records):
        """Test that only Error records are purged."""
        assert "Failed deliveries found: 1" in run_cli("purge-failed", "--dry-run")
        assert "Failed deliveries purged: 1" in run_cli("purge-failed")

        with ProcessingLedger(ledger_records) as ledger:
            assert ledger.count() == 2
            assert ledger.lookup("failed", "b@x.com") is None

    def test_stats(self, run_cli, ledger_records):
        stats = json.loads(run_cli("stats"))

        assert stats["processed_total"] == 3
        assert stats["processed_errors"] == 1
        assert stats["fast_store_capacity"] == 50

    def test_report(self, run_cli, ledger_records, tmp_path):
        """Test that both ledgers are exported to the given directory."""
        export_dir = tmp_path / "exports"

        output = run_cli("report", "--dir", str(export_dir))

        assert (export_dir / "content_ledger.csv").exists()
        assert (export_dir / "processing_ledger.csv").exists()
        assert "processing:" in output

    def test_unknown_command(self, run_cli):
        with pytest.raises(SystemExit):
            run_cli("compact")
