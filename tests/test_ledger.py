"""
Tests for the run ledger — NDJSON append, read-back, corruption tolerance.
"""

import json
from pathlib import Path

from vps_setup.core.models.outcome import Outcome
from vps_setup.core.persistence.ledger import LedgerEntry, RunLedger, default_ledger_path


class TestLedgerEntry:
    def test_from_outcome(self):
        outcome = Outcome.failure("nginx", "nginx: [emerg] bad", "execution", notes=["n"], forced=True)
        entry = LedgerEntry.from_outcome(outcome, mode="agent", distro_id="debian")
        assert entry.phase == "nginx"
        assert entry.status == "failed"
        assert entry.error_kind == "execution"
        assert entry.forced is True
        assert entry.notes == ["n"]
        assert entry.mode == "agent"
        assert entry.timestamp == outcome.ended_at


class TestRunLedger:
    def test_write_creates_parent_dirs(self, tmp_path: Path):
        path = tmp_path / "deep" / "state" / "history.ndjson"
        ledger = RunLedger(path)
        ledger.write(LedgerEntry(phase="sudo", status="skipped"))
        assert path.is_file()
        line = json.loads(path.read_text().strip())
        assert line["phase"] == "sudo"

    def test_append_and_read_order(self, tmp_path: Path):
        ledger = RunLedger(tmp_path / "h.ndjson")
        for phase in ("prerequisites", "firewall", "ssh"):
            ledger.write(LedgerEntry(phase=phase, status="applied"))
        assert [e.phase for e in ledger.read_all()] == ["prerequisites", "firewall", "ssh"]
        assert [e.phase for e in ledger.read_recent(2)] == ["firewall", "ssh"]
        assert ledger.read_recent(0) == []
        assert ledger.entry_count() == 3

    def test_missing_file(self, tmp_path: Path):
        ledger = RunLedger(tmp_path / "none.ndjson")
        assert ledger.read_all() == []
        assert ledger.entry_count() == 0

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "h.ndjson"
        good = LedgerEntry(phase="mosh", status="applied").model_dump(mode="json")
        path.write_text(
            json.dumps(good) + "\n"
            + "{not json\n"
            + json.dumps({"phase": "x", "forced": "sometimes"}) + "\n"
            + "\n"
        )
        entries = RunLedger(path).read_all()
        assert [e.phase for e in entries] == ["mosh"]

    def test_unwritable_path_does_not_raise(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        ledger = RunLedger(blocker / "history.ndjson")
        ledger.write(LedgerEntry(phase="ssh"))
        assert ledger.read_all() == []

    def test_default_path_from_env(self, tmp_path: Path):
        # conftest points VPS_SETUP_LEDGER into tmp_path
        assert default_ledger_path() == tmp_path / "state" / "history.ndjson"
        assert RunLedger().path == default_ledger_path()
