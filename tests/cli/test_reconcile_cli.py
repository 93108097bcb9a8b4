"""
Tests for scripts/reconcile.py.

Each test drives main() against its own SQLite file, the way an operator
would from a shell, and reads the JSON document printed on stdout.
"""

import importlib.util
import json
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "reconcile.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("reconcile_cli", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def run(cli, tmp_path, capsys):
    """Run the CLI with a per-test database; returns (exit_code, payload)."""
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"

    def _run(*argv):
        code = cli.main(["--db-url", db_url, *argv])
        return code, json.loads(capsys.readouterr().out)

    code, _ = _run("init-db")
    assert code == 0
    return _run


class TestCommands:
    def test_create_and_list_pending(self, run):
        code, created = run("create-buffer", "500000", "ORD-1001", "--sender-name", "KO AUNG")
        assert code == 0
        assert created["buffer"]["order_id"] == "ORD-1001"
        assert created["buffer"]["expected_amount"] == "500000.00"

        _, pending = run("pending")
        assert [b["order_id"] for b in pending["pending"]] == ["ORD-1001"]

    def test_process_matches(self, run):
        _, created = run("create-buffer", "500000", "ORD-1001")
        code, result = run(
            "process",
            "You received MMK 500,000 from KO AUNG. Ref: TXN882",
            "--received-at",
            "2030-01-01T00:00:00+00:00",
            "--sender",
            "KBZPay",
        )
        assert code == 0
        outcome = result["outcome"]
        assert outcome["status"] == "matched"
        assert outcome["buffer_id"] == created["buffer"]["id"]
        assert outcome["order_id"] == "ORD-1001"

        _, pending = run("pending")
        assert pending["pending"] == []

    def test_process_reads_stdin(self, run, monkeypatch):
        import io

        monkeypatch.setattr("sys.stdin", io.StringIO("Avail Bal: 1,000 Ks"))
        _, result = run("process")
        assert result["outcome"]["status"] == "invalid"
        assert result["outcome"]["reason_code"] == "no_amount"

    def test_unresolved_and_link(self, run):
        _, first = run("create-buffer", "10000", "ORD-A")
        run("create-buffer", "10000", "ORD-B")
        _, result = run("process", "Received 10,000 Ks", "--received-at", "2030-01-01T00:00:00+00:00")
        log_entry_id = result["outcome"]["log_entry_id"]
        assert result["outcome"]["status"] == "ambiguous"

        _, unresolved = run("unresolved")
        assert [e["id"] for e in unresolved["unresolved"]] == [log_entry_id]

        code, linked = run(
            "link", log_entry_id, first["buffer"]["id"], "--by", "support:mya", "--note", "called"
        )
        assert code == 0
        assert linked["resolution"]["order_id"] == "ORD-A"

        _, unresolved = run("unresolved")
        assert unresolved["unresolved"] == []

    def test_expire(self, run):
        _, created = run("create-buffer", "10000", "ORD-X")
        _, expired = run("expire", created["buffer"]["id"], "--reason", "order cancelled")
        assert expired["buffer"]["eligible"] is False
        assert expired["buffer"]["ineligible_reason"] == "order cancelled"


class TestErrors:
    def test_kernel_error_reported_as_json(self, run):
        code, payload = run("create-buffer", "0", "ORD-ZERO")
        assert code == 1
        assert payload["error"] == "INVALID_AMOUNT"

    def test_link_unknown_entry(self, run):
        _, created = run("create-buffer", "10000", "ORD-X")
        code, payload = run(
            "link", "00000000-0000-0000-0000-000000000000", created["buffer"]["id"], "--by", "admin"
        )
        assert code == 1
        assert payload["error"] == "LOG_ENTRY_NOT_FOUND"

    def test_link_requires_operator(self, cli):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["link", "a", "b"])
