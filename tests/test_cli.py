"""Tests for the opstream CLI entry point and its renderers."""

import json
import sys
from pathlib import Path

import pytest
from rich.console import Console

sys.path.insert(0, str(Path(__file__).parent.parent / "tui"))

import opstream_cli  # noqa: E402
from core.ledger import OperationRecord, OperationStatus, Severity  # noqa: E402
from core.notifications import Toast, Variant  # noqa: E402
from core.stream import ReconnectOrigin  # noqa: E402


@pytest.fixture
def output(monkeypatch):
    console = Console(record=True, width=200, color_system=None)
    monkeypatch.setattr(opstream_cli, "console", console)
    return console


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


def test_no_command_prints_help(capsys):
    assert opstream_cli.main([]) == 1
    assert "watch" in capsys.readouterr().out


def test_watch_arguments_parsed():
    args = opstream_cli.build_parser().parse_args(
        ["watch", "--workspace", "/srv/box", "--url", "https://box/api/sse", "--insecure", "-v"]
    )
    assert args.workspace == "/srv/box"
    assert args.url == "https://box/api/sse"
    assert args.insecure and args.verbose
    assert args.func is opstream_cli.cmd_watch


def test_config_command_prints_merged_settings(home, output):
    config_dir = home / ".opstream"
    config_dir.mkdir()
    (config_dir / "stream.json").write_text(json.dumps({"reconnect": {"retry_delay": 7}}))

    assert opstream_cli.main(["config"]) == 0
    dumped = json.loads(output.export_text())
    assert dumped["reconnect"]["retry_delay"] == 7.0
    assert dumped["connection"]["verify_tls"] is True


def make_record(**kwargs):
    defaults = dict(id="A", title="Install app", started_at=1700000000000, caller="webadmin")
    defaults.update(kwargs)
    return OperationRecord(**defaults)


def test_format_record_shows_progress_and_counts():
    record = make_record(progress=(2, 1, 1))
    record.severity_counts[Severity.WARNING] = 3
    text = opstream_cli.format_record(record)
    assert "Install app" in text
    assert "50%" in text
    assert "by webadmin" in text
    assert "3W" in text


def test_print_toast(output):
    opstream_cli.print_toast(Toast(body="Backup done", variant=Variant.SUCCESS))
    assert "Backup done" in output.export_text()


def test_closed_record_prints_error(output):
    record = make_record(status=OperationStatus.ERROR, error_message="disk full")
    opstream_cli.print_ledger_change("closed", record)
    text = output.export_text()
    assert "error" in text
    assert "disk full" in text


def test_reconnecting_messages(output):
    opstream_cli.print_reconnecting(ReconnectOrigin.REBOOT)
    opstream_cli.print_reconnecting(None)
    text = output.export_text()
    assert "rebooting" in text
    assert "Connected" in text
