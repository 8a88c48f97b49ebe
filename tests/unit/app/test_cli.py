"""Unit tests for the command-line interface."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from push_dispatch.app.cli import cli, parse_assignments
from push_dispatch.types import NotificationRecord, utcnow


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """The CLI reconfigures the root logger; restore it after each test."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "records.json"


@pytest.fixture
def config_path(tmp_path: Path, store_path: Path) -> Path:
    """Configuration in simulated mode backed by a JSON record store."""
    path = tmp_path / "push-dispatch.yaml"
    _ = path.write_text(
        f"push:\n  profile: development\nstore:\n  path: {store_path}\napplication:\n  log_level: WARNING\n",
        encoding="utf-8",
    )
    return path


def _seed(store_path: Path, *records: NotificationRecord) -> None:
    _ = store_path.write_text(
        json.dumps({"records": [record.to_document() for record in records]}),
        encoding="utf-8",
    )


def _documents(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestParseAssignments:
    def test_values_are_yaml_scalars(self) -> None:
        assert parse_assignments(("ttl=3600", "dry_run=true", "priority=high"), "--option") == {
            "ttl": 3600,
            "dry_run": True,
            "priority": "high",
        }

    def test_empty_value_is_empty_string(self) -> None:
        assert parse_assignments(("tag=",), "--data") == {"tag": ""}

    @pytest.mark.parametrize("item", ["novalue", "=value"])
    def test_malformed_items_are_rejected(self, item: str) -> None:
        with pytest.raises(click.BadParameter):
            _ = parse_assignments((item,), "--data")


class TestGlobalOptions:
    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "push-dispatch" in result.output

    def test_config_must_be_yaml(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "config.json"), "unsent"])

        assert result.exit_code == 2
        assert "Invalid configuration file extension" in result.output

    def test_invalid_log_level(self) -> None:
        result = CliRunner().invoke(cli, ["--log-level", "LOUD", "unsent"])

        assert result.exit_code == 2

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "unsent"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output


class TestSend:
    def test_send_persists_delivered_record(self, config_path: Path, store_path: Path) -> None:
        result = CliRunner().invoke(
            cli,
            [
                "--config",
                str(config_path),
                "send",
                "token-1",
                "token-2",
                "--title",
                "Hello",
                "--data",
                "order=42",
                "--option",
                "priority=high",
            ],
        )

        assert result.exit_code == 0, result.output
        [document] = _documents(result.output)
        assert document["recipients"] == ["token-1", "token-2"]
        assert document["notification"] == {"title": "Hello"}
        assert document["data"] == {"order": 42}
        assert document["options"] == {"priority": "high"}
        assert document["sent_at"] is not None
        assert document["response"] == {"message": "success"}

        stored = json.loads(store_path.read_text(encoding="utf-8"))["records"]
        assert [d["id"] for d in stored] == [document["id"]]

    def test_send_requires_recipients(self, config_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(config_path), "send"])

        assert result.exit_code == 2


class TestQueries:
    def test_unsent_and_sent(self, config_path: Path, store_path: Path) -> None:
        _seed(
            store_path,
            NotificationRecord(id="pending", recipients=["t1"], created_at=utcnow()),
            NotificationRecord(id="done", recipients=["t2"], created_at=utcnow(), sent_at=utcnow()),
        )
        runner = CliRunner()

        unsent = runner.invoke(cli, ["--config", str(config_path), "unsent"])
        sent = runner.invoke(cli, ["--config", str(config_path), "sent"])

        assert unsent.exit_code == 0, unsent.output
        assert [d["id"] for d in _documents(unsent.output)] == ["pending"]
        assert [d["id"] for d in _documents(sent.output)] == ["done"]

    def test_where_filters_records(self, config_path: Path, store_path: Path) -> None:
        _seed(
            store_path,
            NotificationRecord(id="a", recipients=["t1"], extra={"tenant": "acme"}),
            NotificationRecord(id="b", recipients=["t2"], extra={"tenant": "other"}),
        )

        result = CliRunner().invoke(cli, ["--config", str(config_path), "unsent", "--where", "extra.tenant=acme"])

        assert [d["id"] for d in _documents(result.output)] == ["a"]


class TestResendAndRequeue:
    def test_resend_delivers_unsent_records(self, config_path: Path, store_path: Path) -> None:
        _seed(store_path, NotificationRecord(id="pending", recipients=["t1"]))

        result = CliRunner().invoke(cli, ["--config", str(config_path), "resend"])

        assert result.exit_code == 0, result.output
        assert "Resent 1 notification(s), 0 failed" in result.output
        stored = json.loads(store_path.read_text(encoding="utf-8"))["records"]
        assert stored[0]["sent_at"] is not None

    def test_requeue_drains_queue(self, config_path: Path, store_path: Path) -> None:
        _seed(
            store_path,
            NotificationRecord(id="first", recipients=["t1"]),
            NotificationRecord(id="second", recipients=["t2"]),
        )

        result = CliRunner().invoke(cli, ["--config", str(config_path), "requeue"])

        assert result.exit_code == 0, result.output
        assert "Processed 2 job(s), 0 failed" in result.output
        stored = json.loads(store_path.read_text(encoding="utf-8"))["records"]
        assert all(d["sent_at"] is not None for d in stored)

    def test_requeue_with_nothing_unsent(self, config_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(config_path), "requeue"])

        assert result.exit_code == 0, result.output
        assert "Processed 0 job(s), 0 failed" in result.output
