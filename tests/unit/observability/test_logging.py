"""
nextcloud-installer — unit tests for the per-run JSON-lines log

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-18

Purpose
- Validate the run log: one JSON object per line, secrets masked, correlation stamped.

What this test file should cover
- Redaction of sensitive keys, inline assignments and SQL password clauses.
- Correlation fields for run, attempt and step, including nesting.
- structlog events reaching the run file with their keyword fields.
- Every queued record written by shutdown.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from nextcloud_installer.observability.logging import (
    REDACTED,
    correlation_scope,
    current_correlation,
    redact_value,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


def _logger_name() -> str:
    return f"nextcloud_installer.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_records_are_redacted_and_carry_correlation(tmp_path: Path) -> None:
    logger_name = _logger_name()
    run_log = setup_logging(run_id="run-redaction", log_dir=tmp_path, logger_name=logger_name)

    with correlation_scope(attempt=2, step="reconcile_resources"):
        logging.getLogger(logger_name).info(
            "statement CREATE USER 'u'@'localhost' IDENTIFIED BY 'hunter2' password=pw-FAKE",
            extra={"nested": {"db_pass": "s3cret-FAKE", "safe": "ok"}},
        )
    shutdown_logging(run_log)

    parsed = _read_json_lines(run_log.log_path)
    assert len(parsed) == 1
    first = parsed[0]
    assert first["run_id"] == "run-redaction"
    assert first["attempt"] == "2"
    assert first["step"] == "reconcile_resources"
    assert first["level"] == "INFO"
    assert str(first["timestamp"]).endswith("Z")
    assert first["fields"] == {"nested": {"db_pass": REDACTED, "safe": "ok"}}

    line = run_log.log_path.read_text(encoding="utf-8")
    assert "hunter2" not in line
    assert "pw-FAKE" not in line
    assert "s3cret-FAKE" not in line


def test_structlog_events_reach_the_run_file_with_their_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    run_log = setup_logging(
        {
            "log_level": "INFO",
            "log_dir": str(tmp_path / "ignored"),
            "log_to_stdout": False,
            "redact_secrets": True,
        },
        run_id="run-wrapper",
        log_dir=tmp_path,
        logger_name=logger_name,
    )

    events = structlog.get_logger(f"{logger_name}.pipeline")
    events.info(
        "pipeline.step.failed",
        step="deploy_application",
        packages=("apache2", "php-gd"),
        error_type="DatabaseError",
        credential="t-123",
    )
    events.debug("too.chatty")
    shutdown_logging()

    assert run_log.log_path == tmp_path / "run-wrapper" / "installer.jsonl"
    parsed = _read_json_lines(run_log.log_path)
    assert [item["message"] for item in parsed] == ["pipeline.step.failed"]
    assert parsed[0]["fields"] == {
        "credential": REDACTED,
        "error_type": "DatabaseError",
        "packages": ["apache2", "php-gd"],
        "step": "deploy_application",
    }
    assert not (tmp_path / "ignored").exists()


def test_redaction_can_be_disabled(tmp_path: Path) -> None:
    logger_name = _logger_name()
    run_log = setup_logging(
        {"log_level": "INFO", "redact_secrets": False},
        run_id="run-plain",
        log_dir=tmp_path,
        logger_name=logger_name,
    )
    logging.getLogger(logger_name).info("password=visible")
    shutdown_logging(run_log)

    assert "password=visible" in run_log.log_path.read_text(encoding="utf-8")


def test_correlation_scope_nests_and_restores() -> None:
    assert current_correlation() == {}
    with correlation_scope(attempt=1):
        with correlation_scope(step="deploy_application"):
            assert current_correlation() == {"attempt": "1", "step": "deploy_application"}
        with correlation_scope(attempt=None):
            assert current_correlation() == {}
        assert current_correlation() == {"attempt": "1"}
    assert current_correlation() == {}


def test_redact_value_walks_nested_values() -> None:
    redacted = redact_value({"admin_pass": "x", "items": ["MYSQL_PWD=abc", "plain"], "level": 3})
    assert redacted == {
        "admin_pass": REDACTED,
        "items": [f"MYSQL_PWD={REDACTED}", "plain"],
        "level": 3,
    }


def test_records_go_through_a_queue_and_shutdown_writes_them_all(tmp_path: Path) -> None:
    logger_name = _logger_name()
    run_log = setup_logging(run_id="run-flush", log_dir=tmp_path, logger_name=logger_name)
    logger = logging.getLogger(logger_name)

    assert [type(handler) for handler in logger.handlers] == [logging.handlers.QueueHandler]

    for index in range(300):
        logger.info("message %s", index)
    shutdown_logging(run_log)
    shutdown_logging(run_log)

    lines = run_log.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 300
    assert json.loads(lines[-1])["message"] == "message 299"
    assert logger.handlers == []


def test_new_run_log_closes_the_previous_one(tmp_path: Path) -> None:
    logger_name = _logger_name()
    first = setup_logging(run_id="run-one", log_dir=tmp_path, logger_name=logger_name)
    second = setup_logging(run_id="run-two", log_dir=tmp_path, logger_name=logger_name)

    assert first.closed
    assert not second.closed
    shutdown_logging()
    assert second.closed


def test_invalid_settings_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="run_id"):
        setup_logging(run_id="  ", log_dir=tmp_path)
    with pytest.raises(ValueError, match="TRACE"):
        setup_logging({"log_level": "TRACE"}, run_id="run-bad", log_dir=tmp_path)
