"""!
@brief Tests for :mod:`csr_sweeper.logging_ext`.
"""
from __future__ import annotations

import io
import json
import logging
import logging.handlers
import pathlib
import sys
from contextlib import redirect_stdout

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from csr_sweeper import logging_ext  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_logging_state() -> None:
    """!
    @brief Reset logging between tests to avoid handler leakage.
    """

    yield
    for name in (logging_ext.HUMAN_LOGGER_NAME, logging_ext.MACHINE_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for flt in list(logger.filters):
            logger.removeFilter(flt)
        logger.propagate = True


def _flush(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.flush()


def test_setup_logging_creates_files_and_formats(tmp_path) -> None:
    human_logger, machine_logger = logging_ext.setup_logging(tmp_path / "logs")
    human_logger.info("Deleted cached entries for %s", "S-1-5-21-1-2-3-4")
    machine_logger.info(
        "registry_key_deleted",
        extra=logging_ext.build_event_extra("registry_key_deleted", key="HKLM\\X"),
    )
    _flush(human_logger)
    _flush(machine_logger)

    human_text = (tmp_path / "logs" / "human.log").read_text(encoding="utf-8")
    lines = [line for line in human_text.splitlines() if line.strip()]
    assert "CSR Sweeper" in lines[0]
    assert lines[-1].endswith("[human] Deleted cached entries for S-1-5-21-1-2-3-4")
    # "YYYY-MM-DD HH:MM:SS LEVEL" prefix on every line
    assert all(line[4] == "-" and line[10] == " " and line[13] == ":" for line in lines)

    machine_entries = [
        json.loads(line)
        for line in (tmp_path / "logs" / "events.jsonl").read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    run_entry = machine_entries[0]
    assert run_entry["event"] == "run_start"
    assert run_entry["run"]["run_id"]

    deleted = machine_entries[-1]
    assert deleted["event"] == "registry_key_deleted"
    assert deleted["key"] == "HKLM\\X"
    assert deleted["channel"] == "machine"
    assert deleted["run_id"] == run_entry["run"]["run_id"]

    metadata = logging_ext.get_run_metadata()
    assert metadata is not None and metadata["run_id"] == run_entry["run"]["run_id"]
    assert logging_ext.get_log_directory() == tmp_path / "logs"
    assert any(isinstance(handler, logging.handlers.RotatingFileHandler) for handler in human_logger.handlers)


def test_json_stdout_mirror(tmp_path) -> None:
    buffer = io.StringIO()
    with redirect_stdout(buffer):
        _, machine_logger = logging_ext.setup_logging(tmp_path, json_to_stdout=True)
        machine_logger.warning("mirror", extra=logging_ext.build_event_extra("mirror"))
        _flush(machine_logger)

    output_lines = [line for line in buffer.getvalue().splitlines() if line.strip()]
    assert json.loads(output_lines[0])["event"] == "run_start"
    parsed = json.loads(output_lines[-1])
    assert parsed["event"] == "mirror"
    assert parsed["level"] == "WARNING"


def test_console_mirror_targets_stderr(tmp_path) -> None:
    human_logger, _ = logging_ext.setup_logging(tmp_path, console=True)

    streams = [
        getattr(handler, "stream", None)
        for handler in human_logger.handlers
        if not isinstance(handler, logging.FileHandler)
    ]
    assert streams == [sys.stderr]


def test_non_serialisable_extras_are_coerced(tmp_path) -> None:
    _, machine_logger = logging_ext.setup_logging(tmp_path)
    machine_logger.info("odd", extra={"event": "odd", "payload": object()})
    _flush(machine_logger)

    last = (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()[-1]
    assert json.loads(last)["payload"].startswith("<object object")


def test_logger_helpers_return_configured_instances(tmp_path) -> None:
    human_logger, machine_logger = logging_ext.setup_logging(tmp_path)
    assert logging_ext.get_human_logger() is human_logger
    assert logging_ext.get_machine_logger() is machine_logger
