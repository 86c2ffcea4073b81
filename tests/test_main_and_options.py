"""Integration tests for the CLI entry point and option collection."""
from __future__ import annotations

import json
import logging
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from csr_sweeper import constants, logging_ext, main, main_options, registry_tools  # noqa: E402
from csr_sweeper.registry_memory import MemoryRegistryStore  # noqa: E402

ROOT = constants.PROVIDER_ROOT


@pytest.fixture(autouse=True)
def _reset_logging_state() -> None:
    yield
    for name in (logging_ext.HUMAN_LOGGER_NAME, logging_ext.MACHINE_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for flt in list(logger.filters):
            logger.removeFilter(flt)
        logger.propagate = True


@pytest.fixture
def memory_store(monkeypatch) -> MemoryRegistryStore:
    store = MemoryRegistryStore.from_keys(
        [
            registry_tools.join_key(ROOT, "S-1-5-21-7-7-7-1001"),
            registry_tools.join_key(ROOT, "Servers", "srv", "Printers", "{P}"),
        ]
    )
    monkeypatch.setattr(main, "_create_store", lambda: store)
    monkeypatch.setattr(main, "_current_process_is_admin", lambda: True)
    return store


def test_main_runs_remediation_and_writes_report(memory_store, tmp_path, capsys) -> None:
    report = tmp_path / "out" / "report.json"

    exit_code = main.main(["--logdir", str(tmp_path / "logs"), "--report", str(report)])

    assert exit_code == main.EXIT_OK
    assert memory_store.get_value(ROOT, constants.FLAG_NAME) == 1
    assert memory_store.list_children(ROOT) == ["Servers"]

    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["summary"]["deleted_count"] == 2
    assert payload["summary"]["flag"]["outcome"] == "created"

    human_log = (tmp_path / "logs" / "human.log").read_text(encoding="utf-8")
    assert "Deleted cached entries for S-1-5-21-7-7-7-1001" in human_log
    assert "Remediation complete" in human_log
    assert "Remediation complete" in capsys.readouterr().err


def test_main_quiet_keeps_console_silent(memory_store, tmp_path, capsys) -> None:
    assert main.main(["--quiet", "--logdir", str(tmp_path)]) == main.EXIT_OK
    assert capsys.readouterr().err == ""


def test_main_dry_run_changes_nothing(memory_store, tmp_path) -> None:
    exit_code = main.main(["--dry-run", "--logdir", str(tmp_path), "--quiet"])

    assert exit_code == main.EXIT_OK
    assert memory_store.history == []
    assert memory_store.exists(registry_tools.join_key(ROOT, "S-1-5-21-7-7-7-1001"))


def test_main_exits_nonzero_when_store_unreachable(monkeypatch, tmp_path) -> None:
    class _Unreachable(MemoryRegistryStore):
        def exists(self, path: str) -> bool:
            raise registry_tools.RegistryError("open", path, "Access is denied")

    monkeypatch.setattr(main, "_create_store", _Unreachable)
    monkeypatch.setattr(main, "_current_process_is_admin", lambda: False)

    exit_code = main.main(["--logdir", str(tmp_path), "--quiet"])

    assert exit_code == main.EXIT_STORE_UNAVAILABLE
    human_log = (tmp_path / "human.log").read_text(encoding="utf-8")
    assert "Registry is inaccessible" in human_log
    assert "Remediation complete" not in human_log


def test_main_restart_spooler_is_opt_in(memory_store, monkeypatch, tmp_path) -> None:
    calls: list[bool] = []
    monkeypatch.setattr(main.tasks_services, "restart_service", lambda dry_run=False: calls.append(dry_run))

    main.main(["--logdir", str(tmp_path), "--quiet"])
    assert calls == []

    main.main(["--logdir", str(tmp_path), "--quiet", "--restart-spooler"])
    assert calls == [False]


def test_collect_run_options_precedence(tmp_path) -> None:
    config = tmp_path / "config.json"
    config.write_text(
        json.dumps({"root": "HKLM\\Software\\Contoso\\CSR", "dry-run": True, "flag-name": "FromConfig"}),
        encoding="utf-8",
    )
    args = main.build_arg_parser().parse_args(["--config", str(config), "--flag-name", "FromCli"])

    options = main_options.collect_run_options(args)

    assert options.root == "HKEY_LOCAL_MACHINE\\Software\\Contoso\\CSR"
    assert options.flag_name == "FromCli"
    assert options.dry_run is True
    assert options.restart_spooler is False


def test_collect_run_options_defaults() -> None:
    options = main_options.collect_run_options(main.build_arg_parser().parse_args([]))

    assert options.root == ROOT
    assert options.flag_name == constants.FLAG_NAME
    assert options.logdir is None and options.report is None


@pytest.mark.parametrize(
    "content",
    ["not json", "[1, 2]", json.dumps({"unknown-key": 1}), json.dumps({"root": "HKLM"})],
)
def test_invalid_configuration_exits_with_usage_error(tmp_path, content: str) -> None:
    config = tmp_path / "config.json"
    config.write_text(content, encoding="utf-8")
    args = main.build_arg_parser().parse_args(["--config", str(config)])

    with pytest.raises(SystemExit) as excinfo:
        main_options.collect_run_options(args)
    assert excinfo.value.code == 2


def test_missing_configuration_file_exits(tmp_path) -> None:
    args = main.build_arg_parser().parse_args(["--config", str(tmp_path / "absent.json")])

    with pytest.raises(SystemExit) as excinfo:
        main_options.collect_run_options(args)
    assert excinfo.value.code == 2


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main.build_arg_parser().parse_args(["--version"])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip()
