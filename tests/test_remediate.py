"""!
@brief Orchestrator tests.
@details Cover the bootstrap path for a missing provider root, idempotent
reruns, and isolation between the flag step and the two sweeps.
"""

from __future__ import annotations

import pathlib
import sys
from typing import List, Tuple

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from csr_sweeper import constants, registry_tools, remediate  # noqa: E402
from csr_sweeper.flag import FlagOutcome  # noqa: E402
from csr_sweeper.registry_memory import MemoryRegistryStore  # noqa: E402

ROOT = constants.PROVIDER_ROOT
FLAG = constants.FLAG_NAME


class _Recorder:
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def _record(self, level: str, message: str, *args: object) -> None:
        self.messages.append((level, message % args if args else message))

    def info(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("info", message, *args)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("warning", message, *args)

    def error(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("error", message, *args)

    @property
    def lines(self) -> List[str]:
        return [text for _, text in self.messages]


def _populated_store() -> MemoryRegistryStore:
    servers = registry_tools.join_key(ROOT, "Servers", "printsrv01")
    return MemoryRegistryStore.from_keys(
        [
            registry_tools.join_key(ROOT, "S-1-5-21-10-20-30-1001", "Printers"),
            registry_tools.join_key(ROOT, "S-1-5-21-10-20-30-1002"),
            registry_tools.join_key(servers, "Printers", "{0001}"),
            registry_tools.join_key(servers, "Monitors", "Client Side Port", "Ne00:"),
        ],
        {ROOT: {FLAG: 0}},
    )


def test_missing_root_is_created_and_nothing_else_happens() -> None:
    store = MemoryRegistryStore()
    recorder = _Recorder()

    summary = remediate.run_remediation(store, root_path=ROOT, logger=recorder)

    assert summary.bootstrapped is True
    assert store.exists(ROOT)
    assert store.list_children(ROOT) == []
    assert store.get_value(ROOT, FLAG) is None
    assert store.history == [("create_container", ROOT)]
    assert summary.flag_outcome is None
    assert summary.identifiers is None and summary.servers is None
    assert recorder.lines[-1].startswith("Remediation complete")


def test_missing_root_dry_run_creates_nothing() -> None:
    store = MemoryRegistryStore()

    summary = remediate.run_remediation(store, root_path=ROOT, dry_run=True, logger=_Recorder())

    assert summary.bootstrapped is True
    assert not store.exists(ROOT)
    assert store.history == []


def test_full_run_then_rerun_is_idempotent() -> None:
    store = _populated_store()

    first = remediate.run_remediation(store, root_path=ROOT, logger=_Recorder())

    assert first.flag_outcome is FlagOutcome.CORRECTED
    assert len(first.deleted) == 4
    assert first.error_count == 0
    assert store.get_value(ROOT, FLAG) == 1
    assert store.list_children(ROOT) == ["Servers"]
    assert store.exists(registry_tools.join_key(ROOT, "Servers", "printsrv01", "Printers"))
    assert store.exists(
        registry_tools.join_key(ROOT, "Servers", "printsrv01", "Monitors", "Client Side Port")
    )

    history_after_first = list(store.history)
    recorder = _Recorder()
    second = remediate.run_remediation(store, root_path=ROOT, logger=recorder)

    assert second.flag_outcome is FlagOutcome.ALREADY_CORRECT
    assert second.deleted == []
    assert store.history == history_after_first
    text = "\n".join(recorder.lines)
    assert "No orphaned user entries found" in text
    assert "No cached printer or port entries found" in text
    assert "already set to 1" in text


def test_flag_failure_does_not_block_sweeps() -> None:
    class _NoWriteStore(MemoryRegistryStore):
        def set_value(self, path, name, value):  # type: ignore[no-untyped-def]
            raise registry_tools.RegistryError("write", f"{path}\\{name}", "Access is denied")

    store = _NoWriteStore()
    for key in (
        registry_tools.join_key(ROOT, "S-1-5-21-1-2-3-4"),
        registry_tools.join_key(ROOT, "Servers", "srv", "Printers", "{X}"),
    ):
        store._ensure(key)
    recorder = _Recorder()

    summary = remediate.run_remediation(store, root_path=ROOT, logger=recorder)

    assert summary.flag_outcome is None
    assert summary.flag_error and "Access is denied" in summary.flag_error
    assert len(summary.deleted) == 2
    assert summary.error_count == 1
    assert recorder.lines[-1].startswith("Remediation complete")


def test_identifier_listing_failure_does_not_block_server_sweep() -> None:
    class _BrokenRootListing(MemoryRegistryStore):
        def list_children(self, path: str) -> List[str]:
            if registry_tools.same_key(path, ROOT):
                raise registry_tools.RegistryError("enumerate", path, "The registry is corrupt")
            return super().list_children(path)

    store = _BrokenRootListing()
    store._ensure(registry_tools.join_key(ROOT, "Servers", "srv", "Printers", "{X}"))
    store._ensure(ROOT)

    summary = remediate.run_remediation(store, root_path=ROOT, logger=_Recorder())

    assert summary.identifiers is None
    assert summary.servers is not None and len(summary.servers.deleted) == 1
    assert [error.operation for error in summary.step_errors] == ["enumerate"]
    assert summary.to_dict()["error_count"] == 1


def test_existence_check_failure_propagates() -> None:
    class _Unreachable(MemoryRegistryStore):
        def exists(self, path: str) -> bool:
            raise registry_tools.RegistryError("open", path, "RPC server unavailable")

    recorder = _Recorder()
    with pytest.raises(registry_tools.RegistryError):
        remediate.run_remediation(_Unreachable(), root_path=ROOT, logger=recorder)

    assert not any(line.startswith("Remediation complete") for line in recorder.lines)


def test_summary_to_dict_shape() -> None:
    short_root = "HKLM\\" + ROOT.split("\\", 1)[1]
    summary = remediate.run_remediation(_populated_store(), root_path=short_root, logger=_Recorder())

    payload = summary.to_dict()

    assert payload["root"] == ROOT
    assert payload["flag"] == {"outcome": "corrected", "error": None}
    assert [sweep["name"] for sweep in payload["sweeps"]] == ["user-identifiers", "servers"]
    assert payload["deleted_count"] == 4
