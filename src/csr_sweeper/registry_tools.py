"""!
@brief Registry access helpers.
@details Defines the small store capability the remediation core depends on
(:class:`RegistryStore`), the error type raised when the registry refuses an
operation, key path helpers, and the ``winreg`` backed implementation used on
real hosts. The core never imports ``winreg`` directly, so it can be driven
by :class:`csr_sweeper.registry_memory.MemoryRegistryStore` in tests.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List, Protocol, Tuple

from . import constants

try:  # pragma: no cover - exercised through mocks on non-Windows platforms.
    import winreg
except ImportError:  # pragma: no cover - handled gracefully during tests.
    winreg = None  # type: ignore[assignment]


class RegistryError(RuntimeError):
    """!
    @brief Raised when the registry refuses or cannot perform an operation.
    @details Absence of a key or value is never reported through this type;
    callers treat a missing key as an ordinary state. ``operation`` and
    ``path`` identify what failed, ``cause`` carries the underlying OS error.
    """

    def __init__(self, operation: str, path: str, cause: BaseException | str | None = None) -> None:
        self.operation = operation
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"registry {operation} failed for {path}{detail}")


class UnsafeDeleteError(RegistryError):
    """!
    @brief Raised when a delete target fails the provider root guard.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__("delete", path, reason)
        self.reason = reason


class RegistryStore(Protocol):
    """!
    @brief Capability set required by the flag normalizer and the sweeper.
    @details Paths are full key paths including the hive, separated by
    backslashes.
    """

    def exists(self, path: str) -> bool: ...

    def list_children(self, path: str) -> List[str]: ...

    def get_value(self, path: str, name: str) -> Any | None: ...

    def set_value(self, path: str, name: str, value: Any) -> None: ...

    def delete_subtree(self, path: str) -> None: ...

    def create_container(self, path: str) -> None: ...


# ---------------------------------------------------------------------------
# Key path helpers
# ---------------------------------------------------------------------------


def split_key(path: str) -> List[str]:
    """!
    @brief Split ``path`` into segments with the hive in canonical long form.
    @details Only ``\\`` separates keys; ``/`` is an ordinary character in
    registry key names (``Content Type\\text/html``).
    @raises ValueError When the path is empty or the hive is unknown.
    """

    segments = [part for part in str(path).split("\\") if part]
    if not segments:
        raise ValueError("registry path is empty")
    hive = constants.HIVE_ALIASES.get(segments[0].upper())
    if hive is None:
        raise ValueError(f"unknown registry hive in {path!r}")
    segments[0] = hive
    return segments


def normalize_key(path: str) -> str:
    """!
    @brief Collapse repeated separators and canonicalise the hive prefix.
    """

    return "\\".join(split_key(path))


def join_key(*parts: str) -> str:
    """!
    @brief Join key segments and normalise the result.
    """

    return normalize_key("\\".join(str(part) for part in parts))


def same_key(left: str, right: str) -> bool:
    """!
    @brief Compare two key paths the way the registry does (case-insensitive).
    """

    return normalize_key(left).casefold() == normalize_key(right).casefold()


def split_hive(path: str) -> Tuple[str, str]:
    """!
    @brief Return ``(hive_name, subkey)`` for ``path``.
    """

    segments = split_key(path)
    return segments[0], "\\".join(segments[1:])


def leaf_name(path: str) -> str:
    return split_key(path)[-1]


# ---------------------------------------------------------------------------
# winreg backed store
# ---------------------------------------------------------------------------


def _ensure_winreg(operation: str, path: str) -> None:
    if winreg is None:  # pragma: no cover - simplifies non-Windows test runs.
        raise RegistryError(operation, path, "Windows registry APIs are unavailable on this platform")


class WinRegistryStore:
    """!
    @brief :class:`RegistryStore` implementation over the ``winreg`` module.
    @details ``view`` selects the registry view: ``"native"`` forces the
    64-bit view so a 32-bit interpreter on 64-bit Windows still reaches the
    key the print spooler reads; ``None`` leaves redirection untouched.
    """

    def __init__(self, *, view: str | None = "native") -> None:
        self.view = view

    def _view_flag(self) -> int:
        if winreg is None or self.view is None:
            return 0
        if self.view == "native":
            return winreg.KEY_WOW64_64KEY
        if self.view == "32bit":
            return winreg.KEY_WOW64_32KEY
        raise ValueError(f"unsupported registry view {self.view!r}")

    def _resolve(self, operation: str, path: str) -> Tuple[int, str]:
        _ensure_winreg(operation, path)
        hive_name, subkey = split_hive(path)
        return constants.REGISTRY_ROOTS[hive_name], subkey

    @contextmanager
    def _open(self, operation: str, path: str, access: int) -> Iterator[Any]:
        hive, subkey = self._resolve(operation, path)
        with self._open_resolved(hive, subkey, access) as handle:
            yield handle

    @contextmanager
    def _open_resolved(self, hive: int, subkey: str, access: int) -> Iterator[Any]:
        handle = winreg.OpenKey(hive, subkey, 0, access | self._view_flag())  # type: ignore[union-attr]
        try:
            yield handle
        finally:
            winreg.CloseKey(handle)  # type: ignore[union-attr]

    def exists(self, path: str) -> bool:
        try:
            with self._open("open", path, winreg.KEY_READ if winreg else 0):
                return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise RegistryError("open", path, exc) from exc

    def list_children(self, path: str) -> List[str]:
        hive, subkey = self._resolve("enumerate", path)
        return self._subkeys(hive, subkey, path)

    def get_value(self, path: str, name: str) -> Any | None:
        try:
            with self._open("read", path, winreg.KEY_READ if winreg else 0) as handle:
                value, _ = winreg.QueryValueEx(handle, name)  # type: ignore[union-attr]
                return value
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise RegistryError("read", f"{path}\\{name}", exc) from exc

    def set_value(self, path: str, name: str, value: Any) -> None:
        hive, subkey = self._resolve("write", path)
        value_type = winreg.REG_DWORD if isinstance(value, int) else winreg.REG_SZ  # type: ignore[union-attr]
        try:
            handle = winreg.CreateKeyEx(  # type: ignore[union-attr]
                hive, subkey, 0, winreg.KEY_WRITE | self._view_flag()  # type: ignore[union-attr]
            )
            try:
                winreg.SetValueEx(handle, name, 0, value_type, value)  # type: ignore[union-attr]
            finally:
                winreg.CloseKey(handle)  # type: ignore[union-attr]
        except OSError as exc:
            raise RegistryError("write", f"{path}\\{name}", exc) from exc

    def create_container(self, path: str) -> None:
        hive, subkey = self._resolve("create", path)
        try:
            handle = winreg.CreateKeyEx(  # type: ignore[union-attr]
                hive, subkey, 0, winreg.KEY_WRITE | self._view_flag()  # type: ignore[union-attr]
            )
            winreg.CloseKey(handle)  # type: ignore[union-attr]
        except OSError as exc:
            raise RegistryError("create", path, exc) from exc

    def delete_subtree(self, path: str) -> None:
        """!
        @brief Delete ``path`` and every key beneath it, deepest first.
        @details ``DeleteKeyEx`` refuses keys that still have subkeys, so the
        children are removed before their parent. A key that vanishes midway
        is treated as already deleted.
        """

        hive, subkey = self._resolve("delete", path)
        if not subkey:
            raise UnsafeDeleteError(path, "refusing to delete a registry hive")
        self._delete_tree(hive, subkey, path)

    def _subkeys(self, hive: int, subkey: str, path: str) -> List[str]:
        try:
            with self._open_resolved(hive, subkey, winreg.KEY_READ) as handle:  # type: ignore[union-attr]
                subkey_count, _, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
                return [winreg.EnumKey(handle, index) for index in range(subkey_count)]  # type: ignore[union-attr]
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise RegistryError("enumerate", path, exc) from exc

    def _delete_tree(self, hive: int, subkey: str, path: str) -> None:
        # Enumerated names may contain "/"; join them verbatim.
        for child in self._subkeys(hive, subkey, path):
            self._delete_tree(hive, f"{subkey}\\{child}", f"{path}\\{child}")
        try:
            winreg.DeleteKeyEx(hive, subkey, self._view_flag(), 0)  # type: ignore[union-attr]
        except FileNotFoundError:
            return
        except OSError as exc:
            raise RegistryError("delete", path, exc) from exc


__all__ = [
    "RegistryError",
    "RegistryStore",
    "UnsafeDeleteError",
    "WinRegistryStore",
    "join_key",
    "leaf_name",
    "normalize_key",
    "same_key",
    "split_hive",
    "split_key",
]
