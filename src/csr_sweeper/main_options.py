"""!
@file main_options.py
@brief Run option collection for CSR Sweeper.
@details Handles JSON configuration file loading and merges it with parsed
CLI arguments. Precedence, highest first: CLI arguments, configuration file
values, built-in defaults.
"""

from __future__ import annotations

import json
import os
import pathlib
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import constants, registry_tools

if TYPE_CHECKING:
    import argparse

__all__ = [
    "CONFIG_KEYS",
    "RunOptions",
    "collect_run_options",
    "default_log_directory",
    "load_config_file",
]

CONFIG_KEYS = frozenset(
    {
        "root",
        "flag-name",
        "dry-run",
        "restart-spooler",
        "logdir",
        "report",
        "json",
        "quiet",
    }
)
"""!
@brief Keys accepted in the JSON configuration object.
"""

USAGE_ERROR = 2


@dataclass(frozen=True)
class RunOptions:
    """!
    @brief Fully resolved options for one run.
    """

    root: str = constants.PROVIDER_ROOT
    flag_name: str = constants.FLAG_NAME
    dry_run: bool = False
    restart_spooler: bool = False
    logdir: pathlib.Path | None = None
    report: pathlib.Path | None = None
    json: bool = False
    quiet: bool = False


def _fail(message: str) -> SystemExit:
    print(f"Error: {message}", file=sys.stderr)
    return SystemExit(USAGE_ERROR)


def default_log_directory() -> pathlib.Path:
    """!
    @brief ``%ProgramData%\\CsrSweeper\\logs`` on Windows, a user state dir elsewhere.
    """

    if os.name == "nt":
        base = os.environ.get("ProgramData") or os.environ.get("PROGRAMDATA") or r"C:\ProgramData"
        return pathlib.Path(base).joinpath(*constants.DEFAULT_LOG_SUBDIR)
    return pathlib.Path("~/.local/state/csr-sweeper/logs").expanduser()


def load_config_file(config_path: str | None) -> dict[str, object]:
    """!
    @brief Load and validate a JSON configuration file.
    @param config_path Path to the JSON file, or ``None`` to skip.
    @returns Dictionary of configuration values, empty when no file was given.
    @raises SystemExit With code 2 when the file is missing, unreadable, not a
    JSON object, or contains unknown keys.
    """

    if not config_path:
        return {}

    path = pathlib.Path(config_path).expanduser().resolve()
    if not path.exists():
        raise _fail(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise _fail(f"Invalid JSON in configuration file: {path}\n{e}") from e
    except OSError as e:
        raise _fail(f"Cannot read configuration file: {path}\n{e}") from e

    if not isinstance(config, dict):
        raise _fail(f"Configuration file must contain a JSON object: {path}")
    unknown = sorted(set(config) - CONFIG_KEYS)
    if unknown:
        raise _fail(f"Unknown configuration keys in {path}: {', '.join(unknown)}")
    return config


def collect_run_options(args: argparse.Namespace) -> RunOptions:
    """!
    @brief Translate parsed CLI arguments (plus ``--config``) into :class:`RunOptions`.
    @raises SystemExit With code 2 when the provider root is not a valid key path.
    """

    config = load_config_file(getattr(args, "config", None))

    def _get(attr: str, default: object = None, *, is_bool: bool = False) -> object:
        cli_val = getattr(args, attr, None)
        cfg_key = attr.replace("_", "-")
        if is_bool:
            if cli_val:
                return True
            return bool(config.get(cfg_key, default))
        if cli_val is not None:
            return cli_val
        return config.get(cfg_key, default)

    root = str(_get("root", constants.PROVIDER_ROOT))
    try:
        root = registry_tools.normalize_key(root)
    except ValueError as exc:
        raise _fail(f"Invalid provider root {root!r}: {exc}") from exc
    if len(registry_tools.split_key(root)) < 2:
        raise _fail(f"Provider root must be below a hive: {root!r}")

    flag_name = str(_get("flag_name", constants.FLAG_NAME)).strip()
    if not flag_name:
        raise _fail("Flag name must not be empty")

    logdir = _get("logdir")
    report = _get("report")
    return RunOptions(
        root=root,
        flag_name=flag_name,
        dry_run=bool(_get("dry_run", False, is_bool=True)),
        restart_spooler=bool(_get("restart_spooler", False, is_bool=True)),
        logdir=pathlib.Path(str(logdir)).expanduser() if logdir else None,
        report=pathlib.Path(str(report)).expanduser() if report else None,
        json=bool(_get("json", False, is_bool=True)),
        quiet=bool(_get("quiet", False, is_bool=True)),
    )
