"""!
@brief Command-line entry point for CSR Sweeper.
@details Parses options, bootstraps logging, warns about the runtime
environment, and hands a ``winreg`` backed store to
:func:`csr_sweeper.remediate.run_remediation`. Designed for unattended
execution from a startup/shutdown script or scheduled task: no prompts, no
required arguments, exit code ``0`` whenever the run reached its end.
"""
from __future__ import annotations

import argparse
import ctypes
import json
import logging
import os
import pathlib
import platform
import sys
from typing import Iterable, Optional

from . import (
    logging_ext,
    main_options,
    registry_tools,
    remediate,
    safety,
    tasks_services,
    version,
)

EXIT_OK = 0
EXIT_STORE_UNAVAILABLE = 1


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the top-level argument parser.
    """

    parser = argparse.ArgumentParser(
        prog="csr-sweeper",
        description=(
            "Enable RemovePrintersAtLogoff and remove orphaned per-user and per-server "
            "cache entries under the Client Side Rendering Print Provider key."
        ),
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )
    parser.add_argument("--config", metavar="FILE", help="JSON file with default option values.")
    parser.add_argument("--root", metavar="KEY", help="Override the provider root key.")
    parser.add_argument("--flag-name", metavar="NAME", help="Override the logoff cleanup value name.")
    parser.add_argument("--dry-run", action="store_true", help="Log intended changes without modifying the registry.")
    parser.add_argument(
        "--restart-spooler",
        action="store_true",
        help="Restart the Spooler service after sweeping (off by default).",
    )
    parser.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log output.")
    parser.add_argument("--report", metavar="OUT", help="Write the run summary to a JSON file.")
    parser.add_argument("--json", action="store_true", help="Mirror structured events to stdout.")
    parser.add_argument("--quiet", action="store_true", help="Do not mirror the human log to the console.")
    return parser


def _current_process_is_admin() -> bool:
    if os.name != "nt":
        return False
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False


def _create_store() -> registry_tools.RegistryStore:
    return registry_tools.WinRegistryStore()


def _resolve_log_directory(candidate: Optional[pathlib.Path]) -> pathlib.Path:
    directory = candidate if candidate is not None else main_options.default_log_directory()
    expanded = directory.expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded


def _write_report(path: pathlib.Path, summary: remediate.RemediationSummary, human_log: logging.Logger) -> None:
    payload = {
        "version": version.build_info(),
        "run": logging_ext.get_run_metadata(),
        "summary": summary.to_dict(),
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    except OSError as exc:
        human_log.error("Could not write report to %s: %s", path, exc)
        return
    human_log.info("Report written to %s", path)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point for the ``csr-sweeper`` console script.
    @returns Process exit code.
    """

    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    options = main_options.collect_run_options(args)

    logdir = _resolve_log_directory(options.logdir)
    try:
        human_log, machine_log = logging_ext.setup_logging(
            logdir,
            json_to_stdout=options.json,
            console=not options.quiet,
        )
    except OSError as exc:
        print(f"Error: cannot initialise logging in {logdir}: {exc}", file=sys.stderr)
        return EXIT_STORE_UNAVAILABLE

    machine_log.info(
        "startup",
        extra=logging_ext.build_event_extra(
            "startup",
            options={
                "root": options.root,
                "flag_name": options.flag_name,
                "dry_run": options.dry_run,
                "restart_spooler": options.restart_spooler,
            },
        ),
    )

    for warning in safety.runtime_warnings(
        is_admin=_current_process_is_admin(),
        os_system=platform.system(),
        dry_run=options.dry_run,
    ):
        human_log.warning(warning)

    try:
        summary = remediate.run_remediation(
            _create_store(),
            root_path=options.root,
            flag_name=options.flag_name,
            dry_run=options.dry_run,
            logger=human_log,
        )
    except registry_tools.RegistryError as exc:
        human_log.error("Registry is inaccessible, nothing was changed: %s", exc)
        machine_log.error(
            "store_unavailable",
            extra=logging_ext.build_event_extra("store_unavailable", error=str(exc), path=exc.path),
        )
        return EXIT_STORE_UNAVAILABLE

    if options.restart_spooler:
        tasks_services.restart_service(dry_run=options.dry_run)

    if options.report is not None:
        _write_report(options.report, summary, human_log)

    return EXIT_OK


__all__ = ["EXIT_OK", "EXIT_STORE_UNAVAILABLE", "build_arg_parser", "main"]
