"""!
@brief Subprocess execution helper.
@details Every external command (currently only ``sc.exe`` for the optional
spooler restart) goes through :func:`run_command` so it inherits the same
``*_plan``/``*_result`` event logging, dry-run handling, and a child
environment stripped of Python virtual environment variables.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import logging_ext

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "CONDA_PREFIX",
    "CONDA_DEFAULT_ENV",
    "__PYVENV_LAUNCHER__",
}


@dataclass
class CommandResult:
    """!
    @brief Outcome information from :func:`run_command`.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    skipped: bool = False
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.error and not self.timed_out


def sanitize_environment(base_env: Mapping[str, str] | None = None) -> MutableMapping[str, str]:
    """!
    @brief Copy ``base_env`` (default :data:`os.environ`) without virtualenv artefacts.
    """

    source = os.environ if base_env is None else base_env
    environment = {str(k): str(v) for k, v in source.items() if v is not None}
    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)
    return environment


def run_command(
    command: Sequence[str],
    *,
    event: str,
    timeout: int | float | None = None,
    dry_run: bool = False,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
) -> CommandResult:
    """!
    @brief Execute ``command`` with consistent logging.
    @details Emits ``<event>_plan`` before and ``<event>_result`` (or
    ``_missing``/``_timeout``/``_error``) after execution on the machine
    logger. In dry-run mode nothing is spawned and the result is marked
    ``skipped``. A missing executable yields return code ``127``.
    @param command Command arguments.
    @param event Base name for structured log events.
    @param timeout Optional timeout in seconds.
    @param dry_run When ``True`` the command is only logged.
    @param human_message Optional line for the human log.
    @param extra Additional metadata merged into the machine events.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    call = {"command": command_list, "timeout": timeout, **dict(extra or {})}
    machine_logger.info(
        f"{event}_plan",
        extra=logging_ext.build_event_extra(f"{event}_plan", call=call, dry_run=dry_run),
    )

    if dry_run:
        human_logger.info("%s [dry-run]", human_message or f"Would execute {' '.join(command_list)}")
        return CommandResult(command_list, 0, "", "", 0.0, skipped=True)

    if human_message:
        human_logger.info(human_message)

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            env=sanitize_environment(),
        )
    except FileNotFoundError as exc:
        human_logger.error("Command not found: %s", command_list[0])
        result = CommandResult(command_list, 127, "", "", time.monotonic() - start, error=str(exc))
        suffix = "missing"
    except subprocess.TimeoutExpired as exc:
        human_logger.error("Command timed out after %ss: %s", timeout, command_list[0])
        result = CommandResult(
            command_list,
            1,
            str(exc.stdout or ""),
            str(exc.stderr or ""),
            time.monotonic() - start,
            timed_out=True,
            error="timeout",
        )
        suffix = "timeout"
    except OSError as exc:
        human_logger.error("Failed to execute %s: %s", command_list[0], exc)
        result = CommandResult(command_list, 1, "", "", time.monotonic() - start, error=str(exc))
        suffix = "error"
    else:
        result = CommandResult(
            command_list,
            completed.returncode,
            completed.stdout or "",
            completed.stderr or "",
            time.monotonic() - start,
        )
        suffix = "result"
        if completed.returncode != 0:
            human_logger.warning("Command %s exited with %s", command_list[0], completed.returncode)

    log = machine_logger.info if suffix == "result" else machine_logger.error
    log(
        f"{event}_{suffix}",
        extra=logging_ext.build_event_extra(
            f"{event}_{suffix}",
            call=call,
            result={
                "rc": result.returncode,
                "duration_ms": round(result.duration * 1000, 3),
                "stdout": result.stdout,
                "stderr": result.stderr,
                "error": result.error,
                "timed_out": result.timed_out,
            },
        ),
    )
    return result


__all__ = ["CommandResult", "run_command", "sanitize_environment"]
