"""!
@brief Print spooler service control.
@details Optional restart of the ``Spooler`` service after a sweep, through
``sc.exe``. Restarting is off by default: the sweep is meant to run at
startup or shutdown when the spooler picks up the cleaned cache on its own.
"""
from __future__ import annotations

import time

from . import constants, exec_utils, logging_ext


def _parse_service_state(output: str) -> str:
    """!
    @brief Extract the status token from ``sc query`` output.
    @returns Uppercase status token or empty string when not detected.
    """

    for line in output.splitlines():
        stripped = line.strip()
        if stripped.upper().startswith("STATE"):
            _, _, remainder = stripped.partition(":")
            tokens = remainder.strip().split()
            if tokens:
                return tokens[-1].upper()
    return ""


def query_service_status(service: str, *, timeout: int = 30) -> str:
    """!
    @brief Return the current state (``RUNNING``, ``STOPPED``...) or ``UNKNOWN``.
    """

    result = exec_utils.run_command(
        ["sc.exe", "query", service],
        event="service_query",
        timeout=timeout,
        extra={"service": service},
    )
    if not result.ok:
        return "UNKNOWN"
    return _parse_service_state(result.stdout) or "UNKNOWN"


def wait_for_state(
    service: str,
    state: str,
    *,
    attempts: int = 10,
    delay: float = 1.0,
) -> bool:
    """!
    @brief Poll ``service`` until it reports ``state``.
    @returns ``True`` when the state was observed within ``attempts`` polls.
    """

    for attempt in range(1, max(1, attempts) + 1):
        if query_service_status(service) == state:
            return True
        if attempt < attempts:
            time.sleep(delay)
    return False


def restart_service(
    service: str = constants.SPOOLER_SERVICE,
    *,
    timeout: int = 30,
    dry_run: bool = False,
) -> bool:
    """!
    @brief Stop then start ``service``.
    @details Failures are logged and reported through the return value; they
    never raise, since a failed restart does not undo the registry cleanup.
    @returns ``True`` when both the stop and the start succeeded (or were
    skipped in dry-run).
    """

    human_logger = logging_ext.get_human_logger()

    stop = exec_utils.run_command(
        ["sc.exe", "stop", service],
        event="service_stop",
        timeout=timeout,
        dry_run=dry_run,
        human_message=f"Stopping service {service}",
        extra={"service": service},
    )
    if stop.skipped:
        exec_utils.run_command(
            ["sc.exe", "start", service],
            event="service_start",
            dry_run=True,
            human_message=f"Starting service {service}",
            extra={"service": service},
        )
        return True
    if stop.returncode == 127:
        human_logger.warning("sc.exe unavailable; cannot restart %s", service)
        return False
    if not stop.ok:
        human_logger.warning("Stopping %s returned %s; attempting start anyway", service, stop.returncode)
    elif not wait_for_state(service, "STOPPED"):
        human_logger.warning("%s did not report STOPPED in time; attempting start anyway", service)

    start = exec_utils.run_command(
        ["sc.exe", "start", service],
        event="service_start",
        timeout=timeout,
        human_message=f"Starting service {service}",
        extra={"service": service},
    )
    if not start.ok:
        human_logger.error("Failed to start %s (exit code %s)", service, start.returncode)
        return False

    human_logger.info("Restarted service %s", service)
    return stop.ok


__all__ = ["query_service_status", "restart_service", "wait_for_state"]
