"""!
@brief Remediation orchestrator.
@details Sequences the flag normalizer and both orphan sweeps against a
single provider root. Only the initial existence check may end the run
early; everything after it is recovered, logged, and summarised so the
"complete" line is always written.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from . import constants, logging_ext, registry_tools, sweeper
from .flag import FlagOutcome, ensure_flag_enabled
from .registry_tools import RegistryError, RegistryStore
from .sweeper import SweepError, SweepReport


@dataclass
class RemediationSummary:
    """!
    @brief Aggregated result of :func:`run_remediation`.
    """

    root_path: str
    dry_run: bool = False
    bootstrapped: bool = False
    flag_outcome: FlagOutcome | None = None
    flag_error: str | None = None
    identifiers: SweepReport | None = None
    servers: SweepReport | None = None
    step_errors: List[SweepError] = field(default_factory=list)

    @property
    def deleted(self) -> List[str]:
        return [key for report in self._reports() for key in report.deleted]

    @property
    def error_count(self) -> int:
        count = len(self.step_errors) + (1 if self.flag_error else 0)
        return count + sum(len(report.errors) for report in self._reports())

    def _reports(self) -> List[SweepReport]:
        return [report for report in (self.identifiers, self.servers) if report is not None]

    def to_dict(self) -> Dict[str, object]:
        return {
            "root": self.root_path,
            "dry_run": self.dry_run,
            "bootstrapped": self.bootstrapped,
            "flag": {
                "outcome": self.flag_outcome.value if self.flag_outcome else None,
                "error": self.flag_error,
            },
            "sweeps": [report.to_dict() for report in self._reports()],
            "step_errors": [error.to_dict() for error in self.step_errors],
            "deleted_count": len(self.deleted),
            "error_count": self.error_count,
        }


def run_remediation(
    store: RegistryStore,
    *,
    root_path: str = constants.PROVIDER_ROOT,
    flag_name: str = constants.FLAG_NAME,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> RemediationSummary:
    """!
    @brief Run the full remediation against ``root_path``.
    @details When the provider root is missing it is created as an empty key
    and nothing else happens this run. Otherwise the flag is normalised and
    both sweeps run, each isolated from the others' failures.
    @raises RegistryError When the provider root cannot even be checked for
    existence.
    """

    human_logger = logger or logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    root_path = registry_tools.normalize_key(root_path)
    summary = RemediationSummary(root_path=root_path, dry_run=dry_run)

    human_logger.info("Provider root: %s", root_path)
    if not store.exists(root_path):
        summary.bootstrapped = True
        if dry_run:
            human_logger.info("Provider root is missing; would create it [dry-run]")
        else:
            try:
                store.create_container(root_path)
                human_logger.info("Provider root was missing; created it, nothing to remediate")
            except RegistryError as exc:
                summary.step_errors.append(SweepError(root_path, exc.operation, str(exc)))
                human_logger.error("Could not create provider root: %s", exc)
        _finish(summary, human_logger, machine_logger)
        return summary

    try:
        summary.flag_outcome = ensure_flag_enabled(
            store, root_path, flag_name, dry_run=dry_run, logger=human_logger
        )
    except RegistryError as exc:
        summary.flag_error = str(exc)
        human_logger.error("Could not normalise %s: %s", flag_name, exc)

    try:
        summary.identifiers = sweeper.sweep_user_identifiers(
            store, root_path, dry_run=dry_run, logger=human_logger
        )
    except RegistryError as exc:
        summary.step_errors.append(SweepError(root_path, exc.operation, str(exc)))
        human_logger.error("User entry sweep aborted: %s", exc)

    try:
        summary.servers = sweeper.sweep_servers(
            store, root_path, dry_run=dry_run, logger=human_logger
        )
    except RegistryError as exc:
        summary.step_errors.append(
            SweepError(registry_tools.join_key(root_path, constants.SERVERS_KEY), exc.operation, str(exc))
        )
        human_logger.error("Server sweep aborted: %s", exc)

    _finish(summary, human_logger, machine_logger)
    return summary


def _finish(
    summary: RemediationSummary,
    human_logger: logging.Logger,
    machine_logger: logging.Logger,
) -> None:
    human_logger.info(
        "Remediation complete: %d key(s) deleted, %d error(s)%s",
        len(summary.deleted),
        summary.error_count,
        " [dry-run]" if summary.dry_run else "",
    )
    machine_logger.info(
        "remediation_complete",
        extra=logging_ext.build_event_extra("remediation_complete", summary=summary.to_dict()),
    )


__all__ = ["RemediationSummary", "run_remediation"]
