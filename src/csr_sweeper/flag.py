"""!
@brief Provider logoff cleanup flag normalizer.
@details Ensures ``RemovePrintersAtLogoff`` is present and enabled beneath
the provider root so the print provider cleans up after each clean logoff on
its own.
"""
from __future__ import annotations

import enum
import logging

from . import constants, logging_ext
from .registry_tools import RegistryStore


class FlagOutcome(enum.Enum):
    """!
    @brief Result of :func:`ensure_flag_enabled`.
    """

    CREATED = "created"
    CORRECTED = "corrected"
    ALREADY_CORRECT = "already correct"


def _is_enabled(value: object) -> bool:
    # REG_DWORD comes back as int; tolerate a REG_SZ "1" written by hand.
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value == constants.FLAG_ENABLED
    if isinstance(value, str):
        return value.strip() == str(constants.FLAG_ENABLED)
    return False


def ensure_flag_enabled(
    store: RegistryStore,
    root_path: str,
    flag_name: str = constants.FLAG_NAME,
    *,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> FlagOutcome:
    """!
    @brief Make sure ``flag_name`` under ``root_path`` is set to ``1``.
    @details A missing value is created, any other value is overwritten with
    a ``REG_DWORD`` ``1``. In dry-run mode the outcome is reported but nothing
    is written.
    @returns The :class:`FlagOutcome` describing what was done.
    @raises RegistryError Propagated from the store.
    """

    human_logger = logger or logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    current = store.get_value(root_path, flag_name)
    if current is None:
        outcome = FlagOutcome.CREATED
    elif _is_enabled(current):
        outcome = FlagOutcome.ALREADY_CORRECT
    else:
        outcome = FlagOutcome.CORRECTED

    if outcome is not FlagOutcome.ALREADY_CORRECT and not dry_run:
        store.set_value(root_path, flag_name, constants.FLAG_ENABLED)

    suffix = " [dry-run]" if dry_run and outcome is not FlagOutcome.ALREADY_CORRECT else ""
    if outcome is FlagOutcome.CREATED:
        human_logger.info("%s was missing; set to %d%s", flag_name, constants.FLAG_ENABLED, suffix)
    elif outcome is FlagOutcome.CORRECTED:
        human_logger.info(
            "%s was %r; corrected to %d%s", flag_name, current, constants.FLAG_ENABLED, suffix
        )
    else:
        human_logger.info("%s already set to %d", flag_name, constants.FLAG_ENABLED)

    machine_logger.info(
        "flag_normalized",
        extra=logging_ext.build_event_extra(
            "flag_normalized",
            flag=flag_name,
            previous=current,
            outcome=outcome.value,
            dry_run=dry_run,
        ),
    )
    return outcome


__all__ = ["FlagOutcome", "ensure_flag_enabled"]
