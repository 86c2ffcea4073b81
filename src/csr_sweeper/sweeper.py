"""!
@brief Orphan sweeper for the Client Side Rendering Print Provider cache.
@details Two independent passes run over the provider root:

- the identifier sweep deletes every direct child named after a domain user
  SID, sub-tree and all;
- the servers sweep empties ``Servers\\<server>\\Printers`` and
  ``Servers\\<server>\\Monitors\\Client Side Port`` for every cached server
  while keeping the container keys the spooler expects.

Each delete target is rebuilt from the provider root and the enumerated name
and checked by :func:`csr_sweeper.safety.guard_delete_target` right before
the call. Failures are recorded per entry and never stop the siblings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from . import constants, logging_ext, registry_tools, safety
from .registry_tools import RegistryError, RegistryStore


def is_user_sid(name: object) -> bool:
    """!
    @brief Return ``True`` when ``name`` is exactly a domain user SID.
    @details Matching is case-sensitive and anchored at both ends, so
    ``S-1-5-21-1-2-3`` (short), ``XS-1-5-21-1-2-3-4`` (prefixed) and
    ``S-1-5-21-1-2-3-4-x`` (suffixed) are all rejected.
    """

    return isinstance(name, str) and constants.USER_SID_PATTERN.fullmatch(name) is not None


@dataclass
class SweepError:
    """!
    @brief A recovered failure for one entry of a sweep.
    """

    target: str
    operation: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"target": self.target, "operation": self.operation, "message": self.message}


@dataclass
class SweepReport:
    """!
    @brief Outcome of one sweep pass.
    @details ``deleted`` holds keys actually removed, ``planned`` the keys a
    dry run would have removed, ``skipped`` names that were ignored (vanished
    or unsafe), and ``errors`` every recovered failure.
    """

    name: str
    deleted: List[str] = field(default_factory=list)
    planned: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[SweepError] = field(default_factory=list)

    @property
    def found_orphans(self) -> bool:
        return bool(self.deleted or self.planned or self.errors)

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "deleted": list(self.deleted),
            "planned": list(self.planned),
            "skipped": list(self.skipped),
            "errors": [error.to_dict() for error in self.errors],
        }


def _record_error(
    report: SweepReport,
    target: str,
    exc: RegistryError,
    logger: logging.Logger,
) -> None:
    report.errors.append(SweepError(target=target, operation=exc.operation, message=str(exc)))
    logger.error("Failed to clean %s: %s", target, exc)
    logging_ext.get_machine_logger().error(
        "sweep_error",
        extra=logging_ext.build_event_extra(
            "sweep_error",
            sweep=report.name,
            target=target,
            operation=exc.operation,
            error=str(exc),
        ),
    )


def _delete_confirmed(
    store: RegistryStore,
    target: str,
    report: SweepReport,
    *,
    dry_run: bool,
    logger: logging.Logger,
) -> bool:
    """!
    @brief Delete a guarded target after re-confirming it still exists.
    @returns ``True`` when the key was deleted (or would be, in dry-run).
    """

    if not store.exists(target):
        logger.info("%s disappeared before it could be deleted; skipping", target)
        report.skipped.append(target)
        return False
    if dry_run:
        logger.info("Would delete %s [dry-run]", target)
        report.planned.append(target)
        return True

    store.delete_subtree(target)
    report.deleted.append(target)
    logging_ext.get_machine_logger().info(
        "registry_key_deleted",
        extra=logging_ext.build_event_extra("registry_key_deleted", sweep=report.name, key=target),
    )
    return True


def sweep_user_identifiers(
    store: RegistryStore,
    root_path: str,
    *,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> SweepReport:
    """!
    @brief Delete every per-user SID sub-tree directly under ``root_path``.
    @details The caller has already confirmed ``root_path`` exists. Listing
    failures propagate; a failure on one identifier is logged and recorded
    and the next identifier is still processed.
    """

    human_logger = logger or logging_ext.get_human_logger()
    report = SweepReport(name="user-identifiers")

    identifiers = [name for name in store.list_children(root_path) if is_user_sid(name)]
    if not identifiers:
        human_logger.info("No orphaned user entries found under the provider root")
        return report

    human_logger.info("Found %d cached user entries", len(identifiers))
    for sid in identifiers:
        try:
            target = safety.guard_delete_target(
                registry_tools.join_key(root_path, sid), root_path, depth=1
            )
            if not dry_run:
                human_logger.info("Deleting cached entries for %s", sid)
            if _delete_confirmed(store, target, report, dry_run=dry_run, logger=human_logger) and not dry_run:
                human_logger.info("Deleted cached entries for %s", sid)
        except RegistryError as exc:
            _record_error(report, sid, exc, human_logger)
    return report


def _clear_container(
    store: RegistryStore,
    root_path: str,
    container_path: str,
    label: str,
    report: SweepReport,
    *,
    dry_run: bool,
    logger: logging.Logger,
) -> None:
    """!
    @brief Delete all children of ``container_path`` but keep the container.
    """

    if not store.exists(container_path):
        return
    children = store.list_children(container_path)
    if not children:
        return

    depth = len(registry_tools.split_key(container_path)) - len(registry_tools.split_key(root_path)) + 1
    cleared = 0
    for child in children:
        if not safety.is_safe_child_name(child):
            logger.warning("Ignoring malformed key name %r under %s", child, label)
            report.skipped.append(f"{container_path}\\{child}")
            continue
        try:
            target = safety.guard_delete_target(
                registry_tools.join_key(container_path, child), root_path, depth=depth
            )
            if _delete_confirmed(store, target, report, dry_run=dry_run, logger=logger):
                cleared += 1
        except RegistryError as exc:
            _record_error(report, f"{label}\\{child}", exc, logger)

    if dry_run:
        logger.info("Would clear %d of %d entries from %s [dry-run]", cleared, len(children), label)
    else:
        logger.info("Cleared %d of %d entries from %s", cleared, len(children), label)


def sweep_servers(
    store: RegistryStore,
    root_path: str,
    *,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> SweepReport:
    """!
    @brief Empty the cached printer and port containers of every server.
    @details A missing or empty ``Servers`` key is normal and only logged.
    For each server the ``Printers`` and ``Monitors\\Client Side Port``
    containers are handled independently; a missing or empty container is
    silently skipped.
    """

    human_logger = logger or logging_ext.get_human_logger()
    report = SweepReport(name="servers")

    servers_path = registry_tools.join_key(root_path, constants.SERVERS_KEY)
    if not store.exists(servers_path):
        human_logger.info("No %s key under the provider root; no server mappings cached", constants.SERVERS_KEY)
        return report

    servers = store.list_children(servers_path)
    if not servers:
        human_logger.info("%s key is empty; no server mappings cached", constants.SERVERS_KEY)
        return report

    reserved = (constants.SERVERS_KEY, registry_tools.leaf_name(root_path))
    for server in servers:
        if not safety.is_safe_child_name(server, reserved):
            human_logger.warning("Ignoring unexpected server key name %r", server)
            report.skipped.append(server)
            continue
        for container in constants.SERVER_CONTAINERS:
            label = f"{constants.SERVERS_KEY}\\{server}\\{container}"
            try:
                _clear_container(
                    store,
                    root_path,
                    registry_tools.join_key(servers_path, server, container),
                    label,
                    report,
                    dry_run=dry_run,
                    logger=human_logger,
                )
            except RegistryError as exc:
                _record_error(report, label, exc, human_logger)

    if not report.found_orphans:
        human_logger.info("No cached printer or port entries found under %s", constants.SERVERS_KEY)
    return report


__all__ = [
    "SweepError",
    "SweepReport",
    "is_user_sid",
    "sweep_servers",
    "sweep_user_identifiers",
]
