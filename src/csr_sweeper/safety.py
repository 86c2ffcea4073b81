"""!
@brief Safety and guardrail helpers.
@details Every delete issued by the sweeper passes through
:func:`guard_delete_target` first. The guard recomputes the relationship
between the target and the provider root from normalised paths and refuses
anything that is not strictly beneath the root, so a stale or mutated path
string can never turn into a delete of the root itself.
"""
from __future__ import annotations

from typing import List, Sequence

from . import registry_tools

SUPPORTED_SYSTEMS = {"windows", "nt"}


def guard_delete_target(path: str, root_path: str, *, depth: int | None = None) -> str:
    """!
    @brief Validate that ``path`` may be deleted beneath ``root_path``.
    @param path Candidate delete target.
    @param root_path Provider root the target must live under.
    @param depth When given, the exact number of segments the target must sit
    below the root (``1`` for a direct child).
    @returns The normalised target path.
    @raises UnsafeDeleteError If the target equals the root, lies outside it,
    or sits at the wrong depth.
    """

    try:
        target = registry_tools.split_key(path)
        root = registry_tools.split_key(root_path)
    except ValueError as exc:
        raise registry_tools.UnsafeDeleteError(str(path), str(exc)) from exc

    folded_target = [segment.casefold() for segment in target]
    folded_root = [segment.casefold() for segment in root]

    if folded_target == folded_root:
        raise registry_tools.UnsafeDeleteError(str(path), "target is the provider root")
    if len(folded_target) <= len(folded_root) or folded_target[: len(folded_root)] != folded_root:
        raise registry_tools.UnsafeDeleteError(str(path), "target is outside the provider root")
    if depth is not None and len(target) - len(root) != depth:
        raise registry_tools.UnsafeDeleteError(
            str(path),
            f"target is {len(target) - len(root)} levels below the provider root, expected {depth}",
        )
    return "\\".join(target)


def is_safe_child_name(name: str, reserved: Sequence[str] = ()) -> bool:
    """!
    @brief Check that an enumerated child name denotes exactly one key level.
    @details Empty names, names containing ``\\``, and names equal to a
    reserved key (compared case-insensitively) are rejected. ``/`` and
    surrounding whitespace are legal in registry key names.
    """

    text = str(name)
    if not text or "\\" in text:
        return False
    folded = text.casefold()
    return all(folded != str(item).casefold() for item in reserved)


def runtime_warnings(*, is_admin: bool, os_system: str, dry_run: bool) -> List[str]:
    """!
    @brief Collect advisory warnings about the runtime environment.
    @details Nothing here blocks execution; the tool runs unattended, so the
    warnings are logged and the registry itself reports any refusal.
    """

    warnings: List[str] = []
    if os_system.strip().lower() not in SUPPORTED_SYSTEMS:
        warnings.append(f"Running on unsupported platform {os_system!r}; the Windows registry is unavailable.")
    if not is_admin and not dry_run:
        warnings.append("Process is not elevated; registry changes under HKLM will likely be denied.")
    return warnings


__all__ = [
    "SUPPORTED_SYSTEMS",
    "guard_delete_target",
    "is_safe_child_name",
    "runtime_warnings",
]
