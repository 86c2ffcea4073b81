"""!
@brief Static registry locations and names for CSR Sweeper.
@details Centralises the Client Side Rendering Print Provider key layout so
the flag normalizer, the orphan sweeper, and the CLI work from a single
source of truth. The names must match what the Windows print subsystem
expects byte for byte.
"""
from __future__ import annotations

import re
from typing import Dict, Tuple

try:  # pragma: no cover - Windows registry handles are optional on test hosts.
    import winreg
except ImportError:  # pragma: no cover - test scaffolding supplies substitutes.
    winreg = None  # type: ignore[assignment]


if winreg is not None:  # pragma: no branch - deterministic assignments.
    HKLM = winreg.HKEY_LOCAL_MACHINE
    HKCU = winreg.HKEY_CURRENT_USER
    HKCR = winreg.HKEY_CLASSES_ROOT
    HKU = winreg.HKEY_USERS
else:  # pragma: no cover - exercised implicitly in non-Windows CI.
    HKLM = 0x80000002
    HKCU = 0x80000001
    HKCR = 0x80000000
    HKU = 0x80000003


HIVE_ALIASES: Dict[str, str] = {
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKEY_LOCAL_MACHINE": "HKEY_LOCAL_MACHINE",
    "HKCU": "HKEY_CURRENT_USER",
    "HKEY_CURRENT_USER": "HKEY_CURRENT_USER",
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKEY_CLASSES_ROOT": "HKEY_CLASSES_ROOT",
    "HKU": "HKEY_USERS",
    "HKEY_USERS": "HKEY_USERS",
}
"""!
@brief Accepted hive spellings mapped onto their canonical long names.
"""

REGISTRY_ROOTS: Dict[str, int] = {
    "HKEY_LOCAL_MACHINE": HKLM,
    "HKEY_CURRENT_USER": HKCU,
    "HKEY_CLASSES_ROOT": HKCR,
    "HKEY_USERS": HKU,
}

PROVIDER_ROOT = (
    r"HKEY_LOCAL_MACHINE\SOFTWARE\Microsoft\Windows NT\CurrentVersion"
    r"\Print\Providers\Client Side Rendering Print Provider"
)
"""!
@brief Registry key owned by the Client Side Rendering Print Provider.
"""

FLAG_NAME = "RemovePrintersAtLogoff"
FLAG_ENABLED = 1

SERVERS_KEY = "Servers"
PRINTERS_KEY = "Printers"
CLIENT_SIDE_PORT_KEY = r"Monitors\Client Side Port"

SERVER_CONTAINERS: Tuple[str, ...] = (PRINTERS_KEY, CLIENT_SIDE_PORT_KEY)
"""!
@brief Per-server containers whose children are disposable cache entries.
"""

USER_SID_PATTERN = re.compile(r"S-1-5-21-[0-9]+-[0-9]+-[0-9]+-[0-9]+")
"""!
@brief Domain account SID shape used for per-user cache keys.
@details Applied with :meth:`re.Pattern.fullmatch`; prefix or substring hits
never count.
"""

SPOOLER_SERVICE = "Spooler"

DEFAULT_LOG_SUBDIR = ("CsrSweeper", "logs")


__all__ = [
    "CLIENT_SIDE_PORT_KEY",
    "DEFAULT_LOG_SUBDIR",
    "FLAG_ENABLED",
    "FLAG_NAME",
    "HIVE_ALIASES",
    "HKCR",
    "HKCU",
    "HKLM",
    "HKU",
    "PRINTERS_KEY",
    "PROVIDER_ROOT",
    "REGISTRY_ROOTS",
    "SERVERS_KEY",
    "SERVER_CONTAINERS",
    "SPOOLER_SERVICE",
    "USER_SID_PATTERN",
]
