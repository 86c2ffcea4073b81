"""!
@brief Version metadata for CSR Sweeper.
@details Version and build identifiers live here so the command-line
interface and the run metadata written to the log streams agree. The build
label can be stamped by deployment tooling through ``CSR_SWEEPER_BUILD``.
"""
from __future__ import annotations

import os
from importlib import resources
from typing import Dict

__all__ = ["__version__", "__build__", "build_info"]


def _load_version() -> str:
    """!
    @brief Read the packaged ``VERSION`` file.
    """

    version_path = resources.files(__package__).joinpath("VERSION")
    try:
        return version_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:  # pragma: no cover - source checkout without data files
        return "0.0.0"


__version__ = _load_version()
__build__ = os.environ.get("CSR_SWEEPER_BUILD", "").strip() or "dev"


def build_info() -> Dict[str, str]:
    """!
    @brief Provide a mapping with the current version metadata.
    @returns Dictionary containing ``version`` and ``build`` keys.
    """

    return {"version": __version__, "build": __build__}
