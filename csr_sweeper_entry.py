"""!
@brief Shim entry point for CSR Sweeper.
@details Lets the tool run straight from a checkout (for example from a GPO
startup script pointing at a file share) by putting ``src/`` on
``sys.path`` before transferring control to :func:`csr_sweeper.main.main`.
"""

from __future__ import annotations

import os
import sys

__all__ = ["main"]

_SRC_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")


def main() -> int:
    """!
    @brief Invoke the package entry point after preparing ``sys.path``.
    @returns Exit status propagated from :func:`csr_sweeper.main.main`.
    """

    if os.path.isdir(_SRC_PATH) and _SRC_PATH not in sys.path:
        sys.path.insert(0, _SRC_PATH)
    from csr_sweeper.main import main as package_main

    return package_main()


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
