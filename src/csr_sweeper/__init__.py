"""!
@brief CSR Sweeper package root.
@details Modules under this namespace repair the Client Side Rendering Print
Provider registry cache: they enable the provider's logoff cleanup flag and
remove orphaned per-user and per-server entries left behind by deleted
profiles.
"""

__all__ = [
    "main",
    "main_options",
    "remediate",
    "flag",
    "sweeper",
    "registry_tools",
    "registry_memory",
    "safety",
    "logging_ext",
    "exec_utils",
    "tasks_services",
    "constants",
    "version",
]
