# auth_cmd/core/startup/__init__.py
# =============================================================================
# File: auth_cmd/core/startup/__init__.py
# Description: Startup module exports
# =============================================================================

from auth_cmd.core.startup.bootstrap import (
    Dependencies,
    Settings,
    StartupReport,
    StartupResult,
    bootstrap,
    load_settings,
)

__all__ = [
    'Dependencies',
    'Settings',
    'StartupReport',
    'StartupResult',
    'bootstrap',
    'load_settings',
]
