"""EntregaHub core module.

Shared components used across all services:
- Configuration management
- Settings accessor
"""

from entregahub.core.config import (
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    LifecycleSettings,
    NotificationProviderName,
    NotificationSettings,
    SchedulerSettings,
    Settings,
)
from entregahub.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "LifecycleSettings",
    "NotificationProviderName",
    "NotificationSettings",
    "SchedulerSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
