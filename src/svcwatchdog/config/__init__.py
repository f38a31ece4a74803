"""
Configuration module for watchdog settings
"""

from .settings import (
    Settings,
    KubernetesSettings,
    WatchdogSettings,
    LoggingSettings,
    DEFAULT_NAMESPACE,
    DEFAULT_HTTP_PORT,
)

__all__ = [
    "Settings",
    "KubernetesSettings",
    "WatchdogSettings",
    "LoggingSettings",
    "DEFAULT_NAMESPACE",
    "DEFAULT_HTTP_PORT",
]
