"""Configuration package exports."""

from .defaults import DEFAULT_SOURCES
from .loader import ConfigLocator, ConfigRepository
from .models import (
    CacheSettings,
    GlobalConfig,
    NotifierSettings,
    SchedulerSettings,
    SourceConfig,
    StorageSettings,
)

__all__ = [
    "CacheSettings",
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_SOURCES",
    "GlobalConfig",
    "NotifierSettings",
    "SchedulerSettings",
    "SourceConfig",
    "StorageSettings",
]
