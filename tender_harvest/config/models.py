"""Pydantic models describing harvest sources and runtime settings."""

from __future__ import annotations

import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

_SOURCE_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class SourceConfig(BaseModel):
    """Static definition of one external tender source."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    name: str
    adapter: str = "html_table"
    priority: int = Field(default=1, ge=1, description="Lower value means more urgent.")
    scrape_interval_minutes: float = Field(default=60.0, gt=0)
    enabled: bool = True
    options: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("source_id")
    @classmethod
    def _validate_source_id(cls, value: str) -> str:
        value = value.strip()
        if not _SOURCE_ID_PATTERN.match(value):
            raise ValueError(
                "source_id must be lowercase letters, digits, '-' or '_' and start with a letter or digit"
            )
        return value

    @field_validator("options", mode="after")
    @classmethod
    def _freeze_options(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    @field_serializer("options")
    def _serialize_options(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return _thaw(value)

    @field_validator("name", "adapter")
    @classmethod
    def _validate_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("value cannot be empty")
        return value

    @property
    def interval_seconds(self) -> float:
        return self.scrape_interval_minutes * 60.0

    def plain_options(self) -> dict[str, Any]:
        """Mutable deep copy of ``options`` for adapters that validate it."""

        return _thaw(self.options)


class SchedulerSettings(BaseModel):
    """Tick cadence, retry backoff and worker bounds for the scheduler."""

    tick_interval_seconds: float = Field(default=300.0, gt=0)
    retry_base_minutes: float = Field(default=30.0, gt=0)
    retry_max_minutes: float = Field(default=240.0, gt=0)
    max_workers: int = Field(default=16, ge=1)

    @model_validator(mode="after")
    def _validate_backoff(self) -> "SchedulerSettings":
        if self.retry_max_minutes < self.retry_base_minutes:
            raise ValueError("retry_max_minutes must be >= retry_base_minutes")
        return self


class StorageSettings(BaseModel):
    """Location of the record store and write batching."""

    database_path: Path = Field(default=Path("tenders.db"))
    chunk_size: int = Field(default=50, ge=1, le=500)

    @field_validator("database_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_database_path(self, data_dir: Path) -> Path:
        if not self.database_path.is_absolute():
            return (data_dir / self.database_path).resolve()
        return self.database_path


class CacheSettings(BaseModel):
    """Cache backend selection; TTL is independent of scrape intervals."""

    backend: Literal["memory", "redis"] = "memory"
    ttl_seconds: int = Field(default=900, ge=1)
    redis_url: str | None = None
    key_prefix: str = "tender"

    @model_validator(mode="after")
    def _validate_backend(self) -> "CacheSettings":
        if self.backend == "redis" and not self.redis_url:
            raise ValueError("redis backend requires redis_url")
        return self


class NotifierSettings(BaseModel):
    """Optional webhook receiving batches of new tenders."""

    webhook_url: str | None = None
    timeout_seconds: float = Field(default=10.0, gt=0)


class GlobalConfig(BaseModel):
    """Process-wide settings shared by every source."""

    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)


__all__ = [
    "CacheSettings",
    "GlobalConfig",
    "NotifierSettings",
    "SchedulerSettings",
    "SourceConfig",
    "StorageSettings",
]
