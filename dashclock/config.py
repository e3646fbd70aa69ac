from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Sequence
from zoneinfo import ZoneInfo

from .errors import ConfigError
from .timeutil import load_timezone


@dataclass(frozen=True)
class DatasourceDescriptor:
    title: str
    query: str
    endpoint: str
    unit: str = ""
    warn_threshold: float = 0.0
    error_threshold: float = 0.0

    @property
    def has_thresholds(self) -> bool:
        return self.warn_threshold > 0


class DatasourceRegistry:
    """Ordered, read-only list of metric sources.

    Order is significant: it is the cycling order and the digit-key jump order.
    """

    def __init__(self, sources: Sequence[DatasourceDescriptor]) -> None:
        if not sources:
            raise ConfigError("No datasources configured.")
        self._sources = tuple(sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __getitem__(self, index: int) -> DatasourceDescriptor:
        return self._sources[index]

    def __iter__(self) -> Iterator[DatasourceDescriptor]:
        return iter(self._sources)

    @property
    def count(self) -> int:
        return len(self._sources)


@dataclass(frozen=True)
class AppConfig:
    sources: DatasourceRegistry
    timezone: ZoneInfo
    refresh_seconds: int = 15
    window_length: int = 60
    step_seconds: int = 60
    test_mode: bool = False
    legacy_colors: bool = False


def _float(raw: Any, field: str, index: int) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, bool):
        raise ConfigError(f"Datasource at index {index}: '{field}' must be a number.")
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Datasource at index {index}: '{field}' must be a number.") from e


def parse_datasource(raw: Any, index: int) -> DatasourceDescriptor:
    if not isinstance(raw, dict):
        raise ConfigError(f"Datasource at index {index} must be an object.")
    query = str(raw.get("Query", "")).strip()
    endpoint = str(raw.get("prom", "")).strip()
    if not query or not endpoint:
        raise ConfigError(f"Datasource at index {index} must include 'Query' and 'prom'.")
    return DatasourceDescriptor(
        title=str(raw.get("title", "")).strip(),
        query=query,
        endpoint=endpoint,
        unit=str(raw.get("unit") or ""),
        warn_threshold=_float(raw.get("warn"), "warn", index),
        error_threshold=_float(raw.get("error"), "error", index),
    )


def load_datasources(path: Path) -> DatasourceRegistry:
    if not path.is_file():
        raise ConfigError(f"Missing json config {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigError(f"Config {path} must be a JSON array of datasources.")
    return DatasourceRegistry([parse_datasource(item, i) for i, item in enumerate(raw)])


def load_config(
    path: Path,
    *,
    timezone_name: str = "Asia/Singapore",
    refresh_seconds: int = 15,
    window_length: int = 60,
    step_seconds: int = 60,
    test_mode: bool = False,
    legacy_colors: bool = False,
) -> AppConfig:
    if refresh_seconds <= 0:
        raise ConfigError("Refresh interval must be a positive number of seconds.")
    if window_length <= 0 or step_seconds <= 0:
        raise ConfigError("Window length and step must be positive.")

    sources = load_datasources(path)
    return AppConfig(
        sources=sources,
        timezone=load_timezone(timezone_name),
        refresh_seconds=refresh_seconds,
        window_length=window_length,
        step_seconds=step_seconds,
        test_mode=test_mode,
        legacy_colors=legacy_colors,
    )
