from __future__ import annotations

import json
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from dashclock.config import AppConfig, DatasourceDescriptor, DatasourceRegistry


@pytest.fixture
def sgt() -> ZoneInfo:
    return ZoneInfo("Asia/Singapore")


@pytest.fixture
def sources() -> DatasourceRegistry:
    return DatasourceRegistry(
        [
            DatasourceDescriptor("CPU", "cpu", "http://prom-a:9090", "%", 70.0, 90.0),
            DatasourceDescriptor("Disk", "disk", "http://prom-b:9090", "%", 80.0, 95.0),
            DatasourceDescriptor("Load", "load", "http://prom-c:9090"),
        ]
    )


@pytest.fixture
def app_config(sources: DatasourceRegistry, sgt: ZoneInfo) -> AppConfig:
    return AppConfig(sources=sources, timezone=sgt, refresh_seconds=1)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "dashclock.json"
    path.write_text(
        json.dumps(
            [
                {"title": "CPU", "Query": "cpu", "prom": "http://localhost:9090", "unit": "%", "warn": 70, "error": 90},
                {"title": "Load", "Query": "node_load1", "prom": "http://localhost:9090"},
            ]
        )
    )
    return path
