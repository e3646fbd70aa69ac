from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence
from zoneinfo import ZoneInfo

import httpx

from .errors import BackendClientError, DashclockError, UnsupportedResultError
from .timeutil import hhmm, round_to_second

logger = logging.getLogger(__name__)

# Float cannot be null, so a missing grid point gets a value no metric produces.
SENTINEL = -999.0

OVERALL_TIMEOUT_SECONDS = 10.0
BACKEND_TIMEOUT = "5s"
CLIENT_TIMEOUT = httpx.Timeout(OVERALL_TIMEOUT_SECONDS, connect=5.0)


class BackendResponseError(DashclockError):
    """Backend answered, but not with usable data. Recoverable."""


@dataclass(frozen=True)
class AlignedPoint:
    value: float
    label: str

    @property
    def missing(self) -> bool:
        return self.value == SENTINEL

    @property
    def plottable(self) -> bool:
        return not self.missing and math.isfinite(self.value)


@dataclass(frozen=True)
class AlignedSeries:
    """Fixed grid of points, oldest first. Empty means the fetch failed."""

    points: tuple[AlignedPoint, ...] = ()

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    @property
    def failed(self) -> bool:
        return not self.points

    @property
    def values(self) -> list[float]:
        return [p.value for p in self.points]

    @property
    def labels(self) -> list[str]:
        return [p.label for p in self.points]

    @property
    def last(self) -> float | None:
        return self.points[-1].value if self.points else None

    @property
    def missing_count(self) -> int:
        return sum(1 for p in self.points if p.missing)


EMPTY_SERIES = AlignedSeries()


@dataclass(frozen=True)
class RangeParams:
    start: datetime
    end: datetime
    step_seconds: int

    def as_query(self, query: str) -> dict[str, str]:
        return {
            "query": query,
            "start": f"{self.start.timestamp():.3f}",
            "end": f"{self.end.timestamp():.3f}",
            "step": f"{self.step_seconds}s",
            "timeout": BACKEND_TIMEOUT,
        }


def build_range(now: datetime, window_length: int, step_seconds: int) -> RangeParams:
    end = round_to_second(now)
    start = end - timedelta(seconds=window_length * step_seconds)
    return RangeParams(start=start, end=end, step_seconds=step_seconds)


def validate_endpoint(endpoint: str) -> httpx.URL:
    try:
        url = httpx.URL(endpoint.strip())
    except (httpx.InvalidURL, TypeError) as e:
        raise BackendClientError(f"Error creating client for {endpoint!r}: {e}") from e
    if url.scheme not in {"http", "https"} or not url.host:
        raise BackendClientError(f"Error creating client for {endpoint!r}: need an http(s) URL with a host")
    return url


def _ts_key(ts: float) -> int:
    return int(round(ts * 1000))


def parse_matrix(payload: Any) -> list[tuple[float, float]]:
    """Extract the single series from a query_range payload.

    Backend-side failures raise BackendResponseError. A result that is not a
    single-series matrix raises UnsupportedResultError: the query itself is
    wrong and no amount of retrying will make it alignable.
    """
    if not isinstance(payload, dict):
        raise BackendResponseError("Unexpected response body")
    if payload.get("status") != "success":
        raise BackendResponseError(str(payload.get("error") or "backend error"))

    data = payload.get("data")
    if not isinstance(data, dict):
        raise BackendResponseError("Response has no data")
    result_type = data.get("resultType")
    result = data.get("result")
    if result_type != "matrix" or not isinstance(result, list):
        raise UnsupportedResultError(f"Only support matrix results, got {result_type!r}")
    if len(result) > 1:
        raise UnsupportedResultError(f"Only support a single series, got {len(result)}")
    if not result:
        return []

    values = result[0].get("values") if isinstance(result[0], dict) else None
    if not isinstance(values, list):
        raise BackendResponseError("Series has no values")
    samples: list[tuple[float, float]] = []
    for item in values:
        try:
            ts, raw = item
            samples.append((float(ts), float(raw)))
        except (TypeError, ValueError) as e:
            raise BackendResponseError(f"Bad sample {item!r}") from e
    return samples


def align(
    samples: Sequence[tuple[float, float]],
    rng: RangeParams,
    window_length: int,
    display_tz: ZoneInfo,
) -> AlignedSeries:
    by_ts = {_ts_key(ts): value for ts, value in samples}
    points: list[AlignedPoint] = []
    for i in range(window_length, -1, -1):
        t = rng.end - timedelta(seconds=i * rng.step_seconds)
        value = by_ts.get(_ts_key(t.timestamp()), SENTINEL)
        points.append(AlignedPoint(value=value, label=hhmm(t, display_tz)))
    return AlignedSeries(points=tuple(points))


class QueryEngine:
    def __init__(self, client: httpx.AsyncClient, *, overall_timeout: float = OVERALL_TIMEOUT_SECONDS) -> None:
        self._client = client
        self._overall_timeout = overall_timeout

    async def _get_json(self, url: httpx.URL, params: dict[str, str]) -> Any:
        resp = await self._client.get(url, params=params)
        try:
            payload = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise BackendResponseError("Response is not JSON")
        # Prometheus reports query errors as JSON with a 4xx/5xx status.
        if resp.is_error and not (isinstance(payload, dict) and payload.get("status") == "error"):
            resp.raise_for_status()
        return payload

    async def fetch_range(
        self,
        endpoint: str,
        query: str,
        window_length: int,
        step_seconds: int,
        now: datetime,
        display_tz: ZoneInfo,
    ) -> AlignedSeries:
        base = validate_endpoint(endpoint)
        url = base.join(base.path.rstrip("/") + "/api/v1/query_range")
        rng = build_range(now, window_length, step_seconds)

        started = time.perf_counter()
        try:
            payload = await asyncio.wait_for(
                self._get_json(url, rng.as_query(query)),
                timeout=self._overall_timeout,
            )
            samples = parse_matrix(payload)
        except (httpx.HTTPError, asyncio.TimeoutError, BackendResponseError) as e:
            logger.warning("Range query against %s failed: %s", endpoint, str(e) or type(e).__name__)
            return EMPTY_SERIES

        logger.debug(
            "Range query against %s returned %d samples in %d ms",
            endpoint,
            len(samples),
            int((time.perf_counter() - started) * 1000),
        )
        return align(samples, rng, window_length, display_tz)
