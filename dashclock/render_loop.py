from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Protocol, Union

from .config import AppConfig, DatasourceDescriptor
from .errors import FatalError
from .layout import LayoutDescriptor, layout
from .query import AlignedSeries, QueryEngine
from .scheduler import DATA_SYNC, LAYOUT_REFRESH, Scheduler, Trigger
from .status import LineColorPolicy, SeriesColors, SourceError, evaluate
from .timeutil import utc_now
from .ui import (
    KEY_CTRL_C,
    KEY_DOWN,
    KEY_LEFT,
    KEY_RIGHT,
    KEY_SPACE,
    KEY_UP,
    ClockFace,
    clock_face,
)

logger = logging.getLogger(__name__)

LAYOUT_REFRESH_SECONDS = 3600

QUIT_KEYS = {"q", KEY_CTRL_C}
JUMP_KEYS = {"`": 0, **{str(d): d for d in range(10)}}
PREVIOUS_KEYS = {KEY_LEFT, KEY_DOWN}
NEXT_KEYS = {KEY_RIGHT, KEY_UP}


class Screen(Protocol):
    def size(self) -> tuple[int, int]: ...

    def clear(self, desc: LayoutDescriptor) -> None: ...

    def show_advisory(self, desc: LayoutDescriptor) -> None: ...

    def show_clock(self, desc: LayoutDescriptor, face: ClockFace) -> None: ...

    def show_data(
        self,
        desc: LayoutDescriptor,
        source: DatasourceDescriptor,
        series: AlignedSeries,
        outcome: SeriesColors | SourceError,
    ) -> None: ...


# Events consumed by the render loop.


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class Resized:
    pass


@dataclass(frozen=True)
class Tick:
    name: str


@dataclass(frozen=True)
class FetchPlan:
    index: int
    source: DatasourceDescriptor


@dataclass(frozen=True)
class SyncRequested:
    trigger: Trigger
    reply: "asyncio.Future[FetchPlan | None]" = field(compare=False)


@dataclass(frozen=True)
class FetchCompleted:
    plan: FetchPlan
    series: AlignedSeries


@dataclass(frozen=True)
class Fatal:
    error: FatalError


Event = Union[KeyPressed, Resized, Tick, SyncRequested, FetchCompleted, Fatal]


@dataclass
class RenderState:
    source_count: int
    cursor_index: int = 0
    layout_dirty: bool = True
    current_layout: LayoutDescriptor | None = None

    def jump(self, index: int) -> None:
        self.cursor_index = index % self.source_count

    def previous(self) -> None:
        self.cursor_index = (self.cursor_index - 1 + self.source_count) % self.source_count

    def next(self) -> None:
        self.cursor_index = (self.cursor_index + 1) % self.source_count


class RenderLoop:
    """Single owner of RenderState.

    Input, resizes and scheduler executions all reach the loop as events on one
    queue. The data-sync body runs in the scheduler: it asks the loop what to
    fetch, performs the range query, and posts the result back. Nothing
    outside ``handle`` writes the state.
    """

    def __init__(
        self,
        config: AppConfig,
        query: QueryEngine,
        screen: Screen,
        *,
        now: Callable[[], datetime] = utc_now,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.config = config
        self.state = RenderState(source_count=len(config.sources))
        self._query = query
        self._screen = screen
        self._now = now
        self._policy = LineColorPolicy.LEGACY if config.legacy_colors else LineColorPolicy.SEVERITY
        self._events: asyncio.Queue[Event] = asyncio.Queue()

        self.scheduler = scheduler or Scheduler(max_concurrent=1, on_fatal=self._post_fatal)
        self.scheduler.every(LAYOUT_REFRESH_SECONDS, LAYOUT_REFRESH, self._layout_refresh)
        self.scheduler.every(config.refresh_seconds, DATA_SYNC, self._data_sync)

    def post(self, event: Event) -> None:
        self._events.put_nowait(event)

    def key_pressed(self, key: str) -> None:
        self.post(KeyPressed(key))

    def resized(self) -> None:
        self.post(Resized())

    def _post_fatal(self, error: FatalError) -> None:
        self.post(Fatal(error))

    # Scheduler task bodies.

    async def _layout_refresh(self, trigger: Trigger) -> None:
        self.post(Tick(LAYOUT_REFRESH))

    async def _data_sync(self, trigger: Trigger) -> None:
        reply: asyncio.Future[FetchPlan | None] = asyncio.get_running_loop().create_future()
        self.post(SyncRequested(trigger=trigger, reply=reply))
        plan = await reply
        if plan is None:
            return
        series = await self._query.fetch_range(
            plan.source.endpoint,
            plan.source.query,
            self.config.window_length,
            self.config.step_seconds,
            self._now(),
            self.config.timezone,
        )
        self.post(FetchCompleted(plan=plan, series=series))

    # Foreground.

    async def run(self) -> None:
        self.scheduler.start()
        self.scheduler.run_now(DATA_SYNC)
        try:
            while True:
                event = await self._events.get()
                if not self.handle(event):
                    return
        finally:
            await self.scheduler.stop()

    def handle(self, event: Event) -> bool:
        """Apply one event. Returns False when the loop should stop."""
        if isinstance(event, KeyPressed):
            return self.handle_key(event.key)
        if isinstance(event, Resized):
            self.state.layout_dirty = True
            self.scheduler.run_now(DATA_SYNC)
        elif isinstance(event, Tick):
            if event.name == LAYOUT_REFRESH:
                self.state.layout_dirty = True
        elif isinstance(event, SyncRequested):
            plan = self.render_step(advance=event.trigger is Trigger.TIMER)
            if not event.reply.done():
                event.reply.set_result(plan)
        elif isinstance(event, FetchCompleted):
            self.show_data(event.plan, event.series)
        elif isinstance(event, Fatal):
            raise event.error
        return True

    def handle_key(self, key: str) -> bool:
        state = self.state
        if key in QUIT_KEYS:
            return False
        if key in JUMP_KEYS:
            state.jump(JUMP_KEYS[key])
        elif key in PREVIOUS_KEYS:
            state.previous()
        elif key in NEXT_KEYS:
            state.next()
        elif key == KEY_SPACE:
            state.layout_dirty = True
        else:
            return True
        self.scheduler.run_now(DATA_SYNC)
        return True

    def render_step(self, *, advance: bool = False) -> FetchPlan | None:
        """Redraw the clock and pick the source to fetch.

        A timer-driven step moves the cursor to the next source, but only once
        the layout is known to be usable.
        """
        state = self.state
        if state.layout_dirty or state.current_layout is None:
            width, height = self._screen.size()
            state.current_layout = layout(width, height)
            state.layout_dirty = False
            self._screen.clear(state.current_layout)
            logger.debug("Layout %dx%d: %s", width, height, state.current_layout.support.value)

        desc = state.current_layout
        if not desc.supported:
            self._screen.show_advisory(desc)
            return None

        if advance:
            state.next()
        self._screen.show_clock(desc, clock_face(self._now(), self.config.timezone, test_mode=self.config.test_mode))
        index = state.cursor_index
        return FetchPlan(index=index, source=self.config.sources[index])

    def show_data(self, plan: FetchPlan, series: AlignedSeries) -> None:
        desc = self.state.current_layout
        if desc is None or not desc.supported:
            return
        outcome = evaluate(plan.source, series, policy=self._policy)
        self._screen.show_data(desc, plan.source, series, outcome)
