"""Generic in-memory state with async load and debounced save.

A ``StateManager`` owns one mutable mapping. ``load()`` pulls data through an
injected loader and merges a deep copy of it into the live state; ``save()``
schedules a write through an injected saver, coalescing bursts of calls:

  - every call within ``delay_s`` of the previous one restarts a trailing timer
  - once ``max_wait_s`` has passed since the first call of a burst, the write
    happens regardless of further calls

Saves never overlap. The snapshot for a write is taken only once the previous
write has finished, so a window that fires during an in-flight save persists
the latest state.

Usage:

    manager = StateManager(load_prefs, save_prefs, delay_s=0.5, max_wait_s=1.0)
    await manager.load()
    manager.state["ip"].active = False
    manager.save()          # returns immediately
    await manager.flush()   # e.g. at shutdown
"""

from __future__ import annotations

import asyncio
import copy
import inspect
from typing import Any, Awaitable, Callable, Generic, MutableMapping, Optional, Set, TypeVar, Union

from .errors import StateLoadError
from .logging_utils import get_logger

logger = get_logger()

T = TypeVar("T", bound=MutableMapping)

LoadCallback = Callable[[], Union[Awaitable[Any], Any]]
SaveCallback = Callable[[Any], Union[Awaitable[None], None]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Debouncer:
    """Trailing-edge debounce of an async callable with a max-wait deadline."""

    def __init__(
        self,
        func: Callable[[], Awaitable[None]],
        delay_s: float = 0.0,
        max_wait_s: float = 0.0,
        name: str = "debounced call",
    ):
        self._func = func
        self.delay_s = max(0.0, float(delay_s))
        self.max_wait_s = max(0.0, float(max_wait_s))
        self.name = name

        self._timer: Optional[asyncio.TimerHandle] = None
        self._max_timer: Optional[asyncio.TimerHandle] = None
        self._burst_started: Optional[float] = None
        self._tasks: Set[asyncio.Task] = set()

        self.last_error: Optional[BaseException] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None or self._max_timer is not None

    @property
    def burst_started(self) -> Optional[float]:
        """Loop time of the first un-flushed call, or None when idle."""
        return self._burst_started

    def __call__(self) -> None:
        # Raises RuntimeError outside a running loop; there is nothing to
        # schedule the write on.
        loop = asyncio.get_running_loop()

        if self._burst_started is None:
            self._burst_started = loop.time()
            if self.max_wait_s > 0:
                self._max_timer = loop.call_later(self.max_wait_s, self._fire)

        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.delay_s, self._fire)

    def cancel(self) -> None:
        """Drop the pending call, if any. An in-flight call is not affected."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._max_timer is not None:
            self._max_timer.cancel()
            self._max_timer = None
        self._burst_started = None

    async def flush(self) -> None:
        """Run the pending call now and wait for every call in flight."""
        if self.pending:
            self._fire()
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _fire(self) -> None:
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._func()
        except Exception as exc:
            # No caller to raise to.
            self.last_error = exc
            logger.exception("%s failed", self.name)
        else:
            self.last_error = None


class StateManager(Generic[T]):
    """Mutable mapping state with async load and debounced, non-overlapping saves."""

    def __init__(
        self,
        load_callback: LoadCallback,
        save_callback: Optional[SaveCallback] = None,
        *,
        delay_s: float = 0.0,
        max_wait_s: float = 0.0,
        initial_state: Optional[T] = None,
    ):
        self.state: T = initial_state if initial_state is not None else {}  # type: ignore[assignment]
        self._load_callback = load_callback
        self._save_callback = save_callback
        self._save_lock = asyncio.Lock()

        self._debounced: Optional[Debouncer] = None
        if save_callback is not None:
            self._debounced = Debouncer(
                self._save_snapshot,
                delay_s=delay_s,
                max_wait_s=max_wait_s,
                name="State save",
            )

    @property
    def delay_s(self) -> float:
        return self._debounced.delay_s if self._debounced else 0.0

    @property
    def max_wait_s(self) -> float:
        return self._debounced.max_wait_s if self._debounced else 0.0

    @property
    def save_pending(self) -> bool:
        return bool(self._debounced and self._debounced.pending)

    @property
    def last_save_error(self) -> Optional[BaseException]:
        return self._debounced.last_error if self._debounced else None

    def snapshot(self) -> T:
        return copy.deepcopy(self.state)

    async def load(self) -> T:
        """Load through the loader and merge a deep copy into the live state.

        Errors raised by the loader propagate to the caller.
        """
        loaded = await _resolve(self._load_callback())
        if not isinstance(loaded, MutableMapping):
            raise StateLoadError(f"Loader returned {type(loaded).__name__}, expected a mapping")

        # Never keep a reference to the loader's object.
        self.state.update(copy.deepcopy(loaded))
        return self.state

    def save(self) -> None:
        """Schedule a debounced save. Returns immediately."""
        if self._debounced is None:
            return
        self._debounced()

    async def save_now(self) -> None:
        """Persist the current state immediately; saver errors propagate."""
        if self._save_callback is None:
            return
        if self._debounced is not None:
            self._debounced.cancel()
        await self._save_snapshot()

    async def flush(self) -> None:
        """Run a pending debounced save now and wait for it to finish."""
        if self._debounced is not None:
            await self._debounced.flush()

    async def _save_snapshot(self) -> None:
        if self._save_callback is None:
            return
        async with self._save_lock:
            # Taken under the lock so a queued save sees the latest state.
            snapshot = self.snapshot()
            await _resolve(self._save_callback(snapshot))
