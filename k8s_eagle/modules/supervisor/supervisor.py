import asyncio
import logging
import random
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional, Sequence

from k8s_eagle.modules.config import ResolvedWatcher
from k8s_eagle.modules.watch import (
    Dispatcher,
    EventSource,
    WatchLoop,
    WatchState,
    WatchStreamError,
)

logger = logging.getLogger(__name__)

RESTART_NEVER = "never"
RESTART_ON_FAILURE = "on-failure"


@dataclass
class WatcherStatus:
    """Externally visible state of one watcher."""

    name: str
    state: WatchState = WatchState.STARTING
    restarts: int = 0
    events_processed: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class Supervisor:
    def __init__(
        self,
        watchers: Sequence[ResolvedWatcher],
        source: EventSource,
        dispatcher: Dispatcher,
        restart_policy: str = RESTART_NEVER,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
        loop_factory: Callable[..., WatchLoop] = WatchLoop,
    ):
        """
        Initialize supervisor.

        Args:
            watchers: Resolved watchers, one watch loop each
            source: Event source shared by every loop
            dispatcher: Webhook dispatcher shared by every loop
            restart_policy: "never" (terminated loops stay terminated) or "on-failure"
            backoff_initial: First restart delay in seconds
            backoff_max: Upper bound for the restart delay
            loop_factory: Builds a WatchLoop (overridable for tests)
        """
        if restart_policy not in (RESTART_NEVER, RESTART_ON_FAILURE):
            raise ValueError(f"Unknown restart policy: {restart_policy}")

        self.watchers = list(watchers)
        self.source = source
        self.dispatcher = dispatcher
        self.restart_policy = restart_policy
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.loop_factory = loop_factory

        self._statuses: Dict[str, WatcherStatus] = {
            w.name: WatcherStatus(name=w.name) for w in self.watchers
        }
        self._active: Dict[str, WatchLoop] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    async def run(self) -> None:
        """
        Run one watch loop per watcher until every loop has terminated.

        A failing loop is logged and never affects its siblings.
        """
        if not self.watchers:
            logger.warning("no watchers configured")
            return

        for watcher in self.watchers:
            self._tasks[watcher.name] = asyncio.create_task(
                self._supervise(watcher), name=f"watcher-{watcher.name}"
            )

        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)

        for name, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                logger.error(
                    "watcher task failed",
                    extra={"watcher_name": name, "error": f"{type(result).__name__}: {result}"},
                )

        logger.info("all watchers terminated", extra={"watchers_count": len(self.watchers)})

    async def _supervise(self, watcher: ResolvedWatcher) -> None:
        status = self._statuses[watcher.name]
        backoff = self.backoff_initial

        while True:
            loop = self.loop_factory(watcher, self.source, self.dispatcher)
            self._active[watcher.name] = loop
            started = time.monotonic()

            try:
                await loop.run()
            except asyncio.CancelledError:
                status.state = WatchState.TERMINATED
                raise
            except Exception as e:
                status.last_error = f"{type(e).__name__}: {e}"
                logger.error(
                    "watcher failed",
                    extra={"watcher_name": watcher.name, "error": status.last_error},
                    exc_info=not isinstance(e, WatchStreamError),
                )
            finally:
                del self._active[watcher.name]
                status.events_processed += loop.events_processed

            if self.restart_policy == RESTART_NEVER:
                status.state = WatchState.TERMINATED
                return

            # Every subscription replays current state, so only uptime marks a healthy run
            if time.monotonic() - started >= self.backoff_max:
                backoff = self.backoff_initial

            delay = backoff * (0.5 + random.random())  # noqa: S311
            status.state = WatchState.BACKOFF
            status.restarts += 1
            logger.warning(
                "restarting watcher",
                extra={
                    "watcher_name": watcher.name,
                    "restarts": status.restarts,
                    "delay_seconds": round(delay, 2),
                },
            )
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                status.state = WatchState.TERMINATED
                raise
            backoff = min(backoff * 2, self.backoff_max)

    def status(self) -> List[dict]:
        """Current state of every watcher, in configuration order."""
        report = []
        for watcher in self.watchers:
            status = self._statuses[watcher.name]
            loop = self._active.get(watcher.name)
            entry = status.to_dict()
            if loop is not None:
                entry["state"] = loop.state.value
                entry["events_processed"] += loop.events_processed
            report.append(entry)
        return report

    @property
    def all_terminated(self) -> bool:
        return bool(self.watchers) and all(
            entry["state"] == WatchState.TERMINATED.value for entry in self.status()
        )

    async def stop(self) -> None:
        """Cancel every watch loop (process shutdown)."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("supervisor stopped")
