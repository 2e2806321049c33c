"""Reconciler - keeps an edge cache from drifting away from the durable store.

Each cycle compares the id sets of the edge cache and the authoritative
source. On any difference the source wins and the whole cache is replaced.
There are no tombstones: the source is the only side that can see deletions
made by the agent, so a local record created after the last push and not yet
pushed is lost if a cycle runs first. That race is accepted.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import BaseModel, Field

from annotations_server.errors import AnnotationError
from annotations_server.models import Annotation, ReplaceAllResult
from annotations_server.sync.caches import EdgeCache
from annotations_server.sync.sources import AnnotationSource

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 5.0


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation cycle."""

    changed: bool = False
    skipped: bool = False
    local_count: int = 0
    remote_count: int = 0
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    error: str | None = None


Listener = Callable[[ReconcileResult], Awaitable[None] | None]


def id_sets_diverge(local: list[Annotation], remote: list[Annotation]) -> bool:
    """Whether two collections differ in size or id membership."""
    if len(local) != len(remote):
        return True
    return {a.id for a in local} != {a.id for a in remote}


class Reconciler:
    """Periodic compare-and-overwrite between an edge cache and a source."""

    def __init__(
        self,
        source: AnnotationSource,
        cache: EdgeCache,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the reconciler.

        Args:
            source: The authoritative collection.
            cache: The local copy to keep in step.
            interval: Seconds between cycles in run_forever.
            timeout: Upper bound for one source fetch.
        """
        self.source = source
        self.cache = cache
        self.interval = interval
        self.timeout = timeout
        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None

    def add_listener(self, listener: Listener) -> None:
        """Register a callback run once after each cycle that changed the cache."""
        self._listeners.append(listener)

    async def reconcile_once(self) -> ReconcileResult:
        """Run one cycle.

        A failed or timed-out fetch skips the cycle and leaves the cache as it
        was.
        """
        try:
            remote = await asyncio.wait_for(self.source.fetch_all(), timeout=self.timeout)
        except TimeoutError:
            logger.warning(f"Reconcile skipped: source did not answer within {self.timeout}s")
            return ReconcileResult(skipped=True, error="timeout")
        except (httpx.HTTPError, AnnotationError, ValueError) as e:
            logger.warning(f"Reconcile skipped: {type(e).__name__}: {e}")
            return ReconcileResult(skipped=True, error=str(e) or type(e).__name__)

        local = await self.cache.read()
        if not id_sets_diverge(local, remote):
            return ReconcileResult(local_count=len(local), remote_count=len(remote))

        local_ids = {a.id for a in local}
        remote_ids = {a.id for a in remote}
        logger.info(f"Annotations changed on source: {len(local)} -> {len(remote)}")

        await self.cache.overwrite(remote)

        result = ReconcileResult(
            changed=True,
            local_count=len(local),
            remote_count=len(remote),
            added=sorted(remote_ids - local_ids),
            removed=sorted(local_ids - remote_ids),
        )
        await self._notify(result)
        return result

    async def push(self) -> ReplaceAllResult:
        """Publish the cache's full contents to the source (replace-all)."""
        annotations = await self.cache.read()
        result = await self.source.replace_all(annotations)
        logger.info(
            f"Pushed {len(annotations)} annotation(s) to source"
            + (" (unchanged)" if result.skipped else "")
        )
        return result

    async def run_forever(self) -> None:
        """Run cycles on a fixed interval until cancelled."""
        while True:
            try:
                await self.reconcile_once()
            except Exception as e:
                logger.exception(f"Error in reconcile cycle: {e}")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start run_forever as a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="annotation-reconciler")
            logger.info(f"Started reconciler (every {self.interval}s)")

    async def stop(self) -> None:
        """Cancel the background task, if running."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Stopped reconciler")

    async def _notify(self, result: ReconcileResult) -> None:
        for listener in self._listeners:
            try:
                outcome = listener(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.exception(f"Reconcile listener failed: {e}")
