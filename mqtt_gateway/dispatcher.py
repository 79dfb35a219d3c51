"""Fan-out of decoded points to the storage targets of their source.

Every target gets its own bounded queue and writer task, so a slow or
unreachable backend only ever delays its own writes. Points for one target
are written in arrival order.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from mqtt_gateway.shared.errors import RejectedWriteError, TransientWriteError
from mqtt_gateway.shared.models import Point
from mqtt_gateway.targets.base import WriteAdapter

logger = logging.getLogger(__name__)


@dataclass
class DispatchConfig:
    """Queueing, retry and shutdown settings shared by all target workers."""
    queue_size: int = 100
    drop_oldest: bool = True
    max_attempts: int = 5
    backoff_base: float = 0.5
    backoff_max: float = 30.0
    shutdown_grace: float = 5.0

    def __post_init__(self):
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_dict(cls, data: dict) -> "DispatchConfig":
        """Create config from dictionary."""
        defaults = cls()
        return cls(
            queue_size=int(data.get("queue_size", defaults.queue_size)),
            drop_oldest=bool(data.get("drop_oldest", defaults.drop_oldest)),
            max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
            backoff_base=float(data.get("backoff_base", defaults.backoff_base)),
            backoff_max=float(data.get("backoff_max", defaults.backoff_max)),
            shutdown_grace=float(data.get("shutdown_grace", defaults.shutdown_grace)),
        )

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (starting at 0)."""
        return min(self.backoff_max, self.backoff_base * (2 ** attempt))


@dataclass
class WorkerStats:
    """Counters of one target worker."""
    submitted: int = 0
    written: int = 0
    dropped: int = 0
    retries: int = 0
    failed: int = 0
    rejected: int = 0


class TargetWorker:
    """Bounded queue plus a single writer task for one target."""

    def __init__(self, name: str, adapter: WriteAdapter, config: DispatchConfig):
        self.name = name
        self.adapter = adapter
        self.config = config
        self.stats = WorkerStats()
        self._queue: "asyncio.Queue[Point]" = asyncio.Queue(maxsize=config.queue_size)
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"target-{self.name}"
            )
            logger.info(f"Started writer for {self.name}")

    def submit(self, point: Point) -> None:
        """Queue a point without blocking; drops one point when full."""
        self.stats.submitted += 1
        if self._queue.full():
            self.stats.dropped += 1
            if self.config.drop_oldest:
                dropped = self._queue.get_nowait()
                self._queue.task_done()
                self._queue.put_nowait(point)
            else:
                dropped = point
            logger.warning(
                f"Queue of {self.name} full ({self.config.queue_size}), dropped {dropped} "
                f"({self.stats.dropped} dropped so far)"
            )
            return
        self._queue.put_nowait(point)

    async def _run(self) -> None:
        while True:
            point = await self._queue.get()
            try:
                await self._write(point)
            finally:
                self._queue.task_done()

    async def _write(self, point: Point) -> None:
        for attempt in range(self.config.max_attempts):
            try:
                await self.adapter.write(point)
                self.stats.written += 1
                return
            except TransientWriteError as e:
                if attempt + 1 >= self.config.max_attempts:
                    self.stats.failed += 1
                    logger.error(
                        f"Giving up on {point} for {self.name} after "
                        f"{self.config.max_attempts} attempts: {e}"
                    )
                    return
                delay = self.config.backoff(attempt)
                self.stats.retries += 1
                logger.warning(
                    f"Transient error writing to {self.name}: {e}, retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
            except RejectedWriteError as e:
                self.stats.rejected += 1
                logger.error(f"{self.name} rejected {point}: {e}")
                return
            except Exception as e:
                self.stats.failed += 1
                logger.error(f"Error writing {point} to {self.name}: {e!r}")
                return

    async def drain(self) -> None:
        """Wait until every queued point has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the writer task and close the adapter."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        abandoned = self._queue.qsize()
        if abandoned:
            logger.warning(f"Abandoned {abandoned} queued points for {self.name}")
        try:
            await self.adapter.close()
        except Exception as e:
            logger.warning(f"Error closing {self.name}: {e}")


class Dispatcher:
    """Routes points of a source to the workers of all its targets."""

    def __init__(
        self,
        workers_by_source: Dict[str, List[TargetWorker]],
        config: Optional[DispatchConfig] = None,
    ):
        self.config = config or DispatchConfig()
        self._workers_by_source = workers_by_source
        self._started = False

    @classmethod
    def from_adapters(
        cls,
        adapters_by_source: Dict[str, Iterable[WriteAdapter]],
        config: Optional[DispatchConfig] = None,
    ) -> "Dispatcher":
        """Create one worker per adapter.

        Must be called with a running event loop on Python < 3.10, since the
        worker queues bind to it.
        """
        config = config or DispatchConfig()
        workers = {
            source: [
                TargetWorker(f"{source}->{adapter.name}", adapter, config)
                for adapter in adapters
            ]
            for source, adapters in adapters_by_source.items()
        }
        return cls(workers, config)

    @property
    def workers(self) -> List[TargetWorker]:
        return [worker for workers in self._workers_by_source.values() for worker in workers]

    def start(self) -> None:
        for worker in self.workers:
            worker.start()
        self._started = True

    def dispatch(self, source: str, point: Point) -> int:
        """Submit a point to every target of a source.

        Returns:
            Number of targets the point was queued for.
        """
        workers = self._workers_by_source.get(source, [])
        if not workers:
            logger.debug(f"No targets for source {source}, discarding {point}")
        for worker in workers:
            worker.submit(point)
        return len(workers)

    async def shutdown(self) -> None:
        """Give queued writes a grace period, then stop all workers."""
        workers = self.workers
        if self._started and workers:
            pending = sum(worker.pending for worker in workers)
            if pending:
                logger.info(
                    f"Waiting up to {self.config.shutdown_grace}s for {pending} queued writes"
                )
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(worker.drain() for worker in workers)),
                    timeout=self.config.shutdown_grace,
                )
            except asyncio.TimeoutError:
                logger.warning("Shutdown grace period expired, abandoning remaining writes")

        for worker in workers:
            await worker.stop()
        self._started = False

    def stats(self) -> Dict[str, dict]:
        return {worker.name: asdict(worker.stats) for worker in self.workers}
