"""
Constant-arrival-rate scheduler and the virtual-user pool it drives.

The scheduler is a single pacing loop: it attempts one dispatch every
``time_unit / rate`` seconds and never waits for a virtual user to become
free.  When every one of the ``max_vus`` users is busy the attempt is
dropped and counted, which keeps the arrival rate independent of how slow
the target is (an open model) and keeps memory bounded.

Each virtual user is driven by its own worker thread.  ``preallocated_vus``
workers are started before the first tick so they can take work at time
zero; further workers are started lazily, up to ``max_vus``.

Key Concepts Demonstrated:
- Drift-free pacing (tick *i* is scheduled at ``start + i * interval``)
- Drop-and-count backpressure instead of an unbounded queue
- Graceful drain with an explicit hard deadline for stragglers
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from loadgen.metrics import MetricsAggregator
from loadgen.models import ScenarioConfig, SharedContext
from loadgen.virtual_user import VirtualUser

logger = logging.getLogger(__name__)

_STOP = object()


class _Worker:
    """Thread that feeds iterations to one :class:`VirtualUser`."""

    def __init__(self, vu: VirtualUser, pool: VirtualUserPool) -> None:
        self.vu = vu
        self._pool = pool
        self._inbox: queue.SimpleQueue = queue.SimpleQueue()
        self._settled = False
        self._thread = threading.Thread(
            target=self._loop, name=f"vu-{vu.vu_id}", daemon=True
        )
        self._thread.start()

    def submit(self, context: SharedContext | None) -> None:
        self._inbox.put(context)

    def stop(self) -> None:
        self._inbox.put(_STOP)

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _loop(self) -> None:
        while True:
            item = self._inbox.get()
            if item is _STOP:
                return
            self._settled = False
            try:
                self.vu.run_iteration(item, self._settle)
            except Exception:
                logger.exception("VU %s iteration crashed", self.vu.vu_id)
            finally:
                if not self._settled:
                    self._pool._release(self)

    def _settle(self, record: Callable[[], None]) -> None:
        self._settled = True
        self._pool._settle(self, record)


class VirtualUserPool:
    """
    Bounded pool of virtual users.

    Args:
        factory: Called with a 1-based VU id to create each virtual user.
        preallocated: Users created by :meth:`start`.
        max_vus: Upper bound on users, and so on in-flight iterations.
    """

    def __init__(
        self,
        factory: Callable[[int], VirtualUser],
        preallocated: int,
        max_vus: int,
    ) -> None:
        if max_vus < 1:
            raise ValueError("max_vus must be at least 1")
        if not 0 <= preallocated <= max_vus:
            raise ValueError("preallocated must be between 0 and max_vus")
        self._factory = factory
        self.preallocated = preallocated
        self.max_vus = max_vus
        self._cond = threading.Condition()
        self._workers: list[_Worker] = []
        self._idle: deque[_Worker] = deque()
        self._in_flight = 0
        self._closed = False

    @property
    def size(self) -> int:
        """Number of virtual users created so far."""
        with self._cond:
            return len(self._workers)

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    @property
    def virtual_users(self) -> list[VirtualUser]:
        with self._cond:
            return [worker.vu for worker in self._workers]

    def _new_worker(self) -> _Worker:
        worker = _Worker(self._factory(len(self._workers) + 1), self)
        self._workers.append(worker)
        return worker

    def start(self) -> None:
        """Create and start the preallocated virtual users."""
        with self._cond:
            while len(self._workers) < self.preallocated:
                self._idle.append(self._new_worker())
        logger.info("Preallocated %d virtual users (max %d)", self.preallocated, self.max_vus)

    def try_dispatch(self, context: SharedContext | None) -> bool:
        """
        Hand one iteration to an idle virtual user.

        Returns:
            ``True`` if the iteration was dispatched, ``False`` if all
            ``max_vus`` users are busy.  Never blocks.

        Raises:
            RuntimeError: If the pool has been shut down.
        """
        with self._cond:
            if self._closed:
                raise RuntimeError("virtual user pool is shut down")
            if self._idle:
                worker = self._idle.popleft()
            elif len(self._workers) < self.max_vus:
                worker = self._new_worker()
                logger.debug("Grew pool to %d virtual users", len(self._workers))
            else:
                return False
            self._in_flight += 1
        worker.submit(context)
        return True

    def _release_locked(self, worker: _Worker) -> None:
        self._in_flight -= 1
        self._idle.append(worker)
        self._cond.notify_all()

    def _release(self, worker: _Worker) -> None:
        with self._cond:
            self._release_locked(worker)

    def _settle(self, worker: _Worker, record: Callable[[], None]) -> None:
        """Record an iteration's result and release *worker* as one step."""
        with self._cond:
            try:
                record()
            finally:
                self._release_locked(worker)

    def abandon_in_flight(self, aggregator: MetricsAggregator) -> int:
        """
        Count in-flight iterations as interrupted and freeze *aggregator*.

        Both happen under the pool lock, the same lock a finishing
        iteration holds while it records its result and releases its user.
        Every dispatched iteration therefore ends up either recorded or
        interrupted, never both.

        Returns:
            The number of iterations counted as interrupted.
        """
        with self._cond:
            stragglers = self._in_flight
            if stragglers:
                aggregator.record_interrupted(stragglers)
            aggregator.freeze()
            return stragglers

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no iteration is in flight; ``False`` on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._in_flight == 0, timeout)

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """
        Stop every worker thread.

        Workers still running an iteration exit after it finishes; with
        ``wait=False`` they are left to do so in the background.
        """
        with self._cond:
            self._closed = True
            workers = list(self._workers)
        for worker in workers:
            worker.stop()
        if wait:
            for worker in workers:
                worker.join(timeout)


@dataclass(frozen=True)
class ScheduleStats:
    """What the pacing loop did during one run."""

    ticks: int
    dispatched: int
    dropped: int
    interrupted: int
    elapsed: float


class ArrivalScheduler:
    """
    Pace iteration starts to realize ``config.rate`` within ``max_vus``.

    Args:
        config: Pacing and concurrency settings.
        pool: Virtual-user pool that runs the iterations.
        aggregator: Receives saturation-drop and interruption counts.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        config: ScenarioConfig,
        pool: VirtualUserPool,
        aggregator: MetricsAggregator,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.pool = pool
        self.aggregator = aggregator
        self._clock = clock
        self._stop = threading.Event()

    def stop(self) -> None:
        """Stop issuing ticks; in-flight iterations still drain."""
        self._stop.set()

    def run(self, context: SharedContext | None) -> ScheduleStats:
        """
        Run the pacing loop, then drain in-flight iterations.

        Args:
            context: Shared context handed to every dispatched iteration.

        Returns:
            Tick, dispatch, drop and interruption counts for the run.
        """
        config = self.config
        interval = config.tick_interval
        logger.info(
            "Starting arrival-rate run: %.2f iterations per %.2fs for %.2fs (max %d VUs)",
            config.rate,
            config.time_unit,
            config.duration,
            config.max_vus,
        )

        ticks = dispatched = dropped = 0
        start = self._clock()
        for index in range(config.expected_iterations):
            delay = start + index * interval - self._clock()
            if delay > 0 and self._stop.wait(delay):
                break
            if self._stop.is_set() or self._clock() - start >= config.duration:
                break

            ticks += 1
            if self.pool.try_dispatch(context):
                dispatched += 1
            else:
                dropped += 1
                self.aggregator.record_drop()
                logger.debug("Tick %d dropped: all %d VUs busy", index, config.max_vus)

        if dropped:
            logger.warning(
                "%d of %d iterations dropped because all %d VUs were busy",
                dropped,
                ticks,
                config.max_vus,
            )

        interrupted = self._drain()
        elapsed = self._clock() - start
        logger.info(
            "Run finished: %d dispatched, %d dropped, %d interrupted in %.2fs",
            dispatched,
            dropped,
            interrupted,
            elapsed,
        )
        return ScheduleStats(
            ticks=ticks,
            dispatched=dispatched,
            dropped=dropped,
            interrupted=interrupted,
            elapsed=elapsed,
        )

    def _drain(self) -> int:
        grace = self.config.graceful_stop
        if self.pool.wait_idle(grace):
            return 0

        stragglers = self.pool.abandon_in_flight(self.aggregator)
        if stragglers:
            logger.warning(
                "Graceful stop of %.2fs elapsed; abandoning %d in-flight iterations",
                grace,
                stragglers,
            )
        return stragglers
