"""
Flight state engine.

Per tick:
1. Simulator advances every flight (the only writer)
2. Alert monitor evaluates comm-loss and zone conditions
3. The readable snapshot is swapped in one assignment
4. Recording is dispatched for registered flights (fire-and-forget)
5. The snapshot and new alerts are published to subscribers

Readers only ever see a whole pre-tick or post-tick snapshot.
"""

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from contracts.validation import FlightSnapshot, SnapshotMessage, TickMessage
from simulation.alerts import AlertMonitor
from simulation.broadcast import Broadcaster, Subscription
from simulation.config import EngineConfig
from simulation.errors import NotFoundError, PersistenceError, ValidationError
from simulation.metrics import (
    FLIGHTS_ACTIVE,
    PERSIST_SKIPPED,
    RECORD_RESULTS,
    TICK_LATENCY,
    TICKS_TOTAL,
)
from simulation.models import Alert, RestrictedZone, utcnow
from simulation.recorder import PositionRecorder, RecordingRegistry, RecordOutcome, RecordResult
from simulation.simulator import FlightSimulator
from simulation.store import InMemoryPositionStore, PositionStore
from simulation.zones import DEFAULT_ZONES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSnapshot:
    """Consistent set of flight states as of the end of a tick."""
    sequence: int
    timestamp: datetime
    flights: Tuple[FlightSnapshot, ...]
    _by_id: Dict[str, FlightSnapshot] = field(default_factory=dict, repr=False, compare=False)

    def get(self, flight_id: str) -> Optional[FlightSnapshot]:
        return self._by_id.get(flight_id)

    def __len__(self) -> int:
        return len(self.flights)


class FlightEngine:
    """Owns the simulated population and every service around it."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[PositionStore] = None,
        rng: Optional[random.Random] = None,
        zones: Iterable[RestrictedZone] = DEFAULT_ZONES,
    ):
        self.config = (config or EngineConfig()).validate()
        self.simulator = FlightSimulator(self.config, rng)
        self.monitor = AlertMonitor(zones)
        self.registry = RecordingRegistry()
        self.recorder = PositionRecorder(
            store or InMemoryPositionStore(),
            max_positions=self.config.max_recorded_positions,
            epsilon=self.config.position_epsilon,
        )
        self.broadcaster = Broadcaster()

        self._sequence = 0
        self._current: EngineSnapshot = EngineSnapshot(0, utcnow(), ())
        self._pending: set[str] = set()
        self._record_results: Dict[str, RecordResult] = {}
        self._persist_tasks: set[asyncio.Task] = set()
        self._tick_task: Optional[asyncio.Task] = None
        self._cleanup_task: Optional[asyncio.Task] = None

        self.simulator.seed()
        self._swap_snapshot()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def step(self) -> Tuple[EngineSnapshot, List[Alert]]:
        """Simulate and evaluate alerts, then swap in the new snapshot."""
        flights = self.simulator.step()
        new_alerts = self.monitor.evaluate(flights)
        return self._swap_snapshot(), new_alerts

    async def tick(self) -> List[Alert]:
        """Run one full tick. Returns the alerts created by it."""
        started = time.time()

        snapshot, new_alerts = self.step()
        self._dispatch_recordings(snapshot)

        message = TickMessage(
            timestamp=snapshot.timestamp,
            sequence=snapshot.sequence,
            flights=snapshot.flights,
            alerts=tuple(a.to_payload() for a in new_alerts),
        )
        self.broadcaster.publish(message.to_wire())

        TICKS_TOTAL.inc()
        TICK_LATENCY.observe(time.time() - started)
        return new_alerts

    def _swap_snapshot(self) -> EngineSnapshot:
        flights = tuple(f.snapshot() for f in self.simulator.flights())
        self._sequence += 1
        snapshot = EngineSnapshot(
            sequence=self._sequence,
            timestamp=utcnow(),
            flights=flights,
            _by_id={f.id: f for f in flights},
        )
        self._current = snapshot
        FLIGHTS_ACTIVE.set(len(flights))
        return snapshot

    # ------------------------------------------------------------------
    # Recording dispatch
    # ------------------------------------------------------------------

    def _dispatch_recordings(self, snapshot: EngineSnapshot) -> None:
        loop = asyncio.get_running_loop()
        for flight in snapshot.flights:
            if not self.registry.is_recording(flight.id):
                continue
            # One write in flight per flight id; the next tick re-checks
            if flight.id in self._pending:
                PERSIST_SKIPPED.inc()
                logger.debug(f"Recording for {flight.id} still running, skipping this tick")
                continue
            self._pending.add(flight.id)
            task = loop.create_task(self._persist(flight))
            self._persist_tasks.add(task)
            task.add_done_callback(self._persist_tasks.discard)

    async def _persist(self, flight: FlightSnapshot) -> None:
        loop = asyncio.get_running_loop()
        timeout = self.config.persist_timeout_seconds

        future = loop.run_in_executor(None, functools.partial(
            self.recorder.record_if_changed,
            flight.id,
            flight.lat,
            flight.lng,
            flight.heading,
            flight.altitude,
            flight.speed,
            flight.updated_at,
        ))
        future.add_done_callback(functools.partial(self._persist_done, flight.id))

        try:
            await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError:
            # The write keeps running; its real outcome is counted when it finishes
            self._record_results[flight.id] = RecordResult.failed(
                flight.id, f"Timed out after {timeout}s"
            )
            logger.warning(f"Recording for flight {flight.id} timed out after {timeout}s")
        except Exception as e:
            logger.error(f"Recording for flight {flight.id} failed: {e}", exc_info=True)

    def _persist_done(self, flight_id: str, future: asyncio.Future) -> None:
        self._pending.discard(flight_id)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            RECORD_RESULTS.labels(outcome=RecordOutcome.FAILED.value).inc()
            self._record_results[flight_id] = RecordResult.failed(flight_id, str(error))
            return
        self._record_results[flight_id] = future.result()

    async def drain(self) -> None:
        """Wait for in-flight recording tasks."""
        if self._persist_tasks:
            await asyncio.gather(*list(self._persist_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def start(self) -> None:
        """Start the tick loop and the retention housekeeping loop."""
        self.resume()
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    def resume(self) -> None:
        if not self.running:
            self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())
            logger.info(f"Flight engine started with {self.config.tick_ms}ms ticks")

    async def pause(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Flight engine paused")

    async def stop(self) -> None:
        await self.pause()
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.drain()
        logger.info("Flight engine stopped")

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.tick_seconds
        while True:
            started = loop.time()
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in tick loop: {e}", exc_info=True)
            await asyncio.sleep(max(0.0, interval - (loop.time() - started)))

    async def _cleanup_loop(self) -> None:
        interval = self.config.cleanup_interval_seconds
        logger.info(f"Starting position log cleanup (interval: {interval}s, retention: {self.config.retention_days} days)")
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.wait_for(
                    asyncio.to_thread(self.recorder.cleanup, self.config.retention_days),
                    timeout=self.config.persist_timeout_seconds,
                )
            except (PersistenceError, asyncio.TimeoutError) as e:
                logger.warning(f"Position log cleanup failed, retrying next interval: {e}")

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def sequence(self) -> int:
        return self._current.sequence

    def snapshot(self) -> EngineSnapshot:
        return self._current

    def flights(self) -> Tuple[FlightSnapshot, ...]:
        return self._current.flights

    def get_flight(self, flight_id: str) -> Optional[FlightSnapshot]:
        return self._current.get(flight_id)

    def flight_count(self) -> int:
        return len(self._current)

    def alerts(self) -> List[Alert]:
        return self.monitor.alerts()

    def flight_alerts(self, flight_id: str) -> List[Alert]:
        return self.monitor.flight_alerts(flight_id)

    def zones(self) -> List[RestrictedZone]:
        return self.monitor.zones

    def recording_status(self, flight_id: str) -> Optional[RecordResult]:
        return self._record_results.get(flight_id)

    def recording_flights(self) -> List[str]:
        return self.registry.flight_ids()

    def snapshot_message(self) -> SnapshotMessage:
        snapshot = self._current
        return SnapshotMessage(
            timestamp=snapshot.timestamp,
            sequence=snapshot.sequence,
            flights=snapshot.flights,
            alerts=tuple(a.to_payload() for a in self.monitor.alerts()),
        )

    def subscribe(self) -> Subscription:
        """New subscription whose first message is the current full snapshot."""
        return self.broadcaster.subscribe(initial=self.snapshot_message().to_wire())

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def _require_flight(self, flight_id: Optional[str]) -> str:
        flight_id = str(flight_id or "").strip()
        if not flight_id:
            raise ValidationError("flightId is required")
        if self.get_flight(flight_id) is None:
            raise NotFoundError(f"Flight {flight_id} not found")
        return flight_id

    async def start_recording(self, flight_id: str) -> str:
        """Opt a flight into recording, starting from an empty log."""
        flight_id = self._require_flight(flight_id)
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.recorder.start, flight_id),
                timeout=self.config.persist_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise PersistenceError(f"Timed out starting recording for {flight_id}") from e
        self.registry.start(flight_id)
        logger.info(f"Recording started for flight {flight_id}")
        return flight_id

    def stop_recording(self, flight_id: str) -> bool:
        """Stop recording; stored positions are kept. Returns False if it was not recording."""
        flight_id = str(flight_id or "").strip()
        if not flight_id:
            raise ValidationError("flightId is required")
        if not self.registry.is_recording(flight_id) and self.get_flight(flight_id) is None:
            raise NotFoundError(f"Flight {flight_id} not found")
        stopped = self.registry.stop(flight_id)
        if stopped:
            logger.info(f"Recording stopped for flight {flight_id}")
        return stopped

    def dismiss_alert(self, alert_id: str) -> bool:
        alert_id = str(alert_id or "").strip()
        if not alert_id:
            raise ValidationError("alertId is required")
        return self.monitor.dismiss(alert_id)

    def reseed(self, count: Optional[int] = None) -> EngineSnapshot:
        """
        Replace the population with `count` new flights (configured default if None).

        Live alerts and recording registrations belong to the old flights
        and are cleared.
        """
        if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count <= 0):
            raise ValidationError(f"count must be a positive integer, got {count!r}")
        if count is not None and count > self.config.max_flight_count:
            raise ValidationError(f"count must be at most {self.config.max_flight_count}, got {count}")

        self.simulator.seed(count)
        self.monitor.clear()
        self.registry.clear()
        self._record_results.clear()
        self.recorder.prune_locks(keep=self._pending)
        snapshot = self._swap_snapshot()
        self.broadcaster.publish(self.snapshot_message().to_wire())
        logger.info(f"Population reseeded with {len(snapshot)} flights")
        return snapshot

    def clear_alerts(self) -> int:
        """Drop every live alert. Returns how many were removed."""
        removed = len(self.monitor.alerts())
        self.monitor.clear()
        logger.info(f"Cleared {removed} alerts")
        return removed

    def delete_recording(self, flight_id: str) -> bool:
        """Stop recording and drop the stored log. Returns False if there was none."""
        self.registry.stop(flight_id)
        self._record_results.pop(flight_id, None)
        return self.recorder.delete(flight_id)
