"""
Hive Manager - Coordinates polling, decisions and write-back for the fleet.

This is the central hub of the service. It owns the hive state, runs the
sync cycle on a fixed interval and serves the control surface.

Architecture:
    - Singleton pattern (single hive_manager instance)
    - Background ticker task runs a sync cycle every POLL_MS milliseconds
    - Concurrent reads and writes across Things using asyncio.gather
    - Blocking gateway calls run in a dedicated thread pool with timeouts
    - State lives in HiveState and is replaced record by record

Sync Cycle (sync_once):
    1. Read every Thing. Success updates last_seen, ldr_value, the raw state
       and clears last_error. Failure only sets last_error on that Thing.
    2. Aggregate the light values into a FleetSummary (average, low light,
       queen) and store it.
    3. Compute each Thing's outputs and publish them. Success sets
       last_write_ok, failure sets last_error. The first failing field aborts
       the remaining writes for that Thing only.
    4. Store the LastSync record. Only an error escaping the per-Thing guards
       marks the cycle as failed.

Concurrency:
    - Cycles are serialized by _sync_lock. A tick that fires while a cycle is
      still running is skipped; force_sync() waits for its turn.
    - Publishing for one Thing (sync write phase or manual override) holds
      that Thing's lock, so two publish sequences never interleave.
    - Record updates are single assignments on the event loop.

Error Handling:
    - Per-Thing failures are logged and recorded, never raised
    - Gateway timeouts are mapped to GatewayError
    - Override errors propagate to the caller and are recorded on the Thing
"""
import asyncio
import functools
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from mothership.cloud import MockGateway, PropertyGateway, build_gateway
from mothership.core.aggregator import compute_summary
from mothership.core.override import validate_override
from mothership.core.policy import OutputPolicy, compute_outputs
from mothership.core.state import HiveState
from mothership.exceptions import GatewayError, MothershipError, NotFoundError, SyncError
from mothership.models.hive import FleetSummary, OverrideResult, StateSnapshot

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_light(value: Any) -> Optional[float]:
    """Parse a light reading, None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _retrieve_cycle_error(task: asyncio.Future):
    # The shielded cycle may outlive a cancelled tick; read its outcome here
    if not task.cancelled():
        task.exception()


class HiveManager:
    """Owns the hive state and runs the poll -> aggregate -> decide -> write cycle."""

    def __init__(self):
        self.state = HiveState()
        self.gateway: PropertyGateway = MockGateway(last_reading=self.last_reading)
        self.policy = OutputPolicy()
        self.online_window = timedelta(seconds=10)
        self.aggregate_stale = False
        self.timeout = 10.0
        self.clock: Callable[[], datetime] = utcnow
        self._poll_interval = 1.5
        self._poll_task: Optional[asyncio.Task] = None
        self._sync_lock = asyncio.Lock()
        self._device_locks: Dict[str, asyncio.Lock] = {}
        self._executor: Optional[ThreadPoolExecutor] = None

    def configure(self, thing_ids: Iterable[str], gateway: Optional[PropertyGateway] = None,
                  poll_interval: float = 1.5, timeout: float = 10.0, online_window_ms: int = 10_000,
                  policy: Optional[OutputPolicy] = None, aggregate_stale: bool = False,
                  clock: Optional[Callable[[], datetime]] = None):
        """Register the fleet and the gateway. Resets all state."""
        if self._poll_task:
            self._poll_task.cancel()
            self._poll_task = None
        self.state = HiveState(thing_ids)
        self.gateway = gateway or MockGateway(last_reading=self.last_reading)
        self.policy = policy or OutputPolicy()
        self.online_window = timedelta(milliseconds=online_window_ms)
        self.aggregate_stale = aggregate_stale
        self.timeout = timeout
        self.clock = clock or utcnow
        self._poll_interval = poll_interval
        self._sync_lock = asyncio.Lock()
        self._device_locks = {thing_id: asyncio.Lock() for thing_id in self.state.thing_ids}

        # Size thread pool based on fleet size
        if self._executor:
            self._executor.shutdown(wait=False)
        pool_size = max(4, len(self.state.thing_ids) * 2)
        self._executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="mothership")
        logger.debug(f"Thread pool initialized with {pool_size} workers for {len(self.state.thing_ids)} thing(s)")

    async def initialize(self, settings, start_polling: Optional[bool] = None):
        """Configure from Settings and optionally start the ticker."""
        gateway = build_gateway(settings, last_reading=self.last_reading)
        self.configure(
            settings.thing_ids,
            gateway=gateway,
            poll_interval=settings.poll_interval,
            timeout=settings.timeout,
            online_window_ms=settings.online_window_ms,
            policy=OutputPolicy(settings.servo_speed_blink, settings.servo_speed_idle),
            aggregate_stale=settings.aggregate_stale,
        )
        mode = "mock" if gateway.mocked else "cloud"
        logger.info(f"Hive manager ready - {len(self.state.thing_ids)} thing(s), {mode} mode")
        for thing_id in self.state.thing_ids:
            logger.info(f"  - {thing_id}")
        if start_polling is None:
            start_polling = settings.poll_autostart
        if start_polling:
            self.start_polling()

    async def shutdown(self):
        """Stop polling and release the thread pool."""
        task = self._poll_task
        self.stop_polling()
        if task:
            try:
                await task
            except asyncio.CancelledError:
                # Expected when cancelling the polling task during shutdown
                pass
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("Hive manager shutdown complete")

    @property
    def thing_ids(self):
        return list(self.state.thing_ids)

    @property
    def mocked(self) -> bool:
        return self.gateway.mocked

    def last_reading(self, thing_id: str) -> Optional[float]:
        return self.state.last_reading(thing_id)

    def _device_lock(self, thing_id: str) -> asyncio.Lock:
        if thing_id not in self._device_locks:
            self._device_locks[thing_id] = asyncio.Lock()
        return self._device_locks[thing_id]

    async def _call(self, func: Callable, *args, timeout: Optional[float] = None) -> Any:
        """Run a blocking gateway call in the executor with timeout protection."""
        timeout = timeout or self.timeout
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, functools.partial(func, *args)),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            raise GatewayError(f"Timeout after {timeout:.0f}s in {func.__name__}")

    # ---- Polling lifecycle ----

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start_polling(self) -> bool:
        """Start the ticker. Returns False if it was already running."""
        if self.polling:
            return False
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Polling started every {self._poll_interval * 1000:.0f}ms")
        return True

    def stop_polling(self) -> bool:
        """Stop the ticker. A cycle already in flight runs to completion."""
        if not self._poll_task:
            return False
        self._poll_task.cancel()
        self._poll_task = None
        logger.info("Polling stopped")
        return True

    async def _poll_loop(self):
        """Background task running one sync per interval at a fixed rate."""
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in polling task: {e}")
            try:
                await asyncio.sleep(max(0.0, self._poll_interval - (loop.time() - started)))
            except asyncio.CancelledError:
                break

    async def tick(self) -> bool:
        """Run a cycle unless one is already in flight. Returns True if it ran."""
        if self._sync_lock.locked():
            logger.debug("Sync still in progress - skipping tick")
            return False
        cycle = asyncio.ensure_future(self.sync_once())
        cycle.add_done_callback(_retrieve_cycle_error)
        try:
            # Shielded so stop_polling() never cuts a cycle in half
            await asyncio.shield(cycle)
        except SyncError:
            # Already logged and stored in last_sync
            pass
        return True

    # ---- Sync cycle ----

    async def force_sync(self) -> StateSnapshot:
        """Run a cycle now, waiting for a cycle in flight to finish first."""
        return await self.sync_once()

    async def sync_once(self) -> StateSnapshot:
        async with self._sync_lock:
            try:
                thing_ids = list(self.state.thing_ids)
                results = await asyncio.gather(*(self._read_device(t) for t in thing_ids))
                fresh = [t for t, ok in zip(thing_ids, results) if ok]

                if self.aggregate_stale:
                    readings = self.state.readings()
                else:
                    readings = self.state.readings(fresh)
                summary = self.state.set_summary(compute_summary(readings), self.clock())
                logger.debug(f"Fleet summary: avg={summary.avg_light} low_light={summary.low_light} "
                             f"queen={summary.queen_thing_id}")

                await asyncio.gather(*(self._write_device(t, summary) for t in thing_ids))
            except Exception as e:
                logger.error(f"Sync failed: {e}")
                self.state.set_last_sync(self.clock(), ok=False, error=str(e))
                raise SyncError(str(e)) from e
            self.state.set_last_sync(self.clock(), ok=True)
        return self.get_snapshot()

    async def _read_device(self, thing_id: str) -> bool:
        """Read one Thing and record the outcome. Returns True on success."""
        try:
            state = await self._call(self.gateway.read_state, thing_id)
            if not isinstance(state, dict):
                raise GatewayError(f"Unexpected state from {thing_id}: {state!r}", thing_id=thing_id)
            ldr_value = parse_light(state.get("ldr_value"))
        except Exception as e:
            logger.warning(f"[{thing_id}] read failed: {e}")
            self.state.record_error(thing_id, str(e))
            return False
        if ldr_value is None:
            logger.debug(f"[{thing_id}] ldr_value {state.get('ldr_value')!r} not numeric - keeping previous value")
        self.state.record_read(thing_id, state, ldr_value, self.clock())
        return True

    async def _write_device(self, thing_id: str, summary: FleetSummary) -> bool:
        """Publish one Thing's outputs and record the outcome. Returns True on success."""
        updates = compute_outputs(summary, thing_id, self.policy).as_properties()
        try:
            async with self._device_lock(thing_id):
                await self._call(self.gateway.publish_each, thing_id, updates,
                                 timeout=self.timeout * (len(updates) + 1))
        except Exception as e:
            logger.warning(f"[{thing_id}] write failed: {e}")
            self.state.record_error(thing_id, str(e))
            return False
        self.state.record_write(thing_id, self.clock())
        return True

    # ---- Control surface ----

    async def override(self, thing_id: str, updates: Dict[str, Any]) -> OverrideResult:
        """Validate and publish a manual override for one Thing.

        All fields are validated and all keys resolved before anything is
        published. A failure while publishing aborts the remaining fields;
        fields already published stay applied.

        Raises:
            NotFoundError: thing_id is not configured
            ValidationError: malformed or read-only field
            GatewayError / UnknownPropertyError / AuthError / CredentialError
        """
        if thing_id not in self.state:
            raise NotFoundError("Unknown thingId (not in THING_IDS env var)")
        clean = validate_override(updates)
        result: Dict[str, Any] = {}
        if clean:
            try:
                async with self._device_lock(thing_id):
                    result = await self._call(self.gateway.publish_many, thing_id, clean,
                                              timeout=self.timeout * (len(clean) + 1))
            except MothershipError as e:
                logger.warning(f"[{thing_id}] override failed: {e}")
                self.state.record_error(thing_id, str(e))
                raise
            except Exception as e:
                logger.error(f"[{thing_id}] override failed: {e}")
                self.state.record_error(thing_id, str(e))
                raise GatewayError(f"Override failed ({thing_id}): {e}", thing_id=thing_id) from e
            self.state.record_write(thing_id, self.clock())
            logger.info(f"[{thing_id}] override applied: {clean}")
        return OverrideResult(thing_id=thing_id, updates=clean, mocked=bool((result or {}).get("mocked")))

    def get_snapshot(self, now: Optional[datetime] = None) -> StateSnapshot:
        """Current state with the online flag derived at `now`."""
        return self.state.snapshot(now or self.clock(), self.online_window, polling=self.polling)


# Global hive manager instance
hive_manager = HiveManager()
