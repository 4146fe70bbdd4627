"""Process-wide hive state.

HiveState owns the device records, the fleet summary and the last-sync record.
The sync orchestrator is the only writer. Every update replaces the affected
record with a new immutable instance in a single assignment, so readers never
observe a half-updated device.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from mothership.models.hive import (
    DeviceRecord,
    DeviceStatus,
    FleetSummary,
    LastSync,
    Reading,
    StateSnapshot,
)

log = logging.getLogger(__name__)


class HiveState:
    def __init__(self, thing_ids: Iterable[str] = ()):
        self.thing_ids: List[str] = []
        self.bees: Dict[str, DeviceRecord] = {}
        self.summary = FleetSummary()
        self.last_sync = LastSync()
        for thing_id in thing_ids:
            if thing_id not in self.bees:
                self.thing_ids.append(thing_id)
                self.bees[thing_id] = DeviceRecord()

    def __contains__(self, thing_id: str) -> bool:
        return thing_id in self.bees

    def get(self, thing_id: str) -> Optional[DeviceRecord]:
        return self.bees.get(thing_id)

    def last_reading(self, thing_id: str) -> Optional[float]:
        record = self.bees.get(thing_id)
        return record.ldr_value if record else None

    def _update(self, thing_id: str, **changes) -> DeviceRecord:
        record = self.bees[thing_id].model_copy(update=changes)
        self.bees[thing_id] = record
        return record

    def record_read(self, thing_id: str, state: Dict[str, Any], ldr_value: Optional[float], at: datetime) -> DeviceRecord:
        """Successful read. A None ldr_value keeps the previous value."""
        if ldr_value is None:
            ldr_value = self.bees[thing_id].ldr_value
        return self._update(thing_id, last_seen=at, ldr_value=ldr_value,
                            last_cloud_state=state, last_error=None)

    def record_write(self, thing_id: str, at: datetime) -> DeviceRecord:
        return self._update(thing_id, last_write_ok=at)

    def record_error(self, thing_id: str, error: str) -> DeviceRecord:
        return self._update(thing_id, last_error=error)

    def readings(self, thing_ids: Optional[Iterable[str]] = None) -> List[Reading]:
        """Readings in configured order, Things without a value excluded."""
        if thing_ids is None:
            thing_ids = self.thing_ids
        wanted = set(thing_ids)
        return [
            Reading(thing_id, self.bees[thing_id].ldr_value)
            for thing_id in self.thing_ids
            if thing_id in wanted and self.bees[thing_id].ldr_value is not None
        ]

    def set_summary(self, summary: FleetSummary, at: datetime) -> FleetSummary:
        self.summary = summary.model_copy(update={"updated_at": at})
        return self.summary

    def set_last_sync(self, at: datetime, ok: bool, error: Optional[str] = None) -> LastSync:
        self.last_sync = LastSync(at=at, ok=ok, error=error)
        return self.last_sync

    def is_online(self, record: DeviceRecord, now: datetime, window: timedelta) -> bool:
        """Online iff last_seen is strictly less than `window` before now."""
        if record.last_seen is None:
            return False
        return now - record.last_seen < window

    def snapshot(self, now: datetime, window: timedelta, polling: bool = False) -> StateSnapshot:
        bees = {
            thing_id: DeviceStatus(**record.model_dump(), online=self.is_online(record, now, window))
            for thing_id, record in self.bees.items()
        }
        return StateSnapshot(bees=bees, global_summary=self.summary,
                             last_sync=self.last_sync, polling=polling)
