"""Pydantic models for the hive state and the values exchanged with the cloud."""
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


class Reading(NamedTuple):
    """A light reading fed to the aggregator. ldr_value may be None or non-numeric."""
    thing_id: str
    ldr_value: Any


class DeviceRecord(BaseModel):
    """Last known state of a single Thing ("bee").

    Lifecycle:
        1. Created at startup for every configured Thing id
        2. Replaced by the sync orchestrator after every read and write
        3. Never deleted while the process runs

    Attributes:
        last_seen: When the Thing was last read successfully
        ldr_value: Last parsed light value (retained across failed reads)
        last_cloud_state: Raw property map from the last successful read
        last_write_ok: When outputs were last published successfully
        last_error: Most recent read or write error (cleared by a successful read)
    """
    model_config = ConfigDict(frozen=True)

    last_seen: Optional[datetime] = None
    ldr_value: Optional[float] = None
    last_cloud_state: Optional[Dict[str, Any]] = None
    last_write_ok: Optional[datetime] = None
    last_error: Optional[str] = None


class DeviceStatus(DeviceRecord):
    """DeviceRecord plus the online flag derived at query time."""
    online: bool = False


class FleetSummary(BaseModel):
    """Fleet-wide decision computed by the aggregator.

    Attributes:
        avg_light: Mean of all numeric light readings (None without readings)
        low_light: avg_light below the threshold (None when unknown)
        queen_thing_id: Thing with the highest reading (first one wins ties)
        reason: Human readable explanation of the queen selection
        updated_at: When the orchestrator stored this summary
    """
    model_config = ConfigDict(frozen=True)

    updated_at: Optional[datetime] = None
    avg_light: Optional[float] = None
    low_light: Optional[bool] = None
    queen_thing_id: Optional[str] = None
    reason: Optional[str] = None


class ActuatorOutputs(BaseModel):
    """Target actuator state for one Thing.

    Field aliases are the cloud property keys; as_properties() returns them in
    publish order.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_blinking: bool = Field(alias="isBlinking")
    led_count: int = Field(ge=0, le=12)
    ledcolor: bool
    servo_speed: int = Field(ge=0, le=180)
    you_are_the_queen: bool = Field(alias="youAreTheQueen")

    def as_properties(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class LastSync(BaseModel):
    """Outcome of the most recent sync cycle."""
    model_config = ConfigDict(frozen=True)

    at: Optional[datetime] = None
    ok: Optional[bool] = None
    error: Optional[str] = None


class StateSnapshot(BaseModel):
    """Complete view of the hive returned by /state and /sync."""
    model_config = ConfigDict(populate_by_name=True)

    bees: Dict[str, DeviceStatus] = Field(default_factory=dict)
    global_summary: FleetSummary = Field(default_factory=FleetSummary, alias="global")
    last_sync: LastSync = Field(default_factory=LastSync, alias="lastSync")
    polling: bool = False


class OverrideResult(BaseModel):
    """Result of a manual override."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    thing_id: str = Field(alias="thingId")
    updates: Dict[str, Any] = Field(default_factory=dict)
    mocked: bool = False
