"""
Data Models for Mothership

Pydantic models used as data transfer objects between the core and the API:

    DeviceRecord      - Last known state of one Thing (immutable, replaced on update)
    DeviceStatus      - DeviceRecord plus the derived online flag
    FleetSummary      - Fleet decision: average light, low light, queen
    ActuatorOutputs   - Outputs published to one Thing
    LastSync          - Outcome of the most recent sync cycle
    StateSnapshot     - Everything above, as returned by /state and /sync
    OverrideResult    - Result of a manual override
    Reading           - (thing_id, ldr_value) input to the aggregator

Snapshots are serialized with aliases (`global`, `lastSync`, `isBlinking`, ...)
so the JSON matches the property names used on the devices.
"""
from .hive import (
    ActuatorOutputs,
    DeviceRecord,
    DeviceStatus,
    FleetSummary,
    LastSync,
    OverrideResult,
    Reading,
    StateSnapshot,
)

__all__ = [
    "ActuatorOutputs",
    "DeviceRecord",
    "DeviceStatus",
    "FleetSummary",
    "LastSync",
    "OverrideResult",
    "Reading",
    "StateSnapshot",
]
