"""
Hive State and Control API

Routes (no prefix):
    - GET   /state            -> Current state of every Thing, fleet summary, last sync
    - POST  /sync             -> Run one sync cycle now and return the new state
    - PATCH /bee/{thing_id}   -> Manually publish outputs to one Thing

Design Notes:
    - /state reads cached state only (no cloud calls)
    - /sync waits for a cycle already in flight before running its own
    - Errors are returned as {"error": message} by the handler in main.py:
        NotFoundError 404, ValidationError 400, cloud errors 502, SyncError 500
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body

from mothership.core.hive_manager import hive_manager
from mothership.models.hive import OverrideResult, StateSnapshot

router = APIRouter()


@router.get("/state", response_model=StateSnapshot)
async def get_state():
    """Current state. Each Thing carries an online flag derived from last_seen."""
    return hive_manager.get_snapshot()


@router.post("/sync", response_model=StateSnapshot)
async def force_sync():
    """Run one sync cycle and return the resulting state."""
    return await hive_manager.force_sync()


@router.patch("/bee/{thing_id}", response_model=OverrideResult)
async def override_bee(thing_id: str, updates: Optional[Dict[str, Any]] = Body(default=None)):
    """Publish output overrides to one Thing.

    Body is a map of property key to value, e.g. {"led_count": 7, "ledcolor": true}.
    ldr_value is read-only. led_count must be 0-12 and servo_speed 0-180.
    """
    return await hive_manager.override(thing_id, updates or {})
