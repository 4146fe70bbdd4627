"""
Polling Control API

Routes prefixed with /polling (configured in main.py):
    - POST /polling/start -> Start the background sync ticker (no-op if running)
    - POST /polling/stop  -> Stop the ticker (a cycle in flight completes)
"""
from fastapi import APIRouter

from mothership.core.hive_manager import hive_manager

router = APIRouter()


@router.post("/start")
async def start_polling():
    hive_manager.start_polling()
    return {"ok": True, "polling": True}


@router.post("/stop")
async def stop_polling():
    hive_manager.stop_polling()
    return {"ok": True, "polling": False}
