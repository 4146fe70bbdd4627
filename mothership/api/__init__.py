"""
API Routers Module

FastAPI routers registered in main.py:

    hive.py - State inspection, forced sync and manual overrides
        • No prefix: /state, /sync, /bee/{thing_id}
        • Reads cached state from hive_manager; /sync and overrides call the cloud

    polling.py - Background ticker lifecycle
        • Prefix: /polling
        • Routes: /start, /stop

Routers never touch module globals of the core directly; every call goes
through the hive_manager instance.
"""
from . import hive, polling

__all__ = ["hive", "polling"]
