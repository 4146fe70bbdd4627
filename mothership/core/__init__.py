"""
Core Business Logic Module

This package contains the components that turn light readings into actuator
outputs. They sit between the API layer and the cloud gateway.

Module Organization:

    aggregator.py - compute_summary(): average light, low light flag, queen
    policy.py     - compute_outputs(): LED count/color, blink, servo, queen flag
    override.py   - validate_override(): manual override validation
    state.py      - HiveState: device records, fleet summary, last sync
    hive_manager.py - HiveManager: polling ticker and the sync cycle
        • Singleton: single instance (hive_manager) used throughout the app

Data Flow:

    Ticker / POST /sync -> hive_manager.sync_once()
                               ↓
              gateway.read_state() per Thing (concurrent)
                               ↓
              compute_summary() -> HiveState.summary
                               ↓
              compute_outputs() + gateway.publish_many() per Thing
                               ↓
              HiveState.last_sync -> GET /state
"""
from .aggregator import LOW_LIGHT_THRESHOLD, compute_summary
from .policy import OutputPolicy, compute_outputs
from .state import HiveState

__all__ = ["LOW_LIGHT_THRESHOLD", "compute_summary", "OutputPolicy", "compute_outputs", "HiveState"]
