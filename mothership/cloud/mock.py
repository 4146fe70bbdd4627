"""Mock gateway used when no cloud credentials are configured.

Reads return a synthetic state that reuses the last known light value of the
Thing (or a random placeholder), writes succeed without any network effect.
This lets the whole sync cycle run end-to-end in development.
"""
import logging
import random
from typing import Any, Callable, Dict, List, Optional

from mothership.cloud.decorators import mock_data
from mothership.cloud.gateway import PropertyGateway
from mothership.cloud.properties import Property

log = logging.getLogger(__name__)

LDR_MAX = 1023


class MockGateway(PropertyGateway):

    mocked = True

    def __init__(self, last_reading: Optional[Callable[[str], Optional[float]]] = None,
                 rng: Optional[random.Random] = None):
        self.last_reading = last_reading or (lambda thing_id: None)
        self.rng = rng or random.Random()

    @mock_data
    def read_state(self, thing_id: str) -> Dict[str, Any]:
        ldr_value = self.last_reading(thing_id)
        if ldr_value is None:
            ldr_value = self.rng.randint(0, LDR_MAX)
        return {
            "ldr_value": ldr_value,
            "led_count": 0,
            "servo_speed": 0,
            "isBlinking": False,
            "ledcolor": True,
            "youAreTheQueen": False,
            "_mock": True,
        }

    def list_properties(self, thing_id: str) -> List[Property]:
        state = self.read_state(thing_id)
        return [
            Property(id=str(n), name=key, variable_name=key, value=value)
            for n, (key, value) in enumerate(state.items())
            if not key.startswith("_")
        ]

    def publish_property(self, thing_id: str, prop: Property, value: Any) -> dict:
        return {"ok": True, "mocked": True}

    @mock_data
    def publish_many(self, thing_id: str, updates: Dict[str, Any]) -> dict:
        log.debug(f"[{thing_id}] mock publish {updates}")
        return {"ok": True, "mocked": True}

    @mock_data
    def publish_each(self, thing_id: str, updates: Dict[str, Any]) -> dict:
        log.debug(f"[{thing_id}] mock publish {updates}")
        return {"ok": True, "mocked": True}
