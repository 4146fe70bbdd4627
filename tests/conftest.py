"""Pytest configuration and fixtures."""
import pytest
from fastapi.testclient import TestClient

from mothership.cloud.gateway import PropertyGateway
from mothership.cloud.properties import Property
from mothership.core.hive_manager import hive_manager
from mothership.main import app

THING_IDS = ["bee-a", "bee-b", "bee-c"]
OUTPUT_KEYS = ["isBlinking", "led_count", "ledcolor", "servo_speed", "youAreTheQueen"]


class StubGateway(PropertyGateway):
    """In-memory gateway recording every publish."""

    def __init__(self, readings=None):
        self.readings = dict(readings or {})
        self.read_errors = {}      # thing_id -> exception raised by list_properties
        self.publish_errors = {}   # (thing_id, key) -> exception raised by publish_property
        self.published = []        # (thing_id, key, value)
        self.missing = set()       # (thing_id, key) not defined on the Thing
        self.reads = []

    def list_properties(self, thing_id):
        self.reads.append(thing_id)
        if thing_id in self.read_errors:
            raise self.read_errors[thing_id]
        props = [Property(id="1", name="ldr_value", variable_name="ldr_value",
                          value=self.readings.get(thing_id))]
        for n, key in enumerate(OUTPUT_KEYS, start=2):
            if (thing_id, key) in self.missing:
                continue
            name = "YouAreTheQueen" if key == "youAreTheQueen" else key
            props.append(Property(id=str(n), name=name, variable_name=key, value=None))
        return props

    def publish_property(self, thing_id, prop, value):
        error = self.publish_errors.get((thing_id, prop.key))
        if error:
            raise error
        self.published.append((thing_id, prop.key, value))
        return {"ok": True}

    def published_for(self, thing_id):
        return [(key, value) for tid, key, value in self.published if tid == thing_id]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def reset_hive_manager():
    """Reset hive manager before each test."""
    hive_manager.configure([])
    yield
    hive_manager.configure([])


@pytest.fixture
def stub_gateway():
    return StubGateway({"bee-a": 100, "bee-b": 300, "bee-c": 300})


@pytest.fixture
def hive(stub_gateway):
    """Hive manager configured with three Things and the stub gateway."""
    hive_manager.configure(THING_IDS, gateway=stub_gateway, timeout=5.0)
    return hive_manager


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)
