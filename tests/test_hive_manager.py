"""Tests for the hive manager sync cycle, polling and overrides."""
import asyncio
import gc
import time
from datetime import datetime, timedelta, timezone

import pytest

from conftest import OUTPUT_KEYS, THING_IDS, FakeClock, StubGateway
from mothership.core.hive_manager import hive_manager, parse_light
from mothership.exceptions import (
    GatewayError,
    NotFoundError,
    SyncError,
    UnknownPropertyError,
    ValidationError,
)


class SlowReadGateway(StubGateway):
    def read_state(self, thing_id):
        time.sleep(0.5)
        return super().read_state(thing_id)


def test_parse_light():
    assert parse_light(412) == 412.0
    assert parse_light("17.5") == 17.5
    assert parse_light(None) is None
    assert parse_light(True) is None
    assert parse_light("dark") is None
    assert parse_light(float("inf")) is None


@pytest.mark.asyncio
async def test_sync_cycle(hive, stub_gateway):
    snapshot = await hive.sync_once()

    summary = snapshot.global_summary
    assert summary.avg_light == pytest.approx(233.333, rel=1e-3)
    assert summary.low_light is False
    assert summary.queen_thing_id == "bee-b"
    assert summary.reason == "queen=max_ldr(300)"
    assert summary.updated_at is not None

    assert snapshot.last_sync.ok is True
    assert snapshot.last_sync.error is None

    for thing_id in THING_IDS:
        bee = snapshot.bees[thing_id]
        assert bee.online is True
        assert bee.last_error is None
        assert bee.last_write_ok is not None
        published = stub_gateway.published_for(thing_id)
        assert [key for key, _ in published] == OUTPUT_KEYS

    assert dict(stub_gateway.published_for("bee-b")) == {
        "isBlinking": False,
        "led_count": 3,
        "ledcolor": True,
        "servo_speed": 40,
        "youAreTheQueen": True,
    }
    assert dict(stub_gateway.published_for("bee-c"))["youAreTheQueen"] is False
    assert snapshot.bees["bee-a"].last_cloud_state["ldr_value"] == 100


@pytest.mark.asyncio
async def test_low_light_sets_blinking(hive, stub_gateway):
    stub_gateway.readings = {"bee-a": 10, "bee-b": 20, "bee-c": 30}
    await hive.sync_once()
    outputs = dict(stub_gateway.published_for("bee-a"))
    assert outputs["isBlinking"] is True
    assert outputs["servo_speed"] == 140


@pytest.mark.asyncio
async def test_read_failure_is_isolated(hive, stub_gateway):
    stub_gateway.read_errors["bee-c"] = GatewayError("List props failed (bee-c): 500 boom")
    snapshot = await hive.sync_once()

    assert snapshot.last_sync.ok is True
    assert snapshot.bees["bee-c"].last_error == "List props failed (bee-c): 500 boom"
    assert snapshot.bees["bee-c"].online is False
    assert snapshot.bees["bee-a"].last_error is None
    # bee-c does not contribute to the summary
    assert snapshot.global_summary.avg_light == pytest.approx(200.0)
    assert snapshot.global_summary.queen_thing_id == "bee-b"
    # it still receives outputs
    assert len(stub_gateway.published_for("bee-c")) == len(OUTPUT_KEYS)


@pytest.mark.asyncio
async def test_failed_read_keeps_previous_value(hive, stub_gateway):
    await hive.sync_once()
    first_seen = hive.state.get("bee-a").last_seen
    stub_gateway.read_errors["bee-a"] = GatewayError("offline")
    await hive.sync_once()
    record = hive.state.get("bee-a")
    assert record.ldr_value == 100
    assert record.last_seen == first_seen
    assert record.last_error == "offline"


@pytest.mark.asyncio
async def test_stale_values_contribute_when_enabled(stub_gateway):
    hive_manager.configure(THING_IDS, gateway=stub_gateway, aggregate_stale=True)
    await hive_manager.sync_once()
    stub_gateway.read_errors["bee-b"] = GatewayError("offline")
    stub_gateway.readings["bee-a"] = 400
    snapshot = await hive_manager.sync_once()
    # bee-b keeps contributing its last value of 300
    assert snapshot.global_summary.avg_light == pytest.approx((400 + 300 + 300) / 3)
    assert snapshot.global_summary.queen_thing_id == "bee-a"


@pytest.mark.asyncio
async def test_non_numeric_reading_keeps_previous_value(hive, stub_gateway):
    await hive.sync_once()
    stub_gateway.readings["bee-a"] = "garbage"
    snapshot = await hive.sync_once()
    bee = snapshot.bees["bee-a"]
    assert bee.ldr_value == 100
    assert bee.last_error is None
    assert bee.last_cloud_state["ldr_value"] == "garbage"


@pytest.mark.asyncio
async def test_no_readings_yields_no_data(hive, stub_gateway):
    for thing_id in THING_IDS:
        stub_gateway.read_errors[thing_id] = GatewayError("down")
    snapshot = await hive.sync_once()
    summary = snapshot.global_summary
    assert summary.avg_light is None
    assert summary.low_light is None
    assert summary.queen_thing_id is None
    assert summary.reason == "no_data"
    assert dict(stub_gateway.published_for("bee-a"))["led_count"] == 0


@pytest.mark.asyncio
async def test_write_failure_aborts_remaining_fields_for_that_thing(hive, stub_gateway):
    stub_gateway.publish_errors[("bee-a", "ledcolor")] = GatewayError("Publish ledcolor failed (bee-a): 500")
    snapshot = await hive.sync_once()

    assert [key for key, _ in stub_gateway.published_for("bee-a")] == ["isBlinking", "led_count"]
    assert snapshot.bees["bee-a"].last_error == "Publish ledcolor failed (bee-a): 500"
    assert snapshot.bees["bee-a"].last_write_ok is None
    for thing_id in ("bee-b", "bee-c"):
        assert len(stub_gateway.published_for(thing_id)) == len(OUTPUT_KEYS)
        assert snapshot.bees[thing_id].last_error is None
    assert snapshot.last_sync.ok is True


@pytest.mark.asyncio
async def test_orchestration_failure_marks_sync_failed(hive, monkeypatch):
    def broken(readings):
        raise RuntimeError("aggregation exploded")

    monkeypatch.setattr("mothership.core.hive_manager.compute_summary", broken)
    with pytest.raises(SyncError, match="aggregation exploded"):
        await hive.sync_once()
    assert hive.state.last_sync.ok is False
    assert hive.state.last_sync.error == "aggregation exploded"
    assert hive.state.last_sync.at is not None


@pytest.mark.asyncio
async def test_tick_swallows_sync_error(hive, monkeypatch):
    def broken(readings):
        raise RuntimeError("boom")

    monkeypatch.setattr("mothership.core.hive_manager.compute_summary", broken)
    assert await hive.tick() is True
    assert hive.state.last_sync.ok is False


@pytest.mark.asyncio
async def test_tick_skipped_while_cycle_in_flight(hive, stub_gateway):
    async with hive._sync_lock:
        assert await hive.tick() is False
    assert stub_gateway.reads == []
    assert await hive.tick() is True
    assert set(stub_gateway.reads) == set(THING_IDS)


@pytest.mark.asyncio
async def test_force_sync_waits_for_cycle_in_flight(hive, stub_gateway):
    await hive._sync_lock.acquire()
    task = asyncio.create_task(hive.force_sync())
    await asyncio.sleep(0.01)
    assert not task.done()
    hive._sync_lock.release()
    snapshot = await task
    assert snapshot.last_sync.ok is True


@pytest.mark.asyncio
async def test_online_window_boundary(stub_gateway):
    seen = datetime(2024, 1, 1, tzinfo=timezone.utc)
    clock = FakeClock(seen)
    hive_manager.configure(THING_IDS, gateway=stub_gateway, online_window_ms=10_000, clock=clock)
    await hive_manager.sync_once()

    assert hive_manager.get_snapshot(seen + timedelta(milliseconds=9_999)).bees["bee-a"].online is True
    assert hive_manager.get_snapshot(seen + timedelta(seconds=10)).bees["bee-a"].online is False
    clock.now = seen + timedelta(seconds=11)
    assert hive_manager.get_snapshot().bees["bee-a"].online is False


def test_never_seen_is_offline(hive):
    snapshot = hive.get_snapshot()
    assert all(not bee.online for bee in snapshot.bees.values())
    assert snapshot.last_sync.ok is None


@pytest.mark.asyncio
async def test_gateway_timeout_recorded_as_error():
    gateway = SlowReadGateway({"bee-a": 100})
    hive_manager.configure(["bee-a"], gateway=gateway, timeout=0.05)
    snapshot = await hive_manager.sync_once()
    assert "Timeout" in snapshot.bees["bee-a"].last_error
    assert snapshot.global_summary.reason == "no_data"


@pytest.mark.asyncio
async def test_mock_mode_end_to_end():
    hive_manager.configure(THING_IDS)
    assert hive_manager.mocked is True
    snapshot = await hive_manager.sync_once()
    assert snapshot.last_sync.ok is True
    assert snapshot.global_summary.queen_thing_id in THING_IDS
    for bee in snapshot.bees.values():
        assert 0 <= bee.ldr_value <= 1023
        assert bee.last_cloud_state["_mock"] is True
        assert bee.last_write_ok is not None

    # mock reads reuse the last known value
    before = {t: b.ldr_value for t, b in snapshot.bees.items()}
    snapshot = await hive_manager.sync_once()
    assert {t: b.ldr_value for t, b in snapshot.bees.items()} == before


@pytest.mark.asyncio
async def test_start_and_stop_polling(stub_gateway):
    hive_manager.configure(THING_IDS, gateway=stub_gateway, poll_interval=0.01)
    assert hive_manager.polling is False
    assert hive_manager.start_polling() is True
    assert hive_manager.start_polling() is False
    assert hive_manager.polling is True

    task = hive_manager._poll_task
    await asyncio.sleep(0.1)

    assert hive_manager.stop_polling() is True
    assert hive_manager.stop_polling() is False
    assert hive_manager.polling is False
    await asyncio.gather(task, return_exceptions=True)
    await asyncio.sleep(0.05)

    assert hive_manager.state.last_sync.ok is True
    assert stub_gateway.reads.count("bee-a") >= 2


@pytest.mark.asyncio
async def test_override_publishes_in_order(hive, stub_gateway):
    result = await hive.override("bee-a", {"led_count": "7", "ledcolor": True, "servo_speed": 90})
    assert result.ok is True
    assert result.thing_id == "bee-a"
    assert result.updates == {"led_count": 7, "ledcolor": True, "servo_speed": 90}
    assert result.mocked is False
    assert stub_gateway.published_for("bee-a") == [("led_count", 7), ("ledcolor", True), ("servo_speed", 90)]
    assert hive.state.get("bee-a").last_write_ok is not None


@pytest.mark.asyncio
async def test_override_resolves_display_name(hive, stub_gateway):
    await hive.override("bee-a", {"YouAreTheQueen": True})
    assert stub_gateway.published_for("bee-a") == [("youAreTheQueen", True)]


@pytest.mark.asyncio
async def test_override_empty_body_is_noop(hive, stub_gateway):
    result = await hive.override("bee-a", {})
    assert result.updates == {}
    assert stub_gateway.published == []
    assert stub_gateway.reads == []


@pytest.mark.asyncio
async def test_override_unknown_thing(hive):
    with pytest.raises(NotFoundError, match="Unknown thingId"):
        await hive.override("bee-z", {"led_count": 1})


@pytest.mark.asyncio
async def test_override_validation_publishes_nothing(hive, stub_gateway):
    with pytest.raises(ValidationError, match="ldr_value is read-only"):
        await hive.override("bee-a", {"led_count": 3, "ldr_value": 5})
    with pytest.raises(ValidationError, match=r"led_count must be int \(0-12\)"):
        await hive.override("bee-a", {"ledcolor": True, "led_count": 13})
    assert stub_gateway.published == []


@pytest.mark.asyncio
async def test_override_unknown_property(hive, stub_gateway):
    with pytest.raises(UnknownPropertyError) as excinfo:
        await hive.override("bee-a", {"led_count": 2, "wing_flaps": 3})
    assert 'Unknown property "wing_flaps"' in str(excinfo.value)
    assert stub_gateway.published == []
    assert "wing_flaps" in hive.state.get("bee-a").last_error


@pytest.mark.asyncio
async def test_override_partial_failure(hive, stub_gateway):
    stub_gateway.publish_errors[("bee-a", "ledcolor")] = GatewayError("Publish ledcolor failed (bee-a): 503")
    with pytest.raises(GatewayError):
        await hive.override("bee-a", {"led_count": 4, "ledcolor": False, "servo_speed": 10})
    # first field stays applied
    assert stub_gateway.published_for("bee-a") == [("led_count", 4)]
    assert hive.state.get("bee-a").last_error == "Publish ledcolor failed (bee-a): 503"


@pytest.mark.asyncio
async def test_override_in_mock_mode():
    hive_manager.configure(THING_IDS)
    result = await hive_manager.override("bee-b", {"isBlinking": True})
    assert result.mocked is True
    assert result.updates == {"isBlinking": True}


@pytest.mark.asyncio
async def test_missing_output_property_keeps_earlier_fields(hive, stub_gateway):
    stub_gateway.missing.add(("bee-a", "servo_speed"))
    snapshot = await hive.sync_once()

    assert [key for key, _ in stub_gateway.published_for("bee-a")] == ["isBlinking", "led_count", "ledcolor"]
    assert snapshot.bees["bee-a"].last_error == 'Unknown property "servo_speed" on thing bee-a (checked variable_name + name)'
    assert snapshot.bees["bee-a"].last_write_ok is None
    for thing_id in ("bee-b", "bee-c"):
        assert len(stub_gateway.published_for(thing_id)) == len(OUTPUT_KEYS)


@pytest.mark.asyncio
async def test_override_still_resolves_every_key_first(hive, stub_gateway):
    stub_gateway.missing.add(("bee-a", "servo_speed"))
    with pytest.raises(UnknownPropertyError):
        await hive.override("bee-a", {"led_count": 2, "servo_speed": 90})
    assert stub_gateway.published == []


class SlowListGateway(StubGateway):
    def list_properties(self, thing_id):
        time.sleep(0.2)
        return super().list_properties(thing_id)


@pytest.mark.asyncio
async def test_cancelled_tick_collects_cycle_failure(monkeypatch):
    def broken(readings):
        raise RuntimeError("aggregation exploded")

    reported = []
    asyncio.get_running_loop().set_exception_handler(lambda loop, context: reported.append(context))
    monkeypatch.setattr("mothership.core.hive_manager.compute_summary", broken)
    hive_manager.configure(THING_IDS, gateway=SlowListGateway({"bee-a": 1}))

    tick = asyncio.create_task(hive_manager.tick())
    await asyncio.sleep(0.05)
    tick.cancel()
    with pytest.raises(asyncio.CancelledError):
        await tick
    # the shielded cycle finishes on its own and fails
    await asyncio.sleep(0.6)
    del tick
    gc.collect()

    assert hive_manager.state.last_sync.ok is False
    assert hive_manager.state.last_sync.error == "aggregation exploded"
    assert not [c for c in reported if "never retrieved" in c.get("message", "")]


def test_sync_in_successive_event_loops(stub_gateway):
    hive_manager.configure(THING_IDS, gateway=stub_gateway)
    for _ in range(2):
        snapshot = asyncio.run(hive_manager.sync_once())
        assert snapshot.last_sync.ok is True
        assert snapshot.global_summary.queen_thing_id == "bee-b"


@pytest.mark.asyncio
async def test_override_wraps_unexpected_errors(hive, stub_gateway):
    stub_gateway.publish_errors[("bee-a", "led_count")] = RuntimeError("socket closed")
    with pytest.raises(GatewayError, match="socket closed") as excinfo:
        await hive.override("bee-a", {"led_count": 5})
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert excinfo.value.thing_id == "bee-a"
    assert hive.state.get("bee-a").last_error == "socket closed"
