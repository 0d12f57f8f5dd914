"""Tests for local-first presets and background device sync."""

import asyncio

import pytest

from ledflow_mcp.color.types import Gradient
from ledflow_mcp.device.capabilities import CapabilityDetector
from ledflow_mcp.device.errors import PresetTableFullError
from ledflow_mcp.engine.pipeline import ColorPipeline
from ledflow_mcp.engine.preset_sync import PresetSyncCoordinator, lowest_free_id
from ledflow_mcp.engine.transition import TransitionEngine, TransitionState
from ledflow_mcp.storage.kv_store import KeyValueStore
from ledflow_mcp.storage.presets import (
    ColorPayload,
    EffectPayload,
    Preset,
    PresetKind,
    PresetRepository,
    TransitionPayload,
)

from conftest import BLUE, GREEN, RED, fast_sleep, make_device, make_gradient


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(tmp_path / "state")


@pytest.fixture
def repository(store):
    return PresetRepository(store)


@pytest.fixture
def sync(repository, fake_client):
    pipeline = ColorPipeline(fake_client)
    transitions = TransitionEngine(pipeline, sleep=fast_sleep)
    return PresetSyncCoordinator(repository, fake_client, pipeline, CapabilityDetector(), transitions)


def color_preset(name="Sunset", gradient=None, brightness=200):
    return Preset(PresetKind.COLOR, name, ColorPayload(gradient or make_gradient(RED, BLUE), brightness))


def transition_preset(duration=30.0):
    payload = TransitionPayload(Gradient.solid(RED), 20, Gradient.solid(BLUE), 220, duration)
    return Preset(PresetKind.TRANSITION, "Wake", payload)


class TestLowestFreeId:

    def test_first_gap(self):
        assert lowest_free_id({1, 2, 4}, 1, 250) == 3

    def test_empty_table(self):
        assert lowest_free_id([], 1, 16) == 1

    def test_full_range_raises(self):
        with pytest.raises(PresetTableFullError):
            lowest_free_id(range(1, 17), 1, 16, "desk")


class TestSave:

    @pytest.mark.asyncio
    async def test_save_returns_before_network(self, sync, fake_client, device):
        preset = sync.save_preset(color_preset(), device)
        assert preset.remote_id is None
        assert fake_client.requests == []
        assert sync.in_flight == 1
        await sync.drain()
        assert sync.in_flight == 0

    @pytest.mark.asyncio
    async def test_background_sync_attaches_lowest_free_id(self, sync, fake_client, device):
        fake_client.preset_table = {1: {"n": "Existing"}, 2: {"n": "Other"}}
        preset = sync.save_preset(color_preset(), device)
        await sync.drain()
        assert preset.remote_id == 3
        assert preset.device_id == "desk"
        stored = fake_client.preset_table[3]
        assert stored["n"] == "Sunset"
        assert stored["on"] is True
        assert stored["bri"] == 200
        assert stored["seg"][0]["i"][0] == 0
        assert len(stored["seg"][0]["i"]) == 11

    @pytest.mark.asyncio
    async def test_solid_color_stored_as_segment_color(self, sync, fake_client, device):
        sync.save_preset(color_preset(gradient=Gradient.solid(GREEN)), device)
        await sync.drain()
        assert fake_client.preset_table[1]["seg"] == [{"id": 0, "col": [[0, 255, 0]]}]

    @pytest.mark.asyncio
    async def test_effect_preset_state(self, sync, fake_client, device):
        preset = Preset(PresetKind.EFFECT, "Rainbow", EffectPayload(9, 180, speed=40, palette_id=3))
        sync.save_preset(preset, device)
        await sync.drain()
        stored = fake_client.preset_table[1]
        assert stored["bri"] == 180
        assert stored["seg"] == [{"id": 0, "fx": 9, "sx": 40, "pal": 3}]

    @pytest.mark.asyncio
    async def test_offline_save_stays_local_then_resyncs(self, sync, repository, fake_client, device):
        fake_client.offline = True
        preset = sync.save_preset(color_preset(), device)
        await sync.drain()
        assert preset.remote_id is None
        assert repository.unsynced("desk") == [preset]

        fake_client.offline = False
        assert await sync.resync(device) == 1
        assert preset.remote_id == 1
        assert preset.name == "Sunset"
        assert preset.payload.brightness == 200

    @pytest.mark.asyncio
    async def test_disabled_sync_never_touches_device(self, repository, fake_client, device):
        sync = PresetSyncCoordinator(repository, fake_client, ColorPipeline(fake_client), enabled=False)
        sync.save_preset(color_preset(), device)
        await asyncio.sleep(0)
        assert sync.in_flight == 0
        assert fake_client.requests == []

    def test_save_without_loop_stays_unsynced(self, sync, device):
        preset = sync.save_preset(color_preset(), device)
        assert preset.remote_id is None
        assert sync.in_flight == 0

    @pytest.mark.asyncio
    async def test_full_table_leaves_preset_unsynced(self, sync, fake_client, device):
        fake_client.preset_table = {i: {"n": f"p{i}"} for i in range(1, 251)}
        preset = sync.save_preset(color_preset(), device)
        await sync.drain()
        assert preset.remote_id is None

    @pytest.mark.asyncio
    async def test_concurrent_saves_get_distinct_ids(self, sync, device):
        a = sync.save_preset(color_preset("A"), device)
        b = sync.save_preset(color_preset("B"), device)
        await sync.drain()
        assert {a.remote_id, b.remote_id} == {1, 2}

    @pytest.mark.asyncio
    async def test_resync_racing_background_sync_stores_once(self, sync, fake_client, device):
        preset = sync.save_preset(color_preset(), device)
        await asyncio.sleep(0)
        await asyncio.gather(sync.resync(device), sync.drain())

        saves = [b["psave"] for b in fake_client.bodies if "psave" in b]
        assert saves == [1]
        assert preset.remote_id == 1
        assert set(fake_client.preset_table) == {1}

    @pytest.mark.asyncio
    async def test_push_is_idempotent(self, sync, fake_client, device):
        preset = sync.save_preset(color_preset(), device)
        await sync.drain()
        sent = len(fake_client.bodies)
        assert await sync.push(preset.local_id, device) is False
        assert len(fake_client.bodies) == sent


class TestTransitionPresets:

    @pytest.mark.asyncio
    async def test_stored_as_playlist_of_two_steps(self, sync, fake_client, device):
        fake_client.preset_table = {1: {"n": "Existing"}}
        preset = sync.save_preset(transition_preset(30.0), device)
        await sync.drain()

        assert preset.remote_id == 2
        assert preset.remote_step_ids == [3, 4]
        playlist = fake_client.preset_table[2]["playlist"]
        assert playlist == {
            "ps": [3, 4],
            "dur": [1, 300],
            "transition": [0, 300],
            "repeat": 1,
            "end": 4,
        }
        assert fake_client.preset_table[3]["n"] == "Wake A"
        assert fake_client.preset_table[3]["bri"] == 20
        assert fake_client.preset_table[4]["bri"] == 220

    @pytest.mark.asyncio
    async def test_long_fade_capped(self, sync, fake_client, device):
        sync.save_preset(transition_preset(7200.0), device)
        await sync.drain()
        playlist = fake_client.preset_table[1]["playlist"]
        assert playlist["transition"] == [0, 65535]


class TestApply:

    @pytest.mark.asyncio
    async def test_synced_preset_applied_by_id(self, sync, fake_client, device):
        preset = sync.save_preset(color_preset(), device)
        await sync.drain()
        assert await sync.apply_preset(preset.local_id, device) is True
        assert fake_client.bodies[-1] == {"ps": 1}

    @pytest.mark.asyncio
    async def test_unsynced_color_replayed_locally(self, sync, fake_client, device):
        preset = sync.save_preset(color_preset(gradient=Gradient.solid(GREEN)))
        assert await sync.apply_preset(preset.local_id, device) is True
        assert fake_client.bodies == [{"on": True, "bri": 200, "seg": [{"id": 0, "col": [[0, 255, 0]]}]}]

    @pytest.mark.asyncio
    async def test_color_synced_elsewhere_replayed_locally(self, sync, fake_client, device):
        preset = sync.save_preset(color_preset(), make_device("shelf"))
        await sync.drain()
        assert preset.synced_to("shelf")
        fake_client.bodies.clear()
        await sync.apply_preset(preset.local_id, device)
        assert "ps" not in fake_client.bodies[-1]

    @pytest.mark.asyncio
    async def test_unsynced_effect_uses_set_effect(self, sync, fake_client, device):
        preset = sync.save_preset(Preset(PresetKind.EFFECT, "Fire", EffectPayload(66, 90)))
        await sync.apply_preset(preset.local_id, device)
        assert fake_client.bodies == [{"seg": [{"id": 0, "fx": 66}], "bri": 90}]

    @pytest.mark.asyncio
    async def test_unsynced_transition_runs_locally(self, sync, device):
        preset = sync.save_preset(transition_preset(1.0))
        await sync.apply_preset(preset.local_id, device)
        assert await sync.transitions.wait(device.id) == TransitionState.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_preset(self, sync, device):
        with pytest.raises(KeyError):
            await sync.apply_preset("missing", device)


class TestRepository:

    def test_persisted_across_instances(self, store):
        first = PresetRepository(store)
        preset = first.add(color_preset())
        first.attach_remote_id(preset.local_id, 7, device_id="desk")

        second = PresetRepository(store)
        loaded = second.get(preset.local_id)
        assert loaded.name == "Sunset"
        assert loaded.remote_id == 7
        assert loaded.payload.gradient == preset.payload.gradient

    def test_list_filters_device_presets(self, repository):
        shared = repository.add(color_preset())
        effect = repository.add(Preset(PresetKind.EFFECT, "Fx", EffectPayload(1), device_id="shelf"))
        assert repository.list(device_id="desk") == [shared]
        assert repository.list(device_id="shelf") == [shared, effect]
        assert repository.list(PresetKind.EFFECT) == [effect]

    def test_delete_is_local(self, repository):
        preset = repository.add(color_preset())
        assert repository.delete(preset.local_id) is True
        assert repository.delete(preset.local_id) is False
        assert repository.attach_remote_id(preset.local_id, 1) is False
        assert len(repository) == 0

    def test_changes_published(self, repository):
        seen = []
        repository.changed.subscribe(lambda presets: seen.append(len(presets)))
        preset = repository.add(color_preset())
        repository.attach_remote_id(preset.local_id, 1)
        repository.attach_remote_id(preset.local_id, 1)
        assert seen == [1, 1]

    def test_payload_type_checked(self):
        with pytest.raises(TypeError):
            Preset(PresetKind.EFFECT, "bad", ColorPayload(make_gradient()))
