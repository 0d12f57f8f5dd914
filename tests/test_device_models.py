"""Tests for parsed device state, capabilities and the device record."""

import pytest

from ledflow_mcp.config import DeviceEntry
from ledflow_mcp.device.capabilities import (
    RGB_ONLY,
    CapabilityDetector,
    SegmentCapabilities,
    parse_seglc,
)
from ledflow_mcp.device.errors import InvalidResponseError
from ledflow_mcp.device.models import Device, DeviceSnapshot

from conftest import make_state_json


class TestSnapshotParsing:

    def test_full_response(self):
        snapshot = DeviceSnapshot.from_json(make_state_json(on=False, bri=42, led_count=30))
        assert snapshot.state.on is False
        assert snapshot.state.brightness == 42
        assert snapshot.state.preset_id is None
        seg = snapshot.state.segment(0)
        assert seg.length == 30
        assert seg.primary_color == (255, 160, 0)
        assert seg.cct == 127
        assert snapshot.info.version == "0.14.0"

    def test_missing_brightness_rejected(self):
        data = make_state_json()
        del data["state"]["bri"]
        with pytest.raises(InvalidResponseError):
            DeviceSnapshot.from_json(data)

    def test_missing_led_count_rejected(self):
        data = make_state_json()
        del data["info"]["leds"]["count"]
        with pytest.raises(InvalidResponseError):
            DeviceSnapshot.from_json(data)

    def test_non_object_rejected(self):
        with pytest.raises(InvalidResponseError):
            DeviceSnapshot.from_json([1, 2, 3])

    def test_active_preset(self):
        data = make_state_json()
        data["state"]["ps"] = 4
        assert DeviceSnapshot.from_json(data).state.preset_id == 4


class TestCapabilities:

    def test_flags(self):
        caps = SegmentCapabilities.from_flags(0b101)
        assert caps.supports_rgb and caps.supports_cct
        assert not caps.supports_white
        assert caps.flags == 0b101
        assert caps.describe() == "RGB, CCT"

    def test_missing_seglc_is_rgb_only(self):
        assert parse_seglc(None) == {0: RGB_ONLY}
        assert parse_seglc([]) == {0: RGB_ONLY}

    def test_per_segment(self):
        caps = parse_seglc([1, 3, 7])
        assert caps[1].supports_white and not caps[1].supports_cct
        assert caps[2].supports_cct

    def test_detector_falls_back(self):
        detector = CapabilityDetector()
        assert detector.for_segment("desk") == RGB_ONLY
        detector.detect("desk", [5])
        assert detector.for_segment("desk", 0).supports_cct is True
        assert detector.for_segment("desk", 3) == RGB_ONLY
        assert detector.segment_count("desk") == 1
        detector.clear("desk")
        assert detector.get_cached("desk") is None


class TestDevice:

    def test_from_entry(self):
        device = Device.from_entry(DeviceEntry("desk", "10.0.0.2", segment_lengths=[30, 20]))
        assert device.display_name == "desk"
        assert device.base_url == "http://10.0.0.2"
        assert device.segment_length(1) == 20
        assert device.segment_length(2) is None

    def test_explicit_scheme_kept(self):
        device = Device("desk", "https://lights.local/")
        assert device.base_url == "https://lights.local"

    def test_snapshot_overrides_config_lengths(self):
        device = Device("desk", "10.0.0.2", segment_lengths=[120])
        device.apply_snapshot(DeviceSnapshot.from_json(make_state_json(led_count=64)))
        assert device.segment_length(0) == 64
        assert device.segment_lengths == [64]
        assert device.is_on is True
        assert device.name == "WLED"

    def test_unrefreshed_power_unknown(self):
        device = Device("desk", "10.0.0.2")
        assert device.is_on is None
        assert device.to_dict()["brightness"] is None
