import uuid

import pytest

from respotcore.config import (
    BUILD_ID,
    SEMVER,
    VERSION_STRING,
    ConnectConfig,
    DeviceType,
    SessionConfig,
)


@pytest.mark.parametrize("text", ["computer", "COMPUTER", "Computer"])
def test_parse_ignores_case(text):
    assert DeviceType.parse(text) is DeviceType.COMPUTER


@pytest.mark.parametrize("text", ["unknown", "observer", "unknownspotify", "toaster", ""])
def test_parse_rejects_unparseable(text):
    with pytest.raises(ValueError):
        DeviceType.parse(text)


def test_display_names():
    assert str(DeviceType(5)) == "TV"
    assert str(DeviceType(8)) == "AudioDongle"
    assert str(DeviceType(100)) == "UnknownSpotify"
    assert str(DeviceType.parse("avr")) == "AVR"


@pytest.mark.parametrize(
    "device_type",
    [t for t in DeviceType if t not in (DeviceType.UNKNOWN, DeviceType.UNKNOWN_SPOTIFY, DeviceType.OBSERVER)],
)
def test_display_name_round_trip(device_type):
    assert DeviceType.parse(str(device_type)) is device_type


def test_numeric_values():
    assert DeviceType.parse("speaker").value == 4
    assert DeviceType(103) is DeviceType.HOME_THING
    assert DeviceType.parse("homething").value == 103


def test_session_config_defaults():
    config = SessionConfig()
    assert config.user_agent == VERSION_STRING
    assert config.proxy is None
    assert config.ap_port is None
    assert str(uuid.UUID(config.device_id)) == config.device_id


def test_session_config_device_ids_are_unique():
    device_ids = [SessionConfig().device_id for _ in range(5)]
    assert len(set(device_ids)) == 5
    assert all(uuid.UUID(device_id).version == 4 for device_id in device_ids)


def test_connect_config_defaults():
    config = ConnectConfig()
    assert config.name == "Librespot"
    assert config.device_type is DeviceType.SPEAKER
    assert config.initial_volume == 50
    assert config.has_volume_ctrl is True
    assert config.autoplay is False


def test_version_info():
    assert VERSION_STRING.startswith("librespot-")
    assert SEMVER == "0.3.1"
    assert len(BUILD_ID) == 8 and BUILD_ID.isalnum()