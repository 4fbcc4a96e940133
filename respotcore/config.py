"""Session and Connect device configuration, plus build identification."""

from __future__ import annotations

import secrets
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum

SEMVER = "0.3.1"
"""Version of this package's protocol core."""

SHA_SHORT = "unknown"
"""Short identifier of the source revision."""

COMMIT_DATE = "unknown"
"""Date of the source revision."""

BUILD_DATE = datetime.now(timezone.utc).date().isoformat()
"""Date (UTC) the running build was started."""

BUILD_ID = "".join(secrets.choice(string.ascii_letters + string.digits) for _ in range(8))
"""A random build id."""

VERSION_STRING = f"librespot-{SHA_SHORT}"
"""Version string sent to the server as the user agent."""


class DeviceType(IntEnum):
    """Icon under which a device appears in other clients."""

    UNKNOWN = 0
    COMPUTER = 1
    TABLET = 2
    SMARTPHONE = 3
    SPEAKER = 4
    TV = 5
    AVR = 6
    STB = 7
    AUDIO_DONGLE = 8
    GAME_CONSOLE = 9
    CAST_AUDIO = 10
    CAST_VIDEO = 11
    AUTOMOBILE = 12
    SMARTWATCH = 13
    CHROMEBOOK = 14
    UNKNOWN_SPOTIFY = 100
    CAR_THING = 101
    OBSERVER = 102
    HOME_THING = 103

    @classmethod
    def parse(cls, text: str) -> DeviceType:
        """Parse a device type name, ignoring case; raise ValueError if unknown."""
        try:
            return _PARSEABLE[text.lower()]
        except KeyError:
            raise ValueError(f"unknown device type: {text!r}") from None

    def __str__(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    DeviceType.UNKNOWN: "Unknown",
    DeviceType.COMPUTER: "Computer",
    DeviceType.TABLET: "Tablet",
    DeviceType.SMARTPHONE: "Smartphone",
    DeviceType.SPEAKER: "Speaker",
    DeviceType.TV: "TV",
    DeviceType.AVR: "AVR",
    DeviceType.STB: "STB",
    DeviceType.AUDIO_DONGLE: "AudioDongle",
    DeviceType.GAME_CONSOLE: "GameConsole",
    DeviceType.CAST_AUDIO: "CastAudio",
    DeviceType.CAST_VIDEO: "CastVideo",
    DeviceType.AUTOMOBILE: "Automobile",
    DeviceType.SMARTWATCH: "Smartwatch",
    DeviceType.CHROMEBOOK: "Chromebook",
    DeviceType.UNKNOWN_SPOTIFY: "UnknownSpotify",
    DeviceType.CAR_THING: "CarThing",
    DeviceType.OBSERVER: "Observer",
    DeviceType.HOME_THING: "HomeThing",
}

_PARSEABLE = {
    "computer": DeviceType.COMPUTER,
    "tablet": DeviceType.TABLET,
    "smartphone": DeviceType.SMARTPHONE,
    "speaker": DeviceType.SPEAKER,
    "tv": DeviceType.TV,
    "avr": DeviceType.AVR,
    "stb": DeviceType.STB,
    "audiodongle": DeviceType.AUDIO_DONGLE,
    "gameconsole": DeviceType.GAME_CONSOLE,
    "castaudio": DeviceType.CAST_AUDIO,
    "castvideo": DeviceType.CAST_VIDEO,
    "automobile": DeviceType.AUTOMOBILE,
    "smartwatch": DeviceType.SMARTWATCH,
    "chromebook": DeviceType.CHROMEBOOK,
    "carthing": DeviceType.CAR_THING,
    "homething": DeviceType.HOME_THING,
}


def _new_device_id() -> str:
    return str(uuid.uuid4())


@dataclass
class SessionConfig:
    """Settings for connecting a session to an access point."""

    user_agent: str = VERSION_STRING
    device_id: str = field(default_factory=_new_device_id)
    proxy: str | None = None
    ap_port: int | None = None


@dataclass
class ConnectConfig:
    """Settings for how this device presents itself to Connect clients."""

    name: str = "Librespot"
    device_type: DeviceType = DeviceType.SPEAKER
    initial_volume: int | None = 50
    has_volume_ctrl: bool = True
    autoplay: bool = False