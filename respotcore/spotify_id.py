"""Spotify item and file identifiers with their text encodings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

BASE62_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
BASE16_DIGITS = "0123456789abcdef"

_BASE62_VALUES = {c: i for i, c in enumerate(BASE62_DIGITS)}
_BASE16_VALUES = {c: i for i, c in enumerate(BASE16_DIGITS)}

_MAX_ID = (1 << 128) - 1


class SpotifyIdError(ValueError):
    """Raised when an identifier cannot be parsed."""


class SpotifyAudioType(Enum):
    """Kind of audio item an identifier refers to; the value is its URI name."""

    TRACK = "track"
    PODCAST = "episode"
    NON_PLAYABLE = "unknown"

    @classmethod
    def from_name(cls, name: str) -> SpotifyAudioType:
        """Map a URI type name to an audio type; unknown names are non-playable."""
        if name == "track":
            return cls.TRACK
        if name == "episode":
            return cls.PODCAST
        return cls.NON_PLAYABLE


def _decode(src: str, digits: dict[str, int], base: int) -> int:
    value = 0
    for c in src:
        digit = digits.get(c)
        if digit is None:
            raise SpotifyIdError(f"invalid character {c!r} in identifier")
        value = value * base + digit
    if value > _MAX_ID:
        raise SpotifyIdError("identifier does not fit in 128 bits")
    return value


@dataclass(frozen=True)
class SpotifyId:
    """A 128-bit item identifier together with its audio type."""

    SIZE = 16
    SIZE_BASE16 = 32
    SIZE_BASE62 = 22

    id: int
    audio_type: SpotifyAudioType = SpotifyAudioType.TRACK

    def __post_init__(self) -> None:
        if not 0 <= self.id <= _MAX_ID:
            raise SpotifyIdError("identifier does not fit in 128 bits")

    @classmethod
    def from_base16(cls, src: str) -> SpotifyId:
        """Parse a lower-case hex encoded identifier."""
        return cls(_decode(src, _BASE16_VALUES, 16))

    @classmethod
    def from_base62(cls, src: str) -> SpotifyId:
        """Parse a base62 encoded identifier."""
        return cls(_decode(src, _BASE62_VALUES, 62))

    @classmethod
    def from_raw(cls, src: bytes) -> SpotifyId:
        """Build an identifier from exactly 16 big-endian bytes."""
        if len(src) != cls.SIZE:
            raise SpotifyIdError(f"raw identifier must be {cls.SIZE} bytes, got {len(src)}")
        return cls(int.from_bytes(bytes(src), "big"))

    @classmethod
    def from_uri(cls, src: str) -> SpotifyId:
        """Parse a URI of the form ``spotify:{type}:{base62 id}``."""
        prefix = "spotify:"
        if not src.startswith(prefix):
            raise SpotifyIdError("URI does not start with 'spotify:'")
        rest = src[len(prefix):]
        if len(rest) <= cls.SIZE_BASE62:
            raise SpotifyIdError("URI is too short")
        colon_index = len(rest) - cls.SIZE_BASE62 - 1
        if rest[colon_index] != ":":
            raise SpotifyIdError("URI has no colon before the identifier")
        parsed = cls.from_base62(rest[colon_index + 1:])
        return cls(parsed.id, SpotifyAudioType.from_name(rest[:colon_index]))

    def to_base16(self) -> str:
        """Return the 32-character hex encoding."""
        return format(self.id, "032x")

    def to_base62(self) -> str:
        """Return the 22-character base62 encoding."""
        digits = []
        n = self.id
        for _ in range(self.SIZE_BASE62):
            n, rem = divmod(n, 62)
            digits.append(BASE62_DIGITS[rem])
        return "".join(reversed(digits))

    def to_raw(self) -> bytes:
        """Return the 16 big-endian bytes of the identifier."""
        return self.id.to_bytes(self.SIZE, "big")

    def to_uri(self) -> str:
        """Return the canonical ``spotify:{type}:{id}`` URI."""
        return f"spotify:{self.audio_type.value}:{self.to_base62()}"


@dataclass(frozen=True)
class FileId:
    """A 20-byte audio or image file identifier."""

    SIZE = 20

    raw: bytes

    def __post_init__(self) -> None:
        data = bytes(self.raw)
        if len(data) != self.SIZE:
            raise ValueError(f"file id must be {self.SIZE} bytes, got {len(data)}")
        object.__setattr__(self, "raw", data)

    def to_base16(self) -> str:
        """Return the 40-character hex encoding."""
        return self.raw.hex()

    def __str__(self) -> str:
        return self.to_base16()

    def __repr__(self) -> str:
        return f"FileId({self.to_base16()!r})"