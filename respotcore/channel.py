"""Multiplexed data channels carried over the access point connection."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from time import monotonic

from .util import SeqGenerator

log = logging.getLogger(__name__)

ONE_SECOND_IN_MS = 1000
CMD_CHANNEL_ERROR = 0xA


class ChannelError(Exception):
    """Raised when a channel is closed or reports an error."""


@dataclass(frozen=True)
class HeaderEvent:
    """A header received at the start of a channel."""

    id: int
    data: bytes


@dataclass(frozen=True)
class DataEvent:
    """A chunk of payload data received on a channel."""

    data: bytes


class _State(Enum):
    HEADER = auto()
    DATA = auto()
    CLOSED = auto()


class Channel:
    """An asynchronous stream of header and data events for one channel id."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[int, bytes] | None] = asyncio.Queue()
        self._state = _State.HEADER
        self._header_buffer = b""

    def _deliver(self, cmd: int, data: bytes) -> None:
        self._queue.put_nowait((cmd, data))

    def _close_sender(self) -> None:
        self._queue.put_nowait(None)

    async def _recv_packet(self) -> bytes:
        item = await self._queue.get()
        if item is None:
            # The sending side is gone for good; keep reporting it.
            self._queue.put_nowait(None)
            raise ChannelError("channel closed")
        cmd, packet = item
        if cmd == CMD_CHANNEL_ERROR:
            code = int.from_bytes(packet[:2], "big")
            log.error("channel error: %d %d", len(packet), code)
            self._state = _State.CLOSED
            raise ChannelError(f"channel error {code}")
        return packet

    def __aiter__(self) -> Channel:
        return self

    async def __anext__(self) -> HeaderEvent | DataEvent:
        while True:
            if self._state is _State.CLOSED:
                raise RuntimeError("Polling already terminated channel")

            if self._state is _State.HEADER:
                data = self._header_buffer
                if not data:
                    data = await self._recv_packet()
                if len(data) < 2:
                    raise ChannelError("truncated channel header")
                length = int.from_bytes(data[:2], "big")
                data = data[2:]
                if length == 0:
                    if data:
                        raise ChannelError("unexpected data after channel headers")
                    self._header_buffer = b""
                    self._state = _State.DATA
                    continue
                if len(data) < length:
                    raise ChannelError("truncated channel header")
                header_id = data[0]
                header_data = bytes(data[1:length])
                self._header_buffer = data[length:]
                return HeaderEvent(header_id, header_data)

            data = await self._recv_packet()
            if not data:
                self._state = _State.CLOSED
                raise StopAsyncIteration
            return DataEvent(bytes(data))

    def split(self) -> tuple[_ChannelHeaders, _ChannelData]:
        """Split into a header stream and a data stream sharing this channel."""
        lock = asyncio.Lock()
        return _ChannelHeaders(self, lock), _ChannelData(self, lock)


class _ChannelHeaders:
    """Yields ``(id, data)`` headers until the first non-header event."""

    def __init__(self, channel: Channel, lock: asyncio.Lock) -> None:
        self._channel = channel
        self._lock = lock

    def __aiter__(self) -> _ChannelHeaders:
        return self

    async def __anext__(self) -> tuple[int, bytes]:
        async with self._lock:
            event = await self._channel.__anext__()
        if isinstance(event, HeaderEvent):
            return event.id, event.data
        raise StopAsyncIteration


class _ChannelData:
    """Yields the payload chunks of a channel, skipping headers."""

    def __init__(self, channel: Channel, lock: asyncio.Lock) -> None:
        self._channel = channel
        self._lock = lock

    def __aiter__(self) -> _ChannelData:
        return self

    async def __anext__(self) -> bytes:
        async with self._lock:
            while True:
                event = await self._channel.__anext__()
                if isinstance(event, DataEvent):
                    return event.data


class ChannelManager:
    """Allocates channel ids and routes incoming packets to their channels."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sequence = SeqGenerator(0, bits=16)
        self._channels: dict[int, Channel] = {}
        self._download_rate_estimate = 0
        self._measurement_start: float | None = None
        self._measurement_bytes = 0
        self._invalid = False

    def allocate(self) -> tuple[int, Channel]:
        """Return a new channel id and the channel that receives its packets."""
        channel = Channel()
        with self._lock:
            seq = self._sequence.get()
            if self._invalid:
                channel._close_sender()
            else:
                self._channels[seq] = channel
        return seq, channel

    def dispatch(self, cmd: int, data: bytes) -> None:
        """Route a packet whose first two bytes are the channel id."""
        if len(data) < 2:
            raise ValueError("channel packet is too short")
        channel_id = int.from_bytes(data[:2], "big")
        payload = bytes(data[2:])

        with self._lock:
            now = monotonic()
            if self._measurement_start is None:
                self._measurement_start = now
            else:
                elapsed_ms = int((now - self._measurement_start) * 1000)
                if elapsed_ms > ONE_SECOND_IN_MS:
                    self._download_rate_estimate = (
                        ONE_SECOND_IN_MS * self._measurement_bytes // elapsed_ms
                    )
                    self._measurement_start = now
                    self._measurement_bytes = 0

            self._measurement_bytes += len(payload)

            channel = self._channels.get(channel_id)
            if channel is not None:
                channel._deliver(cmd, payload)

    def download_rate_estimate(self) -> int:
        """Return the estimated download rate in bytes per second."""
        with self._lock:
            return self._download_rate_estimate

    def shutdown(self) -> None:
        """Close every channel and refuse new ones."""
        with self._lock:
            self._invalid = True
            for channel in self._channels.values():
                channel._close_sender()
            self._channels.clear()