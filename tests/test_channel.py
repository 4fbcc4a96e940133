import asyncio
import struct
from unittest.mock import patch

import pytest

from respotcore.channel import (
    ChannelError,
    ChannelManager,
    DataEvent,
    HeaderEvent,
)

HEADERS = struct.pack(">HB", 4, 7) + b"abc" + b"\x00\x00"


def packet(channel_id: int, payload: bytes) -> bytes:
    return channel_id.to_bytes(2, "big") + payload


def test_allocate_hands_out_consecutive_ids():
    manager = ChannelManager()
    first, _ = manager.allocate()
    second, _ = manager.allocate()
    assert (first, second) == (0, 1)


@pytest.mark.asyncio
async def test_channel_yields_headers_then_data():
    manager = ChannelManager()
    cid, channel = manager.allocate()
    manager.dispatch(0x9, packet(cid, HEADERS))
    manager.dispatch(0x9, packet(cid, b"hello"))
    manager.dispatch(0x9, packet(cid, b""))
    events = [event async for event in channel]
    assert events == [HeaderEvent(7, b"abc"), DataEvent(b"hello")]


@pytest.mark.asyncio
async def test_several_headers_in_one_packet():
    manager = ChannelManager()
    cid, channel = manager.allocate()
    payload = struct.pack(">HB", 2, 1) + b"x" + struct.pack(">HB", 1, 2) + b"\x00\x00"
    manager.dispatch(0x9, packet(cid, payload))
    manager.dispatch(0x9, packet(cid, b""))
    events = [event async for event in channel]
    assert events == [HeaderEvent(1, b"x"), HeaderEvent(2, b"")]


@pytest.mark.asyncio
async def test_split_data_skips_headers():
    manager = ChannelManager()
    cid, channel = manager.allocate()
    _, data = channel.split()
    for payload in (HEADERS, b"one", b"two", b""):
        manager.dispatch(0x9, packet(cid, payload))
    chunks = [chunk async for chunk in data]
    assert chunks == [b"one", b"two"]


@pytest.mark.asyncio
async def test_split_headers_stop_at_data():
    manager = ChannelManager()
    cid, channel = manager.allocate()
    headers, _ = channel.split()
    manager.dispatch(0x9, packet(cid, HEADERS))
    manager.dispatch(0x9, packet(cid, b"payload"))
    collected = [item async for item in headers]
    assert collected == [(7, b"abc")]


@pytest.mark.asyncio
async def test_error_command_raises():
    manager = ChannelManager()
    cid, channel = manager.allocate()
    manager.dispatch(0xA, packet(cid, b"\x00\x02"))
    with pytest.raises(ChannelError):
        await channel.__anext__()


@pytest.mark.asyncio
async def test_polling_after_end_is_an_error():
    manager = ChannelManager()
    cid, channel = manager.allocate()
    manager.dispatch(0x9, packet(cid, b"\x00\x00"))
    manager.dispatch(0x9, packet(cid, b""))
    assert [event async for event in channel] == []
    with pytest.raises(RuntimeError):
        await channel.__anext__()


@pytest.mark.asyncio
async def test_shutdown_closes_waiting_channels():
    manager = ChannelManager()
    _, channel = manager.allocate()
    waiter = asyncio.create_task(channel.__anext__())
    await asyncio.sleep(0)
    assert not waiter.done()
    manager.shutdown()
    await asyncio.wait([waiter])
    assert isinstance(waiter.exception(), ChannelError)


@pytest.mark.asyncio
async def test_allocate_after_shutdown_gives_closed_channel():
    manager = ChannelManager()
    manager.shutdown()
    cid, channel = manager.allocate()
    manager.dispatch(0x9, packet(cid, HEADERS))
    with pytest.raises(ChannelError):
        await channel.__anext__()


@pytest.mark.asyncio
async def test_packets_are_routed_by_id():
    manager = ChannelManager()
    first_id, first = manager.allocate()
    second_id, second = manager.allocate()
    manager.dispatch(0x9, packet(second_id, b"\x00\x00"))
    manager.dispatch(0x9, packet(second_id, b"for-second"))
    manager.dispatch(0x9, packet(first_id, b"\x00\x00"))
    manager.dispatch(0x9, packet(first_id, b"for-first"))
    assert await first.__anext__() == DataEvent(b"for-first")
    assert await second.__anext__() == DataEvent(b"for-second")


def test_short_packet_is_rejected():
    manager = ChannelManager()
    with pytest.raises(ValueError):
        manager.dispatch(0x9, b"\x00")


def test_download_rate_estimate():
    manager = ChannelManager()
    with patch("respotcore.channel.monotonic", side_effect=[0.0, 2.0]):
        manager.dispatch(0x9, packet(5, bytes(100)))
        assert manager.download_rate_estimate() == 0
        manager.dispatch(0x9, packet(5, bytes(10)))
    assert manager.download_rate_estimate() == 50