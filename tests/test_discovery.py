import json
import socket
import struct

import aiohttp
import pytest

from respotcore.config import DeviceType
from respotcore.discovery import (
    TXT_RECORDS,
    Builder,
    DiscoveryError,
    _MdnsResponder,
)


class FakeService:
    def __init__(self, name, port, txt):
        self.name = name
        self.port = port
        self.txt = tuple(txt)
        self.closed = False

    def close(self):
        self.closed = True


class Recorder:
    def __init__(self):
        self.services = []

    async def __call__(self, name, port, txt):
        service = FakeService(name, port, txt)
        self.services.append(service)
        return service


async def failing_advertiser(name, port, txt):
    raise OSError("no multicast")


def _query(labels, qtype, flags=0):
    name = b"".join(bytes([len(l)]) + l.encode() for l in labels) + b"\x00"
    return struct.pack(">HHHHHH", 0, flags, 1, 0, 0, 0) + name + struct.pack(">HH", qtype, 1)


async def _get_info(port):
    async with aiohttp.ClientSession() as session:
        async with session.get(f"http://127.0.0.1:{port}/", params={"action": "getInfo"}) as resp:
            assert resp.status == 200
            return json.loads(await resp.read())


def test_builder_methods_chain():
    builder = Builder("dev")
    assert builder.name("Kitchen") is builder
    assert builder.device_type(DeviceType.COMPUTER) is builder
    assert builder.port(0) is builder


@pytest.mark.asyncio
async def test_launch_with_settings():
    recorder = Recorder()
    discovery = await (
        Builder("dev", advertiser=recorder).name("Kitchen").device_type(DeviceType.COMPUTER).launch()
    )
    try:
        assert len(recorder.services) == 1
        service = recorder.services[0]
        assert service.name == "Kitchen"
        assert service.port == discovery.port
        assert service.txt == ("VERSION=1.0", "CPath=/")
        info = await _get_info(discovery.port)
        assert info["remoteName"] == "Kitchen"
        assert info["deviceType"] == "Computer"
        assert info["deviceID"] == "dev"
    finally:
        await discovery.close()
    assert recorder.services[0].closed


@pytest.mark.asyncio
async def test_launch_defaults():
    recorder = Recorder()
    async with await Builder("dev", advertiser=recorder).launch() as discovery:
        info = await _get_info(discovery.port)
        assert info["remoteName"] == "Librespot"
        assert info["deviceType"] == "Speaker"
    assert recorder.services[0].closed


@pytest.mark.asyncio
async def test_iteration_ends_after_close():
    discovery = await Builder("dev", advertiser=Recorder()).launch()
    await discovery.close()
    received = [c async for c in discovery]
    assert received == []


@pytest.mark.asyncio
async def test_advertiser_failure_raises():
    with pytest.raises(DiscoveryError, match="Setting up dns-sd failed"):
        await Builder("dev", advertiser=failing_advertiser).launch()


@pytest.mark.asyncio
async def test_port_in_use_raises():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("0.0.0.0", 0))
        occupied.listen()
        port = occupied.getsockname()[1]
        recorder = Recorder()
        with pytest.raises(DiscoveryError, match="Setting up the http server failed"):
            await Builder("dev", advertiser=recorder).port(port).launch()
        assert recorder.services == []


def test_mdns_answers_service_query():
    responder = _MdnsResponder("Kitchen", 4070, TXT_RECORDS, "host", "192.0.2.1")
    response = responder.response_for(_query(["_spotify-connect", "_tcp", "local"], 12))
    assert response is not None
    assert response[2:4] == b"\x84\x00"
    assert b"Kitchen" in response
    assert struct.pack(">H", 4070) in response
    assert socket.inet_aton("192.0.2.1") in response
    assert b"VERSION=1.0" in response


def test_mdns_ignores_other_queries_and_responses():
    responder = _MdnsResponder("Kitchen", 4070, TXT_RECORDS, "host", None)
    assert responder.response_for(_query(["_other", "_tcp", "local"], 12)) is None
    assert responder.response_for(_query(["_spotify-connect", "_tcp", "local"], 12, flags=0x8400)) is None
    with pytest.raises(ValueError):
        responder.response_for(b"\x00\x01")