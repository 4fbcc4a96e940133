"""Advertises this device to Connect clients in the local network.

The device shows up in the list of available devices; once selected,
the client sends credentials that can be used to open a session.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import socket
import struct
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

from .authentication import Credentials
from .config import DeviceType
from .discovery_server import DiscoveryConfig, DiscoveryServer

log = logging.getLogger(__name__)

SERVICE_TYPE = "_spotify-connect._tcp"
TXT_RECORDS = ("VERSION=1.0", "CPath=/")

_MDNS_GROUP = "224.0.0.251"
_MDNS_PORT = 5353
_TYPE_A = 1
_TYPE_PTR = 12
_TYPE_TXT = 16
_TYPE_SRV = 33
_TYPE_ANY = 255
_CLASS_IN = 1
_CACHE_FLUSH = 0x8000
_FLAG_RESPONSE = 0x8000
_FLAGS_AUTHORITATIVE_RESPONSE = 0x8400
_TTL = 120
_MAX_POINTER_JUMPS = 32


class DiscoveryError(Exception):
    """Raised when the discovery service cannot be set up."""


class Advertisement(Protocol):
    """A running service announcement that can be withdrawn."""

    def close(self) -> None: ...


Advertiser = Callable[[str, int, Sequence[str]], Awaitable[Advertisement]]

_Name = tuple[str, ...]


def _encode_name(labels: _Name) -> bytes:
    out = bytearray()
    for label in labels:
        raw = label.encode("utf-8")
        if not 0 < len(raw) <= 63:
            raise ValueError(f"invalid DNS label {label!r}")
        out.append(len(raw))
        out += raw
    out.append(0)
    return bytes(out)


def _read_name(packet: bytes, offset: int) -> tuple[_Name, int]:
    labels: list[str] = []
    end: int | None = None
    jumps = 0
    while True:
        if offset >= len(packet):
            raise ValueError("truncated name")
        length = packet[offset]
        if length & 0xC0 == 0xC0:
            if offset + 1 >= len(packet):
                raise ValueError("truncated name pointer")
            if end is None:
                end = offset + 2
            offset = ((length & 0x3F) << 8) | packet[offset + 1]
            jumps += 1
            if jumps > _MAX_POINTER_JUMPS:
                raise ValueError("name pointer loop")
            continue
        if length & 0xC0:
            raise ValueError("invalid label type")
        offset += 1
        if length == 0:
            break
        label = packet[offset:offset + length]
        if len(label) != length:
            raise ValueError("truncated label")
        labels.append(label.decode("utf-8", errors="replace"))
        offset += length
    return tuple(labels), end if end is not None else offset


def _key(labels: _Name) -> _Name:
    return tuple(label.casefold() for label in labels)


@dataclass(frozen=True)
class _Record:
    name: _Name
    type: int
    unique: bool
    rdata: bytes

    def encode(self, ttl: int) -> bytes:
        rclass = _CLASS_IN | (_CACHE_FLUSH if self.unique else 0)
        return (
            _encode_name(self.name)
            + struct.pack(">HHIH", self.type, rclass, ttl, len(self.rdata))
            + self.rdata
        )


class _MdnsResponder(asyncio.DatagramProtocol):
    """Answers multicast DNS queries for one service instance."""

    def __init__(
        self,
        instance: str,
        port: int,
        txt: Sequence[str],
        host_label: str,
        address: str | None,
    ) -> None:
        service: _Name = (*SERVICE_TYPE.split("."), "local")
        instance_name: _Name = (instance, *service)
        host: _Name = (host_label, "local")
        txt_data = b"".join(bytes([len(raw)]) + raw for raw in (t.encode() for t in txt))

        self._enum = _Record(
            ("_services", "_dns-sd", "_udp", "local"), _TYPE_PTR, False, _encode_name(service)
        )
        self._ptr = _Record(service, _TYPE_PTR, False, _encode_name(instance_name))
        self._details = [
            _Record(instance_name, _TYPE_SRV, True, struct.pack(">HHH", 0, 0, port) + _encode_name(host)),
            _Record(instance_name, _TYPE_TXT, True, txt_data or b"\x00"),
        ]
        if address is not None:
            self._details.append(_Record(host, _TYPE_A, True, socket.inet_aton(address)))
        self._records = [self._enum, self._ptr, *self._details]
        self._transport: asyncio.DatagramTransport | None = None

    def response_for(self, packet: bytes, query_id: int = 0) -> bytes | None:
        """Build the response to a query, or None if nothing is asked of us."""
        if len(packet) < 12:
            raise ValueError("truncated header")
        _, flags, qdcount = struct.unpack(">HHH", packet[:6])
        if flags & _FLAG_RESPONSE:
            return None

        offset = 12
        answers: list[_Record] = []
        for _ in range(qdcount):
            labels, offset = _read_name(packet, offset)
            if offset + 4 > len(packet):
                raise ValueError("truncated question")
            qtype, _ = struct.unpack(">HH", packet[offset:offset + 4])
            offset += 4
            wanted = _key(labels)
            for record in self._records:
                if _key(record.name) == wanted and qtype in (record.type, _TYPE_ANY):
                    if record not in answers:
                        answers.append(record)
        if not answers:
            return None

        additional = []
        if self._ptr in answers:
            additional = [r for r in self._details if r not in answers]
        return self._build(answers, additional, _TTL, query_id)

    @staticmethod
    def _build(answers: list[_Record], additional: list[_Record], ttl: int, query_id: int) -> bytes:
        header = struct.pack(
            ">HHHHHH", query_id, _FLAGS_AUTHORITATIVE_RESPONSE, 0, len(answers), 0, len(additional)
        )
        return header + b"".join(r.encode(ttl) for r in (*answers, *additional))

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        legacy = addr[1] != _MDNS_PORT
        query_id = int.from_bytes(data[:2], "big") if legacy else 0
        try:
            response = self.response_for(data, query_id)
        except ValueError as exc:
            log.debug("Ignoring malformed mDNS packet from %s: %s", addr, exc)
            return
        if response is not None and self._transport is not None:
            self._transport.sendto(response, addr if legacy else (_MDNS_GROUP, _MDNS_PORT))

    def error_received(self, exc: Exception) -> None:
        log.debug("mDNS socket error: %s", exc)

    def announce(self, ttl: int = _TTL) -> None:
        if self._transport is not None:
            packet = self._build([self._ptr, *self._details], [], ttl, 0)
            self._transport.sendto(packet, (_MDNS_GROUP, _MDNS_PORT))

    def close(self) -> None:
        if self._transport is not None:
            self.announce(ttl=0)
            self._transport.close()
            self._transport = None


def _open_mdns_socket() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError:
                pass
        sock.bind(("", _MDNS_PORT))
        membership = socket.inet_aton(_MDNS_GROUP) + socket.inet_aton("0.0.0.0")
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 255)
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock


def _local_address() -> str | None:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        try:
            probe.connect((_MDNS_GROUP, _MDNS_PORT))
            address = probe.getsockname()[0]
        except OSError:
            return None
    return None if address == "0.0.0.0" else address


def _host_label() -> str:
    label = socket.gethostname().split(".")[0]
    return label.encode("utf-8")[:63].decode("utf-8", errors="ignore") or "librespot"


async def advertise_mdns(name: str, port: int, txt: Sequence[str]) -> Advertisement:
    """Announce the Connect service via multicast DNS until closed."""
    responder = _MdnsResponder(name, port, txt, _host_label(), _local_address())
    sock = _open_mdns_socket()
    loop = asyncio.get_running_loop()
    try:
        await loop.create_datagram_endpoint(lambda: responder, sock=sock)
    except OSError:
        sock.close()
        raise
    responder.announce()
    return responder


class Builder:
    """Collects the settings of a Discovery instance before launching it."""

    def __init__(self, device_id: str, *, advertiser: Advertiser | None = None) -> None:
        self._config = DiscoveryConfig(device_id=device_id)
        self._port = 0
        self._advertiser = advertiser if advertiser is not None else advertise_mdns

    def name(self, name: str) -> Builder:
        """Set the displayed name; the default is ``"Librespot"``."""
        self._config.name = name
        return self

    def device_type(self, device_type: DeviceType) -> Builder:
        """Set the icon shown in other clients; the default is a speaker."""
        self._config.device_type = device_type
        return self

    def port(self, port: int) -> Builder:
        """Set the listening port; the default ``0`` picks any free port."""
        self._port = port
        return self

    async def launch(self) -> Discovery:
        """Start the HTTP server and the service announcement."""
        config = dataclasses.replace(self._config)
        server = DiscoveryServer(config, self._port)
        try:
            port = await server.start()
        except OSError as exc:
            raise DiscoveryError(f"Setting up the http server failed: {exc}") from exc
        try:
            service = await self._advertiser(config.name, port, TXT_RECORDS)
        except (OSError, ValueError) as exc:
            await server.stop()
            raise DiscoveryError(f"Setting up dns-sd failed: {exc}") from exc
        return Discovery(server, service)


class Discovery:
    """Makes this device visible; iterating yields the credentials clients send."""

    def __init__(self, server: DiscoveryServer, service: Advertisement) -> None:
        self._server = server
        self._service = service

    @property
    def port(self) -> int:
        """The port the HTTP server listens on."""
        return self._server.port

    @classmethod
    def builder(cls, device_id: str) -> Builder:
        """Start a builder for the given device id."""
        return Builder(device_id)

    @classmethod
    async def create(cls, device_id: str) -> Discovery:
        """Launch with the given device id and default settings."""
        return await cls.builder(device_id).launch()

    async def close(self) -> None:
        """Withdraw the announcement and stop the server."""
        self._service.close()
        await self._server.stop()

    def __aiter__(self) -> Discovery:
        return self

    async def __anext__(self) -> Credentials:
        credentials = await self._server.next_credentials()
        if credentials is None:
            raise StopAsyncIteration
        return credentials

    async def __aenter__(self) -> Discovery:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()