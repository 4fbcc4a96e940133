"""Opening a tunnel through an HTTP proxy with the CONNECT method."""

from __future__ import annotations

import asyncio
import re

_READ_SIZE = 4096
_MAX_HEADERS = 16
_VERSION_PREFIX = b"HTTP/1."
_STATUS_RE = re.compile(rb"HTTP/1\.[01] ([0-9]{3})(?: (.*))?")


class ProxyError(OSError):
    """Raised when the proxy refuses or garbles the tunnel request."""


def _parse_response(buffer: bytes) -> tuple[int, str | None] | None:
    """Return ``(code, reason)`` for a complete response head, None if incomplete."""
    prefix = buffer[: len(_VERSION_PREFIX)]
    if not _VERSION_PREFIX.startswith(prefix):
        raise ProxyError("Malformed response from proxy: invalid HTTP version")

    end = buffer.find(b"\r\n\r\n")
    if end < 0:
        return None

    status_line, *header_lines = buffer[:end].split(b"\r\n")
    match = _STATUS_RE.fullmatch(status_line)
    if match is None:
        raise ProxyError("Malformed response from proxy: invalid status line")
    if len(header_lines) > _MAX_HEADERS:
        raise ProxyError("Malformed response from proxy: too many headers")
    for line in header_lines:
        name, sep, _ = line.partition(b":")
        if not sep or not name.strip():
            raise ProxyError("Malformed response from proxy: invalid header")

    reason = match.group(2)
    return int(match.group(1)), None if reason is None else reason.decode("latin-1")


async def proxy_connect(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    connect_host: str,
    connect_port: str | int,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Ask the proxy on the given streams to connect to ``host:port``.

    Returns the same streams once the proxy has answered with status 200.
    """
    request = f"CONNECT {connect_host}:{connect_port} HTTP/1.1\r\n\r\n".encode()
    writer.write(request)
    await writer.drain()

    buffer = bytearray()
    while True:
        chunk = await reader.read(_READ_SIZE)
        if not chunk:
            raise ProxyError("Early EOF from proxy")
        buffer += chunk

        status = _parse_response(bytes(buffer))
        if status is None:
            continue
        code, reason = status
        if code == 200:
            return reader, writer
        reason_text = reason if reason is not None else "no reason"
        raise ProxyError(f"Proxy responded with {code}: {reason_text}")