"""HTTP endpoint through which Connect clients hand over login credentials."""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import hmac
import json
import logging
import socket
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from urllib.parse import parse_qsl

from aiohttp import web
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .authentication import Credentials
from .config import SEMVER, DeviceType
from .diffie_hellman import DhLocalKeys

log = logging.getLogger(__name__)

_IV_SIZE = 16
_CHECKSUM_SIZE = 20


@dataclass
class DiscoveryConfig:
    """How this device describes itself to clients asking for its info."""

    device_id: str
    name: str = "Librespot"
    device_type: DeviceType = DeviceType.SPEAKER


def _json_body(obj: Mapping[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _param(params: Mapping[str, str], key: str) -> str:
    try:
        return params[key]
    except KeyError:
        raise ValueError(f"missing parameter {key!r}") from None


def _b64_param(params: Mapping[str, str], key: str) -> bytes:
    value = _param(params, key)
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"parameter {key!r} is not valid base64") from exc


class RequestHandler:
    """Answers the ``getInfo`` and ``addUser`` actions of the discovery protocol."""

    def __init__(
        self,
        config: DiscoveryConfig,
        on_credentials: Callable[[Credentials], None],
        keys: DhLocalKeys | None = None,
    ) -> None:
        self.config = config
        self.keys = keys if keys is not None else DhLocalKeys.random()
        self._on_credentials = on_credentials

    def get_info(self) -> dict[str, Any]:
        """Return the device description sent for ``getInfo``."""
        return {
            "status": 101,
            "statusString": "ERROR-OK",
            "spotifyError": 0,
            "version": "2.7.1",
            "deviceID": self.config.device_id,
            "remoteName": self.config.name,
            "activeUser": "",
            "publicKey": base64.b64encode(self.keys.public_key()).decode("ascii"),
            "deviceType": str(self.config.device_type),
            "libraryVersion": SEMVER,
            "accountReq": "PREMIUM",
            "brandDisplayName": "librespot",
            "modelDisplayName": "librespot",
            "resolverVersion": "0",
            "groupStatus": "NONE",
            "voiceSupport": "NO",
        }

    def add_user(self, params: Mapping[str, str]) -> dict[str, Any]:
        """Decrypt the credentials of an ``addUser`` request and pass them on.

        Raises ValueError when parameters are missing or malformed.
        """
        username = _param(params, "userName")
        encrypted_blob = _b64_param(params, "blob")
        client_key = _b64_param(params, "clientKey")
        if len(encrypted_blob) < _IV_SIZE + _CHECKSUM_SIZE:
            raise ValueError("blob is too short")

        shared_key = self.keys.shared_secret(client_key)

        iv = encrypted_blob[:_IV_SIZE]
        encrypted = encrypted_blob[_IV_SIZE:-_CHECKSUM_SIZE]
        cksum = encrypted_blob[-_CHECKSUM_SIZE:]

        base_key = hashlib.sha1(shared_key).digest()[:16]
        checksum_key = hmac.new(base_key, b"checksum", hashlib.sha1).digest()
        encryption_key = hmac.new(base_key, b"encryption", hashlib.sha1).digest()

        mac = hmac.new(checksum_key, encrypted, hashlib.sha1).digest()
        if not hmac.compare_digest(mac, cksum):
            log.warning("Login error for user %r: MAC mismatch", username)
            return {"status": 102, "spotifyError": 1, "statusString": "ERROR-MAC"}

        decryptor = Cipher(algorithms.AES(encryption_key[:16]), modes.CTR(iv)).decryptor()
        decrypted = decryptor.update(encrypted) + decryptor.finalize()

        credentials = Credentials.with_blob(username, decrypted, self.config.device_id)
        self._on_credentials(credentials)

        return {"status": 101, "spotifyError": 0, "statusString": "ERROR-OK"}

    def handle(self, method: str, params: Mapping[str, str]) -> tuple[int, bytes]:
        """Dispatch a request; return the HTTP status and the response body."""
        action = params.get("action")
        method = method.upper()
        if method == "GET" and action == "getInfo":
            return 200, _json_body(self.get_info())
        if method == "POST" and action == "addUser":
            return 200, _json_body(self.add_user(params))
        return 404, b""


class DiscoveryServer:
    """An HTTP server that collects credentials sent by Connect clients."""

    def __init__(self, config: DiscoveryConfig, port: int = 0, *, host: str = "0.0.0.0") -> None:
        self.config = config
        self.port = port
        self._host = host
        self._queue: asyncio.Queue[Credentials | None] = asyncio.Queue()
        self.handler = RequestHandler(config, self._queue.put_nowait)
        self._runner: web.AppRunner | None = None
        self._stopped = False

    async def start(self) -> int:
        """Start listening and return the port in use. Raises OSError on failure."""
        if self._runner is not None:
            raise RuntimeError("discovery server already started")
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._serve)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((self._host, self.port))
            site = web.SockSite(runner, sock)
            await site.start()
        except OSError:
            sock.close()
            await runner.cleanup()
            raise

        self._runner = runner
        self.port = sock.getsockname()[1]
        log.debug("Zeroconf server listening on %s:%d", self._host, self.port)
        return self.port

    async def stop(self) -> None:
        """Shut the server down; pending and later reads of credentials end."""
        if self._runner is not None:
            log.debug("Shutting down discovery server")
            runner, self._runner = self._runner, None
            await runner.cleanup()
        if not self._stopped:
            self._stopped = True
            self._queue.put_nowait(None)

    async def next_credentials(self) -> Credentials | None:
        """Wait for the next credentials; None once the server has stopped."""
        item = await self._queue.get()
        if item is None:
            self._queue.put_nowait(None)
        return item

    def __aiter__(self) -> DiscoveryServer:
        return self

    async def __anext__(self) -> Credentials:
        credentials = await self.next_credentials()
        if credentials is None:
            raise StopAsyncIteration
        return credentials

    async def __aenter__(self) -> DiscoveryServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _serve(self, request: web.Request) -> web.Response:
        params = dict(parse_qsl(request.query_string, keep_blank_values=True))
        if request.method != "GET":
            log.debug("%s %s %s", request.method, request.path, params)
        body = await request.read()
        params.update(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))

        try:
            status, payload = self.handler.handle(request.method, params)
        except ValueError as exc:
            log.warning("Rejected discovery request: %s", exc)
            return web.Response(status=400)
        content_type = "application/json" if payload else None
        return web.Response(status=status, body=payload, content_type=content_type)