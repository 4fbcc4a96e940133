"""Login credentials and their stored and transmitted forms."""

from __future__ import annotations

import base64
import binascii
import hashlib
import io
import json
from dataclasses import dataclass

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

AUTHENTICATION_USER_PASS = 0
AUTHENTICATION_STORED_SPOTIFY_CREDENTIALS = 1
AUTHENTICATION_STORED_FACEBOOK_CREDENTIALS = 2
AUTHENTICATION_SPOTIFY_TOKEN = 3
AUTHENTICATION_FACEBOOK_TOKEN = 4

_KNOWN_AUTH_TYPES = frozenset(
    {
        AUTHENTICATION_USER_PASS,
        AUTHENTICATION_STORED_SPOTIFY_CREDENTIALS,
        AUTHENTICATION_STORED_FACEBOOK_CREDENTIALS,
        AUTHENTICATION_SPOTIFY_TOKEN,
        AUTHENTICATION_FACEBOOK_TOKEN,
    }
)

_AES_BLOCK_SIZE = 16


class CredentialsError(ValueError):
    """Raised when credentials cannot be decoded."""


def _b64decode(data: str | bytes) -> bytes:
    if isinstance(data, str):
        data = data.encode("ascii", errors="strict")
    try:
        return base64.b64decode(bytes(data), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialsError(f"invalid base64 data: {exc}") from exc


def _read_u8(stream: io.BytesIO) -> int:
    data = stream.read(1)
    if len(data) != 1:
        raise CredentialsError("credentials blob is truncated")
    return data[0]


def _read_int(stream: io.BytesIO) -> int:
    lo = _read_u8(stream)
    if lo & 0x80 == 0:
        return lo
    hi = _read_u8(stream)
    return (lo & 0x7F) | (hi << 7)


def _read_bytes(stream: io.BytesIO) -> bytes:
    length = _read_int(stream)
    data = stream.read(length)
    if len(data) != length:
        raise CredentialsError("credentials blob is truncated")
    return data


def _blob_key(username: str, device_id: bytes) -> bytes:
    secret = hashlib.sha1(device_id).digest()
    derived = hashlib.pbkdf2_hmac("sha1", secret, username.encode("utf-8"), 0x100, 20)
    return hashlib.sha1(derived).digest() + (20).to_bytes(4, "big")


def _check_auth_type(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value not in _KNOWN_AUTH_TYPES:
        raise CredentialsError("Invalid enum value")
    return value


@dataclass
class Credentials:
    """The credentials used to log into the service."""

    username: str
    auth_type: int
    auth_data: bytes

    @classmethod
    def with_password(cls, username: str, password: str) -> Credentials:
        """Create credentials from a username and a password."""
        return cls(
            username=username,
            auth_type=AUTHENTICATION_USER_PASS,
            auth_data=password.encode("utf-8"),
        )

    @classmethod
    def with_blob(
        cls,
        username: str,
        encrypted_blob: str | bytes,
        device_id: str | bytes,
    ) -> Credentials:
        """Decrypt a base64 credentials blob received for ``device_id``."""
        if isinstance(device_id, str):
            device_id = device_id.encode("utf-8")
        key = _blob_key(username, bytes(device_id))

        data = _b64decode(encrypted_blob)
        if len(data) % _AES_BLOCK_SIZE != 0:
            raise CredentialsError("encrypted blob length is not a multiple of the block size")

        decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
        decrypted = decryptor.update(data) + decryptor.finalize()

        # Each byte is chained with the byte one block before it in the ciphertext output.
        blob = bytes(
            byte ^ decrypted[j - _AES_BLOCK_SIZE] if j >= _AES_BLOCK_SIZE else byte
            for j, byte in enumerate(decrypted)
        )

        stream = io.BytesIO(blob)
        _read_u8(stream)
        _read_bytes(stream)
        _read_u8(stream)
        auth_type = _check_auth_type(_read_int(stream))
        _read_u8(stream)
        auth_data = _read_bytes(stream)

        return cls(username=username, auth_type=auth_type, auth_data=auth_data)

    def to_json(self) -> str:
        """Serialize to compact JSON with base64 encoded auth data."""
        return json.dumps(
            {
                "username": self.username,
                "auth_type": self.auth_type,
                "auth_data": base64.b64encode(self.auth_data).decode("ascii"),
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> Credentials:
        """Parse credentials from JSON; ``encoded_auth_blob`` is accepted for ``auth_data``."""
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CredentialsError(f"invalid JSON: {exc}") from exc
        if not isinstance(obj, dict):
            raise CredentialsError("credentials must be a JSON object")

        username = obj.get("username")
        if not isinstance(username, str):
            raise CredentialsError("missing or invalid field 'username'")
        if "auth_type" not in obj:
            raise CredentialsError("missing field 'auth_type'")
        auth_type = _check_auth_type(obj["auth_type"])

        if "auth_data" in obj:
            encoded = obj["auth_data"]
        elif "encoded_auth_blob" in obj:
            encoded = obj["encoded_auth_blob"]
        else:
            raise CredentialsError("missing field 'auth_data'")
        if not isinstance(encoded, str):
            raise CredentialsError("field 'auth_data' must be a string")

        return cls(username=username, auth_type=auth_type, auth_data=_b64decode(encoded))