"""Diffie-Hellman key exchange over the 768-bit group used by access points."""

from __future__ import annotations

import secrets

DH_GENERATOR = 2
DH_PRIME = int(
    "ffffffffffffffffc90fdaa22168c2"
    "34c4c6628b80dc1cd129024e088a67"
    "cc74020bbea63b139b22514a08798e"
    "3404ddef9519b3cd3a431b302b0a6d"
    "f25f14374fe1356d6d51c245e485b5"
    "76625e7ec6f44c42e9a63a3620ffff"
    "ffffffffffff",
    16,
)

_PRIVATE_KEY_BITS = 95 * 8


def powm(base: int, exp: int, modulus: int) -> int:
    """Return ``base ** exp % modulus``; a zero exponent always yields 1."""
    if exp == 0:
        return 1
    return pow(base, exp, modulus)


def _to_bytes_be(value: int) -> bytes:
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


class DhLocalKeys:
    """A local private/public key pair for the key exchange."""

    def __init__(self, private_key: int) -> None:
        self._private_key = private_key
        self._public_key = powm(DH_GENERATOR, private_key, DH_PRIME)

    @classmethod
    def random(cls) -> DhLocalKeys:
        """Generate a key pair from a random 760-bit private key."""
        return cls(secrets.randbits(_PRIVATE_KEY_BITS))

    def public_key(self) -> bytes:
        """Return the public key as minimal big-endian bytes."""
        return _to_bytes_be(self._public_key)

    def shared_secret(self, remote_key: bytes) -> bytes:
        """Return the secret shared with the holder of ``remote_key``."""
        remote = int.from_bytes(bytes(remote_key), "big")
        return _to_bytes_be(powm(remote, self._private_key, DH_PRIME))