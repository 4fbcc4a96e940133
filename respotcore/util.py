"""Small helpers shared by the protocol components."""

from __future__ import annotations


class SeqGenerator:
    """Hands out consecutive sequence numbers that wrap at a fixed bit width."""

    def __init__(self, value: int = 0, bits: int = 32) -> None:
        if bits <= 0:
            raise ValueError("bit width must be positive")
        self._mask = (1 << bits) - 1
        if not 0 <= value <= self._mask:
            raise ValueError(f"initial value {value} does not fit in {bits} bits")
        self._value = value
        self.bits = bits

    def get(self) -> int:
        """Return the current value and advance, wrapping around on overflow."""
        value = self._value
        self._value = (value + 1) & self._mask
        return value

    def __repr__(self) -> str:
        return f"SeqGenerator(value={self._value}, bits={self.bits})"