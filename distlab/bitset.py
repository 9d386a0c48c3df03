"""A fixed-size set of bit positions used to track linearized operations."""

from __future__ import annotations

from collections.abc import Iterator


class Bitset:
    """Mutable set of bit positions in the range ``[0, size)``."""

    __slots__ = ("_size", "_bits")

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"bitset size must be non-negative, got {size}")
        self._size = size
        self._bits = 0

    def __len__(self) -> int:
        return self._size

    def _check(self, pos: int) -> None:
        if not 0 <= pos < self._size:
            raise IndexError(f"bit position {pos} out of range for size {self._size}")

    def clone(self) -> Bitset:
        """Return an independent copy of this bitset."""
        copy = Bitset(self._size)
        copy._bits = self._bits
        return copy

    def set(self, pos: int) -> Bitset:
        """Set the bit at ``pos`` and return this bitset."""
        self._check(pos)
        self._bits |= 1 << pos
        return self

    def clear(self, pos: int) -> Bitset:
        """Clear the bit at ``pos`` and return this bitset."""
        self._check(pos)
        self._bits &= ~(1 << pos)
        return self

    def get(self, pos: int) -> bool:
        """Report whether the bit at ``pos`` is set."""
        self._check(pos)
        return bool(self._bits >> pos & 1)

    def popcnt(self) -> int:
        """Number of set bits."""
        return bin(self._bits).count("1")

    def __iter__(self) -> Iterator[int]:
        bits = self._bits
        pos = 0
        while bits:
            if bits & 1:
                yield pos
            bits >>= 1
            pos += 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._size == other._size and self._bits == other._bits

    def __hash__(self) -> int:
        return hash((self._size, self._bits))

    def __repr__(self) -> str:
        return f"Bitset({self._size}, {sorted(self)})"