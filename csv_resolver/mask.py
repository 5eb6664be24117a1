from __future__ import annotations

from typing import Iterator, Optional


class Mask:
    """Bit-indexed set over candidate rank."""

    __slots__ = ("_bits",)

    def __init__(self, size: int, fill: bool = False):
        self._bits = bytearray(b"\x01" * size if fill else size)

    def __len__(self) -> int:
        return len(self._bits)

    def __getitem__(self, index: int) -> bool:
        return bool(self._bits[index])

    def __iter__(self) -> Iterator[bool]:
        return (bool(bit) for bit in self._bits)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mask):
            return NotImplemented
        return self._bits == other._bits

    def __repr__(self) -> str:
        return "Mask(" + "".join("1" if bit else "0" for bit in self._bits) + ")"

    def set(self, index: int, value: bool = True) -> None:
        self._bits[index] = 1 if value else 0

    def clear_range(self, start: int, stop: int) -> None:
        start = max(start, 0)
        stop = min(stop, len(self._bits))
        if start < stop:
            self._bits[start:stop] = bytes(stop - start)

    def first_one(self) -> Optional[int]:
        index = self._bits.find(1)
        return None if index < 0 else index

    def last_one(self) -> Optional[int]:
        index = self._bits.rfind(1)
        return None if index < 0 else index

    def ones(self) -> Iterator[int]:
        return (i for i, bit in enumerate(self._bits) if bit)

    def count(self) -> int:
        return self._bits.count(1)

    def copy(self) -> "Mask":
        other = Mask(0)
        other._bits = bytearray(self._bits)
        return other
