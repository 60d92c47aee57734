# Area: Store
"""
duet_room._store.slot_pair — Two-slot record
============================================

Holds one value per participant slot. All per-side room data goes through
``for_slot`` so no field name is ever composed from a slot string.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, Iterator, Tuple, TypeVar

T = TypeVar("T")


@dataclass
class SlotPair(Generic[T]):
    """A value for slot ``a`` and a value for slot ``b``."""
    a: T
    b: T

    def for_slot(self, slot: str) -> T:
        if slot == "a":
            return self.a
        if slot == "b":
            return self.b
        raise ValueError(f"Unknown slot: {slot!r}")

    def items(self) -> Iterator[Tuple[str, T]]:
        yield "a", self.a
        yield "b", self.b
