"""Per-function local and upvalue tables built from ``luac`` metadata.

``luac -l -l`` follows every function's instruction listing with a
``locals`` and an ``upvalues`` section.  Locals are printed in declaration
order as ``index name startpc endpc``; the register each one occupies is
not printed, but Lua allocates locals on the stack in declaration order, so
a local's slot is the number of earlier locals still live where it starts.
Slots are reused by locals with disjoint liveness ranges, which is why
lookups are keyed by ``(slot, instruction index)``.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

LOG = logging.getLogger(__name__)

__all__ = [
    "KnownLocals",
    "LocalSlot",
    "ScopeTable",
    "UpvalueSlot",
]


@dataclass(eq=False)
class LocalSlot:
    """A named local living in ``slot`` between two instruction indices."""

    slot: int
    name: str
    live_from: int
    live_to: int
    function: int = 0
    is_known: bool = False
    reference_name: Optional[str] = None

    @property
    def synthetic(self) -> bool:
        """Compiler generated locals such as ``(for index)``."""

        return self.name.startswith("(")

    def covers(self, index: int, *, at_block_start: bool = False) -> bool:
        if index > self.live_to:
            return False
        return at_block_start or index >= self.live_from

    def as_dict(self) -> Dict[str, object]:
        return {
            "slot": self.slot,
            "name": self.name,
            "live_from": self.live_from,
            "live_to": self.live_to,
            "function": self.function,
            "known": self.is_known,
            "reference_name": self.reference_name,
        }


@dataclass(frozen=True)
class UpvalueSlot:
    slot: int
    name: str


@dataclass
class KnownLocals:
    """File-wide registry of locals proven to alias whitelisted values."""

    _by_name: Dict[str, LocalSlot] = field(default_factory=dict)
    _order: List[LocalSlot] = field(default_factory=list)

    def add(self, descriptor: LocalSlot) -> None:
        if descriptor not in self._order:
            self._order.append(descriptor)
        self._by_name[descriptor.name] = descriptor

    def find(self, name: str | None) -> LocalSlot | None:
        if name is None:
            return None
        return self._by_name.get(name)

    def __iter__(self):
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)


class ScopeTable:
    """Answer slot to name queries for one function."""

    def __init__(
        self,
        locals_: Iterable[LocalSlot] = (),
        upvalues: Iterable[UpvalueSlot] = (),
        *,
        known: KnownLocals | None = None,
    ) -> None:
        self.known = known if known is not None else KnownLocals()
        self._locals: List[LocalSlot] = list(locals_)
        self._by_slot: Dict[int, List[LocalSlot]] = {}
        for descriptor in self._locals:
            self._by_slot.setdefault(descriptor.slot, []).append(descriptor)
        for entries in self._by_slot.values():
            entries.sort(key=lambda item: item.live_from)
        self._starts: Dict[int, List[int]] = {
            slot: [item.live_from for item in entries] for slot, entries in self._by_slot.items()
        }
        self._upvalues: Dict[int, UpvalueSlot] = {item.slot: item for item in upvalues}

    @classmethod
    def from_metadata(
        cls,
        raw_locals: Sequence[Tuple[str, Optional[int], Optional[int]]],
        raw_upvalues: Sequence[Tuple[int, str]],
        *,
        function: int = 0,
        known: KnownLocals | None = None,
    ) -> "ScopeTable":
        """Build a table from ``(name, startpc, endpc)`` and ``(slot, name)`` rows.

        ``startpc`` and ``endpc`` are the 1-based values ``luac`` prints.
        Rows without a liveness range cannot be placed and are skipped.
        """

        placed: List[Tuple[int, int]] = []
        descriptors: List[LocalSlot] = []
        for name, start, end in raw_locals:
            if start is None or end is None:
                LOG.debug("skipping local %r without liveness range", name)
                continue
            slot = sum(1 for other_start, other_end in placed if other_start <= start < other_end)
            placed.append((start, end))
            descriptors.append(
                LocalSlot(slot=slot, name=name, live_from=start - 1, live_to=end, function=function)
            )
        upvalues = [UpvalueSlot(slot=slot, name=name) for slot, name in raw_upvalues]
        return cls(descriptors, upvalues, known=known)

    @property
    def locals(self) -> List[LocalSlot]:
        return list(self._locals)

    @property
    def upvalues(self) -> List[UpvalueSlot]:
        return [self._upvalues[key] for key in sorted(self._upvalues)]

    def match_local(self, slot: int | None, index: int, *, at_block_start: bool = False) -> LocalSlot | None:
        """Return the local occupying ``slot`` at instruction ``index``."""

        if slot is None:
            return None
        entries = self._by_slot.get(slot)
        if not entries:
            return None
        if at_block_start:
            candidates = entries
        else:
            position = bisect.bisect_right(self._starts[slot], index)
            candidates = reversed(entries[:position])
        for descriptor in candidates:
            if descriptor.synthetic:
                continue
            if descriptor.covers(index, at_block_start=at_block_start):
                return descriptor
        return None

    def match_upvalue(self, slot: int | None) -> UpvalueSlot | None:
        if slot is None:
            return None
        return self._upvalues.get(slot)

    def promote_to_known(self, descriptor: LocalSlot, alias: str | None = None) -> LocalSlot:
        """Mark ``descriptor`` as aliasing ``alias`` for the rest of the file."""

        descriptor.is_known = True
        descriptor.reference_name = alias or descriptor.name
        self.known.add(descriptor)
        LOG.debug(
            "local %s (slot %d) now known as %s", descriptor.name, descriptor.slot, descriptor.reference_name
        )
        return descriptor

    def find_known_by_name(self, name: str | None) -> LocalSlot | None:
        return self.known.find(name)
