"""Opaque numeric ids. One kind per entity, printed as ``Kind#N``."""

from __future__ import annotations


class _EntityId(int):
    kind = "Entity"

    def __str__(self) -> str:
        return f"{self.kind}#{int(self)}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({int(self)})"


class TimelineId(_EntityId):
    kind = "Timeline"


class CharacterId(_EntityId):
    kind = "Char"


class MemoryId(_EntityId):
    kind = "Memory"


class EventId(_EntityId):
    kind = "Event"
