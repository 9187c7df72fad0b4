"""Core data models. Timelines branch, characters remember, events change things.

Every cross-reference is an id, never an object. The Multiverse owns the maps.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Union

from propyarn.emotions import Belief, EmotionalState, Goal
from propyarn.ids import CharacterId, EventId, MemoryId, TimelineId


class Ability(str, Enum):
    TIMELINE_PERCEPTION = "timeline-perception"  # percibe varias timelines a la vez
    PRECOGNITION = "precognition"
    MEMORY_IMMUNITY = "memory-immunity"
    LOOP_MEMORY = "loop-memory"
    CAUSALITY_HACKING = "causality-hacking"


class RelationshipState(IntEnum):
    HOSTILE = -2
    DISTRUSTFUL = -1
    NEUTRAL = 0
    FRIENDLY = 1
    ALLIED = 2


# ── Memory provenance ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Witnessed:
    character: CharacterId


@dataclass(frozen=True)
class Traded:
    original_owner: CharacterId
    acquired_via: str  # "Memory Market", "Gate payment", ...


@dataclass(frozen=True)
class Forged:
    forger: str


@dataclass(frozen=True)
class Compound:
    sources: tuple[MemoryId, ...] = ()


Provenance = Union[Witnessed, Traded, Forged, Compound]


# ── Causality violations ───────────────────────────────────────────────


@dataclass(frozen=True)
class EffectBeforeCause:
    mechanism: str


@dataclass(frozen=True)
class RetroactiveChange:
    mechanism: str


@dataclass(frozen=True)
class Superposition:
    mechanism: str


CausalityViolation = Union[EffectBeforeCause, RetroactiveChange, Superposition]


# ── Event effects ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class CharacterDeath:
    character: CharacterId


@dataclass(frozen=True)
class CharacterResurrection:
    character: CharacterId
    mechanism: str


@dataclass(frozen=True)
class RelationshipChange:
    character1: CharacterId
    character2: CharacterId
    new_state: RelationshipState


@dataclass(frozen=True)
class KnowledgeGained:
    character: CharacterId
    flag: str


@dataclass(frozen=True)
class MemoryTransfer:
    memory: MemoryId
    from_character: CharacterId
    to_character: CharacterId


@dataclass(frozen=True)
class TimelineBranch:
    new_timeline: TimelineId


@dataclass(frozen=True)
class AppraisalTrigger:
    character: CharacterId
    belief: Belief


@dataclass(frozen=True)
class AddGoal:
    character: CharacterId
    goal: Goal


Effect = Union[
    CharacterDeath, CharacterResurrection, RelationshipChange, KnowledgeGained,
    MemoryTransfer, TimelineBranch, AppraisalTrigger, AddGoal,
]


# ── Entities ───────────────────────────────────────────────────────────


@dataclass
class Memory:
    """Un recuerdo. Puede venir de otra timeline, puede ser falso."""

    id: MemoryId
    event: EventId
    source_timeline: TimelineId
    provenance: Provenance
    fidelity: float = 1.0  # 1.0 = recuerdo perfecto, 0.0 = degradado


@dataclass
class Timeline:
    id: TimelineId
    parent: TimelineId | None = None
    divergence_event: EventId | None = None
    events: list[EventId] = field(default_factory=list)
    characters: set[CharacterId] = field(default_factory=set)
    causality_stable: bool = True


@dataclass
class Character:
    """Un personaje. Vive en una timeline, recuerda cosas de cualquiera."""

    id: CharacterId
    name: str
    current_timeline: TimelineId
    native_timeline: TimelineId
    memories: set[MemoryId] = field(default_factory=set)
    knowledge_flags: set[str] = field(default_factory=set)
    alive: bool = True
    abilities: set[Ability] = field(default_factory=set)
    relationships: dict[CharacterId, RelationshipState] = field(default_factory=dict)
    emotional_state: EmotionalState = field(default_factory=EmotionalState)


@dataclass
class Event:
    """Unidad atómica de narrativa. El id lo asigna record_event."""

    timeline: TimelineId
    description: str = ""
    participants: set[CharacterId] = field(default_factory=set)
    effects: list[Effect] = field(default_factory=list)
    causality_violation: CausalityViolation | None = None
    id: EventId = EventId(0)


@dataclass
class Trace:
    """One traced store operation."""

    operation: str
    input_text: str = ""
    output_text: str = ""
    duration_ms: float | None = None
    metadata: dict = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
