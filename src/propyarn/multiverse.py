"""Multiverse: the entity store. Every mutation goes through here."""

from __future__ import annotations

import copy
import logging
import time

from propyarn.effects import apply_effects
from propyarn.emotions import DEFAULT_GAIN, EmotionalState
from propyarn.ids import CharacterId, EventId, MemoryId, TimelineId
from propyarn.models import (
    Ability,
    Character,
    Event,
    Memory,
    Provenance,
    Timeline,
    Trace,
    Witnessed,
)

logger = logging.getLogger(__name__)

ROOT_TIMELINE = TimelineId(0)


class Multiverse:
    """Todas las timelines, personajes, recuerdos y eventos. Un solo dueño.

    Mutations never fail: anything that names a missing entity is a silent
    no-op. Whether the result makes sense is for propyarn.properties to say.

    API:
        mv.create_character(name, timeline)
        mv.create_timeline_branch(parent, divergence_event)
        mv.create_witnessed_memory(event, timeline, character)
        mv.record_event(event)     : asigna id, aplica efectos
        mv.decay_emotions(factor)
        mv.can_perceive_timeline(character, timeline)
        mv.has_memory_of_event(character, event)
    """

    def __init__(self, enable_traces: bool = False,
                 default_gain: float = DEFAULT_GAIN) -> None:
        self.root_timeline = ROOT_TIMELINE
        self.timelines: dict[TimelineId, Timeline] = {
            ROOT_TIMELINE: Timeline(id=ROOT_TIMELINE),
        }
        self.characters: dict[CharacterId, Character] = {}
        self.memories: dict[MemoryId, Memory] = {}
        self.events: dict[EventId, Event] = {}
        # Next id per kind. The root timeline already took 0.
        self._next_ids = {"timeline": 1, "character": 0, "memory": 0, "event": 0}
        self._default_gain = default_gain
        self._enable_traces = enable_traces
        self._traces: list[Trace] = []

    def _allocate(self, kind: str) -> int:
        value = self._next_ids[kind]
        self._next_ids[kind] = value + 1
        return value

    @property
    def counters(self) -> dict[str, int]:
        """Next id per kind (timeline, character, memory, event). A copy."""
        return dict(self._next_ids)

    def restore_counters(self, counters: dict[str, int]) -> None:
        """Continue allocating from saved counters. Unknown kinds raise KeyError."""
        for kind, value in counters.items():
            if kind not in self._next_ids:
                raise KeyError(f"Unknown id kind: {kind!r}")
            self._next_ids[kind] = int(value)

    # ── characters ─────────────────────────────────────────────────────

    def create_character(self, name: str, timeline: TimelineId) -> CharacterId:
        """Crea un personaje vivo en timeline. No verifica que la timeline exista."""
        t0 = time.time()
        char_id = CharacterId(self._allocate("character"))
        self.characters[char_id] = Character(
            id=char_id,
            name=name,
            current_timeline=timeline,
            native_timeline=timeline,
            emotional_state=EmotionalState(gain=self._default_gain),
        )
        target = self.timelines.get(timeline)
        if target is not None:
            target.characters.add(char_id)
        else:
            logger.debug("%s created in missing %s", char_id, timeline)

        self._trace("create_character", f"{name} @ {timeline}", char_id, t0)
        return char_id

    def grant_ability(self, character: CharacterId, ability: Ability) -> None:
        target = self.characters.get(character)
        if target is not None:
            target.abilities.add(ability)

    def move_character(self, character: CharacterId, timeline: TimelineId) -> None:
        """Cambia current_timeline. native_timeline nunca cambia."""
        target = self.characters.get(character)
        if target is not None:
            target.current_timeline = timeline

    def install_memory(self, character: CharacterId, memory: MemoryId) -> None:
        target = self.characters.get(character)
        if target is not None:
            target.memories.add(memory)

    # ── timelines ──────────────────────────────────────────────────────

    def create_timeline_branch(self, parent: TimelineId,
                               divergence_event: EventId) -> TimelineId:
        """Branch parent. The new timeline starts with parent's current cast.

        divergence_event is recorded as given; it is not checked against
        parent's event list.
        """
        t0 = time.time()
        timeline_id = TimelineId(self._allocate("timeline"))
        source = self.timelines.get(parent)
        self.timelines[timeline_id] = Timeline(
            id=timeline_id,
            parent=parent,
            divergence_event=divergence_event,
            characters=set(source.characters) if source is not None else set(),
        )
        self._trace("create_timeline_branch",
                    f"{parent} @ {divergence_event}", timeline_id, t0)
        return timeline_id

    def destabilize_timeline(self, timeline: TimelineId) -> None:
        target = self.timelines.get(timeline)
        if target is not None:
            target.causality_stable = False

    # ── memories ───────────────────────────────────────────────────────

    def create_witnessed_memory(self, event: EventId, timeline: TimelineId,
                                character: CharacterId) -> MemoryId:
        """Recuerdo presenciado, fidelity 1.0. No se añade al personaje.

        Whether character was really there is checked later, by
        check_memory_consistency.
        """
        return self._new_memory(event, timeline, Witnessed(character), 1.0,
                                "create_witnessed_memory")

    def create_memory(self, event: EventId, timeline: TimelineId,
                      provenance: Provenance, fidelity: float = 1.0) -> MemoryId:
        """Recuerdo con cualquier provenance. No se añade al personaje."""
        return self._new_memory(event, timeline, provenance, fidelity,
                                "create_memory")

    def _new_memory(self, event: EventId, timeline: TimelineId,
                    provenance: Provenance, fidelity: float,
                    operation: str) -> MemoryId:
        t0 = time.time()
        memory_id = MemoryId(self._allocate("memory"))
        self.memories[memory_id] = Memory(
            id=memory_id,
            event=event,
            source_timeline=timeline,
            provenance=provenance,
            fidelity=fidelity,
        )
        self._trace(operation, f"{event} @ {timeline}", memory_id, t0,
                    provenance=type(provenance).__name__)
        return memory_id

    # ── events ─────────────────────────────────────────────────────────

    def record_event(self, event: Event) -> EventId:
        """Registra un evento: id nuevo, se añade a su timeline, aplica efectos.

        If the timeline doesn't exist the event is still stored and its
        effects still apply; only the timeline list is skipped.
        """
        t0 = time.time()
        event_id = EventId(self._allocate("event"))
        event.id = event_id

        timeline = self.timelines.get(event.timeline)
        if timeline is not None:
            timeline.events.append(event_id)
        else:
            logger.debug("%s recorded on missing %s", event_id, event.timeline)

        applied = apply_effects(self, event)
        self.events[event_id] = event

        self._trace("record_event", event.description,
                    f"{event_id}, {applied}/{len(event.effects)} effects", t0,
                    timeline=int(event.timeline))
        return event_id

    # ── emotions ───────────────────────────────────────────────────────

    def decay_emotions(self, factor: float) -> None:
        t0 = time.time()
        for character in self.characters.values():
            character.emotional_state.decay(factor)
        self._trace("decay_emotions", f"factor={factor}",
                    f"{len(self.characters)} characters", t0)

    # ── queries ────────────────────────────────────────────────────────

    def can_perceive_timeline(self, character: CharacterId,
                              timeline: TimelineId) -> bool:
        target = self.characters.get(character)
        if target is None:
            return False
        return (target.current_timeline == timeline
                or Ability.TIMELINE_PERCEPTION in target.abilities)

    def has_memory_of_event(self, character: CharacterId, event: EventId) -> bool:
        target = self.characters.get(character)
        if target is None:
            return False
        for memory_id in target.memories:
            memory = self.memories.get(memory_id)
            if memory is not None and memory.event == event:
                return True
        return False

    def snapshot(self) -> Multiverse:
        """Independent deep copy, for readers and validators."""
        return copy.deepcopy(self)

    # ── traces (observability) ─────────────────────────────────────────

    def _trace(self, operation: str, input_text: object, output_text: object,
               t0: float, **metadata) -> None:
        """Registra un trace si enable_traces=True."""
        if not self._enable_traces:
            return
        self._traces.append(Trace(
            operation=operation,
            input_text=str(input_text)[:500],
            output_text=str(output_text)[:500],
            duration_ms=(time.time() - t0) * 1000,
            metadata=metadata,
        ))

    def traces(self, operation: str | None = None,
               limit: int = 100) -> list[Trace]:
        """Trazas de operaciones, las más recientes primero."""
        found = [t for t in reversed(self._traces)
                 if operation is None or t.operation == operation]
        return found[:limit]

    # ── utilidades ─────────────────────────────────────────────────────

    def __repr__(self) -> str:
        return (f"Multiverse(timelines={len(self.timelines)}, "
                f"characters={len(self.characters)}, "
                f"memories={len(self.memories)}, events={len(self.events)})")
