"""Narrative invariants. Replay the history, compare with what is stored.

Each check takes a settled Multiverse and returns None when the property
holds, or a message naming the offending ids and the mismatch.
"""

from __future__ import annotations

import math
from typing import Callable, Optional

from propyarn.ids import CharacterId, TimelineId
from propyarn.models import (
    Ability,
    CharacterDeath,
    CharacterResurrection,
    Compound,
    Forged,
    KnowledgeGained,
    RelationshipChange,
    RelationshipState,
    Traded,
    Witnessed,
)
from propyarn.multiverse import Multiverse

Check = Callable[[Multiverse], Optional[str]]

_PAD_AXES = ("pleasure", "arousal", "dominance")


class InvariantViolation(AssertionError):
    """Raised by assert_properties when a property fails."""

    def __init__(self, property_name: str, message: str) -> None:
        self.property_name = property_name
        self.message = message
        super().__init__(f"{property_name}: {message}")


# ── 1. Memory consistency ──────────────────────────────────────────────


def check_memory_consistency(multiverse: Multiverse) -> str | None:
    """Characters only hold memories that exist and are justified by provenance."""
    for char_id, character in multiverse.characters.items():
        for memory_id in sorted(character.memories):
            memory = multiverse.memories.get(memory_id)
            if memory is None:
                return f"{memory_id} held by {char_id} not found in multiverse"

            provenance = memory.provenance
            if isinstance(provenance, Witnessed):
                event = multiverse.events.get(memory.event)
                if event is not None and provenance.character not in event.participants:
                    return (
                        f"{char_id} has witnessed memory {memory_id} of {memory.event}, "
                        f"but witness {provenance.character} was not present"
                    )
            elif isinstance(provenance, Traded):
                pass
            elif isinstance(provenance, Forged):
                if not provenance.forger:
                    return (f"{char_id} has forged memory {memory_id} "
                            f"with no forger specified")
            elif isinstance(provenance, Compound):
                for source_id in provenance.sources:
                    if source_id not in multiverse.memories:
                        return (f"Compound memory {memory_id} references "
                                f"non-existent source {source_id}")
            else:
                raise TypeError(f"Unknown memory provenance: {provenance!r}")
    return None


# ── 2. Timeline perception ─────────────────────────────────────────────


def check_timeline_perception(multiverse: Multiverse) -> str | None:
    """Memories from another timeline need TimelinePerception."""
    for char_id, character in multiverse.characters.items():
        if Ability.TIMELINE_PERCEPTION in character.abilities:
            continue
        for memory_id in sorted(character.memories):
            memory = multiverse.memories.get(memory_id)
            if memory is None:
                return f"{memory_id} held by {char_id} not found"
            if memory.source_timeline != character.current_timeline:
                return (
                    f"{character.name} ({char_id}) has memory from "
                    f"{memory.source_timeline} but is in "
                    f"{character.current_timeline} without TimelinePerception ability"
                )
    return None


# ── 3. Causality justification ─────────────────────────────────────────


def check_causality_justification(multiverse: Multiverse) -> str | None:
    """Causality violations need a mechanism and an unstable timeline."""
    for event in multiverse.events.values():
        violation = event.causality_violation
        if violation is None:
            continue
        if not violation.mechanism:
            return (f"{event.id} violates causality ({type(violation).__name__}) "
                    f"without specified mechanism")
        timeline = multiverse.timelines.get(event.timeline)
        if timeline is not None and timeline.causality_stable:
            return (f"{event.id} violates causality but {timeline.id} "
                    f"is marked stable")
    return None


# ── 4. Relationship consistency ────────────────────────────────────────


def check_relationship_consistency(multiverse: Multiverse) -> str | None:
    """Stored relationships match the last change replayed in the timeline."""
    for timeline in multiverse.timelines.values():
        last: dict[tuple[CharacterId, CharacterId], RelationshipState] = {}
        for event_id in timeline.events:
            event = multiverse.events.get(event_id)
            if event is None:
                continue
            for effect in event.effects:
                if isinstance(effect, RelationshipChange):
                    last[(effect.character1, effect.character2)] = effect.new_state
                    last[(effect.character2, effect.character1)] = effect.new_state

        for char_id in sorted(timeline.characters):
            character = multiverse.characters.get(char_id)
            if character is None:
                continue
            for other_id, current in character.relationships.items():
                expected = last.get((char_id, other_id))
                if expected is not None and expected != current:
                    return (
                        f"Relationship between {char_id} and {other_id} is "
                        f"{current.name} but last event in {timeline.id} "
                        f"set it to {expected.name}"
                    )
    return None


# ── 5. Death finality ──────────────────────────────────────────────────


def check_death_finality(multiverse: Multiverse) -> str | None:
    """Dead characters don't act unless the event itself resurrects them.

    Timelines replay in ascending id order, so every parent must come
    before its branches. A branch starts from a copy of its parent's table
    after the parent's whole history.
    """
    final: dict[TimelineId, dict[CharacterId, bool]] = {}

    for timeline_id in sorted(multiverse.timelines):
        timeline = multiverse.timelines[timeline_id]
        alive: dict[CharacterId, bool] = {}

        if timeline.parent is not None:
            if timeline.parent not in final:
                return (f"{timeline_id} was replayed before its parent "
                        f"{timeline.parent}")
            alive = dict(final[timeline.parent])
        for char_id in timeline.characters:
            alive.setdefault(char_id, True)

        for event_id in timeline.events:
            event = multiverse.events.get(event_id)
            if event is None:
                continue

            resurrected = {e.character for e in event.effects
                           if isinstance(e, CharacterResurrection)}
            for participant in sorted(event.participants):
                if not alive.get(participant, False) and participant not in resurrected:
                    character = multiverse.characters.get(participant)
                    name = character.name if character is not None else "Unknown"
                    return (f"Dead character {participant} ({name}) participates "
                            f"in {event_id} without resurrection")

            for effect in event.effects:
                if isinstance(effect, CharacterDeath):
                    alive[effect.character] = False
                elif isinstance(effect, CharacterResurrection):
                    if not effect.mechanism:
                        return (f"{effect.character} resurrected in {event_id} "
                                f"without mechanism")
                    alive[effect.character] = True

        final[timeline_id] = alive

    for character in multiverse.characters.values():
        table = final.get(character.current_timeline)
        if table is None:
            continue
        expected = table.get(character.id, True)
        if character.alive != expected:
            return (
                f"Character {character.id} ({character.name}) alive status is "
                f"{character.alive} but should be {expected} based on events in "
                f"{character.current_timeline}"
            )
    return None


# ── 6. Knowledge propagation ───────────────────────────────────────────


def check_knowledge_propagation(multiverse: Multiverse) -> str | None:
    """Every knowledge flag was granted by an event in the current timeline."""
    granted: dict[TimelineId, dict[CharacterId, set[str]]] = {}
    for timeline in multiverse.timelines.values():
        flags: dict[CharacterId, set[str]] = {}
        for event_id in timeline.events:
            event = multiverse.events.get(event_id)
            if event is None:
                continue
            for effect in event.effects:
                if isinstance(effect, KnowledgeGained):
                    flags.setdefault(effect.character, set()).add(effect.flag)
        granted[timeline.id] = flags

    for character in multiverse.characters.values():
        timeline_flags = granted.get(character.current_timeline)
        if timeline_flags is None:
            continue
        own = timeline_flags.get(character.id)
        if own is None:
            if character.knowledge_flags:
                return (f"Character {character.id} has knowledge flags but no "
                        f"events in {character.current_timeline} granted any")
            continue
        for flag in sorted(character.knowledge_flags):
            if flag not in own:
                return (f"Character {character.id} has knowledge flag '{flag}' "
                        f"but no event in {character.current_timeline} granted it")
    return None


# ── 7. Emotional bounds ────────────────────────────────────────────────


def check_emotional_bounds(multiverse: Multiverse) -> str | None:
    """PAD stays within [-1, 1] on every axis."""
    for character in multiverse.characters.values():
        pad = character.emotional_state.get_pad()
        for axis, value in zip(_PAD_AXES, pad):
            if math.isnan(value) or not -1.0 <= value <= 1.0:
                return (f"Character {character.id} ({character.name}) has invalid "
                        f"PAD {axis} value: {value}")
    return None


# ── Combinators ────────────────────────────────────────────────────────

PROPERTIES: list[tuple[str, Check]] = [
    ("memory_consistency", check_memory_consistency),
    ("timeline_perception", check_timeline_perception),
    ("causality_justification", check_causality_justification),
    ("relationship_consistency", check_relationship_consistency),
    ("death_finality", check_death_finality),
    ("knowledge_propagation", check_knowledge_propagation),
    ("emotional_bounds", check_emotional_bounds),
]


def validate_all_properties(multiverse: Multiverse) -> str | None:
    """Run every check in order; stop at the first violation."""
    for _, check in PROPERTIES:
        message = check(multiverse)
        if message is not None:
            return message
    return None


def collect_violations(multiverse: Multiverse) -> list[tuple[str, str]]:
    """Run every check and return all (property_name, message) failures."""
    violations = []
    for name, check in PROPERTIES:
        message = check(multiverse)
        if message is not None:
            violations.append((name, message))
    return violations


def assert_properties(multiverse: Multiverse) -> None:
    for name, check in PROPERTIES:
        message = check(multiverse)
        if message is not None:
            raise InvariantViolation(name, message)
