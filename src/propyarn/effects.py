"""Effect interpreter. Applies an event's effects to the store, in order.

Each effect stands alone: one that names a missing entity does nothing and
the rest still apply.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from propyarn.models import (
    AddGoal,
    AppraisalTrigger,
    CharacterDeath,
    CharacterResurrection,
    Effect,
    Event,
    KnowledgeGained,
    MemoryTransfer,
    RelationshipChange,
    TimelineBranch,
)

if TYPE_CHECKING:
    from propyarn.multiverse import Multiverse

logger = logging.getLogger(__name__)


def apply_effects(multiverse: Multiverse, event: Event) -> int:
    """Apply every effect of event. Returns how many actually changed state."""
    applied = 0
    for effect in event.effects:
        if apply_effect(multiverse, effect):
            applied += 1
    return applied


def apply_effect(multiverse: Multiverse, effect: Effect) -> bool:
    """Apply a single effect. False when it was a no-op."""
    characters = multiverse.characters

    if isinstance(effect, CharacterDeath):
        character = characters.get(effect.character)
        if character is None:
            return _skip(effect, effect.character)
        character.alive = False
        return True

    if isinstance(effect, CharacterResurrection):
        # The mechanism only lives in the event log
        character = characters.get(effect.character)
        if character is None:
            return _skip(effect, effect.character)
        character.alive = True
        return True

    if isinstance(effect, RelationshipChange):
        first = characters.get(effect.character1)
        second = characters.get(effect.character2)
        if first is not None:
            first.relationships[effect.character2] = effect.new_state
        if second is not None:
            second.relationships[effect.character1] = effect.new_state
        if first is None and second is None:
            return _skip(effect, effect.character1)
        return True

    if isinstance(effect, KnowledgeGained):
        character = characters.get(effect.character)
        if character is None:
            return _skip(effect, effect.character)
        character.knowledge_flags.add(effect.flag)
        return True

    if isinstance(effect, MemoryTransfer):
        # Copy, not move: from_character keeps the memory too
        receiver = characters.get(effect.to_character)
        if receiver is None:
            return _skip(effect, effect.to_character)
        receiver.memories.add(effect.memory)
        return True

    if isinstance(effect, TimelineBranch):
        # Branching goes through Multiverse.create_timeline_branch
        return False

    if isinstance(effect, AppraisalTrigger):
        character = characters.get(effect.character)
        if character is None:
            return _skip(effect, effect.character)
        character.emotional_state.appraise(effect.belief)
        return True

    if isinstance(effect, AddGoal):
        character = characters.get(effect.character)
        if character is None:
            return _skip(effect, effect.character)
        # Appraisal mutates goals; the event log keeps its own copy
        character.emotional_state.add_goal(dataclasses.replace(effect.goal))
        return True

    raise TypeError(f"Unknown event effect: {effect!r}")


def _skip(effect: Effect, missing: object) -> bool:
    logger.debug("Skipping %s: %s not found", type(effect).__name__, missing)
    return False
