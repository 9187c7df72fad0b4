"""Plain-dict codec for entities and tagged variants. JSON-safe both ways.

Variants are encoded as ``{"kind": "<name>", ...fields}``; ids as ints;
sets as sorted lists.
"""

from __future__ import annotations

from typing import Any

from propyarn.emotions import Belief, Emotion, EmotionalState, EmotionType, Goal
from propyarn.ids import CharacterId, EventId, MemoryId, TimelineId
from propyarn.models import (
    Ability,
    AddGoal,
    AppraisalTrigger,
    CausalityViolation,
    Character,
    CharacterDeath,
    CharacterResurrection,
    Compound,
    Effect,
    EffectBeforeCause,
    Event,
    Forged,
    KnowledgeGained,
    Memory,
    MemoryTransfer,
    Provenance,
    RelationshipChange,
    RelationshipState,
    RetroactiveChange,
    Superposition,
    Timeline,
    TimelineBranch,
    Traded,
    Witnessed,
)
from propyarn.multiverse import Multiverse


def _opt(value: Any, wrap: type) -> Any:
    return None if value is None else wrap(value)


def _tag(data: dict) -> str:
    try:
        return data["kind"]
    except (KeyError, TypeError):
        raise ValueError(f"Missing variant tag in {data!r}") from None


# ── Emotional state ────────────────────────────────────────────────────


def goal_to_dict(goal: Goal) -> dict:
    return {
        "name": goal.name,
        "utility": goal.utility,
        "likelihood": goal.likelihood,
        "is_maintenance": goal.is_maintenance,
    }


def goal_from_dict(data: dict) -> Goal:
    return Goal(
        name=data["name"],
        utility=data["utility"],
        likelihood=data.get("likelihood", 0.5),
        is_maintenance=data.get("is_maintenance", False),
    )


def belief_to_dict(belief: Belief) -> dict:
    return {
        "likelihood": belief.likelihood,
        "affected_goal_names": list(belief.affected_goal_names),
        "goal_congruences": list(belief.goal_congruences),
        "causal_agent_name": belief.causal_agent_name,
        "is_incremental": belief.is_incremental,
    }


def belief_from_dict(data: dict) -> Belief:
    return Belief(
        likelihood=data["likelihood"],
        affected_goal_names=list(data.get("affected_goal_names", [])),
        goal_congruences=list(data.get("goal_congruences", [])),
        causal_agent_name=data.get("causal_agent_name"),
        is_incremental=data.get("is_incremental", False),
    )


def emotional_state_to_dict(state: EmotionalState) -> dict:
    return {
        "emotions": [{"type": e.type.value, "intensity": e.intensity}
                     for e in state.emotions],
        "goals": [goal_to_dict(g) for g in state.goals.values()],
        "gain": state.gain,
    }


def emotional_state_from_dict(data: dict) -> EmotionalState:
    goals = [goal_from_dict(g) for g in data.get("goals", [])]
    return EmotionalState(
        emotions=[Emotion(EmotionType(e["type"]), e["intensity"])
                  for e in data.get("emotions", [])],
        goals={g.name: g for g in goals},
        gain=data.get("gain", 1.0),
    )


# ── Variants ───────────────────────────────────────────────────────────


def provenance_to_dict(provenance: Provenance) -> dict:
    if isinstance(provenance, Witnessed):
        return {"kind": "witnessed", "character": int(provenance.character)}
    if isinstance(provenance, Traded):
        return {"kind": "traded", "original_owner": int(provenance.original_owner),
                "acquired_via": provenance.acquired_via}
    if isinstance(provenance, Forged):
        return {"kind": "forged", "forger": provenance.forger}
    if isinstance(provenance, Compound):
        return {"kind": "compound", "sources": [int(s) for s in provenance.sources]}
    raise TypeError(f"Unknown memory provenance: {provenance!r}")


def provenance_from_dict(data: dict) -> Provenance:
    kind = _tag(data)
    if kind == "witnessed":
        return Witnessed(CharacterId(data["character"]))
    if kind == "traded":
        return Traded(CharacterId(data["original_owner"]), data["acquired_via"])
    if kind == "forged":
        return Forged(data["forger"])
    if kind == "compound":
        return Compound(tuple(MemoryId(s) for s in data["sources"]))
    raise ValueError(f"Unknown provenance kind: {kind!r}")


_VIOLATIONS = {
    "effect_before_cause": EffectBeforeCause,
    "retroactive_change": RetroactiveChange,
    "superposition": Superposition,
}
_VIOLATION_KINDS = {cls: kind for kind, cls in _VIOLATIONS.items()}


def violation_to_dict(violation: CausalityViolation) -> dict:
    kind = _VIOLATION_KINDS.get(type(violation))
    if kind is None:
        raise TypeError(f"Unknown causality violation: {violation!r}")
    return {"kind": kind, "mechanism": violation.mechanism}


def violation_from_dict(data: dict) -> CausalityViolation:
    kind = _tag(data)
    cls = _VIOLATIONS.get(kind)
    if cls is None:
        raise ValueError(f"Unknown causality violation kind: {kind!r}")
    return cls(data["mechanism"])


def effect_to_dict(effect: Effect) -> dict:
    if isinstance(effect, CharacterDeath):
        return {"kind": "character_death", "character": int(effect.character)}
    if isinstance(effect, CharacterResurrection):
        return {"kind": "character_resurrection", "character": int(effect.character),
                "mechanism": effect.mechanism}
    if isinstance(effect, RelationshipChange):
        return {"kind": "relationship_change",
                "character1": int(effect.character1),
                "character2": int(effect.character2),
                "new_state": effect.new_state.name}
    if isinstance(effect, KnowledgeGained):
        return {"kind": "knowledge_gained", "character": int(effect.character),
                "flag": effect.flag}
    if isinstance(effect, MemoryTransfer):
        return {"kind": "memory_transfer", "memory": int(effect.memory),
                "from_character": int(effect.from_character),
                "to_character": int(effect.to_character)}
    if isinstance(effect, TimelineBranch):
        return {"kind": "timeline_branch", "new_timeline": int(effect.new_timeline)}
    if isinstance(effect, AppraisalTrigger):
        return {"kind": "appraisal_trigger", "character": int(effect.character),
                "belief": belief_to_dict(effect.belief)}
    if isinstance(effect, AddGoal):
        return {"kind": "add_goal", "character": int(effect.character),
                "goal": goal_to_dict(effect.goal)}
    raise TypeError(f"Unknown event effect: {effect!r}")


def effect_from_dict(data: dict) -> Effect:
    kind = _tag(data)
    if kind == "character_death":
        return CharacterDeath(CharacterId(data["character"]))
    if kind == "character_resurrection":
        return CharacterResurrection(CharacterId(data["character"]), data["mechanism"])
    if kind == "relationship_change":
        return RelationshipChange(CharacterId(data["character1"]),
                                  CharacterId(data["character2"]),
                                  RelationshipState[data["new_state"]])
    if kind == "knowledge_gained":
        return KnowledgeGained(CharacterId(data["character"]), data["flag"])
    if kind == "memory_transfer":
        return MemoryTransfer(MemoryId(data["memory"]),
                              CharacterId(data["from_character"]),
                              CharacterId(data["to_character"]))
    if kind == "timeline_branch":
        return TimelineBranch(TimelineId(data["new_timeline"]))
    if kind == "appraisal_trigger":
        return AppraisalTrigger(CharacterId(data["character"]),
                                belief_from_dict(data["belief"]))
    if kind == "add_goal":
        return AddGoal(CharacterId(data["character"]), goal_from_dict(data["goal"]))
    raise ValueError(f"Unknown effect kind: {kind!r}")


# ── Entities ───────────────────────────────────────────────────────────


def timeline_to_dict(timeline: Timeline) -> dict:
    return {
        "id": int(timeline.id),
        "parent": _opt(timeline.parent, int),
        "divergence_event": _opt(timeline.divergence_event, int),
        "events": [int(e) for e in timeline.events],
        "characters": sorted(int(c) for c in timeline.characters),
        "causality_stable": timeline.causality_stable,
    }


def timeline_from_dict(data: dict) -> Timeline:
    return Timeline(
        id=TimelineId(data["id"]),
        parent=_opt(data.get("parent"), TimelineId),
        divergence_event=_opt(data.get("divergence_event"), EventId),
        events=[EventId(e) for e in data.get("events", [])],
        characters={CharacterId(c) for c in data.get("characters", [])},
        causality_stable=data.get("causality_stable", True),
    )


def character_to_dict(character: Character) -> dict:
    return {
        "id": int(character.id),
        "name": character.name,
        "current_timeline": int(character.current_timeline),
        "native_timeline": int(character.native_timeline),
        "memories": sorted(int(m) for m in character.memories),
        "knowledge_flags": sorted(character.knowledge_flags),
        "alive": character.alive,
        "abilities": sorted(a.value for a in character.abilities),
        # JSON object keys are strings; keep pairs instead
        "relationships": [[int(other), state.name]
                          for other, state in character.relationships.items()],
        "emotional_state": emotional_state_to_dict(character.emotional_state),
    }


def character_from_dict(data: dict) -> Character:
    return Character(
        id=CharacterId(data["id"]),
        name=data["name"],
        current_timeline=TimelineId(data["current_timeline"]),
        native_timeline=TimelineId(data["native_timeline"]),
        memories={MemoryId(m) for m in data.get("memories", [])},
        knowledge_flags=set(data.get("knowledge_flags", [])),
        alive=data.get("alive", True),
        abilities={Ability(a) for a in data.get("abilities", [])},
        relationships={CharacterId(other): RelationshipState[state]
                       for other, state in data.get("relationships", [])},
        emotional_state=emotional_state_from_dict(data.get("emotional_state", {})),
    )


def memory_to_dict(memory: Memory) -> dict:
    return {
        "id": int(memory.id),
        "event": int(memory.event),
        "source_timeline": int(memory.source_timeline),
        "provenance": provenance_to_dict(memory.provenance),
        "fidelity": memory.fidelity,
    }


def memory_from_dict(data: dict) -> Memory:
    return Memory(
        id=MemoryId(data["id"]),
        event=EventId(data["event"]),
        source_timeline=TimelineId(data["source_timeline"]),
        provenance=provenance_from_dict(data["provenance"]),
        fidelity=data.get("fidelity", 1.0),
    )


def event_to_dict(event: Event) -> dict:
    return {
        "id": int(event.id),
        "timeline": int(event.timeline),
        "description": event.description,
        "participants": sorted(int(c) for c in event.participants),
        "effects": [effect_to_dict(e) for e in event.effects],
        "causality_violation": (None if event.causality_violation is None
                                else violation_to_dict(event.causality_violation)),
    }


def event_from_dict(data: dict) -> Event:
    violation = data.get("causality_violation")
    return Event(
        id=EventId(data["id"]),
        timeline=TimelineId(data["timeline"]),
        description=data.get("description", ""),
        participants={CharacterId(c) for c in data.get("participants", [])},
        effects=[effect_from_dict(e) for e in data.get("effects", [])],
        causality_violation=None if violation is None else violation_from_dict(violation),
    )


# ── Whole store ────────────────────────────────────────────────────────


def multiverse_to_dict(multiverse: Multiverse) -> dict:
    """Full structural snapshot: every entity map plus the id counters."""
    return {
        "root_timeline": int(multiverse.root_timeline),
        "counters": multiverse.counters,
        "timelines": [timeline_to_dict(t) for t in multiverse.timelines.values()],
        "characters": [character_to_dict(c) for c in multiverse.characters.values()],
        "memories": [memory_to_dict(m) for m in multiverse.memories.values()],
        "events": [event_to_dict(e) for e in multiverse.events.values()],
    }


def multiverse_from_dict(data: dict, enable_traces: bool = False) -> Multiverse:
    multiverse = Multiverse(enable_traces=enable_traces)
    multiverse.root_timeline = TimelineId(data.get("root_timeline", 0))
    multiverse.restore_counters(data["counters"])
    multiverse.timelines = {t.id: t for t in map(timeline_from_dict, data["timelines"])}
    multiverse.characters = {c.id: c for c in map(character_from_dict, data["characters"])}
    multiverse.memories = {m.id: m for m in map(memory_from_dict, data["memories"])}
    multiverse.events = {e.id: e for e in map(event_from_dict, data["events"])}
    return multiverse
