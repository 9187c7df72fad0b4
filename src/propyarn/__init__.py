"""propyarn: Multi-timeline narrative store + invariant checks + appraisal emotions."""

from propyarn.emotions import Belief, Emotion, EmotionalState, EmotionType, Goal
from propyarn.ids import CharacterId, EventId, MemoryId, TimelineId
from propyarn.models import (
    Ability, AddGoal, AppraisalTrigger, Character, CharacterDeath,
    CharacterResurrection, Compound, EffectBeforeCause, Event, Forged,
    KnowledgeGained, Memory, MemoryTransfer, RelationshipChange,
    RelationshipState, RetroactiveChange, Superposition, Timeline,
    TimelineBranch, Trace, Traded, Witnessed,
)
from propyarn.multiverse import Multiverse
from propyarn.properties import (
    InvariantViolation, assert_properties, collect_violations,
    validate_all_properties,
)
from propyarn.storage import Storage, load_snapshot, save_snapshot

__version__ = "0.1.0"
__all__ = [
    "Multiverse", "Storage", "save_snapshot", "load_snapshot",
    "TimelineId", "CharacterId", "MemoryId", "EventId",
    "Timeline", "Character", "Memory", "Event", "Trace",
    "Ability", "RelationshipState",
    "Witnessed", "Traded", "Forged", "Compound",
    "EffectBeforeCause", "RetroactiveChange", "Superposition",
    "CharacterDeath", "CharacterResurrection", "RelationshipChange",
    "KnowledgeGained", "MemoryTransfer", "TimelineBranch",
    "AppraisalTrigger", "AddGoal",
    "Goal", "Belief", "Emotion", "EmotionType", "EmotionalState",
    "validate_all_properties", "collect_violations", "assert_properties",
    "InvariantViolation",
]
