"""Tests for SQLite snapshots."""

import os
import tempfile

import pytest

from propyarn import (
    Ability,
    AddGoal,
    AppraisalTrigger,
    Belief,
    CharacterDeath,
    Compound,
    Event,
    Goal,
    KnowledgeGained,
    MemoryTransfer,
    Multiverse,
    RelationshipChange,
    RelationshipState,
    Storage,
    Superposition,
    Traded,
    load_snapshot,
    save_snapshot,
    validate_all_properties,
)
from propyarn.ids import CharacterId, EventId, MemoryId, TimelineId
from propyarn.serialization import effect_from_dict, multiverse_to_dict


@pytest.fixture
def db_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    os.unlink(path)


@pytest.fixture
def populated():
    mv = Multiverse(enable_traces=True)
    t0 = mv.root_timeline
    vera = mv.create_character("Vera Kandros", t0)
    khelis = mv.create_character("Khelis Tev", t0)
    mv.grant_ability(vera, Ability.TIMELINE_PERCEPTION)

    e0 = mv.record_event(Event(
        timeline=t0, description="The fold opens",
        participants={vera, khelis},
        effects=[
            RelationshipChange(vera, khelis, RelationshipState.DISTRUSTFUL),
            KnowledgeGained(vera, "fold_coordinates"),
            AddGoal(vera, Goal("close the fold", utility=0.9)),
            AppraisalTrigger(vera, Belief(0.4, ["close the fold"], [1.0],
                                          causal_agent_name="Khelis", is_incremental=True)),
        ],
    ))
    t1 = mv.create_timeline_branch(t0, e0)
    witnessed = mv.create_witnessed_memory(e0, t0, vera)
    mv.install_memory(vera, witnessed)
    traded = mv.create_memory(e0, t0, Traded(vera, "Memory Market"), fidelity=0.9)
    mv.create_memory(e0, t0, Compound((witnessed, traded)))
    mv.record_event(Event(
        timeline=t0, description="Trade in the Dark Spoke",
        participants={vera, khelis},
        effects=[MemoryTransfer(traded, vera, khelis)],
    ))
    mv.destabilize_timeline(t1)
    mv.record_event(Event(
        timeline=t1, description="Riven fires backward",
        participants={khelis},
        effects=[CharacterDeath(khelis)],
        causality_violation=Superposition("Shimmer drift"),
    ))
    mv.move_character(vera, t1)
    return mv


class TestSnapshot:
    def test_roundtrip(self, populated, db_path):
        with Storage(db_path) as storage:
            storage.save_multiverse(populated)
        restored = load_snapshot(db_path)

        assert multiverse_to_dict(restored) == multiverse_to_dict(populated)
        assert validate_all_properties(restored) == validate_all_properties(populated)
        vera = restored.characters[CharacterId(0)]
        assert vera.emotional_state.get_pad() == populated.characters[CharacterId(0)].emotional_state.get_pad()
        assert vera.relationships[CharacterId(1)] is RelationshipState.DISTRUSTFUL
        assert isinstance(next(iter(vera.memories)), MemoryId)

    def test_counters_continue(self, populated, db_path):
        save_snapshot(populated, db_path)
        restored = load_snapshot(db_path)
        assert restored.create_character("New", restored.root_timeline) == CharacterId(2)
        assert restored.create_timeline_branch(TimelineId(0), EventId(0)) == TimelineId(2)
        assert restored.record_event(Event(timeline=TimelineId(0))) == EventId(3)

    def test_save_replaces(self, populated, db_path):
        with Storage(db_path) as storage:
            storage.save_multiverse(populated)
            storage.save_multiverse(Multiverse())
            assert storage.count("characters") == 0
            assert storage.count("timelines") == 1

    def test_empty_db(self, db_path):
        assert load_snapshot(db_path) is None

    def test_single_reads(self, populated, db_path):
        with Storage(db_path) as storage:
            storage.save_multiverse(populated)
            assert storage.load_character(1).name == "Khelis Tev"
            assert storage.load_timeline(1).causality_stable is False
            assert storage.load_memory(1).provenance == Traded(CharacterId(0), "Memory Market")
            assert [e.description for e in storage.events_in_timeline(0)] == [
                "The fold opens", "Trade in the Dark Spoke"]
            assert storage.load_character(42) is None

    def test_traces_persisted(self, populated, db_path):
        save_snapshot(populated, db_path)
        with Storage(db_path) as storage:
            traces = storage.load_traces(operation="record_event")
        assert len(traces) == 3

    def test_in_memory(self, populated):
        with Storage(":memory:") as storage:
            storage.save_multiverse(populated)
            assert storage.count("events") == 3

    def test_memory_transfer_sides_survive(self, populated, db_path):
        save_snapshot(populated, db_path)
        with Storage(db_path) as storage:
            trade = storage.events_in_timeline(0)[1]
        assert trade.effects == [MemoryTransfer(MemoryId(1), CharacterId(0), CharacterId(1))]

    def test_unknown_variant(self):
        with pytest.raises(ValueError):
            effect_from_dict({"kind": "time_loop", "character": 1})
        with pytest.raises(ValueError):
            effect_from_dict({"character": 1})
