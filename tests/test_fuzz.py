"""Generated action sequences. Every well-formed step must keep every property.

The driver below only builds events a story engine would consider legal
(living actors, actors in their own timeline, justified memories); the
checks are run after each step, so a failure points at the step that broke it.
"""

from hypothesis import given, settings, strategies as st

from propyarn import (
    Ability,
    AddGoal,
    AppraisalTrigger,
    Belief,
    CharacterDeath,
    CharacterResurrection,
    EffectBeforeCause,
    Event,
    Goal,
    KnowledgeGained,
    MemoryTransfer,
    Multiverse,
    RelationshipChange,
    RelationshipState,
    Superposition,
    Traded,
    validate_all_properties,
)

# ── Strategies ─────────────────────────────────────────────────────────

indices = st.integers(min_value=0, max_value=50)
words = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=3, max_size=12)

actions = st.one_of(
    st.tuples(st.just("create"), words, indices),
    st.tuples(st.just("kill"), indices),
    st.tuples(st.just("resurrect"), indices, words),
    st.tuples(st.just("relate"), indices, indices, st.sampled_from(RelationshipState)),
    st.tuples(st.just("know"), indices, words),
    st.tuples(st.just("trade"), indices, indices, words),
    st.tuples(st.just("branch"), indices),
    st.tuples(st.just("witness"), indices, indices),
    st.tuples(st.just("violate"), indices, words),
    st.tuples(st.just("ability"), indices, st.sampled_from(Ability)),
    st.tuples(st.just("appraise"), indices, st.floats(-1.0, 1.0),
              st.floats(-1.0, 1.0), st.floats(0.0, 1.0), st.booleans()),
    st.tuples(st.just("decay"), st.floats(0.0, 1.0)),
)


def pick(mapping, index):
    keys = list(mapping)
    return keys[index % len(keys)] if keys else None


# ── Driver ─────────────────────────────────────────────────────────────


def apply_action(mv, action):
    kind = action[0]
    chars = mv.characters

    if kind == "create":
        mv.create_character(action[1], pick(mv.timelines, action[2]))
        return

    if kind == "decay":
        mv.decay_emotions(action[1])
        return

    if kind == "branch":
        parent = pick(mv.timelines, action[1])
        if mv.timelines[parent].events:
            mv.create_timeline_branch(parent, mv.timelines[parent].events[-1])
        return

    if kind == "violate":
        timeline = pick(mv.timelines, action[1])
        mv.destabilize_timeline(timeline)
        mv.record_event(Event(timeline=timeline, description="Causality breaks",
                              causality_violation=EffectBeforeCause(action[2])))
        return

    if not chars:
        return
    cid = pick(chars, action[1])
    actor = chars[cid]
    here = actor.current_timeline

    if kind == "kill" and actor.alive:
        mv.record_event(Event(timeline=here, participants={cid},
                              effects=[CharacterDeath(cid)]))
    elif kind == "resurrect":
        mv.record_event(Event(timeline=here, participants={cid},
                              effects=[CharacterResurrection(cid, action[2])]))
    elif kind == "ability" and actor.alive:
        mv.grant_ability(cid, action[2])
    elif not actor.alive:
        return
    elif kind == "relate":
        other = pick(chars, action[2])
        if chars[other].alive and chars[other].current_timeline == here:
            mv.record_event(Event(timeline=here, participants={cid, other},
                                  effects=[RelationshipChange(cid, other, action[3])]))
    elif kind == "know":
        mv.record_event(Event(timeline=here, participants={cid},
                              effects=[KnowledgeGained(cid, action[2])]))
    elif kind == "trade":
        buyer = pick(chars, action[2])
        history = mv.timelines[here].events
        if history and chars[buyer].alive and chars[buyer].current_timeline == here:
            memory = mv.create_memory(history[-1], here, Traded(cid, action[3]),
                                      fidelity=0.9)
            mv.record_event(Event(timeline=here, participants={cid, buyer},
                                  effects=[MemoryTransfer(memory, cid, buyer)]))
    elif kind == "witness":
        seen = [e for e in mv.timelines[here].events
                if cid in mv.events[e].participants]
        if seen:
            event = seen[action[2] % len(seen)]
            mv.install_memory(cid, mv.create_witnessed_memory(event, here, cid))
    elif kind == "appraise":
        _, _, utility, congruence, likelihood, incremental = action
        name = f"goal-{cid}"
        effects = [AppraisalTrigger(cid, Belief(likelihood, [name], [congruence],
                                                is_incremental=incremental))]
        if name not in actor.emotional_state.goals:
            effects.insert(0, AddGoal(cid, Goal(name, utility=utility)))
        mv.record_event(Event(timeline=here, participants={cid}, effects=effects))


# ── Properties ─────────────────────────────────────────────────────────


@settings(max_examples=60, deadline=None)
@given(st.lists(actions, min_size=1, max_size=40))
def test_legal_sequences_keep_every_property(steps):
    mv = Multiverse()
    for step in steps:
        apply_action(mv, step)
        message = validate_all_properties(mv)
        assert message is None, f"{step!r} broke: {message}"


@settings(max_examples=30, deadline=None)
@given(st.lists(actions, min_size=1, max_size=30))
def test_ids_stay_monotonic(steps):
    mv = Multiverse()
    for step in steps:
        apply_action(mv, step)
    for mapping in (mv.timelines, mv.characters, mv.memories, mv.events):
        keys = list(mapping)
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)


@settings(max_examples=30, deadline=None)
@given(words)
def test_superposition_on_stable_timeline_is_caught(mechanism):
    mv = Multiverse()
    mv.record_event(Event(timeline=mv.root_timeline,
                          causality_violation=Superposition(mechanism)))
    assert "marked stable" in validate_all_properties(mv)
