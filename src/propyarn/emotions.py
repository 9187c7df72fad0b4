"""Appraisal de emociones. Un belief mueve goals, los goals generan emociones.

goal congruence -> emotion -> PAD (Pleasure, Arousal, Dominance), siempre en (-1, 1).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

DEFAULT_GAIN = 1.0
DEFAULT_GOAL_LIKELIHOOD = 0.5
# Emociones por debajo de este umbral desaparecen al decaer
DECAY_THRESHOLD = 0.001


class EmotionType(str, Enum):
    DISTRESS = "distress"
    FEAR = "fear"
    HOPE = "hope"
    JOY = "joy"
    SATISFACTION = "satisfaction"
    FEAR_CONFIRMED = "fear-confirmed"
    DISAPPOINTMENT = "disappointment"
    RELIEF = "relief"
    HAPPY_FOR = "happy-for"
    RESENTMENT = "resentment"
    PITY = "pity"
    GLOATING = "gloating"
    GRATITUDE = "gratitude"
    ANGER = "anger"
    GRATIFICATION = "gratification"
    REMORSE = "remorse"

    @property
    def pad(self) -> tuple[float, float, float]:
        p, a, d = PAD_TABLE[_PAD_ROW[self]]
        return float(p), float(a), float(d)


# Rows follow EmotionType declaration order.
PAD_TABLE = np.array([
    [-0.61, 0.28, -0.36],   # distress
    [-0.64, 0.60, -0.43],   # fear
    [0.51, 0.23, 0.14],     # hope
    [0.76, 0.48, 0.35],     # joy
    [0.87, 0.20, 0.62],     # satisfaction
    [-0.61, 0.06, -0.32],   # fear-confirmed
    [-0.61, -0.15, -0.29],  # disappointment
    [0.29, -0.19, -0.28],   # relief
    [0.64, 0.35, 0.25],     # happy-for
    [-0.35, 0.35, 0.29],    # resentment
    [-0.52, 0.02, -0.21],   # pity
    [-0.45, 0.48, 0.42],    # gloating
    [0.64, 0.16, -0.21],    # gratitude
    [-0.51, 0.59, 0.25],    # anger
    [0.69, 0.57, 0.63],     # gratification
    [-0.57, 0.28, -0.34],   # remorse
], dtype=np.float64)

_PAD_ROW = {etype: i for i, etype in enumerate(EmotionType)}


@dataclass
class Goal:
    """Un objetivo del personaje. utility en [-1, 1], likelihood en [-1, 1]."""

    name: str
    utility: float
    likelihood: float = DEFAULT_GOAL_LIKELIHOOD
    is_maintenance: bool = False


@dataclass
class Belief:
    """Evidence about goals. Congruences pair with goal names by position."""

    likelihood: float
    affected_goal_names: list[str] = field(default_factory=list)
    goal_congruences: list[float] = field(default_factory=list)
    causal_agent_name: str | None = None  # informativo, no afecta el cálculo
    is_incremental: bool = False


@dataclass
class Emotion:
    type: EmotionType
    intensity: float


@dataclass
class EmotionalState:
    """Goals + emociones acumuladas de un personaje.

    API:
        state.add_goal(goal)    : registrar/reemplazar un objetivo
        state.appraise(belief)  : evaluar evidencia, emitir emociones
        state.get_pad()         : humor actual (P, A, D)
        state.decay(factor)     : las emociones se apagan
    """

    emotions: list[Emotion] = field(default_factory=list)
    goals: dict[str, Goal] = field(default_factory=dict)
    gain: float = DEFAULT_GAIN

    # ── goals ──────────────────────────────────────────────────────────

    def add_goal(self, goal: Goal) -> None:
        self.goals[goal.name] = goal

    # ── emotions ───────────────────────────────────────────────────────

    def update(self, emotion: Emotion) -> None:
        """Accumulate into the entry of the same type, or add a new one."""
        for existing in self.emotions:
            if existing.type == emotion.type:
                existing.intensity += emotion.intensity
                return
        self.emotions.append(Emotion(emotion.type, emotion.intensity))

    def intensity(self, etype: EmotionType) -> float:
        for emotion in self.emotions:
            if emotion.type == etype:
                return emotion.intensity
        return 0.0

    # ── appraisal ──────────────────────────────────────────────────────

    def appraise(self, belief: Belief) -> None:
        """Evalúa un belief contra los goals afectados.

        Primero se actualizan todas las likelihoods, después se emiten
        las emociones. Goals desconocidos se ignoran.
        """
        updates = []
        for goal_name, congruence in zip(belief.affected_goal_names,
                                         belief.goal_congruences):
            goal = self.goals.get(goal_name)
            if goal is None:
                continue
            delta = _update_likelihood(goal, congruence, belief.likelihood,
                                       belief.is_incremental)
            updates.append((goal.utility, delta, goal.likelihood))

        for utility, delta, likelihood in updates:
            for etype, intensity in evaluate_emotions(utility, delta, likelihood):
                self.update(Emotion(etype, intensity))

    # ── mood ───────────────────────────────────────────────────────────

    def get_pad(self) -> tuple[float, float, float]:
        """Suma ponderada de PAD por intensidad, comprimida a (-1, 1)."""
        if not self.emotions:
            return 0.0, 0.0, 0.0
        rows = [_PAD_ROW[e.type] for e in self.emotions]
        weights = np.array([e.intensity for e in self.emotions], dtype=np.float64)
        totals = weights @ PAD_TABLE[rows]
        p, a, d = (_squash(float(x), self.gain) for x in totals)
        return p, a, d

    # ── decay ──────────────────────────────────────────────────────────

    def decay(self, factor: float, threshold: float = DECAY_THRESHOLD) -> None:
        """Multiplica intensidades por factor y poda las que quedan <= threshold."""
        alive = []
        for emotion in self.emotions:
            emotion.intensity *= factor
            if emotion.intensity > threshold:
                alive.append(emotion)
        self.emotions = alive


def _squash(x: float, gain: float) -> float:
    if x >= 0:
        return gain * x / (gain * x + 1)
    return -gain * x / (gain * x - 1)


def _update_likelihood(goal: Goal, congruence: float, likelihood: float,
                       incremental: bool) -> float:
    """Apply belief evidence to goal.likelihood and return the delta."""
    old = goal.likelihood
    # A resolved non-maintenance goal can't be moved by more evidence
    if not goal.is_maintenance and (old >= 1.0 or old <= -1.0):
        return 0.0

    if incremental:
        new = max(-1.0, min(1.0, old + likelihood * congruence))
    else:
        new = (congruence * likelihood + 1.0) / 2.0

    goal.likelihood = new
    return new - old


def evaluate_emotions(utility: float, delta: float,
                      likelihood: float) -> list[tuple[EmotionType, float]]:
    """Emotions produced by a goal with the given utility, delta and likelihood.

    Returns (type, intensity) pairs. Every intensity is |utility * delta|;
    when that is exactly 0 nothing is emitted.
    """
    intensity = abs(utility * delta)
    if intensity == 0:
        return []

    positive = delta >= 0 if utility >= 0 else delta < 0
    emitted: list[EmotionType] = []

    if 0 < likelihood < 1:
        emitted.append(EmotionType.HOPE if positive else EmotionType.FEAR)
    elif likelihood == 1:
        if utility >= 0:
            if delta < 0.5:
                emitted.append(EmotionType.SATISFACTION)
            emitted.append(EmotionType.JOY)
        else:
            if delta < 0.5:
                emitted.append(EmotionType.FEAR_CONFIRMED)
            emitted.append(EmotionType.DISTRESS)
    elif likelihood == 0:
        if utility >= 0:
            if delta > 0.5:
                emitted.append(EmotionType.DISAPPOINTMENT)
            emitted.append(EmotionType.DISTRESS)
        else:
            if delta > 0.5:
                emitted.append(EmotionType.RELIEF)
            emitted.append(EmotionType.JOY)

    return [(etype, intensity) for etype in emitted]
