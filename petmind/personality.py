"""
Personality, need state and mood primitives for the pet.

The mind never owns the need system; it reads an ``AgentState`` snapshot from
a state provider (anything with a ``snapshot()`` method). ``AgentState`` and
``PersonalityProfile`` fill in defaults for anything missing so a provider
that hands over partial dictionaries still works.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Tuple

from .base import clamp, parse_bool

logger = logging.getLogger(__name__)

LONELY_AFTER_MS = 120000.0


@dataclass
class CommunicationStyle:
    """How the personality prefers to talk. All values 0..1."""

    verbosity: float = 0.65
    formality: float = 0.3
    emotiveness: float = 0.5
    directness: float = 0.7
    playfulness: float = 0.5
    question_asking: float = 0.6


@dataclass
class PersonalityProfile:
    """Trait profile, every trait 0..1 with 0.5 as the neutral midpoint."""

    extraversion: float = 0.5
    conscientiousness: float = 0.5
    neuroticism: float = 0.5
    agreeableness: float = 0.5
    playfulness: float = 0.5
    curiosity: float = 0.5
    independence: float = 0.5

    @classmethod
    def neutral(cls) -> "PersonalityProfile":
        return cls()

    def communication_style(self) -> CommunicationStyle:
        return CommunicationStyle(
            verbosity=0.3 + self.extraversion * 0.7,
            formality=0.1 + self.conscientiousness * 0.4,
            emotiveness=0.2 + self.neuroticism * 0.6,
            directness=0.4 + (1 - self.agreeableness) * 0.6,
            playfulness=self.playfulness,
            question_asking=0.2 + self.curiosity * 0.8,
        )

    def to_dict(self) -> Dict[str, float]:
        return {f.name: float(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Any) -> "PersonalityProfile":
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Personality payload is %s, using neutral traits", type(data).__name__)
            return cls.neutral()
        values = {}
        for f in fields(cls):
            raw = data.get(f.name)
            if raw is None:
                continue
            try:
                values[f.name] = clamp(float(raw))
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed personality trait %s=%r", f.name, raw)
        return cls(**values)


@dataclass
class AgentState:
    """Snapshot of the pet's needs and social state (needs are 0..100)."""

    name: str = ""
    mood: str = "neutral"
    hunger: float = 100.0
    happiness: float = 100.0
    health: float = 100.0
    energy: float = 100.0
    trust_level: float = 50.0
    aggression_level: float = 0.0
    social_anxiety: float = 0.0
    attachment_level: float = 0.0
    frustration_level: float = 0.0
    is_alive: bool = True
    last_interaction: float = 0.0
    total_interactions: int = 0
    personality: PersonalityProfile = field(default_factory=PersonalityProfile)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "personality"}
        data["personality"] = self.personality.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "AgentState":
        """Rebuild a state, filling anything missing or malformed with defaults."""
        if isinstance(data, AgentState):
            return data
        if not isinstance(data, dict):
            logger.warning("Agent state payload is %s, using defaults", type(data).__name__)
            return cls()

        defaults = cls()
        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "personality" or f.name not in data:
                continue
            raw = data[f.name]
            expected = type(getattr(defaults, f.name))
            try:
                if expected is bool:
                    values[f.name] = parse_bool(raw)
                else:
                    values[f.name] = raw if isinstance(raw, expected) else expected(raw)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed agent state field %s=%r", f.name, raw)

        personality = data.get("personality", data.get("personality_traits"))
        if isinstance(personality, PersonalityProfile):
            values["personality"] = personality
        else:
            values["personality"] = PersonalityProfile.from_dict(personality)
        return cls(**values)


def derive_mood(state: AgentState) -> str:
    """Mood label from needs, first matching rule wins."""
    if not state.is_alive:
        return "dead"
    if state.health < 30:
        return "sick"
    if state.energy < 20:
        return "sleepy"
    if state.hunger < 20:
        return "hungry"
    if state.happiness < 30:
        return "sad"
    if state.trust_level < 30:
        return "angry"
    if state.happiness > 70 and state.hunger > 50:
        return "happy"
    return "neutral"


def current_thought(state: AgentState, now: float) -> Tuple[str, float]:
    """What the pet most wants to express right now, with an intensity 0..1."""
    if state.hunger < 30:
        return "hungry", (30 - state.hunger) / 30
    if state.health < 40:
        return "sick", (40 - state.health) / 40
    if state.energy < 20:
        return "tired", (20 - state.energy) / 20
    if state.happiness > 80:
        return "happy", (state.happiness - 80) / 20
    idle = now - state.last_interaction
    if state.mood == "lonely" or idle > LONELY_AFTER_MS:
        return "lonely", clamp(idle / 300000.0)
    return "general", 0.5


THOUGHT_EMOTIONS = {
    "hungry": "sad",
    "happy": "happy",
    "sad": "sad",
    "tired": "sleepy",
    "sick": "sad",
    "lonely": "sad",
    "excited": "happy",
    "angry": "angry",
}


def map_context_to_emotion(context: str) -> str:
    return THOUGHT_EMOTIONS.get(context, "neutral")


class StaticStateProvider:
    """Minimal in-process state provider; callers mutate it directly."""

    def __init__(self, state: AgentState = None, **overrides):
        self.state = state or AgentState()
        self.update(**overrides)

    def snapshot(self) -> AgentState:
        return self.state

    def update(self, **changes) -> AgentState:
        for key, value in changes.items():
            if not hasattr(self.state, key):
                raise AttributeError(f"AgentState has no field '{key}'")
            setattr(self.state, key, value)
        return self.state

    def record_interaction(self, now: float) -> None:
        self.state.last_interaction = now
        self.state.total_interactions += 1


def read_state(provider) -> AgentState:
    """Snapshot from ``provider`` (or defaults when there is none)."""
    if provider is None:
        return AgentState()
    return AgentState.from_dict(provider.snapshot())
