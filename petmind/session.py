"""
CompanionMind: one pet's episodic memory, concepts, hypotheses and language,
wired together and driven by a single run queue.

Any front end (the CLI, a game loop, a chat bot) talks to the mind through a
handful of calls:

    mind = CompanionMind(StaticStateProvider(name="Pip"), config=MindConfig(seed=7))
    mind.on_utterance.append(lambda utterance: print(utterance.text))
    mind.hear("hello pip!")               # response arrives after a thinking delay
    mind.handle_interaction(Interaction("feed", gentleness=0.8))
    mind.run_pending()                    # or mind.advance(ms) with a LogicalClock

Everything runs on one logical thread: event-triggered chains run synchronously
inside the call, and periodic work (memory decay, hypothesis testing, language
upkeep and spontaneous speech) runs as scheduler tasks between them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .base import Interaction, Utterance
from .clock import SystemClock
from .concept_graph import ConceptGraph
from .episodic_store import EpisodicStore
from .hypothesis_engine import HypothesisEngine
from .identity import PatternIdentityResolver
from .input_analysis import Analysis
from .language_model import NEGATIVE_REACTIONS, POSITIVE_REACTIONS, LanguageModel
from .personality import AgentState, current_thought, read_state
from .response_planner import ResponsePlanner
from .scheduler import Scheduler, ScheduledTask

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

INTERACTION_EVENTS = {
    "feed": "fed",
    "pet": "petted",
    "play": "played",
    "scold": "scolded",
    "praise": "praised",
    "ignore": "ignored",
}


@dataclass
class MindConfig:
    """Tunables for a CompanionMind. Times are in milliseconds."""

    # Memory
    episode_capacity: int = 100
    concept_formation_threshold: int = 3
    pattern_mining_window: int = 10
    concept_decay_rate: float = 0.95
    concept_min_decay_age_ms: float = 300000.0

    # Tick cadence
    memory_maintenance_interval_ms: float = 30000.0
    cognition_interval_ms: float = 2000.0
    language_interval_ms: float = 3000.0

    # Cognition
    hypothesis_recall_window_ms: float = 30000.0

    # Goals
    goal_expiry_ms: float = 300000.0
    goal_freshness_ms: float = 30000.0

    # Speech timing
    thinking_delay_min_ms: float = 500.0
    thinking_delay_max_ms: float = 2500.0
    reaction_window_ms: float = 10000.0
    speech_cooldown_min_ms: float = 10000.0
    speech_cooldown_max_ms: float = 30000.0
    enable_spontaneous_speech: bool = True

    seed: Optional[int] = None


class CompanionMind:
    """The belief and language engine for one pet."""

    def __init__(self, state_provider, config: Optional[MindConfig] = None, clock=None,
                 scheduler: Optional[Scheduler] = None, identity_resolver=None, personality=None,
                 rng: Optional[np.random.Generator] = None):
        self.config = config or MindConfig()
        self.state_provider = state_provider
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or Scheduler(self.clock)
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.identity = identity_resolver or PatternIdentityResolver(self.clock)

        cfg = self.config
        self.memory = EpisodicStore(self.clock, capacity=cfg.episode_capacity)
        self.concepts = ConceptGraph(
            self.clock,
            formation_threshold=cfg.concept_formation_threshold,
            mining_window=cfg.pattern_mining_window,
            decay_rate=cfg.concept_decay_rate,
            min_decay_age_ms=cfg.concept_min_decay_age_ms,
        )
        self.concepts.attach(self.memory)
        self.hypotheses = HypothesisEngine(self.memory, self.clock, self.rng,
                                           recall_window_ms=cfg.hypothesis_recall_window_ms)
        self.language = LanguageModel(
            self.concepts, self.clock, self.rng,
            personality=personality,
            state_provider=state_provider,
            identity_resolver=self.identity,
            hypothesis_engine=self.hypotheses,
        )
        self.planner = ResponsePlanner(self.language, self.clock, self.rng, state_provider=state_provider,
                                       goal_expiry_ms=cfg.goal_expiry_ms, goal_freshness_ms=cfg.goal_freshness_ms)
        self.language.on_learning_event.append(self._record_learning_event)

        self.on_utterance: List[Callable[[Utterance], None]] = []
        self.last_utterance: Optional[Utterance] = None
        self.last_speech_at = self.clock.now()
        self.speech_cooldown_ms = self._draw_cooldown()
        self._last_tone: Optional[str] = None
        self._pending_response: Optional[ScheduledTask] = None
        self._tasks: List[ScheduledTask] = []
        self.start()

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    def agent_state(self) -> AgentState:
        return read_state(self.state_provider)

    def is_active(self) -> bool:
        return bool(self.agent_state().is_alive)

    def start(self) -> None:
        """Register the periodic ticks (idempotent)."""
        if self._tasks:
            return
        cfg = self.config
        self._tasks = [
            self.scheduler.every(cfg.memory_maintenance_interval_ms, self.memory_tick,
                                 name="memory", guard=self.is_active),
            self.scheduler.every(cfg.cognition_interval_ms, self.cognition_tick,
                                 name="cognition", guard=self.is_active),
            self.scheduler.every(cfg.language_interval_ms, self.language_tick,
                                 name="language", guard=self.is_active),
        ]

    def stop(self) -> None:
        for task in self._tasks:
            self.scheduler.cancel(task)
        self._tasks = []
        self.scheduler.cancel(self._pending_response)
        self._pending_response = None

    def advance(self, ms: float) -> int:
        """Move a logical clock forward, running every task that falls due."""
        return self.scheduler.advance(ms)

    def run_pending(self) -> int:
        return self.scheduler.run_pending()

    def pending_response_due(self) -> Optional[float]:
        task = self._pending_response
        if task is None or task.cancelled:
            return None
        return task.due

    # ──────────────────────────────────────────────────────────────
    # Events
    # ──────────────────────────────────────────────────────────────

    def _record_learning_event(self, event_type: str, details: Dict[str, Any]) -> None:
        self.memory.record_episode(event_type, details, {"emotional_state": self.agent_state().mood})

    def handle_interaction(self, interaction: Interaction, event_type: Optional[str] = None,
                           details: Optional[Dict[str, Any]] = None) -> str:
        """Remember an interaction, learn from it and credit the last thing said."""
        state = self.agent_state()
        event_type = event_type or INTERACTION_EVENTS.get(interaction.type, interaction.type)
        payload = {
            "interaction": interaction.type,
            "gentleness": interaction.gentleness,
            "playfulness": interaction.playfulness,
            "emotional_intensity": interaction.intensity,
        }
        payload.update(details or {})
        context = {
            "emotional_state": state.mood,
            "creature_state": {"hunger": state.hunger, "happiness": state.happiness,
                               "energy": state.energy, "trust": state.trust_level},
        }
        if self.identity.current_person:
            context["people_present"] = [self.identity.current_person]

        if hasattr(self.state_provider, "record_interaction"):
            self.state_provider.record_interaction(self.clock.now())
        episode_id = self.memory.record_episode(event_type, payload, context)
        self.hypotheses.observe_interaction(interaction, state)
        self.hypotheses.process_hypotheses()
        if interaction.type in POSITIVE_REACTIONS or interaction.type in NEGATIVE_REACTIONS:
            self.react(interaction.type)
        return episode_id

    def hear(self, text: str, context: Optional[Dict[str, Any]] = None) -> Analysis:
        """Process something said to the pet and schedule its answer."""
        context = dict(context or {})
        state = self.agent_state()
        analysis = self.language.process_input(text, context)

        episode_context = {"emotional_state": state.mood}
        for key in ("user_emotion", "user_response", "people_present", "location"):
            if key in context:
                episode_context[key] = context[key]
        if analysis.person is not None:
            episode_context.setdefault("people_present", [analysis.person.person_id])
        self.memory.record_episode("language_interaction", {
            "text": text,
            "intent": analysis.intent,
            "tone_detected": analysis.emotional_tone,
            "has_repetition": bool(analysis.repeated_words),
            "unknown_words": list(analysis.unknown_words),
        }, episode_context)

        if analysis.person is not None:
            self.memory.record_episode("person_introduced", {
                "person": analysis.person.name,
                "person_registered": analysis.person.person_id in self.identity.people,
                "name_recognized": True,
                "is_first_time": analysis.person.is_new,
            }, episode_context)

        mood_context = {"mood": state.mood}
        if analysis.unknown_words:
            self.hypotheses.form_hypothesis(
                {"type": "new_word_context", "word": analysis.unknown_words[0], "intent": analysis.intent},
                mood_context)
        tone = analysis.emotional_tone
        if tone != "neutral" and self._last_tone not in (None, "neutral", tone):
            self.hypotheses.form_hypothesis({"type": "tone_change", "from": self._last_tone, "to": tone},
                                            mood_context)
        self._last_tone = tone
        self.hypotheses.process_hypotheses()

        goal = self.planner.determine_response_goal(analysis, state)
        self.scheduler.cancel(self._pending_response)
        delay = float(self.rng.uniform(self.config.thinking_delay_min_ms, self.config.thinking_delay_max_ms))
        self._pending_response = self.scheduler.schedule(
            delay, lambda: self._respond(goal, analysis), name="response", guard=self.is_active)
        return analysis

    def _respond(self, goal, analysis: Analysis) -> None:
        self._pending_response = None
        self.deliver(self.planner.plan_response(goal, analysis))

    def express_thought(self, thought_type: str, intensity: float) -> Utterance:
        return self.deliver(self.planner.express_thought(thought_type, intensity))

    def react(self, action: str, is_positive: Optional[bool] = None):
        """Feed a caregiver reaction back into the latest speech attempt."""
        attempt = self.language.record_user_reaction(action, is_positive)
        person = self.identity.current_person
        if attempt is not None and person:
            self.identity.update_relationship(person, bool(attempt.success))
        return attempt

    def deliver(self, utterance: Utterance) -> Utterance:
        attempt = self.language.record_speech_attempt(utterance)
        self.last_utterance = utterance
        self.last_speech_at = self.clock.now()
        self.scheduler.schedule(self.config.reaction_window_ms,
                                lambda: self.language.expire_speech_attempt(attempt.attempt_id),
                                name="reaction_window")
        logger.debug("Pet says %r (%s, %s)", utterance.text, utterance.emotion, utterance.strategy)
        for callback in list(self.on_utterance):
            callback(utterance)
        return utterance

    # ──────────────────────────────────────────────────────────────
    # Periodic ticks
    # ──────────────────────────────────────────────────────────────

    def _draw_cooldown(self) -> float:
        return float(self.rng.uniform(self.config.speech_cooldown_min_ms, self.config.speech_cooldown_max_ms))

    def memory_tick(self) -> None:
        self.concepts.decay()
        self.memory.enforce_capacity()

    def cognition_tick(self) -> None:
        self.hypotheses.process_hypotheses()

    def language_tick(self) -> Optional[Utterance]:
        self.language.update()
        state = self.agent_state()
        self.planner.propose_goals(state)

        # Goals are consumed every tick; inside the cooldown they pass unspoken.
        goal = self.planner.pop_goal()
        since = self.clock.now() - self.last_speech_at
        if since < self.speech_cooldown_ms:
            if goal is not None:
                logger.debug("Dropping goal %s during speech cooldown", goal.goal_type)
            return None

        utterance = self.planner.plan_response(goal) if goal is not None else None
        if utterance is None and self.config.enable_spontaneous_speech:
            probability = self.language.spontaneous_speech_probability(state, since, self.speech_cooldown_ms)
            if self.rng.random() < probability:
                thought, intensity = current_thought(state, self.clock.now())
                utterance = self.planner.express_thought(thought, intensity)
        if utterance is None:
            return None
        self.speech_cooldown_ms = self._draw_cooldown()
        return self.deliver(utterance)

    # ──────────────────────────────────────────────────────────────
    # Introspection and persistence
    # ──────────────────────────────────────────────────────────────

    def stats(self) -> Dict[str, Any]:
        return {
            "memory": self.memory.stats(),
            "concepts": self.concepts.stats(),
            "hypotheses": self.hypotheses.stats(),
            "language": self.language.stats(),
            "pending_goals": [goal.goal_type for goal in self.planner.goals],
        }

    def serialize(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "config": asdict(self.config),
            "memory": self.memory.serialize(),
            "concepts": self.concepts.serialize(),
            "hypotheses": self.hypotheses.serialize(),
            "language": self.language.serialize(),
            "identity": self.identity.serialize() if hasattr(self.identity, "serialize") else {},
        }

    def deserialize(self, data: Dict[str, Any]) -> None:
        """Restore a snapshot; sections that are missing keep their current state."""
        data = data or {}
        if data.get("version", SNAPSHOT_VERSION) != SNAPSHOT_VERSION:
            logger.warning("Loading snapshot version %s into version %s", data.get("version"), SNAPSHOT_VERSION)
        if "memory" in data:
            self.memory.deserialize(data["memory"])
        if "concepts" in data:
            self.concepts.deserialize(data["concepts"])
        if "hypotheses" in data:
            self.hypotheses.deserialize(data["hypotheses"])
        if "language" in data:
            self.language.deserialize(data["language"])
        if "identity" in data and hasattr(self.identity, "deserialize"):
            self.identity.deserialize(data["identity"])

    def save(self, path: Path) -> Path:
        resolved = Path(path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        with resolved.open("w", encoding="utf-8") as fh:
            json.dump(self.serialize(), fh, indent=2)
        logger.info("Saved mind to %s", resolved)
        return resolved

    def load(self, path: Path) -> None:
        resolved = Path(path).expanduser()
        if not resolved.exists():
            raise FileNotFoundError(f"Snapshot not found: {resolved}")
        with resolved.open("r", encoding="utf-8") as fh:
            self.deserialize(json.load(fh))
        logger.info("Loaded mind from %s", resolved)
