"""
Response planning: what the pet wants to say and how it says it.

Goals come from two directions. Reactive goals answer what was just heard
(``determine_response_goal``); proactive goals come from the pet's needs
(``propose_goals``). The planner keeps a small goal list, expires stale
goals and turns the freshest high-priority goal into an ``Utterance``:

    goal -> strategy (LanguageModel, personality weighted)
         -> generator (GENERATORS table)
         -> Utterance(text, emotion, confidence, expected_reaction)

Planning never raises; a broken generator degrades to a low-confidence filler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from .base import Goal, Utterance, pick
from .input_analysis import Analysis
from .personality import AgentState, map_context_to_emotion

logger = logging.getLogger(__name__)

HIGH_ENERGY_SOUNDS = ["yay", "woo", "yeah", "yip", "wee"]
SOFT_SOUNDS = ["mmm", "ohh", "ahh", "hmm", "ooh"]
AGGRESSIVE_SOUNDS = ["grah", "argh", "grr", "hmph", "bah"]
ATTENTION_SOUNDS = ["hey", "pst", "ahem", "yooo"]
CONFUSED_SOUNDS = ["eh?", "hm?", "wha?", "mm?"]
ACK_SOUNDS = ["mm", "mhm", "yeah", "ok", "yep"]
FALLBACK_SOUNDS = ["meh", "bah", "gah", "nah", "wah"]

STRATEGY_EMOTIONS = {
    "enthusiastic_greeting": "happy",
    "shy_greeting": "sleepy",
    "emotional_outburst": "angry",
    "sad_appeal": "sad",
    "happy_acceptance": "happy",
    "dramatic_expression": "angry",
    "confused_response": "neutral",
}

# need goal -> (planner goal type, thought it expresses)
NEED_GOALS = {
    "get_food": ("express_hunger", "hungry"),
    "get_rest": ("express_need", "tired"),
    "get_medicine": ("express_need", "sick"),
    "build_trust": ("express_need", "social"),
    "get_attention": ("seek_attention", "lonely"),
}

FILLER = Utterance(text="mm...", emotion="neutral", confidence=0.1, expected_reaction="neutral",
                   strategy="filler")


@dataclass
class Draft:
    text: str
    confidence: float = 0.5
    expected_reaction: str = "neutral"


@dataclass
class GenerationContext:
    """Everything a generator may look at."""
    language_model: object
    rng: np.random.Generator
    state: AgentState
    goal: Goal
    analysis: Optional[Analysis] = None
    extras: Dict[str, object] = field(default_factory=dict)

    @property
    def vocabulary(self):
        return self.language_model.vocabulary


# ──────────────────────────────────────────────────────────────────
# Vocalisation helpers
# ──────────────────────────────────────────────────────────────────

def words_for_concept(ctx: GenerationContext, concept: str) -> Optional[str]:
    words = [token for token, entry in ctx.vocabulary.items() if entry.has_meaning(concept)]
    return pick(ctx.rng, words) if words else None


def sound_weight(entry, emotional_context: str) -> float:
    weight = entry.strength or 0.3
    if entry.has_meaning(emotional_context):
        weight *= 2
    if entry.success_rate > 0.5:
        weight *= 1.5
    return weight


def basic_sound(ctx: GenerationContext, emotional_context: str) -> Draft:
    """A vocabulary word weighted towards ``emotional_context``."""
    tokens = list(ctx.vocabulary)
    if not tokens:
        return Draft(pick(ctx.rng, FALLBACK_SOUNDS), 0.2)
    weights = np.array([sound_weight(ctx.vocabulary[t], emotional_context) for t in tokens], dtype=float)
    if weights.sum() <= 0:
        return Draft(tokens[0], 0.3)
    index = int(ctx.rng.choice(len(tokens), p=weights / weights.sum()))
    return Draft(tokens[index], 0.6)


def mood_response(ctx: GenerationContext) -> Draft:
    mood = ctx.state.mood
    if mood == "sad":
        text = pick(ctx.rng, SOFT_SOUNDS) + "..."
    elif mood == "angry":
        text = pick(ctx.rng, AGGRESSIVE_SOUNDS) + "!"
    elif mood == "frustrated":
        text = pick(ctx.rng, AGGRESSIVE_SOUNDS) + " " + basic_sound(ctx, "frustrated").text
    elif mood == "lonely":
        text = pick(ctx.rng, SOFT_SOUNDS) + "? " + basic_sound(ctx, "lonely").text
    elif mood in ("sleepy", "tired"):
        text = basic_sound(ctx, "tired").text + "..."
    elif mood == "sick":
        text = basic_sound(ctx, "sick").text + " " + pick(ctx.rng, SOFT_SOUNDS)
    else:
        text = pick(ctx.rng, HIGH_ENERGY_SOUNDS) + "!"
    return Draft(text, 0.7)


# ──────────────────────────────────────────────────────────────────
# Strategy generators
# ──────────────────────────────────────────────────────────────────

def mirror_greeting(ctx):
    word = words_for_concept(ctx, "greeting")
    if word:
        return Draft(word + ("!" if ctx.rng.random() > 0.5 else ""), 0.7)
    return basic_sound(ctx, "happy")


def enthusiastic_greeting(ctx):
    sound = pick(ctx.rng, HIGH_ENERGY_SOUNDS)
    return Draft(f"{sound}! {sound}!", 0.8, "positive")


def shy_greeting(ctx):
    return Draft(pick(ctx.rng, SOFT_SOUNDS) + "...", 0.4, "gentle")


def confused_response(ctx):
    return Draft(pick(ctx.rng, CONFUSED_SOUNDS), 0.3, "clarification")


def direct_answer(ctx):
    analysis = ctx.analysis
    if analysis is not None and analysis.intent == "question":
        if "name" in analysis.tokens:
            return Draft((ctx.state.name or "me") + "!", 0.9)
        if "how" in analysis.tokens and "are" in analysis.tokens:
            return mood_response(ctx)
    return confused_response(ctx)


def deflect_with_emotion(ctx):
    return Draft(pick(ctx.rng, SOFT_SOUNDS) + "... " + basic_sound(ctx, "confused").text, 0.3, "redirection")


def happy_acceptance(ctx):
    happy = words_for_concept(ctx, "happiness") or pick(ctx.rng, HIGH_ENERGY_SOUNDS)
    return Draft(f"{happy}! {basic_sound(ctx, 'happy').text}", 0.8, "positive")


def shy_acknowledgment(ctx):
    return Draft(pick(ctx.rng, SOFT_SOUNDS) + "... " + basic_sound(ctx, "happy").text, 0.4, "gentle")


def proud_response(ctx):
    sound = pick(ctx.rng, HIGH_ENERGY_SOUNDS)
    return Draft(f"{sound}! {sound}!", 0.9, "positive")


def person_name(ctx) -> Optional[str]:
    if ctx.analysis is None:
        return None
    for entity in ctx.analysis.entities:
        if entity.get("type") == "person":
            return entity.get("value")
    return None


def excited_meeting(ctx):
    sound = pick(ctx.rng, HIGH_ENERGY_SOUNDS)
    name = person_name(ctx)
    if name:
        return Draft(f"{sound}! {name.lower()}!", 0.9, "positive")
    return Draft(f"{sound}! {basic_sound(ctx, 'happy').text}", 0.7)


def cautious_response(ctx):
    return Draft(pick(ctx.rng, SOFT_SOUNDS) + "?", 0.3, "patience")


def friendly_response(ctx):
    return Draft(pick(ctx.rng, HIGH_ENERGY_SOUNDS) + "! " + basic_sound(ctx, "happy").text, 0.7, "positive")


def direct_request(ctx):
    goal_type = ctx.goal.goal_type
    if goal_type == "express_hunger":
        word = words_for_concept(ctx, "food") or words_for_concept(ctx, "hungry") or "grub"
    elif goal_type == "seek_attention":
        word = "hey! " + basic_sound(ctx, "attention").text
    elif goal_type == "express_discomfort":
        word = words_for_concept(ctx, "help") or "ow"
    else:
        return basic_sound(ctx, "need")
    return Draft(word + "!", 0.8, "action")


def subtle_hint(ctx):
    sound = pick(ctx.rng, SOFT_SOUNDS)
    return Draft(f"{sound}... {sound}?", 0.4, "understanding")


def dramatic_expression(ctx):
    sound = pick(ctx.rng, AGGRESSIVE_SOUNDS)
    return Draft(f"{sound}! {sound}! {sound}!", 0.9, "immediate_action")


def playful_behavior(ctx):
    sound = pick(ctx.rng, HIGH_ENERGY_SOUNDS)
    return Draft(f"{sound}! {sound}!", 0.7, "attention")


def sad_appeal(ctx):
    sound = pick(ctx.rng, SOFT_SOUNDS)
    return Draft(f"{sound}? {sound}...", 0.6, "comfort")


def attention_getting(ctx):
    sound = pick(ctx.rng, ATTENTION_SOUNDS)
    return Draft(f"{sound}! {sound}!", 0.8, "attention")


def mild_complaint(ctx):
    return Draft(pick(ctx.rng, AGGRESSIVE_SOUNDS) + "...", 0.5, "attention")


def emotional_outburst(ctx):
    sound = pick(ctx.rng, AGGRESSIVE_SOUNDS)
    return Draft(f"{sound}! {basic_sound(ctx, 'frustrated').text}! {sound}!", 0.9, "concern")


def withdrawal(ctx):
    return Draft(pick(ctx.rng, SOFT_SOUNDS) + "...", 0.3, "concern")


def confused_sounds(ctx):
    return Draft(pick(ctx.rng, CONFUSED_SOUNDS) + " " + pick(ctx.rng, CONFUSED_SOUNDS), 0.3, "clarification")


def repeat_back(ctx):
    if ctx.analysis is not None and ctx.analysis.unknown_words:
        return Draft(ctx.analysis.unknown_words[0] + "?", 0.4, "clarification")
    return confused_response(ctx)


def questioning_tone(ctx):
    return Draft(basic_sound(ctx, "confused").text + "?", 0.35, "clarification")


def acknowledge(ctx):
    return Draft(pick(ctx.rng, ACK_SOUNDS), 0.5)


def express_mood(ctx):
    return mood_response(ctx)


def random_vocalization(ctx):
    return basic_sound(ctx, "neutral")


GENERATORS: Dict[str, Callable[[GenerationContext], Draft]] = {
    "mirror_greeting": mirror_greeting,
    "enthusiastic_greeting": enthusiastic_greeting,
    "shy_greeting": shy_greeting,
    "direct_answer": direct_answer,
    "confused_response": confused_response,
    "deflect_with_emotion": deflect_with_emotion,
    "happy_acceptance": happy_acceptance,
    "shy_acknowledgment": shy_acknowledgment,
    "proud_response": proud_response,
    "excited_meeting": excited_meeting,
    "cautious_response": cautious_response,
    "friendly_response": friendly_response,
    "direct_request": direct_request,
    "subtle_hint": subtle_hint,
    "dramatic_expression": dramatic_expression,
    "playful_behavior": playful_behavior,
    "sad_appeal": sad_appeal,
    "attention_getting": attention_getting,
    "mild_complaint": mild_complaint,
    "emotional_outburst": emotional_outburst,
    "withdrawal": withdrawal,
    "confused_sounds": confused_sounds,
    "repeat_back": repeat_back,
    "questioning_tone": questioning_tone,
    "acknowledge": acknowledge,
    "express_mood": express_mood,
    "random_vocalization": random_vocalization,
}


class ResponsePlanner:
    """Keeps the goal list and turns goals into utterances."""

    def __init__(self, language_model, clock, rng, state_provider=None,
                 goal_expiry_ms: float = 300000.0, goal_freshness_ms: float = 30000.0):
        self.language_model = language_model
        self.clock = clock
        self.rng = rng
        self.state_provider = state_provider
        self.goal_expiry_ms = goal_expiry_ms
        self.goal_freshness_ms = goal_freshness_ms
        self.goals: List[Goal] = []
        self._goal_seq = 0

    def agent_state(self) -> AgentState:
        if self.state_provider is None:
            return self.language_model.agent_state()
        return AgentState.from_dict(self.state_provider.snapshot())

    # ──────────────────────────────────────────────────────────────
    # Goals
    # ──────────────────────────────────────────────────────────────

    def add_goal(self, goal_type: str, priority: float, **payload) -> Goal:
        """Queue a goal; an already pending goal of the same type is refreshed instead."""
        now = self.clock.now()
        for goal in self.goals:
            if goal.goal_type == goal_type and goal.payload == payload:
                goal.priority = max(goal.priority, priority)
                goal.timestamp = now
                return goal
        self._goal_seq += 1
        goal = Goal(goal_type=goal_type, priority=priority, timestamp=now, payload=dict(payload),
                    goal_id=f"goal_{self._goal_seq}")
        self.goals.append(goal)
        return goal

    def expire_goals(self) -> None:
        now = self.clock.now()
        self.goals = [g for g in self.goals if now - g.timestamp <= self.goal_expiry_ms]

    def next_goal(self) -> Optional[Goal]:
        self.expire_goals()
        if not self.goals:
            return None
        self.goals.sort(key=lambda g: g.priority, reverse=True)
        top = self.goals[0]
        if self.clock.now() - top.timestamp >= self.goal_freshness_ms:
            return None
        return top

    def pop_goal(self) -> Optional[Goal]:
        """Take the goal ``next_goal`` would pick off the list."""
        goal = self.next_goal()
        if goal is not None:
            self.goals.remove(goal)
        return goal

    def process_goals(self) -> Optional[Utterance]:
        goal = self.pop_goal()
        if goal is None:
            return None
        return self.plan_response(goal)

    def determine_response_goal(self, analysis: Analysis, state: Optional[AgentState] = None) -> Goal:
        """Pick the most pressing goal raised by what was heard and how the pet feels."""
        state = state or self.agent_state()
        candidates = []
        reactive = {
            "greeting": ("greeting_response", 0.8),
            "question": ("answer_question", 0.9),
            "praise": ("acknowledge_praise", 0.7),
            "introduction": ("respond_to_introduction", 0.9),
        }
        if analysis.intent in reactive:
            candidates.append(reactive[analysis.intent])
        if state.hunger < 30:
            candidates.append(("express_hunger", 0.8))
        if state.mood == "lonely":
            candidates.append(("seek_attention", 0.6))
        if state.aggression_level > 60:
            candidates.append(("express_frustration", 0.7))
        if analysis.unknown_words:
            candidates.append(("request_clarification", 0.4))

        goal_type, priority = "general_response", 0.3
        if candidates:
            goal_type, priority = max(candidates, key=lambda item: item[1])
        return Goal(goal_type=goal_type, priority=priority, timestamp=self.clock.now())

    def propose_goals(self, state: Optional[AgentState] = None) -> List[Goal]:
        """Queue goals for pressing needs."""
        state = state or self.agent_state()
        needs = []
        if state.hunger < 30:
            needs.append(("get_food", 0.8))
        if state.energy < 20:
            needs.append(("get_rest", 0.7))
        if state.health < 40:
            needs.append(("get_medicine", 0.9))
        if state.trust_level < 50:
            needs.append(("build_trust", 0.6))
        if self.clock.now() - state.last_interaction > 180000:
            needs.append(("get_attention", 0.5))

        queued = []
        for need, priority in needs:
            goal_type, thought = NEED_GOALS[need]
            if goal_type == "express_need":
                queued.append(self.add_goal(goal_type, priority, need=need, thought=thought))
            else:
                queued.append(self.add_goal(goal_type, priority))
        return queued

    # ──────────────────────────────────────────────────────────────
    # Generation
    # ──────────────────────────────────────────────────────────────

    def plan_response(self, goal: Goal, analysis: Optional[Analysis] = None) -> Utterance:
        """Turn ``goal`` into an utterance. Never raises."""
        if goal.goal_type == "express_need":
            return self.express_thought(goal.payload.get("thought", "general"), goal.priority)

        strategy = "random_vocalization"
        try:
            state = self.agent_state()
            strategy = self.language_model.select_response_strategy(goal.goal_type, analysis)
            generator = GENERATORS.get(strategy, random_vocalization)
            ctx = GenerationContext(self.language_model, self.rng, state, goal, analysis)
            draft = generator(ctx)
            return Utterance(
                text=draft.text,
                emotion=STRATEGY_EMOTIONS.get(strategy, state.mood),
                confidence=draft.confidence,
                expected_reaction=draft.expected_reaction,
                strategy=strategy,
                goal_type=goal.goal_type,
            )
        except Exception:
            logger.warning("Response generation failed for %s/%s", goal.goal_type, strategy, exc_info=True)
            return Utterance(FILLER.text, FILLER.emotion, FILLER.confidence, FILLER.expected_reaction,
                             FILLER.strategy, goal.goal_type)

    def express_thought(self, thought_type: str, intensity: float) -> Utterance:
        """Say how the pet feels using (or inventing) words for the feeling. Never raises."""
        try:
            lm = self.language_model
            strategy = lm.select_expression_strategy(thought_type, intensity)
            words = lm.find_words_for_concept(thought_type)
            if words:
                words = words[: min(2, int(intensity * 3) + 1)]
            else:
                words = [lm.adopt_invented_word(thought_type).token]

            speech = words[0]
            if lm.stage >= 2 and len(words) > 1:
                speech += " " + words[1]
            if intensity > 0.8:
                speech += "!"
            elif intensity < 0.3:
                speech += "..."
            if intensity > 0.7:
                speech = f"{speech} {speech}"

            return Utterance(
                text=speech,
                emotion=map_context_to_emotion(thought_type),
                confidence=0.5 + 0.3 * min(1.0, intensity),
                expected_reaction="action" if intensity > 0.7 else "attention",
                strategy=strategy,
                goal_type="express_internal_state",
            )
        except Exception:
            logger.warning("Thought expression failed for %s", thought_type, exc_info=True)
            return Utterance(FILLER.text, FILLER.emotion, FILLER.confidence, FILLER.expected_reaction,
                             FILLER.strategy, "express_internal_state")
