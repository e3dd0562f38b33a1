"""
Hypothesis engine: the pet's guesses about how the world works.

A hypothesis starts as a guess with low confidence, collects evidence from
recalled episodes and is eventually confirmed (becoming a rule the language
model can act on) or rejected. Evidence is judged by a per-kind evaluator
looked up in a table; kinds without an evaluator simply never find relevant
evidence.

Fate rule, applied after every piece of evidence:
- confidence > 0.8 with more than 2 attempts  -> confirmed
- confidence < 0.1 with more than 3 attempts  -> rejected
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .base import (ConfirmedRule, Episode, Evidence, Hypothesis, HypothesisStatus,
                   Interaction, clamp)

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.05
MAX_CONFIDENCE = 0.95
SUPPORT_STEP = 0.15
CONTRADICT_STEP = 0.10
MAX_REJECTED = 50


@dataclass
class EvaluationResult:
    relevant: bool
    supports: bool = False


@dataclass
class HypothesisTestResult:
    hypothesis_id: str
    relevant: int = 0
    supporting: int = 0
    contradicting: int = 0
    status: HypothesisStatus = HypothesisStatus.TESTING
    confidence: float = 0.0


NOT_RELEVANT = EvaluationResult(relevant=False)


# ──────────────────────────────────────────────────────────────────
# Evaluators
# ──────────────────────────────────────────────────────────────────

def evaluate_name(hypothesis: Hypothesis, episode: Episode) -> EvaluationResult:
    if episode.event_type != "person_introduced":
        return NOT_RELEVANT
    details = episode.details
    return EvaluationResult(True, bool(details.get("person_registered") and details.get("name_recognized")))


def evaluate_repetition(hypothesis: Hypothesis, episode: Episode) -> EvaluationResult:
    response = episode.context.get("user_response")
    if not episode.details.get("has_repetition") or not response:
        return NOT_RELEVANT
    quick = float(response.get("response_time", float("inf"))) < 5000
    return EvaluationResult(True, bool(quick or response.get("positive")))


def evaluate_tone(hypothesis: Hypothesis, episode: Episode) -> EvaluationResult:
    tone = episode.details.get("tone_detected")
    emotion = episode.context.get("user_emotion")
    if not tone or not emotion:
        return NOT_RELEVANT
    return EvaluationResult(True, tone == emotion)


Evaluator = Callable[[Hypothesis, Episode], EvaluationResult]

EVALUATORS: Dict[str, Evaluator] = {
    "names_identify_people": evaluate_name,
    "repeated_words_mean_urgency": evaluate_repetition,
    "tone_indicates_emotion": evaluate_tone,
}


SEED_HYPOTHESES = [
    {
        "kind": "names_identify_people",
        "statement": "when a human says a name, it refers to a specific person",
        "confidence": 0.3,
        "related_concepts": ["name", "human", "social"],
    },
    {
        "kind": "repeated_words_mean_urgency",
        "statement": "when humans repeat words, they want something urgently",
        "confidence": 0.2,
        "related_concepts": ["communication", "attention", "human"],
    },
    {
        "kind": "tone_indicates_emotion",
        "statement": "the way humans speak shows how they feel",
        "confidence": 0.5,
        "related_concepts": ["emotion", "communication", "human"],
    },
]

STATEMENT_TEMPLATES = {
    "person_said_name": 'when someone says "my name is X", they want me to know X is their identifier',
    "repeated_action_response": "when humans repeat actions quickly, they might be frustrated",
    "tone_change": "when humans change how they speak, their emotional state changed",
    "new_word_context": "when humans use new words in specific situations, the word relates to that situation",
    "praise_after_action": "when humans make happy sounds after I do something, that action was good",
    "silence_after_speech": "when humans don't respond to my speech, they might not understand",
}

CONCEPT_KEYWORDS = {
    "name": ["name", "called", "identity"],
    "emotion": ["happy", "sad", "angry", "tone"],
    "communication": ["speak", "talk", "word", "language"],
    "social": ["person", "human", "interaction", "relationship"],
    "touch": ["touch", "pet", "gentle"],
}


class HypothesisEngine:
    """Forms, tests, confirms and rejects hypotheses against episodic memory."""

    def __init__(self, episodic_store, clock, rng, recall_window_ms: float = 30000.0, seed: bool = True):
        self.store = episodic_store
        self.clock = clock
        self.rng = rng
        self.recall_window_ms = recall_window_ms
        self.hypotheses: List[Hypothesis] = []
        self.confirmed_rules: Dict[str, ConfirmedRule] = {}
        self.rejected: List[Hypothesis] = []
        self.evaluators: Dict[str, Evaluator] = dict(EVALUATORS)
        self.on_confirmed: List[Callable[[ConfirmedRule], None]] = []
        self._recent_interactions: deque = deque(maxlen=10)
        self._seq = 0
        if seed:
            self._seed()

    def _seed(self) -> None:
        now = self.clock.now()
        for seed in SEED_HYPOTHESES:
            self.hypotheses.append(Hypothesis(
                hypothesis_id=seed["kind"],
                kind=seed["kind"],
                statement=seed["statement"],
                confidence=seed["confidence"],
                status=HypothesisStatus.TESTING,
                related_concepts=list(seed["related_concepts"]),
                created_at=now,
            ))

    def register_evaluator(self, kind: str, evaluator: Evaluator) -> None:
        self.evaluators[kind] = evaluator

    @property
    def active(self) -> List[Hypothesis]:
        return [h for h in self.hypotheses if h.is_active]

    def get(self, hypothesis_id: str) -> Optional[Hypothesis]:
        for hypothesis in self.hypotheses:
            if hypothesis.hypothesis_id == hypothesis_id:
                return hypothesis
        return None

    # ──────────────────────────────────────────────────────────────
    # Formation
    # ──────────────────────────────────────────────────────────────

    @staticmethod
    def related_concepts_for(observation: Dict[str, Any]) -> List[str]:
        concepts = [str(observation.get("type", "unknown"))]
        text = json.dumps(observation, default=str, sort_keys=True).lower()
        for concept, keywords in CONCEPT_KEYWORDS.items():
            if any(keyword in text for keyword in keywords):
                concepts.append(concept)
        return concepts

    @staticmethod
    def similarity(a: List[str], b: List[str]) -> float:
        set_a, set_b = set(a), set(b)
        return len(set_a & set_b) / max(len(set_a), len(set_b), 1)

    def find_similar(self, related: List[str]) -> Optional[Hypothesis]:
        for hypothesis in self.active:
            if self.similarity(hypothesis.related_concepts, related) > 0.7:
                return hypothesis
        return None

    def form_hypothesis(self, observation: Dict[str, Any], context: Optional[Dict[str, Any]] = None) -> Hypothesis:
        """Create a hypothesis, or fold the observation into a similar active one."""
        context = context or {}
        kind = str(observation.get("type", "unknown"))
        related = self.related_concepts_for(observation)

        existing = self.find_similar(related)
        if existing is not None:
            self.add_evidence(existing, observation, context)
            return existing

        self._seq += 1
        now = self.clock.now()
        hypothesis = Hypothesis(
            hypothesis_id=f"{kind}_{self._seq}",
            kind=kind,
            statement=STATEMENT_TEMPLATES.get(kind, f"pattern observed: {kind}"),
            confidence=0.1,
            evidence=[Evidence(True, "observation", now)],
            status=HypothesisStatus.FORMING,
            related_concepts=related,
            created_at=now,
        )
        self.hypotheses.append(hypothesis)
        logger.info("New hypothesis formed: %s", hypothesis.statement)
        return hypothesis

    def evidence_supports(self, hypothesis: Hypothesis, observation: Dict[str, Any],
                          context: Dict[str, Any]) -> bool:
        if observation.get("type") == hypothesis.kind:
            return True
        if "gentle" in hypothesis.statement and observation.get("type") == "gentle_touch":
            return True
        if "happy" in hypothesis.statement and context.get("mood") == "happy":
            return True
        return bool(self.rng.random() < 0.7)

    def add_evidence(self, hypothesis: Hypothesis, observation: Dict[str, Any],
                     context: Dict[str, Any]) -> None:
        if not hypothesis.is_active:
            return
        supporting = self.evidence_supports(hypothesis, observation, context)
        hypothesis.evidence.append(Evidence(supporting, str(observation.get("type", "observation")), self.clock.now()))
        hypothesis.confidence = round(
            clamp(hypothesis.support_ratio() * 0.8 + 0.1, MIN_CONFIDENCE, MAX_CONFIDENCE), 6)
        hypothesis.test_attempts += 1
        if hypothesis.status == HypothesisStatus.FORMING:
            hypothesis.status = HypothesisStatus.TESTING
        logger.debug("Evidence added to %s (confidence %.2f)", hypothesis.hypothesis_id, hypothesis.confidence)
        self.apply_fate(hypothesis)

    def observe_interaction(self, interaction: Interaction, agent_state) -> List[Hypothesis]:
        """Form hypotheses about how the human tends to interact."""
        self._recent_interactions.append(interaction.type)
        context = {"mood": agent_state.mood, "interaction_type": interaction.type}
        formed = []
        if interaction.gentleness > 0.7 and agent_state.mood == "happy":
            formed.append(self.form_hypothesis({"type": "gentle_interaction_positive", "gentle": True}, context))
        if interaction.intensity > 0.8 and agent_state.trust_level < 30:
            formed.append(self.form_hypothesis({"type": "high_intensity_low_trust"}, context))
        if sum(1 for t in self._recent_interactions if t == interaction.type) > 3:
            formed.append(self.form_hypothesis(
                {"type": "user_consistency_pattern", "interaction": interaction.type}, context))
        return formed

    # ──────────────────────────────────────────────────────────────
    # Testing
    # ──────────────────────────────────────────────────────────────

    def evaluate(self, hypothesis: Hypothesis, episode: Episode) -> EvaluationResult:
        evaluator = self.evaluators.get(hypothesis.kind)
        if evaluator is None:
            return NOT_RELEVANT
        return evaluator(hypothesis, episode)

    def test_hypothesis(self, hypothesis: Hypothesis) -> HypothesisTestResult:
        """Judge recent episodes against ``hypothesis``. Inactive hypotheses are left alone."""
        result = HypothesisTestResult(hypothesis.hypothesis_id, status=hypothesis.status,
                                      confidence=hypothesis.confidence)
        if not hypothesis.is_active:
            return result

        episodes = self.store.recall_episodes(timeframe=self.recall_window_ms,
                                              concepts=hypothesis.related_concepts)
        for episode in episodes:
            verdict = self.evaluate(hypothesis, episode)
            if not verdict.relevant:
                continue
            result.relevant += 1
            hypothesis.test_attempts += 1
            if verdict.supports:
                result.supporting += 1
                hypothesis.confidence = min(MAX_CONFIDENCE, hypothesis.confidence + SUPPORT_STEP)
            else:
                result.contradicting += 1
                hypothesis.confidence = max(MIN_CONFIDENCE, hypothesis.confidence - CONTRADICT_STEP)
            hypothesis.confidence = round(hypothesis.confidence, 6)
            hypothesis.evidence.append(Evidence(verdict.supports, episode.episode_id, self.clock.now()))
            self.apply_fate(hypothesis)
            if not hypothesis.is_active:
                break

        result.status = hypothesis.status
        result.confidence = hypothesis.confidence
        return result

    def process_hypotheses(self) -> List[HypothesisTestResult]:
        """Test every hypothesis currently in the testing state."""
        return [self.test_hypothesis(h) for h in list(self.hypotheses)
                if h.status == HypothesisStatus.TESTING]

    def apply_fate(self, hypothesis: Hypothesis) -> None:
        if hypothesis.confidence > 0.8 and hypothesis.test_attempts > 2:
            self.confirm(hypothesis)
        elif hypothesis.confidence < 0.1 and hypothesis.test_attempts > 3:
            self.reject(hypothesis)

    def confirm(self, hypothesis: Hypothesis) -> ConfirmedRule:
        hypothesis.status = HypothesisStatus.CONFIRMED
        rule = ConfirmedRule(
            rule_id=hypothesis.hypothesis_id,
            kind=hypothesis.kind,
            statement=hypothesis.statement,
            confidence=hypothesis.confidence,
            confirmed_at=self.clock.now(),
            evidence_count=len(hypothesis.evidence),
        )
        self.confirmed_rules[rule.rule_id] = rule
        self.hypotheses = [h for h in self.hypotheses if h is not hypothesis]
        logger.info("Hypothesis confirmed: %s", hypothesis.statement)
        for callback in list(self.on_confirmed):
            callback(rule)
        return rule

    def reject(self, hypothesis: Hypothesis) -> None:
        hypothesis.status = HypothesisStatus.REJECTED
        self.hypotheses = [h for h in self.hypotheses if h is not hypothesis]
        self.rejected.append(hypothesis)
        if len(self.rejected) > MAX_REJECTED:
            del self.rejected[: len(self.rejected) - MAX_REJECTED]
        logger.info("Hypothesis rejected: %s", hypothesis.statement)

    # ──────────────────────────────────────────────────────────────
    # Introspection
    # ──────────────────────────────────────────────────────────────

    def language_confidence(self, vocabulary_size: int) -> float:
        return min(1.0, len(self.confirmed_rules) * 0.3 + vocabulary_size * 0.02 + len(self.active) * 0.1)

    def stats(self) -> Dict[str, Any]:
        return {
            "active": len(self.active),
            "testing": sum(1 for h in self.hypotheses if h.status == HypothesisStatus.TESTING),
            "confirmed": len(self.confirmed_rules),
            "rejected": len(self.rejected),
            "hypotheses": [(h.hypothesis_id, round(h.confidence, 3), h.status.value) for h in self.hypotheses],
        }

    def serialize(self) -> Dict[str, Any]:
        return {
            "hypotheses": [h.to_dict() for h in self.hypotheses],
            "confirmed_rules": [rule.to_dict() for rule in self.confirmed_rules.values()],
            "rejected": [h.to_dict() for h in self.rejected],
            "seq": self._seq,
        }

    def deserialize(self, data: Dict[str, Any]) -> None:
        data = data or {}
        if "hypotheses" in data:
            self.hypotheses = [Hypothesis.from_dict(raw) for raw in data.get("hypotheses") or []]
        self.confirmed_rules = {}
        for raw in data.get("confirmed_rules") or []:
            rule = ConfirmedRule.from_dict(raw)
            self.confirmed_rules[rule.rule_id] = rule
        self.rejected = [Hypothesis.from_dict(raw) for raw in data.get("rejected") or []][-MAX_REJECTED:]
        self._seq = int(data.get("seq", len(self.hypotheses)))
