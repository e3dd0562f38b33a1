"""
Language acquisition for the pet.

The pet starts out with a handful of babbled proto-sounds and picks up words,
grammar patterns and pragmatic conventions from what people say to it:

- Vocabulary: unknown tokens become entries with meanings guessed from the
  intent and the concepts mentioned alongside them
- Grammar: one rule per syntactic pattern; confidence only ever grows
- Pragmatics: one rule per (intent, formality) pair
- Stages 1..5, gated on vocabulary size, comprehension, grammar rules, social
  awareness and production ability; stages never regress
- Maintenance (run on its own cadence): old weak words are forgotten, well
  established words are reinforced
- Strategy selection: personality and mood weighted draw from a per-goal
  strategy table
- Speech feedback: reactions to what the pet said adjust word success rates
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .base import (ConfirmedRule, GrammarRule, PragmaticRule, SpeechAttempt, Utterance,
                   VocabularyEntry, WordMeaning, clamp, pick)
from .input_analysis import Analysis, InputAnalyzer
from .personality import AgentState, CommunicationStyle, PersonalityProfile, read_state

logger = logging.getLogger(__name__)

STAGE_NAMES = {
    1: "Proto-Language",
    2: "First Words",
    3: "Simple Grammar",
    4: "Complex Language",
    5: "Advanced Communication",
}

# Requirements to enter each stage; each stage raises every bar of the one before.
STAGE_GATES = {
    2: {"vocabulary": 5, "comprehension": 0.3},
    3: {"vocabulary": 15, "comprehension": 0.4, "grammar": 3},
    4: {"vocabulary": 30, "comprehension": 0.5, "grammar": 4, "social": 0.4},
    5: {"vocabulary": 50, "comprehension": 0.6, "grammar": 5, "social": 0.5, "production": 0.6},
}

STAGE_UNLOCKS = {2: ("comprehension", 0.3), 3: ("production", 0.4), 4: ("social_awareness", 0.6)}

STRATEGIES = {
    "greeting_response": ["mirror_greeting", "enthusiastic_greeting", "shy_greeting"],
    "answer_question": ["direct_answer", "confused_response", "deflect_with_emotion"],
    "acknowledge_praise": ["happy_acceptance", "shy_acknowledgment", "proud_response"],
    "respond_to_introduction": ["excited_meeting", "cautious_response", "friendly_response"],
    "express_hunger": ["direct_request", "subtle_hint", "dramatic_expression"],
    "seek_attention": ["playful_behavior", "sad_appeal", "attention_getting"],
    "express_frustration": ["mild_complaint", "emotional_outburst", "withdrawal"],
    "request_clarification": ["confused_sounds", "repeat_back", "questioning_tone"],
    "general_response": ["acknowledge", "express_mood", "random_vocalization"],
}

EXPRESSION_STRATEGIES = {
    "hungry": ["food_request", "hunger_complaint", "food_memory"],
    "happy": ["joy_expression", "playful_chatter", "contentment"],
    "sad": ["sadness_expression", "comfort_seeking", "melancholy"],
    "lonely": ["attention_seeking", "social_invitation", "attachment_display"],
    "frustrated": ["complaint", "demand_attention", "restless_behavior"],
    "sick": ["help_request", "discomfort_expression", "weakness_display"],
    "tired": ["rest_request", "energy_complaint", "sleepy_behavior"],
    "curious": ["question_asking", "exploration_interest", "learning_excitement"],
    "angry": ["frustration_expression", "boundary_assertion", "aggressive_display"],
}

RULE_ENHANCEMENTS = {
    "names_identify_people": "name_recognition",
    "repeated_words_mean_urgency": "repetition_sensitivity",
    "tone_indicates_emotion": "tone_recognition",
}

INTENT_MEANINGS = {
    "praise": ("positive_evaluation", 0.6),
    "scold": ("negative_evaluation", 0.6),
    "question": ("information_seeking", 0.5),
}

POSITIVE_REACTIONS = {"feed", "play", "pet", "praise"}
NEGATIVE_REACTIONS = {"scold", "ignore"}

VOWELS = ["a", "e", "i", "o", "u", "eh", "oh", "ah"]
CONSONANTS = ["m", "n", "p", "b", "t", "d", "k", "g", "l", "r", "w", "y"]
SYLLABLE_SHAPES = ["V", "CV", "VC", "CVC", "CVV"]

WORD_INVENTION = {
    "hungry": (["gra", "gro", "gru"], ["k", "m", "b"]),
    "happy": (["yi", "wi", "pi"], ["mi", "ha", "ya"]),
    "sad": (["oo", "ah", "uh"], ["wa", "ma", "na"]),
    "tired": (["zzz", "meh", "ugh"], ["", "a", "o"]),
    "sick": (["ick", "ugh", "bleh"], ["", "y", "i"]),
    "lonely": (["hey", "hel", "loo"], ["o", "p", ""]),
    "general": (["ba", "ma", "da", "wa"], ["ba", "ma", "ya"]),
}

WORD_MAX_AGE_MS = 600000.0
WORD_DECAY_AGE_MS = 300000.0
REACTION_CREDIT_MS = 15000.0
MAX_SPEECH_ATTEMPTS = 30


class LanguageModel:
    """Vocabulary, grammar and pragmatic knowledge plus the rules that grow them."""

    def __init__(self, concept_graph, clock, rng, personality: Optional[PersonalityProfile] = None,
                 state_provider=None, identity_resolver=None, hypothesis_engine=None,
                 proto_vocabulary: bool = True):
        self.concept_graph = concept_graph
        self.clock = clock
        self.rng = rng
        self.personality = personality
        self.state_provider = state_provider
        self.analyzer = InputAnalyzer(identity_resolver)

        self.vocabulary: "OrderedDict[str, VocabularyEntry]" = OrderedDict()
        self.grammar_rules: Dict[str, GrammarRule] = {}
        self.pragmatic_rules: Dict[str, PragmaticRule] = {}
        self.stage = 1
        self.comprehension = 0.1
        self.production = 0.1
        self.social_awareness = 0.3
        self.enhancements = set()
        self.strategy_success: Dict[str, Dict[str, int]] = {}
        self.speech_attempts: List[SpeechAttempt] = []
        self._attempt_seq = 0

        self.on_learning_event: List[Callable[[str, Dict[str, Any]], None]] = []
        self.on_stage_evolved: List[Callable[[int, int], None]] = []

        if concept_graph is not None:
            concept_graph.on_concept_formed.append(self.learn_conceptual_vocabulary)
        if hypothesis_engine is not None:
            hypothesis_engine.on_confirmed.append(self.integrate_confirmed_rule)
        if proto_vocabulary:
            self.initialize_proto_vocabulary()

    # ──────────────────────────────────────────────────────────────
    # Personality
    # ──────────────────────────────────────────────────────────────

    def agent_state(self) -> AgentState:
        return read_state(self.state_provider)

    def current_personality(self) -> PersonalityProfile:
        if self.personality is not None:
            return self.personality
        return self.agent_state().personality

    @property
    def communication_style(self) -> CommunicationStyle:
        return self.current_personality().communication_style()

    @property
    def stage_name(self) -> str:
        return STAGE_NAMES.get(self.stage, "Unknown")

    # ──────────────────────────────────────────────────────────────
    # Proto-language
    # ──────────────────────────────────────────────────────────────

    def babble(self) -> str:
        shape = pick(self.rng, SYLLABLE_SHAPES)
        return "".join(pick(self.rng, CONSONANTS if ch == "C" else VOWELS) for ch in shape)

    def initialize_proto_vocabulary(self) -> List[str]:
        now = self.clock.now()
        count = 8 + int(self.rng.integers(0, 8))
        added = []
        for _ in range(count):
            sound = self.babble()
            if sound in self.vocabulary:
                continue
            self.vocabulary[sound] = VocabularyEntry(token=sound, strength=0.3, acquisition_date=now, origin="proto")
            added.append(sound)
        return added

    def invent_word(self, feeling: str) -> str:
        starts, ends = WORD_INVENTION.get(feeling, WORD_INVENTION["general"])
        return pick(self.rng, starts) + pick(self.rng, ends)

    def adopt_invented_word(self, feeling: str) -> VocabularyEntry:
        """Invent a word for ``feeling`` and add it to the vocabulary."""
        word = self.invent_word(feeling)
        entry = self.vocabulary.get(word)
        if entry is None:
            entry = VocabularyEntry(token=word, strength=0.3, acquisition_date=self.clock.now(), origin="invented")
            self.vocabulary[word] = entry
            logger.debug("Invented word %r for %s", word, feeling)
        if not entry.has_meaning(feeling):
            entry.meanings.append(WordMeaning(feeling, 0.5, via="invention"))
        entry.add_context({"thought": feeling})
        return entry

    def find_words_for_concept(self, concept: str) -> List[str]:
        """Words tied to ``concept``, most successful first."""
        matches = [
            entry for entry in self.vocabulary.values()
            if entry.has_meaning(concept) or any(ctx.get("thought") == concept for ctx in entry.usage_contexts)
        ]
        matches.sort(key=lambda entry: entry.success_rate, reverse=True)
        return [entry.token for entry in matches]

    # ──────────────────────────────────────────────────────────────
    # Input processing and learning
    # ──────────────────────────────────────────────────────────────

    def process_input(self, text: str, context: Optional[Dict[str, Any]] = None, learn: bool = True) -> Analysis:
        """Analyse ``text``; when ``learn`` is set, also learn from it and re-check the stage."""
        analysis = self.analyzer.analyze(
            text,
            vocabulary=self.vocabulary,
            grammar_rules=self.grammar_rules,
            concept_graph=self.concept_graph,
            context=context,
            agent_state=self.agent_state(),
            enhancements=self.enhancements,
        )
        if learn:
            self.learn_from_analysis(analysis)
            self.update_language_understanding(analysis)
            self.check_stage_progression()
        return analysis

    def learn_from_analysis(self, analysis: Analysis) -> None:
        for word in analysis.unknown_words:
            self.learn_new_word(word, analysis)
        self.learn_syntactic_patterns(analysis)
        self.learn_pragmatic_use(analysis)

    @staticmethod
    def infer_word_meaning(analysis: Analysis) -> List[WordMeaning]:
        meanings = []
        if analysis.intent in INTENT_MEANINGS:
            concept, confidence = INTENT_MEANINGS[analysis.intent]
            meanings.append(WordMeaning(concept, confidence))
        for concept in analysis.concepts:
            meanings.append(WordMeaning(concept["name"], concept["confidence"] * 0.4, via="co_occurrence"))
        return meanings

    def learn_new_word(self, word: str, analysis: Analysis) -> Optional[VocabularyEntry]:
        if len(word) < 2 or word in self.vocabulary:
            return None
        entry = VocabularyEntry(
            token=word,
            meanings=self.infer_word_meaning(analysis),
            usage_contexts=[dict(analysis.social_context)],
            success_rate=0.0,
            strength=0.1,
            acquisition_date=self.clock.now(),
        )
        self.vocabulary[word] = entry
        logger.info("Learned new word: %s", word)
        self.emit("learned_word", {
            "word": word,
            "intent": analysis.intent,
            "inferred_meaning": [m.concept for m in entry.meanings],
        })
        return entry

    def learn_syntactic_patterns(self, analysis: Analysis) -> None:
        for pattern, _ in analysis.syntactic_patterns:
            rule = self.grammar_rules.get(pattern)
            if rule is None:
                rule = GrammarRule(pattern=pattern)
                self.grammar_rules[pattern] = rule
                logger.info("Learned grammar pattern: %s", pattern)
            rule.examples.append(analysis.text)
            if len(rule.examples) > GrammarRule.MAX_EXAMPLES:
                del rule.examples[0]
            rule.confidence = min(0.95, rule.confidence + 0.1)

    def learn_pragmatic_use(self, analysis: Analysis) -> PragmaticRule:
        key = f"{analysis.intent}_{analysis.formality}"
        rule = self.pragmatic_rules.get(key)
        if rule is None:
            rule = PragmaticRule(
                intent=analysis.intent,
                formality=analysis.formality,
                emotional_tone=analysis.emotional_tone,
                examples=[analysis.text],
                confidence=analysis.intent_confidence,
            )
            self.pragmatic_rules[key] = rule
            logger.debug("Learned pragmatic rule: %s", key)
            return rule
        rule.examples.append(analysis.text)
        if len(rule.examples) > PragmaticRule.MAX_EXAMPLES:
            del rule.examples[: len(rule.examples) - PragmaticRule.MAX_EXAMPLES]
        rule.confidence = min(0.95, rule.confidence + 0.05)
        return rule

    def update_language_understanding(self, analysis: Analysis) -> None:
        self.comprehension = clamp(self.comprehension + (analysis.confidence - self.comprehension) * 0.02)
        if analysis.intent_confidence > 0.6:
            self.production = min(0.95, self.production + 0.01)

        social = 0.0
        if analysis.formality == "formal":
            social += 0.3
        elif analysis.formality == "informal":
            social += 0.1
        if analysis.tone_confidence > 0.6:
            social += 0.2
        self.social_awareness = min(0.95, self.social_awareness + min(1.0, social) * 0.005)

    def learn_conceptual_vocabulary(self, concept) -> None:
        """Tie a freshly mined ``<word>_pattern`` concept back to ``<word>``."""
        if not concept.name.endswith("_pattern"):
            return
        entry = self.vocabulary.get(concept.name[: -len("_pattern")])
        if entry is not None and not entry.has_meaning(concept.name):
            entry.meanings.append(WordMeaning(concept.name, concept.confidence or 0.3, via="concept_formation"))

    def integrate_confirmed_rule(self, rule: ConfirmedRule) -> None:
        enhancement = RULE_ENHANCEMENTS.get(rule.kind)
        if enhancement is None:
            logger.debug("Confirmed rule %s has no language effect", rule.rule_id)
            return
        if enhancement not in self.enhancements:
            self.enhancements.add(enhancement)
            logger.info("Language enhancement enabled: %s", enhancement)

    def emit(self, event_type: str, details: Dict[str, Any]) -> None:
        for callback in list(self.on_learning_event):
            callback(event_type, details)

    # ──────────────────────────────────────────────────────────────
    # Stages and maintenance
    # ──────────────────────────────────────────────────────────────

    def meets_gate(self, stage: int) -> bool:
        gate = STAGE_GATES[stage]
        return (
            len(self.vocabulary) >= gate.get("vocabulary", 0)
            and self.comprehension > gate.get("comprehension", -1.0)
            and len(self.grammar_rules) >= gate.get("grammar", 0)
            and self.social_awareness > gate.get("social", -1.0)
            and self.production > gate.get("production", -1.0)
        )

    def check_stage_progression(self) -> bool:
        """Advance at most one stage. Returns True when the stage changed."""
        target = self.stage + 1
        if target not in STAGE_GATES or not self.meets_gate(target):
            return False
        old, self.stage = self.stage, target
        for stage, (attribute, floor) in STAGE_UNLOCKS.items():
            if target >= stage:
                setattr(self, attribute, max(getattr(self, attribute), floor))
        logger.info("Language stage evolved: %s -> %s (%s)", old, target, self.stage_name)
        self.emit("language_milestone", {"old_stage": old, "new_stage": target, "stage_name": self.stage_name})
        for callback in list(self.on_stage_evolved):
            callback(old, target)
        return True

    def perform_maintenance(self) -> List[str]:
        """Reinforce established words, decay and forget the rest. Returns forgotten words."""
        now = self.clock.now()
        forgotten = []
        for token, entry in list(self.vocabulary.items()):
            if entry.usage_count > 5 and entry.success_rate > 0.7:
                entry.strength = min(1.0, entry.strength + 0.01)
                continue
            age = now - entry.acquisition_date
            if age > WORD_MAX_AGE_MS and entry.strength < 0.2:
                del self.vocabulary[token]
                forgotten.append(token)
            elif age > WORD_DECAY_AGE_MS:
                entry.strength *= 0.99
        if forgotten:
            logger.debug("Forgot weak words: %s", ", ".join(forgotten))
        return forgotten

    def update(self) -> None:
        """Periodic language tick."""
        self.check_stage_progression()
        self.perform_maintenance()

    # ──────────────────────────────────────────────────────────────
    # Strategy selection
    # ──────────────────────────────────────────────────────────────

    def strategy_weight(self, strategy: str, state: AgentState) -> float:
        traits = self.current_personality()
        weight = 0.33
        if "enthusiastic" in strategy and traits.extraversion > 0.6:
            weight += 0.3
        if "shy" in strategy and traits.extraversion < 0.4:
            weight += 0.3
        if "dramatic" in strategy and traits.neuroticism > 0.6:
            weight += 0.2
        if "direct" in strategy and traits.communication_style().directness > 0.6:
            weight += 0.2
        if state.mood == "happy" and "happy" in strategy:
            weight += 0.4
        if state.aggression_level > 50 and "outburst" in strategy:
            weight += 0.3
        if state.social_anxiety > 60 and "cautious" in strategy:
            weight += 0.3
        return weight

    def choose_weighted(self, strategies: List[str]) -> str:
        state = self.agent_state()
        weights = np.array([self.strategy_weight(s, state) for s in strategies], dtype=float)
        index = int(self.rng.choice(len(strategies), p=weights / weights.sum()))
        return strategies[index]

    def select_response_strategy(self, goal_type: str, analysis: Optional[Analysis] = None) -> str:
        strategies = STRATEGIES.get(goal_type, STRATEGIES["general_response"])
        return self.choose_weighted(strategies)

    def select_expression_strategy(self, thought_type: str, intensity: float) -> str:
        available = EXPRESSION_STRATEGIES.get(thought_type, EXPRESSION_STRATEGIES["happy"])
        if intensity > 0.7:
            urgent = [s for s in available if "request" in s or "demand" in s]
            return urgent[0] if urgent else available[0]
        return self.choose_weighted(available)

    def spontaneous_speech_probability(self, state: AgentState, since_last_speech_ms: float,
                                       cooldown_ms: float) -> float:
        probability = self.communication_style.verbosity * 0.3
        if state.mood == "happy":
            probability += 0.2
        if state.mood == "lonely":
            probability += 0.4
        if state.frustration_level > 50:
            probability += 0.3
        if state.aggression_level > 40:
            probability += 0.2
        if since_last_speech_ms < cooldown_ms * 2:
            probability *= 0.3
        return min(0.8, probability)

    # ──────────────────────────────────────────────────────────────
    # Speech feedback
    # ──────────────────────────────────────────────────────────────

    def record_speech_attempt(self, utterance: Utterance) -> SpeechAttempt:
        self._attempt_seq += 1
        attempt = SpeechAttempt(attempt_id=f"say_{self._attempt_seq}", utterance=utterance,
                                timestamp=self.clock.now())
        self.speech_attempts.append(attempt)
        if len(self.speech_attempts) > MAX_SPEECH_ATTEMPTS:
            del self.speech_attempts[: len(self.speech_attempts) - MAX_SPEECH_ATTEMPTS]
        return attempt

    def _credit_words(self, attempt: SpeechAttempt, success: bool, delta: float) -> None:
        for token in InputAnalyzer.tokenize(attempt.utterance.text):
            entry = self.vocabulary.get(token)
            if entry is None:
                continue
            uses = entry.usage_count
            entry.success_rate = (entry.success_rate * uses + (1 if success else 0)) / (uses + 1)
            entry.usage_count = uses + 1
            if delta > 0:
                entry.strength = min(1.0, entry.strength + delta)
            else:
                entry.strength = max(0.1, entry.strength + delta)
            entry.add_context({
                "goal": attempt.utterance.goal_type or "unknown",
                "success": success,
                "timestamp": self.clock.now(),
            })

    def _credit_strategy(self, strategy: str, success: bool) -> None:
        if not strategy:
            return
        record = self.strategy_success.setdefault(strategy, {"successes": 0, "attempts": 0})
        record["attempts"] += 1
        if success:
            record["successes"] += 1

    def record_user_reaction(self, action: str, is_positive: Optional[bool] = None) -> Optional[SpeechAttempt]:
        """Credit or blame the latest unevaluated speech attempt for ``action``."""
        if is_positive is None:
            if action in POSITIVE_REACTIONS or action in NEGATIVE_REACTIONS:
                is_positive = action in POSITIVE_REACTIONS
            else:
                is_positive = bool(self.rng.random() > 0.5)
        now = self.clock.now()
        attempt = None
        for candidate in reversed(self.speech_attempts):
            if not candidate.evaluated and 0 <= now - candidate.timestamp < REACTION_CREDIT_MS:
                attempt = candidate
                break

        if attempt is not None:
            attempt.reaction = action
            attempt.success = is_positive
            self._credit_words(attempt, is_positive, 0.1 if is_positive else -0.05)
            self._credit_strategy(attempt.utterance.strategy, is_positive)

        if is_positive:
            self.production = min(0.95, self.production + 0.02)
            self.comprehension = min(0.95, self.comprehension + 0.01)
        else:
            self.production = max(0.05, self.production - 0.01)
        return attempt

    def expire_speech_attempt(self, attempt_id: str) -> None:
        """No reaction arrived in time: the words used count as a mild failure."""
        for attempt in self.speech_attempts:
            if attempt.attempt_id == attempt_id and not attempt.evaluated:
                attempt.success = False
                self._credit_words(attempt, False, -0.05)
                self._credit_strategy(attempt.utterance.strategy, False)
                return

    # ──────────────────────────────────────────────────────────────
    # Introspection and persistence
    # ──────────────────────────────────────────────────────────────

    def stats(self) -> Dict[str, Any]:
        style = self.communication_style
        return {
            "stage": self.stage,
            "stage_name": self.stage_name,
            "vocabulary_size": len(self.vocabulary),
            "grammar_rules": len(self.grammar_rules),
            "pragmatic_rules": len(self.pragmatic_rules),
            "comprehension": round(self.comprehension, 3),
            "production": round(self.production, 3),
            "social_awareness": round(self.social_awareness, 3),
            "enhancements": sorted(self.enhancements),
            "communication_style": {
                "verbosity": round(style.verbosity, 2),
                "formality": round(style.formality, 2),
                "playfulness": round(style.playfulness, 2),
            },
        }

    def serialize(self) -> Dict[str, Any]:
        return {
            "vocabulary": [entry.to_dict() for entry in self.vocabulary.values()],
            "grammar_rules": [rule.to_dict() for rule in self.grammar_rules.values()],
            "pragmatic_rules": [rule.to_dict() for rule in self.pragmatic_rules.values()],
            "stage": self.stage,
            "comprehension": self.comprehension,
            "production": self.production,
            "social_awareness": self.social_awareness,
            "enhancements": sorted(self.enhancements),
            "strategy_success": {k: dict(v) for k, v in self.strategy_success.items()},
            "speech_attempts": [a.to_dict() for a in self.speech_attempts[-20:]],
        }

    def deserialize(self, data: Dict[str, Any]) -> None:
        data = data or {}
        if "vocabulary" in data:
            self.vocabulary = OrderedDict()
            for raw in data.get("vocabulary") or []:
                entry = VocabularyEntry.from_dict(raw)
                if entry.token:
                    self.vocabulary[entry.token] = entry
        if "grammar_rules" in data:
            self.grammar_rules = {}
            for raw in data.get("grammar_rules") or []:
                rule = GrammarRule.from_dict(raw)
                self.grammar_rules[rule.pattern] = rule
        if "pragmatic_rules" in data:
            self.pragmatic_rules = {}
            for raw in data.get("pragmatic_rules") or []:
                rule = PragmaticRule.from_dict(raw)
                self.pragmatic_rules[rule.key] = rule
        self.stage = max(1, min(5, int(data.get("stage", self.stage))))
        self.comprehension = float(data.get("comprehension", self.comprehension))
        self.production = float(data.get("production", self.production))
        self.social_awareness = float(data.get("social_awareness", self.social_awareness))
        self.enhancements = set(data.get("enhancements") or self.enhancements)
        self.strategy_success = {k: dict(v) for k, v in (data.get("strategy_success") or {}).items()}
        self.speech_attempts = [SpeechAttempt.from_dict(raw) for raw in data.get("speech_attempts") or []]
        self._attempt_seq = len(self.speech_attempts)
        for attempt in self.speech_attempts:
            suffix = attempt.attempt_id.rpartition("_")[2]
            if suffix.isdigit():
                self._attempt_seq = max(self._attempt_seq, int(suffix))
