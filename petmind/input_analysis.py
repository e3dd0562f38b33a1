"""
Input analysis for text spoken to the pet.

Turns a raw utterance into an ``Analysis``: tokens split into known and
unknown words, an intent guess from an ordered table of regex matchers, the
emotional tone, politeness, syntactic patterns, social context, entities and
referenced concepts, plus three composite scores (understanding confidence,
novelty and complexity), each kept in [0, 1].

The analyzer is stateless; everything it knows about the pet's language
(vocabulary, grammar rules, concept graph, enabled enhancements) is passed in.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .base import clamp


@dataclass
class Analysis:
    """Everything the pet made of one utterance."""
    text: str
    tokens: List[str] = field(default_factory=list)
    known_words: List[str] = field(default_factory=list)
    unknown_words: List[str] = field(default_factory=list)
    repeated_words: List[str] = field(default_factory=list)
    intent: str = "unknown"
    intent_confidence: float = 0.1
    emotional_tone: str = "neutral"
    tone_confidence: float = 0.3
    tone_distribution: Dict[str, int] = field(default_factory=dict)
    politeness: float = 0.0
    politeness_label: str = "neutral"
    syntactic_patterns: List[Tuple[str, float]] = field(default_factory=list)
    social_context: Dict[str, Any] = field(default_factory=dict)
    entities: List[Dict[str, Any]] = field(default_factory=list)
    concepts: List[Dict[str, Any]] = field(default_factory=list)
    information_structure: Dict[str, Any] = field(default_factory=dict)
    person: Any = None
    urgency: float = 0.0
    confidence: float = 0.1
    novelty: float = 0.0
    complexity: float = 0.0

    @property
    def formality(self) -> str:
        return self.social_context.get("formality", "neutral")

    @property
    def pattern_types(self) -> List[str]:
        return [name for name, _ in self.syntactic_patterns]


class InputAnalyzer:
    """Regex-table analysis of user text."""

    # Order matters: the first matching intent wins.
    INTENT_PATTERNS = [
        ("greeting", r"^(?:hi|hello|hey|good|morning|afternoon|evening)"),
        ("question", r"\?|what|how|why|when|where|who|can you|do you|are you"),
        ("command", r"^(?:go|come|sit|stay|stop|start|do|get|bring|take)"),
        ("praise", r"good|great|awesome|amazing|wonderful|perfect|smart|clever|nice"),
        ("scold", r"bad|no|stop|wrong|stupid|shut|quiet|behave"),
        ("introduction", r"my name is|i am|i'm|call me"),
        ("affection", r"love|cute|sweet|adorable|precious|like you|care about"),
        ("information", r"tell me|show me|explain|describe|what is|who is"),
        ("farewell", r"bye|goodbye|see you|talk later|going away"),
    ]

    # (tone, pattern, case sensitive)
    TONE_PATTERNS = [
        ("excited", r"!", True),
        ("questioning", r"\?", True),
        ("shouting", r"[A-Z]{2,}", True),
        ("happy", r"happy|joy|great|awesome|wonderful|love|like", False),
        ("sad", r"sad|sorry|hurt|miss|cry|upset", False),
        ("angry", r"angry|mad|furious|hate|stupid|shut up", False),
        ("gentle", r"please|thank|sweet|soft|gentle|kind", False),
    ]

    SYNTACTIC_PATTERNS = [
        ("interrogative", r"\?$", 0.8, 0),
        ("request", r"^(?:please\s|can you|could you)", 0.7, re.IGNORECASE),
        ("complete_sentence", r"^[A-Z][^.?!]*[.?!]$", 0.6, 0),
        ("punctuation_usage", r"[^a-zA-Z0-9\s]", 0.5, 0),
    ]

    POLITE_WORDS = ["please", "thank you", "thanks", "excuse me", "sorry"]
    RUDE_WORDS = ["stupid", "idiot", "shut up", "dumb", "hate", "noob"]
    FORMAL_WORDS = ["please", "thank you", "excuse me", "pardon", "sir", "madam"]
    INFORMAL_WORDS = ["hey", "yeah", "nah", "gonna", "wanna"]
    QUESTION_WORDS = ["what", "why", "how", "when", "where", "who", "which"]
    PRONOUN_REFERENCES = {"i": "speaker", "me": "speaker", "my": "speaker", "you": "creature", "your": "creature"}
    PRONOUNS = {
        "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them", "my",
        "your", "his", "its", "our", "their", "mine", "yours", "hers", "ours", "theirs",
    }
    GIVEN_MARKERS = {"the", "this", "that"}

    def __init__(self, identity_resolver=None):
        self.identity_resolver = identity_resolver
        self._intents = [(name, re.compile(p, re.IGNORECASE)) for name, p in self.INTENT_PATTERNS]
        self._tones = [(name, re.compile(p, 0 if cs else re.IGNORECASE)) for name, p, cs in self.TONE_PATTERNS]
        self._syntax = [(name, re.compile(p, flags), conf) for name, p, conf, flags in self.SYNTACTIC_PATTERNS]

    # ──────────────────────────────────────────────────────────────
    # Lexical
    # ──────────────────────────────────────────────────────────────

    @staticmethod
    def tokenize(text: str) -> List[str]:
        return [word for word in re.sub(r"[^\w\s]", "", text.lower()).split() if word]

    # ──────────────────────────────────────────────────────────────
    # Individual analyses
    # ──────────────────────────────────────────────────────────────

    def infer_intent(self, text: str) -> Tuple[str, float]:
        for name, pattern in self._intents:
            matches = pattern.findall(text)
            if matches:
                return name, min(0.9, len(matches) * 0.3 + 0.4)
        return "unknown", 0.1

    def detect_emotional_tone(self, text: str) -> Tuple[str, float, Dict[str, int]]:
        distribution = {name: len(pattern.findall(text)) for name, pattern in self._tones}
        best, best_count = "neutral", 0
        for name, count in distribution.items():
            if count > best_count:
                best, best_count = name, count
        confidence = 0.3 if best_count == 0 else min(0.9, 0.4 + 0.15 * best_count)
        return best, confidence, distribution

    def assess_politeness(self, text: str) -> Tuple[float, str]:
        lowered = text.lower()
        score = sum(1 for word in self.POLITE_WORDS if word in lowered)
        score -= sum(1 for word in self.RUDE_WORDS if word in lowered)
        level = clamp(score / (len(self.POLITE_WORDS) + len(self.RUDE_WORDS)), -1.0, 1.0)
        if level > 0.3:
            return level, "polite"
        if level < -0.3:
            return level, "rude"
        return level, "neutral"

    def identify_syntactic_patterns(self, text: str) -> List[Tuple[str, float]]:
        return [(name, conf) for name, pattern, conf in self._syntax if pattern.search(text)]

    def analyze_social_context(self, text: str, context: Mapping[str, Any], agent_state=None,
                               person=None) -> Dict[str, Any]:
        lowered = text.lower()
        formal = sum(1 for word in self.FORMAL_WORDS if word in lowered)
        informal = sum(1 for word in self.INFORMAL_WORDS if word in lowered)
        if formal > informal:
            formality = "formal"
        elif informal > formal:
            formality = "informal"
        else:
            formality = "neutral"

        if "!" in text or re.search(r"[A-Z]{2,}", text):
            tone = "excited"
        elif "?" in text:
            tone = "curious"
        else:
            tone = "neutral"

        power = "human_dominant"
        if agent_state is not None and agent_state.trust_level > 80 and agent_state.attachment_level > 60:
            power = "equal"

        speaker = context.get("speaker") or (person.person_id if person is not None else "unknown")
        relationship = context.get("relationship") or (person.relationship if person is not None else None)
        return {
            "formality": formality,
            "emotional_tone": tone,
            "speaker": speaker,
            "relationship": relationship or "unknown",
            "setting": context.get("setting", "casual"),
            "power_dynamics": power,
        }

    def extract_entities(self, text: str, tokens: List[str], person=None) -> List[Dict[str, Any]]:
        entities = []
        if person is not None:
            entities.append({"type": "person", "value": person.name, "relationship": person.relationship})
        for pronoun, reference in self.PRONOUN_REFERENCES.items():
            if pronoun in tokens:
                entities.append({"type": "pronoun", "value": pronoun, "reference": reference})
        return entities

    @staticmethod
    def identify_referenced_concepts(text: str, concept_graph=None) -> List[Dict[str, Any]]:
        if concept_graph is None:
            return []
        lowered = text.lower()
        found = []
        for name, concept in concept_graph.concepts.items():
            if name.lower() in lowered:
                found.append({"name": name, "confidence": concept.strength})
                continue
            for prop in sorted(concept.properties):
                if prop.lower() in lowered:
                    found.append({"name": name, "confidence": concept.strength * 0.8, "via": prop})
                    break
        return found

    def analyze_information_structure(self, text: str, tokens: List[str],
                                      vocabulary: Mapping[str, Any]) -> Dict[str, Any]:
        raw_words = re.sub(r"[^\w\s]", "", text).split()
        topic = next((w.lower() for w in raw_words if w[:1].isupper() and w.lower() not in self.PRONOUNS), None)
        emphasis = []
        if "!" in text:
            emphasis.append({"type": "exclamation", "strength": 0.7})
        shouted = re.findall(r"\b[A-Z][A-Z]+\b", text)
        if shouted:
            emphasis.append({"type": "capitalization", "words": shouted, "strength": 0.8})
        given = [t for t in tokens if t in self.PRONOUNS or t in self.GIVEN_MARKERS]
        new = [t for t in tokens if t not in vocabulary and len(t) > 2 and t not in given]
        focus = tokens[0] if tokens and tokens[0] != topic else None
        return {"topic": topic, "focus": focus, "emphasis": emphasis, "given_info": given, "new_info": new}

    # ──────────────────────────────────────────────────────────────
    # Composite scores
    # ──────────────────────────────────────────────────────────────

    @staticmethod
    def understanding_confidence(text: str, tokens: List[str], known: List[str],
                                 patterns: List[Tuple[str, float]], intent_confidence: float,
                                 grammar_rules: Mapping[str, Any]) -> float:
        confidence = 0.5
        if tokens:
            confidence *= 0.3 + (len(known) / len(tokens)) * 0.7
        if patterns:
            confidence += (sum(conf for _, conf in patterns) / len(patterns)) * 0.2
        confidence += intent_confidence * 0.3
        if "?" in text and "interrogative" in grammar_rules:
            confidence += 0.1
        if re.match(r"^[A-Z]", text) and re.search(r"[.!?]$", text):
            confidence += 0.1
        return clamp(confidence, 0.1, 1.0)

    @staticmethod
    def novelty_score(tokens: List[str], unknown: List[str], patterns: List[Tuple[str, float]],
                      concepts: List[Dict[str, Any]], intent: str, grammar_rules: Mapping[str, Any],
                      concept_graph=None) -> float:
        novelty = 0.0
        if unknown:
            novelty += min(0.5, len(unknown) * 0.15)
        for name, _ in patterns:
            if name not in grammar_rules:
                novelty += 0.2
        if concept_graph is not None:
            unseen = [c for c in concepts if c["name"] not in concept_graph]
            novelty += min(0.3, len(unseen) * 0.1)
        if len(tokens) > 15:
            novelty += 0.1
        if len(tokens) < 2:
            novelty += 0.05
        if intent == "unknown":
            novelty += 0.2
        return clamp(novelty)

    def complexity_score(self, text: str, tokens: List[str], patterns: List[Tuple[str, float]],
                         entities: List[Dict[str, Any]], concepts: List[Dict[str, Any]]) -> float:
        complexity = 0.0
        if len(tokens) > 10:
            complexity += 0.2
        if len(tokens) > 20:
            complexity += 0.2
        if sum(len(t) for t in tokens) / max(len(tokens), 1) > 6:
            complexity += 0.2
        complexity += min(0.3, len(patterns) * 0.1)
        if len(re.findall(r"[,.!?;:]", text)) > 2:
            complexity += 0.1
        if len([s for s in re.split(r"[.!?]+", text) if s.strip()]) > 1:
            complexity += 0.2
        if "?" in text:
            lowered = text.lower()
            if sum(1 for qw in self.QUESTION_WORDS if qw in lowered) > 1:
                complexity += 0.1
        complexity += min(0.2, (len(entities) + len(concepts)) * 0.05)
        return clamp(complexity)

    # ──────────────────────────────────────────────────────────────
    # Entry point
    # ──────────────────────────────────────────────────────────────

    def analyze(self, text: str, vocabulary: Mapping[str, Any], grammar_rules: Mapping[str, Any],
                concept_graph=None, context: Optional[Mapping[str, Any]] = None, agent_state=None,
                enhancements: Iterable[str] = ()) -> Analysis:
        context = context or {}
        enhancements = set(enhancements)
        text = text.strip()
        tokens = self.tokenize(text)
        known = [t for t in tokens if t in vocabulary]
        unknown = list(dict.fromkeys(t for t in tokens if t not in vocabulary and len(t) > 1))
        repeated = [t for t, n in Counter(tokens).items() if n > 1 and len(t) > 1]

        person = self.identity_resolver.resolve(text) if self.identity_resolver is not None else None

        intent, intent_confidence = self.infer_intent(text)
        if person is not None and "name_recognition" in enhancements:
            intent, intent_confidence = "introduction", max(intent_confidence, 0.8)

        tone, tone_confidence, distribution = self.detect_emotional_tone(text)
        if "tone_recognition" in enhancements and tone != "neutral":
            tone_confidence = min(0.95, tone_confidence + 0.2)

        politeness, politeness_label = self.assess_politeness(text)
        patterns = self.identify_syntactic_patterns(text)
        social = self.analyze_social_context(text, context, agent_state, person)
        entities = self.extract_entities(text, tokens, person)
        concepts = self.identify_referenced_concepts(text, concept_graph)

        urgency = 0.0
        if repeated and "repetition_sensitivity" in enhancements:
            urgency = min(1.0, 0.3 * len(repeated) + (0.2 if "!" in text else 0.0))

        return Analysis(
            text=text,
            tokens=tokens,
            known_words=known,
            unknown_words=unknown,
            repeated_words=repeated,
            intent=intent,
            intent_confidence=intent_confidence,
            emotional_tone=tone,
            tone_confidence=tone_confidence,
            tone_distribution=distribution,
            politeness=politeness,
            politeness_label=politeness_label,
            syntactic_patterns=patterns,
            social_context=social,
            entities=entities,
            concepts=concepts,
            information_structure=self.analyze_information_structure(text, tokens, vocabulary),
            person=person,
            urgency=urgency,
            confidence=self.understanding_confidence(text, tokens, known, patterns, intent_confidence, grammar_rules),
            novelty=self.novelty_score(tokens, unknown, patterns, concepts, intent, grammar_rules, concept_graph),
            complexity=self.complexity_score(text, tokens, patterns, entities, concepts),
        )
