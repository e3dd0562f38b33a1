"""
Core records shared by the petmind components.

Every record is a plain dataclass with a ``to_dict``/``from_dict`` pair so the
whole mind can be snapshotted to JSON and restored:

- Episode: one timestamped event in episodic memory
- Concept / SemanticEdge: nodes and co-occurrence links of the concept graph
- Hypothesis / Evidence / ConfirmedRule: the hypothesis engine's state
- VocabularyEntry / WordMeaning / GrammarRule / PragmaticRule: language state
- Goal / Utterance / SpeechAttempt: the response side

``from_dict`` is tolerant: missing keys fall back to the field defaults so
partially written snapshots still load.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(high, value))


def edge_key(a: str, b: str) -> Tuple[str, str]:
    """Order-independent key for a pair of concept names."""
    return (a, b) if a <= b else (b, a)


TRUE_STRINGS = {"1", "true", "yes", "on"}
FALSE_STRINGS = {"0", "false", "no", "off"}


def parse_bool(value: Any) -> bool:
    """Read a flag from plain data; raises ValueError for anything that is not clearly one."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


# ──────────────────────────────────────────────────────────────────
# Episodic memory
# ──────────────────────────────────────────────────────────────────

@dataclass
class Episode:
    """A single remembered event."""
    episode_id: str
    event_type: str
    timestamp: float
    details: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)
    related_concepts: List[str] = field(default_factory=list)
    importance: float = 0.5
    recall_count: int = 0

    @property
    def retention_score(self) -> float:
        """Score used by capacity eviction (lowest goes first)."""
        return self.importance * (1 + self.recall_count * 0.1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episode_id": self.episode_id,
            "event_type": self.event_type,
            "timestamp": float(self.timestamp),
            "details": dict(self.details),
            "context": dict(self.context),
            "related_concepts": list(self.related_concepts),
            "importance": float(self.importance),
            "recall_count": int(self.recall_count),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Episode:
        return cls(
            episode_id=str(data.get("episode_id", "")),
            event_type=str(data.get("event_type", "unknown")),
            timestamp=float(data.get("timestamp", 0.0)),
            details=dict(data.get("details") or {}),
            context=dict(data.get("context") or {}),
            related_concepts=list(data.get("related_concepts") or []),
            importance=float(data.get("importance", 0.5)),
            recall_count=int(data.get("recall_count", 0)),
        )


# ──────────────────────────────────────────────────────────────────
# Concept graph
# ──────────────────────────────────────────────────────────────────

@dataclass
class Concept:
    """A named concept, either seeded or mined from repeated episodes."""
    name: str
    definition: str = ""
    properties: set = field(default_factory=set)
    relationships: List[Tuple[str, str]] = field(default_factory=list)
    strength: float = 0.5
    created_at: float = 0.0
    confidence: Optional[float] = None
    learned_from: Optional[str] = None
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "definition": self.definition,
            "properties": sorted(self.properties),
            "relationships": [list(rel) for rel in self.relationships],
            "strength": float(self.strength),
            "created_at": float(self.created_at),
            "confidence": self.confidence,
            "learned_from": self.learned_from,
            "examples": list(self.examples),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Concept:
        return cls(
            name=str(data.get("name", "")),
            definition=str(data.get("definition", "")),
            properties=set(data.get("properties") or []),
            relationships=[tuple(rel) for rel in data.get("relationships") or [] if len(rel) == 2],
            strength=float(data.get("strength", 0.5)),
            created_at=float(data.get("created_at", 0.0)),
            confidence=data.get("confidence"),
            learned_from=data.get("learned_from"),
            examples=list(data.get("examples") or []),
        )


@dataclass
class SemanticEdge:
    """Undirected co-occurrence link between two concepts."""
    concepts: Tuple[str, str]
    strength: float = 0.0
    contexts: set = field(default_factory=set)
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concepts": list(self.concepts),
            "strength": float(self.strength),
            "contexts": sorted(self.contexts),
            "count": int(self.count),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SemanticEdge:
        a, b = (list(data.get("concepts") or []) + ["", ""])[:2]
        return cls(
            concepts=edge_key(a, b),
            strength=float(data.get("strength", 0.0)),
            contexts=set(data.get("contexts") or []),
            count=int(data.get("count", 0)),
        )


# ──────────────────────────────────────────────────────────────────
# Hypotheses
# ──────────────────────────────────────────────────────────────────

class HypothesisStatus(Enum):
    """Lifecycle of a hypothesis. CONFIRMED and REJECTED are terminal."""
    FORMING = "forming"
    TESTING = "testing"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (HypothesisStatus.CONFIRMED, HypothesisStatus.REJECTED)


@dataclass
class Evidence:
    supporting: bool
    source: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {"supporting": self.supporting, "source": self.source, "timestamp": float(self.timestamp)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Evidence:
        return cls(
            supporting=bool(data.get("supporting", False)),
            source=str(data.get("source", "")),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass
class Hypothesis:
    """A tentative rule about the world. ``kind`` selects its evaluator."""
    hypothesis_id: str
    kind: str
    statement: str
    confidence: float = 0.1
    evidence: List[Evidence] = field(default_factory=list)
    test_attempts: int = 0
    status: HypothesisStatus = HypothesisStatus.FORMING
    related_concepts: List[str] = field(default_factory=list)
    created_at: float = 0.0

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def support_ratio(self) -> float:
        if not self.evidence:
            return 0.0
        return sum(1 for item in self.evidence if item.supporting) / len(self.evidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hypothesis_id": self.hypothesis_id,
            "kind": self.kind,
            "statement": self.statement,
            "confidence": float(self.confidence),
            "evidence": [item.to_dict() for item in self.evidence],
            "test_attempts": int(self.test_attempts),
            "status": self.status.value,
            "related_concepts": list(self.related_concepts),
            "created_at": float(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Hypothesis:
        try:
            status = HypothesisStatus(data.get("status", "forming"))
        except ValueError:
            status = HypothesisStatus.FORMING
        hypothesis_id = str(data.get("hypothesis_id", ""))
        return cls(
            hypothesis_id=hypothesis_id,
            kind=str(data.get("kind") or hypothesis_id),
            statement=str(data.get("statement", "")),
            confidence=float(data.get("confidence", 0.1)),
            evidence=[Evidence.from_dict(item) for item in data.get("evidence") or []],
            test_attempts=int(data.get("test_attempts", 0)),
            status=status,
            related_concepts=list(data.get("related_concepts") or []),
            created_at=float(data.get("created_at", 0.0)),
        )


@dataclass
class ConfirmedRule:
    """Frozen copy of a hypothesis at the moment it was confirmed."""
    rule_id: str
    kind: str
    statement: str
    confidence: float
    confirmed_at: float
    evidence_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "kind": self.kind,
            "statement": self.statement,
            "confidence": float(self.confidence),
            "confirmed_at": float(self.confirmed_at),
            "evidence_count": int(self.evidence_count),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ConfirmedRule:
        rule_id = str(data.get("rule_id", ""))
        return cls(
            rule_id=rule_id,
            kind=str(data.get("kind") or rule_id),
            statement=str(data.get("statement", "")),
            confidence=float(data.get("confidence", 0.0)),
            confirmed_at=float(data.get("confirmed_at", 0.0)),
            evidence_count=int(data.get("evidence_count", 0)),
        )


# ──────────────────────────────────────────────────────────────────
# Language
# ──────────────────────────────────────────────────────────────────

@dataclass
class WordMeaning:
    concept: str
    confidence: float
    via: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"concept": self.concept, "confidence": float(self.confidence), "via": self.via}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WordMeaning:
        return cls(
            concept=str(data.get("concept", "")),
            confidence=float(data.get("confidence", 0.0)),
            via=data.get("via"),
        )


@dataclass
class VocabularyEntry:
    """A word the pet knows (or has invented)."""
    token: str
    meanings: List[WordMeaning] = field(default_factory=list)
    usage_contexts: List[Dict[str, Any]] = field(default_factory=list)
    success_rate: float = 0.0
    strength: float = 0.1
    acquisition_date: float = 0.0
    usage_count: int = 0
    origin: str = "heard"               # heard, proto, invented

    MAX_CONTEXTS = 10

    def has_meaning(self, concept: str) -> bool:
        return any(meaning.concept == concept for meaning in self.meanings)

    def add_context(self, context: Dict[str, Any]) -> None:
        self.usage_contexts.append(context)
        if len(self.usage_contexts) > self.MAX_CONTEXTS:
            del self.usage_contexts[: len(self.usage_contexts) - self.MAX_CONTEXTS]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "meanings": [meaning.to_dict() for meaning in self.meanings],
            "usage_contexts": list(self.usage_contexts),
            "success_rate": float(self.success_rate),
            "strength": float(self.strength),
            "acquisition_date": float(self.acquisition_date),
            "usage_count": int(self.usage_count),
            "origin": self.origin,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VocabularyEntry:
        return cls(
            token=str(data.get("token", "")),
            meanings=[WordMeaning.from_dict(item) for item in data.get("meanings") or []],
            usage_contexts=list(data.get("usage_contexts") or [])[-cls.MAX_CONTEXTS:],
            success_rate=float(data.get("success_rate", 0.0)),
            strength=float(data.get("strength", 0.1)),
            acquisition_date=float(data.get("acquisition_date", 0.0)),
            usage_count=int(data.get("usage_count", 0)),
            origin=str(data.get("origin", "heard")),
        )


@dataclass
class GrammarRule:
    pattern: str
    examples: List[str] = field(default_factory=list)
    confidence: float = 0.0

    MAX_EXAMPLES = 10

    def to_dict(self) -> Dict[str, Any]:
        return {"pattern": self.pattern, "examples": list(self.examples), "confidence": float(self.confidence)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GrammarRule:
        return cls(
            pattern=str(data.get("pattern", "")),
            examples=list(data.get("examples") or [])[-cls.MAX_EXAMPLES:],
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass
class PragmaticRule:
    intent: str
    formality: str
    emotional_tone: str = "neutral"
    examples: List[str] = field(default_factory=list)
    confidence: float = 0.0

    MAX_EXAMPLES = 5

    @property
    def key(self) -> str:
        return f"{self.intent}_{self.formality}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "formality": self.formality,
            "emotional_tone": self.emotional_tone,
            "examples": list(self.examples),
            "confidence": float(self.confidence),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PragmaticRule:
        return cls(
            intent=str(data.get("intent", "unknown")),
            formality=str(data.get("formality", "neutral")),
            emotional_tone=str(data.get("emotional_tone", "neutral")),
            examples=list(data.get("examples") or [])[-cls.MAX_EXAMPLES:],
            confidence=float(data.get("confidence", 0.0)),
        )


# ──────────────────────────────────────────────────────────────────
# Interaction, goals, output
# ──────────────────────────────────────────────────────────────────

@dataclass
class Interaction:
    """Output of the interaction classifier (pointer gestures, buttons, ...)."""
    type: str
    gentleness: float = 0.5
    playfulness: float = 0.0
    intensity: float = 0.5


@dataclass
class Goal:
    goal_type: str
    priority: float
    timestamp: float
    payload: Dict[str, Any] = field(default_factory=dict)
    goal_id: str = ""


@dataclass
class Utterance:
    """What the pet says, plus how it should be delivered."""
    text: str
    emotion: str = "neutral"
    confidence: float = 0.0
    expected_reaction: str = "neutral"
    strategy: str = ""
    goal_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "emotion": self.emotion,
            "confidence": float(self.confidence),
            "expected_reaction": self.expected_reaction,
            "strategy": self.strategy,
            "goal_type": self.goal_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Utterance:
        return cls(
            text=str(data.get("text", "")),
            emotion=str(data.get("emotion", "neutral")),
            confidence=float(data.get("confidence", 0.0)),
            expected_reaction=str(data.get("expected_reaction", "neutral")),
            strategy=str(data.get("strategy", "")),
            goal_type=str(data.get("goal_type", "")),
        )


@dataclass
class SpeechAttempt:
    attempt_id: str
    utterance: Utterance
    timestamp: float
    reaction: Optional[str] = None
    success: Optional[bool] = None

    @property
    def evaluated(self) -> bool:
        return self.success is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "utterance": self.utterance.to_dict(),
            "timestamp": float(self.timestamp),
            "reaction": self.reaction,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SpeechAttempt:
        return cls(
            attempt_id=str(data.get("attempt_id", "")),
            utterance=Utterance.from_dict(data.get("utterance") or {}),
            timestamp=float(data.get("timestamp", 0.0)),
            reaction=data.get("reaction"),
            success=data.get("success"),
        )


def pick(rng, options):
    """Uniform choice from a sequence using a numpy Generator, keeping the element type."""
    return options[int(rng.integers(len(options)))]
