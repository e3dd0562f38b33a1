"""
Episodic memory for the pet.

Stores timestamped events with an importance score and the concepts they
touch, recalls them with a simple additive relevance score, and keeps itself
under a fixed capacity by evicting the least valuable episodes.

- Importance: per event type base weight, scaled by emotional intensity and
  a first-occurrence bonus, capped at 1.0
- Recall: +0.4 event type, +0.2 per shared concept, +0.2 inside the time
  window, +0.2 per shared person; only scores above 0.3 come back
- Eviction: lowest ``importance * (1 + 0.1 * recall_count)`` first, oldest
  first on ties; survivors stay in chronological order
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .base import Episode

logger = logging.getLogger(__name__)


def detail_values(value: Any) -> Iterable[str]:
    """Leaf values of an episode payload as text; key names are not content."""
    if isinstance(value, dict):
        for item in value.values():
            yield from detail_values(item)
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            yield from detail_values(item)
    else:
        yield str(value)


EVENT_IMPORTANCE = {
    "person_introduced": 0.9,
    "learned_word": 0.8,
    "scolded": 0.8,
    "praised": 0.7,
    "ignored": 0.7,
    "fed": 0.6,
    "played": 0.6,
    "petted": 0.5,
}
DEFAULT_IMPORTANCE = 0.5
FIRST_TIME_BONUS = 1.3

EVENT_CONCEPTS = {
    "person_introduced": ["human", "name", "social"],
    "fed": ["food", "human", "care", "hunger"],
    "played": ["play", "human", "happiness", "energy"],
    "petted": ["touch", "human", "affection", "trust"],
    "scolded": ["human", "negative", "behavior", "emotion"],
    "praised": ["human", "positive", "behavior", "happiness"],
    "ignored": ["human", "absence", "loneliness", "attention"],
    "learned_word": ["language", "communication", "human"],
    "language_interaction": ["language", "communication", "human"],
    "language_milestone": ["language", "communication"],
}

CONTEXT_DEFAULTS = {
    "creature_state": dict,
    "people_present": list,
    "emotional_state": lambda: "neutral",
    "location": lambda: "home",
}

SERIALIZED_EPISODES = 50

ConceptSource = Callable[[], Iterable[Tuple[str, Iterable[str]]]]


@dataclass
class RecallQuery:
    event_type: Optional[str] = None
    concepts: List[str] = field(default_factory=list)
    timeframe: Optional[float] = None
    people_present: List[str] = field(default_factory=list)


class EpisodicStore:
    """Bounded, chronologically ordered episode log."""

    def __init__(self, clock, capacity: int = 100, concept_source: Optional[ConceptSource] = None):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.clock = clock
        self.capacity = capacity
        self.concept_source = concept_source
        self.episodes: List[Episode] = []
        self._listeners: List[Callable[[Episode], None]] = []
        self._next_id = 1

    def __len__(self) -> int:
        return len(self.episodes)

    def add_listener(self, callback: Callable[[Episode], None]) -> None:
        """Register a callback run after each new episode is stored."""
        self._listeners.append(callback)

    # ──────────────────────────────────────────────────────────────
    # Recording
    # ──────────────────────────────────────────────────────────────

    @staticmethod
    def calculate_importance(event_type: str, details: Dict[str, Any]) -> float:
        importance = EVENT_IMPORTANCE.get(event_type, DEFAULT_IMPORTANCE)
        intensity = details.get("emotional_intensity")
        if intensity is not None:
            importance *= 0.5 + float(intensity) * 0.5
        if details.get("is_first_time"):
            importance *= FIRST_TIME_BONUS
        return min(1.0, importance)

    @staticmethod
    def normalize_context(context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        normalized = dict(context or {})
        for key, factory in CONTEXT_DEFAULTS.items():
            if normalized.get(key) is None:
                normalized[key] = factory()
        return normalized

    def extract_concepts(self, event_type: str, details: Dict[str, Any]) -> List[str]:
        concepts = list(EVENT_CONCEPTS.get(event_type, []))
        if self.concept_source is None or not details:
            return concepts
        text = " ".join(detail_values(details)).lower()
        for name, properties in self.concept_source():
            if name in concepts:
                continue
            if name.lower() in text or any(str(prop).lower() in text for prop in properties):
                concepts.append(name)
        return concepts

    def record_episode(self, event_type: str, details: Optional[Dict[str, Any]] = None,
                       context: Optional[Dict[str, Any]] = None) -> str:
        """Store a new episode and return its id."""
        details = dict(details or {})
        episode = Episode(
            episode_id=f"ep_{self._next_id}",
            event_type=event_type,
            timestamp=self.clock.now(),
            details=details,
            context=self.normalize_context(context),
            related_concepts=self.extract_concepts(event_type, details),
            importance=self.calculate_importance(event_type, details),
        )
        self._next_id += 1
        self.episodes.append(episode)
        logger.debug("Recorded %s (%s, importance %.2f)", episode.episode_id, event_type, episode.importance)

        for callback in list(self._listeners):
            callback(episode)

        self.enforce_capacity()
        return episode.episode_id

    def enforce_capacity(self) -> int:
        """Evict lowest-scoring episodes until within capacity. Returns count removed."""
        excess = len(self.episodes) - self.capacity
        if excess <= 0:
            return 0
        # Stable sort keeps the chronological order as the tie-break.
        ranked = sorted(range(len(self.episodes)), key=lambda i: self.episodes[i].retention_score)
        doomed = set(ranked[:excess])
        evicted = [ep.episode_id for i, ep in enumerate(self.episodes) if i in doomed]
        self.episodes = [ep for i, ep in enumerate(self.episodes) if i not in doomed]
        logger.debug("Evicted %d episodes: %s", len(evicted), ", ".join(evicted))
        return len(evicted)

    # ──────────────────────────────────────────────────────────────
    # Recall
    # ──────────────────────────────────────────────────────────────

    def score(self, episode: Episode, query: RecallQuery, now: float) -> float:
        relevance = 0.0
        if query.event_type and episode.event_type == query.event_type:
            relevance += 0.4
        for concept in query.concepts:
            if concept in episode.related_concepts:
                relevance += 0.2
        if query.timeframe is not None and now - episode.timestamp <= query.timeframe:
            relevance += 0.2
        if query.people_present:
            present = episode.context.get("people_present") or []
            for person in query.people_present:
                if person in present:
                    relevance += 0.2
        return relevance

    def recall_episodes(self, query: Optional[RecallQuery] = None, *, event_type: Optional[str] = None,
                        concepts: Optional[List[str]] = None, timeframe: Optional[float] = None,
                        people_present: Optional[List[str]] = None) -> List[Episode]:
        """Relevant episodes, best first. Each returned episode counts as recalled."""
        if query is None:
            query = RecallQuery(
                event_type=event_type,
                concepts=list(concepts or []),
                timeframe=timeframe,
                people_present=list(people_present or []),
            )
        now = self.clock.now()
        scored = []
        for episode in self.episodes:
            relevance = self.score(episode, query, now)
            if relevance > 0.3:
                scored.append((relevance, episode))
        scored.sort(key=lambda item: item[0], reverse=True)

        results = []
        for _, episode in scored:
            episode.recall_count += 1
            results.append(episode)
        return results

    # ──────────────────────────────────────────────────────────────
    # Inspection
    # ──────────────────────────────────────────────────────────────

    def recent(self, n: int) -> List[Episode]:
        if n <= 0:
            return []
        return self.episodes[-n:]

    def get(self, episode_id: str) -> Optional[Episode]:
        for episode in self.episodes:
            if episode.episode_id == episode_id:
                return episode
        return None

    def stats(self) -> Dict[str, Any]:
        counts = Counter(ep.event_type for ep in self.episodes)
        return {
            "total_episodes": len(self.episodes),
            "capacity": self.capacity,
            "event_types": dict(counts),
            "recent_events": [ep.event_type for ep in self.recent(5)],
        }

    # ──────────────────────────────────────────────────────────────
    # Persistence
    # ──────────────────────────────────────────────────────────────

    def serialize(self) -> Dict[str, Any]:
        return {
            "episodes": [ep.to_dict() for ep in self.recent(SERIALIZED_EPISODES)],
            "next_id": self._next_id,
        }

    def deserialize(self, data: Dict[str, Any]) -> None:
        data = data or {}
        self.episodes = [Episode.from_dict(raw) for raw in data.get("episodes") or []]
        self.episodes.sort(key=lambda ep: ep.timestamp)
        highest = 0
        for ep in self.episodes:
            suffix = ep.episode_id.rpartition("_")[2]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        self._next_id = max(int(data.get("next_id", 1)), highest + 1)
        self.enforce_capacity()
