"""
Concept graph: named concepts with strengths plus undirected co-occurrence edges.

Concepts come from two places. A handful are seeded at birth (self, human,
food, name, play); the rest are mined from episodic memory. Whenever an event
type repeats ``formation_threshold`` times within the last ``mining_window``
episodes, a ``<event_type>_pattern`` concept is formed. Concepts that are
not used fade on the decay cadence and are forgotten below ``forget_floor``.
"""

from __future__ import annotations

import logging
from collections import Counter, OrderedDict
from itertools import combinations
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .base import Concept, Episode, SemanticEdge, clamp, edge_key

logger = logging.getLogger(__name__)

SEED_CONCEPTS = [
    {
        "name": "self",
        "definition": "The pet itself",
        "properties": {"hungry", "happy", "tired", "sick"},
        "relationships": [],
        "strength": 1.0,
    },
    {
        "name": "human",
        "definition": "The people who take care of the pet",
        "properties": {"talks", "feeds", "plays", "has_name"},
        "relationships": [],
        "strength": 0.8,
    },
    {
        "name": "food",
        "definition": "Something that takes hunger away",
        "properties": {"reduces_hunger", "makes_happy"},
        "relationships": [("human", "gives"), ("self", "eats")],
        "strength": 0.9,
    },
    {
        "name": "name",
        "definition": "A word that identifies a person",
        "properties": {"identifies_person", "unique_to_individual"},
        "relationships": [],
        "strength": 0.6,
    },
    {
        "name": "play",
        "definition": "Fun activity shared with a human",
        "properties": {"fun", "uses_energy", "increases_happiness"},
        "relationships": [],
        "strength": 0.7,
    },
]


class ConceptGraph:
    """Concept store with pattern mining, strengthening, decay and co-occurrence edges."""

    def __init__(self, clock, formation_threshold: int = 3, mining_window: int = 10,
                 decay_rate: float = 0.95, min_decay_age_ms: float = 300000.0,
                 forget_floor: float = 0.1, seed: bool = True):
        self.clock = clock
        self.formation_threshold = formation_threshold
        self.mining_window = mining_window
        self.decay_rate = decay_rate
        self.min_decay_age_ms = min_decay_age_ms
        self.forget_floor = forget_floor
        self.concepts: "OrderedDict[str, Concept]" = OrderedDict()
        self.edges: Dict[Tuple[str, str], SemanticEdge] = {}
        self.on_concept_formed: List[Callable[[Concept], None]] = []
        self._store = None
        if seed:
            self._seed()

    def _seed(self) -> None:
        now = self.clock.now()
        for seed in SEED_CONCEPTS:
            self.concepts[seed["name"]] = Concept(
                name=seed["name"],
                definition=seed["definition"],
                properties=set(seed["properties"]),
                relationships=list(seed["relationships"]),
                strength=seed["strength"],
                created_at=now,
                learned_from="seed",
            )

    def __contains__(self, name: str) -> bool:
        return name in self.concepts

    def __len__(self) -> int:
        return len(self.concepts)

    def names(self) -> List[str]:
        return list(self.concepts)

    def attach(self, store) -> None:
        """Learn from every episode ``store`` records and feed it concept terms."""
        self._store = store
        store.concept_source = self.concept_terms
        store.add_listener(self.learn_from_episode)

    def concept_terms(self) -> Iterable[Tuple[str, Iterable[str]]]:
        return [(name, sorted(concept.properties)) for name, concept in self.concepts.items()]

    # ──────────────────────────────────────────────────────────────
    # Learning
    # ──────────────────────────────────────────────────────────────

    def learn_from_episode(self, episode: Episode) -> List[Concept]:
        """Strengthen, mine recent episodes, update edges. Returns concepts formed."""
        for name in episode.related_concepts:
            self.strengthen_concept(name, 0.1)

        formed = []
        if self._store is not None:
            for pattern in self.identify_patterns(self._store.recent(self.mining_window)):
                concept = self.create_concept(pattern)
                if concept is not None:
                    formed.append(concept)

        self.update_edges(episode.related_concepts, episode.event_type)
        return formed

    def identify_patterns(self, episodes: List[Episode]) -> List[Dict[str, Any]]:
        """Group by event type; groups at the formation threshold become patterns."""
        groups: "OrderedDict[str, List[Episode]]" = OrderedDict()
        for episode in episodes:
            groups.setdefault(episode.event_type, []).append(episode)

        patterns = []
        for event_type, members in groups.items():
            if len(members) >= self.formation_threshold:
                patterns.append({
                    "type": "repeated_event",
                    "event_type": event_type,
                    "frequency": len(members),
                    "examples": [ep.episode_id for ep in members],
                    "common_elements": self.find_common_elements(members),
                })
        return patterns

    @staticmethod
    def find_common_elements(episodes: List[Episode]) -> Dict[str, Dict[str, int]]:
        contexts: Counter = Counter()
        participants: Counter = Counter()
        outcomes: Counter = Counter()
        for episode in episodes:
            state = episode.context.get("emotional_state")
            if state:
                contexts[state] += 1
            for person in episode.context.get("people_present") or []:
                participants[person] += 1
            outcome = episode.details.get("outcome")
            if outcome:
                outcomes[str(outcome)] += 1
        return {"contexts": dict(contexts), "participants": dict(participants), "outcomes": dict(outcomes)}

    @staticmethod
    def concept_name_for(pattern: Dict[str, Any]) -> str:
        return f"{pattern['event_type']}_pattern"

    def create_concept(self, pattern: Dict[str, Any]) -> Optional[Concept]:
        """Form a concept from a mined pattern; no-op if it already exists."""
        name = self.concept_name_for(pattern)
        if name in self.concepts:
            return None

        frequency = pattern["frequency"]
        properties = set()
        if frequency > 5:
            properties.add("frequent")
        properties.update(pattern["common_elements"].get("contexts", {}))
        properties.update(pattern["common_elements"].get("outcomes", {}))

        concept = Concept(
            name=name,
            definition=f"Pattern of {pattern['event_type']} events that happen frequently",
            properties=properties,
            strength=0.3,
            created_at=self.clock.now(),
            confidence=min(1.0, frequency / 10),
            learned_from=pattern["type"],
            examples=list(pattern["examples"]),
        )
        self.concepts[name] = concept
        logger.info("New concept learned: %s (from %d episodes)", name, frequency)
        for callback in list(self.on_concept_formed):
            callback(concept)
        return concept

    def add_concept(self, name: str, definition: str = "", properties: Iterable[str] = (),
                    strength: float = 0.5) -> Concept:
        """Create or return a concept by name."""
        concept = self.concepts.get(name)
        if concept is None:
            concept = Concept(name=name, definition=definition, properties=set(properties),
                              strength=clamp(strength), created_at=self.clock.now(), learned_from="explicit")
            self.concepts[name] = concept
        return concept

    def update_edges(self, concept_names: List[str], context: str) -> None:
        unique = list(OrderedDict.fromkeys(concept_names))
        for a, b in combinations(unique, 2):
            key = edge_key(a, b)
            edge = self.edges.get(key)
            if edge is None:
                edge = SemanticEdge(concepts=key)
                self.edges[key] = edge
            edge.strength = min(1.0, edge.strength + 0.1)
            edge.contexts.add(context)
            edge.count += 1

    # ──────────────────────────────────────────────────────────────
    # Access
    # ──────────────────────────────────────────────────────────────

    def get_concept(self, name: str) -> Optional[Concept]:
        """Look up a concept; using it strengthens it slightly."""
        concept = self.concepts.get(name)
        if concept is not None:
            concept.strength = clamp(concept.strength + 0.05)
        return concept

    def strengthen_concept(self, name: str, amount: float = 0.1) -> None:
        concept = self.concepts.get(name)
        if concept is not None:
            concept.strength = clamp(concept.strength + amount)

    def related_to(self, name: str) -> List[Tuple[str, float]]:
        neighbours = []
        for (a, b), edge in self.edges.items():
            if a == name:
                neighbours.append((b, edge.strength))
            elif b == name:
                neighbours.append((a, edge.strength))
        neighbours.sort(key=lambda item: item[1], reverse=True)
        return neighbours

    def strongest_concepts(self, limit: int = 5) -> List[Concept]:
        return sorted(self.concepts.values(), key=lambda c: c.strength, reverse=True)[:limit]

    def concepts_in_text(self, text: str) -> List[str]:
        lowered = text.lower()
        found = []
        for name, concept in self.concepts.items():
            if name in lowered or any(prop in lowered for prop in concept.properties):
                found.append(name)
        return found

    # ──────────────────────────────────────────────────────────────
    # Maintenance
    # ──────────────────────────────────────────────────────────────

    def decay(self) -> List[str]:
        """Fade old concepts and forget the weak ones. Returns forgotten names."""
        now = self.clock.now()
        forgotten = []
        for name, concept in list(self.concepts.items()):
            if now - concept.created_at > self.min_decay_age_ms:
                concept.strength *= self.decay_rate
            if concept.strength < self.forget_floor:
                del self.concepts[name]
                forgotten.append(name)
                logger.info("Forgot concept: %s", name)
        return forgotten

    def stats(self) -> Dict[str, Any]:
        return {
            "total_concepts": len(self.concepts),
            "learned_concepts": sum(1 for c in self.concepts.values() if c.learned_from == "repeated_event"),
            "edges": len(self.edges),
            "strongest": [(c.name, round(c.strength, 3)) for c in self.strongest_concepts()],
        }

    # ──────────────────────────────────────────────────────────────
    # Persistence
    # ──────────────────────────────────────────────────────────────

    def serialize(self) -> Dict[str, Any]:
        return {
            "concepts": [concept.to_dict() for concept in self.concepts.values()],
            "edges": [edge.to_dict() for edge in self.edges.values()],
        }

    def deserialize(self, data: Dict[str, Any]) -> None:
        data = data or {}
        if "concepts" in data:
            self.concepts = OrderedDict()
            for raw in data.get("concepts") or []:
                concept = Concept.from_dict(raw)
                if concept.name:
                    self.concepts[concept.name] = concept
        self.edges = {}
        for raw in data.get("edges") or []:
            edge = SemanticEdge.from_dict(raw)
            self.edges[edge.concepts] = edge
