"""
Identity resolution: who is talking to the pet.

The language model only needs ``resolve(text)`` returning a
``PersonReference`` or ``None``. ``PatternIdentityResolver`` is the bundled
implementation: it spots self-introductions, keeps a registry of people it
has met and tracks a small relationship record per person.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .base import clamp

logger = logging.getLogger(__name__)


@dataclass
class PersonReference:
    person_id: str
    name: str
    relationship: Optional[str] = None
    is_new: bool = False


@dataclass
class Relationship:
    trust: float = 0.5
    attachment: float = 0.1
    interactions: int = 0
    status: str = "acquaintance"

    def to_dict(self) -> Dict[str, Any]:
        return {"trust": self.trust, "attachment": self.attachment,
                "interactions": self.interactions, "status": self.status}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relationship":
        return cls(
            trust=float(data.get("trust", 0.5)),
            attachment=float(data.get("attachment", 0.1)),
            interactions=int(data.get("interactions", 0)),
            status=str(data.get("status", "acquaintance")),
        )


@dataclass
class PersonProfile:
    person_id: str
    name: str
    relationship: Optional[str] = None
    first_met: float = 0.0
    contexts: List[str] = field(default_factory=list)


class PatternIdentityResolver:
    """Regex-based introduction detection with an in-memory people registry."""

    NAME_PATTERNS = [
        r"(?:my name is|i'm|i am|call me)\s+([a-zA-Z]+)",
        r"(?:this is|meet|introduce)\s+([a-zA-Z]+)",
        r"^([a-zA-Z]+)\s+here\b",
    ]

    RELATIONSHIP_PATTERN = r"my\s+(friend|mom|dad|sister|brother|colleague|teacher)"

    # "I'm hungry" is a statement, not an introduction.
    NOT_NAMES = {
        "so", "very", "not", "just", "here", "back", "home", "fine", "ok", "okay",
        "good", "great", "sad", "happy", "hungry", "tired", "sorry", "sure",
        "going", "leaving", "busy", "done", "your", "the", "a", "an",
    }

    def __init__(self, clock=None):
        self.clock = clock
        self.people: Dict[str, PersonProfile] = {}
        self.relationships: Dict[str, Relationship] = {}
        self.current_person: Optional[str] = None
        self._name_patterns = [re.compile(p, re.IGNORECASE) for p in self.NAME_PATTERNS]
        self._relationship_pattern = re.compile(self.RELATIONSHIP_PATTERN, re.IGNORECASE)

    @staticmethod
    def person_id_for(name: str) -> str:
        return f"person_{name.lower()}"

    def extract_name(self, text: str) -> Optional[str]:
        for pattern in self._name_patterns:
            match = pattern.search(text)
            if match and match.group(1).lower() not in self.NOT_NAMES:
                raw = match.group(1)
                return raw[0].upper() + raw[1:].lower()
        return None

    def extract_relationship(self, text: str) -> Optional[str]:
        match = self._relationship_pattern.search(text)
        return match.group(1).lower() if match else None

    def resolve(self, text: str) -> Optional[PersonReference]:
        """Return the person introduced in ``text``, registering newcomers."""
        name = self.extract_name(text)
        if name is None:
            return None
        relationship = self.extract_relationship(text)
        person_id = self.person_id_for(name)
        is_new = person_id not in self.people
        if is_new:
            now = self.clock.now() if self.clock is not None else 0.0
            self.people[person_id] = PersonProfile(person_id, name, relationship, first_met=now)
            self.relationships[person_id] = Relationship()
            logger.info("Met a new person: %s", name)
        elif relationship:
            self.people[person_id].relationship = relationship
        self.current_person = person_id
        return PersonReference(person_id, name, relationship or self.people[person_id].relationship, is_new)

    def update_relationship(self, person_id: str, positive: bool) -> None:
        rel = self.relationships.get(person_id)
        if rel is None:
            return
        rel.interactions += 1
        delta = 0.05 if positive else -0.05
        rel.trust = clamp(rel.trust + delta)
        rel.attachment = clamp(rel.attachment + (0.02 if positive else 0.0))
        if rel.trust > 0.8 and rel.interactions > 20:
            rel.status = "close_friend"
        elif rel.trust > 0.6 and rel.interactions > 10:
            rel.status = "friend"
        elif rel.trust < 0.3:
            rel.status = "wary"

    def relationship_summary(self, person_id: str) -> Optional[Dict[str, Any]]:
        profile = self.people.get(person_id)
        if profile is None:
            return None
        rel = self.relationships.get(person_id, Relationship())
        return {
            "name": profile.name,
            "relationship": profile.relationship,
            "trust": rel.trust,
            "attachment": rel.attachment,
            "interactions": rel.interactions,
            "status": rel.status,
        }

    def serialize(self) -> Dict[str, Any]:
        return {
            "people": {
                pid: {"name": p.name, "relationship": p.relationship,
                      "first_met": p.first_met, "contexts": list(p.contexts)}
                for pid, p in self.people.items()
            },
            "relationships": {pid: rel.to_dict() for pid, rel in self.relationships.items()},
            "current_person": self.current_person,
        }

    def deserialize(self, data: Dict[str, Any]) -> None:
        data = data or {}
        self.people = {}
        for pid, raw in (data.get("people") or {}).items():
            self.people[pid] = PersonProfile(
                person_id=pid,
                name=str(raw.get("name", pid)),
                relationship=raw.get("relationship"),
                first_met=float(raw.get("first_met", 0.0)),
                contexts=list(raw.get("contexts") or []),
            )
        self.relationships = {
            pid: Relationship.from_dict(raw) for pid, raw in (data.get("relationships") or {}).items()
        }
        self.current_person = data.get("current_person")
