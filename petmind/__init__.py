"""petmind - memory, belief and language engine for a virtual pet."""

from .base import Episode, Concept, Hypothesis, HypothesisStatus, Interaction, Utterance, VocabularyEntry
from .clock import LogicalClock, SystemClock
from .scheduler import Scheduler
from .personality import AgentState, PersonalityProfile, StaticStateProvider
from .identity import PatternIdentityResolver
from .episodic_store import EpisodicStore, RecallQuery
from .concept_graph import ConceptGraph
from .hypothesis_engine import HypothesisEngine
from .input_analysis import Analysis, InputAnalyzer
from .language_model import LanguageModel
from .response_planner import ResponsePlanner
from .session import CompanionMind, MindConfig
from .config_utils import load_config, load_labeled_config

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Records
    "Episode",
    "Concept",
    "Hypothesis",
    "HypothesisStatus",
    "Interaction",
    "Utterance",
    "VocabularyEntry",
    # Time
    "LogicalClock",
    "SystemClock",
    "Scheduler",
    # Agent
    "AgentState",
    "PersonalityProfile",
    "StaticStateProvider",
    "PatternIdentityResolver",
    # Components
    "EpisodicStore",
    "RecallQuery",
    "ConceptGraph",
    "HypothesisEngine",
    "Analysis",
    "InputAnalyzer",
    "LanguageModel",
    "ResponsePlanner",
    # Orchestration
    "CompanionMind",
    "MindConfig",
    "load_config",
    "load_labeled_config",
]
