from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import numpy as np
import pytest

from petmind.clock import LogicalClock
from petmind.concept_graph import ConceptGraph
from petmind.episodic_store import EpisodicStore
from petmind.hypothesis_engine import HypothesisEngine
from petmind.identity import PatternIdentityResolver
from petmind.language_model import LanguageModel
from petmind.personality import StaticStateProvider
from petmind.scheduler import Scheduler
from petmind.session import CompanionMind, MindConfig


@pytest.fixture
def clock():
    return LogicalClock(start=1_000_000.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def store(clock):
    return EpisodicStore(clock, capacity=100)


@pytest.fixture
def graph(clock, store):
    concept_graph = ConceptGraph(clock)
    concept_graph.attach(store)
    return concept_graph


@pytest.fixture
def engine(store, clock, rng):
    return HypothesisEngine(store, clock, rng)


@pytest.fixture
def state_provider():
    return StaticStateProvider(name="Pip")


@pytest.fixture
def identity(clock):
    return PatternIdentityResolver(clock)


@pytest.fixture
def language(graph, clock, rng, state_provider, identity):
    return LanguageModel(graph, clock, rng, state_provider=state_provider, identity_resolver=identity)


@pytest.fixture
def mind(clock, state_provider):
    """CompanionMind on a logical clock with spontaneous speech disabled."""
    config = MindConfig(seed=7, enable_spontaneous_speech=False)
    return CompanionMind(state_provider, config=config, clock=clock, scheduler=Scheduler(clock))
