import pytest

from petmind.personality import (
    AgentState,
    PersonalityProfile,
    StaticStateProvider,
    current_thought,
    derive_mood,
    map_context_to_emotion,
    read_state,
)


def test_communication_style_from_traits():
    profile = PersonalityProfile(extraversion=1.0, conscientiousness=0.0, neuroticism=0.5,
                                 agreeableness=0.0, playfulness=0.8, curiosity=1.0)

    style = profile.communication_style()

    assert style.verbosity == pytest.approx(1.0)
    assert style.formality == pytest.approx(0.1)
    assert style.emotiveness == pytest.approx(0.5)
    assert style.directness == pytest.approx(1.0)
    assert style.playfulness == pytest.approx(0.8)
    assert style.question_asking == pytest.approx(1.0)


def test_personality_from_dict_clamps_and_skips_garbage(caplog):
    profile = PersonalityProfile.from_dict({"extraversion": 3, "curiosity": "lots", "neuroticism": 0.2})

    assert profile.extraversion == 1.0
    assert profile.curiosity == 0.5
    assert profile.neuroticism == 0.2
    assert "curiosity" in caplog.text


def test_personality_from_non_dict_is_neutral():
    assert PersonalityProfile.from_dict("extravert") == PersonalityProfile.neutral()
    assert PersonalityProfile.from_dict(None) == PersonalityProfile.neutral()


def test_agent_state_from_partial_dict_uses_defaults():
    state = AgentState.from_dict({"hunger": "25", "mood": "happy", "trust_level": None,
                                  "personality_traits": {"extraversion": 0.9}})

    assert state.hunger == 25.0
    assert state.mood == "happy"
    assert state.trust_level == 50.0
    assert state.personality.extraversion == 0.9
    assert state.is_alive is True


@pytest.mark.parametrize("raw, expected", [
    ("false", False), ("0", False), (0, False), ("no", False),
    ("TRUE", True), ("1", True), (1, True), ("on", True),
])
def test_agent_state_reads_flags_from_strings_and_ints(raw, expected):
    assert AgentState.from_dict({"is_alive": raw}).is_alive is expected


def test_agent_state_unreadable_flag_keeps_default(caplog):
    state = AgentState.from_dict({"is_alive": "maybe"})

    assert state.is_alive is True
    assert "is_alive" in caplog.text


def test_agent_state_from_garbage_is_default():
    state = AgentState.from_dict(["not", "a", "state"])
    assert state == AgentState()


def test_agent_state_round_trip():
    state = AgentState(name="Pip", hunger=10, personality=PersonalityProfile(playfulness=0.9))
    assert AgentState.from_dict(state.to_dict()) == state


@pytest.mark.parametrize(
    "changes, mood",
    [
        ({"is_alive": False}, "dead"),
        ({"health": 10}, "sick"),
        ({"energy": 5}, "sleepy"),
        ({"hunger": 10}, "hungry"),
        ({"happiness": 20}, "sad"),
        ({"trust_level": 10}, "angry"),
        ({}, "happy"),
        ({"happiness": 50}, "neutral"),
    ],
)
def test_derive_mood(changes, mood):
    state = AgentState(**changes)
    assert derive_mood(state) == mood


def test_current_thought_prefers_hunger():
    thought, intensity = current_thought(AgentState(hunger=15, health=10), now=0)
    assert thought == "hungry"
    assert intensity == pytest.approx(0.5)


def test_current_thought_turns_lonely_when_ignored():
    state = AgentState(happiness=60, last_interaction=0)
    thought, intensity = current_thought(state, now=150000)
    assert thought == "lonely"
    assert intensity == pytest.approx(0.5)


def test_map_context_to_emotion_defaults_to_neutral():
    assert map_context_to_emotion("hungry") == "sad"
    assert map_context_to_emotion("bored") == "neutral"


def test_static_provider_updates_and_counts_interactions():
    provider = StaticStateProvider(name="Pip", hunger=40)
    provider.record_interaction(1234)

    state = read_state(provider)
    assert state.name == "Pip"
    assert state.hunger == 40
    assert state.total_interactions == 1
    assert state.last_interaction == 1234

    with pytest.raises(AttributeError):
        provider.update(wings=2)


def test_read_state_without_provider():
    assert read_state(None) == AgentState()
