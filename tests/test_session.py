from __future__ import annotations

import json

import pytest

from petmind.base import Interaction
from petmind.personality import StaticStateProvider
from petmind.scheduler import Scheduler
from petmind.session import SNAPSHOT_VERSION, CompanionMind, MindConfig


@pytest.fixture
def heard(mind, clock, state_provider):
    """Collected utterances; the pet has just been looked after so it is not lonely."""
    state_provider.update(last_interaction=clock.now())
    utterances = []
    mind.on_utterance.append(utterances.append)
    return utterances


def make_mind(clock, seed: int = 8) -> CompanionMind:
    config = MindConfig(seed=seed, enable_spontaneous_speech=False)
    return CompanionMind(StaticStateProvider(name="Pip"), config=config, clock=clock, scheduler=Scheduler(clock))


class TestConversation:
    def test_answer_arrives_after_thinking_delay(self, mind, clock, heard) -> None:
        analysis = mind.hear("hello pip!")

        assert analysis.intent == "greeting"
        assert heard == []
        due = mind.pending_response_due()
        assert clock.now() + 500 <= due <= clock.now() + 2500

        mind.advance(2500)

        assert len(heard) == 1
        assert heard[0].goal_type == "greeting_response"
        assert mind.last_utterance is heard[0]
        assert mind.pending_response_due() is None

    def test_new_input_replaces_pending_answer(self, mind, heard) -> None:
        mind.hear("hello pip!")
        mind.hear("what is your name?")

        mind.advance(2500)

        assert len(heard) == 1
        assert heard[0].goal_type == "answer_question"

    def test_inactive_pet_does_not_answer(self, mind, heard, state_provider) -> None:
        mind.hear("hello pip!")
        state_provider.update(is_alive=False)

        mind.advance(5000)

        assert heard == []

    def test_hearing_is_remembered(self, mind) -> None:
        mind.hear("blorp blorp!")

        episode = mind.memory.recall_episodes(event_type="language_interaction")[0]
        assert episode.details["text"] == "blorp blorp!"
        assert episode.details["has_repetition"] is True
        assert any(h.kind == "new_word_context" for h in mind.hypotheses.hypotheses)
        assert "blorp" in mind.language.vocabulary

    def test_introduction_is_remembered(self, mind) -> None:
        mind.hear("my name is Alice")

        assert mind.identity.current_person == "person_alice"
        episode = mind.memory.recall_episodes(event_type="person_introduced")[0]
        assert episode.details["person"] == "Alice"
        assert episode.details["is_first_time"] is True

    def test_caller_context_is_kept(self, mind) -> None:
        mind.hear("good boy", {"user_emotion": "happy", "user_response": "positive"})

        episode = mind.memory.recall_episodes(event_type="language_interaction")[0]
        assert episode.context["user_emotion"] == "happy"
        assert episode.context["user_response"] == "positive"


class TestInteractions:
    def test_interaction_is_remembered(self, mind, state_provider) -> None:
        episode_id = mind.handle_interaction(Interaction("feed", gentleness=0.8, intensity=0.6))

        episode = mind.memory.get(episode_id)
        assert episode.event_type == "fed"
        assert episode.details["gentleness"] == 0.8
        assert episode.details["emotional_intensity"] == 0.6
        assert state_provider.snapshot().total_interactions == 1

    def test_interaction_fields_are_not_concepts(self, mind) -> None:
        scolded = mind.memory.get(mind.handle_interaction(Interaction("scold", gentleness=0.1, playfulness=0.0)))
        mind.handle_interaction(Interaction("feed", gentleness=0.8))

        assert "play" not in scolded.related_concepts
        assert ("food", "play") not in mind.concepts.edges

    def test_reaction_credits_last_speech(self, mind) -> None:
        mind.express_thought("happy", 0.5)
        attempt = mind.language.speech_attempts[-1]

        mind.handle_interaction(Interaction("praise"))

        assert attempt.success is True
        assert attempt.reaction == "praise"

    def test_scolding_blames_last_speech(self, mind) -> None:
        mind.express_thought("happy", 0.5)
        attempt = mind.language.speech_attempts[-1]

        mind.handle_interaction(Interaction("scold", gentleness=0.1))

        assert attempt.success is False

    def test_unanswered_speech_expires(self, mind, heard) -> None:
        mind.express_thought("happy", 0.5)
        attempt = mind.language.speech_attempts[-1]

        mind.advance(mind.config.reaction_window_ms)

        assert attempt.success is False
        assert attempt.reaction is None

    def test_reaction_updates_relationship(self, mind) -> None:
        mind.hear("my name is Alice")
        mind.express_thought("happy", 0.5)

        mind.react("pet")

        assert mind.identity.relationships["person_alice"].interactions == 1


class TestTicks:
    def test_cognition_runs_on_schedule(self, mind, heard, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(mind.hypotheses, "process_hypotheses", lambda: calls.append(1))

        mind.advance(10000)

        assert len(calls) == 5

    def test_ticks_skip_while_inactive(self, mind, heard, state_provider, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(mind.hypotheses, "process_hypotheses", lambda: calls.append(1))
        state_provider.update(is_alive=False)

        mind.advance(10000)

        assert calls == []

    def test_stop_cancels_ticks(self, mind, heard, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(mind.hypotheses, "process_hypotheses", lambda: calls.append(1))

        mind.stop()
        mind.advance(10000)

        assert calls == []

    def test_needs_become_speech(self, mind, heard, state_provider) -> None:
        state_provider.update(hunger=10)

        mind.advance(33000)

        assert heard
        assert heard[0].goal_type == "express_hunger"

    def test_content_pet_stays_quiet(self, mind, heard) -> None:
        mind.advance(60000)
        assert heard == []


    def test_goals_are_used_up_during_cooldown(self, mind, heard, clock) -> None:
        mind.express_thought("happy", 0.5)
        mind.planner.add_goal("greeting_response", 0.8)

        mind.advance(3000)

        assert mind.planner.goals == []
        assert len(heard) == 1

    def test_hungry_pet_stays_quiet_during_cooldown(self, mind, heard, state_provider) -> None:
        state_provider.update(hunger=10)
        mind.express_thought("happy", 0.5)

        mind.advance(9000)

        assert len(heard) == 1
        assert mind.planner.goals == []


class DictStateProvider:
    """Hands the mind plain dictionaries, as an external need system might."""

    def __init__(self, **state):
        self.state = state

    def snapshot(self):
        return dict(self.state)


def test_dead_pet_reported_as_text_stays_silent(clock) -> None:
    provider = DictStateProvider(name="Pip", is_alive="false", last_interaction=clock.now())
    mind = CompanionMind(provider, config=MindConfig(seed=7, enable_spontaneous_speech=False),
                         clock=clock, scheduler=Scheduler(clock))
    heard = []
    mind.on_utterance.append(heard.append)

    mind.hear("hello pip!")
    mind.advance(5000)

    assert not mind.is_active()
    assert heard == []


class TestPersistence:
    def test_snapshot_restores_into_new_mind(self, mind, clock) -> None:
        mind.hear("hello biscuit")
        mind.hear("my name is Alice")
        mind.handle_interaction(Interaction("feed"))
        snapshot = json.loads(json.dumps(mind.serialize()))

        restored = make_mind(clock)
        restored.deserialize(snapshot)

        assert snapshot["version"] == SNAPSHOT_VERSION
        assert snapshot["config"]["seed"] == 7
        assert set(restored.language.vocabulary) == set(mind.language.vocabulary)
        assert len(restored.memory) == len(mind.memory)
        assert restored.stats()["concepts"]["total_concepts"] == mind.stats()["concepts"]["total_concepts"]
        assert "person_alice" in restored.identity.people

    def test_missing_sections_keep_current_state(self, mind, clock) -> None:
        mind.hear("hello biscuit")
        snapshot = mind.serialize()
        restored = make_mind(clock)
        episodes_before = len(restored.memory)

        restored.deserialize({"language": snapshot["language"]})

        assert "biscuit" in restored.language.vocabulary
        assert len(restored.memory) == episodes_before

    def test_save_and_load(self, mind, clock, tmp_path) -> None:
        mind.hear("hello biscuit")
        path = mind.save(tmp_path / "pets" / "pip.json")

        restored = make_mind(clock)
        restored.load(path)

        assert path.exists()
        assert "biscuit" in restored.language.vocabulary

    def test_load_missing_file(self, mind, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            mind.load(tmp_path / "missing.json")
