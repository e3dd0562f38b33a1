import numpy as np
import pytest

from petmind.base import GrammarRule, Utterance, VocabularyEntry
from petmind.language_model import STAGE_GATES, STRATEGIES, LanguageModel


def add_words(language, count, prefix="word"):
    for i in range(count):
        token = f"{prefix}{i}"
        language.vocabulary[token] = VocabularyEntry(token=token, strength=0.5,
                                                     acquisition_date=language.clock.now())


def test_starts_with_proto_vocabulary(language):
    assert language.stage == 1
    assert language.stage_name == "Proto-Language"
    assert 1 <= len(language.vocabulary) <= 15
    assert all(entry.origin == "proto" for entry in language.vocabulary.values())
    assert all(entry.strength == 0.3 for entry in language.vocabulary.values())


class TestLearning:
    def test_unknown_words_become_vocabulary(self, language):
        events = []
        language.on_learning_event.append(lambda kind, details: events.append((kind, details.get("word"))))

        analysis = language.process_input("you clever biscuit, wonderful sausage")

        assert analysis.intent == "praise"
        assert "biscuit" in language.vocabulary
        entry = language.vocabulary["sausage"]
        assert entry.strength == 0.1
        assert entry.has_meaning("positive_evaluation")
        assert ("learned_word", "biscuit") in events

    def test_learn_false_only_analyses(self, language):
        before = len(language.vocabulary)
        language.process_input("biscuit please", learn=False)
        assert len(language.vocabulary) == before
        assert language.grammar_rules == {}

    def test_grammar_rules_are_capped(self, language):
        for _ in range(12):
            language.process_input("Can you sit?")

        rule = language.grammar_rules["interrogative"]
        assert len(rule.examples) == 10
        assert rule.confidence == pytest.approx(0.95)

    def test_pragmatic_rules_keyed_by_intent_and_formality(self, language):
        for _ in range(8):
            language.process_input("hey buddy")

        rule = language.pragmatic_rules["greeting_informal"]
        assert len(rule.examples) == 5
        assert rule.confidence <= 0.95

    def test_concept_formation_gives_words_meaning(self, language, graph):
        language.vocabulary["biscuit"] = VocabularyEntry(token="biscuit")
        graph.create_concept({"type": "repeated_event", "event_type": "biscuit", "frequency": 3,
                              "examples": [], "common_elements": {}})

        assert language.vocabulary["biscuit"].has_meaning("biscuit_pattern")


class TestStages:
    def test_first_words_gate(self, language):
        add_words(language, 5)
        language.comprehension = 0.3
        assert not language.check_stage_progression()

        language.comprehension = 0.31
        assert language.check_stage_progression()
        assert language.stage == 2

    def test_advances_one_stage_per_check(self, language):
        evolved = []
        milestones = []
        language.on_stage_evolved.append(lambda old, new: evolved.append((old, new)))
        language.on_learning_event.append(
            lambda kind, details: milestones.append(details["new_stage"]) if kind == "language_milestone" else None)
        add_words(language, 60)
        for pattern in ["a", "b", "c", "d", "e"]:
            language.grammar_rules[pattern] = GrammarRule(pattern)
        language.comprehension = 0.7
        language.social_awareness = 0.6
        language.production = 0.7

        assert language.check_stage_progression()
        assert language.stage == 2
        while language.check_stage_progression():
            pass

        assert language.stage == 5
        assert language.stage_name == "Advanced Communication"
        assert evolved == [(1, 2), (2, 3), (3, 4), (4, 5)]
        assert milestones == [2, 3, 4, 5]

    def test_stage_unlocks_raise_abilities(self, language):
        add_words(language, 20)
        language.grammar_rules.update({p: GrammarRule(p) for p in ["a", "b", "c"]})
        language.comprehension = 0.41
        language.production = 0.1

        language.check_stage_progression()
        language.check_stage_progression()

        assert language.stage == 3
        assert language.production == pytest.approx(0.4)

    def test_later_stages_need_more_comprehension(self, language):
        add_words(language, 20)
        language.grammar_rules.update({p: GrammarRule(p) for p in ["a", "b", "c"]})
        language.comprehension = 0.35

        assert language.check_stage_progression()
        assert not language.check_stage_progression()
        assert language.stage == 2

        language.comprehension = 0.45
        assert language.check_stage_progression()
        assert language.stage == 3

    def test_gates_get_stricter(self):
        for stage in (3, 4, 5):
            previous, gate = STAGE_GATES[stage - 1], STAGE_GATES[stage]
            for bar, value in previous.items():
                assert gate[bar] > value, (stage, bar)

    def test_stage_never_regresses(self, language):
        add_words(language, 5)
        language.comprehension = 0.5
        language.check_stage_progression()

        language.vocabulary.clear()
        language.comprehension = 0.0
        language.update()

        assert language.stage == 2


class TestMaintenance:
    def test_established_word_survives_idle_age(self, language, clock):
        language.vocabulary["hungry"] = VocabularyEntry(token="hungry", usage_count=6, success_rate=0.8,
                                                        strength=0.15, acquisition_date=clock.now())
        for _ in range(30):
            clock.advance(30000)
            language.perform_maintenance()

        assert "hungry" in language.vocabulary
        assert language.vocabulary["hungry"].strength == pytest.approx(0.45)

    def test_old_weak_words_are_forgotten(self, language, clock):
        language.vocabulary["blah"] = VocabularyEntry(token="blah", strength=0.1, acquisition_date=clock.now())
        clock.advance(600001)

        assert "blah" in language.perform_maintenance()
        assert "blah" not in language.vocabulary

    def test_words_decay_after_decay_age(self, language, clock):
        language.vocabulary["ball"] = VocabularyEntry(token="ball", strength=0.5, acquisition_date=clock.now())
        clock.advance(300001)
        language.perform_maintenance()
        assert language.vocabulary["ball"].strength == pytest.approx(0.495)


class TestStrategies:
    def test_selection_is_reproducible_with_seed(self, graph, clock):
        first = LanguageModel(graph, clock, np.random.default_rng(5))
        second = LanguageModel(graph, clock, np.random.default_rng(5))

        picks_a = [first.select_response_strategy("greeting_response") for _ in range(20)]
        picks_b = [second.select_response_strategy("greeting_response") for _ in range(20)]

        assert picks_a == picks_b
        assert set(picks_a) <= set(STRATEGIES["greeting_response"])

    def test_unknown_goal_falls_back_to_general(self, language):
        assert language.select_response_strategy("juggle") in STRATEGIES["general_response"]

    def test_extraversion_favours_enthusiasm(self, language):
        language.personality = language.current_personality()
        language.personality.extraversion = 0.9
        state = language.agent_state()
        assert language.strategy_weight("enthusiastic_greeting", state) == pytest.approx(0.63)
        assert language.strategy_weight("shy_greeting", state) == pytest.approx(0.33)

    def test_intense_thoughts_prefer_requests(self, language):
        assert language.select_expression_strategy("hungry", 0.9) == "food_request"
        assert language.select_expression_strategy("happy", 0.9) == "joy_expression"

    def test_spontaneous_probability_is_capped(self, language, state_provider):
        state = state_provider.update(mood="lonely", frustration_level=80, aggression_level=80)
        assert language.spontaneous_speech_probability(state, 100000, 10000) == 0.8
        assert language.spontaneous_speech_probability(state, 0, 10000) == pytest.approx(1.095 * 0.3)


class TestSpeechFeedback:
    def test_positive_reaction_credits_words_and_strategy(self, language):
        language.vocabulary["biscuit"] = VocabularyEntry(token="biscuit", strength=0.3)
        production = language.production
        attempt = language.record_speech_attempt(
            Utterance("biscuit!", strategy="direct_request", goal_type="express_hunger"))

        credited = language.record_user_reaction("feed")

        assert credited is attempt
        assert attempt.success is True
        entry = language.vocabulary["biscuit"]
        assert entry.usage_count == 1
        assert entry.success_rate == 1.0
        assert entry.strength == pytest.approx(0.4)
        assert language.strategy_success["direct_request"] == {"successes": 1, "attempts": 1}
        assert language.production == pytest.approx(production + 0.02)

    def test_negative_reaction_weakens_words(self, language):
        language.vocabulary["biscuit"] = VocabularyEntry(token="biscuit", strength=0.3)
        language.record_speech_attempt(Utterance("biscuit"))

        attempt = language.record_user_reaction("scold")

        assert attempt.success is False
        assert language.vocabulary["biscuit"].strength == pytest.approx(0.25)

    def test_reaction_outside_window_credits_nothing(self, language, clock):
        language.record_speech_attempt(Utterance("biscuit"))
        clock.advance(16000)
        assert language.record_user_reaction("pet") is None

    def test_each_attempt_is_evaluated_once(self, language):
        language.record_speech_attempt(Utterance("biscuit"))
        assert language.record_user_reaction("pet") is not None
        assert language.record_user_reaction("pet") is None

    def test_expired_attempt_counts_as_failure(self, language):
        language.vocabulary["biscuit"] = VocabularyEntry(token="biscuit", strength=0.5)
        attempt = language.record_speech_attempt(Utterance("biscuit", strategy="subtle_hint"))

        language.expire_speech_attempt(attempt.attempt_id)

        assert attempt.success is False
        assert language.vocabulary["biscuit"].strength == pytest.approx(0.45)
        assert language.strategy_success["subtle_hint"] == {"successes": 0, "attempts": 1}

    def test_attempt_history_is_bounded(self, language):
        for _ in range(40):
            language.record_speech_attempt(Utterance("mm"))
        assert len(language.speech_attempts) == 30
        assert language.speech_attempts[-1].attempt_id == "say_40"


def test_invented_words_join_vocabulary(language):
    entry = language.adopt_invented_word("hungry")

    assert entry.origin in ("invented", "proto")
    assert entry.has_meaning("hungry")
    assert entry.token in language.find_words_for_concept("hungry")


def test_confirmed_rules_enable_enhancements(graph, clock, rng, store, engine):
    language = LanguageModel(graph, clock, rng, hypothesis_engine=engine)
    for _ in range(4):
        store.record_episode("person_introduced", {"person_registered": True, "name_recognized": True})
    engine.form_hypothesis({"type": "door_slam"})

    engine.process_hypotheses()

    assert language.enhancements == {"name_recognition"}


def test_serialize_round_trip(language, graph, clock, rng):
    language.process_input("good biscuit")
    language.comprehension = 0.5
    language.check_stage_progression()

    restored = LanguageModel(graph, clock, rng, proto_vocabulary=False)
    restored.deserialize(language.serialize())

    assert list(restored.vocabulary) == list(language.vocabulary)
    assert restored.stage == language.stage
    assert restored.grammar_rules.keys() == language.grammar_rules.keys()
    assert restored.pragmatic_rules.keys() == language.pragmatic_rules.keys()


def test_deserialize_partial_data(language):
    words = list(language.vocabulary)
    language.deserialize({"stage": 3})
    assert language.stage == 3
    assert list(language.vocabulary) == words
