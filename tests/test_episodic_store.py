import pytest

from petmind.episodic_store import EpisodicStore, RecallQuery


class TestImportance:
    def test_base_table(self):
        assert EpisodicStore.calculate_importance("person_introduced", {}) == 0.9
        assert EpisodicStore.calculate_importance("petted", {}) == 0.5
        assert EpisodicStore.calculate_importance("sneezed", {}) == 0.5

    def test_intensity_and_first_time_scale(self):
        assert EpisodicStore.calculate_importance("fed", {"emotional_intensity": 0.0}) == pytest.approx(0.3)
        assert EpisodicStore.calculate_importance("petted", {"is_first_time": True}) == pytest.approx(0.65)

    def test_importance_is_capped(self):
        assert EpisodicStore.calculate_importance(
            "person_introduced", {"emotional_intensity": 1.0, "is_first_time": True}) == 1.0


def test_record_fills_context_defaults(store, clock):
    episode_id = store.record_episode("fed", {"food": "apple"}, {"mood": "happy"})
    episode = store.get(episode_id)

    assert episode_id == "ep_1"
    assert episode.timestamp == clock.now()
    assert episode.context["creature_state"] == {}
    assert episode.context["people_present"] == []
    assert episode.context["emotional_state"] == "neutral"
    assert episode.context["location"] == "home"
    assert episode.context["mood"] == "happy"
    assert episode.related_concepts[:4] == ["food", "human", "care", "hunger"]


def test_concept_source_adds_matching_concepts(clock):
    store = EpisodicStore(clock, concept_source=lambda: [("ball", ["round"]), ("food", ["edible"])])
    episode_id = store.record_episode("played", {"toy": "a round thing"})

    concepts = store.get(episode_id).related_concepts
    assert concepts == ["play", "human", "happiness", "energy", "ball"]


def test_listeners_see_each_new_episode(store):
    seen = []
    store.add_listener(lambda episode: seen.append(episode.event_type))

    store.record_episode("fed")
    store.record_episode("petted")

    assert seen == ["fed", "petted"]


def test_recall_scores_and_floor(store, clock):
    store.record_episode("fed")
    clock.advance(60000)
    store.record_episode("petted")

    # Type match alone (0.4) passes the floor; timeframe alone (0.2) does not.
    fed = store.recall_episodes(event_type="fed")
    assert [ep.event_type for ep in fed] == ["fed"]
    assert store.recall_episodes(timeframe=1000) == []


def test_recall_orders_by_score(store, clock):
    store.record_episode("fed")
    clock.advance(60000)
    store.record_episode("played")
    store.record_episode("fed")

    results = store.recall_episodes(RecallQuery(event_type="fed", concepts=["human"], timeframe=30000))

    assert [ep.episode_id for ep in results] == ["ep_3", "ep_1", "ep_2"]


def test_recall_is_stable_for_unchanged_state(store, clock):
    for _ in range(4):
        store.record_episode("fed")
        clock.advance(1000)
    store.record_episode("petted")

    first = [ep.episode_id for ep in store.recall_episodes(event_type="fed", timeframe=30000)]
    second = [ep.episode_id for ep in store.recall_episodes(event_type="fed", timeframe=30000)]

    assert first == second == ["ep_1", "ep_2", "ep_3", "ep_4"]


def test_recall_counts_each_return(store):
    episode_id = store.record_episode("fed")
    store.recall_episodes(event_type="fed")
    store.recall_episodes(event_type="fed")
    assert store.get(episode_id).recall_count == 2


def test_recall_by_people_present(store):
    store.record_episode("petted", context={"people_present": ["person_ann"]})
    store.record_episode("petted", context={"people_present": ["person_bo"]})

    results = store.recall_episodes(event_type="petted", people_present=["person_ann"])
    assert [ep.context["people_present"] for ep in results] == [["person_ann"], ["person_bo"]]


class TestCapacity:
    def test_evicts_lowest_value_first(self, clock):
        store = EpisodicStore(clock, capacity=3)
        store.record_episode("person_introduced")   # 0.9
        store.record_episode("petted")              # 0.5
        store.record_episode("scolded")             # 0.8
        store.record_episode("fed")                 # 0.6

        assert len(store) == 3
        assert [ep.event_type for ep in store.episodes] == ["person_introduced", "scolded", "fed"]

    def test_ties_evict_oldest(self, clock):
        store = EpisodicStore(clock, capacity=2)
        for _ in range(3):
            store.record_episode("petted")
            clock.advance(10)

        assert [ep.episode_id for ep in store.episodes] == ["ep_2", "ep_3"]

    def test_recalled_episodes_survive(self, clock):
        store = EpisodicStore(clock, capacity=2)
        store.record_episode("fed")
        store.record_episode("played")
        store.recall_episodes(event_type="fed")
        store.record_episode("fed")

        assert [ep.episode_id for ep in store.episodes] == ["ep_1", "ep_3"]

    def test_capacity_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            EpisodicStore(clock, capacity=0)


def test_serialize_keeps_recent_window(clock):
    store = EpisodicStore(clock, capacity=100)
    for _ in range(60):
        store.record_episode("petted")
        clock.advance(1)

    data = store.serialize()
    restored = EpisodicStore(clock)
    restored.deserialize(data)

    assert len(restored) == 50
    assert restored.episodes[0].episode_id == "ep_11"
    assert restored.record_episode("fed") == "ep_61"


def test_deserialize_tolerates_missing_fields(store):
    store.deserialize({"episodes": [{"event_type": "fed"}]})
    assert len(store) == 1
    assert store.episodes[0].context == {}
    store.deserialize(None)
    assert len(store) == 0


def test_stats(store):
    store.record_episode("fed")
    store.record_episode("fed")
    stats = store.stats()
    assert stats["total_episodes"] == 2
    assert stats["event_types"] == {"fed": 2}


def test_payload_key_names_do_not_tag_concepts(clock):
    store = EpisodicStore(clock, concept_source=lambda: [("play", ["game"]), ("ball", ["round"])])

    scolded = store.get(store.record_episode("scolded", {"playfulness": 0.0, "gentleness": 0.1}))
    fetched = store.get(store.record_episode("scolded", {"toy": "ball", "tags": ["a game"]}))

    assert "play" not in scolded.related_concepts
    assert "ball" not in scolded.related_concepts
    assert fetched.related_concepts[-2:] == ["play", "ball"]
