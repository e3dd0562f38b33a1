from __future__ import annotations

import json

import pytest

from petmind.config_utils import apply_overrides, load_config, load_labeled_config
from petmind.session import MindConfig


def write_config(tmp_path, payload):
    config = tmp_path / "config.json"
    config.write_text(json.dumps(payload), encoding="utf-8")
    return config


def test_load_config_coerces_field_types(tmp_path):
    config = write_config(tmp_path, {"overrides": {
        "episode_capacity": "50",
        "concept_decay_rate": "0.9",
        "enable_spontaneous_speech": "off",
        "seed": "42",
    }})

    loaded = load_config(config)

    assert loaded.episode_capacity == 50
    assert loaded.concept_decay_rate == pytest.approx(0.9)
    assert loaded.enable_spontaneous_speech is False
    assert loaded.seed == 42
    assert loaded.cognition_interval_ms == MindConfig().cognition_interval_ms


def test_load_labeled_config(tmp_path):
    config = write_config(tmp_path, {"label": "quiet", "overrides": {"enable_spontaneous_speech": False}})

    label, loaded = load_labeled_config(config)

    assert label == "quiet"
    assert loaded.enable_spontaneous_speech is False


def test_label_defaults_to_file_stem(tmp_path):
    config = write_config(tmp_path, {"overrides": {}})

    label, loaded = load_labeled_config(config)

    assert label == "config"
    assert loaded == MindConfig()


def test_apply_overrides_keeps_base():
    base = MindConfig(seed=3)

    updated = apply_overrides({"thinking_delay_max_ms": 1000}, base)

    assert updated.seed == 3
    assert updated.thinking_delay_max_ms == 1000.0
    assert base.thinking_delay_max_ms == 2500.0


def test_unknown_key_is_rejected():
    with pytest.raises(ValueError, match="telepathy"):
        apply_overrides({"telepathy": True})


def test_bad_value_is_rejected():
    with pytest.raises(ValueError):
        apply_overrides({"episode_capacity": "lots"})
    with pytest.raises(ValueError):
        apply_overrides({"enable_spontaneous_speech": "maybe"})


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


def test_load_config_missing_section(tmp_path):
    config = write_config(tmp_path, {"label": "demo"})

    with pytest.raises(ValueError):
        load_config(config)
