from __future__ import annotations

import pytest

from petmind.personality import StaticStateProvider
from petmind_cli import ACTIONS, apply_action, apply_setting, build_parser, parse_command


def test_parse_command():
    assert parse_command("hello there") is None
    assert parse_command(":feed") == ("feed", "")
    assert parse_command("  :SAVE  pets/pip.json ") == ("save", "pets/pip.json")


def test_every_action_builds_an_interaction():
    provider = StaticStateProvider(name="Pip")
    for action in ACTIONS:
        interaction = apply_action(provider, action)
        assert interaction.type == action


def test_feeding_changes_needs_and_mood():
    provider = StaticStateProvider(name="Pip", hunger=10.0, happiness=50.0)

    interaction = apply_action(provider, "feed")

    state = provider.snapshot()
    assert state.hunger == 40.0
    assert state.happiness == 55.0
    assert interaction.gentleness == 0.8


def test_needs_are_clamped():
    provider = StaticStateProvider(name="Pip", trust_level=5.0)

    apply_action(provider, "scold")

    assert provider.snapshot().trust_level == 0.0


def test_apply_setting():
    provider = StaticStateProvider(name="Pip")

    message = apply_setting(provider, "hunger=12")

    assert provider.snapshot().hunger == 12.0
    assert message == "hunger = 12.0"


@pytest.mark.parametrize("args", ["name=Rex", "wings=2", "hunger=lots"])
def test_apply_setting_rejects_bad_input(args):
    with pytest.raises(ValueError):
        apply_setting(StaticStateProvider(name="Pip"), args)


def test_build_parser_defaults():
    args = build_parser().parse_args([])

    assert args.name == "Pip"
    assert args.seed is None
    assert args.config is None


def test_build_parser_options(tmp_path):
    args = build_parser().parse_args(["--seed", "5", "--state", str(tmp_path / "pip.json"), "--name", "Rex"])

    assert args.seed == 5
    assert args.state == tmp_path / "pip.json"
    assert args.name == "Rex"
