"""
Interactive shell for talking to a petmind pet.

Free text is said to the pet; lines starting with ':' are caregiver actions
or shell commands. The pet answers after a short thinking delay and may
also speak up on its own between inputs.
"""

import argparse
import logging
import time
from pathlib import Path
from typing import Optional, Tuple

from petmind.base import Interaction
from petmind.clock import SystemClock
from petmind.config_utils import load_labeled_config
from petmind.personality import StaticStateProvider, derive_mood
from petmind.session import CompanionMind, MindConfig

# command -> (gentleness, playfulness, intensity, need changes)
ACTIONS = {
    "feed": (0.8, 0.1, 0.5, {"hunger": 30, "happiness": 5}),
    "pet": (0.9, 0.2, 0.3, {"happiness": 10, "trust_level": 5}),
    "play": (0.6, 0.9, 0.7, {"happiness": 15, "energy": -10}),
    "scold": (0.1, 0.0, 0.9, {"happiness": -10, "trust_level": -10}),
    "praise": (0.8, 0.3, 0.5, {"happiness": 10, "trust_level": 3}),
    "ignore": (0.5, 0.0, 0.1, {"happiness": -5}),
}


def parse_command(line: str) -> Optional[Tuple[str, str]]:
    """Split ``:command args`` into (command, args); ``None`` for plain speech."""
    line = line.strip()
    if not line.startswith(":"):
        return None
    command, _, args = line[1:].partition(" ")
    return command.strip().lower(), args.strip()


def apply_action(provider: StaticStateProvider, action: str) -> Interaction:
    gentleness, playfulness, intensity, changes = ACTIONS[action]
    state = provider.snapshot()
    for key, delta in changes.items():
        setattr(state, key, max(0.0, min(100.0, getattr(state, key) + delta)))
    state.mood = derive_mood(state)
    return Interaction(action, gentleness=gentleness, playfulness=playfulness, intensity=intensity)


def apply_setting(provider: StaticStateProvider, args: str) -> str:
    """Handle ``:set field=value`` for numeric need fields."""
    key, _, raw = args.partition("=")
    key = key.strip()
    state = provider.snapshot()
    if not hasattr(state, key) or not isinstance(getattr(state, key), (int, float)):
        raise ValueError(f"Cannot set '{key}'")
    provider.update(**{key: float(raw)})
    state.mood = derive_mood(state)
    return f"{key} = {getattr(state, key)}"


def print_stats(mind: CompanionMind) -> None:
    stats = mind.stats()
    language = stats["language"]
    print(f"\n📊 Stage {language['stage']}: {language['stage_name']}")
    print(f"   Vocabulary: {language['vocabulary_size']} words")
    print(f"   Grammar rules: {language['grammar_rules']}  Pragmatic rules: {language['pragmatic_rules']}")
    print(f"   Comprehension {language['comprehension']}  Production {language['production']}")
    if language["enhancements"]:
        print(f"   Enhancements: {', '.join(language['enhancements'])}")
    print(f"\n🧠 Episodes: {stats['memory']['total_episodes']}  Concepts: {stats['concepts']['total_concepts']}")
    for name, strength in stats["concepts"]["strongest"]:
        print(f"     - {name} ({strength})")
    hypotheses = stats["hypotheses"]
    print(f"\n🔬 Hypotheses: {hypotheses['active']} active, {hypotheses['confirmed']} confirmed, "
          f"{hypotheses['rejected']} rejected")
    for hypothesis_id, confidence, status in hypotheses["hypotheses"]:
        print(f"     - {hypothesis_id}: {confidence} ({status})")
    print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Talk to a petmind pet")
    parser.add_argument("--config", type=Path, help="JSON override file for MindConfig")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--state", type=Path, help="Snapshot file to load from and save to")
    parser.add_argument("--name", default="Pip", help="Pet name")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    label = "default"
    config = MindConfig()
    if args.config:
        label, config = load_labeled_config(args.config)
    if args.seed is not None:
        config.seed = args.seed

    provider = StaticStateProvider(name=args.name)
    clock = SystemClock()
    mind = CompanionMind(provider, config=config, clock=clock)
    mind.on_utterance.append(lambda u: print(f"{args.name}: {u.text}   ({u.emotion})"))
    if args.state and args.state.exists():
        mind.load(args.state)

    print("=" * 60)
    print(f"🐾 {args.name} is awake (config: {label})")
    print("Actions: " + ", ".join(f":{a}" for a in ACTIONS))
    print("Commands: :stats, :set field=value, :save, :help, :quit")
    print("=" * 60)
    print()

    while True:
        mind.run_pending()
        try:
            line = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n\nGoodbye!")
            break
        mind.run_pending()
        if not line:
            continue

        parsed = parse_command(line)
        if parsed is None:
            mind.hear(line)
            due = mind.pending_response_due()
            if due is not None:
                time.sleep(max(0.0, due - clock.now()) / 1000.0)
                mind.run_pending()
            continue

        command, rest = parsed
        if command in ("quit", "exit"):
            print("\nGoodbye!")
            break
        if command in ACTIONS:
            mind.handle_interaction(apply_action(provider, command))
            print(f"   ({command}: mood is now {provider.snapshot().mood})")
        elif command == "stats":
            print_stats(mind)
        elif command == "set":
            try:
                print(f"   {apply_setting(provider, rest)}")
            except ValueError as exc:
                print(f"⚠️  {exc}")
        elif command == "save":
            target = Path(rest) if rest else args.state
            if target is None:
                print("⚠️  No snapshot path given (use :save <path> or --state)")
            else:
                print(f"💾 Saved to {mind.save(target)}")
        elif command == "help":
            print("Say anything to talk. Actions: " + ", ".join(f":{a}" for a in ACTIONS))
            print("Commands: :stats, :set field=value, :save [path], :quit")
        else:
            print(f"⚠️  Unknown command: :{command}")

    if args.state:
        mind.save(args.state)
    mind.stop()


if __name__ == "__main__":
    main()
