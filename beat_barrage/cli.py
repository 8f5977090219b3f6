"""Command-line interface for inspecting and dry-running beat-barrage scores."""

import argparse
import logging
from collections import Counter
from pathlib import Path


def _load_config(args: argparse.Namespace):
    from beat_barrage.config import EngineConfig

    config = EngineConfig.load(Path(args.config)) if getattr(args, "config", None) else EngineConfig()
    if getattr(args, "seed", None) is not None:
        config.seed = args.seed
    return config


def cmd_inspect(args: argparse.Namespace) -> None:
    from beat_barrage.score.loader import load_song_map

    song_map = load_song_map(args.score, _load_config(args))
    actions = sorted(song_map.actions)
    kinds = Counter(type(a.cmd).__name__ for a in actions)

    print(f"BPM:     {song_map.bpm:.1f}")
    print(f"Skip:    {float(song_map.skip_amount):.2f} beats ({song_map.skip_seconds:.2f}s)")
    print(f"Actions: {len(actions)}")
    if actions:
        print(f"First delivery: beat {float(actions[0].delivery_beat):.3f}")
        print(f"Last delivery:  beat {float(actions[-1].delivery_beat):.3f}")
    for kind, count in sorted(kinds.items()):
        print(f"  {kind:<18} {count}")


def cmd_midi(args: argparse.Namespace) -> None:
    from beat_barrage.parsers.asset_loader import AssetLoader
    from beat_barrage.parsers.midi_parser import parse_midi, parse_midi_grouped

    data = AssetLoader().open(args.file)
    if args.grouped:
        groups = parse_midi_grouped(data, args.bpm, source=args.file)
        for n, group in enumerate(groups):
            pitch = group.get_pitch(0)
            print(f"group {n}: {len(group)} notes, pitch {pitch:.3f}, "
                  f"beats {', '.join(f'{b:.3f}' for b in group.beats())}")
        print(f"{len(groups)} groups")
        return

    beats = parse_midi(data, args.bpm, source=args.file)
    for b in beats:
        print(f"{b.i:5d}  beat {float(b.beat):9.3f}  pitch {b.pitch:.3f}  t {b.percent:.3f}")
    print(f"{len(beats)} notes")


def cmd_simulate(args: argparse.Namespace) -> None:
    from beat_barrage.runtime.scheduler import Scheduler
    from beat_barrage.runtime.world import SimpleWorld
    from beat_barrage.schemas.positions import WorldPos
    from beat_barrage.score.loader import load_song_map

    config = _load_config(args)
    song_map = load_song_map(args.score, config)
    scheduler = Scheduler.from_song_map(song_map)
    world = SimpleWorld()
    player = WorldPos(*args.player)
    step = args.step or config.simulate_step
    if step <= 0:
        raise SystemExit("--step must be positive")

    until = args.until
    if until is None:
        until = max((float(a.nominal_beat) for a in song_map.actions), default=0.0) + 8.0

    now = float(song_map.skip_amount)
    dispatched = 0
    peak = 0
    while now <= until:
        dispatched += len(scheduler.update(now, world, player))
        world.prune(now)
        peak = max(peak, len(world.enemies))
        now += step

    print(f"Simulated to beat {until:.2f} in steps of {step:.3f}")
    print(f"Dispatched: {dispatched} (queued: {len(scheduler)})")
    print(f"Spawned:    {world.spawned_total}, peak live {peak}, clears {world.clears}")
    for group, state in sorted(world.groups.items()):
        print(f"  group {group}: hitbox={state.hitbox} render={state.render} "
              f"rotating={state.rotation is not None} fading={state.fadeout is not None}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="beat-barrage",
        description="Beat Barrage score tools",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    # inspect
    ins = sub.add_parser("inspect", help="Evaluate a score and summarise its actions")
    ins.add_argument("score", help="Score file (.py, .json, .yaml)")
    ins.add_argument("--seed", type=int, default=None, help="Random seed")
    ins.add_argument("--config", default=None, help="Optional JSON engine config")

    # midi
    mid = sub.add_parser("midi", help="Print the beats decoded from a MIDI file")
    mid.add_argument("file", help="Standard MIDI File")
    mid.add_argument("--bpm", type=float, default=150.0, help="Song BPM (default: 150)")
    mid.add_argument("--grouped", action="store_true", help="Group consecutive same-pitch notes")

    # simulate
    sim = sub.add_parser("simulate", help="Run a score through the scheduler")
    sim.add_argument("score", help="Score file (.py, .json, .yaml)")
    sim.add_argument("--until", type=float, default=None,
                     help="Last beat to simulate (default: last action + 8)")
    sim.add_argument("--step", type=float, default=None, help="Beats per frame")
    sim.add_argument("--player", type=float, nargs=2, default=[0.0, 0.0],
                     metavar=("X", "Y"), help="Fixed player position")
    sim.add_argument("--seed", type=int, default=None, help="Random seed")
    sim.add_argument("--config", default=None, help="Optional JSON engine config")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "inspect": cmd_inspect,
        "midi": cmd_midi,
        "simulate": cmd_simulate,
    }

    handler = commands.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
