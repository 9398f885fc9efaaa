#!/usr/bin/env python3
"""
Headless spin simulation.

Plays fresh games with a seeded RNG and writes a one-row summary CSV.
A new game starts whenever the current one can no longer spin.

Usage:
    python -m scripts.audit_sim --rounds 100000 --seed AUDIT_2025 --out out/audit.csv
    python -m scripts.audit_sim --rounds 20000 --seed AUDIT_2025 --out out/audit.csv --enemies
"""
import argparse
import csv
import json
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from kigaslot.config import settings
from kigaslot.config_hash import get_config_hash
from kigaslot.errors import GameError
from kigaslot.logic.catalog import SymbolCatalog, default_catalog, load_catalog
from kigaslot.logic.engine import SpinEngine
from kigaslot.logic.models import GameState
from kigaslot.logic.rng import SeededRNG
from kigaslot.telemetry import TelemetryService


# Simulation stand-in for the surrounding game's enemy policy:
# HP grows with how far the run has come
ENEMY_HP_PER_SPIN = 2


class _NullSink:
    def emit(self, event_name, data) -> None:
        pass


@dataclass
class SimulationStats:
    """Statistics accumulated during simulation."""
    rounds: int = 0
    games: int = 0
    medals_spent: int = 0
    medals_won: int = 0
    line_hits: int = 0
    bomb_spins: int = 0
    enemies_spawned: int = 0
    enemies_defeated: int = 0
    rejections: dict[str, int] = field(default_factory=dict)
    spin_gains: list[int] = field(default_factory=list)
    max_spin_gain: int = 0


def get_git_commit() -> str:
    """Get current git commit hash (short)."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=Path(__file__).parent.parent,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return "unknown"


def get_timestamp_iso() -> str:
    """Get ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def check_cached_result(output_path: str, config_hash: str, rounds: int, seed: str) -> bool:
    """
    Check if valid cached result exists.

    Returns True if cache is valid (same config_hash, rounds, seed).
    """
    path = Path(output_path)
    if not path.exists():
        return False

    try:
        with open(path, "r") as f:
            reader = csv.DictReader(f)
            row = next(reader, None)
            if row is None:
                return False

            if row.get("config_hash") != config_hash:
                return False
            if int(row.get("rounds", 0)) != rounds:
                return False
            if row.get("seed") != seed:
                return False

            return True
    except (OSError, csv.Error, ValueError):
        return False


def _between_spins(state: GameState, catalog: SymbolCatalog, enemies: bool) -> bool:
    """
    Minimal enemy policy: spawn when the countdown ends, clear on defeat.

    Returns True if an enemy spawned.
    """
    if not enemies or not catalog.enemies:
        return False
    if state.current_enemy is not None and state.enemy_hp <= 0:
        state.current_enemy = None
        state.next_enemy_in = settings.enemy_interval
    elif state.current_enemy is None and state.next_enemy_in <= 0:
        enemy = catalog.enemies[0]
        state.current_enemy = enemy
        state.enemy_hp = max(1, round(state.spin_count * ENEMY_HP_PER_SPIN * enemy.hp_multiplier))
        return True
    return False


def run_simulation(
    rounds: int,
    seed_str: str,
    catalog: SymbolCatalog,
    enemies: bool = False,
    verbose: bool = False,
) -> SimulationStats:
    """
    Run `rounds` accepted spins.

    Every rejected spin ends the current game and starts a new one.
    """
    rng = SeededRNG.from_label(seed_str)
    engine = SpinEngine(catalog, rng=rng, telemetry=TelemetryService(_NullSink()))
    stats = SimulationStats()

    state = GameState.new_game(catalog.starter_deck())
    stats.games = 1

    while stats.rounds < rounds:
        if _between_spins(state, catalog, enemies):
            stats.enemies_spawned += 1
        result = engine.spin(state)

        if not result.accepted:
            reason = result.rejected_reason.value
            stats.rejections[reason] = stats.rejections.get(reason, 0) + 1
            state = GameState.new_game(catalog.starter_deck())
            stats.games += 1
            continue

        stats.rounds += 1
        stats.medals_spent += result.spin_cost
        stats.medals_won += result.total_medals + result.coin_medals
        stats.spin_gains.append(result.total_medals)
        stats.max_spin_gain = max(stats.max_spin_gain, result.total_medals)
        if result.formed_lines:
            stats.line_hits += 1
        if result.bomb_medals:
            stats.bomb_spins += 1
        if result.enemy_defeated:
            stats.enemies_defeated += 1
        state = result.next_state

        if verbose and stats.rounds % 10000 == 0:
            print(f"\rProgress: {stats.rounds / rounds * 100:.1f}%", end="", flush=True)

    if verbose:
        print("\rProgress: 100.0%")

    return stats


def calculate_percentile(values: list[int], percentile: float) -> float:
    """Calculate percentile from sorted list."""
    if not values:
        return 0.0
    sorted_vals = sorted(values)
    idx = int(len(sorted_vals) * percentile / 100)
    idx = min(idx, len(sorted_vals) - 1)
    return float(sorted_vals[idx])


def generate_csv(
    rounds: int,
    seed_str: str,
    stats: SimulationStats,
    output_path: str,
) -> None:
    """Write the one-row audit CSV."""
    return_rate = (stats.medals_won / stats.medals_spent * 100) if stats.medals_spent > 0 else 0
    line_hit_rate = (stats.line_hits / stats.rounds * 100) if stats.rounds > 0 else 0
    bomb_rate = (stats.bomb_spins / stats.rounds * 100) if stats.rounds > 0 else 0
    avg_gain = stats.medals_won / stats.rounds if stats.rounds > 0 else 0

    # Column order: timestamp, git_commit, config_hash first
    row = {
        "timestamp": get_timestamp_iso(),
        "git_commit": get_git_commit(),
        "config_hash": get_config_hash(),
        "rounds": rounds,
        "seed": seed_str,
        "games": stats.games,
        "medals_spent": stats.medals_spent,
        "medals_won": stats.medals_won,
        "return_rate": f"{return_rate:.4f}",
        "line_hit_rate": f"{line_hit_rate:.4f}",
        "bomb_rate": f"{bomb_rate:.4f}",
        "avg_spin_gain": f"{avg_gain:.4f}",
        "p95_spin_gain": f"{calculate_percentile(stats.spin_gains, 95):.2f}",
        "p99_spin_gain": f"{calculate_percentile(stats.spin_gains, 99):.2f}",
        "max_spin_gain": stats.max_spin_gain,
        "enemies_spawned": stats.enemies_spawned,
        "enemies_defeated": stats.enemies_defeated,
    }

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=row.keys())
        writer.writeheader()
        writer.writerow(row)

    print(f"CSV written to: {output_path}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Headless spin simulation")
    parser.add_argument(
        "--rounds",
        type=int,
        required=True,
        help="Number of accepted spins to simulate",
    )
    parser.add_argument(
        "--seed",
        type=str,
        required=True,
        help="Seed string for reproducibility",
    )
    parser.add_argument(
        "--out",
        type=str,
        required=True,
        help="Output CSV path",
    )
    parser.add_argument(
        "--catalog",
        type=str,
        default=settings.catalog_path,
        help="JSON catalog to use instead of the built-in content",
    )
    parser.add_argument(
        "--enemies",
        action="store_true",
        help="Spawn enemies when the enemy countdown ends",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show progress",
    )
    parser.add_argument(
        "--skip-if-cached",
        action="store_true",
        help="Skip simulation if valid cached result exists",
    )

    args = parser.parse_args(argv)

    config_hash = get_config_hash()
    print(f"Running simulation: rounds={args.rounds}, seed={args.seed}")
    print(f"Config hash: {config_hash}")

    if args.skip_if_cached:
        if check_cached_result(args.out, config_hash, args.rounds, args.seed):
            print(f"Using cached result: {args.out}")
            return 0

    try:
        catalog = load_catalog(args.catalog) if args.catalog else default_catalog()
    except GameError as e:
        print(json.dumps({"error": e.to_body().model_dump()}), file=sys.stderr)
        return 1

    stats = run_simulation(
        rounds=args.rounds,
        seed_str=args.seed,
        catalog=catalog,
        enemies=args.enemies,
        verbose=args.verbose,
    )

    generate_csv(
        rounds=args.rounds,
        seed_str=args.seed,
        stats=stats,
        output_path=args.out,
    )

    return_rate = (stats.medals_won / stats.medals_spent * 100) if stats.medals_spent > 0 else 0
    print("\nSummary:")
    print(f"  Spins: {stats.rounds} over {stats.games} games")
    print(f"  Medals spent: {stats.medals_spent}")
    print(f"  Medals won: {stats.medals_won}")
    print(f"  Return rate: {return_rate:.4f}%")
    print(f"  Line hit rate: {(stats.line_hits / max(1, stats.rounds) * 100):.4f}%")
    print(f"  Max single-spin gain: {stats.max_spin_gain}")
    if stats.enemies_spawned:
        print(f"  Enemies: {stats.enemies_defeated}/{stats.enemies_spawned} defeated")
    if stats.rejections:
        print(f"  Game endings: {stats.rejections}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
