#!/usr/bin/env python3
"""Benchmark: compare player strategies over batches of full runs.

Runs N games per strategy and reports:
- Win rate (finished first), defeat rate, avg final networth and land
- Avg rank, avg attacks and attack success rate
- Final rank distribution
- Speed (games/sec)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections import Counter
from dataclasses import dataclass

# Ensure project root is on path
_PROJECT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, _PROJECT)

from empire_sim.config import get_config
from empire_sim.enums import Outcome, Race
from empire_sim.runner import GameResult, PassiveStrategy, RandomStrategy, run_game

logger = logging.getLogger("empire_sim.benchmark")


@dataclass
class BenchmarkResult:
    name: str
    results: list[GameResult]
    elapsed: float
    errors: int = 0

    @property
    def n(self) -> int:
        return len(self.results)

    def _avg(self, values) -> float:
        return sum(values) / max(1, self.n)

    @property
    def wins(self) -> int:
        return sum(1 for r in self.results if r.won)

    @property
    def win_rate(self) -> float:
        return self.wins / max(1, self.n)

    @property
    def defeat_rate(self) -> float:
        return sum(1 for r in self.results if r.outcome == Outcome.DEFEAT.value) / max(1, self.n)

    @property
    def avg_networth(self) -> float:
        return self._avg(r.final_networth for r in self.results)

    @property
    def avg_land(self) -> float:
        return self._avg(r.final_land for r in self.results)

    @property
    def avg_rank(self) -> float:
        return self._avg(r.rank for r in self.results)

    @property
    def avg_attacks(self) -> float:
        return self._avg(r.attacks for r in self.results)

    @property
    def attack_success(self) -> float:
        attacks = sum(r.attacks for r in self.results)
        return sum(r.attacks_won for r in self.results) / max(1, attacks)

    @property
    def games_per_sec(self) -> float:
        return self.n / max(0.001, self.elapsed)

    def rank_distribution(self) -> dict[int, int]:
        """Count how many games ended at each standing."""
        return dict(sorted(Counter(r.rank for r in self.results).items()))


def run_benchmark(strategy, name: str, n_games: int = 20, race: Race = Race.HUMAN,
                  first_seed: int = 1) -> BenchmarkResult:
    """Run benchmark for a single strategy."""
    seeds = range(first_seed, first_seed + n_games)
    t0 = time.time()
    results, errors = [], 0
    for seed in seeds:
        try:
            results.append(run_game(seed, strategy, race))
        except Exception:
            logger.exception("Run with seed %d crashed", seed)
            errors += 1
    elapsed = time.time() - t0
    return BenchmarkResult(name=name, results=results, elapsed=elapsed, errors=errors)


def print_report(benchmarks: list[BenchmarkResult]):
    """Print comparison table."""
    print("\n" + "=" * 80)
    print("EMPIRE SIMULATOR BENCHMARK")
    print("=" * 80)

    names = [b.name for b in benchmarks]
    col_w = max(18, max(len(n) for n in names) + 2)
    header = f"{'Metric':<22}" + "".join(f"{n:>{col_w}}" for n in names)
    print(header)
    print("-" * len(header))

    rows = [
        ("Games", [str(b.n) for b in benchmarks]),
        ("Crashed", [str(b.errors) for b in benchmarks]),
        ("Wins", [str(b.wins) for b in benchmarks]),
        ("Win Rate", [f"{b.win_rate:.1%}" for b in benchmarks]),
        ("Defeat Rate", [f"{b.defeat_rate:.1%}" for b in benchmarks]),
        ("Avg Rank", [f"{b.avg_rank:.2f}" for b in benchmarks]),
        ("Avg Networth", [f"{b.avg_networth:,.0f}" for b in benchmarks]),
        ("Avg Land", [f"{b.avg_land:,.0f}" for b in benchmarks]),
        ("Avg Attacks", [f"{b.avg_attacks:.1f}" for b in benchmarks]),
        ("Attack Success", [f"{b.attack_success:.1%}" for b in benchmarks]),
        ("Speed (games/s)", [f"{b.games_per_sec:.2f}" for b in benchmarks]),
        ("Time (s)", [f"{b.elapsed:.1f}" for b in benchmarks]),
    ]
    for label, vals in rows:
        print(f"{label:<22}" + "".join(f"{v:>{col_w}}" for v in vals))

    print("\n--- Final Rank Distribution ---")
    print(f"{'Rank':<10}" + "".join(f"{n:>{col_w}}" for n in names))
    for rank in range(1, get_config().bots_per_game + 2):
        vals = [str(b.rank_distribution().get(rank, 0)) for b in benchmarks]
        print(f"  {rank:<8}" + "".join(f"{v:>{col_w}}" for v in vals))

    print("=" * 80)


def main():
    import argparse
    parser = argparse.ArgumentParser(description="Empire Simulator Benchmark")
    parser.add_argument("-n", "--games", type=int, default=20, help="Games per strategy")
    parser.add_argument("--first-seed", type=int, default=1, help="Seed of the first game")
    parser.add_argument("--race", type=str, default=Race.HUMAN.value,
                        choices=[r.value for r in Race], help="Player race")
    parser.add_argument("--json", type=str, help="Output JSON results to file")
    parser.add_argument("--strategies", nargs="+", default=["passive", "random"],
                        help="Strategies to benchmark: passive, random")
    parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level")
    args = parser.parse_args()

    logging.basicConfig(level=(args.log_level or get_config().log_level).upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    race = Race(args.race)
    available = {
        "passive": ("Passive", PassiveStrategy),
        "random": ("Random", lambda: RandomStrategy(seed=42)),
    }

    benchmarks = []
    for key in args.strategies:
        if key not in available:
            print(f"Unknown strategy: {key}")
            continue
        name, factory = available[key]
        print(f"Running {name} strategy ({args.games} games)...")
        b = run_benchmark(factory(), name, args.games, race, args.first_seed)
        benchmarks.append(b)
        print(f"  Done: avg networth {b.avg_networth:,.0f}, {b.games_per_sec:.2f} games/s")

    if benchmarks:
        print_report(benchmarks)

    if args.json and benchmarks:
        data = {}
        for b in benchmarks:
            data[b.name] = {
                "n": b.n,
                "errors": b.errors,
                "wins": b.wins,
                "win_rate": round(b.win_rate, 4),
                "defeat_rate": round(b.defeat_rate, 4),
                "avg_rank": round(b.avg_rank, 2),
                "avg_networth": round(b.avg_networth, 0),
                "avg_land": round(b.avg_land, 0),
                "avg_attacks": round(b.avg_attacks, 1),
                "attack_success": round(b.attack_success, 4),
                "games_per_sec": round(b.games_per_sec, 2),
                "elapsed": round(b.elapsed, 2),
                "rank_distribution": b.rank_distribution(),
            }
        with open(args.json, "w") as f:
            json.dump(data, f, indent=2)
        print(f"\nJSON results saved to {args.json}")


if __name__ == "__main__":
    main()
