#!/usr/bin/env python3
"""Benchmark the overlapping Wave Function Collapse solver."""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path

from wavetile.generators import (
    BorderConstraint,
    GenerationSettings,
    OverlappingGenerator,
    PathConstraint,
)
from wavetile.util.rng import RNGProvider

GRID_SIZES: tuple[tuple[int, int], ...] = (
    (10, 10),
    (20, 20),
    (30, 30),
    (48, 48),
)

# Plus-shaped corridors on a plain background
SAMPLE: tuple[str, ...] = (
    "wwwwwwwww",
    "wwwwrwwww",
    "wwwwrwwww",
    "wwwwrwwww",
    "wrrrrrrrw",
    "wwwwrwwww",
    "wwwwrwwww",
    "wwwwrwwww",
    "wwwwwwwww",
)


class WFCBenchmark:
    """Benchmark runner for the pure Python solver."""

    def __init__(self, iterations: int, with_constraints: bool) -> None:
        self.iterations = iterations
        self.with_constraints = with_constraints
        self.results: dict[str, dict[str, float]] = {}

    def _generator(self, width: int, height: int) -> OverlappingGenerator:
        settings = GenerationSettings(width=width, height=height, n=3, symmetry=8)
        constraints = None
        if self.with_constraints:

            def constraints():
                return [BorderConstraint("w"), PathConstraint(["r"])]

        return OverlappingGenerator(
            [list(row) for row in SAMPLE], settings, constraints=constraints
        )

    def _run_case(self, width: int, height: int) -> tuple[float, float]:
        """Run one case and return (average ms per attempt, decided ratio)."""
        generator = self._generator(width, height)
        provider = RNGProvider(width * 1_000_000 + height * 1_000)
        elapsed_total = 0.0
        decided = 0

        for i in range(self.iterations):
            rng = provider.get(f"bench.{width}x{height}.{i}")
            start = time.perf_counter()
            wave = generator.attempt(rng)
            elapsed_total += time.perf_counter() - start
            decided += wave.is_decided

        return (elapsed_total / self.iterations) * 1000.0, decided / self.iterations

    def run(self) -> None:
        """Run all configured grid-size benchmarks."""
        print("WFC Benchmark (overlapping model)")
        print("=" * 42)
        print(f"Iterations per size: {self.iterations}")
        print(f"Constraints: {'border + path' if self.with_constraints else 'none'}")
        print()
        print(f"{'Size':>12} {'Attempt (ms)':>14} {'Decided':>10}")
        print("-" * 42)

        for width, height in GRID_SIZES:
            attempt_ms, decided_ratio = self._run_case(width, height)

            size_key = f"{width}x{height}"
            self.results[size_key] = {
                "attempt_ms": attempt_ms,
                "decided_ratio": decided_ratio,
            }

            print(f"{size_key:>12} {attempt_ms:14.2f} {decided_ratio:10.0%}")

    def save_results(self, filename: str) -> None:
        """Save benchmark output to a JSON file."""
        with Path(filename).open("w") as f:
            json.dump(self.results, f, indent=2)
        print(f"\nSaved benchmark results to {filename}")

    def compare_with_baseline(self, baseline_file: str) -> None:
        """Compare current run with a saved baseline JSON file."""
        try:
            with Path(baseline_file).open() as f:
                baseline: dict[str, dict[str, float]] = json.load(f)
        except FileNotFoundError:
            print(f"\nBaseline file not found: {baseline_file}")
            return

        print(f"\nComparison vs baseline: {baseline_file}")
        print("=" * 64)

        for size_key, current in self.results.items():
            if size_key not in baseline:
                continue

            old_ms = baseline[size_key].get("attempt_ms", 0.0)
            new_ms = current["attempt_ms"]
            if old_ms <= 0:
                continue

            delta_pct = ((new_ms - old_ms) / old_ms) * 100.0
            speed_ratio = old_ms / new_ms if new_ms > 0 else 0.0
            trend = "faster" if speed_ratio > 1.0 else "slower"

            print(
                f"{size_key:>12}: {new_ms:8.2f}ms "
                f"vs {old_ms:8.2f}ms | {speed_ratio:5.2f}x {trend} "
                f"({delta_pct:+6.1f}%)"
            )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark overlapping WFC")
    parser.add_argument(
        "--iterations",
        type=int,
        default=5,
        help="Number of attempts per grid size (default: 5)",
    )
    parser.add_argument(
        "--constraints",
        action="store_true",
        help="Run with border and path constraints",
    )
    parser.add_argument("--save", type=str, help="Save current results to JSON")
    parser.add_argument(
        "--compare",
        type=str,
        help="Compare current results against baseline JSON",
    )
    args = parser.parse_args(argv)

    benchmark = WFCBenchmark(
        iterations=args.iterations, with_constraints=args.constraints
    )
    benchmark.run()

    if args.save:
        benchmark.save_results(args.save)

    if args.compare:
        benchmark.compare_with_baseline(args.compare)


if __name__ == "__main__":
    main()
