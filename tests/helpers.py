"""Shared sample grids and assertions for generator tests."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

import numpy as np

from wavetile.generators.wave import Wave
from wavetile.types import Tile

# 5x5 cross of "r" on a "w" background
CROSS_SAMPLE: list[list[str]] = [
    ["w", "w", "r", "w", "w"],
    ["w", "w", "r", "w", "w"],
    ["r", "r", "r", "r", "r"],
    ["w", "w", "r", "w", "w"],
    ["w", "w", "r", "w", "w"],
]

# Isolated "r" dots that never touch, not even diagonally
DOTS_SAMPLE: list[list[str]] = [list(row) for row in (
    "wwwwww",
    "wrwwww",
    "wwwwrw",
    "wwwwww",
    "wwrwww",
    "wwwwww",
)]

# Sky above a single row of ground
GROUND_SAMPLE: list[list[str]] = [list(row) for row in (
    "wwww",
    "wwww",
    "gggg",
)]

# Tiles with no adjacency rules between them (N = 1)
FREE_SAMPLE: list[list[str]] = [["w", "r"]]


def assert_locally_consistent(wave: Wave) -> None:
    """Every pair of adjacent decided patterns agrees on their overlap, and
    every output tile is determined by exactly one tile."""
    observed = wave.observed().reshape(-1)
    for cell in range(wave.cell_count):
        for direction in range(4):
            neighbour = wave.neighbour(cell, direction)
            if neighbour is None:
                continue
            assert wave.propagator.allows(
                direction, int(observed[cell]), int(observed[neighbour])
            ), f"Cell {cell} disagrees with neighbour {neighbour}"

    for y in range(wave.height):
        for x in range(wave.width):
            assert len(wave.contributing_tiles(x, y)) == 1

    # Each pattern is exactly the output window it was placed on
    tiles = wave.tile_indices()
    patterns = wave.pattern_set.patterns
    n = wave.n
    for cell in range(wave.cell_count):
        x, y = cell % wave.fmx, cell // wave.fmx
        rows = np.arange(y, y + n) % wave.height
        cols = np.arange(x, x + n) % wave.width
        window = tiles[np.ix_(rows, cols)]
        assert np.array_equal(window, patterns[observed[cell]])


def count_components(grid: Sequence[Sequence[Tile]], tiles: Sequence[Tile]) -> int:
    """Number of 4-connected components formed by cells holding ``tiles``."""
    height, width = len(grid), len(grid[0])
    seen = [[False] * width for _ in range(height)]
    components = 0

    for sy in range(height):
        for sx in range(width):
            if seen[sy][sx] or grid[sy][sx] not in tiles:
                continue
            components += 1
            queue = deque([(sx, sy)])
            seen[sy][sx] = True
            while queue:
                x, y = queue.popleft()
                for dx, dy in ((1, 0), (-1, 0), (0, 1), (0, -1)):
                    nx, ny = x + dx, y + dy
                    if not (0 <= nx < width and 0 <= ny < height):
                        continue
                    if seen[ny][nx] or grid[ny][nx] not in tiles:
                        continue
                    seen[ny][nx] = True
                    queue.append((nx, ny))

    return components


def border_tiles(grid: Sequence[Sequence[Tile]]) -> list[Tile]:
    """Tiles on the outer ring of a grid."""
    height, width = len(grid), len(grid[0])
    return [
        grid[y][x]
        for y in range(height)
        for x in range(width)
        if x in (0, width - 1) or y in (0, height - 1)
    ]
