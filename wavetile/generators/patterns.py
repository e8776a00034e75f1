"""Pattern extraction for the overlapping Wave Function Collapse model.

A sample grid is reduced to a palette of distinct tiles and a set of weighted
N x N patterns. Every window position of the sample (wrapping around when the
sample is periodic) contributes its pattern plus up to seven rotated and
reflected variants. Identical variants collapse into one pattern whose weight
is the number of times it was seen.

Usage:
    sample = [
        ["w", "r", "w"],
        ["r", "r", "r"],
        ["w", "r", "w"],
    ]
    pattern_set = extract_patterns(sample, 2, periodic_input=True, symmetry=8)
    pattern_set.patterns  # (T, 2, 2) array of palette indices
    pattern_set.weights  # (T,) occurrence counts
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np

from wavetile import config
from wavetile.generators.errors import ConfigurationError
from wavetile.types import PatternID, SampleGrid, Tile, TileIndex


class Palette:
    """Ordered set of the distinct tiles of a sample.

    Tiles only need to support ``==``, so unhashable values work. Order is
    first-seen order in a row-major scan of the sample.
    """

    def __init__(self, tiles: Sequence[Tile]) -> None:
        self._tiles: tuple[Tile, ...] = tuple(tiles)

    @classmethod
    def from_sample(cls, sample: SampleGrid) -> Palette:
        tiles: list[Tile] = []
        for row in sample:
            for tile in row:
                if not any(known == tile for known in tiles):
                    tiles.append(tile)
        return cls(tiles)

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self) -> Iterator[Tile]:
        return iter(self._tiles)

    def __getitem__(self, index: TileIndex) -> Tile:
        return self._tiles[index]

    def __contains__(self, tile: object) -> bool:
        return self.find(tile) is not None

    def find(self, tile: Tile) -> TileIndex | None:
        """Return the palette index of ``tile`` or None if it is not present."""
        for index, known in enumerate(self._tiles):
            if known == tile:
                return index
        return None

    def index_of(self, tile: Tile) -> TileIndex:
        """Return the palette index of ``tile``.

        Raises:
            ConfigurationError: If the tile does not occur in the sample.
        """
        index = self.find(tile)
        if index is None:
            raise ConfigurationError(f"Tile {tile!r} does not occur in the sample")
        return index

    def encode(self, sample: SampleGrid) -> np.ndarray:
        """Convert a grid of tiles into a (rows, columns) array of indices."""
        return np.array(
            [[self.index_of(tile) for tile in row] for row in sample], dtype=np.int32
        )


def validate_sample(sample: SampleGrid) -> tuple[int, int]:
    """Check that a sample is a non-empty rectangular grid.

    Returns:
        The sample's (width, height).

    Raises:
        ConfigurationError: For an empty sample or ragged rows.
    """
    if len(sample) == 0 or len(sample[0]) == 0:
        raise ConfigurationError("Sample grid must have at least one tile")

    width = len(sample[0])
    for y, row in enumerate(sample):
        if len(row) != width:
            raise ConfigurationError(
                f"Sample row {y} has {len(row)} tiles, expected {width}"
            )
    return width, len(sample)


def encode_pattern(pattern: np.ndarray, color_count: int) -> int:
    """Big-endian base-``color_count`` number of a pattern's tile indices.

    Two patterns get the same key exactly when they hold the same tiles.
    """
    key = 0
    for value in pattern.flat:
        key = key * color_count + int(value)
    return key


def symmetry_variants(base: np.ndarray) -> list[np.ndarray]:
    """Return the 8 rotations/reflections of a square pattern.

    Order: base, its reflection, then each further 90 degree counter-clockwise
    rotation followed by that rotation's reflection. A symmetry count of k
    uses the first k entries.
    """
    variants: list[np.ndarray] = []
    current = base
    for _ in range(4):
        variants.append(current)
        variants.append(np.fliplr(current))
        current = np.rot90(current)
    return variants


@dataclass(frozen=True)
class PatternSet:
    """The deduplicated, weighted patterns extracted from a sample.

    Attributes:
        palette: Distinct tiles of the sample.
        patterns: (T, N, N) array of palette indices, indexed [pattern, y, x].
        weights: (T,) occurrence counts, as floats.
        n: Window size N.
    """

    palette: Palette
    patterns: np.ndarray
    weights: np.ndarray
    n: int

    def __len__(self) -> int:
        return len(self.patterns)

    def tile_at(self, pattern: PatternID, dx: int, dy: int) -> TileIndex:
        """Palette index the pattern places at offset (dx, dy)."""
        return int(self.patterns[pattern, dy, dx])

    def uniform_pattern(self, tile: Tile) -> PatternID | None:
        """Return the pattern made only of ``tile``, if the sample has one."""
        tile_index = self.palette.index_of(tile)
        matches = np.flatnonzero((self.patterns == tile_index).all(axis=(1, 2)))
        if len(matches) == 0:
            return None
        return int(matches[0])

    def resolve_ground(
        self, ground: PatternID | None = None, ground_tile: Tile | None = None
    ) -> PatternID | None:
        """Turn a ground setting into a pattern id.

        Args:
            ground: Pattern id, negative values counting from the end.
            ground_tile: A tile whose uniform pattern is used as ground.

        Raises:
            ConfigurationError: If both are given, the id is out of range,
                or the tile has no uniform pattern.
        """
        if ground is not None and ground_tile is not None:
            raise ConfigurationError("Specify either ground or ground_tile, not both")

        if ground_tile is not None:
            pattern = self.uniform_pattern(ground_tile)
            if pattern is None:
                raise ConfigurationError(
                    f"Sample has no {self.n}x{self.n} window made only of "
                    f"{ground_tile!r} to use as ground"
                )
            return pattern

        if ground is None:
            return None
        if not -len(self) <= ground < len(self):
            raise ConfigurationError(
                f"Ground pattern {ground} out of range for {len(self)} patterns"
            )
        return ground % len(self)


def extract_patterns(
    sample: SampleGrid,
    n: int = config.DEFAULT_PATTERN_SIZE,
    *,
    periodic_input: bool = False,
    symmetry: int = config.DEFAULT_SYMMETRY,
) -> PatternSet:
    """Slide an N x N window over the sample and collect weighted patterns.

    Args:
        sample: Rows of tiles.
        n: Window size.
        periodic_input: Whether windows wrap around the sample edges.
        symmetry: How many of the 8 symmetry variants of each window to add.

    Returns:
        The PatternSet, with pattern ids in first-seen order.

    Raises:
        ConfigurationError: For a malformed sample or invalid n/symmetry.
    """
    sample_width, sample_height = validate_sample(sample)

    if symmetry not in config.VALID_SYMMETRIES:
        raise ConfigurationError(
            f"Symmetry must be one of {config.VALID_SYMMETRIES}, got {symmetry}"
        )
    if n < 1:
        raise ConfigurationError(f"Pattern size must be positive, got {n}")
    if not periodic_input and (n > sample_width or n > sample_height):
        raise ConfigurationError(
            f"Pattern size {n} exceeds non-periodic sample size "
            f"{sample_width}x{sample_height}"
        )

    palette = Palette.from_sample(sample)
    grid = palette.encode(sample)
    color_count = len(palette)

    x_positions = sample_width if periodic_input else sample_width - n + 1
    y_positions = sample_height if periodic_input else sample_height - n + 1

    # Pattern key -> index into found/counts. Dict order gives first-seen ids.
    index_by_key: dict[int, int] = {}
    found: list[np.ndarray] = []
    counts: list[int] = []

    for y in range(y_positions):
        rows = grid.take(range(y, y + n), axis=0, mode="wrap")
        for x in range(x_positions):
            window = rows.take(range(x, x + n), axis=1, mode="wrap")
            for variant in symmetry_variants(window)[:symmetry]:
                key = encode_pattern(variant, color_count)
                index = index_by_key.get(key)
                if index is None:
                    index_by_key[key] = len(found)
                    found.append(np.ascontiguousarray(variant))
                    counts.append(1)
                else:
                    counts[index] += 1

    return PatternSet(
        palette=palette,
        patterns=np.stack(found).astype(np.int32),
        weights=np.array(counts, dtype=np.float64),
        n=n,
    )
