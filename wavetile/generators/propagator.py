"""Adjacency table for the overlapping model.

For every direction and every ordered pair of patterns, the propagator records
whether the second pattern, shifted one cell in that direction, agrees with
the first on every tile of their overlapping band. This table is the only
agreement oracle used during propagation.

The check is vectorized: for a direction, the overlap band of every pattern is
compared against the shifted band of every other pattern at once, giving a
(T, T) boolean matrix.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from wavetile.types import Direction, PatternID

# Direction utilities. Index order matches the support counts kept by the wave.
DX = (-1, 0, 1, 0)
DY = (0, 1, 0, -1)
OPPOSITE: tuple[Direction, ...] = (2, 3, 0, 1)
DIRECTION_NAMES = ("W", "S", "E", "N")


def agrees(pattern1: np.ndarray, pattern2: np.ndarray, dx: int, dy: int) -> bool:
    """Whether pattern2 placed at offset (dx, dy) from pattern1 matches it.

    Both patterns are (N, N) arrays indexed [y, x].
    """
    n = pattern1.shape[0]
    x_min, x_max = max(dx, 0), min(dx + n, n)
    y_min, y_max = max(dy, 0), min(dy + n, n)
    return bool(
        np.array_equal(
            pattern1[y_min:y_max, x_min:x_max],
            pattern2[y_min - dy : y_max - dy, x_min - dx : x_max - dx],
        )
    )


@dataclass(frozen=True)
class Propagator:
    """Precomputed pattern compatibility per direction.

    Attributes:
        agreement: (4, T, T) bool array; agreement[d, a, b] is True when
            pattern b may sit one step in direction d from pattern a.
        compatible: compatible[d][a] is the sorted int array of such b.
    """

    agreement: np.ndarray
    compatible: tuple[tuple[np.ndarray, ...], ...]

    @property
    def pattern_count(self) -> int:
        return self.agreement.shape[1]

    def allows(self, direction: Direction, a: PatternID, b: PatternID) -> bool:
        return bool(self.agreement[direction, a, b])

    def support_counts(self) -> np.ndarray:
        """(T, 4) initial support count of each pattern from each direction.

        Entry [t, d] is how many patterns in the neighbour at -d allow t,
        which by symmetry of agreement is len(compatible[OPPOSITE[d]][t]).
        """
        counts = self.agreement.sum(axis=2).astype(np.int32)  # (4, T)
        return np.stack([counts[OPPOSITE[d]] for d in range(4)], axis=1)


def build_propagator(patterns: np.ndarray) -> Propagator:
    """Build the propagator for a (T, N, N) array of patterns.

    Runs in O(T^2 * N^2) time and memory per direction.
    """
    pattern_count, n, _ = patterns.shape
    agreement = np.zeros((4, pattern_count, pattern_count), dtype=bool)

    for direction in range(4):
        dx, dy = DX[direction], DY[direction]
        x_min, x_max = max(dx, 0), min(dx + n, n)
        y_min, y_max = max(dy, 0), min(dy + n, n)

        # Band of the first pattern and the matching band of the shifted one,
        # flattened to (T, band_size)
        band_size = (y_max - y_min) * (x_max - x_min)
        band1 = patterns[:, y_min:y_max, x_min:x_max].reshape(pattern_count, band_size)
        band2 = patterns[
            :, y_min - dy : y_max - dy, x_min - dx : x_max - dx
        ].reshape(pattern_count, band_size)

        agreement[direction] = (band1[:, None, :] == band2[None, :, :]).all(axis=2)

    compatible = tuple(
        tuple(
            np.flatnonzero(agreement[direction, a]).astype(np.int32)
            for a in range(pattern_count)
        )
        for direction in range(4)
    )
    return Propagator(agreement=agreement, compatible=compatible)
