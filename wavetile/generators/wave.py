"""Wave Function Collapse solver for the overlapping model.

The wave holds, for every cell, which patterns are still possible there. A
cell places a whole N x N pattern with its top-left corner on the cell, so a
non-periodic output of width W has W - N + 1 wave columns and the last N - 1
output columns are read from the patterns of the last wave column.

Usage:
    pattern_set = extract_patterns(sample, 3, symmetry=8)
    propagator = build_propagator(pattern_set.patterns)
    wave = Wave(pattern_set, propagator, 20, 20, rng=random.Random(42))
    if wave.run() is Resolution.DECIDED:
        grid = wave.to_grid()

Algorithm:
    1. clear() makes every pattern possible everywhere, then applies the ground
       pattern and each constraint's on_clear(), propagating after each.
    2. observe() picks the undecided cell with the lowest entropy (plus a tiny
       per-cell noise that breaks ties) and collapses it to one pattern chosen
       by weight.
    3. ban() removes a pattern from a cell and decrements the support counts of
       the neighbouring patterns it was compatible with. Neighbour patterns left
       without support are queued and banned by propagate().
    4. When a cell runs out of patterns the wave is in contradiction. If an
       earlier observation can still be undone, the bans made since it are
       replayed in reverse from the backtrack log and the chosen pattern is
       banned instead. Otherwise the contradiction is terminal and the caller
       retries with another seed.

Data layout:
    Every per-cell value is a numpy array indexed by the flattened cell index
    x + y * fmx. ``possible`` is a (cells, T) bool array and ``compatible`` a
    (cells, T, 4) int array where compatible[i, t, d] is the number of patterns
    still possible in the neighbour at -d that allow t at cell i.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

import numpy as np

from wavetile import config
from wavetile.generators.errors import ConfigurationError
from wavetile.generators.propagator import DX, DY, OPPOSITE, Propagator
from wavetile.types import (
    CellIndex,
    DiagnosticHook,
    PatternID,
    Resolution,
    Tile,
    TileIndex,
)
from wavetile.util.rng import RNG

if TYPE_CHECKING:
    from wavetile.generators.constraints.base import Constraint
    from wavetile.generators.patterns import PatternSet

logger = logging.getLogger(__name__)


class Wave:
    """Overlapping-model WFC state machine for one generation attempt.

    A wave is single use: once it is DECIDED its result can be read, and once
    it reaches a terminal CONTRADICTION it should be discarded.
    """

    def __init__(
        self,
        pattern_set: PatternSet,
        propagator: Propagator,
        width: int,
        height: int,
        *,
        rng: RNG,
        periodic_output: bool = False,
        ground: PatternID | None = None,
        constraints: Sequence[Constraint] = (),
        backtrack_limit: int = config.WFC_BACKTRACK_LIMIT,
        diagnostic_hook: DiagnosticHook | None = None,
    ) -> None:
        """Initialize the wave and clear it.

        Args:
            pattern_set: Patterns and weights extracted from the sample.
            propagator: Compatibility table built from the same patterns.
            width: Output width in tiles.
            height: Output height in tiles.
            rng: Random source for observations and tie-break noise.
            periodic_output: Whether the output wraps around its edges.
            ground: Pattern forced along the bottom wave row and banned
                everywhere else, or None.
            constraints: Constraints hooked into the solver, in order.
            backtrack_limit: How many observations may be undone before a
                contradiction is terminal.
            diagnostic_hook: Optional observer called after every step.

        Raises:
            ConfigurationError: For an output smaller than one pattern, an
                out-of-range ground pattern, or a constraint that rejects
                the pattern set.
        """
        n = pattern_set.n
        if width < 1 or height < 1:
            raise ConfigurationError(f"Output size {width}x{height} must be positive")
        if not periodic_output and (width < n or height < n):
            raise ConfigurationError(
                f"Non-periodic output {width}x{height} is smaller than the "
                f"{n}x{n} pattern size"
            )
        if propagator.pattern_count != len(pattern_set):
            raise ConfigurationError(
                "Propagator was built for a different pattern set "
                f"({propagator.pattern_count} != {len(pattern_set)} patterns)"
            )
        if ground is not None and not 0 <= ground < len(pattern_set):
            raise ConfigurationError(
                f"Ground pattern {ground} out of range for {len(pattern_set)} patterns"
            )

        self.pattern_set = pattern_set
        self.propagator = propagator
        self.n = n
        self.width = width
        self.height = height
        self.periodic = periodic_output
        self.rng = rng
        self.ground = ground
        self.constraints = list(constraints)
        self.backtrack_limit = backtrack_limit
        self.diagnostic_hook = diagnostic_hook

        # Wave grid dimensions
        self.fmx = width if periodic_output else width - n + 1
        self.fmy = height if periodic_output else height - n + 1
        self.cell_count = self.fmx * self.fmy
        self.pattern_count = len(pattern_set)

        self.weights = pattern_set.weights
        self.weight_log_weights = self.weights * np.log(self.weights)
        self._starting_sum_of_weights = float(self.weights.sum())
        self._starting_sum_of_weight_log_weights = float(self.weight_log_weights.sum())
        self._starting_entropy = _entropy(
            self._starting_sum_of_weights, self._starting_sum_of_weight_log_weights
        )
        self._initial_support = propagator.support_counts()

        self._neighbours = self._build_neighbour_table()
        self._covering = self._build_covering_table()

        cells, patterns = self.cell_count, self.pattern_count
        self.possible = np.ones((cells, patterns), dtype=bool)
        self.compatible = np.zeros((cells, patterns, 4), dtype=np.int32)
        self.sums_of_ones = np.zeros(cells, dtype=np.int32)
        self.sums_of_weights = np.zeros(cells, dtype=np.float64)
        self.sums_of_weight_log_weights = np.zeros(cells, dtype=np.float64)
        self.entropies = np.zeros(cells, dtype=np.float64)
        self.noise = np.zeros(cells, dtype=np.float64)

        # Bans since the last clear, and the checkpoints observe() pushed
        self.backtrack_log: list[tuple[CellIndex, PatternID]] = []
        self._decisions: list[tuple[int, CellIndex, PatternID]] = []
        self._queue: list[tuple[CellIndex, PatternID]] = []
        self.backtracks = 0
        self.steps = 0
        self.status = Resolution.UNDECIDED

        for constraint in self.constraints:
            constraint.init(self)

        self.clear()

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    def _build_neighbour_table(self) -> np.ndarray:
        """(cells, 4) neighbour cell per direction, -1 past a non-periodic edge."""
        table = np.full((self.cell_count, 4), -1, dtype=np.int64)
        for y in range(self.fmy):
            for x in range(self.fmx):
                for direction in range(4):
                    nx, ny = x + DX[direction], y + DY[direction]
                    if self.periodic:
                        nx %= self.fmx
                        ny %= self.fmy
                    elif not (0 <= nx < self.fmx and 0 <= ny < self.fmy):
                        continue
                    table[x + y * self.fmx, direction] = nx + ny * self.fmx
        return table

    def _build_covering_table(self) -> list[list[tuple[CellIndex, int, int]]]:
        """Per output cell, the (wave cell, dx, dy) whose pattern covers it."""
        covering: list[list[tuple[CellIndex, int, int]]] = []
        for y in range(self.height):
            for x in range(self.width):
                cell_cover: list[tuple[CellIndex, int, int]] = []
                for dy in range(self.n):
                    for dx in range(self.n):
                        sx, sy = x - dx, y - dy
                        if self.periodic:
                            sx %= self.fmx
                            sy %= self.fmy
                        elif not (0 <= sx < self.fmx and 0 <= sy < self.fmy):
                            continue
                        cell_cover.append((sx + sy * self.fmx, dx, dy))
                covering.append(cell_cover)
        return covering

    def neighbour(self, cell: CellIndex, direction: int) -> CellIndex | None:
        """Wave cell one step in ``direction`` from ``cell``, if any."""
        neighbour = int(self._neighbours[cell, direction])
        return None if neighbour < 0 else neighbour

    def covering_cells(self, x: int, y: int) -> list[tuple[CellIndex, int, int]]:
        """Wave cells whose pattern covers output tile (x, y), with the offset
        of (x, y) inside that pattern."""
        return self._covering[x + y * self.width]

    def covered_output_cells(self, cell: CellIndex) -> list[CellIndex]:
        """Output cell indices (x + y * width) covered by a wave cell's pattern."""
        x, y = cell % self.fmx, cell // self.fmx
        covered: list[CellIndex] = []
        for dy in range(self.n):
            for dx in range(self.n):
                ox = (x + dx) % self.width
                oy = (y + dy) % self.height
                covered.append(ox + oy * self.width)
        return covered

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def ban(self, cell: CellIndex, pattern: PatternID) -> None:
        """Remove ``pattern`` from ``cell``.

        Does nothing if the pattern is already banned. Neighbouring patterns
        whose last support disappears are queued for propagate(). A cell left
        without patterns puts the wave into CONTRADICTION.
        """
        if not self.possible[cell, pattern]:
            return

        self.possible[cell, pattern] = False
        self.sums_of_ones[cell] -= 1
        self.sums_of_weights[cell] -= self.weights[pattern]
        self.sums_of_weight_log_weights[cell] -= self.weight_log_weights[pattern]
        self.entropies[cell] = _entropy(
            self.sums_of_weights[cell], self.sums_of_weight_log_weights[cell]
        )
        self.backtrack_log.append((cell, pattern))

        for constraint in self.constraints:
            constraint.on_ban(cell, pattern)

        for direction in range(4):
            neighbour = self._neighbours[cell, direction]
            if neighbour < 0:
                continue
            supported = self.propagator.compatible[direction][pattern]
            counts = self.compatible[neighbour, supported, direction] - 1
            self.compatible[neighbour, supported, direction] = counts
            for other in supported[counts == 0]:
                if self.possible[neighbour, other]:
                    self._queue.append((int(neighbour), int(other)))

        if self.sums_of_ones[cell] == 0:
            self.status = Resolution.CONTRADICTION

    def propagate(self) -> None:
        """Apply queued bans until the queue is empty or a contradiction."""
        while self._queue and self.status is Resolution.UNDECIDED:
            cell, pattern = self._queue.pop()
            self.ban(cell, pattern)

    def observe(self) -> None:
        """Collapse the undecided cell with the lowest entropy, then propagate."""
        undecided = self.sums_of_ones > 1
        if not undecided.any():
            return

        scores = np.where(undecided, self.entropies + self.noise, np.inf)
        cell = int(np.argmin(scores))

        candidates = np.flatnonzero(self.possible[cell])
        cumulative = np.cumsum(self.weights[candidates])
        threshold = self.rng.random() * cumulative[-1]
        position = int(np.searchsorted(cumulative, threshold, side="right"))
        chosen = int(candidates[min(position, len(candidates) - 1)])

        self._decisions.append((len(self.backtrack_log), cell, chosen))
        for pattern in candidates:
            if pattern != chosen:
                self.ban(cell, int(pattern))
        self.propagate()

    def clear(self) -> None:
        """Make every pattern possible everywhere and reapply fixed constraints."""
        self.possible.fill(True)
        self.compatible[:] = self._initial_support[np.newaxis, :, :]
        self.sums_of_ones.fill(self.pattern_count)
        self.sums_of_weights.fill(self._starting_sum_of_weights)
        self.sums_of_weight_log_weights.fill(self._starting_sum_of_weight_log_weights)
        self.entropies.fill(self._starting_entropy)
        noise_rng = np.random.default_rng(self.rng.getrandbits(64))
        self.noise = noise_rng.random(self.cell_count) * config.ENTROPY_NOISE_SCALE

        self.backtrack_log.clear()
        self._decisions.clear()
        self._queue.clear()
        self.backtracks = 0
        self.steps = 0
        self.status = Resolution.UNDECIDED

        self._ban_unsupported()
        self.propagate()
        if self.status is not Resolution.UNDECIDED:
            logger.debug("Contradiction while clearing unsupported patterns")
            return

        if self.ground is not None:
            self._apply_ground(self.ground)
            if self.status is not Resolution.UNDECIDED:
                logger.debug("Contradiction while applying ground pattern")
                return

        for constraint in self.constraints:
            constraint.on_clear()
            self.propagate()
            if self.status is not Resolution.UNDECIDED:
                logger.debug("Contradiction in on_clear of %s", constraint)
                return

    def _ban_unsupported(self) -> None:
        """Ban patterns that no pattern of an existing neighbour allows."""
        has_source = np.stack(
            [self._neighbours[:, OPPOSITE[d]] >= 0 for d in range(4)], axis=1
        )  # (cells, 4)
        unsupported = self._initial_support == 0  # (T, 4)
        doomed = (has_source[:, np.newaxis, :] & unsupported[np.newaxis, :, :]).any(
            axis=2
        )
        for cell, pattern in np.argwhere(doomed):
            self.ban(int(cell), int(pattern))

    def _apply_ground(self, ground: PatternID) -> None:
        bottom = self.fmy - 1
        for x in range(self.fmx):
            for pattern in range(self.pattern_count):
                if pattern != ground:
                    self.ban(x + bottom * self.fmx, pattern)
            for y in range(bottom):
                self.ban(x + y * self.fmx, ground)
            if self.status is not Resolution.UNDECIDED:
                return
        self.propagate()

    # -------------------------------------------------------------------------
    # Backtracking
    # -------------------------------------------------------------------------

    @property
    def decisions(self) -> list[tuple[int, CellIndex, PatternID]]:
        """Checkpoints pushed by observe() as (log length, cell, chosen pattern),
        oldest first."""
        return list(self._decisions)

    def can_backtrack(self) -> bool:
        return bool(self._decisions) and self.backtracks < self.backtrack_limit

    def backtrack(self) -> None:
        """Undo the most recent observation and ban the pattern it chose.

        Raises:
            RuntimeError: If there is no observation left to undo.
        """
        if not self._decisions:
            raise RuntimeError("No observation to backtrack to")

        log_length, cell, chosen = self._decisions.pop()
        self.backtracks += 1
        self._undo(log_length)
        self._queue.clear()
        self.status = Resolution.UNDECIDED
        logger.debug(
            "Backtrack %d: cell %d may no longer be pattern %d",
            self.backtracks,
            cell,
            chosen,
        )
        self.ban(cell, chosen)
        self.propagate()

    def _undo(self, log_length: int) -> None:
        """Revert bans in reverse order until the log has ``log_length`` entries."""
        while len(self.backtrack_log) > log_length:
            cell, pattern = self.backtrack_log.pop()
            self.possible[cell, pattern] = True
            self.sums_of_ones[cell] += 1
            self.sums_of_weights[cell] += self.weights[pattern]
            self.sums_of_weight_log_weights[cell] += self.weight_log_weights[pattern]
            self.entropies[cell] = _entropy(
                self.sums_of_weights[cell], self.sums_of_weight_log_weights[cell]
            )

            for direction in range(4):
                neighbour = self._neighbours[cell, direction]
                if neighbour < 0:
                    continue
                supported = self.propagator.compatible[direction][pattern]
                self.compatible[neighbour, supported, direction] += 1

            for constraint in self.constraints:
                constraint.on_backtrack(cell, pattern)

    def _recover(self) -> None:
        """Backtrack while in contradiction and the budget allows."""
        while self.status is Resolution.CONTRADICTION and self.can_backtrack():
            self.backtrack()

    # -------------------------------------------------------------------------
    # Run loop
    # -------------------------------------------------------------------------

    def _check_constraints(self) -> None:
        for constraint in self.constraints:
            constraint.check()
            if self.status is not Resolution.UNDECIDED:
                logger.debug("Constraint check failed: %s", constraint)
                return
            self.propagate()
            if self.status is not Resolution.UNDECIDED:
                logger.debug("Propagation after %s failed", constraint)
                return

    def step(self) -> Resolution:
        """Run one iteration of the solve loop and return the status.

        Constraint checks run before the decided test so that the bans of the
        final observation are still checked against global constraints.
        """
        if self.status is Resolution.UNDECIDED:
            self.steps += 1
            self._check_constraints()
            if self.status is Resolution.UNDECIDED:
                if bool((self.sums_of_ones == 1).all()):
                    self.status = Resolution.DECIDED
                else:
                    self.observe()

        self._recover()
        self.emit_diagnostics()
        return self.status

    def run(self, max_steps: int | None = None) -> Resolution:
        """Step until the wave is decided or in terminal contradiction.

        Args:
            max_steps: Stop early after this many steps, leaving the wave
                UNDECIDED if it has not finished.
        """
        self._recover()
        steps = 0
        while self.status is Resolution.UNDECIDED:
            if max_steps is not None and steps >= max_steps:
                break
            self.step()
            steps += 1
        return self.status

    def run_cooperatively(
        self, batch_size: int = config.WFC_STEP_BATCH_SIZE
    ) -> Iterator[Resolution]:
        """Run in batches of ``batch_size`` steps, yielding after each batch.

        Lets a host scheduler interleave other work. The final value yielded
        is the terminal status.
        """
        while True:
            status = self.run(max_steps=batch_size)
            yield status
            if status is not Resolution.UNDECIDED:
                return

    # -------------------------------------------------------------------------
    # Results and diagnostics
    # -------------------------------------------------------------------------

    @property
    def is_decided(self) -> bool:
        return self.status is Resolution.DECIDED

    def contributing_tiles(self, x: int, y: int) -> frozenset[TileIndex]:
        """Tile indices still possible at output tile (x, y)."""
        patterns = self.pattern_set.patterns
        tiles: set[TileIndex] = set()
        for cell, dx, dy in self.covering_cells(x, y):
            tiles.update(patterns[self.possible[cell], dy, dx].tolist())
        return frozenset(tiles)

    def possible_tiles(self) -> list[frozenset[TileIndex]]:
        """Per output cell (x + y * width), the tile indices still possible."""
        return [
            self.contributing_tiles(x, y)
            for y in range(self.height)
            for x in range(self.width)
        ]

    def emit_diagnostics(self, highlighted: Sequence[CellIndex] = ()) -> None:
        """Send the current possibilities to the diagnostic hook, if any."""
        if self.diagnostic_hook is not None:
            self.diagnostic_hook(self.possible_tiles(), list(highlighted))

    def observed(self) -> np.ndarray:
        """(fmy, fmx) array of the pattern chosen for every wave cell.

        Raises:
            RuntimeError: If the wave is not decided.
        """
        if not self.is_decided:
            raise RuntimeError(f"Wave is {self.status.value}, not decided")
        return np.argmax(self.possible, axis=1).reshape(self.fmy, self.fmx)

    def tile_indices(self) -> np.ndarray:
        """(height, width) array of palette indices of the decided output."""
        observed = self.observed()
        xs = np.arange(self.width)
        ys = np.arange(self.height)
        if self.periodic:
            cx, cy = xs, ys
        else:
            cx = np.minimum(xs, self.fmx - 1)
            cy = np.minimum(ys, self.fmy - 1)
        dx, dy = xs - cx, ys - cy
        pattern_grid = observed[cy[:, np.newaxis], cx[np.newaxis, :]]
        return self.pattern_set.patterns[
            pattern_grid, dy[:, np.newaxis], dx[np.newaxis, :]
        ]

    def to_grid(self) -> list[list[Tile]]:
        """Decided output as rows of tiles from the sample's palette."""
        palette = self.pattern_set.palette
        return [[palette[index] for index in row] for row in self.tile_indices().tolist()]


def _entropy(sum_of_weights: float, sum_of_weight_log_weights: float) -> float:
    """Shannon entropy of a weighted distribution from its running sums."""
    if sum_of_weights <= 0:
        return 0.0
    return float(np.log(sum_of_weights) - sum_of_weight_log_weights / sum_of_weights)
