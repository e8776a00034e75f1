"""Constraint keeping all path tiles in one connected network.

Each output tile is classified from the patterns still possible over it:

    could_be_path  some covering pattern places a path tile there
    must_be_path   every covering pattern places a path tile there

Tiles that must be path form the network that has to stay connected. The
could-be-path tiles form the graph it can still connect through. A tile
whose removal from that graph separates two parts of the network is an
articulation point, so it has to become a path tile as well. Forcing it can
create new articulation points, so check() repeats until nothing changes.

Classification is refreshed lazily: bans and undone bans only mark the tiles
their pattern covers as dirty.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from wavetile.generators.constraints.base import Constraint
from wavetile.generators.errors import ConfigurationError
from wavetile.types import CellIndex, PatternID, Resolution, Tile
from wavetile.util.graph import articulation_points, grid_neighbours

if TYPE_CHECKING:
    from wavetile.generators.patterns import PatternSet
    from wavetile.generators.wave import Wave

logger = logging.getLogger(__name__)


class PathConstraint(Constraint):
    """All output tiles that are one of ``path_tiles`` must be 4-connected."""

    def __init__(self, path_tiles: Sequence[Tile]) -> None:
        super().__init__()
        if len(path_tiles) == 0:
            raise ConfigurationError("PathConstraint needs at least one path tile")
        self.path_tiles = tuple(path_tiles)

        # Per output tile state, indexed x + y * width
        self._neighbours: list[list[CellIndex]] = []
        self._could_be_path: list[bool] = []
        self._must_be_path: list[bool] = []
        self._dirty: list[bool] = []
        self._dirty_queue: list[CellIndex] = []

        # _path_at[t, dy, dx]: pattern t places a path tile at offset (dx, dy)
        self._path_at = np.zeros((0, 0, 0), dtype=bool)
        self.forced_count = 0

    def path_mask(self, pattern_set: PatternSet) -> np.ndarray:
        """Per palette index, whether the tile is a path tile.

        Raises:
            ConfigurationError: If a path tile is not in the palette.
        """
        palette = pattern_set.palette
        is_path_tile = np.zeros(len(palette), dtype=bool)
        for tile in self.path_tiles:
            is_path_tile[palette.index_of(tile)] = True
        return is_path_tile

    def validate(self, pattern_set: PatternSet) -> None:
        self.path_mask(pattern_set)

    def init(self, wave: Wave) -> None:
        super().init(wave)
        is_path_tile = self.path_mask(wave.pattern_set)
        self._path_at = is_path_tile[wave.pattern_set.patterns]
        self._neighbours = grid_neighbours(wave.width, wave.height, wave.periodic)
        self._reset()

    def _reset(self) -> None:
        count = self.wave.width * self.wave.height
        self._could_be_path = [False] * count
        self._must_be_path = [False] * count
        self._dirty = [True] * count
        self._dirty_queue = list(range(count))
        self.forced_count = 0

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def on_clear(self) -> None:
        self._reset()
        self._refresh()

    def on_ban(self, cell: CellIndex, pattern: PatternID) -> None:
        self._mark_dirty(cell)

    def on_backtrack(self, cell: CellIndex, pattern: PatternID) -> None:
        self._mark_dirty(cell)

    def _mark_dirty(self, cell: CellIndex) -> None:
        for tile in self.wave.covered_output_cells(cell):
            if not self._dirty[tile]:
                self._dirty[tile] = True
                self._dirty_queue.append(tile)

    def _refresh(self) -> None:
        """Reclassify every dirty output tile."""
        wave = self.wave
        while self._dirty_queue:
            tile = self._dirty_queue.pop()
            self._dirty[tile] = False
            x, y = tile % wave.width, tile // wave.width

            path_possible = False
            other_possible = False
            for cell, dx, dy in wave.covering_cells(x, y):
                placed = self._path_at[wave.possible[cell], dy, dx]
                if placed.any():
                    path_possible = True
                if not placed.all():
                    other_possible = True

            self._could_be_path[tile] = path_possible
            self._must_be_path[tile] = path_possible and not other_possible

    def check(self) -> None:
        wave = self.wave
        while True:
            self._refresh()

            result = articulation_points(
                self._neighbours, self._could_be_path, self._must_be_path
            )
            if result is None:
                logger.debug("Path tiles can no longer form one network")
                wave.status = Resolution.CONTRADICTION
                return

            forced = [
                tile
                for tile, is_articulation in enumerate(result.is_articulation)
                if is_articulation and not self._must_be_path[tile]
            ]
            # With a network present, tiles it cannot reach must not be path
            stranded: list[CellIndex] = []
            if any(self._must_be_path):
                stranded = [
                    tile
                    for tile, could in enumerate(self._could_be_path)
                    if could and not result.visited[tile]
                ]

            changed = False
            for tile in forced:
                changed |= self._restrict(tile, path=True)
            for tile in stranded:
                changed |= self._restrict(tile, path=False)

            if wave.status is not Resolution.UNDECIDED:
                logger.debug("Forcing path tiles caused a contradiction")
                return
            if not changed:
                return

            self.forced_count += len(forced)
            logger.debug(
                "Forced %d articulation tiles to path, %d stranded tiles off path",
                len(forced),
                len(stranded),
            )
            wave.emit_diagnostics(forced)
            wave.propagate()
            if wave.status is not Resolution.UNDECIDED:
                return

    def _restrict(self, tile: CellIndex, *, path: bool) -> bool:
        """Ban every pattern that places a path tile (or a non-path tile, when
        ``path`` is True) on ``tile``. Returns whether anything was banned."""
        wave = self.wave
        x, y = tile % wave.width, tile // wave.width
        banned = False
        for cell, dx, dy in wave.covering_cells(x, y):
            doomed = wave.possible[cell] & (self._path_at[:, dy, dx] != path)
            for pattern in np.flatnonzero(doomed):
                wave.ban(cell, int(pattern))
                banned = True
        return banned

    def __repr__(self) -> str:
        return f"PathConstraint({list(self.path_tiles)!r})"
