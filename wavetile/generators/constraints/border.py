"""Constraint forcing the outer ring of the output to one tile."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wavetile.generators.constraints.base import Constraint
from wavetile.types import Tile

if TYPE_CHECKING:
    from wavetile.generators.patterns import PatternSet
    from wavetile.generators.wave import Wave


class BorderConstraint(Constraint):
    """Every tile on the edge of the output must be ``border_tile``.

    Applied once at clear: each wave cell covering an edge tile loses every
    pattern that places a different tile there. Nothing is tracked afterwards.
    """

    def __init__(self, border_tile: Tile) -> None:
        super().__init__()
        self.border_tile = border_tile
        self._border_index = -1

    def validate(self, pattern_set: PatternSet) -> None:
        pattern_set.palette.index_of(self.border_tile)

    def init(self, wave: Wave) -> None:
        super().init(wave)
        self._border_index = wave.pattern_set.palette.index_of(self.border_tile)

    def on_clear(self) -> None:
        wave = self.wave
        patterns = wave.pattern_set.patterns

        for y in range(wave.height):
            for x in range(wave.width):
                if 0 < x < wave.width - 1 and 0 < y < wave.height - 1:
                    continue
                for cell, dx, dy in wave.covering_cells(x, y):
                    for pattern in np.flatnonzero(
                        patterns[:, dy, dx] != self._border_index
                    ):
                        wave.ban(cell, int(pattern))

    def __repr__(self) -> str:
        return f"BorderConstraint({self.border_tile!r})"
