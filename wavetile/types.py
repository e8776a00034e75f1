from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, TypeAlias

# =============================================================================
# GRID INDEX TYPES
# =============================================================================

TileIndex: TypeAlias = int  # Position of a tile in the palette
PatternID: TypeAlias = int  # Position of a pattern in the extracted pattern set
CellIndex: TypeAlias = int  # Flattened x + y * width index into a grid

# Grid steps between neighbouring cells
Direction: TypeAlias = int  # 0..3, see wavetile.generators.propagator.DX/DY

# Sample grids are rows of arbitrary tile values compared with ==
Tile: TypeAlias = Any
SampleGrid: TypeAlias = Sequence[Sequence[Tile]]

# =============================================================================
# RANDOMNESS
# =============================================================================

RandomSeed: TypeAlias = int | str | None

# =============================================================================
# SOLVER STATE
# =============================================================================


class Resolution(Enum):
    """Status of a wave. UNDECIDED is the only non-terminal state."""

    UNDECIDED = "undecided"
    DECIDED = "decided"
    CONTRADICTION = "contradiction"


# Receives, per output cell, the tile indices still possible there and a list
# of highlighted output cell indices. Purely observational.
DiagnosticHook: TypeAlias = Callable[[list[frozenset[TileIndex]], list[CellIndex]], None]
