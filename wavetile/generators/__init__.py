"""Sample-driven grid generation for wavetile.

This package provides an overlapping-model Wave Function Collapse engine:
- extract_patterns: Weighted N x N patterns from a sample grid
- build_propagator: Which patterns may sit next to each other
- Wave: The solver state machine for one attempt
- OverlappingGenerator: Retrying driver producing finished grids

And pluggable constraints:
- BorderConstraint: Forces the outer ring to one tile
- PathConstraint: Keeps path tiles connected
"""

from .constraints import BorderConstraint, Constraint, PathConstraint
from .errors import ConfigurationError, GenerationFailed
from .generate import GenerationResult, GenerationSettings, OverlappingGenerator
from .patterns import Palette, PatternSet, extract_patterns
from .propagator import Propagator, build_propagator
from .wave import Wave

__all__ = [
    "BorderConstraint",
    "ConfigurationError",
    "Constraint",
    "GenerationFailed",
    "GenerationResult",
    "GenerationSettings",
    "OverlappingGenerator",
    "Palette",
    "PathConstraint",
    "PatternSet",
    "Propagator",
    "Wave",
    "build_propagator",
    "extract_patterns",
]
