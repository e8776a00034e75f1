"""Constraints that plug into the Wave Function Collapse solver.

- Constraint: Base class with the lifecycle hooks the wave calls
- BorderConstraint: Forces the outer ring of the output to one tile
- PathConstraint: Keeps all path tiles in a single connected network
"""

from .base import Constraint
from .border import BorderConstraint
from .path import PathConstraint

__all__ = [
    "BorderConstraint",
    "Constraint",
    "PathConstraint",
]
