"""Constraint hooks for the Wave Function Collapse solver.

Constraints add rules the adjacency table cannot express. The wave calls
their hooks at fixed points of its lifecycle and never needs to know what a
constraint means:

    init(wave)                   once, when the wave is created
    on_clear()                   after every clear, followed by propagate()
    on_ban(cell, pattern)        after every ban
    on_backtrack(cell, pattern)  after every undone ban
    check()                      before every observation, followed by
                                 propagate()

A constraint may call ``wave.ban`` from on_clear() and check(), and may set
``wave.status`` to ``Resolution.CONTRADICTION`` when it cannot be satisfied.
It must not ban from on_ban() or on_backtrack(). Per-cell state belongs to the
constraint instance, so a fresh instance is needed for every wave.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

from wavetile.types import CellIndex, PatternID

if TYPE_CHECKING:
    from wavetile.generators.patterns import PatternSet
    from wavetile.generators.wave import Wave


class Constraint(abc.ABC):
    """Base class for rules observing and influencing a wave."""

    def __init__(self) -> None:
        self._wave: Wave | None = None

    @property
    def wave(self) -> Wave:
        if self._wave is None:
            raise RuntimeError(f"{type(self).__name__} is not attached to a wave")
        return self._wave

    def init(self, wave: Wave) -> None:
        """Attach to a wave and validate against its pattern set.

        Raises:
            ConfigurationError: If the constraint cannot apply to the
                wave's patterns. Subclasses raise this eagerly.
            RuntimeError: If the constraint is already attached elsewhere.
        """
        if self._wave is not None and self._wave is not wave:
            raise RuntimeError(
                f"{type(self).__name__} is already attached to another wave"
            )
        self.validate(wave.pattern_set)
        self._wave = wave

    def validate(self, pattern_set: PatternSet) -> None:  # noqa: B027
        """Check that the constraint can apply to a pattern set.

        Called eagerly by the generator before any wave is built.

        Raises:
            ConfigurationError: If the constraint names tiles or patterns the
                pattern set does not have.
        """

    @abc.abstractmethod
    def on_clear(self) -> None:
        """Reset per-cell state and apply bans that hold from the start."""

    def on_ban(self, cell: CellIndex, pattern: PatternID) -> None:  # noqa: B027
        """Called after ``pattern`` was removed from wave ``cell``."""

    def on_backtrack(self, cell: CellIndex, pattern: PatternID) -> None:  # noqa: B027
        """Called after a ban of ``pattern`` at ``cell`` was undone."""

    def check(self) -> None:  # noqa: B027
        """Enforce the constraint on the current wave, banning as needed."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
