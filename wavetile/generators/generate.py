"""Sample-driven grid generation with retries.

The generator validates its inputs and builds the pattern set and propagator
once. Each attempt then gets a fresh wave, fresh constraints and its own
random stream derived from the master seed. A contradiction only costs an
attempt; when every attempt contradicts, GenerationFailed is raised.

Usage:
    settings = GenerationSettings(width=30, height=30, n=3, symmetry=8)
    generator = OverlappingGenerator(
        sample,
        settings,
        constraints=lambda: [BorderConstraint("w"), PathConstraint(["r"])],
    )
    result = generator.generate(seed=42)
    result.grid  # rows of tiles
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias

import numpy as np

from wavetile import config
from wavetile.generators.constraints.base import Constraint
from wavetile.generators.errors import ConfigurationError, GenerationFailed
from wavetile.generators.patterns import extract_patterns
from wavetile.generators.propagator import build_propagator
from wavetile.generators.wave import Wave
from wavetile.types import (
    DiagnosticHook,
    PatternID,
    RandomSeed,
    SampleGrid,
    Tile,
)
from wavetile.util.rng import RNG, RNGProvider

logger = logging.getLogger(__name__)

# Builds the constraints for one attempt. Constraints keep per-wave state, so
# every attempt needs new instances.
ConstraintFactory: TypeAlias = Callable[[], Sequence[Constraint]]


@dataclass(frozen=True)
class GenerationSettings:
    """Construction-time configuration of a generator.

    Attributes:
        width: Output width in tiles.
        height: Output height in tiles.
        n: Pattern window size.
        periodic_input: Whether sample windows wrap around its edges.
        periodic_output: Whether the output wraps around its edges.
        symmetry: Number of rotation/reflection variants per window.
        ground: Pattern id forced along the bottom row (negative values
            count from the end), or None.
        ground_tile: Alternative to ``ground``: the tile whose uniform
            pattern is used as ground.
        max_attempts: Seeds tried before generation fails.
        backtrack_limit: Observations each attempt may undo.
    """

    width: int
    height: int
    n: int = config.DEFAULT_PATTERN_SIZE
    periodic_input: bool = False
    periodic_output: bool = False
    symmetry: int = config.DEFAULT_SYMMETRY
    ground: PatternID | None = None
    ground_tile: Tile | None = None
    max_attempts: int = config.WFC_MAX_ATTEMPTS
    backtrack_limit: int = config.WFC_BACKTRACK_LIMIT

    def validate(self) -> None:
        """Raise ConfigurationError for settings no sample can satisfy."""
        if self.width < 1 or self.height < 1:
            raise ConfigurationError(
                f"Output size {self.width}x{self.height} must be positive"
            )
        if not self.periodic_output and (self.width < self.n or self.height < self.n):
            raise ConfigurationError(
                f"Non-periodic output {self.width}x{self.height} is smaller than "
                f"the {self.n}x{self.n} pattern size"
            )
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.backtrack_limit < 0:
            raise ConfigurationError(
                f"backtrack_limit must not be negative, got {self.backtrack_limit}"
            )


@dataclass
class GenerationResult:
    """A fully decided output grid.

    Attributes:
        grid: Rows of tiles from the sample's palette.
        tile_indices: (height, width) array of palette indices.
        attempts: Number of attempts used, including the successful one.
        seed: Master seed the attempt streams were derived from.
        wave: The decided wave, for inspection.
    """

    grid: list[list[Tile]]
    tile_indices: np.ndarray
    attempts: int
    seed: RandomSeed
    wave: Wave


class OverlappingGenerator:
    """Generates grids that locally resemble a sample."""

    def __init__(
        self,
        sample: SampleGrid,
        settings: GenerationSettings,
        constraints: ConstraintFactory | None = None,
        diagnostic_hook: DiagnosticHook | None = None,
    ) -> None:
        """Validate the configuration and precompute patterns.

        Args:
            sample: Rows of tiles to imitate.
            settings: Output size and solver options.
            constraints: Factory for the constraints of each attempt.
            diagnostic_hook: Optional observer passed to every wave.

        Raises:
            ConfigurationError: For any invalid input, before any solving.
        """
        settings.validate()
        self.settings = settings
        self.pattern_set = extract_patterns(
            sample,
            settings.n,
            periodic_input=settings.periodic_input,
            symmetry=settings.symmetry,
        )
        self.ground = self.pattern_set.resolve_ground(
            settings.ground, settings.ground_tile
        )
        self.propagator = build_propagator(self.pattern_set.patterns)
        self._constraints = constraints
        self.diagnostic_hook = diagnostic_hook

        for constraint in self._build_constraints():
            constraint.validate(self.pattern_set)

    def _build_constraints(self) -> list[Constraint]:
        if self._constraints is None:
            return []
        return list(self._constraints())

    def create_wave(self, rng: RNG) -> Wave:
        """Build a cleared wave with fresh constraints for one attempt."""
        return Wave(
            self.pattern_set,
            self.propagator,
            self.settings.width,
            self.settings.height,
            rng=rng,
            periodic_output=self.settings.periodic_output,
            ground=self.ground,
            constraints=self._build_constraints(),
            backtrack_limit=self.settings.backtrack_limit,
            diagnostic_hook=self.diagnostic_hook,
        )

    def attempt(self, rng: RNG) -> Wave:
        """Run a single attempt to completion.

        Returns:
            The wave, either DECIDED or in terminal CONTRADICTION.
        """
        wave = self.create_wave(rng)
        wave.run()
        return wave

    def generate(self, seed: RandomSeed = config.RANDOM_SEED) -> GenerationResult:
        """Generate a grid, retrying with fresh streams on contradiction.

        Args:
            seed: Master seed; attempt k uses the stream "wfc.attempt.k".

        Raises:
            GenerationFailed: If every attempt ended in contradiction.
        """
        provider = RNGProvider(seed)
        for attempt in range(self.settings.max_attempts):
            start = time.perf_counter()
            wave = self.attempt(provider.get(f"wfc.attempt.{attempt}"))
            elapsed_ms = (time.perf_counter() - start) * 1000.0

            if wave.is_decided:
                logger.info(
                    "Generated %dx%d grid on attempt %d in %.1fms "
                    "(%d patterns, %d backtracks)",
                    self.settings.width,
                    self.settings.height,
                    attempt + 1,
                    elapsed_ms,
                    len(self.pattern_set),
                    wave.backtracks,
                )
                return GenerationResult(
                    grid=wave.to_grid(),
                    tile_indices=wave.tile_indices(),
                    attempts=attempt + 1,
                    seed=seed,
                    wave=wave,
                )

            logger.debug(
                "Attempt %d ended in contradiction after %d steps",
                attempt + 1,
                wave.steps,
            )

        logger.warning(
            "Generation failed: %d attempts ended in contradiction (seed=%r)",
            self.settings.max_attempts,
            seed,
        )
        raise GenerationFailed(self.settings.max_attempts, seed)
