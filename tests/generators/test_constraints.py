"""Tests for the border and path constraints."""

from __future__ import annotations

import random

import numpy as np
import pytest

from tests.helpers import (
    CROSS_SAMPLE,
    DOTS_SAMPLE,
    FREE_SAMPLE,
    assert_locally_consistent,
    border_tiles,
    count_components,
)
from wavetile.generators import (
    BorderConstraint,
    ConfigurationError,
    GenerationSettings,
    OverlappingGenerator,
    PathConstraint,
)
from wavetile.generators.patterns import extract_patterns
from wavetile.generators.propagator import build_propagator
from wavetile.generators.wave import Wave
from wavetile.types import Resolution

# Pattern ids of FREE_SAMPLE with n=1, symmetry=1
WALL, ROAD = 0, 1


def free_line(length: int, constraint: PathConstraint) -> Wave:
    """A 1-tile-high wave over FREE_SAMPLE, where any tile may go anywhere."""
    pattern_set = extract_patterns(FREE_SAMPLE, 1, symmetry=1)
    return Wave(
        pattern_set,
        build_propagator(pattern_set.patterns),
        length,
        1,
        rng=random.Random(0),
        constraints=[constraint],
    )


class TestConstraintLifecycle:
    def test_unattached_constraint_has_no_wave(self) -> None:
        with pytest.raises(RuntimeError, match="not attached"):
            _ = BorderConstraint("w").wave

    def test_constraint_cannot_serve_two_waves(self) -> None:
        constraint = PathConstraint(["r"])
        free_line(3, constraint)
        with pytest.raises(RuntimeError, match="already attached"):
            free_line(3, constraint)

    def test_repr(self) -> None:
        assert repr(BorderConstraint("w")) == "BorderConstraint('w')"
        assert repr(PathConstraint(["r"])) == "PathConstraint(['r'])"


class TestBorderConstraint:
    """Tests for forcing the outer ring to one tile."""

    def test_unknown_border_tile(self) -> None:
        with pytest.raises(ConfigurationError, match="'x'"):
            OverlappingGenerator(
                DOTS_SAMPLE,
                GenerationSettings(width=8, height=8, n=2),
                constraints=lambda: [BorderConstraint("x")],
            )

    def test_ring_is_restricted_at_clear(self) -> None:
        pattern_set = extract_patterns(DOTS_SAMPLE, 2)
        wave = Wave(
            pattern_set,
            build_propagator(pattern_set.patterns),
            8,
            8,
            rng=random.Random(0),
            constraints=[BorderConstraint("w")],
        )
        assert wave.status is Resolution.UNDECIDED
        assert wave.contributing_tiles(0, 0) == frozenset({0})
        assert wave.contributing_tiles(7, 3) == frozenset({0})
        assert wave.contributing_tiles(3, 3) == frozenset({0, 1})

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_every_ring_tile_is_border_tile(self, seed: int) -> None:
        generator = OverlappingGenerator(
            DOTS_SAMPLE,
            GenerationSettings(width=10, height=8, n=2),
            constraints=lambda: [BorderConstraint("w")],
        )
        result = generator.generate(seed=seed)
        assert set(border_tiles(result.grid)) == {"w"}
        assert_locally_consistent(result.wave)

    def test_unsatisfiable_border(self) -> None:
        """Every cross window has an arm within reach of the edge."""
        pattern_set = extract_patterns(CROSS_SAMPLE, 3)
        wave = Wave(
            pattern_set,
            build_propagator(pattern_set.patterns),
            10,
            10,
            rng=random.Random(0),
            constraints=[BorderConstraint("w")],
        )
        assert wave.status is Resolution.CONTRADICTION
        assert wave.run() is Resolution.CONTRADICTION


class TestPathConstraintChecks:
    """Tests for single check() passes on a line of free tiles."""

    def test_requires_path_tiles(self) -> None:
        with pytest.raises(ConfigurationError):
            PathConstraint([])

    def test_unknown_path_tile(self) -> None:
        with pytest.raises(ConfigurationError, match="'x'"):
            OverlappingGenerator(
                CROSS_SAMPLE,
                GenerationSettings(width=10, height=10),
                constraints=lambda: [PathConstraint(["x"])],
            )

    def test_gap_between_path_ends_is_filled(self) -> None:
        constraint = PathConstraint(["r"])
        wave = free_line(5, constraint)
        wave.ban(0, WALL)
        wave.ban(4, WALL)

        constraint.check()

        assert wave.status is Resolution.UNDECIDED
        assert not wave.possible[:, WALL].any()
        assert constraint.forced_count == 3

    def test_unreachable_tiles_cannot_be_path(self) -> None:
        constraint = PathConstraint(["r"])
        wave = free_line(5, constraint)
        wave.ban(0, WALL)
        wave.ban(2, ROAD)

        constraint.check()

        assert wave.status is Resolution.UNDECIDED
        assert wave.possible[1].tolist() == [True, True]
        assert wave.possible[3].tolist() == [True, False]
        assert wave.possible[4].tolist() == [True, False]

    def test_disconnected_path_is_a_contradiction(self) -> None:
        constraint = PathConstraint(["r"])
        wave = free_line(5, constraint)
        wave.ban(0, WALL)
        wave.ban(4, WALL)
        wave.ban(2, ROAD)

        constraint.check()

        assert wave.status is Resolution.CONTRADICTION

    def test_no_path_tiles_required_yet(self) -> None:
        constraint = PathConstraint(["r"])
        wave = free_line(5, constraint)

        constraint.check()

        assert wave.possible.all()
        assert constraint.forced_count == 0

    def test_backtracked_bans_are_reclassified(self) -> None:
        """Undone bans mark their tiles for reclassification."""
        constraint = PathConstraint(["r"])
        wave = free_line(5, constraint)
        wave.ban(0, WALL)
        wave.step()
        wave.backtrack()

        constraint.check()

        assert wave.status is Resolution.UNDECIDED
        for cell in range(5):
            assert constraint._could_be_path[cell] == bool(wave.possible[cell, ROAD])
            assert constraint._must_be_path[cell] == (not wave.possible[cell, WALL])


class TestPathConnectivity:
    """Complete runs keep every path tile in one network."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_free_tiles_form_one_network(self, seed: int) -> None:
        generator = OverlappingGenerator(
            FREE_SAMPLE,
            GenerationSettings(width=8, height=8, n=1, symmetry=1),
            constraints=lambda: [PathConstraint(["r"])],
        )
        result = generator.generate(seed=seed)
        assert count_components(result.grid, ["r"]) == 1

    def test_isolated_dots_collapse_to_one(self) -> None:
        """Dots never touch, so only one of them can survive."""
        settings = GenerationSettings(width=12, height=12, n=2)
        unconstrained = OverlappingGenerator(DOTS_SAMPLE, settings).generate(seed=3)
        assert count_components(unconstrained.grid, ["r"]) > 1

        constrained = OverlappingGenerator(
            DOTS_SAMPLE, settings, constraints=lambda: [PathConstraint(["r"])]
        ).generate(seed=3)
        assert count_components(constrained.grid, ["r"]) <= 1
        assert_locally_consistent(constrained.wave)

    def test_border_and_path_together(self) -> None:
        generator = OverlappingGenerator(
            DOTS_SAMPLE,
            GenerationSettings(width=9, height=9, n=2),
            constraints=lambda: [BorderConstraint("w"), PathConstraint(["r"])],
        )
        result = generator.generate(seed=5)
        assert set(border_tiles(result.grid)) == {"w"}
        assert count_components(result.grid, ["r"]) <= 1
        assert set(np.unique(np.array(result.grid)).tolist()) <= {"w", "r"}
