from __future__ import annotations

import random

import pytest

from tests.helpers import CROSS_SAMPLE
from wavetile.generators.patterns import PatternSet, extract_patterns
from wavetile.generators.propagator import Propagator, build_propagator


@pytest.fixture
def cross_patterns() -> PatternSet:
    """Patterns of the cross sample with N=3 and all 8 symmetries."""
    return extract_patterns(CROSS_SAMPLE, 3, symmetry=8)


@pytest.fixture
def cross_propagator(cross_patterns: PatternSet) -> Propagator:
    return build_propagator(cross_patterns.patterns)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
