"""
Configuration constants.

Centralizes the tuning values used by the pattern synthesis engine.
Organized by functional area for easy maintenance.
"""

import sys

from wavetile.types import RandomSeed

# =============================================================================
# GENERAL
# =============================================================================

# RANDOM_SEED = None
RANDOM_SEED: RandomSeed = "wavetile"

# Test environment detection
IS_TEST_ENVIRONMENT = "pytest" in sys.modules

# =============================================================================
# PATTERN EXTRACTION
# =============================================================================

# Number of the 8 rotation/reflection variants that may be included.
VALID_SYMMETRIES = (1, 2, 4, 6, 8)

DEFAULT_PATTERN_SIZE = 3
DEFAULT_SYMMETRY = 8

# =============================================================================
# WAVE FUNCTION COLLAPSE
# =============================================================================

# Upper bound of the per-cell noise added to entropy when picking the next
# cell to observe. Small enough to only break ties.
ENTROPY_NOISE_SCALE = 1e-6

# Number of fresh seeds tried before generation is reported as infeasible.
WFC_MAX_ATTEMPTS = 5

# Number of observations that may be undone per attempt before a
# contradiction becomes terminal. 0 disables backtracking.
WFC_BACKTRACK_LIMIT = 16

# Steps executed between yields when running cooperatively.
WFC_STEP_BATCH_SIZE = 64
