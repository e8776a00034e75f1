"""Exceptions raised by the pattern synthesis engine.

A contradiction inside a single attempt is not an error and is reported as
``Resolution.CONTRADICTION``. Only bad input and exhausted retries raise.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised eagerly when a sample, setting or constraint cannot be used.

    Examples are ragged sample rows, a window larger than a non-periodic
    sample, or a constraint naming a tile the sample never contains.
    """


class GenerationFailed(Exception):
    """Raised when every allowed attempt ended in a contradiction.

    This means generation is likely infeasible with the configuration,
    as opposed to a single unlucky seed.
    """

    def __init__(self, attempts: int, seed: object = None) -> None:
        self.attempts = attempts
        self.seed = seed
        super().__init__(
            f"All {attempts} generation attempts ended in contradiction "
            f"(seed={seed!r})"
        )
