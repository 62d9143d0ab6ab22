"""Random sampling over an active-blob mapping."""

from __future__ import annotations

import random
from collections.abc import Iterator, Sequence

from ..core.config import SAMPLE_WITH_REPLACEMENT, SAMPLE_WITHOUT_REPLACEMENT
from ..core.errors import ConfigurationError


class BlobSampler:
    """Draw up to n keys from a key sequence.

    Args:
        strategy: SAMPLE_WITH_REPLACEMENT (independent uniform draws, keys may
            repeat) or SAMPLE_WITHOUT_REPLACEMENT (distinct keys)
        rng: Random generator; a fresh unseeded one if omitted

    Invariants:
        - Exactly min(n, len(keys)) keys are produced
        - Every produced key is a member of keys
    """

    def __init__(self, strategy: str = SAMPLE_WITH_REPLACEMENT, rng: random.Random | None = None):
        if strategy not in (SAMPLE_WITH_REPLACEMENT, SAMPLE_WITHOUT_REPLACEMENT):
            raise ConfigurationError(f"Unknown sample strategy {strategy!r}")
        self.strategy = strategy
        self.rng = rng or random.Random()

    def sample(self, keys: Sequence[str], n: int) -> Iterator[str]:
        size = min(n, len(keys))
        if size <= 0:
            return

        if self.strategy == SAMPLE_WITHOUT_REPLACEMENT:
            for index in self.rng.sample(range(len(keys)), size):
                yield keys[index]
            return

        for _ in range(size):
            yield keys[self.rng.randrange(len(keys))]
