"""
Seedable random source for RoundSim.

Every random draw in the engine goes through a RandomSource so that price
paths, drifts and event selection are reproducible from a seed.
"""

import hashlib
import string
from typing import Optional, Union

import numpy as np


_SEED_ALPHABET = string.digits + string.ascii_lowercase


def seed_to_int(seed: Union[int, str]) -> int:
    """Map an integer or string seed onto a 64-bit integer seed."""
    if isinstance(seed, int):
        return seed
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class RandomSource:
    """Thin wrapper around ``numpy.random.Generator``."""

    def __init__(self, seed: Optional[Union[int, str]] = None):
        self.seed = seed
        self._rng = np.random.default_rng(None if seed is None else seed_to_int(seed))

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return float(self._rng.random())

    def uniform(self, low: float, high: float) -> float:
        return float(self._rng.uniform(low, high))

    def integers(self, low: int, high: int) -> int:
        """Uniform integer in the inclusive range [low, high]."""
        return int(self._rng.integers(low, high, endpoint=True))

    def index(self, n: int) -> int:
        """Uniform index into a sequence of length n."""
        return int(self._rng.integers(0, n))

    def token(self, length: int = 11) -> str:
        """Random base-36 string, used for round seeds."""
        picks = self._rng.integers(0, len(_SEED_ALPHABET), size=length)
        return "".join(_SEED_ALPHABET[i] for i in picks)
