"""Injectable random sources for board draws and symbol effects.

Resolvers never touch the global `random` module; every draw goes through an
RNGBase handed in by the caller so tests can replay exact sequences.
"""
import hashlib
import random
import secrets
from abc import ABC, abstractmethod
from typing import Sequence, TypeVar

T = TypeVar("T")


def seed_to_int(label: str) -> int:
    """Derive a 31-bit integer seed from a string label."""
    return int(hashlib.sha256(label.encode()).hexdigest(), 16) % (2**31)


class RNGBase(ABC):
    """Random source: a uniform float and an inclusive integer range."""

    @abstractmethod
    def random(self) -> float:
        """Return random float in [0, 1)."""
        pass

    @abstractmethod
    def randint(self, a: int, b: int) -> int:
        """Return random int in [a, b] inclusive."""
        pass

    def choice(self, items: Sequence[T]) -> T:
        """Pick one item uniformly; consumes exactly one randint draw."""
        return items[self.randint(0, len(items) - 1)]


class ProductionRNG(RNGBase):
    """OS entropy source, no fixed seed."""

    def random(self) -> float:
        return secrets.randbelow(2**32) / (2**32)

    def randint(self, a: int, b: int) -> int:
        return secrets.randbelow(b - a + 1) + a


class SeededRNG(RNGBase):
    """
    Simulation RNG.

    Deterministic for a given seed; `from_label` accepts the string seeds
    used on the audit command line.
    """

    def __init__(self, seed: int):
        self._rng = random.Random(seed)
        self.seed = seed

    @classmethod
    def from_label(cls, label: str) -> "SeededRNG":
        return cls(seed_to_int(label))

    def random(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)
