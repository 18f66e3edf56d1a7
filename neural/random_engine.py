"""
bionet module: neural/random_engine.py

Seedable Mersenne Twister source with a snapshot stack.

Every stochastic decision in network construction and morphogenesis draws
from an explicit RandomEngine instance, never from the module-level
`random` state, so runs are reproducible from a seed and can be saved and
resumed mid-run.
"""

from __future__ import annotations
from typing import List, Tuple
import random

from storage.records import PersistenceError, RecordReader, RecordWriter


class RandomEngine:
    def __init__(self, seed: int = 0):
        self.seed = seed
        self._rng = random.Random(seed)
        self._stack: List[Tuple] = []

    # ---- draws ----

    def rand(self) -> int:
        """Raw 32-bit draw."""
        return self._rng.getrandbits(32)

    def prob(self) -> float:
        """Uniform in [0, 1)."""
        return self._rng.random()

    def interval(self, low: float, high: float) -> float:
        return low + (high - low) * self._rng.random()

    def chance(self, p: float) -> bool:
        return self._rng.random() < p

    def choice(self, n: int) -> int:
        """Uniform integer in [0, n)."""
        return self._rng.randrange(n)

    def boolean(self) -> bool:
        return self._rng.getrandbits(1) == 1

    def shuffle(self, items: list) -> None:
        self._rng.shuffle(items)

    # ---- state ----

    def push(self) -> None:
        self._stack.append(self._rng.getstate())

    def pop(self) -> None:
        self._rng.setstate(self._stack.pop())

    def clone(self) -> "RandomEngine":
        other = RandomEngine(self.seed)
        other._rng.setstate(self._rng.getstate())
        other._stack = list(self._stack)
        return other

    def spawn(self) -> "RandomEngine":
        """Independent engine seeded from the next draw of this one."""
        return RandomEngine(self.rand())

    def save(self, out: RecordWriter) -> None:
        version, internal, gauss_next = self._rng.getstate()
        out.write_int(self.seed)
        out.write_int(version)
        out.write_int(len(internal))
        for word in internal:
            out.write_int(word)
        out.write_bool(gauss_next is not None)
        out.write_float(gauss_next if gauss_next is not None else 0.0)

    def load(self, inp: RecordReader) -> None:
        self.seed = inp.read_int()
        version = inp.read_int()
        size = inp.read_int()
        internal = tuple(inp.read_int() for _ in range(size))
        has_gauss = inp.read_bool()
        gauss_next = inp.read_float()
        try:
            self._rng.setstate((version, internal, gauss_next if has_gauss else None))
        except (TypeError, ValueError) as err:
            raise PersistenceError(f"bad random state: {err}") from err
        self._stack = []

    @classmethod
    def from_records(cls, inp: RecordReader) -> "RandomEngine":
        engine = cls()
        engine.load(inp)
        return engine
