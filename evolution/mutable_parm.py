"""
bionet module: evolution/mutable_parm.py

Bounded evolvable scalar: neuron counts, synapse propensity, weight ranges.
"""

from __future__ import annotations
from dataclasses import dataclass

from errors import ConfigurationError
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter


@dataclass
class MutableParm:
    value: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0
    max_delta: float = 0.0
    random_probability: float = -1.0  # chance of full re-randomization; < 0 disables

    def __post_init__(self):
        if self.minimum > self.maximum:
            raise ConfigurationError(f"minimum {self.minimum} exceeds maximum {self.maximum}")
        if self.max_delta < 0.0:
            raise ConfigurationError("max delta cannot be negative")
        self.value = self.clamp(self.value)

    def clamp(self, value: float) -> float:
        return max(self.minimum, min(self.maximum, value))

    def init_value(self, randomizer: RandomEngine) -> float:
        self.value = randomizer.interval(self.minimum, self.maximum)
        return self.value

    def set_value(self, value: float) -> None:
        self.value = self.clamp(value)

    def mutate(self, value: float, randomizer: RandomEngine, allow_random: bool = True) -> float:
        """
        Mutated copy of `value`: uniform in range with probability
        random_probability (when allowed), else value +/- U(0, max_delta),
        clamped.
        """
        if allow_random and randomizer.chance(self.random_probability):
            return randomizer.interval(self.minimum, self.maximum)
        if self.max_delta <= 0.0:
            return value
        delta = randomizer.interval(0.0, self.max_delta)
        if randomizer.boolean():
            return min(self.maximum, value + delta)
        return max(self.minimum, value - delta)

    def mutate_count(self, count: int, randomizer: RandomEngine, allow_random: bool = True) -> int:
        """Integer variant of mutate, used for neuron counts."""
        low, high = int(self.minimum), int(self.maximum)
        if allow_random and randomizer.chance(self.random_probability):
            return randomizer.choice(high - low + 1) + low
        step = int(self.max_delta)
        if step <= 0:
            return count
        if randomizer.boolean():
            return min(high, count + randomizer.choice(step + 1))
        return max(low, count - randomizer.choice(step + 1))

    def mutate_value(self, randomizer: RandomEngine) -> float:
        self.value = self.mutate(self.value, randomizer)
        return self.value

    def save(self, out: RecordWriter) -> None:
        out.write_float(self.value)
        out.write_float(self.minimum)
        out.write_float(self.maximum)
        out.write_float(self.max_delta)
        out.write_float(self.random_probability)

    @classmethod
    def load(cls, inp: RecordReader) -> "MutableParm":
        value = inp.read_float()
        minimum = inp.read_float()
        maximum = inp.read_float()
        max_delta = inp.read_float()
        random_probability = inp.read_float()
        return cls(value, minimum, maximum, max_delta, random_probability)
