"""
bionet module: neural/behavior.py

A behavior is a sensory-motor sequence: the sensor inputs applied at each
step and the motor activations observed right after stepping the network.

Recording always starts from a cleared network unless the caller passes
clear=False, so a behavior depends only on the network's structure and
weights, not on whatever it was doing before.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import PersistenceError, RecordReader, RecordWriter, open_records


@dataclass
class Behavior:
    sensor_sequence: List[List[float]] = field(default_factory=list)
    motor_sequence: List[List[float]] = field(default_factory=list)

    # ---- recording ----

    @classmethod
    def record(
        cls,
        network: Network,
        length: int,
        randomizer: RandomEngine,
        clear: bool = True,
        sensor_values: Optional[Sequence[float]] = None,
    ) -> "Behavior":
        """
        Drive the network for `length` steps with uniform random sensor input
        (or the fixed `sensor_values` at every step) and record its motors.
        """
        if clear:
            network.clear()
        behavior = cls()
        for _ in range(length):
            if sensor_values is None:
                sensors = [randomizer.prob() for _ in range(network.num_sensors)]
            else:
                sensors = [float(v) for v in sensor_values]
            behavior._advance(network, sensors)
        return behavior

    @classmethod
    def replay(cls, network: Network, sensor_sequence: Sequence[Sequence[float]]) -> "Behavior":
        """Drive a cleared network with a fixed sensor sequence."""
        network.clear()
        behavior = cls()
        for sensors in sensor_sequence:
            behavior._advance(network, [float(v) for v in sensors])
        return behavior

    def _advance(self, network: Network, sensors: List[float]) -> None:
        network.set_sensors(sensors)
        network.step()
        self.sensor_sequence.append(sensors)
        self.motor_sequence.append(network.motor_activations())

    # ---- shape ----

    def __len__(self) -> int:
        return len(self.sensor_sequence)

    @property
    def num_sensors(self) -> int:
        return len(self.sensor_sequence[0]) if self.sensor_sequence else 0

    @property
    def num_motors(self) -> int:
        return len(self.motor_sequence[0]) if self.motor_sequence else 0

    # ---- comparison / presentation ----

    def motor_deltas(self, target: "Behavior", tolerance: float = 0.0) -> List[Tuple[int, int, float]]:
        """(step, motor, self - target) wherever |delta| >= tolerance."""
        deltas = []
        for t, (mine, theirs) in enumerate(zip(self.motor_sequence, target.motor_sequence)):
            for k, (a, b) in enumerate(zip(mine, theirs)):
                d = a - b
                if abs(d) >= tolerance:
                    deltas.append((t, k, d))
        return deltas

    def describe(self) -> str:
        lines = ["Sensory-motor sequence:"]
        for sensors, motors in zip(self.sensor_sequence, self.motor_sequence):
            s = " ".join(f"{v:0.2f}" for v in sensors)
            m = " ".join(f"{v:0.2f}" for v in motors)
            lines.append(f"  sensors: {s}  motors: {m}")
        return "\n".join(lines)

    # ---- persistence ----

    def save(self, out: RecordWriter) -> None:
        out.write_int(len(self))
        if not self.sensor_sequence:
            return
        out.write_int(self.num_sensors)
        out.write_int(self.num_motors)
        for sensors, motors in zip(self.sensor_sequence, self.motor_sequence):
            for v in sensors:
                out.write_float(v)
            for v in motors:
                out.write_float(v)

    @classmethod
    def load(cls, inp: RecordReader) -> "Behavior":
        behavior = cls()
        n = inp.read_int()
        if n < 0:
            raise PersistenceError(f"negative behavior length {n}")
        if n == 0:
            return behavior
        num_sensors = inp.read_int()
        num_motors = inp.read_int()
        for _ in range(n):
            behavior.sensor_sequence.append([inp.read_float() for _ in range(num_sensors)])
            behavior.motor_sequence.append([inp.read_float() for _ in range(num_motors)])
        return behavior


def save_behaviors(path: str, behaviors: Sequence[Behavior], binary: bool = True) -> None:
    with open_records(path, "w", binary) as out:
        out.write_int(len(behaviors))
        for behavior in behaviors:
            behavior.save(out)


def load_behaviors(path: str, binary: bool = True) -> List[Behavior]:
    with open_records(path, "r", binary) as inp:
        count = inp.read_int()
        if count < 0:
            raise PersistenceError(f"negative behavior count {count}")
        return [Behavior.load(inp) for _ in range(count)]
