"""
bionet module: evolution/undulation.py

Undulation fitness for worm-body networks.

Muscle outputs are folded into body joints (dorsal minus ventral), and the
joint activations are examined in the frequency domain twice: across the
body at each movement, and across time at each joint. A crisp wave gives a
spectrum with one dominant peak, so peak-minus-mean dispersion is rewarded
while touched, and raw spectral energy is penalized while untouched.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from errors import ConfigurationError
from neural.behavior import Behavior
from neural.network import Network
from storage.records import RecordReader, RecordWriter

NUM_BODY_JOINTS = 12

# light touch sensors ALML, ALMR
TOUCH_SENSORS = (8, 9)

MUSCLE_NAMES = tuple(f"{quadrant}{i:02d}" for quadrant in ("MDL", "MDR", "MVL", "MVR") for i in range(1, 25))

# motor index per muscle, in MUSCLE_NAMES order; -1 = not modelled (MVL24)
MUSCLE_MOTORS = (
    48, 49, 53, 50, 0, 74, 16, 2, 20, 18, 24, 22, 28, 26, 32, 30, 36, 34, 6, 4, 8, 9, 10, 11,
    51, 52, 55, 71, 1, 75, 17, 3, 21, 19, 25, 23, 29, 27, 33, 31, 37, 35, 7, 5, 12, 13, 14, 15,
    54, 58, 44, 73, 65, 69, 66, 70, 62, 42, 39, 38, 63, 40, 80, 81, 86, 84, 88, 89, 92, 60, 93, -1,
    56, 59, 57, 45, 64, 67, 72, 68, 76, 43, 78, 77, 79, 41, 82, 83, 87, 85, 90, 91, 61, 94, 95, 96,
)


@dataclass
class UndulationLayout:
    touch_sensors: Tuple[int, ...] = TOUCH_SENSORS
    muscle_motors: Tuple[int, ...] = MUSCLE_MOTORS
    num_joints: int = NUM_BODY_JOINTS

    def __post_init__(self):
        if self.num_joints <= 0:
            raise ConfigurationError("undulation layout needs at least one joint")
        if len(self.muscle_motors) != 8 * self.num_joints:
            raise ConfigurationError(
                f"{self.num_joints} joints need {8 * self.num_joints} muscles, got {len(self.muscle_motors)}"
            )

    def joint_muscles(self, joint: int) -> Tuple[List[int], List[int]]:
        """(dorsal, ventral) positions in muscle_motors for a joint."""
        q = 2 * self.num_joints  # muscles per quadrant
        a, b = 2 * joint, 2 * joint + 1
        dorsal = [a, b, q + a, q + b]
        ventral = [2 * q + a, 2 * q + b, 3 * q + a, 3 * q + b]
        return dorsal, ventral

    def validate(self, network: Network) -> None:
        for s in self.touch_sensors:
            if not 0 <= s < network.num_sensors:
                raise ConfigurationError(f"touch sensor {s} outside {network.num_sensors} sensors")
        for m in self.muscle_motors:
            if m >= network.num_motors:
                raise ConfigurationError(f"muscle motor {m} outside {network.num_motors} motors")

    def joint_matrix(self, num_motors: int) -> np.ndarray:
        """(num_motors, num_joints) matrix folding motor outputs into joint activations."""
        fold = np.zeros((num_motors, self.num_joints))
        for j in range(self.num_joints):
            dorsal, ventral = self.joint_muscles(j)
            for pos in dorsal:
                m = self.muscle_motors[pos]
                if m != -1:
                    fold[m, j] += 1.0
            for pos in ventral:
                m = self.muscle_motors[pos]
                if m != -1:
                    fold[m, j] -= 1.0
        return fold

    def save(self, out: RecordWriter) -> None:
        out.write_int(len(self.touch_sensors))
        for s in self.touch_sensors:
            out.write_int(s)
        out.write_int(self.num_joints)
        for m in self.muscle_motors:
            out.write_int(m)

    @classmethod
    def load(cls, inp: RecordReader) -> "UndulationLayout":
        touch = tuple(inp.read_int() for _ in range(inp.read_int()))
        num_joints = inp.read_int()
        muscles = tuple(inp.read_int() for _ in range(8 * num_joints))
        return cls(touch_sensors=touch, muscle_motors=muscles, num_joints=num_joints)


def joint_activations(network: Network, layout: UndulationLayout, movements: int, touched: bool) -> np.ndarray:
    """(movements, num_joints) joint activations for a constant touch stimulus."""
    sensors = [0.0] * network.num_sensors
    if touched:
        for s in layout.touch_sensors:
            sensors[s] = 1.0
    behavior = Behavior.replay(network, [sensors] * movements)
    motors = np.asarray(behavior.motor_sequence, dtype=float).reshape(movements, network.num_motors)
    return motors @ layout.joint_matrix(network.num_motors)


def _dispersion(magnitudes: np.ndarray) -> float:
    """Mean over rows of (max - mean) of the non-DC bins."""
    bins = magnitudes[:, 1:]
    if magnitudes.shape[0] == 0 or bins.shape[1] == 0:
        return 0.0
    return float(np.mean(bins.max(axis=1) - bins.mean(axis=1)))


def _energy(magnitudes: np.ndarray) -> float:
    if magnitudes.shape[0] == 0:
        return 0.0
    return float(np.mean(magnitudes.sum(axis=1)))


def body_spectra(activations: np.ndarray) -> np.ndarray:
    return np.abs(np.fft.rfft(activations, axis=1))


def joint_spectra(activations: np.ndarray) -> np.ndarray:
    return np.abs(np.fft.rfft(activations.T, axis=1))


def undulation_fitness(network: Network, movements: int, layout: UndulationLayout) -> float:
    if movements <= 0:
        raise ConfigurationError("undulation needs at least one movement")
    touched = joint_activations(network, layout, movements, touched=True)
    fitness = _dispersion(body_spectra(touched)) * _dispersion(joint_spectra(touched))

    quiet = joint_activations(network, layout, movements, touched=False)
    energy = (_energy(body_spectra(quiet)) + _energy(joint_spectra(quiet))) / 2.0
    return fitness - energy
