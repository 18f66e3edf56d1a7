"""
bionet module: neural/neuron.py

Neuron primitives. A neuron's role is not stored: it follows from its
index within the owning network (sensors first, then motors, then
interneurons).
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import math

import config


class NeuronType(Enum):
    SENSOR = 0
    MOTOR = 1
    INTERNEURON = 2


class ActivationFunction(Enum):
    LINEAR = 0
    LOGISTIC = 1


def neuron_type(index: int, num_sensors: int, num_motors: int) -> NeuronType:
    if index < num_sensors:
        return NeuronType.SENSOR
    if index < num_sensors + num_motors:
        return NeuronType.MOTOR
    return NeuronType.INTERNEURON


def logistic(x: float) -> float:
    x = x * config.LOGISTIC_GAIN + config.LOGISTIC_SHIFT
    # exp overflows past ~709
    if x < -700.0:
        return 0.0
    return 1.0 / (1.0 + math.exp(-x))


@dataclass
class Neuron:
    index: int
    excitatory: bool = True
    function: ActivationFunction = ActivationFunction.LOGISTIC
    bias: float = 0.0        # sensor input or constant drive
    activation: float = 0.0
    label: str = ""          # external name, e.g. a c302 cell

    def squash(self, x: float) -> float:
        if self.function == ActivationFunction.LOGISTIC:
            return logistic(x)
        return x

    def copy_state(self, other: "Neuron") -> None:
        self.excitatory = other.excitatory
        self.function = other.function
        self.bias = other.bias
        self.activation = other.activation
