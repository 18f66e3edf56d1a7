"""
bionet module: evolution/fitness.py

Fitness evaluation strategies. A run holds exactly one of these:

- BehaviorFitness:   error against recorded target behaviors (lower is better)
- UndulationFitness: spectral undulation score (higher is better)
- SimulatorFitness:  activation error against an external model simulation

Each strategy knows how to score a morph, how to rank a population, and
how to save enough of itself to resume a run.
"""

from __future__ import annotations
from typing import List, Optional, Sequence
import logging

from errors import ConfigurationError
from evolution.simulator import Simulator
from evolution.undulation import UndulationLayout, undulation_fitness
from neural.behavior import Behavior
from storage.records import PersistenceError, RecordReader, RecordWriter

_logger = logging.getLogger(__name__)


class FitnessStrategy:
    kind = ""
    maximize = False

    def prepare(self, num_threads: int) -> None:
        """Validate and warm up before a run with num_threads workers."""

    def check_network(self, network) -> None:
        """Raise ConfigurationError if network cannot be scored by this strategy."""

    def max_behavior_step(self) -> int:
        """Last scorable step for progressive testing; -1 when not applicable."""
        return -1

    def evaluate(self, morph, max_step: int = -1, worker: int = 0) -> None:
        raise NotImplementedError

    def loss(self, morph) -> float:
        """Single number where lower is better."""
        return -morph.fitness if self.maximize else morph.error

    def rank_key(self, morph):
        if self.maximize:
            return (-morph.fitness,)
        # behaving members always rank first
        return (not morph.behaves, morph.error)

    def save(self, out: RecordWriter) -> None:
        out.write_string(self.kind)


class BehaviorFitness(FitnessStrategy):
    kind = "behavior"

    def __init__(self, behaviors: Sequence[Behavior], fitness_motors: Optional[Sequence[int]] = None):
        self.behaviors = list(behaviors)
        self.fitness_motors = sorted(set(fitness_motors)) if fitness_motors else None
        if self.fitness_motors is not None and self.behaviors:
            num_motors = max(b.num_motors for b in self.behaviors)
            bad = [k for k in self.fitness_motors if not 0 <= k < num_motors]
            if bad:
                raise ConfigurationError(f"fitness motors {bad} outside {num_motors} motors")

    def max_behavior_step(self) -> int:
        if not self.behaviors:
            return -1
        return max(len(b) for b in self.behaviors) - 1

    def evaluate(self, morph, max_step: int = -1, worker: int = 0) -> None:
        morph.evaluate_behaviors(self.behaviors, max_step, self.fitness_motors)

    def save(self, out: RecordWriter) -> None:
        super().save(out)
        motors = self.fitness_motors or []
        out.write_int(len(motors))
        for k in motors:
            out.write_int(k)


class UndulationFitness(FitnessStrategy):
    kind = "undulation"
    maximize = True

    def __init__(self, movements: int, layout: Optional[UndulationLayout] = None):
        if movements <= 0:
            raise ConfigurationError("undulation movements must be positive")
        self.movements = movements
        self.layout = layout if layout is not None else UndulationLayout()

    def check_network(self, network) -> None:
        self.layout.validate(network)

    def evaluate(self, morph, max_step: int = -1, worker: int = 0) -> None:
        morph.fitness = undulation_fitness(morph.network, self.movements, self.layout)
        morph.error = 0.0
        morph.behaves = False

    def save(self, out: RecordWriter) -> None:
        super().save(out)
        out.write_int(self.movements)
        self.layout.save(out)


class SimulatorFitness(FitnessStrategy):
    kind = "simulator"

    def __init__(self, model: Simulator, workers: Sequence[Simulator]):
        self.model = model
        self.workers = list(workers)
        self._model_ready = False

    def prepare(self, num_threads: int) -> None:
        if len(self.workers) < num_threads:
            raise ConfigurationError(
                f"{num_threads} threads need {num_threads} evaluation simulators, have {len(self.workers)}"
            )
        if not self._model_ready:
            _logger.info("running model simulation")
            self.model.run()
            self._model_ready = True

    def evaluate(self, morph, max_step: int = -1, worker: int = 0) -> None:
        sim = self.workers[worker]
        sim.import_synapse_weights(morph.network)
        sim.run()
        total, average = sim.activation_delta(self.model)
        morph.error = total
        morph.mean_error = average
        morph.behaves = False


def load_fitness(
    inp: RecordReader,
    behaviors: Optional[Sequence[Behavior]] = None,
    simulators: Optional[List[Simulator]] = None,
) -> FitnessStrategy:
    """
    Rebuild a saved strategy. Behaviors and simulators are not saved with a
    run; the caller supplies them again.
    """
    kind = inp.read_string()
    if kind == BehaviorFitness.kind:
        motors = [inp.read_int() for _ in range(inp.read_int())]
        if behaviors is None:
            raise PersistenceError("behavior fitness run needs its behaviors to resume")
        return BehaviorFitness(behaviors, motors or None)
    if kind == UndulationFitness.kind:
        movements = inp.read_int()
        return UndulationFitness(movements, UndulationLayout.load(inp))
    if kind == SimulatorFitness.kind:
        if not simulators:
            raise PersistenceError("simulator fitness run needs a model and evaluation simulators to resume")
        return SimulatorFitness(simulators[0], simulators[1:])
    raise PersistenceError(f"unknown fitness kind {kind!r}")
