"""
bionet module: evolution/isomorphogenesis.py

Isomorphic morphogenesis: search over topologies as well as weights.
Offspring are mutated clones of random members (no crossover; members do
not share a topology).
"""

from __future__ import annotations
import copy

import config
from errors import ConfigurationError
from evolution.fitness import FitnessStrategy
from evolution.genesis import MorphoGenesis
from evolution.isomorph import NetworkIsomorph
from evolution.mutable_parm import MutableParm
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter


class IsomorphoGenesis(MorphoGenesis):
    FORMAT = 1

    def __init__(
        self,
        fitness: FitnessStrategy,
        num_sensors: int,
        num_motors: int,
        excitatory_neurons: MutableParm,
        inhibitory_neurons: MutableParm,
        synapse_propensities: MutableParm,
        synapse_weights: MutableParm,
        population_size: int,
        num_offspring: int,
        parent_longevity: int = -1,
        behave_quorum: int = -1,
        behave_quorum_max_generations: int = -1,
        mutation_rate: float = 1.0,
        synapse_optimized_path_length: int = 0,
        random_seed: int = config.DEFAULT_RANDOM_SEED,
        populate: bool = True,
    ):
        if num_sensors <= 0 or num_motors <= 0:
            raise ConfigurationError("isomorphs need at least one sensor and one motor")
        if synapse_propensities.minimum <= 0.0:
            raise ConfigurationError("minimum synapse propensity must be positive")
        if excitatory_neurons.minimum < 0 or inhibitory_neurons.minimum < 0:
            raise ConfigurationError("neuron counts cannot be negative")
        super().__init__(
            fitness,
            population_size,
            num_offspring,
            parent_longevity=parent_longevity,
            behave_quorum=behave_quorum,
            behave_quorum_max_generations=behave_quorum_max_generations,
            mutation_rate=mutation_rate,
            synapse_optimized_path_length=synapse_optimized_path_length,
            random_seed=random_seed,
        )
        self.num_sensors = num_sensors
        self.num_motors = num_motors
        self.excitatory_neurons = excitatory_neurons
        self.inhibitory_neurons = inhibitory_neurons
        self.synapse_propensities = synapse_propensities
        self.synapse_weights = synapse_weights
        if populate:
            self.populate()

    def _new_member(self, randomizer: RandomEngine, tag: int) -> NetworkIsomorph:
        parms = [
            copy.copy(p)
            for p in (self.excitatory_neurons, self.inhibitory_neurons, self.synapse_propensities, self.synapse_weights)
        ]
        for parm in parms[:3]:
            parm.init_value(randomizer)
        return NetworkIsomorph.create(self.num_sensors, self.num_motors, *parms, randomizer=randomizer, tag=tag)

    def _breed(self, index: int, tag: int, randomizer: RandomEngine, worker: int) -> NetworkIsomorph:
        return self._clone_parent(randomizer.choice(self.population_size), tag)

    def _save_settings(self, out: RecordWriter) -> None:
        out.write_int(self.num_sensors)
        out.write_int(self.num_motors)
        for parm in (self.excitatory_neurons, self.inhibitory_neurons, self.synapse_propensities, self.synapse_weights):
            parm.save(out)

    @classmethod
    def _load_settings(cls, inp: RecordReader) -> dict:
        return dict(
            num_sensors=inp.read_int(),
            num_motors=inp.read_int(),
            excitatory_neurons=MutableParm.load(inp),
            inhibitory_neurons=MutableParm.load(inp),
            synapse_propensities=MutableParm.load(inp),
            synapse_weights=MutableParm.load(inp),
        )

    def _load_member(self, inp: RecordReader) -> NetworkIsomorph:
        return NetworkIsomorph.load(inp)
