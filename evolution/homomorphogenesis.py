"""
bionet module: evolution/homomorphogenesis.py

Homomorphic morphogenesis: every member shares the reference network's
topology, so offspring can be bred by graph-walk crossover of two parents.
"""

from __future__ import annotations
import copy
import logging

import config
from errors import ConfigurationError
from evolution.fitness import FitnessStrategy
from evolution.genesis import MorphoGenesis
from evolution.homomorph import NetworkHomomorph, crossover, same_topology
from evolution.mutable_parm import MutableParm
from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter

_logger = logging.getLogger(__name__)


class HomomorphoGenesis(MorphoGenesis):
    FORMAT = 2

    def __init__(
        self,
        fitness: FitnessStrategy,
        homomorph: Network,
        synapse_weights: MutableParm,
        population_size: int,
        num_offspring: int,
        crossover_rate: float = 0.0,
        synapse_crossover_bond_strength: float = config.DEFAULT_CROSSOVER_BOND_STRENGTH,
        parent_longevity: int = -1,
        behave_quorum: int = -1,
        behave_quorum_max_generations: int = -1,
        mutation_rate: float = 1.0,
        synapse_optimized_path_length: int = config.DEFAULT_OPTIMIZED_PATH_LENGTH,
        random_seed: int = config.DEFAULT_RANDOM_SEED,
        populate: bool = True,
    ):
        if not 0.0 <= crossover_rate <= 1.0:
            raise ConfigurationError("crossover rate must be a probability")
        if not 0.0 <= synapse_crossover_bond_strength <= 1.0:
            raise ConfigurationError("crossover bond strength must be a probability")
        fitness.check_network(homomorph)
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
        self.homomorph = homomorph.clone()
        self.synapse_weights = synapse_weights
        self.crossover_rate = crossover_rate
        self.synapse_crossover_bond_strength = synapse_crossover_bond_strength
        self.motor_connections = self.homomorph.motor_connections()
        if populate:
            self.populate()

    def _new_member(self, randomizer: RandomEngine, tag: int) -> NetworkHomomorph:
        return NetworkHomomorph.create(
            self.homomorph, copy.copy(self.synapse_weights), randomizer, self.motor_connections, tag
        )

    def _breed(self, index: int, tag: int, randomizer: RandomEngine, worker: int) -> NetworkHomomorph:
        p1 = randomizer.choice(self.population_size)
        child = self._clone_parent(p1, tag)
        if randomizer.chance(self.crossover_rate):
            p2 = randomizer.choice(self.population_size - 1)
            if p2 >= p1:
                p2 += 1
            self._count_parent(p2)
            crossover(
                child,
                self.population[p1],
                self.population[p2],
                self.synapse_crossover_bond_strength,
                randomizer,
            )
            self.fitness.evaluate(child, self.behavior_step, worker)
        return child

    def merge(self, other: "HomomorphoGenesis", randomizer: RandomEngine) -> None:
        """Take each population slot from `other` on a coin flip."""
        if other.population_size != self.population_size:
            raise ConfigurationError("merged populations must be the same size")
        if not same_topology(self.homomorph, other.homomorph):
            raise ConfigurationError("merged populations must share a homomorph network")
        merged = 0
        for i in range(self.population_size):
            if randomizer.boolean():
                member = other.population[i].clone(other.population[i].tag)
                member._motor_connections = self.motor_connections
                self.population[i] = member
                merged += 1
        self.next_tag = max(self.next_tag, other.next_tag)
        self.sort()
        _logger.info("merged %d of %d members", merged, self.population_size)

    def _save_settings(self, out: RecordWriter) -> None:
        self.homomorph.save(out)
        self.synapse_weights.save(out)
        out.write_float(self.crossover_rate)
        out.write_float(self.synapse_crossover_bond_strength)

    @classmethod
    def _load_settings(cls, inp: RecordReader) -> dict:
        return dict(
            homomorph=Network.load(inp),
            synapse_weights=MutableParm.load(inp),
            crossover_rate=inp.read_float(),
            synapse_crossover_bond_strength=inp.read_float(),
        )

    def _load_member(self, inp: RecordReader) -> NetworkHomomorph:
        return NetworkHomomorph.load(inp, self.motor_connections)
