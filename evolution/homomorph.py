"""
bionet module: evolution/homomorph.py

Homomorph: a morph locked to a reference network's topology. Only weights
(and, through crossover, copied neuron state) change.

Crossover spreads a parent's material along synapses from a seed neuron,
with the chance of following a bond decaying geometrically with hop count,
so connected circuitry tends to be inherited as a block.
"""

from __future__ import annotations
from typing import List, Optional, Set

from evolution.morph import NetworkMorph
from evolution.mutable_parm import MutableParm
from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter


class NetworkHomomorph(NetworkMorph):
    def __init__(
        self,
        network: Network,
        synapse_weights: MutableParm,
        motor_connections: Optional[List[Set[int]]] = None,
        tag: int = 0,
    ):
        super().__init__(network, synapse_weights, tag)
        # shared, read-only: every member has the reference topology
        self._motor_connections = motor_connections

    @classmethod
    def create(
        cls,
        homomorph: Network,
        synapse_weights: MutableParm,
        randomizer: RandomEngine,
        motor_connections: Optional[List[Set[int]]] = None,
        tag: int = 0,
    ) -> "NetworkHomomorph":
        """Copy of the reference topology with uniform random weights."""
        network = homomorph.clone()
        for syn in network.all_synapses():
            syn.weight = randomizer.interval(synapse_weights.minimum, synapse_weights.maximum)
        return cls(network, synapse_weights, motor_connections, tag)

    def motor_connections(self) -> List[Set[int]]:
        if self._motor_connections is None:
            self._motor_connections = self.network.motor_connections()
        return self._motor_connections

    def mutate(self, randomizer: RandomEngine) -> None:
        self.mutate_weights(randomizer)

    def save(self, out: RecordWriter) -> None:
        self.synapse_weights.save(out)
        self.network.save(out)
        super().save(out)

    @classmethod
    def load(cls, inp: RecordReader, motor_connections: Optional[List[Set[int]]] = None) -> "NetworkHomomorph":
        weights = MutableParm.load(inp)
        network = Network.load(inp)
        morph = cls(network, weights, motor_connections)
        morph.load_state(inp)
        return morph


def same_topology(a: Network, b: Network) -> bool:
    return (
        a.num_neurons == b.num_neurons
        and a.num_sensors == b.num_sensors
        and a.num_motors == b.num_motors
        and a.shape() == b.shape()
    )


def crossover(
    child: NetworkMorph,
    parent1: NetworkMorph,
    parent2: NetworkMorph,
    bond_strength: float,
    randomizer: RandomEngine,
) -> None:
    """
    Overwrite child's neuron state and weights with material from the two
    parents. All three networks must share one topology.
    """
    if not (same_topology(child.network, parent1.network) and same_topology(child.network, parent2.network)):
        raise ValueError("crossover needs homomorphic networks")
    n = child.network.num_neurons
    assigned = [False] * n
    while not all(assigned):
        j = randomizer.choice(n)
        while assigned[j]:
            j = (j + 1) % n
        parent = parent1 if randomizer.boolean() else parent2
        _inherit(child.network, parent.network, j, 0, assigned, bond_strength, randomizer)


def _inherit(
    child: Network,
    parent: Network,
    index: int,
    distance: int,
    assigned: List[bool],
    bond_strength: float,
    randomizer: RandomEngine,
) -> None:
    assigned[index] = True
    child.neurons[index].copy_state(parent.neurons[index])
    for mine, theirs in zip(child.synapses[index], parent.synapses[index]):
        for a, b in zip(mine, theirs):
            a.weight = b.weight
            a.signal = b.signal

    bond = bond_strength ** (distance + 1)
    n = child.num_neurons
    k = randomizer.choice(n)
    for _ in range(n):
        if not assigned[k] and child.synapses[index][k] and randomizer.chance(bond):
            _inherit(child, parent, k, distance + 1, assigned, bond_strength, randomizer)
        if not assigned[k] and child.synapses[k][index] and randomizer.chance(bond):
            _inherit(child, parent, k, distance + 1, assigned, bond_strength, randomizer)
        k = (k + 1) % n
