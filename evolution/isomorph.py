"""
bionet module: evolution/isomorph.py

Isomorph: a morph whose topology evolves along with its weights. Mutation
re-samples the interneuron mix and synapse density, grows or shrinks the
network to match, repairs connectivity and then perturbs weights.
"""

from __future__ import annotations
from typing import Optional
import copy

from evolution.morph import NetworkMorph
from evolution.mutable_parm import MutableParm
from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter


class NetworkIsomorph(NetworkMorph):
    def __init__(
        self,
        network: Network,
        excitatory_neurons: MutableParm,
        inhibitory_neurons: MutableParm,
        synapse_propensities: MutableParm,
        synapse_weights: MutableParm,
        tag: int = 0,
    ):
        super().__init__(network, synapse_weights, tag)
        self.excitatory_neurons = excitatory_neurons
        self.inhibitory_neurons = inhibitory_neurons
        self.synapse_propensities = synapse_propensities

    @classmethod
    def create(
        cls,
        num_sensors: int,
        num_motors: int,
        excitatory_neurons: MutableParm,
        inhibitory_neurons: MutableParm,
        synapse_propensities: MutableParm,
        synapse_weights: MutableParm,
        randomizer: RandomEngine,
        tag: int = 0,
    ) -> "NetworkIsomorph":
        """
        Random network sized by the current parameter values, with exactly
        that many excitatory and inhibitory interneurons.
        """
        num_excitatory = int(excitatory_neurons.value)
        num_inhibitory = int(inhibitory_neurons.value)
        total = num_excitatory + num_inhibitory
        network = Network.create(
            num_sensors + num_motors + total,
            num_sensors,
            num_motors,
            inhibitor_density=0.0,
            synapse_propensity=synapse_propensities.value,
            min_weight=synapse_weights.minimum,
            max_weight=synapse_weights.maximum,
            seed=randomizer.rand(),
        )
        inter = network.neurons[network.first_interneuron:]
        randomizer.shuffle(inter)
        for neuron in inter[:num_inhibitory]:
            neuron.excitatory = False
        return cls(network, excitatory_neurons, inhibitory_neurons, synapse_propensities, synapse_weights, tag)

    def clone(self, tag: Optional[int] = None) -> "NetworkIsomorph":
        other = super().clone(tag)
        other.excitatory_neurons = copy.copy(self.excitatory_neurons)
        other.inhibitory_neurons = copy.copy(self.inhibitory_neurons)
        other.synapse_propensities = copy.copy(self.synapse_propensities)
        return other

    def interneuron_counts(self):
        """(excitatory, inhibitory) interneuron counts."""
        inter = self.network.neurons[self.network.first_interneuron:]
        excitatory = sum(1 for neuron in inter if neuron.excitatory)
        return excitatory, len(inter) - excitatory

    def propensity(self) -> float:
        n = self.network.num_neurons
        return self.network.synapse_count() / float(n * n)

    def mutate(self, randomizer: RandomEngine) -> None:
        net = self.network
        weights = self.synapse_weights
        allow_random = not self.behaves

        num_excitatory, num_inhibitory = self.interneuron_counts()
        propensity = self.propensity()
        self.synapse_propensities.set_value(propensity)
        new_excitatory = self.excitatory_neurons.mutate_count(num_excitatory, randomizer, allow_random)
        new_inhibitory = self.inhibitory_neurons.mutate_count(num_inhibitory, randomizer, allow_random)
        new_propensity = self.synapse_propensities.mutate(propensity, randomizer, allow_random)

        if new_excitatory != num_excitatory or new_inhibitory != num_inhibitory:
            for _ in range(num_excitatory - new_excitatory):
                self._delete_random_interneuron(True, randomizer)
            for _ in range(num_inhibitory - new_inhibitory):
                self._delete_random_interneuron(False, randomizer)
            for _ in range(new_excitatory - num_excitatory):
                net.add_neuron(True, randomizer, self.propensity(), weights.minimum, weights.maximum)
            for _ in range(new_inhibitory - num_inhibitory):
                net.add_neuron(False, randomizer, self.propensity(), weights.minimum, weights.maximum)
            net.repair_connectivity(randomizer, weights.minimum, weights.maximum)

        if new_propensity != propensity:
            self._resample_synapses(new_propensity, randomizer)
        self.synapse_propensities.set_value(self.propensity())

        self.mutate_weights(randomizer)

    def _delete_random_interneuron(self, excitatory: bool, randomizer: RandomEngine) -> None:
        net = self.network
        candidates = [
            neuron.index for neuron in net.neurons[net.first_interneuron:] if neuron.excitatory == excitatory
        ]
        net.delete_neuron(candidates[randomizer.choice(len(candidates))])

    def _resample_synapses(self, new_propensity: float, randomizer: RandomEngine) -> None:
        net = self.network
        weights = self.synapse_weights
        n = net.num_neurons
        total = n * n
        count = net.synapse_count()
        target = int(new_propensity * total)
        if target > count:
            p = (target - count) / float(total - count)
            for i in range(n):
                for j in range(n):
                    if net.can_connect(i, j) and not net.synapses[i][j] and randomizer.chance(p):
                        net.add_synapse(i, j, randomizer.interval(weights.minimum, weights.maximum))
        elif target < count:
            p = (count - target) / float(count)
            for i, j, syns in list(net.pairs()):
                for k in range(len(syns) - 1, -1, -1):
                    if not randomizer.chance(p):
                        continue
                    removed = syns.pop(k)
                    # keep the last synapse of a pair if the network needs it
                    if not syns and not net.is_connected():
                        syns.insert(k, removed)

    # ---- persistence ----

    def save(self, out: RecordWriter) -> None:
        self.excitatory_neurons.save(out)
        self.inhibitory_neurons.save(out)
        self.synapse_propensities.save(out)
        self.synapse_weights.save(out)
        self.network.save(out)
        super().save(out)

    @classmethod
    def load(cls, inp: RecordReader) -> "NetworkIsomorph":
        excitatory = MutableParm.load(inp)
        inhibitory = MutableParm.load(inp)
        propensities = MutableParm.load(inp)
        weights = MutableParm.load(inp)
        network = Network.load(inp)
        morph = cls(network, excitatory, inhibitory, propensities, weights)
        morph.load_state(inp)
        return morph
