"""
bionet module: evolution/morph.py

NetworkMorph: one population member. Owns a network plus its score, and
implements the operators shared by both families:
- behavior evaluation (error, per-motor errors, behaves flag)
- weight mutation
- harmonization: hill-climbing a short synapse path over a 3^k grid
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Set
import copy
import itertools

import config
from evolution.mutable_parm import MutableParm
from neural.behavior import Behavior
from neural.network import Network
from neural.random_engine import RandomEngine
from neural.synapse import Synapse
from storage.records import RecordReader, RecordWriter


class NetworkMorph:
    def __init__(self, network: Network, synapse_weights: MutableParm, tag: int = 0):
        self.network = network
        self.synapse_weights = synapse_weights
        self.tag = tag
        self.error = 0.0
        self.mean_error = 0.0
        self.fitness = 0.0
        self.motor_errors: List[bool] = [False] * network.num_motors
        self.behaves = False
        self.offspring_count = 0

    def clone(self, tag: Optional[int] = None) -> "NetworkMorph":
        other = copy.copy(self)
        other.network = self.network.clone()
        other.synapse_weights = copy.copy(self.synapse_weights)
        other.motor_errors = list(self.motor_errors)
        other.offspring_count = 0
        if tag is not None:
            other.tag = tag
        return other

    def mutate(self, randomizer: RandomEngine) -> None:
        raise NotImplementedError

    # ---- evaluation ----

    def evaluate_behaviors(
        self,
        behaviors: Sequence[Behavior],
        max_step: int = -1,
        fitness_motors: Optional[Sequence[int]] = None,
    ) -> None:
        """
        error = mean |target - test| over scored motor-steps, plus one for
        every motor-step whose delta exceeds MAX_ERROR_TOLERANCE.
        """
        self.error = 0.0
        self.motor_errors = [False] * self.network.num_motors
        self.behaves = True
        wanted: Optional[Set[int]] = set(fitness_motors) if fitness_motors else None
        count = 0
        exceed = 0
        for target in behaviors:
            steps = len(target)
            if max_step != -1 and max_step + 1 < steps:
                steps = max_step + 1
            test = Behavior.replay(self.network, target.sensor_sequence[:steps])
            for t in range(steps):
                for k, (want, got) in enumerate(zip(target.motor_sequence[t], test.motor_sequence[t])):
                    if wanted is not None and k not in wanted:
                        continue
                    delta = abs(want - got)
                    if delta > config.MAX_ERROR_TOLERANCE:
                        exceed += 1
                        self.behaves = False
                        self.motor_errors[k] = True
                    self.error += delta
                    count += 1
        if count > 0:
            self.error /= count
        self.mean_error = self.error
        self.error += exceed

    def score(self):
        return (self.error, self.mean_error, self.fitness, list(self.motor_errors), self.behaves)

    def restore_score(self, score) -> None:
        self.error, self.mean_error, self.fitness, motor_errors, self.behaves = score
        self.motor_errors = list(motor_errors)

    # ---- weight mutation ----

    def mutate_weights(self, randomizer: RandomEngine) -> None:
        parm = self.synapse_weights
        for syn in self.network.all_synapses():
            if not self.behaves and randomizer.chance(parm.random_probability):
                syn.weight = randomizer.interval(parm.minimum, parm.maximum)
            else:
                syn.weight = parm.mutate(syn.weight, randomizer, allow_random=False)

    # ---- targeting ----

    def motor_connections(self) -> List[Set[int]]:
        return self.network.motor_connections()

    def random_neuron(self, randomizer: RandomEngine, non_motor: bool = False) -> int:
        """
        Half the time, a neuron feeding a motor that missed its target;
        otherwise any neuron.
        """
        net = self.network
        candidates: Set[int] = set()
        if any(self.motor_errors):
            for k, connections in enumerate(self.motor_connections()):
                if self.motor_errors[k]:
                    candidates |= connections
        pool = range(net.num_neurons)
        if non_motor:
            candidates = {c for c in candidates if not net.is_motor(c)}
            pool = [i for i in range(net.num_neurons) if not net.is_motor(i)]
        if candidates and randomizer.boolean():
            ordered = sorted(candidates)
            return ordered[randomizer.choice(len(ordered))]
        return pool[randomizer.choice(len(pool))]

    # ---- harmonization ----

    def synapse_path(self, path_length: int, randomizer: RandomEngine) -> List[List[Synapse]]:
        """Walk up to path_length hops from a random neuron, toward motors or sensors."""
        net = self.network
        n = net.num_neurons
        i = self.random_neuron(randomizer)
        if net.is_sensor(i):
            forward = True
        elif net.is_motor(i):
            forward = False
        else:
            forward = randomizer.boolean()
        path: List[List[Synapse]] = []
        for _ in range(path_length):
            k = randomizer.choice(n)
            for _ in range(n):
                syns = net.synapses[i][k] if forward else net.synapses[k][i]
                if syns:
                    break
                k = (k + 1) % n
            else:
                break
            path.append(syns)
            i = k
        return path

    def optimize(self, fitness, path_length: int, randomizer: RandomEngine, max_step: int = -1, worker: int = 0) -> None:
        """
        Try every combination of {w, w - d, w + d} along a synapse path and
        keep the best. The current weights are one of the combinations, so
        the score never gets worse.
        """
        if path_length <= 0:
            return
        path = self.synapse_path(path_length, randomizer)
        if not path:
            return
        parm = self.synapse_weights
        original = [[syn.weight for syn in syns] for syns in path]
        triples = []
        for syns in path:
            w = syns[0].weight
            lower = max(parm.minimum, w - randomizer.interval(0.0, parm.max_delta))
            upper = min(parm.maximum, w + randomizer.interval(0.0, parm.max_delta))
            triples.append((w, lower, upper))

        def apply(index, combination):
            if index == 0:
                for syns, weights in zip(path, original):
                    for syn, w in zip(syns, weights):
                        syn.weight = w
            else:
                for syns, w in zip(path, combination):
                    for syn in syns:
                        syn.weight = w

        best_index, best_combination, best_loss, best_score = 0, None, None, None
        for index, combination in enumerate(itertools.product(*triples)):
            apply(index, combination)
            fitness.evaluate(self, max_step, worker)
            loss = fitness.loss(self)
            if best_loss is None or loss < best_loss:
                best_index, best_combination, best_loss, best_score = index, combination, loss, self.score()
        apply(best_index, best_combination)
        self.restore_score(best_score)

    # ---- persistence ----

    def save(self, out: RecordWriter) -> None:
        out.write_int(self.tag)
        out.write_float(self.error)
        out.write_float(self.mean_error)
        out.write_float(self.fitness)
        out.write_int(len(self.motor_errors))
        for bad in self.motor_errors:
            out.write_bool(bad)
        out.write_bool(self.behaves)
        out.write_int(self.offspring_count)

    def load_state(self, inp: RecordReader) -> None:
        self.tag = inp.read_int()
        self.error = inp.read_float()
        self.mean_error = inp.read_float()
        self.fitness = inp.read_float()
        self.motor_errors = [inp.read_bool() for _ in range(inp.read_int())]
        self.behaves = inp.read_bool()
        self.offspring_count = inp.read_int()
