"""Tests for the shared morph operators: evaluation, mutation, harmonization."""

import io

import pytest
from hypothesis import given, strategies as st

from evolution.fitness import BehaviorFitness
from evolution.homomorph import NetworkHomomorph
from evolution.morph import NetworkMorph
from evolution.mutable_parm import MutableParm
from neural.behavior import Behavior
from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter

from helpers import weights_in_range


def _unreachable_target(length, num_sensors=2, num_motors=2):
    # logistic output never reaches 2.0, so every motor-step misses
    return Behavior([[0.5] * num_sensors] * length, [[2.0] * num_motors] * length)


class TestEvaluation:
    def test_source_network_behaves(self, network, behaviors, weights_parm):
        morph = NetworkMorph(network.clone(), weights_parm)
        morph.evaluate_behaviors(behaviors)
        assert morph.error == 0.0
        assert morph.behaves
        assert morph.motor_errors == [False, False]

    def test_missed_targets_add_exceed_count(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm)
        morph.evaluate_behaviors([_unreachable_target(3)])
        assert not morph.behaves
        assert morph.motor_errors == [True, True]
        # mean delta in [1, 2) plus 6 exceeded motor-steps
        assert 7.0 <= morph.error < 8.0
        assert morph.error == pytest.approx(morph.mean_error + 6)

    def test_max_step_limits_scored_prefix(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm)
        morph.evaluate_behaviors([_unreachable_target(5)], max_step=0)
        assert 3.0 <= morph.error < 4.0

    def test_fitness_motors_restrict_scoring(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm)
        morph.evaluate_behaviors([_unreachable_target(2)], fitness_motors=[1])
        assert morph.motor_errors == [False, True]
        assert 3.0 <= morph.error < 4.0

    def test_evaluation_is_symmetric_across_clones(self, network, behaviors, weights_parm):
        morph = NetworkHomomorph.create(network, weights_parm, RandomEngine(4))
        other = morph.clone()
        for m in (morph, other):
            m.evaluate_behaviors(behaviors)
        assert morph.score() == other.score()

    def test_score_restore(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm)
        morph.evaluate_behaviors([_unreachable_target(2)])
        saved = morph.score()
        morph.error, morph.behaves = 0.0, True
        morph.restore_score(saved)
        assert morph.score() == saved


class TestMutation:
    @given(seed=st.integers(min_value=0, max_value=2**32 - 1))
    def test_weights_stay_in_range(self, seed):
        net = Network.create(8, 2, 2, synapse_propensity=0.3, seed=4517)
        morph = NetworkMorph(net, MutableParm(0.0, 0.0, 1.0, 0.3, 0.2))
        randomizer = RandomEngine(seed)
        for _ in range(5):
            morph.mutate_weights(randomizer)
        assert weights_in_range(net, 0.0, 1.0)

    def test_mutation_keeps_topology(self, network, weights_parm):
        morph = NetworkMorph(network.clone(), weights_parm)
        morph.mutate_weights(RandomEngine(8))
        assert morph.network.shape() == network.shape()

    def test_clone_is_independent(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm, tag=3)
        morph.offspring_count = 4
        child = morph.clone(tag=9)
        assert child.tag == 9
        assert child.offspring_count == 0
        assert child.network is not morph.network
        assert child.network.to_bytes() == morph.network.to_bytes()


class TestTargeting:
    def test_random_neuron_in_range(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm)
        morph.motor_errors = [True, False]
        randomizer = RandomEngine(2)
        picks = {morph.random_neuron(randomizer) for _ in range(100)}
        assert picks <= set(range(network.num_neurons))
        non_motor = {morph.random_neuron(randomizer, non_motor=True) for _ in range(100)}
        assert not any(network.is_motor(i) for i in non_motor)

    def test_synapse_path_follows_synapses(self, network, weights_parm):
        morph = NetworkMorph(network, weights_parm)
        randomizer = RandomEngine(6)
        owned = [id(syns) for _, _, syns in network.pairs()]
        for _ in range(20):
            path = morph.synapse_path(3, randomizer)
            assert len(path) <= 3
            assert all(syns and id(syns) in owned for syns in path)


class TestOptimize:
    @pytest.mark.parametrize("seed", [1, 2, 3, 4])
    def test_optimize_never_worsens(self, network, behaviors, weights_parm, seed):
        fitness = BehaviorFitness(behaviors)
        morph = NetworkHomomorph.create(network, weights_parm, RandomEngine(seed))
        fitness.evaluate(morph)
        before = morph.error
        morph.optimize(fitness, 4, RandomEngine(seed + 100))
        assert morph.error <= before

        # stored score matches the weights left in place
        stored = morph.score()
        fitness.evaluate(morph)
        assert morph.score() == stored
        assert weights_in_range(morph.network, 0.0, 1.0)

    def test_zero_path_length_is_noop(self, network, behaviors, weights_parm):
        morph = NetworkMorph(network.clone(), weights_parm)
        morph.optimize(BehaviorFitness(behaviors), 0, RandomEngine(1))
        assert morph.network.to_bytes() == network.to_bytes()


def test_state_round_trip(network, weights_parm):
    morph = NetworkMorph(network, weights_parm, tag=12)
    morph.evaluate_behaviors([_unreachable_target(2)])
    morph.offspring_count = 3
    buf = io.BytesIO()
    morph.save(RecordWriter(buf))
    buf.seek(0)
    restored = NetworkMorph(network, weights_parm)
    restored.load_state(RecordReader(buf))
    assert restored.tag == 12
    assert restored.offspring_count == 3
    assert restored.score() == morph.score()
