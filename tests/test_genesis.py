"""Tests for the generational loop, threading and run persistence."""

import os

import pytest

from errors import ConfigurationError
from evolution.fitness import BehaviorFitness
from evolution.genesis import MorphoGenesis
from evolution.homomorph import same_topology
from evolution.homomorphogenesis import HomomorphoGenesis
from evolution.isomorphogenesis import IsomorphoGenesis
from evolution.mutable_parm import MutableParm
from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import PersistenceError


class WorkerFailure(Exception):
    pass


class FailingFitness(BehaviorFitness):
    """Raises when a given worker thread evaluates."""

    def __init__(self, behaviors, failing_worker):
        super().__init__(behaviors)
        self.failing_worker = failing_worker

    def evaluate(self, morph, max_step=-1, worker=0):
        if worker == self.failing_worker:
            raise WorkerFailure(f"worker {worker}")
        super().evaluate(morph, max_step, worker)


def _isomorphs(behaviors, **kwargs):
    settings = dict(population_size=10, num_offspring=3, random_seed=4517)
    settings.update(kwargs)
    return IsomorphoGenesis(
        BehaviorFitness(behaviors),
        2,
        2,
        MutableParm(2, 1, 4, 1, 0.1),
        MutableParm(1, 0, 2, 1, 0.1),
        MutableParm(0.2, 0.1, 0.5, 0.05, 0.1),
        MutableParm(0.0, 0.0, 1.0, 0.1, 0.1),
        **settings,
    )


def _homomorphs(network, behaviors, fitness=None, **kwargs):
    settings = dict(population_size=6, num_offspring=3, crossover_rate=0.5, random_seed=4517)
    settings.update(kwargs)
    return HomomorphoGenesis(
        fitness or BehaviorFitness(behaviors),
        network,
        MutableParm(0.0, 0.0, 1.0, 0.1, 0.1),
        **settings,
    )


def _summary(genesis):
    return [(m.tag, m.error, m.behaves) for m in genesis.population]


class TestSettings:
    @pytest.mark.parametrize("population_size,num_offspring", [(5, 5), (5, 0), (0, 0), (5, 7)])
    def test_offspring_must_leave_survivors(self, behaviors, population_size, num_offspring):
        with pytest.raises(ConfigurationError):
            _isomorphs(behaviors, population_size=population_size, num_offspring=num_offspring)

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(mutation_rate=1.5),
            dict(parent_longevity=-2),
            dict(behave_quorum=20),
            dict(synapse_optimized_path_length=-1),
        ],
    )
    def test_bad_settings(self, behaviors, kwargs):
        with pytest.raises(ConfigurationError):
            _isomorphs(behaviors, **kwargs)

    def test_propensity_floor_must_be_positive(self, behaviors):
        with pytest.raises(ConfigurationError):
            IsomorphoGenesis(
                BehaviorFitness(behaviors),
                2,
                2,
                MutableParm(2, 1, 4, 1),
                MutableParm(1, 0, 2, 1),
                MutableParm(0.2, 0.0, 0.5, 0.05),
                MutableParm(0.0, 0.0, 1.0, 0.1),
                10,
                3,
            )

    def test_bad_run_arguments(self, behaviors):
        genesis = _isomorphs(behaviors)
        with pytest.raises(ConfigurationError):
            genesis.morph(-1)
        with pytest.raises(ConfigurationError):
            genesis.morph(1, num_threads=0)


class TestIsomorphoGenesis:
    def test_best_error_never_increases(self, behaviors):
        genesis = _isomorphs(behaviors)
        assert len(genesis.population) == 10
        history = []
        for _ in range(5):
            genesis.morph(1)
            assert len(genesis.population) == 10
            history.append(genesis.best().error)
        assert genesis.generation == 5
        assert all(later <= earlier for earlier, later in zip(history, history[1:]))
        assert genesis.next_tag == 10 + 5 * 3

    def test_population_is_sorted(self, behaviors):
        genesis = _isomorphs(behaviors)
        genesis.morph(2)
        keys = [genesis.fitness.rank_key(m) for m in genesis.population]
        assert keys == sorted(keys)

    def test_members_stay_valid(self, behaviors):
        genesis = _isomorphs(behaviors, synapse_optimized_path_length=2)
        genesis.morph(3)
        for member in genesis.population:
            assert member.network.is_connected()
            assert member.network.num_sensors == 2


class TestHomomorphoGenesis:
    def test_members_share_topology(self, network, behaviors):
        genesis = _homomorphs(network, behaviors)
        genesis.morph(3)
        assert len(genesis.population) == 6
        assert all(same_topology(m.network, network) for m in genesis.population)

    def test_threaded_runs_are_reproducible(self, network, behaviors):
        runs = []
        for _ in range(2):
            genesis = _homomorphs(network, behaviors)
            genesis.morph(3, num_threads=2)
            runs.append(_summary(genesis))
        assert runs[0] == runs[1]

    def test_worker_errors_reach_the_caller(self, network, behaviors):
        genesis = _homomorphs(network, behaviors, fitness=FailingFitness(behaviors, failing_worker=1))
        with pytest.raises(WorkerFailure):
            genesis.morph(2, num_threads=2)
        assert genesis._threads == []

    def test_merge(self, network, behaviors):
        first = _homomorphs(network, behaviors, random_seed=1)
        second = _homomorphs(network, behaviors, random_seed=2)
        second.morph(1)
        first.merge(second, RandomEngine(3))
        assert len(first.population) == 6
        assert first.next_tag == second.next_tag
        keys = [first.fitness.rank_key(m) for m in first.population]
        assert keys == sorted(keys)
        assert all(same_topology(m.network, network) for m in first.population)

    def test_merge_rejects_other_sizes(self, network, behaviors):
        first = _homomorphs(network, behaviors)
        second = _homomorphs(network, behaviors, population_size=8)
        with pytest.raises(ConfigurationError):
            first.merge(second, RandomEngine(3))


class TestLoopControls:
    def test_behave_cutoff_stops_immediately(self, network, behaviors):
        genesis = _homomorphs(network, behaviors)
        genesis.morph(5, behave_cutoff=0)
        assert genesis.generation == 0

    def test_forced_quorum_advances_behavior_step(self, network, behaviors):
        genesis = _homomorphs(network, behaviors, behave_quorum=6, behave_quorum_max_generations=1)
        assert genesis.behavior_step == 0
        genesis.morph(2)
        assert genesis.behavior_step == 2

    def test_request_stop_finishes_generation(self, network, behaviors):
        genesis = _homomorphs(network, behaviors)

        def prune_then_stop():
            MorphoGenesis.prune(genesis)
            genesis.request_stop()

        genesis.prune = prune_then_stop
        genesis.morph(5)
        assert genesis.generation == 1

    def test_parent_longevity_retires_parents(self, network, behaviors):
        genesis = _homomorphs(network, behaviors, parent_longevity=0)
        genesis.morph(2)
        assert len(genesis.population) == 6
        assert all(m.offspring_count == 0 for m in genesis.population)


class TestPersistence:
    @pytest.mark.parametrize("binary", [True, False])
    def test_resumed_run_matches_uninterrupted_run(self, tmp_path, network, behaviors, binary):
        path = str(tmp_path / "morph")
        genesis = _homomorphs(network, behaviors)
        genesis.morph(2)
        genesis.save(path, binary)

        loaded = HomomorphoGenesis.load(path, binary, behaviors=behaviors)
        assert _summary(loaded) == _summary(genesis)
        assert loaded.generation == 2
        assert loaded.next_tag == genesis.next_tag

        genesis.morph(2)
        loaded.morph(2)
        assert _summary(loaded) == _summary(genesis)

    def test_isomorph_run_round_trip(self, tmp_path, behaviors):
        path = str(tmp_path / "iso")
        genesis = _isomorphs(behaviors)
        genesis.morph(1)
        genesis.save(path)
        loaded = IsomorphoGenesis.load(path, behaviors=behaviors)
        assert _summary(loaded) == _summary(genesis)
        assert [m.network.to_bytes() for m in loaded.population] == [
            m.network.to_bytes() for m in genesis.population
        ]

    def test_format_mismatch(self, tmp_path, network, behaviors):
        path = str(tmp_path / "homo")
        _homomorphs(network, behaviors).save(path)
        with pytest.raises(PersistenceError):
            IsomorphoGenesis.load(path, behaviors=behaviors)

    def test_save_networks(self, tmp_path, network, behaviors):
        genesis = _homomorphs(network, behaviors)
        genesis.morph(1)
        paths = genesis.save_networks(str(tmp_path / "best_"))
        assert paths == [str(tmp_path / f"best_{rank}.net") for rank in range(6)]
        assert all(os.path.exists(p) for p in paths)
        best = Network.load_file(paths[0])
        assert best.to_bytes() == genesis.best().network.to_bytes()
