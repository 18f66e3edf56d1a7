"""
bionet module: evolution/genesis.py

MorphoGenesis: the generational loop shared by isomorphic and homomorphic
runs.

Each generation:
  mate -> mutate -> optimize   (offspring slots split across worker threads,
                                barrier between phases)
  prune                        (offspring replace the worst members,
                                worn-out parents are replaced, re-sort)
  quorum                       (maybe advance the scored behavior prefix)

Worker threads own a RandomEngine spawned from the master engine at the
start of each morph() call and only touch their own offspring slots
(index % num_threads), so a run is reproducible for a given seed and
thread count.
"""

from __future__ import annotations
from typing import List, Optional
import logging
import threading

import config
from errors import ConfigurationError
from evolution.fitness import FitnessStrategy, load_fitness
from evolution.morph import NetworkMorph
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter, expect_format, open_records

_logger = logging.getLogger(__name__)


class MorphoGenesis:
    FORMAT = 0

    def __init__(
        self,
        fitness: FitnessStrategy,
        population_size: int,
        num_offspring: int,
        parent_longevity: int = -1,
        behave_quorum: int = -1,
        behave_quorum_max_generations: int = -1,
        mutation_rate: float = 1.0,
        synapse_optimized_path_length: int = 0,
        random_seed: int = config.DEFAULT_RANDOM_SEED,
    ):
        if population_size <= 0:
            raise ConfigurationError("population size must be positive")
        if not 0 < num_offspring < population_size:
            raise ConfigurationError(
                f"number of offspring ({num_offspring}) must be in [1, population size ({population_size}))"
            )
        if parent_longevity < -1:
            raise ConfigurationError("parent longevity must be -1 (unlimited) or non-negative")
        if behave_quorum < -1 or behave_quorum > population_size:
            raise ConfigurationError("behave quorum must be -1 (off) or at most the population size")
        if not 0.0 <= mutation_rate <= 1.0:
            raise ConfigurationError("mutation rate must be a probability")
        if synapse_optimized_path_length < 0:
            raise ConfigurationError("optimized path length cannot be negative")

        self.fitness = fitness
        self.population_size = population_size
        self.num_offspring = num_offspring
        self.parent_longevity = parent_longevity
        self.behave_quorum = behave_quorum
        self.behave_quorum_max_generations = behave_quorum_max_generations
        self.mutation_rate = mutation_rate
        self.synapse_optimized_path_length = synapse_optimized_path_length
        self.random_seed = random_seed
        self.randomizer = RandomEngine(random_seed)

        self.population: List[NetworkMorph] = []
        self.offspring: List[Optional[NetworkMorph]] = []
        self.generation = 0
        self.behavior_step = 0 if behave_quorum != -1 else -1
        self.behave_quorum_generation_count = 0
        self.next_tag = 0

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._num_threads = 1
        self._engines: List[RandomEngine] = []
        self._barrier: Optional[threading.Barrier] = None
        self._threads: List[threading.Thread] = []
        self._terminate = False
        self._worker_error: Optional[BaseException] = None
        self._tag_base = 0

    # ---- hooks ----

    def _new_member(self, randomizer: RandomEngine, tag: int) -> NetworkMorph:
        raise NotImplementedError

    def _breed(self, index: int, tag: int, randomizer: RandomEngine, worker: int) -> NetworkMorph:
        raise NotImplementedError

    def _save_settings(self, out: RecordWriter) -> None:
        pass

    @classmethod
    def _load_settings(cls, inp: RecordReader) -> dict:
        return {}

    def _load_member(self, inp: RecordReader) -> NetworkMorph:
        raise NotImplementedError

    # ---- population ----

    def take_tag(self) -> int:
        tag = self.next_tag
        self.next_tag += 1
        return tag

    def populate(self) -> None:
        self.population = [self._new_member(self.randomizer, self.take_tag()) for _ in range(self.population_size)]

    def evaluate(self) -> None:
        for member in self.population:
            self.fitness.evaluate(member, self.behavior_step)

    def sort(self) -> None:
        # stable: equal members keep their order
        self.population.sort(key=self.fitness.rank_key)

    def behave_count(self) -> int:
        return sum(1 for member in self.population if member.behaves)

    def best(self) -> NetworkMorph:
        return self.population[0]

    def _clone_parent(self, index: int, tag: int) -> NetworkMorph:
        with self._lock:
            parent = self.population[index]
            parent.offspring_count += 1
            return parent.clone(tag)

    def _count_parent(self, index: int) -> None:
        with self._lock:
            self.population[index].offspring_count += 1

    def prune(self) -> None:
        """Offspring replace the worst members; over-used parents are replaced."""
        keep = self.population_size - len(self.offspring)
        self.population = self.population[:keep] + [child for child in self.offspring if child is not None]
        self.offspring = []
        if self.parent_longevity != -1:
            for i, member in enumerate(self.population):
                if member.offspring_count > self.parent_longevity:
                    _logger.debug("member tag=%d retired after %d offspring", member.tag, member.offspring_count)
                    fresh = self._new_member(self.randomizer, self.take_tag())
                    self.fitness.evaluate(fresh, self.behavior_step)
                    self.population[i] = fresh
        self.sort()

    # ---- generational loop ----

    def request_stop(self) -> None:
        """Finish the current generation and return from morph()."""
        self._stop.set()

    def morph(self, num_generations: int, num_threads: int = 1, behave_cutoff: int = -1) -> None:
        if num_generations < 0:
            raise ConfigurationError("number of generations cannot be negative")
        if num_threads < 1:
            raise ConfigurationError("number of threads must be positive")
        self.fitness.prepare(num_threads)
        self._stop.clear()
        max_step = self.fitness.max_behavior_step()
        if self.behavior_step > max_step:
            self.behavior_step = max_step

        self._num_threads = num_threads
        self._engines = [self.randomizer.spawn() for _ in range(num_threads)]

        self.evaluate()
        self.sort()
        behave_count = self.behave_count()
        self.log_population()

        self._start_workers()
        clean = False
        try:
            for _ in range(num_generations):
                if self._stop.is_set():
                    _logger.info("stop requested at generation %d", self.generation)
                    break
                if (
                    behave_cutoff != -1
                    and self.behavior_step in (-1, max_step)
                    and behave_count >= behave_cutoff
                ):
                    _logger.info("behave cutoff reached: %d members behave", behave_count)
                    break
                self.generation += 1
                self._tag_base = self.next_tag
                self.next_tag += self.num_offspring
                self.offspring = [None] * self.num_offspring
                try:
                    self._run_phases(0)
                except threading.BrokenBarrierError:
                    if self._worker_error is not None:
                        raise self._worker_error
                    raise
                self.prune()
                behave_count = self.behave_count()
                self.log_population()
                behave_count = self._check_quorum(behave_count, max_step)
            clean = True
        finally:
            self._stop_workers(clean)

    def _check_quorum(self, behave_count: int, max_step: int) -> int:
        if self.behave_quorum == -1 or self.behavior_step == -1:
            return behave_count
        self.behave_quorum_generation_count += 1
        forced = (
            self.behave_quorum_max_generations != -1
            and self.behave_quorum_generation_count >= self.behave_quorum_max_generations
        )
        if forced:
            self.behave_quorum_generation_count = 0
        if (behave_count >= self.behave_quorum or forced) and self.behavior_step < max_step:
            self.behavior_step += 1
            self.behave_quorum_generation_count = 0
            _logger.info("advancing to behavior step %d (behaving=%d, forced=%s)", self.behavior_step, behave_count, forced)
            self.evaluate()
            self.sort()
            behave_count = self.behave_count()
        return behave_count

    # ---- threads ----

    def _start_workers(self) -> None:
        self._terminate = False
        self._worker_error = None
        if self._num_threads == 1:
            self._barrier = None
            return
        self._barrier = threading.Barrier(self._num_threads)
        self._threads = [
            threading.Thread(target=self._worker, args=(n,), name=f"morph-worker-{n}", daemon=True)
            for n in range(1, self._num_threads)
        ]
        for thread in self._threads:
            thread.start()

    def _stop_workers(self, clean: bool) -> None:
        if self._barrier is None:
            return
        self._terminate = True
        if clean:
            try:
                # release workers parked at the top of their loop
                self._barrier.wait()
            except threading.BrokenBarrierError:
                pass
        else:
            self._barrier.abort()
        for thread in self._threads:
            thread.join()
        self._threads = []
        self._barrier = None

    def _worker(self, thread_num: int) -> None:
        try:
            while self._run_phases(thread_num):
                pass
        except threading.BrokenBarrierError:
            pass
        except Exception as err:  # re-raised on the main thread
            self._worker_error = err
            self._barrier.abort()

    def _run_phases(self, thread_num: int) -> bool:
        if self._barrier is not None:
            self._barrier.wait()
            if self._terminate:
                return False
        for phase in (self._mate, self._mutate, self._optimize):
            phase(thread_num)
            if self._barrier is not None:
                self._barrier.wait()
        return True

    def _slots(self, thread_num: int) -> range:
        return range(thread_num, self.num_offspring, self._num_threads)

    def _mate(self, thread_num: int) -> None:
        randomizer = self._engines[thread_num]
        for i in self._slots(thread_num):
            self.offspring[i] = self._breed(i, self._tag_base + i, randomizer, thread_num)

    def _mutate(self, thread_num: int) -> None:
        randomizer = self._engines[thread_num]
        for i in self._slots(thread_num):
            child = self.offspring[i]
            if randomizer.chance(self.mutation_rate):
                child.mutate(randomizer)
                self.fitness.evaluate(child, self.behavior_step, thread_num)

    def _optimize(self, thread_num: int) -> None:
        if self.synapse_optimized_path_length <= 0:
            return
        randomizer = self._engines[thread_num]
        for i in self._slots(thread_num):
            self.offspring[i].optimize(
                self.fitness, self.synapse_optimized_path_length, randomizer, self.behavior_step, thread_num
            )

    # ---- reporting ----

    def log_population(self) -> None:
        if not self.population:
            return
        best = self.population[0]
        _logger.info(
            "Generation=%d behavior step=%d behaving=%d best tag=%d error=%f fitness=%f",
            self.generation,
            self.behavior_step,
            self.behave_count(),
            best.tag,
            best.error,
            best.fitness,
        )
        if _logger.isEnabledFor(logging.DEBUG):
            for member in self.population:
                _logger.debug(
                    "  tag=%d error=%f fitness=%f behaves=%s offspring=%d",
                    member.tag,
                    member.error,
                    member.fitness,
                    member.behaves,
                    member.offspring_count,
                )

    # ---- persistence ----

    def save(self, path: str, binary: bool = True) -> None:
        with open_records(path, "w", binary) as out:
            out.write_int(self.FORMAT)
            self.randomizer.save(out)
            self._save_settings(out)
            self.fitness.save(out)
            out.write_int(self.population_size)
            out.write_int(self.num_offspring)
            out.write_int(self.parent_longevity)
            out.write_int(self.behave_quorum)
            out.write_int(self.behave_quorum_max_generations)
            out.write_float(self.mutation_rate)
            out.write_int(self.synapse_optimized_path_length)
            out.write_int(self.random_seed)
            out.write_int(self.behavior_step)
            out.write_int(self.behave_quorum_generation_count)
            out.write_int(self.generation)
            out.write_int(self.next_tag)
            out.write_int(len(self.population))
            for member in self.population:
                member.save(out)

    @classmethod
    def load(cls, path: str, binary: bool = True, behaviors=None, simulators=None) -> "MorphoGenesis":
        """
        Resume a saved run. Behaviors (behavior fitness) or simulators
        (model first, then one per worker) must be supplied again.
        """
        with open_records(path, "r", binary) as inp:
            expect_format(inp, cls.FORMAT, cls.__name__)
            randomizer = RandomEngine.from_records(inp)
            settings = cls._load_settings(inp)
            fitness = load_fitness(inp, behaviors, simulators)
            settings.update(
                population_size=inp.read_int(),
                num_offspring=inp.read_int(),
                parent_longevity=inp.read_int(),
                behave_quorum=inp.read_int(),
                behave_quorum_max_generations=inp.read_int(),
                mutation_rate=inp.read_float(),
                synapse_optimized_path_length=inp.read_int(),
                random_seed=inp.read_int(),
            )
            genesis = cls(fitness, populate=False, **settings)
            genesis.randomizer = randomizer
            genesis.behavior_step = inp.read_int()
            genesis.behave_quorum_generation_count = inp.read_int()
            genesis.generation = inp.read_int()
            genesis.next_tag = inp.read_int()
            genesis.population = [genesis._load_member(inp) for _ in range(inp.read_int())]
        return genesis

    def save_networks(self, prefix: str = config.NETWORK_FILE_PREFIX, binary: bool = True) -> List[str]:
        """Write each member's network as <prefix><rank>.net, best first."""
        paths = []
        for rank, member in enumerate(self.population):
            path = f"{prefix}{rank}.net"
            member.network.save_file(path, binary)
            paths.append(path)
        return paths
