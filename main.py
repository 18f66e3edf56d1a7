"""
bionet command line: build networks, record behaviors, and evolve networks
that reproduce them.
"""

from __future__ import annotations
import argparse
import logging
import signal
import sys
from typing import List, Optional

import config
from errors import ConfigurationError, SimulatorError
from evolution.fitness import BehaviorFitness, SimulatorFitness, UndulationFitness
from evolution.genesis import MorphoGenesis
from evolution.homomorphogenesis import HomomorphoGenesis
from evolution.isomorphogenesis import IsomorphoGenesis
from evolution.mutable_parm import MutableParm
from evolution.simulator import C302Simulator
from neural.behavior import Behavior, load_behaviors, save_behaviors
from neural.network import Network
from neural.random_engine import RandomEngine
from storage.records import PersistenceError

_logger = logging.getLogger("bionet")


def _motor_list(text: str) -> List[int]:
    try:
        return [int(k) for k in text.split(",") if k.strip()]
    except ValueError as err:
        raise argparse.ArgumentTypeError(f"bad motor list {text!r}") from err


def _weights_parm(values: List[float]) -> MutableParm:
    if len(values) not in (3, 4):
        raise ConfigurationError("synapse weights take <minimum> <maximum> <max delta> [<random probability>]")
    minimum, maximum, max_delta = values[:3]
    random_probability = values[3] if len(values) == 4 else -1.0
    return MutableParm(minimum, minimum, maximum, max_delta, random_probability)


def _counts_parm(values: List[float]) -> MutableParm:
    minimum, maximum, max_delta, random_probability = values
    return MutableParm(minimum, minimum, maximum, max_delta, random_probability)


# ---- network / behavior commands ----

def cmd_create_network(args) -> int:
    network = Network.create(
        args.num_neurons,
        args.num_sensors,
        args.num_motors,
        inhibitor_density=args.inhibitor_density,
        synapse_propensity=args.synapse_propensity,
        min_weight=args.min_synapse_weight,
        max_weight=args.max_synapse_weight,
        seed=args.random_seed,
    )
    if args.save_network:
        network.save_file(args.save_network, binary=not args.text)
    if args.graph_network:
        with open(args.graph_network, "w", encoding="utf-8") as fp:
            network.dump_graph(fp, args.title)
    if not args.save_network and not args.graph_network:
        print(network.describe())
    return 0


def cmd_print_network(args) -> int:
    network = Network.load_file(args.load_network, binary=not args.text)
    print(network.describe())
    metrics = network.metrics()
    print(
        f"Synapses={metrics.num_synapses} pairs={metrics.connected_pairs} "
        f"in-degree={metrics.mean_in_degree:0.2f} out-degree={metrics.mean_out_degree:0.2f} "
        f"sensor-motor path={metrics.mean_path_length:0.2f}"
    )
    return 0


def cmd_graph_network(args) -> int:
    network = Network.load_file(args.load_network, binary=not args.text)
    if args.save_graph:
        with open(args.save_graph, "w", encoding="utf-8") as fp:
            network.dump_graph(fp, args.title)
    else:
        network.dump_graph(sys.stdout, args.title)
    return 0


def cmd_create_behaviors(args) -> int:
    network = Network.load_file(args.load_network, binary=not args.text)
    randomizer = RandomEngine(args.random_seed)
    behaviors = [Behavior.record(network, length, randomizer) for length in args.behavior_lengths]
    save_behaviors(args.save_behaviors, behaviors, binary=not args.text)
    return 0


def _check_sensors(network: Network, behaviors: List[Behavior]) -> None:
    for k, behavior in enumerate(behaviors):
        if len(behavior) and (behavior.num_sensors != network.num_sensors or behavior.num_motors != network.num_motors):
            raise ConfigurationError(f"behavior {k} does not match the network's sensors and motors")


def cmd_test_behaviors(args) -> int:
    network = Network.load_file(args.load_network, binary=not args.text)
    behaviors = load_behaviors(args.load_behaviors, binary=not args.text)
    _check_sensors(network, behaviors)
    print(network.describe())
    for k, behavior in enumerate(behaviors):
        print(f"Behavior {k}:")
        print(behavior.describe())
        test = Behavior.replay(network, behavior.sensor_sequence)
        print("Test:")
        print(test.describe())
        for step, motor, delta in test.motor_deltas(behavior, args.motor_delta_tolerance):
            print(f"  step={step} motor={motor} delta={delta:0.4f}")
    return 0


def cmd_print_behaviors(args) -> int:
    for k, behavior in enumerate(load_behaviors(args.load_behaviors, binary=not args.text)):
        print(f"Behavior {k}:")
        print(behavior.describe())
    return 0


def cmd_play(args) -> int:
    from render.playback import run_playback

    network = Network.load_file(args.load_network, binary=not args.text)
    behaviors = load_behaviors(args.load_behaviors, binary=not args.text)
    _check_sensors(network, behaviors)
    if not 0 <= args.behavior < len(behaviors):
        raise ConfigurationError(f"behavior {args.behavior} not in file ({len(behaviors)} behaviors)")
    run_playback(network, behaviors[args.behavior])
    return 0


# ---- morphogenesis commands ----

def _simulators(args) -> Optional[List[C302Simulator]]:
    if not args.c302:
        return None
    return [C302Simulator(work_dir, jnml_cmd=args.jnml) for work_dir in args.c302]


def _run_morph(genesis: MorphoGenesis, args) -> int:
    previous = signal.getsignal(signal.SIGINT)

    def _interrupt(signum, frame):
        _logger.warning("interrupt: stopping after this generation")
        genesis.request_stop()

    signal.signal(signal.SIGINT, _interrupt)
    try:
        genesis.morph(args.num_generations, num_threads=args.num_threads, behave_cutoff=args.behave_cutoff)
    finally:
        signal.signal(signal.SIGINT, previous)
    if args.save_morph:
        genesis.save(args.save_morph, binary=not args.text)
    if args.save_networks is not None:
        genesis.save_networks(args.save_networks, binary=not args.text)
    return 0


def _given(value, default):
    return default if value is None else value


def _apply_overrides(genesis: MorphoGenesis, args) -> None:
    """Settings passed on the command line replace those of a resumed morph."""
    if args.fitness_motor_list is not None:
        if not isinstance(genesis.fitness, BehaviorFitness):
            raise ConfigurationError("--fitness-motor-list needs behavior fitness")
        genesis.fitness = BehaviorFitness(genesis.fitness.behaviors, args.fitness_motor_list)
    if args.mutation_rate is not None:
        if not 0.0 <= args.mutation_rate <= 1.0:
            raise ConfigurationError("mutation rate must be a probability")
        genesis.mutation_rate = args.mutation_rate
    if args.synapse_optimized_path_length is not None:
        if args.synapse_optimized_path_length < 0:
            raise ConfigurationError("optimized path length cannot be negative")
        genesis.synapse_optimized_path_length = args.synapse_optimized_path_length
    for name in ("crossover_rate", "synapse_crossover_bond_strength"):
        value = getattr(args, name, None)
        if value is None:
            continue
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name.replace('_', ' ')} must be a probability")
        setattr(genesis, name, value)


def _quorum(args):
    if not args.behave_quorum:
        return -1, -1
    if len(args.behave_quorum) > 2:
        raise ConfigurationError("behave quorum takes <quorum> [<max generations>]")
    quorum = args.behave_quorum[0]
    max_generations = args.behave_quorum[1] if len(args.behave_quorum) == 2 else -1
    return quorum, max_generations


def cmd_create_homomorphs(args) -> int:
    behaviors = load_behaviors(args.load_behaviors, binary=not args.text) if args.load_behaviors else None
    simulators = _simulators(args)
    if args.load_morph:
        genesis = HomomorphoGenesis.load(args.load_morph, binary=not args.text, behaviors=behaviors, simulators=simulators)
        _apply_overrides(genesis, args)
        return _run_morph(genesis, args)

    for name in ("load_network", "population_size", "num_offspring", "synapse_weights"):
        if getattr(args, name) is None:
            raise ConfigurationError(f"--{name.replace('_', '-')} is required for a new morph")
    homomorph = Network.load_file(args.load_network, binary=not args.text)
    if args.undulation:
        fitness = UndulationFitness(args.undulation)
    elif simulators:
        if len(simulators) < 2:
            raise ConfigurationError("--c302 needs a model directory and at least one evaluation directory")
        simulators[0].export_synapses(homomorph)
        fitness = SimulatorFitness(simulators[0], simulators[1:])
    else:
        if behaviors is None:
            raise ConfigurationError("--load-behaviors is required for behavior fitness")
        _check_sensors(homomorph, behaviors)
        fitness = BehaviorFitness(behaviors, args.fitness_motor_list)
    quorum, max_generations = _quorum(args)
    genesis = HomomorphoGenesis(
        fitness,
        homomorph,
        _weights_parm(args.synapse_weights),
        args.population_size,
        args.num_offspring,
        crossover_rate=_given(args.crossover_rate, 0.0),
        synapse_crossover_bond_strength=_given(args.synapse_crossover_bond_strength, config.DEFAULT_CROSSOVER_BOND_STRENGTH),
        parent_longevity=args.parent_longevity,
        behave_quorum=quorum,
        behave_quorum_max_generations=max_generations,
        mutation_rate=_given(args.mutation_rate, 1.0),
        synapse_optimized_path_length=_given(args.synapse_optimized_path_length, config.DEFAULT_OPTIMIZED_PATH_LENGTH),
        random_seed=args.random_seed,
    )
    return _run_morph(genesis, args)


def cmd_merge_homomorphs(args) -> int:
    behaviors = load_behaviors(args.load_behaviors, binary=not args.text) if args.load_behaviors else None
    first, second = (
        HomomorphoGenesis.load(path, binary=not args.text, behaviors=behaviors, simulators=_simulators(args))
        for path in args.load_morph
    )
    first.merge(second, RandomEngine(args.random_seed))
    first.save(args.save_morph, binary=not args.text)
    return 0


def cmd_create_isomorphs(args) -> int:
    behaviors = load_behaviors(args.load_behaviors, binary=not args.text)
    if args.load_morph:
        genesis = IsomorphoGenesis.load(args.load_morph, binary=not args.text, behaviors=behaviors)
        _apply_overrides(genesis, args)
        return _run_morph(genesis, args)

    for name in (
        "population_size",
        "num_offspring",
        "excitatory_neurons",
        "inhibitory_neurons",
        "synapse_propensities",
        "synapse_weights",
    ):
        if getattr(args, name) is None:
            raise ConfigurationError(f"--{name.replace('_', '-')} is required for a new morph")
    if not behaviors or not len(behaviors[0]):
        raise ConfigurationError("isomorphs need at least one non-empty behavior")
    quorum, max_generations = _quorum(args)
    genesis = IsomorphoGenesis(
        BehaviorFitness(behaviors, args.fitness_motor_list),
        behaviors[0].num_sensors,
        behaviors[0].num_motors,
        _counts_parm(args.excitatory_neurons),
        _counts_parm(args.inhibitory_neurons),
        _counts_parm(args.synapse_propensities),
        _weights_parm(args.synapse_weights),
        args.population_size,
        args.num_offspring,
        parent_longevity=args.parent_longevity,
        behave_quorum=quorum,
        behave_quorum_max_generations=max_generations,
        mutation_rate=_given(args.mutation_rate, 1.0),
        synapse_optimized_path_length=_given(args.synapse_optimized_path_length, 0),
        random_seed=args.random_seed,
    )
    return _run_morph(genesis, args)


# ---- parser ----

def _add_morph_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--load-behaviors")
    p.add_argument("--load-morph", help="resume a saved morph")
    p.add_argument("--population-size", type=int)
    p.add_argument("--num-offspring", type=int)
    p.add_argument("--parent-longevity", type=int, default=-1)
    p.add_argument("--num-generations", type=int, required=True)
    p.add_argument("--behave-cutoff", type=int, default=-1)
    p.add_argument("--behave-quorum", type=int, nargs="+", metavar="N", help="<quorum> [<max generations>]")
    p.add_argument("--fitness-motor-list", type=_motor_list, help="comma separated; resumed runs default to the loaded list")
    p.add_argument("--mutation-rate", type=float, help="default 1.0; resumed runs default to the loaded rate")
    p.add_argument("--synapse-weights", type=float, nargs="+", metavar="W", help="<min> <max> <max delta> [<random prob>]")
    p.add_argument("--synapse-optimized-path-length", type=int, help="resumed runs default to the loaded length")
    p.add_argument("--save-morph")
    p.add_argument("--save-networks", nargs="?", const=config.NETWORK_FILE_PREFIX, default=None, metavar="PREFIX")
    p.add_argument("--num-threads", type=int, default=1)
    p.add_argument("--random-seed", type=int, default=config.DEFAULT_RANDOM_SEED)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bionet", description=__doc__)
    parser.add_argument("--text", action="store_true", help="read and write text records instead of binary")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--log-morph", help="write the morph log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-network", help="create a random network")
    p.add_argument("--num-neurons", type=int, required=True)
    p.add_argument("--num-sensors", type=int, required=True)
    p.add_argument("--num-motors", type=int, required=True)
    p.add_argument("--inhibitor-density", type=float, default=config.DEFAULT_INHIBITOR_DENSITY)
    p.add_argument("--synapse-propensity", type=float, default=config.DEFAULT_SYNAPSE_PROPENSITY)
    p.add_argument("--min-synapse-weight", type=float, default=config.DEFAULT_MIN_SYNAPSE_WEIGHT)
    p.add_argument("--max-synapse-weight", type=float, default=config.DEFAULT_MAX_SYNAPSE_WEIGHT)
    p.add_argument("--random-seed", type=int, default=config.DEFAULT_RANDOM_SEED)
    p.add_argument("--save-network")
    p.add_argument("--graph-network")
    p.add_argument("--title")
    p.set_defaults(func=cmd_create_network)

    p = sub.add_parser("print-network", help="print a network")
    p.add_argument("--load-network", required=True)
    p.set_defaults(func=cmd_print_network)

    p = sub.add_parser("graph-network", help="dump a network in graphviz dot format")
    p.add_argument("--load-network", required=True)
    p.add_argument("--save-graph")
    p.add_argument("--title")
    p.set_defaults(func=cmd_graph_network)

    p = sub.add_parser("create-behaviors", help="record random-input behaviors of a network")
    p.add_argument("--load-network", required=True)
    p.add_argument("--behavior-lengths", type=int, nargs="+", required=True)
    p.add_argument("--save-behaviors", required=True)
    p.add_argument("--random-seed", type=int, default=config.DEFAULT_RANDOM_SEED)
    p.set_defaults(func=cmd_create_behaviors)

    p = sub.add_parser("test-behaviors", help="replay behaviors through a network")
    p.add_argument("--load-network", required=True)
    p.add_argument("--load-behaviors", required=True)
    p.add_argument("--motor-delta-tolerance", type=float, default=0.0)
    p.set_defaults(func=cmd_test_behaviors)

    p = sub.add_parser("print-behaviors", help="print behaviors")
    p.add_argument("--load-behaviors", required=True)
    p.set_defaults(func=cmd_print_behaviors)

    p = sub.add_parser("create-homomorphs", help="evolve weights of a fixed topology")
    _add_morph_options(p)
    p.add_argument("--load-network", help="homomorph network")
    p.add_argument("--crossover-rate", type=float, help="default 0.0; resumed runs default to the loaded rate")
    p.add_argument("--synapse-crossover-bond-strength", type=float, help="resumed runs default to the loaded strength")
    p.add_argument("--undulation", type=int, metavar="MOVEMENTS", help="undulation fitness")
    p.add_argument("--c302", nargs="+", metavar="DIR", help="model simulation dir, then one evaluation dir per thread")
    p.add_argument("--jnml", default="jnml")
    p.set_defaults(func=cmd_create_homomorphs)

    p = sub.add_parser("merge-homomorphs", help="merge two homomorphic populations")
    p.add_argument("--load-morph", nargs=2, required=True)
    p.add_argument("--save-morph", required=True)
    p.add_argument("--load-behaviors")
    p.add_argument("--c302", nargs="+", metavar="DIR")
    p.add_argument("--jnml", default="jnml")
    p.add_argument("--random-seed", type=int, default=config.DEFAULT_RANDOM_SEED)
    p.set_defaults(func=cmd_merge_homomorphs)

    p = sub.add_parser("create-isomorphs", help="evolve topology and weights")
    _add_morph_options(p)
    for name in ("excitatory-neurons", "inhibitory-neurons", "synapse-propensities"):
        p.add_argument(f"--{name}", type=float, nargs=4, metavar=("MIN", "MAX", "DELTA", "PROB"))
    p.set_defaults(func=cmd_create_isomorphs)

    p = sub.add_parser("play", help="play a behavior through a network in a window")
    p.add_argument("--load-network", required=True)
    p.add_argument("--load-behaviors", required=True)
    p.add_argument("--behavior", type=int, default=0)
    p.set_defaults(func=cmd_play)

    return parser


def _configure_logging(args) -> None:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.log_morph:
        handler = logging.FileHandler(args.log_morph)
        handler.setFormatter(logging.Formatter("%(message)s"))
        evolution_logger = logging.getLogger("evolution")
        evolution_logger.addHandler(handler)
        evolution_logger.propagate = False


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)
    if args.command == "create-isomorphs" and not args.load_behaviors:
        parser.error("--load-behaviors is required")
    try:
        return args.func(args)
    except ConfigurationError as err:
        parser.error(str(err))
    except (PersistenceError, SimulatorError) as err:
        _logger.error("%s", err)
        return 1


if __name__ == "__main__":
    sys.exit(main())
