"""
bionet module: neural/network.py

Directed multigraph of neurons with parallel synapses per ordered pair.

Index layout:
- [0, num_sensors)                       sensors (always excitatory)
- [num_sensors, num_sensors+num_motors)  motors (always excitatory)
- remainder                              interneurons

synapses[i][j] is the (possibly empty) list of synapses from neuron i to
neuron j. Every neuron must lie on a path from some sensor and on a path to
some motor (see is_connected).
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import IO, Dict, Iterator, List, Optional, Set, Tuple
import copy
import io
import statistics

import config
from errors import ConfigurationError
from neural.neuron import ActivationFunction, Neuron, NeuronType, neuron_type
from neural.random_engine import RandomEngine
from neural.synapse import Synapse
from storage.records import PersistenceError, RecordReader, RecordWriter, expect_format, open_records


@dataclass
class NetworkMetrics:
    num_neurons: int
    num_synapses: int
    connected_pairs: int
    min_in_degree: int
    max_in_degree: int
    mean_in_degree: float
    min_out_degree: int
    max_out_degree: int
    mean_out_degree: float
    mean_path_length: float  # sensor -> motor shortest paths, 0 when none


class Network:
    FORMAT = 1

    def __init__(self, num_neurons: int, num_sensors: int, num_motors: int):
        if num_sensors <= 0 or num_motors <= 0:
            raise ConfigurationError("network needs at least one sensor and one motor")
        if num_neurons < num_sensors + num_motors:
            raise ConfigurationError(
                f"num_neurons ({num_neurons}) < num_sensors + num_motors ({num_sensors + num_motors})"
            )
        self.num_sensors = num_sensors
        self.num_motors = num_motors
        self.neurons: List[Neuron] = [Neuron(index=i) for i in range(num_neurons)]
        self.synapses: List[List[List[Synapse]]] = [
            [[] for _ in range(num_neurons)] for _ in range(num_neurons)
        ]

    # ---- construction ----

    @classmethod
    def create(
        cls,
        num_neurons: int,
        num_sensors: int,
        num_motors: int,
        inhibitor_density: float = config.DEFAULT_INHIBITOR_DENSITY,
        synapse_propensity: float = config.DEFAULT_SYNAPSE_PROPENSITY,
        min_weight: float = config.DEFAULT_MIN_SYNAPSE_WEIGHT,
        max_weight: float = config.DEFAULT_MAX_SYNAPSE_WEIGHT,
        randomizer: Optional[RandomEngine] = None,
        seed: int = config.DEFAULT_RANDOM_SEED,
    ) -> "Network":
        """
        Random topology: interneurons are inhibitory with probability
        inhibitor_density, each legal pair gets a synapse with probability
        synapse_propensity, then random legal pairs are wired until connected.
        """
        if not 0.0 <= inhibitor_density <= 1.0:
            raise ConfigurationError(f"inhibitor density {inhibitor_density} not in [0, 1]")
        if synapse_propensity <= 0.0:
            raise ConfigurationError("synapse propensity must be positive")
        if min_weight > max_weight:
            raise ConfigurationError("minimum synapse weight exceeds maximum")
        if randomizer is None:
            randomizer = RandomEngine(seed)

        net = cls(num_neurons, num_sensors, num_motors)
        for neuron in net.neurons[net.first_interneuron:]:
            neuron.excitatory = not randomizer.chance(inhibitor_density)

        n = net.num_neurons
        for i in range(n):
            for j in range(n):
                if net.can_connect(i, j) and randomizer.chance(synapse_propensity):
                    net.add_synapse(i, j, randomizer.interval(min_weight, max_weight))
        net.repair_connectivity(randomizer, min_weight, max_weight)
        return net

    def clone(self) -> "Network":
        return copy.deepcopy(self)

    # ---- shape ----

    @property
    def num_neurons(self) -> int:
        return len(self.neurons)

    @property
    def first_interneuron(self) -> int:
        return self.num_sensors + self.num_motors

    @property
    def num_interneurons(self) -> int:
        return self.num_neurons - self.first_interneuron

    def neuron_type(self, index: int) -> NeuronType:
        return neuron_type(index, self.num_sensors, self.num_motors)

    def is_sensor(self, index: int) -> bool:
        return index < self.num_sensors

    def is_motor(self, index: int) -> bool:
        return self.num_sensors <= index < self.first_interneuron

    def is_interneuron(self, index: int) -> bool:
        return index >= self.first_interneuron

    def motor_index(self, motor: int) -> int:
        return self.num_sensors + motor

    # ---- synapses ----

    def can_connect(self, i: int, j: int) -> bool:
        """Is a synapse from neuron i to neuron j structurally legal?"""
        if i == j:
            return False
        if self.is_sensor(j) or self.is_motor(i):
            return False
        # sensors may not bypass interneurons
        if self.num_interneurons > 0 and self.is_sensor(i) and self.is_motor(j):
            return False
        return True

    def add_synapse(self, i: int, j: int, weight: float) -> Synapse:
        syn = Synapse(weight=weight)
        self.synapses[i][j].append(syn)
        return syn

    def synapse_count(self) -> int:
        return sum(len(syns) for row in self.synapses for syns in row)

    def pairs(self) -> Iterator[Tuple[int, int, List[Synapse]]]:
        """Non-empty (source, target, synapses) triples in row-major order."""
        for i, row in enumerate(self.synapses):
            for j, syns in enumerate(row):
                if syns:
                    yield i, j, syns

    def all_synapses(self) -> Iterator[Synapse]:
        for _, _, syns in self.pairs():
            yield from syns

    def successors(self, i: int) -> List[int]:
        return [j for j, syns in enumerate(self.synapses[i]) if syns]

    def predecessors(self, j: int) -> List[int]:
        return [i for i, row in enumerate(self.synapses) if row[j]]

    def shape(self) -> List[Tuple[int, int, int]]:
        """(source, target, count) for every non-empty pair."""
        return [(i, j, len(syns)) for i, j, syns in self.pairs()]

    # ---- connectivity ----

    def _reachable(self, starts: range, forward: bool) -> List[bool]:
        n = self.num_neurons
        succ: List[List[int]] = [[] for _ in range(n)]
        for i, j, _ in self.pairs():
            if forward:
                succ[i].append(j)
            else:
                succ[j].append(i)
        seen = [False] * n
        queue = deque(starts)
        for s in starts:
            seen[s] = True
        while queue:
            k = queue.popleft()
            for m in succ[k]:
                if not seen[m]:
                    seen[m] = True
                    queue.append(m)
        return seen

    def sensor_connected(self) -> List[bool]:
        return self._reachable(range(0, self.num_sensors), forward=True)

    def motor_connected(self) -> List[bool]:
        return self._reachable(range(self.num_sensors, self.first_interneuron), forward=False)

    def is_connected(self) -> bool:
        return all(self.sensor_connected()) and all(self.motor_connected())

    def repair_connectivity(self, randomizer: RandomEngine, min_weight: float, max_weight: float) -> int:
        """Wire random legal empty pairs until connected; returns synapses added."""
        added = 0
        n = self.num_neurons
        while not self.is_connected():
            i = randomizer.choice(n)
            j = randomizer.choice(n)
            if self.can_connect(i, j) and not self.synapses[i][j]:
                self.add_synapse(i, j, randomizer.interval(min_weight, max_weight))
                added += 1
        return added

    # ---- neuron surgery ----

    def add_neuron(
        self,
        excitatory: bool,
        randomizer: Optional[RandomEngine] = None,
        synapse_propensity: float = 0.0,
        min_weight: float = 0.0,
        max_weight: float = 1.0,
    ) -> int:
        """
        Append an interneuron at the top index, optionally wiring it at synapse_propensity.
        The first interneuron strips sensor to motor synapses; callers repair connectivity.
        """
        index = self.num_neurons
        first = self.num_interneurons == 0
        self.neurons.append(Neuron(index=index, excitatory=excitatory))
        for row in self.synapses:
            row.append([])
        self.synapses.append([[] for _ in range(index + 1)])
        if first:
            for i in range(self.num_sensors):
                for j in range(self.num_sensors, self.first_interneuron):
                    self.synapses[i][j] = []
        if randomizer is not None and synapse_propensity > 0.0:
            for k in range(index):
                if self.can_connect(index, k) and randomizer.chance(synapse_propensity):
                    self.add_synapse(index, k, randomizer.interval(min_weight, max_weight))
                if self.can_connect(k, index) and randomizer.chance(synapse_propensity):
                    self.add_synapse(k, index, randomizer.interval(min_weight, max_weight))
        return index

    def delete_neuron(self, index: int) -> None:
        """Remove an interneuron and its incident synapses, compacting indices."""
        if not self.is_interneuron(index):
            raise ValueError(f"neuron {index} is not an interneuron")
        del self.neurons[index]
        del self.synapses[index]
        for row in self.synapses:
            del row[index]
        for k, neuron in enumerate(self.neurons):
            neuron.index = k

    # ---- dynamics ----

    def clear(self) -> None:
        for neuron in self.neurons:
            neuron.activation = 0.0
        for syn in self.all_synapses():
            syn.signal = 0.0

    def set_sensors(self, values) -> None:
        if len(values) != self.num_sensors:
            raise ValueError(f"expected {self.num_sensors} sensor values, got {len(values)}")
        for neuron, value in zip(self.neurons, values):
            neuron.bias = float(value)

    def step(self) -> None:
        # fire everything, then propagate everything
        sums = [0.0] * self.num_neurons
        for _, j, syns in self.pairs():
            for syn in syns:
                sums[j] += syn.signal * syn.weight
        for neuron, total in zip(self.neurons, sums):
            neuron.activation = neuron.squash(neuron.bias + total)
        for i, row in enumerate(self.synapses):
            neuron = self.neurons[i]
            signal = neuron.activation if neuron.excitatory else -neuron.activation
            for syns in row:
                for syn in syns:
                    syn.signal = signal

    def motor_activations(self) -> List[float]:
        return [n.activation for n in self.neurons[self.num_sensors:self.first_interneuron]]

    # ---- analysis ----

    def motor_connections(self) -> List[Set[int]]:
        """
        For each motor, the neurons found walking backward from it, up to the
        depth at which the first sensor appears (everything, if none does).
        """
        result: List[Set[int]] = []
        for m in range(self.num_sensors, self.first_interneuron):
            depth: Dict[int, int] = {m: 0}
            queue = deque([m])
            sensor_depth = None
            while queue:
                k = queue.popleft()
                if sensor_depth is not None and depth[k] >= sensor_depth:
                    continue
                for p in self.predecessors(k):
                    if p not in depth:
                        depth[p] = depth[k] + 1
                        if self.is_sensor(p) and sensor_depth is None:
                            sensor_depth = depth[p]
                        queue.append(p)
            if sensor_depth is None:
                result.append(set(depth))
            else:
                result.append({k for k, d in depth.items() if d <= sensor_depth})
        return result

    def metrics(self) -> NetworkMetrics:
        n = self.num_neurons
        in_degree = [0] * n
        out_degree = [0] * n
        num_synapses = 0
        connected_pairs = 0
        for i, j, syns in self.pairs():
            connected_pairs += 1
            num_synapses += len(syns)
            out_degree[i] += len(syns)
            in_degree[j] += len(syns)

        lengths: List[int] = []
        for s in range(self.num_sensors):
            dist = {s: 0}
            queue = deque([s])
            while queue:
                k = queue.popleft()
                for m in self.successors(k):
                    if m not in dist:
                        dist[m] = dist[k] + 1
                        queue.append(m)
            lengths.extend(d for k, d in dist.items() if self.is_motor(k))

        return NetworkMetrics(
            num_neurons=n,
            num_synapses=num_synapses,
            connected_pairs=connected_pairs,
            min_in_degree=min(in_degree),
            max_in_degree=max(in_degree),
            mean_in_degree=statistics.fmean(in_degree),
            min_out_degree=min(out_degree),
            max_out_degree=max(out_degree),
            mean_out_degree=statistics.fmean(out_degree),
            mean_path_length=statistics.fmean(lengths) if lengths else 0.0,
        )

    # ---- presentation ----

    def describe(self) -> str:
        kind = {NeuronType.SENSOR: "sensor", NeuronType.MOTOR: "motor", NeuronType.INTERNEURON: "inter"}
        short = {NeuronType.SENSOR: "s", NeuronType.MOTOR: "m", NeuronType.INTERNEURON: "i"}
        lines = ["Neurons:", "type\tindex\texcitatory\tfunction\tactivation"]
        for neuron in self.neurons:
            lines.append(
                f"{kind[self.neuron_type(neuron.index)]}\t{neuron.index}\t{int(neuron.excitatory)}\t"
                f"{neuron.function.name}\t{neuron.activation:0.2f}"
            )
        lines.append("Synapse weights (horizontal=source/vertical=target):")
        header = "    " + "".join(f"{i}{short[self.neuron_type(i)]}".ljust(7) for i in range(self.num_neurons))
        lines.append(header.rstrip())
        for j in range(self.num_neurons):
            cells = []
            for i in range(self.num_neurons):
                syns = self.synapses[i][j]
                cells.append(f"{syns[0].weight:+0.3f}".ljust(7) if syns else " " * 7)
            lines.append((f"{j}{short[self.neuron_type(j)]}".ljust(4) + "".join(cells)).rstrip())
        return "\n".join(lines)

    def dump_graph(self, fp: IO[str], title: Optional[str] = None) -> None:
        """Graphviz 'dot' description of the network."""
        if title is None:
            title = "Network graph"
        w = fp.write
        w("digraph bionet {\n")
        w('\tgraph [size="8.5,11",fontsize=24];\n')
        w("\tsubgraph cluster_0 {\n")
        w('\tlabel="Sensors";\n')
        for i in range(self.num_sensors):
            w(f'\t"n{i}" [label="index={i}",shape=triangle];\n')
        w("\t};\n")
        w("\tsubgraph cluster_1 {\n")
        w('\tlabel="Motors";\n')
        for i in range(self.num_sensors, self.first_interneuron):
            w(f'\t"n{i}" [label="index={i}",shape=triangle,orientation=180];\n')
        w("\t};\n")
        w("\tsubgraph cluster_2 {\n")
        w('\tlabel="Interneurons";\n')
        for neuron in self.neurons[self.first_interneuron:]:
            extra = "" if neuron.excitatory else ",peripheries=2"
            w(f'\t"n{neuron.index}" [label="index={neuron.index}",shape=diamond{extra}];\n')
        w("\t};\n")
        for i, j, syns in self.pairs():
            for syn in syns:
                w(f'\t"n{i}" -> "n{j}" [label="{syn.weight:0.2f}"];\n')
        w(f'\tlabel = "{title}";\n')
        w("}\n")

    # ---- persistence ----

    def save(self, out: RecordWriter) -> None:
        out.write_int(self.FORMAT)
        out.write_int(self.num_neurons)
        out.write_int(self.num_sensors)
        out.write_int(self.num_motors)
        for neuron in self.neurons:
            out.write_int(neuron.index)
            out.write_bool(neuron.excitatory)
            out.write_int(neuron.function.value)
            out.write_float(neuron.bias)
            out.write_float(neuron.activation)
            out.write_string(neuron.label)
        pairs = list(self.pairs())
        out.write_int(len(pairs))
        for i, j, syns in pairs:
            out.write_int(i)
            out.write_int(j)
            out.write_int(len(syns))
            for syn in syns:
                out.write_float(syn.weight)
                out.write_float(syn.signal)
                out.write_string(syn.label)

    @classmethod
    def load(cls, inp: RecordReader) -> "Network":
        expect_format(inp, cls.FORMAT, "network")
        num_neurons = inp.read_int()
        num_sensors = inp.read_int()
        num_motors = inp.read_int()
        try:
            net = cls(num_neurons, num_sensors, num_motors)
        except ConfigurationError as err:
            raise PersistenceError(f"bad network dimensions: {err}") from err
        for neuron in net.neurons:
            neuron.index = inp.read_int()
            neuron.excitatory = inp.read_bool()
            try:
                neuron.function = ActivationFunction(inp.read_int())
            except ValueError as err:
                raise PersistenceError(str(err)) from err
            neuron.bias = inp.read_float()
            neuron.activation = inp.read_float()
            neuron.label = inp.read_string()
        for _ in range(inp.read_int()):
            i = inp.read_int()
            j = inp.read_int()
            if not (0 <= i < num_neurons and 0 <= j < num_neurons):
                raise PersistenceError(f"synapse pair ({i}, {j}) out of range")
            for _ in range(inp.read_int()):
                syn = net.add_synapse(i, j, inp.read_float())
                syn.signal = inp.read_float()
                syn.label = inp.read_string()
        return net

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.save(RecordWriter(buf, binary=True))
        return buf.getvalue()

    def save_file(self, path: str, binary: bool = True) -> None:
        with open_records(path, "w", binary) as out:
            self.save(out)

    @classmethod
    def load_file(cls, path: str, binary: bool = True) -> "Network":
        with open_records(path, "r", binary) as inp:
            return cls.load(inp)
