"""
bionet module: evolution/simulator.py

External simulator boundary.

A simulator mirrors a network by neuron label, runs out of process, and
exposes per-neuron activation time series that can be compared with another
simulator's. The c302 adapter drives the c302 generator and jnml in its own
working directory; each worker thread gets its own directory.
"""

from __future__ import annotations
from typing import Dict, List, Tuple
import logging
import os
import subprocess
import sys
import time

import config
from errors import SimulatorError
from neural.network import Network

_logger = logging.getLogger(__name__)


class Simulator:
    """Contract consumed by SimulatorFitness."""

    def export_synapses(self, network: Network) -> None:
        raise NotImplementedError

    def import_synapse_weights(self, network: Network) -> None:
        raise NotImplementedError

    def run(self) -> None:
        raise NotImplementedError

    def activation_delta(self, other: "Simulator") -> Tuple[float, float]:
        """(total, average) absolute activation difference against `other`."""
        raise NotImplementedError


class C302Simulator(Simulator):
    NETWORK_FILE = "c302_bionet.txt"
    SIMULATION = "c302_A_bionet"

    def __init__(
        self,
        work_dir: str,
        jnml_cmd: str = "jnml",
        python_cmd: str = sys.executable,
        poll_interval: float = config.SIMULATOR_POLL_INTERVAL,
        poll_tries: int = config.SIMULATOR_POLL_TRIES,
        settle: float = 2.0,
    ):
        self.work_dir = work_dir
        self.jnml_cmd = jnml_cmd
        self.python_cmd = python_cmd
        self.poll_interval = poll_interval
        self.poll_tries = poll_tries
        self.settle = settle
        self.neurons: List[str] = []
        self.stimuli: List[str] = []
        self.synapses: Dict[Tuple[str, str], float] = {}
        self.activations: Dict[str, List[float]] = {}
        self.parse_network_file(os.path.join(work_dir, self.NETWORK_FILE))

    @property
    def data_path(self) -> str:
        return os.path.join(self.work_dir, f"{self.SIMULATION}.dat")

    def parse_network_file(self, path: str) -> None:
        """
        Sections "Cells:", "Synapses:" (source target weight) and "Stimuli:".
        Lines before any header are cells.
        """
        self.neurons, self.stimuli, self.synapses = [], [], {}
        section = "cells"
        try:
            with open(path, encoding="utf-8") as fp:
                for line in fp:
                    if "Cells:" in line:
                        section = "cells"
                        continue
                    if "Synapses:" in line:
                        section = "synapses"
                        continue
                    if "Stimuli:" in line:
                        section = "stimuli"
                        continue
                    fields = line.split()
                    if not fields:
                        continue
                    if section == "cells":
                        self.neurons.append(fields[0])
                    elif section == "stimuli":
                        self.stimuli.append(fields[0])
                    else:
                        if len(fields) < 3:
                            raise SimulatorError(f"bad synapse line in {path}: {line.strip()!r}")
                        self.synapses[(fields[0], fields[1])] = float(fields[2])
        except OSError as err:
            raise SimulatorError(f"cannot read {path}: {err}") from err
        except ValueError as err:
            raise SimulatorError(f"bad synapse weight in {path}: {err}") from err
        self.neurons.sort()
        self.stimuli.sort()

    def export_synapses(self, network: Network) -> None:
        """Make network's synapses match this simulator's: drop unknown pairs, copy weights."""
        labels = [neuron.label for neuron in network.neurons]
        for i, source in enumerate(labels):
            for j, target in enumerate(labels):
                syns = network.synapses[i][j]
                weight = self.synapses.get((source, target))
                if weight is None:
                    syns.clear()
                else:
                    for syn in syns:
                        syn.weight = weight

    def import_synapse_weights(self, network: Network) -> None:
        for i, j, syns in network.pairs():
            key = (network.neurons[i].label, network.neurons[j].label)
            self.synapses[key] = syns[0].weight

    def write_script(self) -> str:
        cells = ", ".join(f'"{n}"' for n in self.neurons)
        stimuli = ", ".join(f'"{n}"' for n in self.stimuli)
        scaling = ", ".join(f'"{s}-{t}":{w:0.2f}' for (s, t), w in sorted(self.synapses.items()))
        script = (
            "from c302 import generate\n\n"
            "import parameters_A as params\n\n"
            "if __name__ == '__main__':\n\n"
            f"   cells = [{cells}]\n"
            f"   cells_to_stimulate = [{stimuli}]\n\n"
            f"   scaled_conn_numbers = {{{scaling}}}\n\n"
            f'   generate("{self.SIMULATION}", params, cells = cells, cells_to_stimulate = cells_to_stimulate, '
            "conn_number_scaling = scaled_conn_numbers, duration = 500, dt = 0.1, vmin = -72, vmax = -48)\n"
        )
        path = os.path.join(self.work_dir, f"{self.SIMULATION}.py")
        with open(path, "w", encoding="utf-8") as fp:
            fp.write(script)
        return path

    def _call(self, argv: List[str], what: str) -> None:
        try:
            result = subprocess.run(
                argv, cwd=self.work_dir, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False
            )
        except OSError as err:
            raise SimulatorError(f"{what}: {err}") from err
        if result.returncode != 0:
            raise SimulatorError(f"{what} exited with status {result.returncode}")

    def wait_for_output(self) -> None:
        for _ in range(self.poll_tries):
            if os.path.exists(self.data_path):
                break
            time.sleep(self.poll_interval)
        else:
            raise SimulatorError(f"jnml simulation time out waiting for {self.data_path}")
        if self.settle > 0:
            time.sleep(self.settle)

    def read_activations(self) -> None:
        self.activations = {name: [] for name in self.neurons}
        try:
            with open(self.data_path, encoding="utf-8") as fp:
                for line in fp:
                    values = line.split()
                    if not values:
                        continue
                    # first column is time
                    for name, value in zip(self.neurons, values[1:]):
                        self.activations[name].append(float(value))
        except OSError as err:
            raise SimulatorError(f"cannot open data file {self.data_path}: {err}") from err
        except ValueError as err:
            raise SimulatorError(f"bad value in {self.data_path}: {err}") from err

    def run(self) -> None:
        script = self.write_script()
        self._call([self.python_cmd, os.path.basename(script)], "c302 generation")
        if os.path.exists(self.data_path):
            os.unlink(self.data_path)
        self._call([self.jnml_cmd, f"LEMS_{self.SIMULATION}.xml", "-nogui"], "jnml")
        self.wait_for_output()
        self.read_activations()
        _logger.debug("c302 run in %s: %d neurons", self.work_dir, len(self.neurons))

    def activation_delta(self, other: Simulator) -> Tuple[float, float]:
        if not isinstance(other, C302Simulator):
            raise TypeError("can only compare against another C302Simulator")
        total = 0.0
        n = 0
        for name in self.neurons:
            mine = self.activations.get(name, [])
            theirs = other.activations.get(name, [])
            for a, b in zip(mine, theirs):
                total += abs(a - b)
                n += 1
        return total, (total / n if n > 0 else 0.0)
