"""Tests for the c302 simulator adapter (no external tools are run)."""

import pytest

from errors import SimulatorError
from evolution.simulator import C302Simulator, Simulator
from neural.network import Network

NETWORK_FILE = """Cells:
DA01
AVAL
AVAR
Synapses:
AVAL AVAR 1.5
AVAR DA01 2.0
Stimuli:
AVAL
"""


def _work_dir(path, text=NETWORK_FILE):
    path.mkdir(exist_ok=True)
    (path / C302Simulator.NETWORK_FILE).write_text(text)
    return str(path)


@pytest.fixture
def sim(tmp_path):
    return C302Simulator(_work_dir(tmp_path / "model"), poll_interval=0.0, poll_tries=2, settle=0.0)


@pytest.fixture
def labelled():
    """AVAL (sensor) -> AVAR -> DA01 (motor), plus XYZ -> DA01 unknown to the model."""
    net = Network(4, 1, 1)
    for neuron, label in zip(net.neurons, ("AVAL", "DA01", "AVAR", "XYZ")):
        neuron.label = label
    net.add_synapse(0, 2, 0.1)
    net.add_synapse(2, 1, 0.1)
    net.add_synapse(3, 1, 0.3)
    return net


def test_parse_network_file(sim):
    assert sim.neurons == ["AVAL", "AVAR", "DA01"]
    assert sim.stimuli == ["AVAL"]
    assert sim.synapses == {("AVAL", "AVAR"): 1.5, ("AVAR", "DA01"): 2.0}


def test_missing_network_file(tmp_path):
    with pytest.raises(SimulatorError):
        C302Simulator(str(tmp_path))


def test_bad_synapse_line(tmp_path):
    with pytest.raises(SimulatorError):
        C302Simulator(_work_dir(tmp_path / "bad", "Synapses:\nAVAL AVAR\n"))


def test_export_synapses(sim, labelled):
    sim.export_synapses(labelled)
    assert labelled.synapses[0][2][0].weight == 1.5
    assert labelled.synapses[2][1][0].weight == 2.0
    assert labelled.synapses[3][1] == []


def test_import_synapse_weights(sim, labelled):
    labelled.synapses[0][2][0].weight = 0.75
    sim.import_synapse_weights(labelled)
    assert sim.synapses[("AVAL", "AVAR")] == 0.75
    assert sim.synapses[("XYZ", "DA01")] == 0.3


def test_write_script(sim):
    path = sim.write_script()
    with open(path) as fp:
        script = fp.read()
    assert 'cells = ["AVAL", "AVAR", "DA01"]' in script
    assert 'cells_to_stimulate = ["AVAL"]' in script
    assert '"AVAL-AVAR":1.50' in script


def test_wait_for_output_times_out(sim):
    with pytest.raises(SimulatorError, match="time out"):
        sim.wait_for_output()


def test_run_reports_missing_tools(tmp_path):
    sim = C302Simulator(_work_dir(tmp_path / "run"), python_cmd=str(tmp_path / "no-python"))
    with pytest.raises(SimulatorError, match="c302 generation"):
        sim.run()


def test_activation_delta(tmp_path, sim):
    other = C302Simulator(_work_dir(tmp_path / "eval"), settle=0.0)
    with open(sim.data_path, "w") as fp:
        fp.write("0.0 1.0 2.0 3.0\n0.1 1.0 2.0 3.0\n")
    with open(other.data_path, "w") as fp:
        fp.write("0.0 1.5 2.0 2.0\n\n0.1 1.0 2.0 3.5\n")
    sim.read_activations()
    other.read_activations()
    assert sim.activations["AVAL"] == [1.0, 1.0]
    total, average = other.activation_delta(sim)
    assert total == pytest.approx(2.0)
    assert average == pytest.approx(2.0 / 6)


def test_activation_delta_needs_same_kind(sim):
    with pytest.raises(TypeError):
        sim.activation_delta(Simulator())


def test_read_activations_missing_file(sim):
    with pytest.raises(SimulatorError):
        sim.read_activations()
