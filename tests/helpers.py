"""Shared test helpers (network builders and legality checks)."""

from neural.network import Network


def chain_network(num_interneurons: int = 1) -> Network:
    """sensor 0 -> interneurons in order -> motor 1, all weights 1.0."""
    net = Network(2 + num_interneurons, 1, 1)
    previous = 0
    for k in range(num_interneurons):
        net.add_synapse(previous, 2 + k, 1.0)
        previous = 2 + k
    net.add_synapse(previous, 1, 1.0)
    return net


def illegal_pairs(net: Network):
    """Non-empty pairs that break the structural wiring rules."""
    return [(i, j) for i, j, _ in net.pairs() if not net.can_connect(i, j)]


def weights_in_range(net: Network, low: float, high: float) -> bool:
    return all(low <= syn.weight <= high for syn in net.all_synapses())
