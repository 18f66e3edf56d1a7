"""Shared pytest fixtures and configuration.

This file is automatically loaded by pytest and provides fixtures
accessible to all tests.
"""

import os

# headless pygame for render tests
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pytest
from hypothesis import settings, HealthCheck

from evolution.mutable_parm import MutableParm
from neural.behavior import Behavior
from neural.network import Network
from neural.random_engine import RandomEngine

from helpers import chain_network

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=50,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,  # network construction is slow on first call
)

settings.register_profile(
    "thorough",
    max_examples=1000,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

# =============================================================================
# Network Fixtures
# =============================================================================


@pytest.fixture
def network():
    """Small connected reference network: 2 sensors, 2 motors, 4 interneurons."""
    return Network.create(8, 2, 2, synapse_propensity=0.3, seed=4517)


@pytest.fixture
def behaviors(network):
    """Two random-input behaviors recorded from the reference network."""
    randomizer = RandomEngine(11)
    return [Behavior.record(network, length, randomizer) for length in (5, 6)]


@pytest.fixture
def weights_parm():
    return MutableParm(0.0, 0.0, 1.0, 0.1, 0.1)


@pytest.fixture
def chain():
    return chain_network()
