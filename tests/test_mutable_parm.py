"""Tests for bounded evolvable parameters."""

import io

import pytest
from hypothesis import given, strategies as st

from errors import ConfigurationError
from evolution.mutable_parm import MutableParm
from neural.random_engine import RandomEngine
from storage.records import RecordReader, RecordWriter


def test_validation():
    with pytest.raises(ConfigurationError):
        MutableParm(0.0, 2.0, 1.0, 0.1)
    with pytest.raises(ConfigurationError):
        MutableParm(0.0, 0.0, 1.0, -0.1)


def test_value_is_clamped():
    assert MutableParm(5.0, 0.0, 1.0, 0.1).value == 1.0
    parm = MutableParm(0.5, 0.0, 1.0, 0.1)
    parm.set_value(-3.0)
    assert parm.value == 0.0


@given(
    seed=st.integers(min_value=0, max_value=2**32 - 1),
    value=st.floats(min_value=0.0, max_value=1.0),
    max_delta=st.floats(min_value=0.0, max_value=2.0),
    random_probability=st.sampled_from([-1.0, 0.0, 0.5, 1.0]),
)
def test_mutate_stays_in_bounds(seed, value, max_delta, random_probability):
    parm = MutableParm(value, 0.0, 1.0, max_delta, random_probability)
    randomizer = RandomEngine(seed)
    for _ in range(20):
        value = parm.mutate(value, randomizer)
        assert 0.0 <= value <= 1.0


@given(
    seed=st.integers(min_value=0, max_value=2**32 - 1),
    count=st.integers(min_value=2, max_value=6),
    max_delta=st.integers(min_value=0, max_value=4),
)
def test_mutate_count_stays_in_bounds(seed, count, max_delta):
    parm = MutableParm(count, 2, 6, max_delta, 0.2)
    randomizer = RandomEngine(seed)
    for _ in range(20):
        count = parm.mutate_count(count, randomizer)
        assert 2 <= count <= 6
        assert isinstance(count, int)


def test_zero_delta_without_random_keeps_value():
    parm = MutableParm(0.3, 0.0, 1.0, 0.0, 1.0)
    assert parm.mutate(0.3, RandomEngine(1), allow_random=False) == 0.3


def test_init_and_mutate_value():
    parm = MutableParm(0.0, 2.0, 4.0, 0.5)
    randomizer = RandomEngine(3)
    assert 2.0 <= parm.init_value(randomizer) <= 4.0
    assert 2.0 <= parm.mutate_value(randomizer) <= 4.0


@pytest.mark.parametrize("binary", [True, False])
def test_round_trip(binary):
    parm = MutableParm(0.25, 0.1, 0.9, 0.05, 0.3)
    buf = io.BytesIO() if binary else io.StringIO()
    parm.save(RecordWriter(buf, binary))
    buf.seek(0)
    assert MutableParm.load(RecordReader(buf, binary)) == parm
