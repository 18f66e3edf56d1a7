"""Tests for the seedable random engine."""

import io

import pytest
from hypothesis import given, strategies as st

from neural.random_engine import RandomEngine
from storage.records import PersistenceError, RecordReader, RecordWriter


def _draws(engine, n=20):
    return [engine.rand() for _ in range(n)]


def test_same_seed_same_sequence():
    assert _draws(RandomEngine(4517)) == _draws(RandomEngine(4517))
    assert _draws(RandomEngine(1)) != _draws(RandomEngine(2))


def test_push_pop_restores_state():
    engine = RandomEngine(9)
    engine.push()
    first = _draws(engine)
    engine.pop()
    assert _draws(engine) == first


def test_clone_continues_identically():
    engine = RandomEngine(5)
    engine.prob()
    other = engine.clone()
    assert _draws(other) == _draws(engine)


def test_spawned_engines_are_reproducible():
    a = RandomEngine(3)
    b = RandomEngine(3)
    assert _draws(a.spawn()) == _draws(b.spawn())


@pytest.mark.parametrize("binary", [True, False])
def test_save_load_resumes_sequence(binary):
    engine = RandomEngine(77)
    engine.interval(0.0, 5.0)
    buf = io.BytesIO() if binary else io.StringIO()
    engine.save(RecordWriter(buf, binary))
    buf.seek(0)
    restored = RandomEngine.from_records(RecordReader(buf, binary))
    assert restored.seed == 77
    assert _draws(restored) == _draws(engine)


def test_load_rejects_bad_state():
    buf = io.BytesIO()
    out = RecordWriter(buf)
    out.write_int(1)  # seed
    out.write_int(3)  # version
    out.write_int(0)  # empty internal state
    out.write_bool(False)
    out.write_float(0.0)
    buf.seek(0)
    with pytest.raises(PersistenceError):
        RandomEngine.from_records(RecordReader(buf))


@given(
    seed=st.integers(min_value=0, max_value=2**32 - 1),
    low=st.integers(min_value=-100, max_value=100),
    width=st.integers(min_value=0, max_value=100),
)
def test_interval_stays_in_bounds(seed, low, width):
    engine = RandomEngine(seed)
    for _ in range(10):
        assert low <= engine.interval(low, low + width) <= low + width


@given(seed=st.integers(min_value=0, max_value=2**32 - 1), n=st.integers(min_value=1, max_value=50))
def test_choice_in_range(seed, n):
    engine = RandomEngine(seed)
    assert all(0 <= engine.choice(n) < n for _ in range(10))


def test_chance_extremes():
    engine = RandomEngine(0)
    assert not any(engine.chance(0.0) for _ in range(50))
    assert all(engine.chance(1.0) for _ in range(50))
    assert not any(engine.chance(-1.0) for _ in range(50))
