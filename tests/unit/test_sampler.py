"""Unit tests for BlobSampler."""

import random

import pytest

from blob_audit.components.sampler import BlobSampler
from blob_audit.core.config import SAMPLE_WITH_REPLACEMENT, SAMPLE_WITHOUT_REPLACEMENT
from blob_audit.core.errors import ConfigurationError


@pytest.mark.parametrize("strategy", [SAMPLE_WITH_REPLACEMENT, SAMPLE_WITHOUT_REPLACEMENT])
def test_sample_size_and_membership(strategy):
    """Test every draw yields min(n, m) members of the key set."""
    sampler = BlobSampler(strategy, random.Random(7))
    for m in range(0, 6):
        keys = [f"k{i}" for i in range(m)]
        for n in range(0, 8):
            drawn = list(sampler.sample(keys, n))
            assert len(drawn) == min(n, m)
            assert all(k in keys for k in drawn)


def test_without_replacement_is_distinct():
    """Test sampling without replacement never repeats a key."""
    keys = [f"k{i}" for i in range(20)]
    sampler = BlobSampler(SAMPLE_WITHOUT_REPLACEMENT, random.Random(1))

    drawn = list(sampler.sample(keys, 20))

    assert sorted(drawn) == sorted(keys)


def test_seeded_sampling_is_reproducible():
    """Test the same seed gives the same draw."""
    keys = [f"k{i}" for i in range(50)]

    first = list(BlobSampler(rng=random.Random(42)).sample(keys, 10))
    second = list(BlobSampler(rng=random.Random(42)).sample(keys, 10))

    assert first == second


def test_zero_or_negative_count():
    """Test a non-positive count draws nothing."""
    sampler = BlobSampler()

    assert list(sampler.sample(["a", "b"], 0)) == []
    assert list(sampler.sample(["a", "b"], -3)) == []


def test_unknown_strategy():
    """Test an unknown strategy is a configuration error."""
    with pytest.raises(ConfigurationError):
        BlobSampler("reservoir")
