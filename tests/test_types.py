"""Tests for genarch.types — sampling modes and packing constants."""

import numpy as np
import pytest

from genarch.types import (
    WORD_BITS,
    WORD_DTYPE,
    SamplingMode,
    last_word_mask,
    n_alleles,
    n_words,
)


class TestSamplingMode:
    def test_values(self):
        assert SamplingMode.GIVEN == 0
        assert SamplingMode.BERNOULLI == 1
        assert SamplingMode.BINOMIAL == 2
        assert SamplingMode.GEOMETRIC == 3

    def test_count(self):
        assert len(SamplingMode) == 4

    @pytest.mark.parametrize("value, expected", [
        ("given", SamplingMode.GIVEN),
        ("Bernoulli", SamplingMode.BERNOULLI),
        (" BINOMIAL ", SamplingMode.BINOMIAL),
        ("3", SamplingMode.GEOMETRIC),
        (2, SamplingMode.BINOMIAL),
        (SamplingMode.GEOMETRIC, SamplingMode.GEOMETRIC),
    ])
    def test_coerce(self, value, expected):
        assert SamplingMode.coerce(value) is expected

    @pytest.mark.parametrize("value", ["poisson", "", 4, -1, "7", True])
    def test_coerce_rejects_unknown(self, value):
        with pytest.raises(ValueError):
            SamplingMode.coerce(value)


class TestPacking:
    def test_word_dtype(self):
        assert WORD_BITS == 64
        assert WORD_DTYPE == np.dtype('<u8')

    def test_n_alleles(self):
        assert n_alleles(10, 7) == 140

    @pytest.mark.parametrize("bits, words", [(0, 0), (1, 1), (64, 1), (65, 2), (128, 2)])
    def test_n_words(self, bits, words):
        assert n_words(bits) == words

    def test_last_word_mask_partial(self):
        assert int(last_word_mask(3)) == 0b111
        assert int(last_word_mask(70)) == 0b111111

    def test_last_word_mask_full(self):
        assert int(last_word_mask(64)) == 2**64 - 1
