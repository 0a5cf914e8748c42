"""Core data types for GenArch.

This module is the SINGLE SOURCE OF TRUTH for:
  - SamplingMode enumeration (how mutated allele positions are drawn)
  - Packed storage constants (WORD_BITS, WORD_DTYPE)
  - Allele-count helpers shared by the mutation and development engines

All modules import these types from here.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Union

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class SamplingMode(IntEnum):
    """Sampling regimes for the mutation engine.

    GIVEN      deterministic count round(μN), rounded up or down at random
    BERNOULLI  every position tested independently
    BINOMIAL   count ~ Binomial(N, μ), positions drawn without replacement
    GEOMETRIC  gaps between mutated positions ~ Geometric(μ)
    """
    GIVEN     = 0
    BERNOULLI = 1
    BINOMIAL  = 2
    GEOMETRIC = 3

    @classmethod
    def coerce(cls, value: Union[int, str, "SamplingMode"]) -> "SamplingMode":
        """Convert an integer code or a (case-insensitive) name to a mode.

        Raises:
            ValueError: If the value names no mode.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
            if key.isdigit():
                return cls(int(key))
            raise ValueError(
                f"Unknown sampling mode '{value}'. "
                f"Valid modes: {[m.name.lower() for m in cls]}"
            )
        if isinstance(value, (bool, np.bool_)):
            raise ValueError(f"Unknown sampling mode {value!r}")
        return cls(int(value))


# ═══════════════════════════════════════════════════════════════════════
# PACKED STORAGE
# ═══════════════════════════════════════════════════════════════════════

WORD_BITS = 64                        # bits per storage word
WORD_DTYPE = np.dtype('<u8')          # little-endian so bit i of word w = flat bit 64w + i

DEFAULT_RATIO = 0.25                  # density above which positions come from a full shuffle


def n_alleles(popsize: int, nloci: int) -> int:
    """Total number of allele bits for a diploid population (2·P·L)."""
    return 2 * popsize * nloci


def n_words(n_bits: int) -> int:
    """Number of 64-bit words needed to hold ``n_bits`` bits."""
    return (n_bits + WORD_BITS - 1) // WORD_BITS


def last_word_mask(n_bits: int) -> np.uint64:
    """Mask of the bits of the final word that hold real alleles."""
    used = n_bits % WORD_BITS
    if used == 0:
        return np.uint64(0xFFFFFFFFFFFFFFFF)
    return np.uint64((1 << used) - 1)
