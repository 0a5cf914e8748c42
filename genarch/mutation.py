"""Mutation engine: flip bits of a packed allele matrix in place.

Given a mutation rate μ and N allele positions, one of four sampling
regimes decides which positions flip (see ``SamplingMode``):

  GIVEN      k = floor(μN) or ceil(μN), chosen by a fair coin
  BERNOULLI  each position independently with probability μ      O(N)
  BINOMIAL   k ~ Binomial(N, μ)
  GEOMETRIC  gaps between flipped positions ~ Geometric(μ)        O(μN)

GIVEN and BINOMIAL then choose exactly k distinct positions uniformly:
a full permutation when the density k/N exceeds ``ratio``, otherwise a
partial Fisher–Yates shuffle that only touches k slots. When k > N/2 the
whole matrix is flipped first and the N − k complement is flipped back.

μ = 0 is a no-op and μ = 1 flips every allele, whatever the mode.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Union

import numpy as np

from genarch.alleles import AlleleMatrix
from genarch.types import DEFAULT_RATIO, SamplingMode

# Positions tested per block in Bernoulli mode (bounds temporary memory)
BERNOULLI_BLOCK: int = 1 << 22


# ═══════════════════════════════════════════════════════════════════════
# POSITION SAMPLING
# ═══════════════════════════════════════════════════════════════════════


def given_mutation_count(mu: float, n: int, rng: np.random.Generator) -> int:
    """Expected mutation count μN, rounded down or up by a fair coin.

    μN is snapped to 9 decimals first, so a product that is an integer up
    to float error (0.07 × 100) gives that integer every time.
    """
    expected = round(mu * n, 9)
    if rng.random() < 0.5:
        return int(math.floor(expected))
    return min(int(math.ceil(expected)), n)


def sample_distinct_positions(
    n: int,
    k: int,
    rng: np.random.Generator,
    ratio: float = DEFAULT_RATIO,
) -> np.ndarray:
    """Draw ``k`` distinct positions uniformly from [0, n).

    If k / n > ratio, the first k entries of a full random permutation
    are returned (O(n)). Otherwise a partial Fisher–Yates shuffle swaps
    each of the first k slots with a uniformly chosen slot at or after
    it, tracking only displaced slots (O(k)).

    Args:
        n: Size of the pool.
        k: Number of positions (0 ≤ k ≤ n).
        rng: Random generator.
        ratio: Density threshold in [0, 1].

    Returns:
        (k,) int64 array of distinct positions.
    """
    if not 0 <= k <= n:
        raise ValueError(f"Cannot draw {k} distinct positions from {n}")
    if k == 0:
        return np.zeros(0, dtype=np.int64)

    if k / n > ratio:
        return rng.permutation(n)[:k].astype(np.int64)

    swaps = rng.integers(np.arange(k), n)   # swaps[i] uniform in [i, n)
    displaced: Dict[int, int] = {}
    out = np.empty(k, dtype=np.int64)
    for i in range(k):
        j = int(swaps[i])
        at_i = displaced.get(i, i)
        out[i] = displaced.get(j, j)
        displaced[j] = at_i
    return out


def _geometric_positions(
    n: int,
    p: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Positions of successes in n Bernoulli(p) trials, via geometric gaps.

    Starting before position 0, the cursor repeatedly advances by a gap
    ~ Geometric(p) on {1, 2, ...} (i.e. failures + 1) until it passes n.
    """
    if p <= 0.0 or n == 0:
        return np.zeros(0, dtype=np.int64)
    chunk = max(16, int(n * p * 1.1) + 16)
    pieces = []
    cursor = -1
    while True:
        gaps = rng.geometric(p, size=chunk).astype(np.int64)
        pos = cursor + np.cumsum(gaps)
        inside = pos[pos < n]
        pieces.append(inside)
        if inside.size < pos.size:
            break
        cursor = int(pos[-1])
    return np.concatenate(pieces)


# ═══════════════════════════════════════════════════════════════════════
# SAMPLING REGIMES
# ═══════════════════════════════════════════════════════════════════════


def _mutate_bernoulli(alleles, mu, rng, ratio) -> int:
    n = alleles.n_bits
    flipped = 0
    for start in range(0, n, BERNOULLI_BLOCK):
        size = min(BERNOULLI_BLOCK, n - start)
        hits = np.flatnonzero(rng.random(size) < mu) + start
        alleles.flip(hits)
        flipped += hits.size
    return flipped


def _mutate_geometric(alleles, mu, rng, ratio) -> int:
    n = alleles.n_bits
    if mu > 0.5:
        # Fewer positions stay unmutated than mutate: flip all, then
        # restore each position with probability 1 − μ
        alleles.flip_all()
        restored = _geometric_positions(n, 1.0 - mu, rng)
        alleles.flip(restored)
        return n - restored.size
    positions = _geometric_positions(n, mu, rng)
    alleles.flip(positions)
    return positions.size


def _mutate_counted(alleles, k, rng, ratio) -> int:
    n = alleles.n_bits
    target = k
    if 2 * k > n:
        alleles.flip_all()
        k = n - k
    alleles.flip(sample_distinct_positions(n, k, rng, ratio))
    return target


def _mutate_binomial(alleles, mu, rng, ratio) -> int:
    k = int(rng.binomial(alleles.n_bits, mu))
    return _mutate_counted(alleles, k, rng, ratio)


def _mutate_given(alleles, mu, rng, ratio) -> int:
    k = given_mutation_count(mu, alleles.n_bits, rng)
    return _mutate_counted(alleles, k, rng, ratio)


_REGIMES: Dict[SamplingMode, Callable[..., int]] = {
    SamplingMode.GIVEN: _mutate_given,
    SamplingMode.BERNOULLI: _mutate_bernoulli,
    SamplingMode.BINOMIAL: _mutate_binomial,
    SamplingMode.GEOMETRIC: _mutate_geometric,
}


def mutate(
    alleles: AlleleMatrix,
    mu: float,
    mode: Union[SamplingMode, int, str],
    rng: np.random.Generator,
    ratio: float = DEFAULT_RATIO,
) -> int:
    """Throw mutations into the allele matrix in place.

    Args:
        alleles: Packed allele matrix (modified in place).
        mu: Mutation rate in [0, 1].
        mode: Sampling regime (enum, integer code 0–3 or name).
        rng: Random generator (the 'mutation' stream).
        ratio: Density above which positions come from a full shuffle
            (GIVEN and BINOMIAL only).

    Returns:
        Number of positions flipped relative to the input.

    Raises:
        ValueError: If ``mode`` is not a known sampling mode, or ``mu`` /
            ``ratio`` lie outside [0, 1]. Raised before any bit changes.
    """
    mode = SamplingMode.coerce(mode)
    if not 0.0 <= mu <= 1.0:
        raise ValueError(f"Mutation rate must be in [0, 1], got {mu}")
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"ratio must be in [0, 1], got {ratio}")

    if mu == 0.0 or alleles.n_bits == 0:
        return 0
    if mu == 1.0:
        alleles.flip_all()
        return alleles.n_bits

    return _REGIMES[mode](alleles, mu, rng, ratio)
