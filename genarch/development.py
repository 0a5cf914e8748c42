"""Development engine: genotype → phenotype.

Maps the allele matrix and the architecture onto a (P, T) trait matrix,
individual-major (values of one individual are contiguous):

    expression_il = (a1 + a2)_il · d_l · D_t(l)
    additive_it   = Σ_{l ∈ t} expression_il · e_l · (1 − ε_t)
    epistatic_it  = Σ_{(u→v) ∈ t} expression_iu · expression_iv · w_uv · ε_t
    z_it          = additive_it + epistatic_it + σ_t · N(0, 1)

where d_l is the locus dominance, D_t the trait dominance scale, e_l the
additive effect, ε_t the trait epistasis scale, w the edge weight and σ_t
the environmental noise scale. The epistasis scale of an edge is taken
from the trait of its source locus (equal to its target's by invariant).

The deterministic part is a sum over loci and edges, so its value does
not depend on their order beyond floating-point rounding. Rows
(individuals) are written independently and may be computed in chunks.
Noise is drawn once, individual-major, after accumulation.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from genarch.alleles import AlleleMatrix
from genarch.architecture import Architecture
from genarch.config import GenarchConfig


def population_size(alleles: AlleleMatrix, arch: Architecture) -> int:
    """P = N / (2 · N_loci).

    Raises:
        ValueError: If the bit count is not a multiple of 2 · N_loci.
    """
    per_individual = 2 * arch.nloci
    if alleles.n_bits % per_individual:
        raise ValueError(
            f"{alleles.n_bits} alleles do not divide into individuals of "
            f"{arch.nloci} diploid loci"
        )
    return alleles.n_bits // per_individual


def _trait_scales(config: GenarchConfig, arch: Architecture, name: str) -> np.ndarray:
    """Per-trait scale list ``config.development.<name>`` as an array.

    Raises:
        ValueError: If it does not have one entry per architecture trait.
    """
    values = np.asarray(getattr(config.development, name), dtype=np.float64)
    if values.shape != (arch.ntraits,):
        raise ValueError(
            f"development.{name} has {values.size} entries, "
            f"architecture has {arch.ntraits} traits"
        )
    return values


def expression_matrix(
    genotypes: np.ndarray,
    arch: Architecture,
    dominance: np.ndarray,
) -> np.ndarray:
    """Expression level of each locus in each individual.

    Args:
        genotypes: (P, L) dosage in {0, 1, 2}.
        arch: Architecture.
        dominance: (T,) trait-level dominance scales.

    Returns:
        (P, L) float64.
    """
    locus_scale = arch.dominances * np.asarray(dominance, dtype=np.float64)[arch.traitids]
    return genotypes.astype(np.float64) * locus_scale


def additive_contributions(
    expression: np.ndarray,
    arch: Architecture,
    epistasis: np.ndarray,
) -> np.ndarray:
    """Per-individual, per-trait sum of additive locus contributions.

    Returns:
        (P, T) float64.
    """
    eps = np.asarray(epistasis, dtype=np.float64)
    per_locus = expression * (arch.effects * (1.0 - eps[arch.traitids]))
    traits = np.zeros((expression.shape[0], arch.ntraits), dtype=np.float64)
    for t in range(arch.ntraits):
        cols = arch.traitids == t
        if np.any(cols):
            traits[:, t] = per_locus[:, cols].sum(axis=1)
    return traits


def interaction_contributions(
    expression: np.ndarray,
    arch: Architecture,
    epistasis: np.ndarray,
) -> np.ndarray:
    """Per-individual, per-trait sum of epistatic edge contributions.

    Returns:
        (P, T) float64.
    """
    traits = np.zeros((expression.shape[0], arch.ntraits), dtype=np.float64)
    if arch.nedges == 0:
        return traits
    eps = np.asarray(epistasis, dtype=np.float64)
    edge_traits = arch.traitids[arch.edge_from]
    per_edge = (
        expression[:, arch.edge_from]
        * expression[:, arch.edge_to]
        * (arch.weights * eps[edge_traits])
    )
    for t in np.unique(edge_traits):
        traits[:, t] = per_edge[:, edge_traits == t].sum(axis=1)
    return traits


def genetic_values(
    alleles: AlleleMatrix,
    config: GenarchConfig,
    arch: Architecture,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """Deterministic (noise-free) trait values.

    Args:
        alleles: Packed allele matrix.
        config: Validated configuration (dominance and epistasis scales).
        arch: Architecture matching the matrix.
        chunk_size: Individuals per chunk (None = all at once).

    Returns:
        (P, T) float64.
    """
    popsize = population_size(alleles, arch)
    dominance = _trait_scales(config, arch, 'dominance')
    epistasis = _trait_scales(config, arch, 'epistasis')

    genotypes = alleles.genotypes(popsize, arch.nloci)
    traits = np.zeros((popsize, arch.ntraits), dtype=np.float64)
    step = popsize if not chunk_size else max(1, int(chunk_size))
    for start in range(0, popsize, step):
        rows = slice(start, min(start + step, popsize))
        expr = expression_matrix(genotypes[rows], arch, dominance)
        traits[rows] = (
            additive_contributions(expr, arch, epistasis)
            + interaction_contributions(expr, arch, epistasis)
        )
    return traits


def develop(
    alleles: AlleleMatrix,
    config: GenarchConfig,
    arch: Architecture,
    rng: np.random.Generator,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """Convert the allele matrix into trait values.

    Args:
        alleles: Packed allele matrix (read only).
        config: Validated configuration.
        arch: Architecture matching the matrix.
        rng: Random generator (the 'development' stream).
        chunk_size: Individuals per accumulation chunk. Does not change
            the result.

    Returns:
        (P, T) float64 trait matrix, one row per individual.

    Raises:
        ValueError: If the matrix size does not fit the architecture, or a
            per-trait scale list does not have one entry per trait.
    """
    envnoise = _trait_scales(config, arch, 'envnoise')
    traits = genetic_values(alleles, config, arch, chunk_size=chunk_size)
    traits += rng.standard_normal(traits.shape) * envnoise
    return traits
