"""Summary statistics for a generated population.

  - Allele frequency per locus
  - Observed and expected (Hardy–Weinberg) heterozygosity
  - Trait means and variances
  - Degree distribution and connectivity of each trait's interaction network
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components

from genarch.architecture import Architecture
from genarch.population import Population


def compute_allele_frequencies(haplotypes: np.ndarray) -> np.ndarray:
    """Frequency of allele 1 at each locus.

    Args:
        haplotypes: (2, P, L) uint8.

    Returns:
        (L,) float64. Zeros for an empty population.
    """
    n = haplotypes.shape[1]
    if n == 0:
        return np.zeros(haplotypes.shape[2], dtype=np.float64)
    return haplotypes.sum(axis=(0, 1)).astype(np.float64) / (2.0 * n)


def compute_heterozygosity(haplotypes: np.ndarray) -> Tuple[float, float]:
    """Observed and expected heterozygosity averaged across loci.

    H_o = mean fraction of heterozygous individuals per locus.
    H_e = mean 2pq per locus.

    Returns:
        (H_o, H_e); (0, 0) with fewer than two individuals.
    """
    if haplotypes.shape[1] < 2:
        return 0.0, 0.0
    h_o = float(np.mean(haplotypes[0] != haplotypes[1]))
    q = compute_allele_frequencies(haplotypes)
    h_e = float(np.mean(2.0 * q * (1.0 - q)))
    return h_o, h_e


def network_components(arch: Architecture, trait: int) -> int:
    """Number of connected components in one trait's interaction network.

    Unattached loci count as components of their own.
    """
    loci = arch.loci_of(trait)
    in_trait = arch.traitids[arch.edge_from] == trait
    rows = np.searchsorted(loci, arch.edge_from[in_trait])
    cols = np.searchsorted(loci, arch.edge_to[in_trait])
    graph = csr_matrix(
        (np.ones(rows.size), (rows, cols)), shape=(loci.size, loci.size)
    )
    n_components, _ = connected_components(graph, directed=False)
    return int(n_components)


def degree_summary(arch: Architecture, trait: int) -> dict:
    """Max, mean and Gini coefficient of one trait's degree distribution,
    plus the number of connected components."""
    deg = arch.degrees(trait).astype(np.float64)
    components = network_components(arch, trait)
    if deg.size == 0 or deg.sum() == 0:
        return {'max': 0, 'mean': 0.0, 'gini': 0.0, 'components': components}
    sorted_deg = np.sort(deg)
    n = sorted_deg.size
    ranks = np.arange(1, n + 1)
    gini = float((2.0 * np.sum(ranks * sorted_deg)) / (n * sorted_deg.sum()) - (n + 1.0) / n)
    return {
        'max': int(deg.max()),
        'mean': float(deg.mean()),
        'gini': gini,
        'components': components,
    }


@dataclass
class PopulationDiagnostics:
    """Summary of one generated population."""
    allele_freq: np.ndarray = field(
        default_factory=lambda: np.zeros(0, dtype=np.float64)
    )
    heterozygosity_obs: float = 0.0
    heterozygosity_exp: float = 0.0
    trait_mean: np.ndarray = field(
        default_factory=lambda: np.zeros(0, dtype=np.float64)
    )
    trait_var: np.ndarray = field(
        default_factory=lambda: np.zeros(0, dtype=np.float64)
    )
    degrees: List[dict] = field(default_factory=list)
    n_individuals: int = 0


def compute_diagnostics(population: Population) -> PopulationDiagnostics:
    """Compute all summary statistics for a population."""
    arch = population.architecture
    haplotypes = population.alleles.haplotypes(population.popsize, arch.nloci)
    h_o, h_e = compute_heterozygosity(haplotypes)
    return PopulationDiagnostics(
        allele_freq=compute_allele_frequencies(haplotypes),
        heterozygosity_obs=h_o,
        heterozygosity_exp=h_e,
        trait_mean=population.traits.mean(axis=0),
        trait_var=population.traits.var(axis=0),
        degrees=[degree_summary(arch, t) for t in range(arch.ntraits)],
        n_individuals=population.popsize,
    )
