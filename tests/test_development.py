"""Tests for genarch.development — genotype → phenotype.

Acceptance criteria:
  - Zero-noise additive case: trait = Σ genotype × dominance × effect
  - Single-edge case: interaction = expr(from) × expr(to) × w × ε
  - Epistasis scale splits additive vs interaction weight
  - Result invariant to locus and edge order (within float tolerance)
  - Chunked accumulation gives the same result
  - Noise is per (individual, trait) with the trait's scale
"""

import numpy as np
import pytest

from genarch.alleles import AlleleMatrix
from genarch.architecture import Architecture, generate_architecture
from genarch.config import ArchitectureSection, DevelopmentSection, GenarchConfig
from genarch.development import (
    additive_contributions,
    develop,
    expression_matrix,
    genetic_values,
    interaction_contributions,
    population_size,
)
from genarch.mutation import mutate
from genarch.types import SamplingMode


def config_for(arch: Architecture, epistasis, dominance, envnoise, popsize=1) -> GenarchConfig:
    config = GenarchConfig(
        architecture=ArchitectureSection(
            ntraits=arch.ntraits,
            nloci_per_trait=arch.nloci_per_trait.tolist(),
            nedges_per_trait=arch.nedges_per_trait.tolist(),
            skews=[1.0] * arch.ntraits,
        ),
        development=DevelopmentSection(
            epistasis=list(epistasis), dominance=list(dominance), envnoise=list(envnoise),
        ),
    )
    config.population.popsize = popsize
    return config


def alleles_from_haplotypes(h: np.ndarray) -> AlleleMatrix:
    """Pack a (2, P, L) 0/1 array."""
    return AlleleMatrix.from_bits(np.asarray(h).ravel())


# ═══════════════════════════════════════════════════════════════════════
# END-TO-END SCENARIOS
# ═══════════════════════════════════════════════════════════════════════


class TestScenarios:
    def test_additive_only_single_individual(self):
        """1 trait, 5 loci, no edges, no noise: Σ genotype × effect."""
        effects = np.array([0.5, -1.0, 2.0, 0.25, 3.0])
        arch = Architecture.from_arrays(
            traitids=[0] * 5, effects=effects, dominances=[1.0] * 5,
        )
        config = config_for(arch, epistasis=[0.0], dominance=[1.0], envnoise=[0.0])
        h = np.array([[[1, 0, 1, 1, 0]], [[1, 1, 0, 0, 0]]])
        genotype = h.sum(axis=0)[0]  # [2, 1, 1, 1, 0]

        traits = develop(alleles_from_haplotypes(h), config, arch, np.random.default_rng(0))
        assert traits.shape == (1, 1)
        assert traits[0, 0] == pytest.approx(float(np.dot(genotype, effects)))

    def test_all_zero_scales_give_zero(self):
        arch = Architecture.from_arrays(traitids=[0] * 5, effects=[0.0] * 5, dominances=[0.0] * 5)
        config = config_for(arch, epistasis=[0.0], dominance=[0.0], envnoise=[0.0])
        h = np.ones((2, 1, 5), dtype=np.uint8)
        traits = develop(alleles_from_haplotypes(h), config, arch, np.random.default_rng(0))
        assert traits[0, 0] == 0.0

    def test_single_edge_interaction(self):
        """2 loci, edge 0→1, w = 2, ε = 1, both heterozygous: 1 × 1 × 2 × 1 = 2."""
        arch = Architecture.from_arrays(
            traitids=[0, 0], effects=[0.7, -0.3], dominances=[1.0, 1.0],
            edge_from=[0], edge_to=[1], weights=[2.0],
        )
        config = config_for(arch, epistasis=[1.0], dominance=[1.0], envnoise=[0.0])
        h = np.array([[[1, 0]], [[0, 1]]])
        traits = develop(alleles_from_haplotypes(h), config, arch, np.random.default_rng(0))
        # additive term vanishes at ε = 1
        assert traits[0, 0] == pytest.approx(2.0)

    def test_single_edge_with_partial_epistasis(self):
        arch = Architecture.from_arrays(
            traitids=[0, 0], effects=[0.7, -0.3], dominances=[1.0, 1.0],
            edge_from=[0], edge_to=[1], weights=[2.0],
        )
        config = config_for(arch, epistasis=[0.25], dominance=[1.0], envnoise=[0.0])
        h = np.array([[[1, 0]], [[0, 1]]])
        traits = develop(alleles_from_haplotypes(h), config, arch, np.random.default_rng(0))
        additive = (0.7 - 0.3) * 0.75
        interaction = 1.0 * 1.0 * 2.0 * 0.25
        assert traits[0, 0] == pytest.approx(additive + interaction)


# ═══════════════════════════════════════════════════════════════════════
# COMPONENTS
# ═══════════════════════════════════════════════════════════════════════


@pytest.fixture
def two_trait_arch():
    return Architecture.from_arrays(
        traitids=[1, 0, 1, 0, 1],
        effects=[0.1, 0.2, 0.3, 0.4, 0.5],
        dominances=[1.0, 0.5, 2.0, 1.0, -1.0],
        edge_from=[0, 1, 4],
        edge_to=[2, 3, 0],
        weights=[1.5, -2.0, 0.5],
    )


class TestComponents:
    def test_expression_scales(self, two_trait_arch):
        genotypes = np.array([[2, 1, 0, 1, 2]])
        expr = expression_matrix(genotypes, two_trait_arch, np.array([3.0, 0.5]))
        expected = np.array([[2 * 1.0 * 0.5, 1 * 0.5 * 3.0, 0.0, 1 * 1.0 * 3.0, 2 * -1.0 * 0.5]])
        np.testing.assert_allclose(expr, expected)

    def test_additive_routes_to_trait(self, two_trait_arch):
        expr = np.array([[1.0, 1.0, 1.0, 1.0, 1.0]])
        add = additive_contributions(expr, two_trait_arch, np.array([0.0, 0.5]))
        np.testing.assert_allclose(add, [[0.2 + 0.4, (0.1 + 0.3 + 0.5) * 0.5]])

    def test_interaction_uses_source_trait_scale(self, two_trait_arch):
        expr = np.array([[1.0, 2.0, 3.0, 4.0, 5.0]])
        inter = interaction_contributions(expr, two_trait_arch, np.array([0.1, 0.9]))
        trait0 = 2.0 * 4.0 * -2.0 * 0.1
        trait1 = (1.0 * 3.0 * 1.5 + 5.0 * 1.0 * 0.5) * 0.9
        np.testing.assert_allclose(inter, [[trait0, trait1]])

    def test_no_edges(self):
        arch = Architecture.from_arrays(traitids=[0, 0], effects=[1, 1], dominances=[1, 1])
        inter = interaction_contributions(np.ones((3, 2)), arch, np.array([0.5]))
        np.testing.assert_array_equal(inter, np.zeros((3, 1)))

    def test_population_size(self, two_trait_arch):
        assert population_size(AlleleMatrix.zeros(2 * 7 * 5), two_trait_arch) == 7
        with pytest.raises(ValueError):
            population_size(AlleleMatrix.zeros(11), two_trait_arch)

    @pytest.mark.parametrize("name", ["epistasis", "dominance", "envnoise"])
    def test_scale_count_must_match_traits(self, two_trait_arch, name):
        """A config with more traits than the architecture is rejected."""
        config = config_for(two_trait_arch, epistasis=[0.0, 0.0],
                            dominance=[1.0, 1.0], envnoise=[0.0, 0.0])
        setattr(config.development, name, [0.5, 0.5, 0.5])
        with pytest.raises(ValueError, match=f"development.{name}"):
            develop(AlleleMatrix.zeros(2 * 3 * 5), config, two_trait_arch,
                    np.random.default_rng(0))

    def test_scale_count_too_short(self, two_trait_arch):
        config = config_for(two_trait_arch, epistasis=[0.0, 0.0],
                            dominance=[1.0], envnoise=[0.0, 0.0])
        with pytest.raises(ValueError, match="architecture has 2 traits"):
            genetic_values(AlleleMatrix.zeros(2 * 3 * 5), config, two_trait_arch)


# ═══════════════════════════════════════════════════════════════════════
# INVARIANCE & NOISE
# ═══════════════════════════════════════════════════════════════════════


@pytest.fixture
def random_population():
    config = GenarchConfig(
        architecture=ArchitectureSection(
            ntraits=3, nloci_per_trait=[12, 8, 10], nedges_per_trait=[20, 7, 15],
            skews=[1.0, 0.5, 2.0], effect=0.3, weight=0.4,
        ),
        development=DevelopmentSection(
            epistasis=[0.3, 0.6, 0.9], dominance=[1.0, 0.5, 2.0], envnoise=[0.0, 0.0, 0.0],
        ),
    )
    config.population.popsize = 40
    arch = generate_architecture(config, np.random.default_rng(1))
    alleles = AlleleMatrix.zeros(config.n_alleles)
    mutate(alleles, 0.4, SamplingMode.BINOMIAL, np.random.default_rng(2))
    return config, arch, alleles


class TestOrderInvariance:
    def test_edge_order(self, random_population):
        config, arch, alleles = random_population
        perm = np.random.default_rng(3).permutation(arch.nedges)
        shuffled = Architecture.from_arrays(
            traitids=arch.traitids, effects=arch.effects, dominances=arch.dominances,
            edge_from=arch.edge_from[perm], edge_to=arch.edge_to[perm],
            weights=arch.weights[perm], ntraits=arch.ntraits,
        )
        np.testing.assert_allclose(
            genetic_values(alleles, config, shuffled),
            genetic_values(alleles, config, arch),
            rtol=1e-10, atol=1e-12,
        )

    def test_locus_order(self, random_population):
        """Relabelling loci (and moving their allele columns) changes nothing."""
        config, arch, alleles = random_population
        P, L = config.popsize, arch.nloci
        perm = np.random.default_rng(4).permutation(L)     # new locus k = old perm[k]
        inverse = np.argsort(perm)
        relabelled = Architecture.from_arrays(
            traitids=arch.traitids[perm], effects=arch.effects[perm],
            dominances=arch.dominances[perm],
            edge_from=inverse[arch.edge_from], edge_to=inverse[arch.edge_to],
            weights=arch.weights, ntraits=arch.ntraits,
        )
        h = alleles.haplotypes(P, L)[:, :, perm]
        np.testing.assert_allclose(
            genetic_values(alleles_from_haplotypes(h), config, relabelled),
            genetic_values(alleles, config, arch),
            rtol=1e-10, atol=1e-12,
        )

    @pytest.mark.parametrize("chunk_size", [1, 7, 40, 1000])
    def test_chunking(self, random_population, chunk_size):
        config, arch, alleles = random_population
        np.testing.assert_allclose(
            genetic_values(alleles, config, arch, chunk_size=chunk_size),
            genetic_values(alleles, config, arch),
        )

    def test_deterministic_without_noise(self, random_population):
        config, arch, alleles = random_population
        a = develop(alleles, config, arch, np.random.default_rng(1))
        b = develop(alleles, config, arch, np.random.default_rng(2))
        np.testing.assert_array_equal(a, b)


class TestNoise:
    def test_noise_scale_per_trait(self):
        arch = Architecture.from_arrays(
            traitids=[0, 1, 2], effects=[0.0] * 3, dominances=[0.0] * 3,
        )
        config = config_for(arch, epistasis=[0.0] * 3, dominance=[0.0] * 3,
                            envnoise=[0.0, 1.0, 3.0], popsize=20_000)
        alleles = AlleleMatrix.zeros(config.n_alleles)
        traits = develop(alleles, config, arch, np.random.default_rng(8))
        assert traits.shape == (20_000, 3)
        assert np.all(traits[:, 0] == 0.0)
        assert abs(traits[:, 1].std() - 1.0) < 0.05
        assert abs(traits[:, 2].std() - 3.0) < 0.15
        # independent draws: no two individuals share a value
        assert np.unique(traits[:, 1]).size == 20_000

    def test_noise_independent_of_chunking(self, random_population):
        config, arch, alleles = random_population
        config.development.envnoise = [1.0, 1.0, 1.0]
        a = develop(alleles, config, arch, np.random.default_rng(5))
        b = develop(alleles, config, arch, np.random.default_rng(5), chunk_size=3)
        np.testing.assert_allclose(a, b)
