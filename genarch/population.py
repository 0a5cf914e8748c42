"""Population generation: architecture → allele matrix → trait values.

Single pass, no generations:
  1. Build the architecture (generated from the config, or supplied
     pre-built, in which case its per-trait counts override the config)
  2. Seed an all-zero allele matrix through the mutation engine; the
     mutation rate acts as the expected frequency of allele 1
  3. Develop trait values from alleles + architecture

Each stage draws from its own stream of ``create_rng_streams(seed)``.
Errors from any stage propagate unchanged; nothing is retried.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Optional

import numpy as np

from genarch.alleles import AlleleMatrix
from genarch.architecture import Architecture, generate_architecture
from genarch.config import GenarchConfig, apply_architecture, validate_config
from genarch.development import develop
from genarch.mutation import mutate
from genarch.perf import PerfMonitor
from genarch.rng import create_rng_streams


@dataclass
class Population:
    """Output of one run."""
    config: GenarchConfig
    architecture: Architecture
    alleles: AlleleMatrix        # 2·P·L bits
    traits: np.ndarray           # (P, T) float64
    n_mutations: int = 0

    @property
    def popsize(self) -> int:
        return self.config.popsize

    def genotypes(self) -> np.ndarray:
        """(P, L) allele dosages."""
        return self.alleles.genotypes(self.popsize, self.architecture.nloci)


def generate_population(
    config: GenarchConfig,
    architecture: Optional[Architecture] = None,
    perf: Optional[PerfMonitor] = None,
    chunk_size: Optional[int] = None,
) -> Population:
    """Generate a synthetic population.

    Args:
        config: Configuration. Revalidated here and never modified; when
            ``architecture`` is given, its per-trait counts are written into
            a copy, which becomes ``Population.config``.
        architecture: Optional pre-built architecture.
        perf: Optional stage timer.
        chunk_size: Individuals per development chunk.

    Returns:
        Population with architecture, alleles and traits.

    Raises:
        ValueError: Invalid configuration or sampling mode.
        ArchitectureError: Supplied architecture violates an invariant.
        ArchitectureGenerationError: Edge count unreachable for a trait.
    """
    perf = perf or PerfMonitor(enabled=False)
    validate_config(config)
    rngs = create_rng_streams(config.population.seed)

    with perf.track("architecture"):
        if architecture is None:
            arch = generate_architecture(config, rngs['architecture'])
        else:
            architecture.check()
            config = apply_architecture(copy.deepcopy(config), architecture)
            arch = architecture
        arch.check(config)

    with perf.track("mutation"):
        alleles = AlleleMatrix.zeros(config.n_alleles)
        n_mut = mutate(
            alleles,
            config.mutation.rate,
            config.mutation.mode,
            rngs['mutation'],
            ratio=config.mutation.ratio,
        )

    with perf.track("development"):
        traits = develop(alleles, config, arch, rngs['development'], chunk_size=chunk_size)

    return Population(
        config=config,
        architecture=arch,
        alleles=alleles,
        traits=traits,
        n_mutations=n_mut,
    )
