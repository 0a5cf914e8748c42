"""GenArch: synthetic populations with interacting polygenic architectures.

Builds a population for testing quantitative-genetics analyses:
  - Per-trait locus interaction networks grown by preferential attachment
    with tunable degree skew
  - A packed diploid allele matrix seeded by one of four mutation
    sampling regimes
  - Trait values from additive, dominance and epistatic effects plus
    environmental noise
"""

__version__ = "0.1.0"
