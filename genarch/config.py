"""Configuration system for GenArch.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Per-trait parameters are lists with one entry per trait. The validated
config is the hyperparameter set consumed by the architecture generator,
the mutation engine and the development engine.

Defaults: 10 individuals, one trait
encoded by 10 loci with no interactions, no mutations.
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import yaml

from genarch.types import DEFAULT_RATIO, SamplingMode, n_alleles

if TYPE_CHECKING:
    from genarch.architecture import Architecture


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class PopulationSection:
    """Population size and master seed."""
    popsize: int = 10
    seed: int = 42


@dataclass
class ArchitectureSection:
    """Shape of the genetic architecture, one list entry per trait."""
    ntraits: int = 1
    nloci_per_trait: List[int] = field(default_factory=lambda: [10])
    nedges_per_trait: List[int] = field(default_factory=lambda: [0])
    skews: List[float] = field(default_factory=lambda: [1.0])   # 1.0 = unbiased attachment
    effect: float = 0.0          # SD of additive effect sizes
    weight: float = 0.0          # SD of interaction weights


@dataclass
class DevelopmentSection:
    """Per-trait scaling of epistasis, dominance and environmental noise."""
    epistasis: List[float] = field(default_factory=lambda: [0.0])   # ∈ [0, 1]
    dominance: List[float] = field(default_factory=lambda: [0.0])
    envnoise: List[float] = field(default_factory=lambda: [0.0])


@dataclass
class MutationSection:
    """Allele-matrix seeding.

    rate: probability that an allele is in state 1 (μ).
    sampling: 'given' | 'bernoulli' | 'binomial' | 'geometric' (or 0–3).
    ratio: mutation density above which positions come from a full
        shuffle instead of a partial Fisher–Yates shuffle.
    """
    rate: float = 0.0
    sampling: Union[str, int, SamplingMode] = SamplingMode.GIVEN
    ratio: float = DEFAULT_RATIO

    @property
    def mode(self) -> SamplingMode:
        return SamplingMode.coerce(self.sampling)


@dataclass
class GenarchConfig:
    """Complete run configuration."""
    population: PopulationSection = field(default_factory=PopulationSection)
    architecture: ArchitectureSection = field(default_factory=ArchitectureSection)
    development: DevelopmentSection = field(default_factory=DevelopmentSection)
    mutation: MutationSection = field(default_factory=MutationSection)

    @property
    def popsize(self) -> int:
        return self.population.popsize

    @property
    def ntraits(self) -> int:
        return self.architecture.ntraits

    @property
    def nloci(self) -> int:
        return int(sum(self.architecture.nloci_per_trait))

    @property
    def nedges(self) -> int:
        return int(sum(self.architecture.nedges_per_trait))

    @property
    def n_alleles(self) -> int:
        return n_alleles(self.popsize, self.nloci)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base (mutates base).

    Nested dicts are merged; all other values are replaced.

    Args:
        base: Base dictionary (modified in place).
        override: Values to overlay.

    Returns:
        The merged base dict.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


_SECTION_MAP = {
    'population': PopulationSection,
    'architecture': ArchitectureSection,
    'development': DevelopmentSection,
    'mutation': MutationSection,
}


def _yaml_to_config(data: Dict) -> GenarchConfig:
    """Convert a merged YAML dict to a GenarchConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return GenarchConfig(**sections)


def config_to_dict(config: GenarchConfig) -> Dict[str, Dict[str, Any]]:
    """Plain-dict form of a config, suitable for ``yaml.safe_dump``."""
    out = dataclasses.asdict(config)
    out['mutation']['sampling'] = config.mutation.mode.name.lower()
    return out


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def _check_per_trait(name: str, values: List, ntraits: int) -> None:
    if len(values) != ntraits:
        raise ValueError(
            f"{name} must have {ntraits} entries (one per trait), got {len(values)}"
        )


def validate_config(config: GenarchConfig, directed: bool = False) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Population size and seed
      - Per-trait lists have one entry per trait
      - Locus counts are positive and edge counts fit a simple graph
        (L(L-1)/2 pairs; L(L-1) ordered pairs when ``directed``, as for
        pre-built architectures that may list both u→v and v→u)
      - Proportions (epistasis, mutation rate, ratio) lie in [0, 1]
      - Scales and standard deviations are non-negative
      - Sampling mode is one of the four known modes
    """
    pop = config.population
    if pop.popsize < 1:
        raise ValueError(f"population.popsize must be >= 1, got {pop.popsize}")
    if pop.seed < 0:
        raise ValueError("population.seed must be non-negative")

    a = config.architecture
    if a.ntraits < 1:
        raise ValueError(f"architecture.ntraits must be >= 1, got {a.ntraits}")
    _check_per_trait('architecture.nloci_per_trait', a.nloci_per_trait, a.ntraits)
    _check_per_trait('architecture.nedges_per_trait', a.nedges_per_trait, a.ntraits)
    _check_per_trait('architecture.skews', a.skews, a.ntraits)
    for j, (nl, ne) in enumerate(zip(a.nloci_per_trait, a.nedges_per_trait)):
        if nl < 1:
            raise ValueError(
                f"architecture.nloci_per_trait[{j}] must be >= 1, got {nl}"
            )
        if ne < 0:
            raise ValueError(
                f"architecture.nedges_per_trait[{j}] must be >= 0, got {ne}"
            )
        max_edges = nl * (nl - 1) if directed else nl * (nl - 1) // 2
        if ne > max_edges:
            raise ValueError(
                f"Too many edges for the number of loci for trait {j}: "
                f"architecture.nedges_per_trait[{j}]={ne} > {max_edges}"
            )
    for j, s in enumerate(a.skews):
        if s < 0:
            raise ValueError(f"architecture.skews[{j}] must be >= 0, got {s}")
    if a.effect < 0:
        raise ValueError(f"architecture.effect must be >= 0, got {a.effect}")
    if a.weight < 0:
        raise ValueError(f"architecture.weight must be >= 0, got {a.weight}")

    d = config.development
    _check_per_trait('development.epistasis', d.epistasis, a.ntraits)
    _check_per_trait('development.dominance', d.dominance, a.ntraits)
    _check_per_trait('development.envnoise', d.envnoise, a.ntraits)
    for j, x in enumerate(d.epistasis):
        if not 0.0 <= x <= 1.0:
            raise ValueError(f"development.epistasis[{j}] must be in [0, 1], got {x}")
    for j, x in enumerate(d.dominance):
        if x < 0:
            raise ValueError(f"development.dominance[{j}] must be >= 0, got {x}")
    for j, x in enumerate(d.envnoise):
        if x < 0:
            raise ValueError(f"development.envnoise[{j}] must be >= 0, got {x}")

    m = config.mutation
    if not 0.0 <= m.rate <= 1.0:
        raise ValueError(f"mutation.rate must be in [0, 1], got {m.rate}")
    if not 0.0 <= m.ratio <= 1.0:
        raise ValueError(f"mutation.ratio must be in [0, 1], got {m.ratio}")
    try:
        m.mode
    except ValueError as exc:
        raise ValueError(f"mutation.sampling: {exc}") from exc

    # Legal but probably unintended
    for j, (x, ne) in enumerate(zip(d.epistasis, a.nedges_per_trait)):
        if x > 0 and ne == 0:
            warnings.warn(
                f"development.epistasis[{j}]={x} but trait {j} has no edges; "
                f"its additive effects are scaled by {1.0 - x} with nothing "
                f"to compensate.",
                UserWarning,
                stacklevel=2,
            )


def apply_architecture(config: GenarchConfig, arch: "Architecture") -> GenarchConfig:
    """Override the architecture shape in ``config`` with a pre-built one.

    Locus and edge counts per trait are taken from ``arch``; the per-trait
    scaling lists must already match its trait count.

    Args:
        config: Configuration (modified in place).
        arch: Validated architecture.

    Returns:
        The updated, revalidated config.
    """
    a = config.architecture
    a.ntraits = arch.ntraits
    a.nloci_per_trait = [int(x) for x in arch.nloci_per_trait]
    a.nedges_per_trait = [int(x) for x in arch.nedges_per_trait]
    if len(a.skews) != arch.ntraits:
        a.skews = [1.0] * arch.ntraits  # unused when the architecture is supplied
    validate_config(config, directed=True)
    return config


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> GenarchConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML (skipped if missing).
        overrides: Optional dict of parameter overrides (e.g. a sweep).

    Returns:
        Validated GenarchConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> GenarchConfig:
    """Return a GenarchConfig with all default values."""
    config = GenarchConfig()
    validate_config(config)
    return config
