"""Genetic architecture: which loci encode which trait, and how they interact.

An architecture holds, per locus, the trait it encodes, its additive
effect and its dominance deviation; and, per edge, a directed interaction
between two loci of the same trait with an epistatic weight.

Architectures are either supplied pre-built (``Architecture.from_arrays``)
or grown by ``generate_architecture``, which builds one connected
interaction network per trait with a modified Barabási–Albert
preferential-attachment process:
  - vertices 0 and 1 are joined by the seed edge
  - each later vertex makes a random number of edges (not a fixed m),
    at least one while the edge budget allows, so that the per-trait total
    is met exactly and no vertex is left unattached
  - partners are drawn with probability ∝ degree^skew, without
    repeating a partner within the same vertex's batch

Error taxonomy:
  - ArchitectureGenerationError: the requested edge count could not be
    placed for some trait (structural infeasibility, not retryable)
  - ArchitectureError: an invariant is violated (count mismatch,
    self-loop, cross-trait edge, out-of-range index)

References:
  - Barabási & Albert (1999) Science 286:509–512
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from genarch.config import GenarchConfig


# ═══════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════

class ArchitectureError(ValueError):
    """An architecture violates one of its structural invariants."""


class ArchitectureGenerationError(RuntimeError):
    """Not enough edges could be placed for a trait."""

    def __init__(self, trait: int, placed: int, requested: int):
        self.trait = trait
        self.placed = placed
        self.requested = requested
        super().__init__(
            f"Not enough edges could be made for trait {trait} "
            f"({placed} of {requested})"
        )


# ═══════════════════════════════════════════════════════════════════════
# ARCHITECTURE CONTAINER
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Architecture:
    """Trait / locus / edge network.

    Attributes:
        ntraits: Number of traits T.
        traitids: (N_loci,) int64 — trait encoded by each locus (0-based).
        effects: (N_loci,) float64 additive effect sizes.
        dominances: (N_loci,) float64 dominance deviations.
        edge_from: (N_edges,) int64 — source locus of each edge.
        edge_to: (N_edges,) int64 — target locus of each edge.
        weights: (N_edges,) float64 interaction weights.
        nloci_per_trait: (T,) int64 declared loci per trait.
        nedges_per_trait: (T,) int64 declared edges per trait.
    """
    ntraits: int
    traitids: np.ndarray
    effects: np.ndarray
    dominances: np.ndarray
    edge_from: np.ndarray
    edge_to: np.ndarray
    weights: np.ndarray
    nloci_per_trait: np.ndarray
    nedges_per_trait: np.ndarray

    @property
    def nloci(self) -> int:
        return int(self.traitids.size)

    @property
    def nedges(self) -> int:
        return int(self.edge_from.size)

    @classmethod
    def from_arrays(
        cls,
        traitids: Sequence[int],
        effects: Sequence[float],
        dominances: Sequence[float],
        edge_from: Sequence[int] = (),
        edge_to: Sequence[int] = (),
        weights: Sequence[float] = (),
        ntraits: Optional[int] = None,
    ) -> "Architecture":
        """Build and validate an architecture from pre-computed arrays.

        Per-trait locus and edge counts are derived from the arrays.
        Indices are 0-based.

        Raises:
            ArchitectureError: If the arrays are inconsistent.
        """
        traitids = np.asarray(traitids, dtype=np.int64).ravel()
        if ntraits is None:
            ntraits = int(traitids.max()) + 1 if traitids.size else 0
        arch = cls(
            ntraits=int(ntraits),
            traitids=traitids,
            effects=np.asarray(effects, dtype=np.float64).ravel(),
            dominances=np.asarray(dominances, dtype=np.float64).ravel(),
            edge_from=np.asarray(edge_from, dtype=np.int64).ravel(),
            edge_to=np.asarray(edge_to, dtype=np.int64).ravel(),
            weights=np.asarray(weights, dtype=np.float64).ravel(),
            nloci_per_trait=np.zeros(0, dtype=np.int64),
            nedges_per_trait=np.zeros(0, dtype=np.int64),
        )
        arch._check_shapes()
        arch.nloci_per_trait, arch.nedges_per_trait = arch.count_per_trait()
        arch.check()
        return arch

    # ── Validation ───────────────────────────────────────────────────

    def _check_shapes(self) -> None:
        if self.ntraits < 1:
            raise ArchitectureError(f"ntraits must be >= 1, got {self.ntraits}")
        if self.nloci < 1:
            raise ArchitectureError("Architecture must have at least one locus")
        if self.ntraits > self.nloci:
            raise ArchitectureError(
                f"Too many traits ({self.ntraits}) for the number of loci ({self.nloci})"
            )
        for name in ('effects', 'dominances'):
            if getattr(self, name).size != self.nloci:
                raise ArchitectureError(
                    f"Number of {name} ({getattr(self, name).size}) does not "
                    f"match number of loci ({self.nloci})"
                )
        for name in ('edge_to', 'weights'):
            if getattr(self, name).size != self.nedges:
                raise ArchitectureError(
                    f"Number of {name} ({getattr(self, name).size}) does not "
                    f"match number of edges ({self.nedges})"
                )
        if np.any(self.traitids < 0) or np.any(self.traitids >= self.ntraits):
            bad = int(np.flatnonzero((self.traitids < 0) | (self.traitids >= self.ntraits))[0])
            raise ArchitectureError(
                f"Encoded trait {self.traitids[bad]} of locus {bad} is out of bounds"
            )
        for name in ('edge_from', 'edge_to'):
            idx = getattr(self, name)
            if np.any(idx < 0) or np.any(idx >= self.nloci):
                bad = int(np.flatnonzero((idx < 0) | (idx >= self.nloci))[0])
                raise ArchitectureError(
                    f"Locus {idx[bad]} of edge {bad} ({name}) is out of bounds"
                )

    def count_per_trait(self) -> Tuple[np.ndarray, np.ndarray]:
        """Recount loci and edges per trait from the locus/edge arrays."""
        nl = np.bincount(self.traitids, minlength=self.ntraits).astype(np.int64)
        ne = np.bincount(
            self.traitids[self.edge_from], minlength=self.ntraits
        ).astype(np.int64)
        return nl, ne

    def check(self, config: Optional[GenarchConfig] = None) -> None:
        """Validate the architecture.

        Recomputes per-trait locus and edge counts and compares them with
        the declared counts (and with ``config`` when given). Every locus
        must encode exactly one valid trait; every edge must join two
        distinct in-range loci of the same trait, and no directed edge may
        appear twice.

        Raises:
            ArchitectureError: On any violation.
        """
        self._check_shapes()

        self_loops = np.flatnonzero(self.edge_from == self.edge_to)
        if self_loops.size:
            raise ArchitectureError(
                f"Start and end loci of edge {int(self_loops[0])} are the same"
            )
        cross = np.flatnonzero(
            self.traitids[self.edge_from] != self.traitids[self.edge_to]
        )
        if cross.size:
            raise ArchitectureError(
                f"Start and end loci of edge {int(cross[0])} affect different traits"
            )

        nl, ne = self.count_per_trait()
        empty = np.flatnonzero(nl == 0)
        if empty.size:
            raise ArchitectureError(f"Trait {int(empty[0])} is encoded by no locus")
        declared = [('declared', self.nloci_per_trait, self.nedges_per_trait)]
        if config is not None:
            if config.ntraits != self.ntraits:
                raise ArchitectureError(
                    f"Architecture has {self.ntraits} traits, config has {config.ntraits}"
                )
            declared.append((
                'configured',
                np.asarray(config.architecture.nloci_per_trait, dtype=np.int64),
                np.asarray(config.architecture.nedges_per_trait, dtype=np.int64),
            ))
        for label, want_l, want_e in declared:
            if not np.array_equal(nl, want_l):
                raise ArchitectureError(
                    f"Loci per trait {nl.tolist()} do not match {label} "
                    f"counts {np.asarray(want_l).tolist()}"
                )
            if not np.array_equal(ne, want_e):
                raise ArchitectureError(
                    f"Edges per trait {ne.tolist()} do not match {label} "
                    f"counts {np.asarray(want_e).tolist()}"
                )

        # Edges are directed: u→v at most once, v→u is a separate edge
        if self.nedges:
            pairs = self.edge_from * self.nloci + self.edge_to
            if np.unique(pairs).size != pairs.size:
                raise ArchitectureError("Architecture contains duplicate edges")

    # ── Queries ──────────────────────────────────────────────────────

    def loci_of(self, trait: int) -> np.ndarray:
        """Global indices of the loci encoding ``trait``, ascending."""
        return np.flatnonzero(self.traitids == trait)

    def degrees(self, trait: int) -> np.ndarray:
        """Degree of each locus of ``trait`` in its interaction network.

        Returns:
            (L_t,) int64, aligned with ``loci_of(trait)``.
        """
        all_degrees = (
            np.bincount(self.edge_from, minlength=self.nloci)
            + np.bincount(self.edge_to, minlength=self.nloci)
        )
        return all_degrees[self.loci_of(trait)].astype(np.int64)


# ═══════════════════════════════════════════════════════════════════════
# PREFERENTIAL ATTACHMENT
# ═══════════════════════════════════════════════════════════════════════


def attachment_network(
    nloci: int,
    nedges: int,
    skew: float,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Grow one trait's interaction network by preferential attachment.

    Vertex ``i`` (i ≥ 2) makes ``n_i`` edges to earlier vertices:

        n_i = 1 + Binomial(spare, 1 / vertices_left)
        spare = edges_left − (L − i − 1) − 1

    i.e. one edge is reserved for each vertex still to come and the spare
    budget is spread at random. ``n_i`` is clamped to [lower, upper]:
      - upper = min(i, edges_left − vertices still to come), since a vertex
        has only ``i`` possible partners
      - lower = edges_left − (most edges the later vertices can take)
    The last vertex takes everything that is left. When the budget is
    smaller than the number of vertices, later vertices stay unattached.

    Partners are sampled with probability ∝ degree^skew, computed at the
    start of each vertex's batch; a chosen partner drops to probability
    zero for the rest of the batch.

    Args:
        nloci: Number of vertices L (loci of the trait).
        nedges: Number of edges E to place.
        skew: Degree exponent (≥ 0; 1.0 = classic linear attachment).
        rng: Random generator.

    Returns:
        (vfrom, vto) local vertex indices, each (placed,) int64, with
        vfrom < vto. ``placed`` < ``nedges`` signals a shortfall.
    """
    if nedges == 0 or nloci < 2:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)

    vfrom = [0]
    vto = [1]
    degrees = np.zeros(nloci, dtype=np.float64)
    degrees[0] = degrees[1] = 1.0

    edges_left = nedges - 1

    for i in range(2, nloci):
        if edges_left == 0:
            break

        vertices_left = nloci - i          # including this one
        is_last = vertices_left == 1

        if is_last:
            n = min(edges_left, i)
        elif edges_left < vertices_left:
            n = 1
        else:
            spare = edges_left - (vertices_left - 1) - 1
            n = 1 + int(rng.binomial(spare, 1.0 / vertices_left))
            # Later vertices j take at most j edges each
            later_capacity = (i + 1 + nloci - 1) * (vertices_left - 1) // 2
            lower = max(1, edges_left - later_capacity)
            upper = min(i, edges_left - (vertices_left - 1))
            n = min(max(n, lower), upper)

        if skew == 1.0:
            probs = degrees[:i].copy()
        else:
            probs = np.power(degrees[:i], skew)
        n = min(n, int(np.count_nonzero(probs)))

        for _ in range(n):
            v = int(rng.choice(i, p=probs / probs.sum()))
            vfrom.append(v)
            vto.append(i)
            degrees[v] += 1.0
            degrees[i] += 1.0
            probs[v] = 0.0

        edges_left -= n

    return np.asarray(vfrom, dtype=np.int64), np.asarray(vto, dtype=np.int64)


# ═══════════════════════════════════════════════════════════════════════
# GENERATION
# ═══════════════════════════════════════════════════════════════════════


def assign_traits(
    nloci_per_trait: Sequence[int],
    rng: np.random.Generator,
) -> np.ndarray:
    """Assign trait ids in contiguous blocks, then shuffle across all loci.

    Args:
        nloci_per_trait: Loci per trait.
        rng: Random generator.

    Returns:
        (N_loci,) int64 trait ids, exactly ``nloci_per_trait[t]`` equal to t.
    """
    counts = np.asarray(nloci_per_trait, dtype=np.int64)
    traitids = np.repeat(np.arange(counts.size, dtype=np.int64), counts)
    rng.shuffle(traitids)
    return traitids


def generate_architecture(
    config: GenarchConfig,
    rng: np.random.Generator,
) -> Architecture:
    """Generate a random architecture from hyperparameters.

    Steps:
      1. Trait ids by block, shuffled once across all loci.
      2. Additive effects ~ N(0, 1) · effect; dominances ~ N(0, 1).
      3. Per trait with edges: preferential-attachment network, local
         vertex indices mapped to the trait's loci in ascending order,
         weights ~ N(0, 1) · weight.

    Args:
        config: Validated configuration.
        rng: Random generator (the 'architecture' stream).

    Returns:
        Validated Architecture.

    Raises:
        ArchitectureGenerationError: If fewer edges than requested could
            be placed for some trait.
    """
    a = config.architecture
    nloci = config.nloci

    traitids = assign_traits(a.nloci_per_trait, rng)
    effects = rng.normal(0.0, 1.0, size=nloci) * a.effect
    dominances = rng.normal(0.0, 1.0, size=nloci)

    edge_from = []
    edge_to = []
    for j in range(a.ntraits):
        requested = int(a.nedges_per_trait[j])
        if requested == 0:
            continue
        vfrom, vto = attachment_network(
            int(a.nloci_per_trait[j]), requested, float(a.skews[j]), rng,
        )
        if vfrom.size < requested:
            raise ArchitectureGenerationError(j, int(vfrom.size), requested)
        loci = np.flatnonzero(traitids == j)
        edge_from.append(loci[vfrom])
        edge_to.append(loci[vto])

    if edge_from:
        edge_from = np.concatenate(edge_from)
        edge_to = np.concatenate(edge_to)
    else:
        edge_from = np.zeros(0, dtype=np.int64)
        edge_to = np.zeros(0, dtype=np.int64)
    weights = rng.normal(0.0, 1.0, size=edge_from.size) * a.weight

    arch = Architecture(
        ntraits=a.ntraits,
        traitids=traitids,
        effects=effects,
        dominances=dominances,
        edge_from=edge_from.astype(np.int64),
        edge_to=edge_to.astype(np.int64),
        weights=weights,
        nloci_per_trait=np.asarray(a.nloci_per_trait, dtype=np.int64),
        nedges_per_trait=np.asarray(a.nedges_per_trait, dtype=np.int64),
    )
    arch.check(config)
    return arch
