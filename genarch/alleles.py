"""Packed diploid allele matrix.

The population's alleles are one long bit vector of N = 2·P·L bits stored
in 64-bit words. Flat bit ``i`` lives in word ``i // 64`` at bit position
``i % 64`` (least significant first), so consecutive loci of the same
haplotype sit next to each other inside a word.

Flat layout (haplotype-major, then individual, then locus):

    i = h * P * L + p * L + l        h ∈ {0, 1}, p < P, l < L

The logical length ``n_bits`` is kept separate from the word storage, and
the unused high bits of the final word are zero at every observation
point. Methods that touch whole words restore this explicitly.
"""

from __future__ import annotations

from typing import Iterable, Union

import numpy as np

from genarch.types import WORD_BITS, WORD_DTYPE, last_word_mask, n_words


class AlleleMatrix:
    """Bit vector with a logical length and word-aligned storage."""

    __hash__ = None  # mutable

    def __init__(self, words: np.ndarray, n_bits: int):
        if n_bits < 0:
            raise ValueError(f"n_bits must be >= 0, got {n_bits}")
        words = np.ascontiguousarray(words, dtype=WORD_DTYPE)
        if words.ndim != 1 or words.size != n_words(n_bits):
            raise ValueError(
                f"Expected {n_words(n_bits)} words for {n_bits} bits, "
                f"got shape {words.shape}"
            )
        if words.size and words[-1] & ~last_word_mask(n_bits):
            raise ValueError("Trailing bits of the final word must be zero")
        self.words = words
        self.n_bits = int(n_bits)

    # ── Construction ─────────────────────────────────────────────────

    @classmethod
    def zeros(cls, n_bits: int) -> "AlleleMatrix":
        """All-zero matrix of ``n_bits`` alleles."""
        return cls(np.zeros(n_words(n_bits), dtype=WORD_DTYPE), n_bits)

    @classmethod
    def from_words(cls, words: Iterable[int], n_bits: int) -> "AlleleMatrix":
        """Rebuild a matrix from its storage words.

        Raises:
            ValueError: If the word count is wrong or the trailing bits of
                the final word are not zero.
        """
        if not isinstance(words, np.ndarray):
            words = list(words)
        return cls(np.array(words, dtype=WORD_DTYPE), n_bits)

    @classmethod
    def from_bits(cls, bits: Union[np.ndarray, Iterable[bool]]) -> "AlleleMatrix":
        """Pack a flat boolean (or 0/1) array into a matrix."""
        flat = np.asarray(bits).astype(bool).ravel()
        n = flat.size
        padded = np.zeros(n_words(n) * WORD_BITS, dtype=np.uint8)
        padded[:n] = flat
        words = np.packbits(padded, bitorder='little').view(WORD_DTYPE).copy()
        return cls(words, n)

    def copy(self) -> "AlleleMatrix":
        return AlleleMatrix(self.words.copy(), self.n_bits)

    # ── Bit operations ───────────────────────────────────────────────

    def test(self, i: int) -> bool:
        """State of allele ``i``."""
        if not 0 <= i < self.n_bits:
            raise IndexError(f"Bit {i} out of range for {self.n_bits} bits")
        return bool((int(self.words[i // WORD_BITS]) >> (i % WORD_BITS)) & 1)

    def flip(self, positions: Union[np.ndarray, Iterable[int]]) -> None:
        """Flip the alleles at the given flat positions in place.

        A position listed twice is flipped twice.

        Raises:
            ValueError: If any position is outside [0, n_bits).
        """
        pos = np.asarray(positions, dtype=np.int64).ravel()
        if pos.size == 0:
            return
        if pos.min() < 0 or pos.max() >= self.n_bits:
            raise ValueError(
                f"Positions must lie in [0, {self.n_bits}), "
                f"got range [{pos.min()}, {pos.max()}]"
            )
        masks = np.left_shift(np.uint64(1), (pos % WORD_BITS).astype(np.uint64))
        np.bitwise_xor.at(self.words, pos // WORD_BITS, masks)

    def flip_all(self) -> None:
        """Flip every allele, keeping the trailing bits zero."""
        if self.words.size == 0:
            return
        np.invert(self.words, out=self.words)
        self.words[-1] &= last_word_mask(self.n_bits)

    def count(self) -> int:
        """Number of alleles in state 1."""
        return int(np.unpackbits(self.words.view(np.uint8)).sum())

    # ── Views ────────────────────────────────────────────────────────

    def to_bits(self) -> np.ndarray:
        """Unpack to a flat (n_bits,) bool array."""
        bits = np.unpackbits(self.words.view(np.uint8), bitorder='little')
        return bits[:self.n_bits].astype(bool)

    def haplotypes(self, popsize: int, nloci: int) -> np.ndarray:
        """Alleles as a (2, P, L) uint8 array (haplotype, individual, locus).

        Raises:
            ValueError: If 2·P·L does not match the stored bit count.
        """
        if 2 * popsize * nloci != self.n_bits:
            raise ValueError(
                f"2 x {popsize} individuals x {nloci} loci != {self.n_bits} bits"
            )
        return self.to_bits().reshape(2, popsize, nloci).astype(np.uint8)

    def genotypes(self, popsize: int, nloci: int) -> np.ndarray:
        """Diploid dosage (allele1 + allele2) as a (P, L) uint8 array."""
        h = self.haplotypes(popsize, nloci)
        return h[0] + h[1]

    def to_rows(self, popsize: int) -> np.ndarray:
        """One boolean row per individual, one column per allele.

        Columns are the individual's first-haplotype loci followed by its
        second-haplotype loci, shape (P, 2L).
        """
        if popsize <= 0 or self.n_bits % (2 * popsize):
            raise ValueError(f"{self.n_bits} bits cannot be split among {popsize} individuals")
        nloci = self.n_bits // (2 * popsize)
        h = self.haplotypes(popsize, nloci).astype(bool)
        return h.transpose(1, 0, 2).reshape(popsize, 2 * nloci)

    def __len__(self) -> int:
        return self.n_bits

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AlleleMatrix):
            return NotImplemented
        return self.n_bits == other.n_bits and np.array_equal(self.words, other.words)

    def __repr__(self) -> str:
        return f"AlleleMatrix(n_bits={self.n_bits}, n_words={self.words.size}, ones={self.count()})"
