"""Random-source handling and weighted sampling for observations."""

from __future__ import annotations

from typing import Hashable, Mapping, Sequence, TypeVar, Union

import numpy as np

from ..core.errors import ExhaustedStateError
from .basis import AmplitudeMap, Basis, project

K = TypeVar("K", bound=Hashable)

RandomSource = Union[np.random.Generator, int, None]


def resolve_rng(rng: RandomSource = None) -> np.random.Generator:
    """Accept a Generator, an integer seed, or None (fresh entropy)."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def choose_weighted(items: Sequence[tuple[K, float]],
                    rng: np.random.Generator,
                    zero_threshold: float = 1e-15) -> K:
    """Pick one key with probability proportional to its weight.

    Uses a single uniform roll against the running cumulative weight, so a
    seeded generator always replays the same choice for the same items.
    """
    total = float(sum(w for _, w in items))
    if not items or total < zero_threshold:
        raise ExhaustedStateError(
            "Cannot sample: total probability mass is zero")
    roll = rng.random() * total
    cumulative = 0.0
    for key, weight in items:
        cumulative += weight
        if roll < cumulative:
            return key
    # Rounding can leave roll == total; fall back to the last weighted entry.
    for key, weight in reversed(items):
        if weight > 0:
            return key
    return items[-1][0]


def consistent_with(basis: Basis, pins: Mapping[int, int]) -> bool:
    return all(basis[i] == v for i, v in pins.items())


def group_by_projection(amplitudes: AmplitudeMap,
                        indices: Sequence[int],
                        pins: Mapping[int, int] | None = None,
                        ) -> list[tuple[Basis, float]]:
    """Probability mass of each distinct projection onto ``indices``.

    Basis vectors that disagree with ``pins`` are ignored. Groups come out in
    first-seen order so sampling is reproducible for a given map.
    """
    masses: dict[Basis, float] = {}
    for basis, amp in amplitudes.items():
        if pins and not consistent_with(basis, pins):
            continue
        key = project(basis, indices)
        masses[key] = masses.get(key, 0.0) + abs(amp) ** 2
    return list(masses.items())
