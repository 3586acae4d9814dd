"""Basis-vector helpers shared by the amplitude store and containers.

A basis vector is a plain ``tuple[int, ...]``, one entry per tracked
variable; tuples hash structurally so they key the amplitude map directly.
"""

from __future__ import annotations

import math
from itertools import product
from typing import Iterable, Sequence

import numpy as np

Basis = tuple[int, ...]
AmplitudeMap = dict[Basis, complex]


def bits_to_index(bits: Sequence[int]) -> int:
    """Binary value of ``bits`` with the first entry as the most significant bit."""
    value = 0
    for b in bits:
        value = (value << 1) | int(b)
    return value


def index_to_bits(value: int, width: int) -> Basis:
    return tuple((value >> (width - 1 - i)) & 1 for i in range(width))


def project(basis: Basis, indices: Sequence[int]) -> Basis:
    """Values of ``basis`` at ``indices``, in the order given."""
    return tuple(basis[i] for i in indices)


def tensor_product(factors: Iterable[Sequence[tuple[int, complex]]]) -> AmplitudeMap:
    """Cartesian combination of weighted value lists.

    Each factor is a list of ``(value, weight)`` pairs. The returned map has
    one entry per combination with amplitude equal to the product of the
    contributing weights. Combinations whose product is exactly zero are
    kept so the cardinality always equals the product of the domain sizes.
    """
    factors = [list(f) for f in factors]
    result: AmplitudeMap = {}
    for combo in product(*factors):
        key = tuple(int(v) for v, _ in combo)
        amp = complex(1.0)
        for _, w in combo:
            amp *= complex(w)
        result[key] = result.get(key, 0j) + amp
    return result


def total_probability(amplitudes: AmplitudeMap) -> float:
    return float(sum(abs(a) ** 2 for a in amplitudes.values()))


def normalise(amplitudes: AmplitudeMap, threshold: float = 1e-15) -> AmplitudeMap:
    """Scale amplitudes so squared magnitudes sum to one.

    Returns the input unchanged when its total mass is below ``threshold``.
    """
    mass = total_probability(amplitudes)
    if mass < threshold:
        return amplitudes
    scale = math.sqrt(mass)
    return {k: v / scale for k, v in amplitudes.items()}


def to_dense(amplitudes: AmplitudeMap, num_qubits: int) -> np.ndarray:
    """Dense state vector for a binary amplitude map (qubit 0 is the MSB)."""
    data = np.zeros(2 ** num_qubits, dtype=np.complex128)
    for key, amp in amplitudes.items():
        data[bits_to_index(key)] += amp
    return data
