"""Quantum Fourier transform and Grover search over a shared amplitude store.

Both work on an arbitrary ordered subset of a store's indices; the first
index is the most significant bit. Queued gates are processed before every
immediate multi-qubit step and once more at the end, so the store reflects
the whole algorithm when these functions return.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Sequence

import numpy as np

from ..core.errors import InvalidConfigurationError
from .amplitude_store import QuantumSystem
from .basis import Basis, index_to_bits
from .gates import H_MATRIX, SWAP_MATRIX, cphase_matrix

logger = logging.getLogger(__name__)


def _check_qubits(qubits: Sequence[int]) -> tuple[int, ...]:
    qubits = tuple(int(q) for q in qubits)
    if not qubits:
        raise InvalidConfigurationError("Algorithm needs at least one qubit")
    return qubits


def quantum_fourier_transform(system: QuantumSystem, qubits: Sequence[int]):
    """Apply the QFT to ``qubits``.

    ``|x>`` becomes ``sum_k e^(2 pi i x k / N) |k> / sqrt(N)``.
    """
    qubits = _check_qubits(qubits)
    n = len(qubits)
    for i in range(n):
        system.apply_single_qubit_gate(qubits[i], H_MATRIX, "H")
        for j in range(i + 1, n):
            theta = math.pi / 2 ** (j - i)
            system.apply_two_qubit_gate(qubits[j], qubits[i],
                                        cphase_matrix(theta), f"CPHASE({theta:.6g})")
    for i in range(n // 2):
        system.apply_two_qubit_gate(qubits[i], qubits[n - 1 - i], SWAP_MATRIX, "SWAP")
    system.process_gate_queue()
    logger.debug("QFT applied to %s", list(qubits))


def inverse_quantum_fourier_transform(system: QuantumSystem, qubits: Sequence[int]):
    """Undo ``quantum_fourier_transform`` on the same ``qubits``."""
    qubits = _check_qubits(qubits)
    n = len(qubits)
    for i in range(n // 2):
        system.apply_two_qubit_gate(qubits[i], qubits[n - 1 - i], SWAP_MATRIX, "SWAP")
    for i in range(n - 1, -1, -1):
        for j in range(n - 1, i, -1):
            theta = -math.pi / 2 ** (j - i)
            system.apply_two_qubit_gate(qubits[j], qubits[i],
                                        cphase_matrix(theta), f"CPHASE({theta:.6g})")
        system.apply_single_qubit_gate(qubits[i], H_MATRIX, "H")
    system.process_gate_queue()
    logger.debug("Inverse QFT applied to %s", list(qubits))


def phase_oracle_matrix(num_qubits: int,
                        oracle: Callable[[Basis], bool]) -> np.ndarray:
    """Diagonal matrix flipping the sign of every basis state ``oracle`` marks."""
    dim = 2 ** num_qubits
    return np.diag([-1.0 if oracle(index_to_bits(i, num_qubits)) else 1.0
                    for i in range(dim)]).astype(np.complex128)


def diffusion_matrix(num_qubits: int) -> np.ndarray:
    """Inversion about the mean, ``2|s><s| - I`` for the uniform state ``|s>``."""
    dim = 2 ** num_qubits
    return (np.full((dim, dim), 2.0 / dim) - np.eye(dim)).astype(np.complex128)


def grover_iterations(num_qubits: int) -> int:
    return max(1, int(math.floor(math.pi / 4 * math.sqrt(2 ** num_qubits))))


def grover_search(system: QuantumSystem, qubits: Sequence[int],
                  oracle: Callable[[Basis], bool],
                  iterations: int | None = None) -> int:
    """Amplify the basis states of ``qubits`` that ``oracle`` marks.

    ``qubits`` are expected to start in ``|0..0>``; a Hadamard layer prepares
    the uniform superposition. ``oracle`` receives the bit tuple of the
    subspace, most significant first. Returns the number of iterations run.
    """
    qubits = _check_qubits(qubits)
    n = len(qubits)
    rounds = grover_iterations(n) if iterations is None else iterations
    if rounds < 0:
        raise InvalidConfigurationError(f"iterations must be >= 0, got {rounds}")

    oracle_gate = phase_oracle_matrix(n, oracle)
    diffusion_gate = diffusion_matrix(n)
    for q in qubits:
        system.apply_single_qubit_gate(q, H_MATRIX, "H")
    for _ in range(rounds):
        system.process_gate_queue()
        system.apply_multi_qubit_gate(qubits, oracle_gate, "ORACLE")
        system.apply_multi_qubit_gate(qubits, diffusion_gate, "DIFFUSION")
    system.process_gate_queue()
    logger.info("Grover search on %s ran %d iteration(s)", list(qubits), rounds)
    return rounds
