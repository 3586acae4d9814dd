"""Gate matrix catalog and small matrix helpers.

The engine treats every gate as an opaque ``2^k x 2^k`` complex matrix;
this module only supplies the usual constants by name.
"""

from __future__ import annotations

from functools import reduce

import numpy as np


# --- Fixed single-qubit gate matrices ---

I_MATRIX = np.eye(2, dtype=np.complex128)

X_MATRIX = np.array([[0, 1],
                      [1, 0]], dtype=np.complex128)

Y_MATRIX = np.array([[0, -1j],
                      [1j, 0]], dtype=np.complex128)

Z_MATRIX = np.array([[1, 0],
                      [0, -1]], dtype=np.complex128)

H_MATRIX = np.array([[1, 1],
                      [1, -1]], dtype=np.complex128) / np.sqrt(2)

S_MATRIX = np.array([[1, 0],
                      [0, 1j]], dtype=np.complex128)

S_DAG_MATRIX = S_MATRIX.conj().T

T_MATRIX = np.array([[1, 0],
                      [0, np.exp(1j * np.pi / 4)]], dtype=np.complex128)

T_DAG_MATRIX = T_MATRIX.conj().T

# Square root of NOT: SX @ SX == X
SX_MATRIX = np.array([[1 + 1j, 1 - 1j],
                       [1 - 1j, 1 + 1j]], dtype=np.complex128) / 2

SX_DAG_MATRIX = SX_MATRIX.conj().T


# --- Parameterized single-qubit gate functions ---

def rx_matrix(theta: float) -> np.ndarray:
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -1j * s],
                      [-1j * s, c]], dtype=np.complex128)


def ry_matrix(theta: float) -> np.ndarray:
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -s],
                      [s, c]], dtype=np.complex128)


def rz_matrix(theta: float) -> np.ndarray:
    return np.array([[np.exp(-1j * theta / 2), 0],
                      [0, np.exp(1j * theta / 2)]], dtype=np.complex128)


def phase_matrix(phi: float) -> np.ndarray:
    return np.array([[1, 0],
                      [0, np.exp(1j * phi)]], dtype=np.complex128)


# --- Fixed multi-qubit gate matrices ---
# First target index is the most significant bit of the row index.

CNOT_MATRIX = np.array([
    [1, 0, 0, 0],
    [0, 1, 0, 0],
    [0, 0, 0, 1],
    [0, 0, 1, 0]], dtype=np.complex128)

CZ_MATRIX = np.diag([1, 1, 1, -1]).astype(np.complex128)


def cphase_matrix(theta: float) -> np.ndarray:
    """Controlled phase: multiplies |11> by e^(i theta). Symmetric in its targets."""
    return np.diag([1, 1, 1, np.exp(1j * theta)]).astype(np.complex128)


SWAP_MATRIX = np.array([
    [1, 0, 0, 0],
    [0, 0, 1, 0],
    [0, 1, 0, 0],
    [0, 0, 0, 1]], dtype=np.complex128)

# Toffoli (CCX) - 8x8
TOFFOLI_MATRIX = np.eye(8, dtype=np.complex128)
TOFFOLI_MATRIX[6:, 6:] = X_MATRIX

# Fredkin (CSWAP) - 8x8
FREDKIN_MATRIX = np.eye(8, dtype=np.complex128)
FREDKIN_MATRIX[4:, 4:] = SWAP_MATRIX


GATES: dict[str, np.ndarray] = {
    "I": I_MATRIX,
    "X": X_MATRIX,
    "Y": Y_MATRIX,
    "Z": Z_MATRIX,
    "H": H_MATRIX,
    "S": S_MATRIX,
    "S†": S_DAG_MATRIX,
    "T": T_MATRIX,
    "T†": T_DAG_MATRIX,
    "SX": SX_MATRIX,
    "SX†": SX_DAG_MATRIX,
    "CNOT": CNOT_MATRIX,
    "CZ": CZ_MATRIX,
    "SWAP": SWAP_MATRIX,
    "TOFFOLI": TOFFOLI_MATRIX,
    "FREDKIN": FREDKIN_MATRIX,
}


def gate(name: str) -> np.ndarray:
    """Look up a fixed gate by name. Returns a copy."""
    try:
        return GATES[name].copy()
    except KeyError:
        raise KeyError(f"Unknown gate: {name}") from None


# --- Helpers ---

def is_unitary(matrix: np.ndarray, tol: float = 1e-9) -> bool:
    m = np.asarray(matrix, dtype=np.complex128)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        return False
    return np.allclose(m.conj().T @ m, np.eye(m.shape[0]), atol=tol)


def invert_gate(matrix: np.ndarray) -> np.ndarray:
    """Inverse of a unitary, i.e. its conjugate transpose."""
    return np.asarray(matrix, dtype=np.complex128).conj().T


def compose(*matrices: np.ndarray) -> np.ndarray:
    """Matrix for applying ``matrices`` left to right on the same targets."""
    if not matrices:
        raise ValueError("compose() needs at least one matrix")
    return reduce(lambda acc, m: np.asarray(m, dtype=np.complex128) @ acc,
                  matrices[1:], np.asarray(matrices[0], dtype=np.complex128))


def identity_of_length(num_qubits: int) -> np.ndarray:
    return np.eye(2 ** num_qubits, dtype=np.complex128)


def hadamard_of_length(num_qubits: int) -> np.ndarray:
    """H applied to each of ``num_qubits`` qubits, as one matrix."""
    return reduce(np.kron, [H_MATRIX] * num_qubits,
                  np.eye(1, dtype=np.complex128))


def controlled(matrix: np.ndarray, num_controls: int = 1) -> np.ndarray:
    """Add control qubits in front of ``matrix``.

    The result acts as ``matrix`` on the trailing targets only when every
    control bit is 1.
    """
    m = np.asarray(matrix, dtype=np.complex128)
    dim = m.shape[0] * 2 ** num_controls
    result = np.eye(dim, dtype=np.complex128)
    result[dim - m.shape[0]:, dim - m.shape[0]:] = m
    return result
