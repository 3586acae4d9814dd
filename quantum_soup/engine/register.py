"""Multi-qubit registers over a shared amplitude store."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from ..core.errors import InvalidConfigurationError
from .amplitude_store import QuantumSystem
from .basis import bits_to_index, index_to_bits
from .measurement import RandomSource
from .superposition import QuBit


class QuantumRegister:
    """An ordered group of qubit indices on one ``QuantumSystem``.

    ``matrix @ register`` applies a gate to the whole register, matching the
    matrix arity to the register width.
    """

    # numpy defers to __rmatmul__ instead of broadcasting over the register
    __array_ufunc__ = None

    def __init__(self, system: QuantumSystem, indices: Sequence[int]):
        if system is None:
            raise InvalidConfigurationError("Register needs a QuantumSystem")
        indices = tuple(int(i) for i in indices)
        if not indices:
            raise InvalidConfigurationError("Register must have at least one qubit index")
        self.system = system
        self.qubit_indices = indices

    @classmethod
    def from_qubits(cls, *qubits: QuBit) -> QuantumRegister:
        """Register over the sorted union of the qubits' indices."""
        if not qubits:
            raise InvalidConfigurationError("Must supply at least one qubit")
        system = qubits[0].system
        if system is None:
            raise InvalidConfigurationError("All qubits must belong to a QuantumSystem")
        if any(q.system is not system for q in qubits):
            raise InvalidConfigurationError("All qubits must share the same QuantumSystem")
        indices = sorted({i for q in qubits for i in q.qubit_indices})
        return cls(system, indices)

    @classmethod
    def from_int(cls, value: int, bits: int, system: QuantumSystem) -> QuantumRegister:
        """Basis state ``|value>`` on ``bits`` qubits, most significant bit first."""
        if bits <= 0:
            raise InvalidConfigurationError(f"bits must be positive, got {bits}")
        if value < 0 or value >= 2 ** bits:
            raise InvalidConfigurationError(
                f"Value {value} does not fit in {bits} bits")
        system.set_amplitudes({index_to_bits(value, bits): 1.0})
        return cls._with_linked_qubits(system, bits)

    @classmethod
    def from_amplitudes(cls, amplitudes: Sequence[complex],
                        system: QuantumSystem) -> QuantumRegister:
        """Dense amplitude vector of length ``2^n``, index 0 as ``|00..0>``."""
        length = len(amplitudes)
        if length < 2 or length & (length - 1):
            raise InvalidConfigurationError(
                f"Amplitude vector length must be a power of two >= 2, got {length}")
        bits = int(math.log2(length))
        system.set_amplitudes({index_to_bits(i, bits): amp
                               for i, amp in enumerate(amplitudes)})
        return cls._with_linked_qubits(system, bits)

    @classmethod
    def _with_linked_qubits(cls, system: QuantumSystem, bits: int,
                            label: str | None = None) -> QuantumRegister:
        qubits = [QuBit.linked(system, i) for i in range(bits)]
        if label is not None:
            system.entangle(label, *qubits)
        return cls(system, range(bits))

    # ---------------- Canonical named states ----------------

    @classmethod
    def epr_pair(cls, system: QuantumSystem) -> QuantumRegister:
        amp = 1 / math.sqrt(2)
        system.set_amplitudes({(0, 0): amp, (1, 1): amp})
        return cls._with_linked_qubits(system, 2, "EPRPair")

    @classmethod
    def ghz_state(cls, system: QuantumSystem, length: int = 3) -> QuantumRegister:
        if length < 2:
            raise InvalidConfigurationError("GHZ state requires length >= 2")
        amp = 1 / math.sqrt(2)
        system.set_amplitudes({(0,) * length: amp, (1,) * length: amp})
        return cls._with_linked_qubits(system, length, "GHZState")

    @classmethod
    def w_state(cls, system: QuantumSystem, length: int = 3) -> QuantumRegister:
        if length < 2:
            raise InvalidConfigurationError("W state requires length >= 2")
        amp = 1 / math.sqrt(length)
        system.set_amplitudes({
            tuple(1 if i == pos else 0 for i in range(length)): amp
            for pos in range(length)
        })
        return cls._with_linked_qubits(system, length, "WState")

    # ---------------- Read-out ----------------

    def qubits(self) -> list[QuBit]:
        """Registered containers touching any of this register's indices."""
        mine = set(self.qubit_indices)
        return [q for q in self.system.registered
                if mine.intersection(q.qubit_indices)]

    def collapse(self, rng: RandomSource = None) -> tuple[int, ...]:
        """Partially observe the register, then lock its containers."""
        measured = self.system.partial_observe(self.qubit_indices, rng)
        for q in self.qubits():
            q.lock()
        return measured

    def get_value(self, offset: int = 0, length: int | None = None,
                  rng: RandomSource = None) -> int:
        """Integer value of a slice of the register, first index as MSB.

        Reads the collapsed state when there is one, otherwise partially
        observes just the slice.
        """
        total = len(self.qubit_indices)
        if offset < 0 or offset >= total:
            raise InvalidConfigurationError(f"Offset {offset} outside register of {total}")
        length = total - offset if length is None else length
        if length <= 0 or offset + length > total:
            raise InvalidConfigurationError(f"Invalid slice length {length}")
        subset = self.qubit_indices[offset:offset + length]
        if len(self.system.amplitudes) == 1:
            state = self.system.get_collapsed_state()
            bits = [state[i] for i in subset]
        else:
            bits = self.system.partial_observe(subset, rng)
        return bits_to_index(bits)

    # ---------------- Gates ----------------

    def apply(self, matrix: np.ndarray, name: str | None = None) -> QuantumRegister:
        """Process the gate queue, then apply ``matrix`` across the register.

        Gates queued earlier run first even when ``matrix`` is wide enough to
        be applied immediately.
        """
        m = np.asarray(matrix, dtype=np.complex128)
        if m.ndim != 2 or m.shape[0] != m.shape[1]:
            raise InvalidConfigurationError("Gate matrix must be square")
        dim = m.shape[0]
        if dim & (dim - 1):
            raise InvalidConfigurationError("Gate dimension must be a power of two")
        if int(math.log2(dim)) != len(self.qubit_indices):
            raise InvalidConfigurationError(
                f"Gate arity {int(math.log2(dim))} does not match register "
                f"width {len(self.qubit_indices)}")
        self.system.process_gate_queue()
        self.system.apply_gate(m, self.qubit_indices, name or f"U{dim}")
        self.system.process_gate_queue()
        return QuantumRegister(self.system, self.qubit_indices)

    def __rmatmul__(self, matrix):
        return self.apply(matrix)

    # ---------------- Comparison ----------------

    def subspace_vector(self) -> np.ndarray:
        """Amplitudes summed onto this register's indices (dense, MSB first)."""
        n = len(self.qubit_indices)
        vec = np.zeros(2 ** n, dtype=np.complex128)
        for basis, amp in self.system.amplitudes.items():
            vec[bits_to_index([basis[i] & 1 for i in self.qubit_indices])] += amp
        return vec

    def almost_equals(self, other: QuantumRegister, tolerance: float = 1e-10) -> bool:
        if len(self.qubit_indices) != len(other.qubit_indices):
            return False
        return bool(np.all(np.abs(self.subspace_vector() - other.subspace_vector())
                           <= tolerance))

    def __eq__(self, other):
        if not isinstance(other, QuantumRegister):
            return NotImplemented
        return self.almost_equals(other, 0.0)

    __hash__ = None

    def __len__(self) -> int:
        return len(self.qubit_indices)

    def __repr__(self) -> str:
        return f"QuantumRegister(indices={list(self.qubit_indices)})"
