"""Benchmark suite for the superposition engine.

Times the hot paths (tensor-product initialization, queued gates with
cancellation, immediate multi-qubit gates, entangled observation) and
checks each result against the expected basis states.

Classes:
    BenchmarkResult: Dataclass holding the outcome of a single benchmark.
    BenchmarkSuite: Collection of predefined benchmarks with a runner.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .amplitude_store import QuantumSystem
from .gates import CNOT_MATRIX, H_MATRIX, T_DAG_MATRIX, T_MATRIX, hadamard_of_length
from .register import QuantumRegister
from .superposition import QuBit


@dataclass
class BenchmarkResult:
    """Result of running a single benchmark.

    Attributes:
        name: Human-readable benchmark name.
        passed: Whether the final state matched the expected basis states
            and stayed normalized.
        basis_states: Number of basis vectors left in the amplitude map.
        total_probability: Sum of squared amplitude magnitudes afterwards.
        runtime_ms: Wall-clock time for the benchmark body in milliseconds.
        details: Optional free-form string with additional information.
    """

    name: str
    passed: bool
    basis_states: int
    total_probability: float
    runtime_ms: float
    details: str = ""


class BenchmarkSuite:
    """Predefined engine benchmarks."""

    # ------------------------------------------------------------------
    # Individual benchmark definitions
    # ------------------------------------------------------------------

    @staticmethod
    def _tensor_benchmark(width: int = 10) -> dict:
        """Tensor product of ``width`` equal {0, 1} containers."""
        def body(system: QuantumSystem, rng: np.random.Generator):
            system.initialize_from_containers(*[QuBit([0, 1]) for _ in range(width)])
        return {
            "name": f"Tensor-{width}",
            "body": body,
            "expected_count": 2 ** width,
        }

    @staticmethod
    def _cancellation_benchmark(pairs: int = 200) -> dict:
        """Alternating H/H and T/T-dagger pairs that all cancel in the queue."""
        def body(system: QuantumSystem, rng: np.random.Generator):
            system.initialize_from_containers(QuBit([0]), QuBit([0]))
            for _ in range(pairs):
                system.apply_single_qubit_gate(0, H_MATRIX, "H")
                system.apply_single_qubit_gate(0, H_MATRIX, "H")
                system.apply_single_qubit_gate(1, T_MATRIX, "T")
                system.apply_single_qubit_gate(1, T_DAG_MATRIX, "T†")
            system.process_gate_queue()
        return {
            "name": f"Cancel-{pairs}",
            "body": body,
            "expected_basis": {(0, 0)},
        }

    @staticmethod
    def _bell_benchmark() -> dict:
        """H on q0, CNOT q0->q1 through the queue."""
        def body(system: QuantumSystem, rng: np.random.Generator):
            system.initialize_from_containers(QuBit([0]), QuBit([0]))
            system.apply_single_qubit_gate(0, H_MATRIX, "H")
            system.apply_two_qubit_gate(0, 1, CNOT_MATRIX, "CNOT")
            system.process_gate_queue()
        return {
            "name": "Bell State",
            "body": body,
            "expected_basis": {(0, 0), (1, 1)},
        }

    @staticmethod
    def _multi_hadamard_benchmark(width: int = 6) -> dict:
        """One immediate 2^n x 2^n Hadamard across every index."""
        def body(system: QuantumSystem, rng: np.random.Generator):
            system.initialize_from_containers(*[QuBit([0]) for _ in range(width)])
            system.apply_multi_qubit_gate(range(width), hadamard_of_length(width), "H^n")
        return {
            "name": f"Multi-H-{width}",
            "body": body,
            "expected_count": 2 ** width,
        }

    @staticmethod
    def _ghz_observe_benchmark(width: int = 8) -> dict:
        """Observe one qubit of a GHZ state; every index must agree."""
        def body(system: QuantumSystem, rng: np.random.Generator):
            QuantumRegister.ghz_state(system, width)
            system.observe_global([0], rng)
        return {
            "name": f"GHZ-{width} observe",
            "body": body,
            "expected_basis": {(0,) * width, (1,) * width},
            "expected_count": 1,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @classmethod
    def get_all_benchmarks(cls) -> list[dict]:
        """Return all predefined benchmark definitions.

        Each entry is a dict with keys:
        - ``name``: human-readable benchmark name
        - ``body``: callable ``(system, rng)`` that drives a fresh store
        - ``expected_basis``: optional set the surviving basis vectors must
          fall inside
        - ``expected_count``: optional exact number of surviving basis vectors
        """
        return [
            cls._tensor_benchmark(),
            cls._cancellation_benchmark(),
            cls._bell_benchmark(),
            cls._multi_hadamard_benchmark(),
            cls._ghz_observe_benchmark(),
        ]

    @classmethod
    def run_all(cls, seed: int | None = None,
                tolerance: float = 1e-9) -> list[BenchmarkResult]:
        """Run every benchmark on its own store and return the results.

        Args:
            seed: Optional seed for reproducibility.
            tolerance: Allowed deviation of the total probability from 1.

        Returns:
            A list of :class:`BenchmarkResult` objects, one per benchmark.
        """
        rng = np.random.default_rng(seed)
        results: list[BenchmarkResult] = []

        for bench in cls.get_all_benchmarks():
            name: str = bench["name"]
            body: Callable = bench["body"]
            system = QuantumSystem(rng=np.random.default_rng(rng.integers(0, 2**32)))

            t0 = time.perf_counter()
            body(system, rng)
            runtime_ms = (time.perf_counter() - t0) * 1000

            amplitudes = system.amplitudes
            total = system.total_probability()
            passed = abs(total - 1.0) <= tolerance
            expected_basis = bench.get("expected_basis")
            if expected_basis is not None and not set(amplitudes) <= expected_basis:
                passed = False
            expected_count = bench.get("expected_count")
            if expected_count is not None and len(amplitudes) != expected_count:
                passed = False

            results.append(BenchmarkResult(
                name=name,
                passed=passed,
                basis_states=len(amplitudes),
                total_probability=total,
                runtime_ms=runtime_ms,
                details=f"States={len(amplitudes)}, Sum|a|^2={total:.12f}, "
                        f"Time={runtime_ms:.1f}ms",
            ))

        return results
