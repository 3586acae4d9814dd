"""Deferred gate queue with adjacent-pair cancellation."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

import numpy as np

from ..core.errors import UnsupportedOperationError

logger = logging.getLogger(__name__)


class OperationType(Enum):
    SINGLE = "single"
    TWO = "two"
    MULTI = "multi"


@dataclass(frozen=True, eq=False)
class GateOperation:
    """One gate application waiting in the queue."""
    operation_type: OperationType
    target_qubits: tuple[int, ...]
    matrix: np.ndarray
    gate_name: str

    @property
    def canonical_name(self) -> str:
        return canonical_gate_name(self.gate_name)

    def __repr__(self) -> str:
        kind = getattr(self.operation_type, "value", self.operation_type)
        return (f"GateOperation({self.gate_name!r}, {kind}, "
                f"targets={list(self.target_qubits)})")


# Names that cancel when applied twice in a row on the same targets.
SELF_INVERSE_GATES = frozenset({"I", "H", "X", "Y", "Z", "CNOT", "CZ", "SWAP"})

# Distinct names that undo each other.
INVERSE_PAIRS = frozenset({
    ("S", "S†"), ("S†", "S"),
    ("T", "T†"), ("T†", "T"),
    ("SX", "SX†"), ("SX†", "SX"),
})

_ALIASES = {
    "CX": "CNOT",
    "HADAMARD": "H",
    "ID": "I",
    "IDENTITY": "I",
    "PAULIX": "X",
    "PAULIY": "Y",
    "PAULIZ": "Z",
    "NOT": "X",
}


def canonical_gate_name(name: str) -> str:
    """Upper-case a gate name and fold common spellings of daggers and aliases.

    ``S_DAG``, ``Sdg``, ``SDAGGER`` and ``S^†`` all become ``S†``.
    """
    n = name.strip().upper().replace(" ", "").replace("-", "_")
    for suffix in ("_DAGGER", "DAGGER", "_DAG", "DAG", "_DG", "DG", "^†", "^DAG"):
        if n.endswith(suffix) and len(n) > len(suffix):
            n = n[: -len(suffix)] + "†"
            break
    n = n.rstrip("_")
    return _ALIASES.get(n, n)


def cancels(first: GateOperation, second: GateOperation) -> bool:
    """Whether ``second`` undoes ``first`` by name alone.

    No matrix comparison is done: only the named self-inverse gates and
    inverse pairs are recognised.
    """
    if first.operation_type != second.operation_type:
        return False
    if tuple(first.target_qubits) != tuple(second.target_qubits):
        return False
    a, b = first.canonical_name, second.canonical_name
    if a == b:
        return a in SELF_INVERSE_GATES
    return (a, b) in INVERSE_PAIRS


def optimize(operations: Sequence[GateOperation]) -> list[GateOperation]:
    """Single stack pass dropping adjacent cancelling pairs.

    Cancellation cascades: ``H X X H`` reduces to nothing.
    """
    stack: list[GateOperation] = []
    for op in operations:
        if stack and cancels(stack[-1], op):
            dropped = stack.pop()
            logger.debug("Cancelled %s against %s on %s",
                         dropped.gate_name, op.gate_name, list(op.target_qubits))
        else:
            stack.append(op)
    return stack


class GateScheduler:
    """FIFO queue of single- and two-qubit gate operations.

    Multi-qubit operations bypass the queue and are applied as soon as they
    are enqueued, so the optimizer never sees them.
    """

    QUEUED_TYPES = (OperationType.SINGLE, OperationType.TWO)

    def __init__(self, apply_fn: Callable[[GateOperation], None],
                 check_fn: Callable[[GateOperation], None] | None = None):
        self._apply = apply_fn
        self._check = check_fn
        self._queue: deque[GateOperation] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> tuple[GateOperation, ...]:
        return tuple(self._queue)

    def enqueue(self, operation: GateOperation) -> bool:
        """Queue ``operation``; returns False if it was applied immediately."""
        if operation.operation_type == OperationType.MULTI:
            logger.debug("Applying multi-qubit %s immediately on %s",
                         operation.gate_name, list(operation.target_qubits))
            if self._check is not None:
                self._check(operation)
            self._apply(operation)
            return False
        self._queue.append(operation)
        return True

    def optimize(self) -> int:
        """Cancel adjacent pairs in place. Returns how many operations were removed."""
        before = len(self._queue)
        self._queue = deque(optimize(self._queue))
        removed = before - len(self._queue)
        if removed:
            logger.info("Gate optimizer removed %d of %d operations",
                        removed, before)
        return removed

    def process(self) -> list[GateOperation]:
        """Optimize, then apply every surviving operation in order.

        Every operation is checked before any is applied: an unknown kind
        raises UnsupportedOperationError, and the check function (when set)
        may reject targets. On failure no state is touched and the queue is
        left as optimized.
        """
        self.optimize()
        for op in self._queue:
            if op.operation_type not in self.QUEUED_TYPES:
                raise UnsupportedOperationError(
                    f"Unsupported gate operation kind: {op.operation_type!r}")
        if self._check is not None:
            for op in self._queue:
                self._check(op)
        applied: list[GateOperation] = []
        while self._queue:
            op = self._queue.popleft()
            self._apply(op)
            applied.append(op)
            logger.debug("Applied %s on %s", op.gate_name, list(op.target_qubits))
        return applied

    def clear(self):
        self._queue.clear()
