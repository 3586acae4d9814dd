"""ASCII rendering of a gate schedule, one row per qubit."""

from __future__ import annotations

from typing import Sequence

from .scheduler import GateOperation, OperationType

EMPTY_SCHEDULE = "no operations"
_BLANK = "    "
_WIRE = " |  "


def render_schedule(operations: Sequence[GateOperation], total_qubits: int) -> str:
    """One column per operation; two-qubit gates draw a connector between ends.

    Multi-qubit operations label every target. Returns ``"no operations"``
    when there is nothing to draw.
    """
    ops = list(operations)
    if not ops:
        return EMPTY_SCHEDULE
    width = max([total_qubits] + [max(op.target_qubits) + 1 for op in ops])
    grid = [[_BLANK] * len(ops) for _ in range(width)]

    for col, op in enumerate(ops):
        label = f"[{op.gate_name}]"
        targets = list(op.target_qubits)
        for q in targets:
            grid[q][col] = label
        if op.operation_type != OperationType.SINGLE and len(targets) > 1:
            for q in range(min(targets) + 1, max(targets)):
                if q not in targets:
                    grid[q][col] = _WIRE

    return "\n".join(f"q{i}: " + "---".join(row) for i, row in enumerate(grid))
