"""Joint amplitude store shared by system-linked containers.

The wavefunction is a sparse ``dict`` from basis tuples to complex
amplitudes. Every mutation renormalizes it. Gates are applied by grouping
basis vectors that agree outside the target indices and multiplying each
group's target sub-vector by the gate matrix.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, Mapping, Sequence

import numpy as np

from ..core.config import QuantumConfig
from ..core.errors import (
    ExhaustedStateError, InvalidConfigurationError, NotCollapsedError,
)
from .basis import (
    AmplitudeMap, Basis, bits_to_index, index_to_bits, normalise, project,
    tensor_product, total_probability,
)
from .entanglement import EntanglementManager
from .measurement import (
    RandomSource, choose_weighted, consistent_with, group_by_projection,
    resolve_rng,
)
from .scheduler import GateOperation, GateScheduler, OperationType
from .superposition import QuBit
from .visualizer import render_schedule

logger = logging.getLogger(__name__)


class QuantumSystem:
    """Owns the joint wavefunction, the container registry, the gate queue
    and the entanglement manager.

    Single-threaded: callers sharing a store across threads must serialize
    every gate and observation call themselves.
    """

    def __init__(self, amplitudes: Mapping[Sequence[int], complex] | None = None,
                 config: QuantumConfig | None = None,
                 rng: RandomSource = None):
        self._config = config
        self._amplitudes: AmplitudeMap = {}
        self._num_qubits = 0
        self._registered: dict[uuid.UUID, QuBit] = {}
        self._pins: dict[int, int] = {}
        self._rng = resolve_rng(rng if rng is not None else self.config.default_seed)
        self.entanglement = EntanglementManager(self)
        self.scheduler = GateScheduler(self._apply_operation, self._check_operation)
        self.last_collapse_id: uuid.UUID | None = None
        if amplitudes:
            self.set_amplitudes(amplitudes)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> QuantumConfig:
        return self._config if self._config is not None else QuantumConfig.current()

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    @property
    def num_qubits(self) -> int:
        return self._num_qubits

    @property
    def amplitudes(self) -> AmplitudeMap:
        """Snapshot copy of the amplitude map."""
        return dict(self._amplitudes)

    @property
    def registered(self) -> tuple[QuBit, ...]:
        return tuple(self._registered.values())

    @property
    def pinned_outcomes(self) -> dict[int, int]:
        """Index values fixed by partial observation and not yet overwritten."""
        return dict(self._pins)

    def probabilities(self, indices: Sequence[int] | None = None) -> dict[Basis, float]:
        """Outcome probabilities, optionally marginalised onto ``indices``.

        Pinned outcomes condition the result.
        """
        if not self._amplitudes:
            return {}
        if indices is None:
            indices = range(self._num_qubits)
        indices = self._check_indices(indices)
        groups = group_by_projection(self._amplitudes, indices, self._pins)
        total = sum(m for _, m in groups)
        if total < self.config.zero_threshold:
            return {}
        return {key: mass / total for key, mass in groups}

    def total_probability(self) -> float:
        return total_probability(self._amplitudes)

    def __repr__(self) -> str:
        return (f"QuantumSystem(num_qubits={self._num_qubits}, "
                f"basis_states={len(self._amplitudes)}, "
                f"queued={len(self.scheduler)})")

    # ------------------------------------------------------------------
    # State construction
    # ------------------------------------------------------------------

    def register(self, ref: QuBit):
        """Track a container so observations can notify it. Idempotent."""
        self._registered.setdefault(ref.reference_id, ref)

    def set_amplitudes(self, amplitudes: Mapping[Sequence[int], complex]):
        """Replace the wavefunction with ``amplitudes`` (normalized on entry)."""
        new_map: AmplitudeMap = {}
        width = None
        for key, amp in amplitudes.items():
            basis = tuple(int(v) for v in key)
            if width is None:
                width = len(basis)
            elif len(basis) != width:
                raise InvalidConfigurationError(
                    f"Basis vector {basis} has length {len(basis)}, expected {width}")
            if any(v < 0 for v in basis):
                raise InvalidConfigurationError(
                    f"Basis vector {basis} contains a negative value")
            new_map[basis] = new_map.get(basis, 0j) + complex(amp)
        self._amplitudes = normalise(new_map, self.config.zero_threshold)
        self._num_qubits = width or 0
        self._pins.clear()
        self._drop_stale_references()
        logger.debug("Amplitudes set: %d basis states over %d indices",
                     len(self._amplitudes), self._num_qubits)

    def initialize_from_containers(self, *containers: QuBit,
                                   collapse: bool = False) -> list[QuBit]:
        """Rewrite the wavefunction as the tensor product of ``containers``.

        Container ``i`` becomes basis index ``i``. Local containers are
        replaced by new system-linked ones carrying the same values and
        weights; containers already linked here must own exactly index
        ``(i,)``. Returns the linked container for each position.

        With ``collapse`` set, every registered container is notified of a
        new collapse epoch once the product is in place.
        """
        if not containers:
            raise InvalidConfigurationError(
                "initialize_from_containers needs at least one container")

        factors = []
        for position, container in enumerate(containers):
            if not container.is_local:
                if container.system is not self:
                    raise InvalidConfigurationError(
                        "Container is linked to a different QuantumSystem")
                if container.qubit_indices != (position,):
                    raise InvalidConfigurationError(
                        f"Container at position {position} owns indices "
                        f"{container.qubit_indices}, expected ({position},)")
            pairs = container.to_weighted_values()
            for value, _ in pairs:
                if isinstance(value, (bool, np.bool_)):
                    continue
                if not isinstance(value, (int, np.integer)) or value < 0:
                    raise InvalidConfigurationError(
                        f"Basis values must be non-negative integers or bools, "
                        f"got {value!r}")
            factors.append(pairs)

        self._amplitudes = normalise(tensor_product(factors),
                                     self.config.zero_threshold)
        self._num_qubits = len(containers)
        self._pins.clear()
        self._drop_stale_references()

        linked: list[QuBit] = []
        for position, container in enumerate(containers):
            if container.is_local:
                container = QuBit._bound_copy(container, self, (position,))
            self.register(container)
            linked.append(container)

        logger.debug("Initialized %d basis states from %d containers",
                     len(self._amplitudes), len(containers))

        if collapse:
            collapse_id = uuid.uuid4()
            self.last_collapse_id = collapse_id
            for ref in list(self._registered.values()):
                ref.notify_wavefunction_collapsed(collapse_id)
        return linked

    def _drop_stale_references(self):
        """Forget containers whose indices no longer fit the map width.

        They are unregistered and removed from every entanglement group.
        """
        manager = self.entanglement
        refs = list(self._registered.values())
        for gid in manager.group_ids:
            refs.extend(manager.get_group(gid))
        stale = {ref.reference_id for ref in refs
                 if any(i >= self._num_qubits for i in ref.qubit_indices)}
        for rid in stale:
            self._registered.pop(rid, None)
        if stale:
            manager.remove_references(stale)
            logger.debug("Dropped %d stale containers", len(stale))

    def entangle(self, label: str | None, *qubits: QuBit) -> uuid.UUID:
        """Link ``qubits`` into a new entanglement group and stamp its id on them."""
        group_id = self.entanglement.link(label, *qubits)
        for q in qubits:
            self.register(q)
            q.entanglement_group_id = group_id
        return group_id

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def apply_single_qubit_gate(self, index: int, matrix: np.ndarray,
                                name: str = "U") -> GateOperation:
        return self._schedule(OperationType.SINGLE, (index,), matrix, name)

    def apply_two_qubit_gate(self, first: int, second: int, matrix: np.ndarray,
                             name: str = "U2") -> GateOperation:
        return self._schedule(OperationType.TWO, (first, second), matrix, name)

    def apply_multi_qubit_gate(self, indices: Sequence[int], matrix: np.ndarray,
                               name: str = "UN") -> GateOperation:
        """Validate and apply immediately; multi-qubit gates are never queued."""
        return self._schedule(OperationType.MULTI, tuple(indices), matrix, name)

    def apply_gate(self, matrix: np.ndarray, indices: Sequence[int],
                   name: str = "U") -> GateOperation:
        """Dispatch on the number of targets."""
        indices = tuple(indices)
        if len(indices) == 1:
            return self.apply_single_qubit_gate(indices[0], matrix, name)
        if len(indices) == 2:
            return self.apply_two_qubit_gate(indices[0], indices[1], matrix, name)
        return self.apply_multi_qubit_gate(indices, matrix, name)

    def process_gate_queue(self) -> list[GateOperation]:
        """Optimize the queue and apply what survives, in order."""
        return self.scheduler.process()

    def visualise_gate_schedule(self, total_qubits: int | None = None) -> str:
        return render_schedule(self.scheduler.pending,
                               self._num_qubits if total_qubits is None else total_qubits)

    def _schedule(self, kind: OperationType, targets: tuple[int, ...],
                  matrix: np.ndarray, name: str) -> GateOperation:
        targets = self._check_indices(targets)
        if len(set(targets)) != len(targets):
            raise InvalidConfigurationError(
                f"Gate targets must be distinct, got {list(targets)}")
        m = np.asarray(matrix, dtype=np.complex128)
        dim = 2 ** len(targets)
        if m.shape != (dim, dim):
            raise InvalidConfigurationError(
                f"Gate {name} on {len(targets)} qubit(s) needs a {dim}x{dim} "
                f"matrix, got shape {m.shape}")
        op = GateOperation(kind, targets, m, name)
        self.scheduler.enqueue(op)
        return op

    def _check_operation(self, op: GateOperation):
        """Reject targets that are out of range or hold non-binary values.

        A gate only writes binary values at its targets, so checking each
        operation against the current map is enough for a whole queue.
        """
        targets = self._check_indices(op.target_qubits)
        for basis in self._amplitudes:
            bits = project(basis, targets)
            if any(b not in (0, 1) for b in bits):
                raise InvalidConfigurationError(
                    f"Gate {op.gate_name} targets non-binary values {bits} "
                    f"in basis vector {basis}")

    def _apply_operation(self, op: GateOperation):
        targets = op.target_qubits
        k = len(targets)
        target_set = set(targets)
        others = [i for i in range(self._num_qubits) if i not in target_set]

        classes: dict[Basis, np.ndarray] = {}
        for basis, amp in self._amplitudes.items():
            bits = project(basis, targets)
            rest = project(basis, others)
            vec = classes.get(rest)
            if vec is None:
                vec = classes[rest] = np.zeros(2 ** k, dtype=np.complex128)
            vec[bits_to_index(bits)] += amp

        threshold = self.config.zero_threshold
        updated: AmplitudeMap = {}
        for rest, vec in classes.items():
            out = op.matrix @ vec
            for idx, amp in enumerate(out):
                if abs(amp) < threshold:
                    continue
                basis = [0] * self._num_qubits
                for pos, v in zip(others, rest):
                    basis[pos] = v
                for pos, v in zip(targets, index_to_bits(idx, k)):
                    basis[pos] = v
                updated[tuple(basis)] = complex(amp)

        self._amplitudes = normalise(updated, threshold)
        for t in targets:
            self._pins.pop(t, None)
        logger.debug("Applied %s to %s: %d basis states",
                     op.gate_name, list(targets), len(self._amplitudes))

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe_global(self, indices: Sequence[int],
                       rng: RandomSource = None) -> tuple[int, ...]:
        """Measure ``indices`` and commit the result to the wavefunction.

        Branches that disagree with the sampled outcome (or with pinned
        outcomes) are discarded. Every registered container whose indices
        intersect ``indices`` is notified, then collapse is propagated
        through each notified container's entanglement groups.
        """
        indices = self._check_indices(indices)
        gen = self._rng if rng is None else resolve_rng(rng)
        outcome = self._sample(indices, gen)

        pins = self._pins
        self._amplitudes = normalise(
            {b: a for b, a in self._amplitudes.items()
             if project(b, indices) == outcome and consistent_with(b, pins)},
            self.config.zero_threshold)

        collapse_id = uuid.uuid4()
        self.last_collapse_id = collapse_id
        logger.debug("Observed %s -> %s (collapse %s)",
                     list(indices), outcome, collapse_id)

        measured = set(indices)
        direct = [ref for ref in list(self._registered.values())
                  if measured.intersection(ref.qubit_indices)]
        for ref in direct:
            ref.notify_wavefunction_collapsed(collapse_id)
        self.entanglement.propagate_from(
            direct, collapse_id, {ref.reference_id for ref in direct})
        return outcome

    def partial_observe(self, indices: Sequence[int],
                        rng: RandomSource = None) -> tuple[int, ...]:
        """Sample ``indices`` without rewriting the wavefunction.

        The sampled values are pinned so later observations stay consistent
        with them. Only containers whose indices all lie inside ``indices``
        learn their value; nothing is propagated.
        """
        indices = self._check_indices(indices)
        gen = self._rng if rng is None else resolve_rng(rng)
        outcome = self._sample(indices, gen)
        chosen = dict(zip(indices, outcome))
        self._pins.update(chosen)
        logger.debug("Partially observed %s -> %s", list(indices), outcome)

        for ref in list(self._registered.values()):
            if ref.qubit_indices and all(i in chosen for i in ref.qubit_indices):
                ref.partial_collapse(chosen)
        return outcome

    def resolve_outcome(self, indices: Sequence[int],
                        rng: RandomSource = None) -> tuple[int, ...]:
        """Values at ``indices`` if already determined, else observe them."""
        indices = self._check_indices(indices)
        live = [project(b, indices) for b, a in self._amplitudes.items()
                if abs(a) ** 2 >= self.config.zero_threshold
                and consistent_with(b, self._pins)]
        if live and all(p == live[0] for p in live):
            return live[0]
        return self.observe_global(indices, rng)

    def get_collapsed_state(self) -> Basis:
        if len(self._amplitudes) != 1:
            raise NotCollapsedError(
                f"Wavefunction holds {len(self._amplitudes)} basis states, "
                "expected exactly one")
        return next(iter(self._amplitudes))

    def _sample(self, indices: tuple[int, ...], gen: np.random.Generator) -> Basis:
        groups = group_by_projection(self._amplitudes, indices, self._pins)
        if sum(m for _, m in groups) < self.config.zero_threshold:
            raise ExhaustedStateError(
                "Cannot observe: total probability mass is numerically zero")
        return choose_weighted(groups, gen, self.config.zero_threshold)

    def _check_indices(self, indices: Iterable[int]) -> tuple[int, ...]:
        result = tuple(int(i) for i in indices)
        if not result:
            raise InvalidConfigurationError("At least one index is required")
        for i in result:
            if i < 0 or i >= self._num_qubits:
                raise InvalidConfigurationError(
                    f"Index {i} out of range [0, {self._num_qubits - 1}]")
        return result
