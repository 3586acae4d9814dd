"""Superposition containers.

A container holds several candidate values at once, optionally with a
complex weight per value, and combines with other containers without
deciding which value is real. Observation commits to one value.

Containers are either local (they own their values and weights) or linked
to a ``QuantumSystem``, in which case their observed value is read from
the shared wavefunction at the container's qubit indices.
"""

from __future__ import annotations

import cmath
import math
import uuid
from enum import Enum
from typing import (
    TYPE_CHECKING, Any, Callable, Hashable, Iterable, Mapping, Sequence,
)

import numpy as np

from ..core.config import QuantumConfig
from ..core.errors import (
    CollapsePolicyError, ExhaustedStateError, FrozenStateError,
    InvalidConfigurationError, UnsupportedOperationError,
)
from .measurement import RandomSource, choose_weighted, resolve_rng
from .operators import QuantumOperators, operators_for

if TYPE_CHECKING:
    from .amplitude_store import QuantumSystem


class QuantumStateType(Enum):
    SUPERPOSITION_ANY = "any"
    SUPERPOSITION_ALL = "all"
    COLLAPSED_RESULT = "collapsed"


_NO_MOCK = object()


class QuantumSoup:
    """Shared state and behaviour of every superposition container.

    Values are kept distinct in insertion order. ``_weights`` is ``None``
    for an unweighted container (every value equally likely) or a dict of
    complex amplitudes; probabilities are squared magnitudes.
    """

    def __init__(self, values: Iterable[Hashable] = (),
                 weights: Mapping[Hashable, complex] | None = None,
                 config: QuantumConfig | None = None,
                 value_type: type | None = None,
                 value_validator: Callable[[Any], bool] | None = None):
        self._values: list = []
        for v in values:
            if v not in self._values:
                self._values.append(v)
        self._weights: dict | None = None
        if weights is not None:
            self._weights = {}
            for v, w in weights.items():
                if v not in self._values:
                    self._values.append(v)
                self._weights[v] = self._weights.get(v, 0j) + complex(w)
            for v in self._values:
                self._weights.setdefault(v, 0j)
        self._config = config
        self._value_type = value_type
        self._ops: QuantumOperators | None = None
        self._validator = value_validator
        self._state_type = QuantumStateType.SUPERPOSITION_ANY
        self._prior_type = QuantumStateType.SUPERPOSITION_ANY
        self._locked = False
        self._collapsed = False
        self._collapsed_value: Any = None
        self._mock: Any = _NO_MOCK
        self.reference_id = uuid.uuid4()
        self.last_collapse_seed: int | None = None
        self.collapse_history_id: uuid.UUID | None = None

    # ------------------------------------------------------------------
    # Basic properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> QuantumConfig:
        return self._config if self._config is not None else QuantumConfig.current()

    @property
    def operators(self) -> QuantumOperators:
        """Operator set for the value type, chosen from the first value."""
        if self._ops is None:
            if self._value_type is not None:
                self._ops = operators_for(self._value_type)
            elif self._values:
                self._ops = operators_for(self._values[0])
            else:
                raise ExhaustedStateError(
                    "Empty container has no value type to operate on")
        return self._ops

    @property
    def states(self) -> list:
        """Possible values: the singleton observed value once collapsed."""
        if self._collapsed:
            return [self._collapsed_value]
        return list(self._values)

    @property
    def is_weighted(self) -> bool:
        return self._weights is not None

    @property
    def weights(self) -> dict | None:
        return None if self._weights is None else dict(self._weights)

    @property
    def state_type(self) -> QuantumStateType:
        return self._state_type

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def is_collapsed(self) -> bool:
        return self._collapsed

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self):
        return iter(self.states)

    # ------------------------------------------------------------------
    # Mutation guards
    # ------------------------------------------------------------------

    def lock(self):
        self._locked = True
        return self

    def unlock(self):
        self._locked = False
        return self

    def ensure_mutable(self):
        if self._locked:
            raise FrozenStateError("Container is locked")
        if self._collapsed:
            raise FrozenStateError(
                "Container has collapsed; clone it to get a mutable copy")

    def set_type(self, state_type: QuantumStateType):
        self.ensure_mutable()
        if state_type == QuantumStateType.COLLAPSED_RESULT:
            raise InvalidConfigurationError(
                "Use observe() to collapse; the collapsed tag cannot be set directly")
        self._state_type = state_type
        self._prior_type = state_type
        return self

    def any(self):
        return self.set_type(QuantumStateType.SUPERPOSITION_ANY)

    def all(self):
        return self.set_type(QuantumStateType.SUPERPOSITION_ALL)

    # ------------------------------------------------------------------
    # Weights
    # ------------------------------------------------------------------

    def to_weighted_values(self) -> list[tuple[Any, complex]]:
        """``(value, weight)`` pairs; unweighted values get weight 1."""
        if self._collapsed:
            return [(self._collapsed_value, complex(1.0))]
        if self._weights is None:
            return [(v, complex(1.0)) for v in self._values]
        return [(v, self._weights[v]) for v in self._values]

    def probabilities(self) -> dict:
        """Normalized probability for each possible value."""
        pairs = self.to_weighted_values()
        masses = [abs(w) ** 2 for _, w in pairs]
        total = sum(masses)
        if total <= 1e-15:
            return {v: 1.0 / len(pairs) for v, _ in pairs} if pairs else {}
        return {v: m / total for (v, _), m in zip(pairs, masses)}

    def is_normalised(self) -> bool:
        if self._weights is None:
            return True
        total = sum(abs(w) ** 2 for w in self._weights.values())
        return abs(total - 1.0) <= self.config.tolerance

    def normalise_weights(self):
        """Scale weights so squared magnitudes sum to one.

        Idempotent: does nothing when unweighted, already normalized or all zero.
        """
        if self._weights is None or self.is_normalised():
            return self
        total = sum(abs(w) ** 2 for w in self._weights.values())
        if total <= 1e-15:
            return self
        scale = math.sqrt(total)
        self._weights = {v: w / scale for v, w in self._weights.items()}
        return self

    def weight_summary(self) -> str:
        if self._weights is None:
            return "Weighted: false"
        probs = [abs(w) ** 2 for w in self._weights.values()]
        if not probs:
            return "Weighted: true, empty"
        return (f"Weighted: true, Sum(|amp|^2): {sum(probs):.6g}, "
                f"Max(|amp|^2): {max(probs):.6g}, Min(|amp|^2): {min(probs):.6g}")

    # ------------------------------------------------------------------
    # Sampling and observation
    # ------------------------------------------------------------------

    def sample_weighted(self, rng: RandomSource = None):
        """Draw a value by probability without committing to it."""
        pairs = self.to_weighted_values()
        if not pairs:
            raise ExhaustedStateError("No states available to sample")
        gen = resolve_rng(rng)
        if self._weights is None or self._collapsed:
            return pairs[int(gen.integers(len(pairs)))][0]
        probs = self.probabilities()
        return choose_weighted(list(probs.items()), gen)

    def collapse_weighted(self):
        """Most probable value, without committing. Ties go to the first value."""
        pairs = self.to_weighted_values()
        if not pairs:
            raise ExhaustedStateError("No states available")
        return max(pairs, key=lambda p: abs(p[1]))[0]

    def most_probable(self):
        return self.collapse_weighted()

    def with_mock_collapse(self, value):
        """Make ``observe()`` return ``value`` without sampling (testing aid)."""
        self._mock = value
        return self

    def clear_mock_collapse(self):
        self._mock = _NO_MOCK
        return self

    def is_valid_value(self, value) -> bool:
        if self._validator is not None:
            return bool(self._validator(value))
        return value != self.operators.default

    def observe(self, rng: RandomSource = None, seed: int | None = None):
        """Commit to one value and return it.

        Returns the mock value if set, and the cached value if already
        collapsed. A ``seed`` makes the draw replayable and is recorded on
        ``last_collapse_seed``.
        """
        if self._mock is not _NO_MOCK:
            return self._mock
        if self._collapsed:
            return self._collapsed_value
        if seed is not None:
            self.last_collapse_seed = seed
            rng = np.random.default_rng(seed)
        return self._observe_local(resolve_rng(rng))

    def _observe_local(self, gen: np.random.Generator):
        if not self._values:
            raise ExhaustedStateError("Cannot observe an empty container")
        value = self.sample_weighted(gen)
        if self.config.forbid_default_on_collapse and not self.is_valid_value(value):
            raise CollapsePolicyError(value)
        self._commit(value)
        self.collapse_history_id = uuid.uuid4()
        return value

    def _commit(self, value):
        if self._state_type != QuantumStateType.COLLAPSED_RESULT:
            self._prior_type = self._state_type
        self._collapsed_value = value
        self._collapsed = True
        self._state_type = QuantumStateType.COLLAPSED_RESULT

    def get_observed_value(self):
        """The committed value, or None while still in superposition."""
        return self._collapsed_value if self._collapsed else None

    # ------------------------------------------------------------------
    # Equality
    # ------------------------------------------------------------------

    def __eq__(self, other):
        """Probabilistic equality: same values with the same probabilities."""
        if not isinstance(other, QuantumSoup) or type(other) is not type(self):
            return NotImplemented
        p1, p2 = self.probabilities(), other.probabilities()
        if set(p1) != set(p2):
            return False
        tol = self.config.tolerance
        return all(abs(p1[v] - p2[v]) <= tol for v in p1)

    __hash__ = None

    def strictly_equals(self, other) -> bool:
        """Same values with the same complex weights, phases included."""
        if type(other) is not type(self):
            return False
        w1 = dict(self.to_weighted_values())
        w2 = dict(other.to_weighted_values())
        if set(w1) != set(w2):
            return False
        tol = self.config.tolerance
        return all(abs(w1[v] - w2[v]) <= tol for v in w1)

    def __repr__(self) -> str:
        if self._collapsed:
            return f"{type(self).__name__}(collapsed={self._collapsed_value!r})"
        if self._weights is None:
            return f"{type(self).__name__}({self._values!r}, {self._state_type.value})"
        body = ", ".join(f"{v!r}: {w:.4g}" for v, w in self._weights.items())
        return f"{type(self).__name__}({{{body}}}, {self._state_type.value})"


def _combine_weighted(left: Sequence[tuple[Any, complex]],
                      right: Sequence[tuple[Any, complex]],
                      fn: Callable[[Any, Any], Any],
                      use_cache: bool) -> dict:
    """Apply ``fn`` across both operands, summing weight products per result.

    With ``use_cache`` set, ``fn`` is assumed commutative and each unordered
    operand pair is evaluated once.
    """
    cache: dict = {}
    result: dict = {}
    for a, wa in left:
        for b, wb in right:
            if use_cache:
                key = frozenset((a, b))
                if key in cache:
                    value = cache[key]
                else:
                    value = cache[key] = fn(a, b)
            else:
                value = fn(a, b)
            result[value] = result.get(value, 0j) + wa * wb
    return result


_INT_LIKE = (int, np.integer)


class QuBit(QuantumSoup):
    """A value that may be several things at once.

    Build a local one from values (``QuBit([1, 2, 3])``), from weighted pairs
    (``QuBit.from_weighted``), or bind one to a store with ``QuBit.linked``.
    """

    def __init__(self, values: Iterable[Hashable] = (),
                 weights: Mapping[Hashable, complex] | None = None,
                 config: QuantumConfig | None = None,
                 value_type: type | None = None,
                 value_validator: Callable[[Any], bool] | None = None):
        super().__init__(values, weights, config, value_type, value_validator)
        self._system: QuantumSystem | None = None
        self._qubit_indices: tuple[int, ...] = ()
        self.entanglement_group_id: uuid.UUID | None = None

    @classmethod
    def from_weighted(cls, pairs: Iterable[tuple[Hashable, complex]],
                      config: QuantumConfig | None = None, **kwargs) -> QuBit:
        """Weights of repeated values accumulate."""
        weights: dict = {}
        order: list = []
        for v, w in pairs:
            if v not in weights:
                order.append(v)
                weights[v] = 0j
            weights[v] += complex(w)
        return cls(order, weights, config=config, **kwargs)

    @classmethod
    def with_equal_amplitudes(cls, values: Iterable[Hashable],
                              config: QuantumConfig | None = None) -> QuBit:
        values = list(dict.fromkeys(values))
        if not values:
            raise ExhaustedStateError("Need at least one value")
        amp = 1 / math.sqrt(len(values))
        return cls(values, {v: amp for v in values}, config=config)

    @classmethod
    def linked(cls, system: QuantumSystem, indices: Sequence[int] | int,
               value_type: type = int,
               config: QuantumConfig | None = None) -> QuBit:
        """A container reading its value from ``system`` at ``indices``.

        Its local domain is ``{0, 1}`` (``{False, True}`` for bool).
        """
        if isinstance(indices, _INT_LIKE):
            indices = (indices,)
        indices = tuple(int(i) for i in indices)
        if not indices or any(i < 0 for i in indices):
            raise InvalidConfigurationError(
                f"Linked container needs non-negative indices, got {indices}")
        if value_type not in (int, bool):
            raise InvalidConfigurationError(
                f"Linked containers hold int or bool values, not {value_type.__name__}")
        domain = [False, True] if value_type is bool else [0, 1]
        q = cls(domain, config=config, value_type=value_type)
        q._bind(system, indices)
        return q

    @classmethod
    def _bound_copy(cls, source: QuantumSoup, system: QuantumSystem,
                    indices: tuple[int, ...]) -> QuBit:
        """Linked container carrying ``source``'s values, weights and tag."""
        q = cls(source._values, source.weights, config=source._config,
                value_type=source._value_type, value_validator=source._validator)
        q._state_type = source._prior_type if source.is_collapsed else source._state_type
        q._prior_type = q._state_type
        q._bind(system, indices)
        return q

    def _bind(self, system: QuantumSystem, indices: tuple[int, ...]):
        self._system = system
        self._qubit_indices = indices
        system.register(self)

    @property
    def system(self) -> QuantumSystem | None:
        return self._system

    @property
    def qubit_indices(self) -> tuple[int, ...]:
        return self._qubit_indices

    @property
    def is_local(self) -> bool:
        return self._system is None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, value) -> QuBit:
        """Add one unit of weight to ``value`` (or add it to the value list)."""
        self.ensure_mutable()
        if self._weights is not None:
            if value not in self._values:
                self._values.append(value)
            self._weights[value] = self._weights.get(value, 0j) + 1
        elif value not in self._values:
            self._values.append(value)
        return self

    def clone(self) -> QuBit:
        """Unlocked, uncollapsed local copy with the same values and weights."""
        q = QuBit(self._values, self.weights, config=self._config,
                  value_type=self._value_type, value_validator=self._validator)
        q._state_type = self._prior_type if self._collapsed else self._state_type
        q._prior_type = q._state_type
        return q

    def with_weights(self, weights: Mapping[Hashable, complex],
                     auto_normalise: bool = False) -> QuBit:
        """Weights for the current values; values not in ``weights`` get 0.

        A linked container is updated in place, a local one is copied.
        """
        new_weights = {v: complex(weights.get(v, 0)) for v in self._values}
        if not self.is_local:
            self.ensure_mutable()
            self._weights = new_weights
            target = self
        else:
            target = QuBit(self._values, new_weights, config=self._config,
                           value_type=self._value_type,
                           value_validator=self._validator)
            tag = self._prior_type if self._collapsed else self._state_type
            target._state_type = target._prior_type = tag
        if auto_normalise:
            target.normalise_weights()
        return target

    def with_normalised_weights(self) -> QuBit:
        if self._weights is None:
            return self.clone()
        return self.clone().normalise_weights()

    # ------------------------------------------------------------------
    # Functional operators
    # ------------------------------------------------------------------

    def _from_pairs(self, pairs: Iterable[tuple[Any, complex]],
                    weighted: bool | None = None) -> QuBit:
        result: dict = {}
        for v, w in pairs:
            result[v] = result.get(v, 0j) + w
        weighted = self.is_weighted if weighted is None else weighted
        q = QuBit(list(result), result if weighted else None, config=self._config)
        if self._state_type != QuantumStateType.COLLAPSED_RESULT:
            q._state_type = q._prior_type = self._state_type
        return q

    def select(self, fn: Callable[[Any], Hashable]) -> QuBit:
        """Map every value; weights of values mapping together accumulate."""
        return self._from_pairs((fn(v), w) for v, w in self.to_weighted_values())

    def select_many(self, fn: Callable[[Any], QuantumSoup | Iterable]) -> QuBit:
        """Flat-map: each value expands into a container; weights multiply."""
        pairs = []
        weighted = self.is_weighted
        for v, w in self.to_weighted_values():
            inner = fn(v)
            if isinstance(inner, QuantumSoup):
                weighted = weighted or inner.is_weighted
                pairs.extend((iv, w * iw) for iv, iw in inner.to_weighted_values())
            else:
                pairs.extend((iv, w) for iv in inner)
        return self._from_pairs(pairs, weighted)

    def where(self, predicate: Callable[[Any], bool]) -> QuBit:
        """Keep values satisfying ``predicate`` with their weights."""
        return self._from_pairs(
            (v, w) for v, w in self.to_weighted_values() if predicate(v))

    def conditional(self, predicate: Callable[[Any, complex], bool],
                    if_true: Callable[[QuBit], QuBit],
                    if_false: Callable[[QuBit], QuBit]) -> QuBit:
        """Route each value through one of two branch functions.

        Each branch gets a single-value container; its output weights are
        multiplied by the original value's weight and recombined.
        """
        pairs = []
        for v, w in self.to_weighted_values():
            branch = QuBit([v], config=self._config)
            mapped = if_true(branch) if predicate(v, w) else if_false(branch)
            pairs.extend((mv, w * mw) for mv, mw in mapped.to_weighted_values())
        return self._from_pairs(pairs, True)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _do_oper_type(self, other, op: str, reverse: bool = False) -> QuBit:
        ops = self.operators
        fn = getattr(ops, op)
        if reverse:
            fn = (lambda f: lambda a, b: f(b, a))(fn)

        if not self.config.enable_non_observational_arithmetic:
            a = self.observe()
            b = other.observe() if isinstance(other, QuantumSoup) else other
            value = fn(a, b)
            result = QuBit([value], config=self._config)
            result._commit(value)
            return result

        left = self.to_weighted_values()
        if isinstance(other, QuantumSoup):
            right = other.to_weighted_values()
            weighted = self.is_weighted or other.is_weighted
        else:
            right = [(other, complex(1.0))]
            weighted = self.is_weighted
        use_cache = self.config.enable_commutative_cache and ops.is_commutative(op)
        result = _combine_weighted(left, right, fn, use_cache)
        return self._from_pairs(result.items(), weighted)

    def __add__(self, other):
        return self._do_oper_type(other, "add")

    def __radd__(self, other):
        return self._do_oper_type(other, "add", reverse=True)

    def __sub__(self, other):
        return self._do_oper_type(other, "subtract")

    def __rsub__(self, other):
        return self._do_oper_type(other, "subtract", reverse=True)

    def __mul__(self, other):
        return self._do_oper_type(other, "multiply")

    def __rmul__(self, other):
        return self._do_oper_type(other, "multiply", reverse=True)

    def __truediv__(self, other):
        return self._do_oper_type(other, "divide")

    def __rtruediv__(self, other):
        return self._do_oper_type(other, "divide", reverse=True)

    def __mod__(self, other):
        return self._do_oper_type(other, "mod")

    def __rmod__(self, other):
        return self._do_oper_type(other, "mod", reverse=True)

    def __and__(self, other):
        return self._do_oper_type(other, "bit_and")

    def __rand__(self, other):
        return self._do_oper_type(other, "bit_and", reverse=True)

    def __or__(self, other):
        return self._do_oper_type(other, "bit_or")

    def __ror__(self, other):
        return self._do_oper_type(other, "bit_or", reverse=True)

    def __xor__(self, other):
        return self._do_oper_type(other, "bit_xor")

    def __rxor__(self, other):
        return self._do_oper_type(other, "bit_xor", reverse=True)

    # Comparisons give a superposition of bools.
    def __lt__(self, other):
        return self._do_oper_type(other, "less_than")

    def __le__(self, other):
        return self._do_oper_type(other, "less_than_or_equal")

    def __gt__(self, other):
        return self._do_oper_type(other, "greater_than")

    def __ge__(self, other):
        return self._do_oper_type(other, "greater_than_or_equal")

    def equal_to(self, other) -> QuBit:
        return self._do_oper_type(other, "equal")

    def not_equal_to(self, other) -> QuBit:
        return self._do_oper_type(other, "not_equal")

    def evaluate_all(self) -> bool:
        """True if every possible value is truthy."""
        return all(bool(v) for v in self.states)

    def evaluate_any(self) -> bool:
        return any(bool(v) for v in self.states)

    def __bool__(self) -> bool:
        """Truth under the state tag, without sampling."""
        if self._state_type == QuantumStateType.SUPERPOSITION_ALL:
            return self.evaluate_all()
        return self.evaluate_any()

    def to_collapsed_values(self) -> list:
        return self.states

    # ------------------------------------------------------------------
    # Unitaries
    # ------------------------------------------------------------------

    def apply_local_unitary(self, matrix: np.ndarray) -> QuBit:
        """Apply ``matrix`` to this container's amplitudes.

        Linked containers forward the gate to their store immediately. Local
        containers treat value ``i`` as basis state ``i`` and return a new
        weighted container.
        """
        m = np.asarray(matrix, dtype=np.complex128)
        if not self.is_local:
            self._system.apply_multi_qubit_gate(self._qubit_indices, m, "U")
            return self
        dim = m.shape[0]
        if m.shape != (dim, dim):
            raise InvalidConfigurationError(f"Matrix must be square, got {m.shape}")
        vec = np.zeros(dim, dtype=np.complex128)
        for v, w in self.to_weighted_values():
            if isinstance(v, bool):
                v = int(v)
            if not isinstance(v, _INT_LIKE) or not 0 <= v < dim:
                raise InvalidConfigurationError(
                    f"Value {v!r} is not a basis index for a {dim}x{dim} unitary")
            vec[int(v)] += w
        if self._weights is None:
            vec /= math.sqrt(max(len(self._values), 1))
        out = m @ vec
        as_bool = self._value_type is bool or (
            bool(self._values) and all(isinstance(v, bool) for v in self._values))
        values = [bool(i) if as_bool else i for i in range(dim)]
        return QuBit(values, {values[i]: complex(out[i]) for i in range(dim)},
                     config=self._config, value_validator=self._validator)

    def observe_in_basis(self, matrix: np.ndarray, rng: RandomSource = None):
        """Rotate by ``matrix`` and then observe in the computational basis."""
        rotated = self.apply_local_unitary(matrix)
        return rotated.observe(rng)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe(self, rng: RandomSource = None, seed: int | None = None):
        if self.is_local or self._mock is not _NO_MOCK or self._collapsed:
            return super().observe(rng, seed)
        if seed is not None:
            self.last_collapse_seed = seed
            rng = np.random.default_rng(seed)
        self._system.observe_global(self._union_indices(), rng)
        if not self._collapsed:
            # Store was rebuilt without this container registered.
            self.notify_wavefunction_collapsed(self._system.last_collapse_id)
        return self._collapsed_value

    def _union_indices(self) -> tuple[int, ...]:
        """Own indices plus those of every container sharing a group."""
        union = set(self._qubit_indices)
        manager = self._system.entanglement
        for gid in manager.groups_for_reference(self):
            for ref in manager.get_group(gid):
                union.update(ref.qubit_indices)
        return tuple(sorted(union))

    def _convert(self, values: Sequence[int]):
        if self._value_type is bool:
            values = tuple(bool(v) for v in values)
        else:
            values = tuple(int(v) for v in values)
        return values[0] if len(values) == 1 else values

    def notify_wavefunction_collapsed(self, collapse_id: uuid.UUID | None):
        """Record a collapse event and read this container's outcome."""
        self.collapse_history_id = collapse_id
        if self._collapsed or self._system is None:
            return
        # Guard against re-entry while the store resolves nested observations.
        self._collapsed = True
        try:
            outcome = self._system.resolve_outcome(self._qubit_indices)
        finally:
            self._collapsed = False
        self._commit(self._convert(outcome))

    def partial_collapse(self, outcome_by_index: Mapping[int, int]):
        """Take a value from a partial observation. Nothing is propagated."""
        if self._collapsed:
            return
        values = [outcome_by_index[i] for i in self._qubit_indices]
        self._commit(self._convert(values))


class Eigenstates(QuantumSoup):
    """Superposition over keys, each mapped to a projected value.

    Arithmetic acts on the projected values. Combining two eigenstate sets
    rekeys the result by value; a scalar operand keeps the keys.
    """

    def __init__(self, keys: Iterable[Hashable] = (),
                 projection: Callable[[Any], Any] | None = None,
                 weights: Mapping[Hashable, complex] | None = None,
                 config: QuantumConfig | None = None,
                 value_validator: Callable[[Any], bool] | None = None):
        keys = list(dict.fromkeys(keys))
        if weights is not None:
            keys.extend(k for k in weights if k not in keys)
        super().__init__(keys, weights, config, value_validator=value_validator)
        self._qdict: dict = {k: projection(k) if projection else k
                             for k in self._values}

    @classmethod
    def from_mapping(cls, mapping: Mapping[Hashable, Any],
                     weights: Mapping[Hashable, complex] | None = None,
                     config: QuantumConfig | None = None) -> Eigenstates:
        e = cls(mapping.keys(), weights=weights, config=config)
        e._qdict = dict(mapping)
        return e

    @classmethod
    def from_weighted(cls, pairs: Iterable[tuple[Hashable, complex]],
                      projection: Callable[[Any], Any] | None = None,
                      config: QuantumConfig | None = None) -> Eigenstates:
        weights: dict = {}
        for k, w in pairs:
            weights[k] = weights.get(k, 0j) + complex(w)
        return cls(weights.keys(), projection, weights, config)

    @property
    def value_operators(self) -> QuantumOperators:
        if not self._qdict:
            raise ExhaustedStateError("Empty eigenstate set")
        return operators_for(next(iter(self._qdict.values())))

    def __getitem__(self, key):
        return self._qdict[key]

    def to_values(self) -> list:
        return [self._qdict[k] for k in self.states]

    def to_mapped_weighted_values(self) -> list[tuple[Any, Any, complex]]:
        """``(key, value, weight)`` triples."""
        return [(k, self._qdict[k], w) for k, w in self.to_weighted_values()]

    @property
    def observed_value(self):
        """Projected value of the observed key, or None."""
        return self._qdict[self._collapsed_value] if self._collapsed else None

    def _subset(self, keys: Iterable[Hashable]) -> Eigenstates:
        keys = list(keys)
        e = Eigenstates(keys, weights=None if self._weights is None else
                        {k: self._weights[k] for k in keys}, config=self._config,
                        value_validator=self._validator)
        e._qdict = {k: self._qdict[k] for k in keys}
        return e

    def _combine(self, other, op: str, reverse: bool = False) -> Eigenstates:
        fn = getattr(self.value_operators, op)
        if reverse:
            fn = (lambda f: lambda a, b: f(b, a))(fn)
        mine = [(self._qdict[k], w) for k, w in self.to_weighted_values()]

        if isinstance(other, Eigenstates):
            theirs = [(other._qdict[k], w) for k, w in other.to_weighted_values()]
            use_cache = (self.config.enable_commutative_cache
                         and self.value_operators.is_commutative(op))
            result = _combine_weighted(mine, theirs, fn, use_cache)
            weighted = self.is_weighted or other.is_weighted
            return Eigenstates(result.keys(),
                               weights=result if weighted else None,
                               config=self._config)
        if isinstance(other, QuantumSoup):
            raise UnsupportedOperationError(
                "Eigenstates combine only with Eigenstates or scalars")

        keys = self.states
        e = Eigenstates(keys, weights=None if self._weights is None else
                        dict(self.to_weighted_values()), config=self._config)
        e._qdict = {k: fn(self._qdict[k], other) for k in keys}
        return e

    def __add__(self, other):
        return self._combine(other, "add")

    def __radd__(self, other):
        return self._combine(other, "add", reverse=True)

    def __sub__(self, other):
        return self._combine(other, "subtract")

    def __rsub__(self, other):
        return self._combine(other, "subtract", reverse=True)

    def __mul__(self, other):
        return self._combine(other, "multiply")

    def __rmul__(self, other):
        return self._combine(other, "multiply", reverse=True)

    def __truediv__(self, other):
        return self._combine(other, "divide")

    def __mod__(self, other):
        return self._combine(other, "mod")

    def _filter(self, other, op: str) -> Eigenstates:
        fn = getattr(self.value_operators, op)
        if isinstance(other, Eigenstates):
            theirs = other.to_values()
            quantifier = all if other.state_type == QuantumStateType.SUPERPOSITION_ALL else any
            keep = [k for k in self.states
                    if quantifier(fn(self._qdict[k], t) for t in theirs)]
        else:
            keep = [k for k in self.states if fn(self._qdict[k], other)]
        return self._subset(keep)

    def __lt__(self, other):
        return self._filter(other, "less_than")

    def __le__(self, other):
        return self._filter(other, "less_than_or_equal")

    def __gt__(self, other):
        return self._filter(other, "greater_than")

    def __ge__(self, other):
        return self._filter(other, "greater_than_or_equal")

    def equal_to(self, other) -> Eigenstates:
        return self._filter(other, "equal")

    def not_equal_to(self, other) -> Eigenstates:
        return self._filter(other, "not_equal")

    def top_n_by_weight(self, n: int) -> Eigenstates:
        ranked = sorted(self.to_weighted_values(), key=lambda p: -abs(p[1]))
        return self._subset(k for k, _ in ranked[:n])

    def filter_by_probability(self, min_probability: float) -> Eigenstates:
        probs = self.probabilities()
        return self._subset(k for k in self.states if probs[k] >= min_probability)

    def filter_by_amplitude(self, min_amplitude: float) -> Eigenstates:
        return self._subset(k for k, w in self.to_weighted_values()
                            if abs(w) >= min_amplitude)

    def clone(self) -> Eigenstates:
        e = self._subset(self._values)
        e._state_type = e._prior_type = (self._prior_type if self._collapsed
                                         else self._state_type)
        return e


class PhysicsQubit(QuBit):
    """Two-level qubit ``alpha|0> + beta|1>``, normalized on construction.

    Measuring 0 is a normal physical outcome, so the default-value policy
    never rejects it.
    """

    def __init__(self, alpha: complex = 1.0, beta: complex = 0.0,
                 config: QuantumConfig | None = None):
        super().__init__([0, 1], {0: alpha, 1: beta}, config=config,
                         value_type=int, value_validator=lambda v: True)
        if abs(alpha) ** 2 + abs(beta) ** 2 <= 1e-15:
            raise InvalidConfigurationError("alpha and beta cannot both be zero")
        self.normalise_weights()

    @classmethod
    def from_bloch(cls, theta: float, phi: float,
                   config: QuantumConfig | None = None) -> PhysicsQubit:
        return cls(math.cos(theta / 2), cmath.rect(math.sin(theta / 2), phi),
                   config=config)

    @classmethod
    def zero(cls) -> PhysicsQubit:
        return cls(1.0, 0.0)

    @classmethod
    def one(cls) -> PhysicsQubit:
        return cls(0.0, 1.0)

    @property
    def alpha(self) -> complex:
        return self._weights[0]

    @property
    def beta(self) -> complex:
        return self._weights[1]
