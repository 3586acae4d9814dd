"""Test harness for superposition containers, operator sets and config.

Covers local (non-system) containers: construction, lock and tag rules,
collapse policy, weights, per-type arithmetic, comparisons, functional
operators, eigenstate sets, two-level qubits and config persistence.

Run: python test_superposition.py   (or collect with pytest)
"""

from __future__ import annotations

import math
import os
import sys
import tempfile
import traceback
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import numpy as np

from quantum_soup.core.config import QuantumConfig
from quantum_soup.core.errors import (
    CollapsePolicyError, ExhaustedStateError, FrozenStateError,
    InvalidConfigurationError, NotCollapsedError, QuantumError,
    UnsupportedOperationError,
)
from quantum_soup.engine.gates import H_MATRIX, X_MATRIX
from quantum_soup.engine.operators import (
    BoolOperators, FloatOperators, IntOperators, StringOperators, operators_for,
)
from quantum_soup.engine.superposition import (
    Eigenstates, PhysicsQubit, QuantumStateType, QuBit,
)


TOLERANCE = 1e-9
PASS_COUNT = 0
FAIL_COUNT = 0


def _report(name: str, passed: bool, details: str = ""):
    global PASS_COUNT, FAIL_COUNT
    status = "PASS" if passed else "FAIL"
    if passed:
        PASS_COUNT += 1
    else:
        FAIL_COUNT += 1
    print(f"  [{status}] {name}")
    if details and not passed:
        print(f"         {details}")
    assert passed, f"{name}: {details}"


def _raises(exc_type, fn, *args, **kwargs) -> bool:
    try:
        fn(*args, **kwargs)
    except exc_type:
        return True
    return False


# =========================================================================
# Test 1: Construction, lock and state tag
# =========================================================================

def test_construction():
    """Distinct values, weight accumulation, lock and tag rules."""
    print("\nTest 1: Construction and Mutation Guards")
    print("-" * 40)
    QuantumConfig.reset()

    q = QuBit([1, 2, 2, 3])
    _report("values kept distinct in order", q.states == [1, 2, 3] and len(q) == 3)
    _report("unweighted by default", not q.is_weighted and q.weights is None)

    w = QuBit.from_weighted([(1, 1), (1, 2), (2, 1)])
    _report("repeated weighted values accumulate", w.weights == {1: 3, 2: 1})
    _report("weighted append adds one unit",
            QuBit.from_weighted([(1, 1)]).append(1).append(2).weights == {1: 2, 2: 1})

    q.lock()
    _report("locked container rejects append", _raises(FrozenStateError, q.append, 4))
    _report("locked container rejects retagging", _raises(FrozenStateError, q.all))
    q.unlock()
    q.append(4)
    _report("unlocked container accepts append", q.states == [1, 2, 3, 4])
    _report("collapsed tag cannot be set directly",
            _raises(InvalidConfigurationError, q.set_type,
                    QuantumStateType.COLLAPSED_RESULT))

    q.observe(seed=5)
    _report("collapsed container is frozen", _raises(FrozenStateError, q.append, 9))
    _report("collapsed container exposes one state",
            q.states == [q.get_observed_value()]
            and q.state_type == QuantumStateType.COLLAPSED_RESULT)

    tagged = QuBit.from_weighted([(1, 1), (2, 3)]).all()
    tagged.observe(seed=1)
    copy = tagged.clone()
    _report("clone is open, unlocked and keeps the prior tag",
            not copy.is_collapsed and not copy.is_locked
            and copy.state_type == QuantumStateType.SUPERPOSITION_ALL
            and copy.states == [1, 2] and copy.weights == tagged.weights)

    eq = QuBit.with_equal_amplitudes([1, 2, 3, 4])
    _report("equal amplitudes are normalized",
            eq.is_normalised() and abs(eq.weights[1] - 0.5) < TOLERANCE)
    _report("equal amplitudes need values",
            _raises(ExhaustedStateError, QuBit.with_equal_amplitudes, []))


# =========================================================================
# Test 2: Collapse policy
# =========================================================================

def test_collapse_policy():
    """Default values are rejected on local collapse unless allowed."""
    print("\nTest 2: Collapse Policy")
    print("-" * 40)
    QuantumConfig.reset()

    try:
        QuBit([0]).observe()
        caught = None
    except CollapsePolicyError as exc:
        caught = exc
    _report("int default rejected", caught is not None and caught.value == 0)
    _report("bool default rejected",
            _raises(CollapsePolicyError, QuBit([False]).observe))
    _report("string default rejected",
            _raises(CollapsePolicyError, QuBit([""]).observe))

    relaxed = QuantumConfig(forbid_default_on_collapse=False)
    _report("per-container config allows the default",
            QuBit([0], config=relaxed).observe() == 0)
    QuantumConfig.install(QuantumConfig(forbid_default_on_collapse=False))
    _report("process-wide config allows the default", QuBit([0]).observe() == 0)
    QuantumConfig.reset()

    _report("custom validator rejects",
            _raises(CollapsePolicyError,
                    QuBit([5], value_validator=lambda v: v != 5).observe))
    _report("custom validator accepts",
            QuBit([0], value_validator=lambda v: True).observe() == 0)
    _report("empty container is exhausted",
            _raises(ExhaustedStateError, QuBit([]).observe))
    _report("policy error is not an exhausted-state error",
            not issubclass(CollapsePolicyError, ExhaustedStateError))


# =========================================================================
# Test 3: Weights and sampling
# =========================================================================

def test_weights():
    """Normalization, sampling without commit, summaries."""
    print("\nTest 3: Weights and Sampling")
    print("-" * 40)
    QuantumConfig.reset()

    q = QuBit.from_weighted([(0, 3), (1, 4)])
    _report("not normalized on entry", not q.is_normalised())
    q.normalise_weights()
    _report("normalise scales to unit mass",
            abs(q.weights[0] - 0.6) < TOLERANCE and abs(q.weights[1] - 0.8) < TOLERANCE)
    before = q.weights
    q.normalise_weights()
    _report("normalise is idempotent", q.weights == before)
    zeros = QuBit.from_weighted([(1, 0), (2, 0)]).normalise_weights()
    _report("all-zero weights left alone", zeros.weights == {1: 0, 2: 0})

    plain = QuBit([1, 2])
    scaled = plain.with_weights({1: 3, 2: 4}, auto_normalise=True)
    _report("with_weights copies a local container",
            not plain.is_weighted and abs(scaled.weights[2] - 0.8) < TOLERANCE)
    _report("missing weights default to zero",
            plain.with_weights({1: 1}).weights == {1: 1, 2: 0})
    _report("normalised copy of unweighted stays unweighted",
            not plain.with_normalised_weights().is_weighted)

    s = QuBit([4, 5])
    _report("sampling does not commit",
            s.sample_weighted(rng=1) in (4, 5) and not s.is_collapsed)
    skewed = QuBit.from_weighted([(7, 1.0), (8, 0.0)])
    _report("zero-weight values are never sampled",
            all(skewed.sample_weighted(rng=i) == 7 for i in range(20)))
    _report("most probable value",
            QuBit.from_weighted([(1, 0.1), (2, 0.9)]).most_probable() == 2)

    _report("unweighted summary", QuBit([1]).weight_summary() == "Weighted: false")
    _report("weighted summary",
            QuBit.from_weighted([(1, 0.6), (2, 0.8)]).weight_summary()
            .startswith("Weighted: true"))

    m = QuBit([1, 2]).with_mock_collapse(42)
    _report("mock collapse returns the mock", m.observe() == 42 and not m.is_collapsed)
    m.clear_mock_collapse()
    _report("cleared mock samples normally", m.observe(seed=3) in (1, 2))


# =========================================================================
# Test 4: Per-type operators
# =========================================================================

def test_operators():
    """Arithmetic semantics for each value type."""
    print("\nTest 4: Operator Sets")
    print("-" * 40)
    QuantumConfig.reset()

    _report("int division truncates toward zero", (QuBit([-7]) / 2).states == [-3])
    _report("int remainder takes the dividend's sign", (QuBit([-7]) % 2).states == [-1])
    _report("float remainder", abs((QuBit([7.5]) % 2).states[0] - 1.5) < TOLERANCE)
    _report("bitwise ints",
            (QuBit([12]) & 10).states == [8] and (QuBit([12]) | 10).states == [14]
            and (QuBit([12]) ^ 10).states == [6])
    _report("reflected operand order", (10 - QuBit([3])).states == [7])
    _report("remainder values collide", (QuBit([1, 2, 3]) % 2).states == [1, 0])

    _report("string subtract removes first occurrence",
            (QuBit(["hello"]) - "l").states == ["helo"])
    _report("string multiply interleaves",
            (QuBit(["ab"]) * "xy").states == ["axaybxby"])
    _report("reflected string add", ("pre" + QuBit(["fix"])).states == ["prefix"])
    _report("string add is not treated as commutative",
            (QuBit(["a", "b"]) + QuBit(["a", "b"])).states == ["aa", "ab", "ba", "bb"])

    _report("bool add is or",
            set((QuBit([True, False]) + QuBit([False])).states) == {True, False})
    _report("bool xor", (QuBit([True]) ^ True).states == [False])

    _report("bool divide unsupported",
            _raises(UnsupportedOperationError, lambda: QuBit([True]) / True))
    _report("complex mod unsupported",
            _raises(UnsupportedOperationError, lambda: QuBit([1 + 1j]) % 2))
    _report("string divide unsupported",
            _raises(UnsupportedOperationError, lambda: QuBit(["a"]) / "b"))
    _report("float bitwise unsupported",
            _raises(UnsupportedOperationError, lambda: QuBit([1.5]) & 1))

    _report("operator lookup",
            isinstance(operators_for(True), BoolOperators)
            and isinstance(operators_for(3), IntOperators)
            and isinstance(operators_for(np.int64(3)), IntOperators)
            and isinstance(operators_for(np.float64(1.0)), FloatOperators)
            and isinstance(operators_for(np.bool_(True)), BoolOperators)
            and isinstance(operators_for(str), StringOperators))
    _report("unknown type rejected",
            _raises(UnsupportedOperationError, operators_for, object()))

    cfg = QuantumConfig(enable_non_observational_arithmetic=False)
    a = QuBit([2, 3], config=cfg)
    b = QuBit([10], config=cfg)
    result = a + b
    _report("observational arithmetic collapses both operands",
            a.is_collapsed and b.is_collapsed
            and result.states == [a.get_observed_value() + 10])
    _report("observational result is already collapsed",
            result.is_collapsed
            and result.state_type == QuantumStateType.COLLAPSED_RESULT
            and result.observe() == a.get_observed_value() + 10)


# =========================================================================
# Test 5: Comparisons and functional operators
# =========================================================================

def test_functional():
    """Comparisons give bool superpositions; map, filter, branch."""
    print("\nTest 5: Comparisons and Functional Operators")
    print("-" * 40)
    QuantumConfig.reset()

    _report("comparison gives bools",
            set((QuBit([1, 5, 9]) > 4).states) == {False, True})
    weighted = QuBit.from_weighted([(1, 1), (5, 1), (9, 1)]) > 4
    _report("comparison accumulates weight", weighted.weights == {False: 1, True: 2})
    _report("equal_to", QuBit([1, 2]).equal_to(2).states == [False, True])
    _report("not_equal_to", QuBit([2]).not_equal_to(2).states == [False])

    _report("truth under all", bool(QuBit([2, 4]).all()) and not bool(QuBit([0, 2]).all()))
    _report("truth under any", bool(QuBit([0, 2])))
    _report("evaluate_all on a comparison", (QuBit([1, 5, 9]) > 0).evaluate_all())
    peek = QuBit.from_weighted([(3, 0.2), (4, 0.7)])
    _report("collapse_weighted does not commit",
            peek.collapse_weighted() == 4 and not peek.is_collapsed
            and peek.to_collapsed_values() == [3, 4])
    peek.observe(seed=0)
    _report("observe keeps the value list",
            peek.get_observed_value() in (3, 4)
            and peek.to_collapsed_values() == [3, 4])

    _report("select accumulates weights",
            QuBit.from_weighted([(1, 1), (2, 1), (3, 1)]).select(lambda v: v % 2).weights
            == {1: 2, 0: 1})
    _report("select_many flattens",
            QuBit([1, 2]).select_many(lambda v: [v, v * 10]).states == [1, 10, 2, 20])
    nested = QuBit.from_weighted([(1, 2)]).select_many(
        lambda v: QuBit.from_weighted([(v, 0.5), (v + 1, 0.5)]))
    _report("select_many multiplies weights", nested.weights == {1: 1, 2: 1})
    _report("where filters", QuBit([1, 2, 3, 4]).where(lambda v: v % 2 == 0).states == [2, 4])

    branched = QuBit.from_weighted([(1, 1), (2, 1)]).conditional(
        lambda v, w: v > 1, lambda q: q * 100, lambda q: q)
    _report("conditional routes each value", branched.weights == {1: 1, 200: 1},
            f"got {branched.weights}")

    a = QuBit.from_weighted([(1, 1), (2, -1)])
    b = QuBit.from_weighted([(1, 1), (2, 1)])
    _report("probabilistic equality ignores phase", a == b)
    _report("strict equality sees phase", not a.strictly_equals(b))
    _report("order does not matter", QuBit([1, 2]) == QuBit([2, 1]))
    _report("different values are unequal", QuBit([1, 2]) != QuBit([1, 3]))
    _report("different container types are unequal", QuBit([0, 1]) != PhysicsQubit(1, 1))


# =========================================================================
# Test 6: Eigenstate sets
# =========================================================================

def test_eigenstates():
    """Keys with projected values."""
    print("\nTest 6: Eigenstates")
    print("-" * 40)
    QuantumConfig.reset()

    e = Eigenstates([1, 2, 3], lambda k: k * k)
    _report("projection", e.to_values() == [1, 4, 9] and e[2] == 4)
    _report("filter on projected value", (e > 3).states == [2, 3])
    shifted = e + 1
    _report("scalar arithmetic keeps keys",
            shifted.states == [1, 2, 3] and shifted.to_values() == [2, 5, 10])

    summed = Eigenstates.from_weighted([(1, 1), (2, 1)]) \
        + Eigenstates.from_weighted([(1, 1), (2, 1)])
    _report("set arithmetic rekeys by value",
            summed.states == [2, 3, 4] and summed.weights[3] == 2)
    _report("combining with a plain container is unsupported",
            _raises(UnsupportedOperationError, lambda: e + QuBit([1])))

    plain = Eigenstates([1, 2, 3])
    _report("filter against an any-set", (plain < Eigenstates([2, 3])).states == [1, 2])
    _report("filter against an all-set",
            (plain > Eigenstates([2, 3]).all()).states == []
            and (plain >= Eigenstates([1, 2]).all()).states == [2, 3])

    w = Eigenstates.from_weighted([(1, 0.1), (2, 0.9), (3, 0.3)])
    _report("top n by weight", w.top_n_by_weight(2).states == [2, 3])
    _report("filter by probability", w.filter_by_probability(0.1).states == [2])
    _report("filter by amplitude", w.filter_by_amplitude(0.25).states == [2, 3])

    m = Eigenstates.from_mapping({"a": 1, "b": 2})
    _report("from mapping",
            m["b"] == 2 and m.to_mapped_weighted_values() == [("a", 1, 1), ("b", 2, 1)])

    p = Eigenstates([1, 2], lambda k: k * 10)
    key = p.observe(seed=4)
    _report("observed value is the projection",
            key in (1, 2) and p.observed_value == key * 10)
    tagged = Eigenstates([5, 6]).all()
    tagged.observe(seed=1)
    c = tagged.clone()
    _report("clone reopens with the prior tag",
            not c.is_collapsed and c.states == [5, 6]
            and c.state_type == QuantumStateType.SUPERPOSITION_ALL)


# =========================================================================
# Test 7: Two-level qubits
# =========================================================================

def test_physics_qubit():
    """Normalized alpha/beta qubits with local unitaries."""
    print("\nTest 7: Physics Qubit")
    print("-" * 40)
    QuantumConfig.reset()

    q = PhysicsQubit(1, 1)
    _report("normalized on construction",
            abs(q.alpha - 1 / math.sqrt(2)) < TOLERANCE and q.is_normalised())
    _report("zero amplitudes rejected",
            _raises(InvalidConfigurationError, PhysicsQubit, 0, 0))
    _report("measuring 0 is allowed", PhysicsQubit.zero().observe() == 0)
    _report("measuring 1", PhysicsQubit.one().observe() == 1)
    _report("Bloch pole", PhysicsQubit.from_bloch(math.pi, 0).observe(seed=2) == 1)

    flipped = PhysicsQubit.zero().apply_local_unitary(X_MATRIX)
    _report("X flips |0>", abs(flipped.weights[1] - 1) < TOLERANCE
            and flipped.observe() == 1)
    _report("H|+> measures 0",
            all(PhysicsQubit.from_bloch(math.pi / 2, 0).observe_in_basis(H_MATRIX, rng=s) == 0
                for s in range(10)))
    _report("phase-only difference is probabilistically equal",
            PhysicsQubit(1, 1) == PhysicsQubit(1, -1)
            and not PhysicsQubit(1, 1).strictly_equals(PhysicsQubit(1, -1)))
    _report("unitary rejects non-basis values",
            _raises(InvalidConfigurationError, QuBit([5]).apply_local_unitary, X_MATRIX))


# =========================================================================
# Test 8: Configuration and errors
# =========================================================================

def test_config():
    """JSON persistence and the error hierarchy."""
    print("\nTest 8: Configuration")
    print("-" * 40)
    QuantumConfig.reset()

    with tempfile.TemporaryDirectory() as tmp:
        cfg = QuantumConfig(tolerance=1e-6, default_seed=7,
                            forbid_default_on_collapse=False,
                            _config_dir=Path(tmp))
        cfg.save()
        loaded = QuantumConfig.load(cfg.config_path)
        _report("save/load round trip", loaded.to_dict() == cfg.to_dict())

        bad = Path(tmp) / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        _report("unreadable file falls back to defaults",
                QuantumConfig.load(bad).to_dict() == QuantumConfig().to_dict())
        _report("missing file gives defaults",
                QuantumConfig.load(Path(tmp) / "missing.json").tolerance == 1e-9)

    _report("current() is a singleton", QuantumConfig.current() is QuantumConfig.current())

    _report("errors derive from builtins",
            issubclass(InvalidConfigurationError, ValueError)
            and issubclass(ExhaustedStateError, RuntimeError)
            and issubclass(FrozenStateError, RuntimeError)
            and issubclass(NotCollapsedError, RuntimeError)
            and issubclass(UnsupportedOperationError, TypeError))
    _report("errors share a base",
            all(issubclass(e, QuantumError) for e in (
                InvalidConfigurationError, ExhaustedStateError, CollapsePolicyError,
                FrozenStateError, NotCollapsedError, UnsupportedOperationError)))


# =========================================================================
# Main
# =========================================================================

def main():
    global PASS_COUNT, FAIL_COUNT
    print("=" * 50)
    print("Quantum Soup Container Test Harness")
    print("=" * 50)

    tests = [
        test_construction,
        test_collapse_policy,
        test_weights,
        test_operators,
        test_functional,
        test_eigenstates,
        test_physics_qubit,
        test_config,
    ]

    for test_fn in tests:
        try:
            test_fn()
        except AssertionError:
            pass  # already counted by _report
        except Exception:
            print(f"\n  [ERROR] {test_fn.__name__} raised an exception:")
            traceback.print_exc()
            FAIL_COUNT += 1

    print("\n" + "=" * 50)
    total = PASS_COUNT + FAIL_COUNT
    print(f"Results: {PASS_COUNT}/{total} passed, {FAIL_COUNT} failed")
    if FAIL_COUNT == 0:
        print("ALL TESTS PASSED")
    else:
        print("SOME TESTS FAILED")
    print("=" * 50)

    return 0 if FAIL_COUNT == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
