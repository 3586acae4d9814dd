"""Per-value-type arithmetic and comparison primitives.

Superposition containers pick one operator set when they are built and
route every combination through it, so a value type that does not define
an operation fails loudly instead of silently returning its input.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from ..core.errors import UnsupportedOperationError


# Binary operations a container can combine with. Comparisons are handled
# separately because they produce bools rather than values of the type.
ARITHMETIC_OPS = ("add", "subtract", "multiply", "divide", "mod",
                  "bit_and", "bit_or", "bit_xor")
COMPARISON_OPS = ("greater_than", "greater_than_or_equal", "less_than",
                  "less_than_or_equal", "equal", "not_equal")


class QuantumOperators(ABC):
    """Capability interface for one value type."""

    value_type: type = object
    default: Any = None
    is_add_commutative: bool = True

    def _unsupported(self, op: str):
        raise UnsupportedOperationError(
            f"{op} is not supported for {self.value_type.__name__} values")

    @abstractmethod
    def add(self, a, b): ...

    @abstractmethod
    def subtract(self, a, b): ...

    @abstractmethod
    def multiply(self, a, b): ...

    def divide(self, a, b):
        self._unsupported("divide")

    def mod(self, a, b):
        self._unsupported("mod")

    def bit_and(self, a, b):
        self._unsupported("bit_and")

    def bit_or(self, a, b):
        self._unsupported("bit_or")

    def bit_xor(self, a, b):
        self._unsupported("bit_xor")

    def greater_than(self, a, b) -> bool:
        return a > b

    def greater_than_or_equal(self, a, b) -> bool:
        return a >= b

    def less_than(self, a, b) -> bool:
        return a < b

    def less_than_or_equal(self, a, b) -> bool:
        return a <= b

    def equal(self, a, b) -> bool:
        return a == b

    def not_equal(self, a, b) -> bool:
        return a != b

    def is_commutative(self, op: str) -> bool:
        """Whether ``op(a, b) == op(b, a)`` for every pair of values."""
        if op == "add":
            return self.is_add_commutative
        return op in ("multiply", "bit_and", "bit_or", "bit_xor",
                      "equal", "not_equal")

    def apply(self, op: str, a, b):
        if op not in ARITHMETIC_OPS and op not in COMPARISON_OPS:
            raise UnsupportedOperationError(f"Unknown operator {op!r}")
        return getattr(self, op)(a, b)


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


class IntOperators(QuantumOperators):
    """Integers with truncating division and sign-of-dividend remainder."""
    value_type = int
    default = 0

    def add(self, a, b):
        return a + b

    def subtract(self, a, b):
        return a - b

    def multiply(self, a, b):
        return a * b

    def divide(self, a, b):
        return _trunc_div(a, b)

    def mod(self, a, b):
        return a - b * _trunc_div(a, b)

    def bit_and(self, a, b):
        return a & b

    def bit_or(self, a, b):
        return a | b

    def bit_xor(self, a, b):
        return a ^ b


class FloatOperators(QuantumOperators):
    value_type = float
    default = 0.0

    def add(self, a, b):
        return a + b

    def subtract(self, a, b):
        return a - b

    def multiply(self, a, b):
        return a * b

    def divide(self, a, b):
        return a / b

    def mod(self, a, b):
        return math.fmod(a, b)


class ComplexOperators(QuantumOperators):
    """Complex numbers. Ordering compares magnitudes; mod is undefined."""
    value_type = complex
    default = 0j

    def add(self, a, b):
        return a + b

    def subtract(self, a, b):
        return a - b

    def multiply(self, a, b):
        return a * b

    def divide(self, a, b):
        return a / b

    def greater_than(self, a, b) -> bool:
        return abs(a) > abs(b)

    def greater_than_or_equal(self, a, b) -> bool:
        return abs(a) >= abs(b)

    def less_than(self, a, b) -> bool:
        return abs(a) < abs(b)

    def less_than_or_equal(self, a, b) -> bool:
        return abs(a) <= abs(b)


class BoolOperators(QuantumOperators):
    """Booleans: add is OR, subtract is AND NOT, multiply is AND."""
    value_type = bool
    default = False

    def add(self, a, b):
        return a or b

    def subtract(self, a, b):
        return a and not b

    def multiply(self, a, b):
        return a and b

    def bit_and(self, a, b):
        return a and b

    def bit_or(self, a, b):
        return a or b

    def bit_xor(self, a, b):
        return a != b

    # Truth values have no order.
    def greater_than(self, a, b) -> bool:
        return False

    def greater_than_or_equal(self, a, b) -> bool:
        return a == b

    def less_than(self, a, b) -> bool:
        return False

    def less_than_or_equal(self, a, b) -> bool:
        return a == b


class StringOperators(QuantumOperators):
    """Strings: concatenation, first-occurrence removal, pairwise interleave."""
    value_type = str
    default = ""
    is_add_commutative = False

    def add(self, a, b):
        return a + b

    def subtract(self, a, b):
        if not b:
            return a
        return a.replace(b, "", 1)

    def multiply(self, a, b):
        if not a or not b:
            return ""
        return "".join(c1 + c2 for c1 in a for c2 in b)

    def is_commutative(self, op: str) -> bool:
        return op in ("equal", "not_equal")


_OPERATORS: dict[type, QuantumOperators] = {
    bool: BoolOperators(),
    int: IntOperators(),
    float: FloatOperators(),
    complex: ComplexOperators(),
    str: StringOperators(),
}


_NUMPY_KINDS = {"b": bool, "i": int, "u": int, "f": float, "c": complex}


def operators_for(value_or_type) -> QuantumOperators:
    """Return the operator set for a value or a value type.

    bool is checked before int because it is an int subclass. numpy scalar
    types resolve to the matching builtin.
    """
    t = value_or_type if isinstance(value_or_type, type) else type(value_or_type)
    if t in _OPERATORS:
        return _OPERATORS[t]
    for base in (bool, int, float, complex, str):
        if issubclass(t, base):
            return _OPERATORS[base]
    if issubclass(t, np.generic):
        base = _NUMPY_KINDS.get(np.dtype(t).kind)
        if base is not None:
            return _OPERATORS[base]
    raise UnsupportedOperationError(
        f"No operator set registered for type {t.__name__}")
