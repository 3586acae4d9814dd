"""Exception types raised by the simulation engine.

Every error also derives from the builtin exception a caller would
naturally catch for the same condition, so ``except ValueError`` keeps
working for configuration mistakes.
"""

from __future__ import annotations


class QuantumError(Exception):
    """Base class for all engine errors."""


class InvalidConfigurationError(QuantumError, ValueError):
    """Bad input wiring: mismatched stores, gate dimensions, empty init."""


class ExhaustedStateError(QuantumError, RuntimeError):
    """Collapse requested on an empty value set or a zero-mass wavefunction."""


class CollapsePolicyError(QuantumError, RuntimeError):
    """A collapse sampled the type's default value while that is forbidden.

    Distinct from ``ExhaustedStateError`` so callers can retry with a new seed.
    """

    def __init__(self, value, message: str | None = None):
        self.value = value
        super().__init__(
            message or f"Collapse produced the default value {value!r}, "
                       "which the current configuration forbids")


class FrozenStateError(QuantumError, RuntimeError):
    """Mutation attempted on a locked or collapsed container."""


class NotCollapsedError(QuantumError, RuntimeError):
    """The wavefunction still holds more than one basis vector."""


class UnsupportedOperationError(QuantumError, TypeError):
    """Operator or operation kind not defined for the given values."""
