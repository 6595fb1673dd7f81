"""
Exceptions raised by the model core.

Every error surfaces to the immediate caller; nothing here is retried or
logged.
"""

from __future__ import annotations


class ModelError(Exception):
    """Base class for model-core errors."""


class ModelNotImplementedError(ModelError, NotImplementedError):
    """A model omits a required capability (dimensions, dynamics, wrenches)."""


class ModelDimensionError(ModelError, ValueError):
    """A model reports a state or control dimension that is not a positive int."""


class DimensionMismatchError(ModelError, ValueError):
    """A caller-supplied buffer or vector disagrees with the model's (n, m)."""


class UnsupportedConfigurationError(ModelError):
    """A quadrature rule / differentiation method combination cannot be honored."""


class NumericDegeneracyError(ModelError, ArithmeticError):
    """A numeric derivative produced non-finite entries."""


class SolverConvergenceError(ModelError):
    """An implicit integration step failed to converge."""
