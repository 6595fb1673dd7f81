"""
trajopt_models

Model-abstraction core for trajectory optimization: dynamical-system
interface, rigid bodies with orientation states, quadrature rules, and
Jacobians by forward-mode AD or finite differences.

Modules:
    dynamics: models, quadrature rules, continuous/discrete engines
    knotpoint: knot points (state, control, time, step)
    errors: exception hierarchy
"""

__version__ = "0.1.0"

from . import dynamics, errors, knotpoint
from .errors import (
    DimensionMismatchError,
    ModelDimensionError,
    ModelError,
    ModelNotImplementedError,
    NumericDegeneracyError,
    SolverConvergenceError,
    UnsupportedConfigurationError,
)
from .knotpoint import KnotPoint, KnotPointLike

__all__ = [
    "DimensionMismatchError",
    "KnotPoint",
    "KnotPointLike",
    "ModelDimensionError",
    "ModelError",
    "ModelNotImplementedError",
    "NumericDegeneracyError",
    "SolverConvergenceError",
    "UnsupportedConfigurationError",
    "dynamics",
    "errors",
    "knotpoint",
]
