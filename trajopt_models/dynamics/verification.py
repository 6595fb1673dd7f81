"""
Cross-Strategy Jacobian Verification

Compares the forward-mode Jacobian of a model against its finite-difference
approximation at a knot point. Useful when writing a new model: if the two
disagree, the dynamics are either not traceable as written or the
finite-difference step is badly scaled for the problem.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ..knotpoint import KnotPointLike
from .continuous import jacobian
from .diffmethods import DiffMethod, FiniteDifferenceType, JacobianCache
from .discrete import discrete_jacobian
from .model import AbstractModel
from .quadrature import QuadratureRule


def verify_jacobians(
    model: AbstractModel,
    z: KnotPointLike,
    rule: Optional[QuadratureRule] = QuadratureRule.CONTINUOUS,
    rtol: float = 1e-4,
    atol: float = 1e-6,
    verbose: bool = False,
) -> Tuple[bool, dict]:
    """
    Check FORWARD_AD against FINITE_DIFFERENCE (central differences).

    Args:
        model: Dynamics model with traceable dynamics
        z: Knot point
        rule: CONTINUOUS for the continuous Jacobian, otherwise an explicit
            rule for the discrete one (None for the default rule)
        rtol: Relative tolerance
        atol: Absolute tolerance
        verbose: Print a short comparison

    Returns:
        (is_valid, info_dict)
    """
    cache = JacobianCache.from_model(model, fd_type=FiniteDifferenceType.CENTRAL)

    if rule is QuadratureRule.CONTINUOUS:
        J_exact = jacobian(model, z, method=DiffMethod.FORWARD_AD)
        J_numerical = jacobian(model, z, method=DiffMethod.FINITE_DIFFERENCE, cache=cache)
    else:
        J_exact = discrete_jacobian(rule, model, z, method=DiffMethod.FORWARD_AD)
        J_numerical = discrete_jacobian(rule, model, z, method=DiffMethod.FINITE_DIFFERENCE, cache=cache)

    error = np.abs(J_exact - J_numerical)
    rel_error = error / (np.abs(J_numerical) + atol)
    max_error = float(np.max(error))
    max_rel = float(np.max(rel_error))
    valid = bool(np.allclose(J_exact, J_numerical, rtol=rtol, atol=atol))

    if verbose:
        n = model.state_dim
        print(f"Jacobian Verification ({type(model).__name__}):")
        print(f"    Max absolute error: {max_error:.2e}")
        print(f"    Max relative error: {max_rel:.2e}")
        print(f"    Worst state column: {int(np.argmax(error[:, :n].max(axis=0)))}")
        print(f"    Valid: {valid}")

    info = {
        "J_exact": J_exact,
        "J_numerical": J_numerical,
        "error": error,
        "max_error": max_error,
        "max_rel_error": max_rel,
        "valid": valid,
    }

    return valid, info
