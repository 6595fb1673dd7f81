"""
Continuous-Time Dynamics and Jacobians

Evaluates ẋ = f(x, u, t) at a knot point and its n x (n+m) Jacobian with
respect to the concatenated vector [x; u], using the model's declared
differentiation strategy unless the caller overrides it.
"""

from __future__ import annotations

from typing import Optional, Tuple, Union

import jax.numpy as jnp
import numpy as np
from numpy.typing import NDArray

from ..errors import DimensionMismatchError, UnsupportedConfigurationError
from ..knotpoint import KnotPointLike
from .diffmethods import (
    DiffMethod,
    DynamicsJacobian,
    JacobianCache,
    ensure_cache,
    finite_difference_jacobian,
    forward_hessian,
    forward_jacobian,
    resolve_buffer,
    resolve_method,
)
from .model import AbstractModel

JacobianBuffer = Union[NDArray, DynamicsJacobian]


def check_knot_point(model: AbstractModel, z: KnotPointLike) -> Tuple[int, int]:
    """Validate that ``z`` splits into n states and m controls for ``model``; returns (n, m)."""
    n, m = model.size
    if np.shape(z.data) != (n + m,):
        raise DimensionMismatchError(f"knot point holds {np.shape(z.data)}, model needs ({n + m},)")
    if np.shape(z.state) != (n,) or np.shape(z.control) != (m,):
        raise DimensionMismatchError(
            f"knot point splits into state {np.shape(z.state)} and control {np.shape(z.control)}, "
            f"model needs ({n},) and ({m},)"
        )
    return n, m


def dynamics(model: AbstractModel, z: KnotPointLike) -> NDArray:
    """
    Continuous dynamics at a knot point: ẋ = f(state(z), control(z), z.t).

    Returns:
        State derivative (n,)
    """
    n, _ = check_knot_point(model, z)
    xdot = np.asarray(model.dynamics(z.state, z.control, z.t), dtype=float)
    if xdot.shape != (n,):
        raise DimensionMismatchError(f"{type(model).__name__}.dynamics returned shape {xdot.shape}, expected ({n},)")
    return xdot


def jacobian(
    model: AbstractModel,
    z: KnotPointLike,
    out: Optional[JacobianBuffer] = None,
    *,
    method: Optional[DiffMethod] = None,
    cache: Optional[JacobianCache] = None,
) -> JacobianBuffer:
    """
    Jacobian ∇f = [∂f/∂x  ∂f/∂u] of the continuous dynamics.

    Args:
        model: Dynamics model
        z: Knot point supplying [x; u] and t
        out: (n, n+m) buffer or DynamicsJacobian overwritten in place;
            allocated when None
        method: Differentiation strategy; defaults to ``model.diff_method``
        cache: Finite-difference scratch buffers; built when needed and None

    Returns:
        ``out`` (or the newly allocated array)

    Raises:
        DimensionMismatchError: ``out`` or ``z`` has the wrong size
        NumericDegeneracyError: Finite differences produced NaN/Inf
    """
    n, m = check_knot_point(model, z)
    buf = resolve_buffer(out, (n, n + m), "Jacobian buffer")
    ix, iu, t = z.ix, z.iu, z.t

    def f_aug(s):
        return model.dynamics(s[ix], s[iu], t)

    if resolve_method(model, method) == DiffMethod.FORWARD_AD:
        forward_jacobian(f_aug, z.data, buf)
    else:
        finite_difference_jacobian(f_aug, z.data, buf, ensure_cache(model, cache))

    return buf if out is None else out


def weighted_hessian(
    model: AbstractModel,
    z: KnotPointLike,
    b: NDArray,
    out: Optional[NDArray] = None,
    *,
    method: Optional[DiffMethod] = None,
) -> NDArray:
    """
    Hessian of b·f(x, u) with respect to [x; u].

    Only available with forward-mode differentiation.

    Args:
        model: Dynamics model
        z: Knot point
        b: Weight vector (n,)
        out: (n+m, n+m) buffer overwritten in place; allocated when None
        method: Differentiation strategy; defaults to ``model.diff_method``

    Returns:
        (n+m, n+m) Hessian

    Raises:
        UnsupportedConfigurationError: Strategy is FINITE_DIFFERENCE
    """
    n, m = check_knot_point(model, z)
    if resolve_method(model, method) != DiffMethod.FORWARD_AD:
        raise UnsupportedConfigurationError("weighted_hessian requires DiffMethod.FORWARD_AD")
    b = np.asarray(b, dtype=float)
    if b.shape != (n,):
        raise DimensionMismatchError(f"weight vector has shape {b.shape}, expected ({n},)")
    buf = resolve_buffer(out, (n + m, n + m), "Hessian buffer")
    ix, iu, t = z.ix, z.iu, z.t

    def g(s):
        return jnp.dot(model.dynamics(s[ix], s[iu], t), b)

    return forward_hessian(g, z.data, buf)
