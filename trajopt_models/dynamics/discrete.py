"""
Discrete-Time Dynamics and Jacobians

Applies a quadrature rule to obtain x_{k+1} = g(x_k, u_k, t, dt):

- explicit rules run the integrator registered for the rule;
- implicit rules are solved by a solver collaborator passed by the caller
  (e.g. ``HermiteSimpsonSolver``); without one the call fails rather than
  falling back to an explicit rule.

Jacobians of the discrete map use the same differentiation dispatch as the
continuous engine. Passing ``rule=None`` selects ``DEFAULT_QUADRATURE``.
"""

from __future__ import annotations

from typing import Callable, Optional

import jax.numpy as jnp
import numpy as np
from numpy.typing import NDArray

from ..errors import DimensionMismatchError, UnsupportedConfigurationError
from ..knotpoint import KnotPointLike
from .collocation import ImplicitSolver
from .continuous import JacobianBuffer, check_knot_point
from .diffmethods import (
    DiffMethod,
    JacobianCache,
    ensure_cache,
    finite_difference_jacobian,
    forward_hessian,
    forward_jacobian,
    resolve_buffer,
    resolve_method,
)
from .model import AbstractModel
from .quadrature import DEFAULT_QUADRATURE, QuadratureRule, get_integrator


def _resolve_rule(rule: Optional[QuadratureRule]) -> QuadratureRule:
    return DEFAULT_QUADRATURE if rule is None else QuadratureRule(rule)


def _step_function(
    rule: QuadratureRule,
    model: AbstractModel,
    t: float,
    dt: float,
    solver: Optional[ImplicitSolver],
    u_next: Optional[NDArray],
) -> Callable[[NDArray, NDArray], NDArray]:
    """Discrete map (x, u) -> x_{k+1} for a fixed rule, time and step."""
    if rule.is_explicit:
        integrate = get_integrator(rule)

        def step(x, u):
            return integrate(model, x, u, t, dt)

        return step

    if rule.is_implicit:
        if solver is None:
            raise UnsupportedConfigurationError(f"{rule.name} is implicit and needs a solver collaborator")

        def step(x, u):
            # Zero-order hold on the control when no next control is given.
            return solver.solve(rule, model, x, u, u if u_next is None else u_next, t, dt)

        return step

    raise UnsupportedConfigurationError(f"{rule.name} does not define discrete dynamics")


def discrete_dynamics(
    rule: Optional[QuadratureRule],
    model: AbstractModel,
    x: NDArray,
    u: NDArray,
    t: float,
    dt: float,
    *,
    solver: Optional[ImplicitSolver] = None,
    u_next: Optional[NDArray] = None,
) -> NDArray:
    """
    Next state x_{k+1} under quadrature rule ``rule``.

    Args:
        rule: Quadrature rule (None for DEFAULT_QUADRATURE)
        model: Dynamics model
        x: State (n,)
        u: Control (m,)
        t: Time at the start of the step
        dt: Step size
        solver: Solver collaborator, required for implicit rules
        u_next: Control at the end of the step (implicit rules only)

    Returns:
        Next state (n,)

    Raises:
        UnsupportedConfigurationError: Continuous rule, or implicit rule without solver
        DimensionMismatchError: ``x``/``u`` or the result has the wrong size
    """
    n, m = model.size
    x = np.asarray(x, dtype=float)
    u = np.asarray(u, dtype=float)
    if x.shape != (n,) or u.shape != (m,):
        raise DimensionMismatchError(f"got state {x.shape} and control {u.shape}, model needs ({n},) and ({m},)")

    step = _step_function(_resolve_rule(rule), model, t, dt, solver, u_next)
    x_next = np.asarray(step(x, u), dtype=float)
    if x_next.shape != (n,):
        raise DimensionMismatchError(f"discrete dynamics returned shape {x_next.shape}, expected ({n},)")
    return x_next


def discrete_dynamics_at(
    model: AbstractModel,
    z: KnotPointLike,
    rule: Optional[QuadratureRule] = DEFAULT_QUADRATURE,
    *,
    solver: Optional[ImplicitSolver] = None,
    u_next: Optional[NDArray] = None,
) -> NDArray:
    """``discrete_dynamics`` reading x, u, t and dt from a knot point."""
    check_knot_point(model, z)
    return discrete_dynamics(rule, model, z.state, z.control, z.t, z.dt, solver=solver, u_next=u_next)


def propagate_dynamics(
    rule: Optional[QuadratureRule],
    model: AbstractModel,
    z_next: KnotPointLike,
    z: KnotPointLike,
    *,
    solver: Optional[ImplicitSolver] = None,
) -> KnotPointLike:
    """
    Advance knot point ``z`` one step and store the result in ``z_next``.

    Only the state of ``z_next`` is overwritten; its control, time and step
    are untouched. For implicit rules the control of ``z_next`` is used as
    the end-of-step control.

    Returns:
        ``z_next``
    """
    rule = _resolve_rule(rule)
    check_knot_point(model, z_next)
    u_next = np.array(z_next.control, dtype=float) if rule.is_implicit else None
    x_next = discrete_dynamics_at(model, z, rule, solver=solver, u_next=u_next)
    z_next.set_state(x_next)
    return z_next


def discrete_jacobian(
    rule: Optional[QuadratureRule],
    model: AbstractModel,
    z: KnotPointLike,
    out: Optional[JacobianBuffer] = None,
    *,
    method: Optional[DiffMethod] = None,
    cache: Optional[JacobianCache] = None,
    solver: Optional[ImplicitSolver] = None,
    u_next: Optional[NDArray] = None,
) -> JacobianBuffer:
    """
    Jacobian [∂x'/∂x  ∂x'/∂u] of the discrete dynamics at a knot point.

    Implicit rules can only be differentiated numerically (each perturbation
    re-solves the step).

    Args:
        rule: Quadrature rule (None for DEFAULT_QUADRATURE)
        model: Dynamics model
        z: Knot point supplying [x; u], t and dt
        out: (n, n+m) buffer or DynamicsJacobian overwritten in place
        method: Differentiation strategy; defaults to ``model.diff_method``
        cache: Finite-difference scratch buffers
        solver: Solver collaborator for implicit rules
        u_next: End-of-step control for implicit rules

    Returns:
        ``out`` (or the newly allocated array)
    """
    n, m = check_knot_point(model, z)
    rule = _resolve_rule(rule)
    method = resolve_method(model, method)
    if rule.is_implicit and method == DiffMethod.FORWARD_AD:
        raise UnsupportedConfigurationError(
            f"{rule.name} cannot be differentiated with FORWARD_AD; use DiffMethod.FINITE_DIFFERENCE"
        )
    step = _step_function(rule, model, z.t, z.dt, solver, u_next)
    buf = resolve_buffer(out, (n, n + m), "Jacobian buffer")
    ix, iu = z.ix, z.iu

    def fd_aug(s):
        return step(s[ix], s[iu])

    if method == DiffMethod.FORWARD_AD:
        forward_jacobian(fd_aug, z.data, buf)
    else:
        finite_difference_jacobian(fd_aug, z.data, buf, ensure_cache(model, cache))

    return buf if out is None else out


def discrete_weighted_hessian(
    rule: Optional[QuadratureRule],
    model: AbstractModel,
    z: KnotPointLike,
    b: NDArray,
    out: Optional[NDArray] = None,
    *,
    method: Optional[DiffMethod] = None,
) -> NDArray:
    """
    Hessian of b·x'(x, u) with respect to [x; u] for an explicit rule.

    Raises:
        UnsupportedConfigurationError: Non-explicit rule or FINITE_DIFFERENCE strategy
    """
    n, m = check_knot_point(model, z)
    rule = _resolve_rule(rule)
    if not rule.is_explicit:
        raise UnsupportedConfigurationError(f"discrete_weighted_hessian requires an explicit rule, got {rule.name}")
    if resolve_method(model, method) != DiffMethod.FORWARD_AD:
        raise UnsupportedConfigurationError("discrete_weighted_hessian requires DiffMethod.FORWARD_AD")
    b = np.asarray(b, dtype=float)
    if b.shape != (n,):
        raise DimensionMismatchError(f"weight vector has shape {b.shape}, expected ({n},)")
    buf = resolve_buffer(out, (n + m, n + m), "Hessian buffer")
    step = _step_function(rule, model, z.t, z.dt, None, None)
    ix, iu = z.ix, z.iu

    def g(s):
        return jnp.dot(step(s[ix], s[iu]), b)

    return forward_hessian(g, z.data, buf)
