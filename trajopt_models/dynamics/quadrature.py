"""
Quadrature Rules for Discretizing ẋ = f(x, u)

Rules are Enum tags used to select, at each call site, which integration
routine advances the state over one step:

- CONTINUOUS: no integration (continuous-time dynamics)
- Explicit rules x' = g(x, u, t, dt): EULER, RK2, RK3, RK4
- Implicit rules x' = g(x, u, x', u', t, dt): HERMITE_SIMPSON

Explicit rules run through a per-rule integrator registry. The built-in
integrators hold the control constant over the step and use only array
arithmetic, so they trace under forward-mode differentiation. Implicit rules
need a solver collaborator (see ``collocation``).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict

from numpy.typing import NDArray

from ..errors import UnsupportedConfigurationError

logger = logging.getLogger(__name__)


class RuleFamily(Enum):
    """Classification of quadrature rules."""

    CONTINUOUS = "continuous"
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


class QuadratureRule(Enum):
    """Integration rules for approximating the equations of motion over a step."""

    CONTINUOUS = "continuous"
    EULER = "euler"
    RK2 = "rk2"
    RK3 = "rk3"
    RK4 = "rk4"
    HERMITE_SIMPSON = "hermite_simpson"

    @property
    def family(self) -> RuleFamily:
        return _FAMILIES[self]

    @property
    def is_explicit(self) -> bool:
        return self.family is RuleFamily.EXPLICIT

    @property
    def is_implicit(self) -> bool:
        return self.family is RuleFamily.IMPLICIT


_FAMILIES = {
    QuadratureRule.CONTINUOUS: RuleFamily.CONTINUOUS,
    QuadratureRule.EULER: RuleFamily.EXPLICIT,
    QuadratureRule.RK2: RuleFamily.EXPLICIT,
    QuadratureRule.RK3: RuleFamily.EXPLICIT,
    QuadratureRule.RK4: RuleFamily.EXPLICIT,
    QuadratureRule.HERMITE_SIMPSON: RuleFamily.IMPLICIT,
}

CONTINUOUS = QuadratureRule.CONTINUOUS
EULER = QuadratureRule.EULER
RK2 = QuadratureRule.RK2
RK3 = QuadratureRule.RK3
RK4 = QuadratureRule.RK4
HERMITE_SIMPSON = QuadratureRule.HERMITE_SIMPSON

# Used whenever a caller does not name a rule.
DEFAULT_QUADRATURE = QuadratureRule.RK3


# =============================================================================
# Explicit Integrators
# =============================================================================

IntegratorFn = Callable[[object, NDArray, NDArray, float, float], NDArray]


def euler_step(model, x: NDArray, u: NDArray, t: float, dt: float) -> NDArray:
    """Forward Euler: x_{k+1} = x_k + dt * f(x_k, u_k, t_k)"""
    return x + dt * model.dynamics(x, u, t)


def rk2_step(model, x: NDArray, u: NDArray, t: float, dt: float) -> NDArray:
    """
    Midpoint method (2nd-order).

    k1 = f(x, u, t)
    k2 = f(x + dt*k1/2, u, t + dt/2)
    x_{k+1} = x_k + dt * k2
    """
    k1 = model.dynamics(x, u, t)
    k2 = model.dynamics(x + dt * k1 / 2, u, t + dt / 2)
    return x + dt * k2


def rk3_step(model, x: NDArray, u: NDArray, t: float, dt: float) -> NDArray:
    """
    Kutta's 3rd-order method.

    k1 = f(x, u, t)
    k2 = f(x + dt*k1/2, u, t + dt/2)
    k3 = f(x - dt*k1 + 2*dt*k2, u, t + dt)
    x_{k+1} = x_k + dt/6 * (k1 + 4*k2 + k3)
    """
    k1 = model.dynamics(x, u, t)
    k2 = model.dynamics(x + dt * k1 / 2, u, t + dt / 2)
    k3 = model.dynamics(x - dt * k1 + 2 * dt * k2, u, t + dt)
    return x + (dt / 6) * (k1 + 4 * k2 + k3)


def rk4_step(model, x: NDArray, u: NDArray, t: float, dt: float) -> NDArray:
    """
    Classic 4th-order Runge-Kutta.

    k1 = f(x, u, t)
    k2 = f(x + dt*k1/2, u, t + dt/2)
    k3 = f(x + dt*k2/2, u, t + dt/2)
    k4 = f(x + dt*k3, u, t + dt)
    x_{k+1} = x_k + dt/6 * (k1 + 2*k2 + 2*k3 + k4)
    """
    k1 = model.dynamics(x, u, t)
    k2 = model.dynamics(x + dt * k1 / 2, u, t + dt / 2)
    k3 = model.dynamics(x + dt * k2 / 2, u, t + dt / 2)
    k4 = model.dynamics(x + dt * k3, u, t + dt)
    return x + (dt / 6) * (k1 + 2 * k2 + 2 * k3 + k4)


_INTEGRATORS: Dict[QuadratureRule, IntegratorFn] = {
    QuadratureRule.EULER: euler_step,
    QuadratureRule.RK2: rk2_step,
    QuadratureRule.RK3: rk3_step,
    QuadratureRule.RK4: rk4_step,
}


def register_integrator(rule: QuadratureRule, fn: IntegratorFn) -> None:
    """
    Install the integration routine for an explicit rule.

    Args:
        rule: Explicit quadrature rule
        fn: ``fn(model, x, u, t, dt) -> x_next``; should use array arithmetic
            only if the rule is to be differentiated with FORWARD_AD

    Raises:
        UnsupportedConfigurationError: ``rule`` is not explicit
    """
    rule = QuadratureRule(rule)
    if not rule.is_explicit:
        raise UnsupportedConfigurationError(f"integrators can only be registered for explicit rules, not {rule.name}")
    logger.debug("Registering integrator %s for %s", getattr(fn, "__name__", fn), rule.name)
    _INTEGRATORS[rule] = fn


def get_integrator(rule: QuadratureRule) -> IntegratorFn:
    """
    Look up the integration routine for an explicit rule.

    Raises:
        UnsupportedConfigurationError: ``rule`` is not explicit or has no integrator
    """
    rule = QuadratureRule(rule)
    if not rule.is_explicit:
        raise UnsupportedConfigurationError(f"{rule.name} is a {rule.family.value} rule and has no explicit integrator")
    try:
        return _INTEGRATORS[rule]
    except KeyError:
        raise UnsupportedConfigurationError(f"no integrator registered for {rule.name}") from None
