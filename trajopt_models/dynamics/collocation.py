"""
Implicit Integration by Collocation

Implicit rules define the next state only through a residual
r(x_k, u_k, x_{k+1}, u_{k+1}) = 0. ``HermiteSimpsonSolver`` is the solver
collaborator that ``discrete_dynamics`` calls for ``HERMITE_SIMPSON``: it
drives the Hermite-Simpson defect to zero with ``scipy.optimize.root``,
starting from an RK4 prediction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from numpy.typing import NDArray
from scipy import optimize

from ..errors import SolverConvergenceError, UnsupportedConfigurationError
from .quadrature import QuadratureRule, rk4_step

logger = logging.getLogger(__name__)


class ImplicitSolver(Protocol):
    """Solver collaborator for implicit quadrature rules."""

    def solve(
        self,
        rule: QuadratureRule,
        model,
        x: NDArray,
        u: NDArray,
        u_next: NDArray,
        t: float,
        dt: float,
    ) -> NDArray: ...


def hermite_simpson_defect(
    model,
    x_k: NDArray,
    u_k: NDArray,
    x_kp1: NDArray,
    u_kp1: NDArray,
    t: float,
    dt: float,
) -> NDArray:
    """
    Hermite-Simpson collocation defect.

    Zero for a dynamically consistent interval.

    Args:
        model: Dynamics model
        x_k: State at start of interval
        u_k: Control at start
        x_kp1: State at end of interval
        u_kp1: Control at end
        t: Time at start
        dt: Interval duration

    Returns:
        Defect vector (n,)
    """
    f_k = model.dynamics(x_k, u_k, t)
    f_kp1 = model.dynamics(x_kp1, u_kp1, t + dt)

    # Hermite interpolation for the midpoint state, first-order hold on the control
    x_mid = 0.5 * (x_k + x_kp1) + (dt / 8) * (f_k - f_kp1)
    u_mid = 0.5 * (u_k + u_kp1)
    f_mid = model.dynamics(x_mid, u_mid, t + dt / 2)

    return x_kp1 - x_k - (dt / 6) * (f_k + 4 * f_mid + f_kp1)


_ITER_OPTION = {"hybr": "maxfev", "lm": "maxiter"}


@dataclass
class HermiteSimpsonSolver:
    """
    Newton-type solver for the Hermite-Simpson step.

    Attributes:
        tol: Termination tolerance passed to ``scipy.optimize.root``
        max_iter: Iteration (function evaluation) budget
        method: ``scipy.optimize.root`` method, "hybr" or "lm"
    """

    tol: float = 1e-10
    max_iter: int = 100
    method: str = "hybr"

    def __post_init__(self):
        if self.method not in _ITER_OPTION:
            raise ValueError(f"Unknown root-finding method: {self.method}")

    def solve(
        self,
        rule: QuadratureRule,
        model,
        x: NDArray,
        u: NDArray,
        u_next: NDArray,
        t: float,
        dt: float,
    ) -> NDArray:
        """
        Next state x_{k+1} satisfying the Hermite-Simpson defect.

        Raises:
            UnsupportedConfigurationError: ``rule`` is not HERMITE_SIMPSON
            SolverConvergenceError: The root finder did not converge
        """
        if QuadratureRule(rule) is not QuadratureRule.HERMITE_SIMPSON:
            raise UnsupportedConfigurationError(f"HermiteSimpsonSolver cannot integrate {QuadratureRule(rule).name}")

        x = np.asarray(x, dtype=float)
        u = np.asarray(u, dtype=float)
        u_next = np.asarray(u_next, dtype=float)

        def residual(x_next):
            return np.asarray(hermite_simpson_defect(model, x, u, x_next, u_next, t, dt), dtype=float)

        guess = np.asarray(rk4_step(model, x, u, t, dt), dtype=float)
        sol = optimize.root(
            residual,
            guess,
            method=self.method,
            tol=self.tol,
            options={_ITER_OPTION[self.method]: self.max_iter * (x.size + 1)},
        )
        logger.debug("Hermite-Simpson step: success=%s nfev=%s", sol.success, getattr(sol, "nfev", None))

        if not sol.success or not np.all(np.isfinite(sol.x)):
            raise SolverConvergenceError(f"Hermite-Simpson step did not converge: {sol.message}")

        return sol.x
