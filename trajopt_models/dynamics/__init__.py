"""
Dynamics Module for trajopt_models

Model abstraction used by trajectory optimizers:

- AbstractModel / LieGroupModel / RigidBody: the model interface
- QuadratureRule: Euler, RK2, RK3, RK4 (explicit) and Hermite-Simpson (implicit)
- DiffMethod: forward-mode AD or finite differences for every Jacobian

Importing this package enables jax 64-bit mode (``jax_enable_x64``) for the
whole process, so forward-mode derivatives are computed in float64 like the
finite-difference path. Other jax code in the same process will then default
to float64 as well.

Usage:
    >>> from trajopt_models import KnotPoint
    >>> from trajopt_models.dynamics import RK4, discrete_jacobian, jacobian
    >>>
    >>> z = KnotPoint(x, u, t=0.0, dt=0.05)
    >>> A_B = jacobian(model, z)                # n x (n+m), continuous
    >>> A_B_d = discrete_jacobian(RK4, model, z)  # n x (n+m), discrete

Key Components:
    - model: model interface and tangent-space state differences
    - quadrature: rule tags, default rule and integrator registry
    - diffmethods: differentiation strategies and finite-difference cache
    - continuous: continuous dynamics, Jacobian, weighted Hessian
    - discrete: discrete dynamics, Jacobian, propagation
    - collocation: Hermite-Simpson solver collaborator
    - rotations: orientation parameterizations for rigid bodies
"""

from .collocation import HermiteSimpsonSolver, ImplicitSolver, hermite_simpson_defect
from .continuous import dynamics, jacobian, weighted_hessian
from .diffmethods import (
    DiffMethod,
    DynamicsJacobian,
    FiniteDifferenceType,
    JacobianCache,
    finite_difference_jacobian,
)
from .discrete import (
    discrete_dynamics,
    discrete_dynamics_at,
    discrete_jacobian,
    discrete_weighted_hessian,
    propagate_dynamics,
)
from .model import (
    AbstractModel,
    LieGroupModel,
    RigidBody,
    state_diff,
    state_diff_jacobian,
    state_diff_size,
)
from .quadrature import (
    CONTINUOUS,
    DEFAULT_QUADRATURE,
    EULER,
    HERMITE_SIMPSON,
    RK2,
    RK3,
    RK4,
    QuadratureRule,
    RuleFamily,
    get_integrator,
    register_integrator,
)
from .rotations import RotationParam
from .verification import verify_jacobians

__all__ = [
    "CONTINUOUS",
    "DEFAULT_QUADRATURE",
    "EULER",
    "HERMITE_SIMPSON",
    "RK2",
    "RK3",
    "RK4",
    # Models
    "AbstractModel",
    # Differentiation
    "DiffMethod",
    "DynamicsJacobian",
    "FiniteDifferenceType",
    # Collocation
    "HermiteSimpsonSolver",
    "ImplicitSolver",
    "JacobianCache",
    "LieGroupModel",
    # Quadrature
    "QuadratureRule",
    "RigidBody",
    "RotationParam",
    "RuleFamily",
    # Discrete
    "discrete_dynamics",
    "discrete_dynamics_at",
    "discrete_jacobian",
    "discrete_weighted_hessian",
    # Continuous
    "dynamics",
    "finite_difference_jacobian",
    "get_integrator",
    "hermite_simpson_defect",
    "jacobian",
    "propagate_dynamics",
    "register_integrator",
    # State differentials
    "state_diff",
    "state_diff_jacobian",
    "state_diff_size",
    "verify_jacobians",
    "weighted_hessian",
]
