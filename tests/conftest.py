"""
Shared test models and fixtures.

- DoubleIntegrator: ẋ = [x2, u1], traceable
- NumpyPendulum: damped pendulum written with numpy, finite differences only
- TracedPendulum: same pendulum written with jax.numpy
- QuaternionFreeBody / MRPFreeBody: free rigid bodies
"""

import jax.numpy as jnp
import numpy as np
import pytest

from trajopt_models import KnotPoint
from trajopt_models.dynamics import AbstractModel, DiffMethod, RigidBody, RotationParam


# ============================================================================
# Vector-Space Models
# ============================================================================


class DoubleIntegrator(AbstractModel):
    state_dim = 2
    control_dim = 1

    def dynamics(self, x, u, t=0.0):
        return jnp.array([x[1], u[0]])


class NumpyPendulum(AbstractModel):
    """θ̈ = -g/l sin θ - b θ̇ + u / (m l²)"""

    diff_method = DiffMethod.FINITE_DIFFERENCE
    state_dim = 2
    control_dim = 1

    def __init__(self, g=9.81, length=0.5, mass=1.0, damping=0.1):
        self.g = g
        self.length = length
        self.mass = mass
        self.damping = damping

    def dynamics(self, x, u, t=0.0):
        return np.array(
            [
                x[1],
                -self.g / self.length * np.sin(x[0]) - self.damping * x[1] + u[0] / (self.mass * self.length**2),
            ]
        )


class TracedPendulum(NumpyPendulum):
    diff_method = DiffMethod.FORWARD_AD

    def dynamics(self, x, u, t=0.0):
        return jnp.stack(
            [
                x[1],
                -self.g / self.length * jnp.sin(x[0]) - self.damping * x[1] + u[0] / (self.mass * self.length**2),
            ]
        )


# ============================================================================
# Rigid Bodies
# ============================================================================


def quat_mul(q1, q2):
    w1, v1 = q1[0], q1[1:]
    w2, v2 = q2[0], q2[1:]
    return jnp.concatenate([jnp.stack([w1 * w2 - jnp.dot(v1, v2)]), w1 * v2 + w2 * v1 + jnp.cross(v1, v2)])


def quat_to_dcm(q):
    """Body-to-world rotation matrix for q = [w, x, y, z]."""
    q = q / jnp.linalg.norm(q)
    w, x, y, z = q[0], q[1], q[2], q[3]
    return jnp.array(
        [
            [1 - 2 * (y**2 + z**2), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x**2 + z**2), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x**2 + y**2)],
        ]
    )


def skew(v):
    return jnp.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])


class QuaternionFreeBody(RigidBody):
    """Free body driven by a body-frame force and torque (u = [F_B; τ_B])."""

    rotation = RotationParam.UNIT_QUATERNION
    control_dim = 6

    def __init__(self, mass=2.0, J=(0.1, 0.2, 0.3)):
        self._mass = mass
        self._J = jnp.diag(jnp.array(J))

    def forces(self, x, u):
        return quat_to_dcm(self.orientation(x)) @ u[0:3]

    def moments(self, x, u):
        return u[3:6]

    def inertia(self, x, u):
        return self._J

    def mass(self, x, u):
        return self._mass

    def dynamics(self, x, u, t=0.0):
        q = self.orientation(x)
        v = self.linear_velocity(x)
        w = self.angular_velocity(x)
        F, tau = self.wrenches(x, u)
        J = self.inertia(x, u)
        qdot = 0.5 * quat_mul(q, jnp.concatenate([jnp.zeros(1), w]))
        vdot = F / self.mass(x, u)
        wdot = jnp.linalg.solve(J, tau - jnp.cross(w, J @ w))
        return jnp.concatenate([v, qdot, vdot, wdot])


class MRPFreeBody(RigidBody):
    """Free body with MRP attitude and world-frame force (u = [F_W; τ_B])."""

    rotation = RotationParam.MRP
    control_dim = 6

    def wrenches(self, x, u):
        return u[0:3], u[3:6]

    def inertia(self, x, u):
        return jnp.diag(jnp.array([0.2, 0.2, 0.4]))

    def mass(self, x, u):
        return 1.5

    def dynamics(self, x, u, t=0.0):
        p = self.orientation(x)
        v = self.linear_velocity(x)
        w = self.angular_velocity(x)
        F, tau = self.wrenches(x, u)
        J = self.inertia(x, u)
        pdot = 0.25 * ((1 - jnp.dot(p, p)) * jnp.eye(3) + 2 * skew(p) + 2 * jnp.outer(p, p)) @ w
        wdot = jnp.linalg.solve(J, tau - jnp.cross(w, J @ w))
        return jnp.concatenate([v, pdot, F / self.mass(x, u), wdot])


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def double_integrator():
    return DoubleIntegrator()


@pytest.fixture
def numpy_pendulum():
    return NumpyPendulum()


@pytest.fixture
def traced_pendulum():
    return TracedPendulum()


@pytest.fixture
def quat_body():
    return QuaternionFreeBody()


@pytest.fixture
def mrp_body():
    return MRPFreeBody()


@pytest.fixture
def pendulum_knot():
    return KnotPoint(np.array([0.7, -0.3]), np.array([0.4]), t=0.2, dt=0.05)


@pytest.fixture
def quat_body_knot(quat_body):
    axis = np.array([1.0, 2.0, -0.5]) / np.linalg.norm([1.0, 2.0, -0.5])
    angle = 0.8
    q = np.concatenate([[np.cos(angle / 2)], np.sin(angle / 2) * axis])
    x = quat_body.build_state([0.1, -0.2, 1.0], q, [0.3, 0.0, -0.1], [0.2, -0.4, 0.5])
    u = np.array([0.5, -1.0, 2.0, 0.05, 0.02, -0.03])
    return KnotPoint(x, u, t=0.0, dt=0.02)


@pytest.fixture
def mrp_body_knot(mrp_body):
    x = mrp_body.build_state([1.0, 0.0, -1.0], [0.1, -0.2, 0.05], [0.0, 0.5, 0.1], [-0.3, 0.2, 0.6])
    u = np.array([0.0, 1.0, -0.5, 0.01, -0.02, 0.03])
    return KnotPoint(x, u, t=0.0, dt=0.02)
