"""
Model Interface for Controlled Dynamical Systems

A model describes ẋ = f(x, u, t) with an n-dimensional state x and an
m-dimensional control u. Any concrete model must provide:

    state_dim   -> n
    control_dim -> m
    dynamics(x, u, t=0.0) -> ẋ

These may be properties or plain class attributes. A model that leaves any
of them out cannot be instantiated.

Rigid bodies (``RigidBody``) fix the state layout to

    x = [p (3), r (3 or 4), v (3), ω (3)]

with p the position, r the orientation in the model's ``rotation``
parameterization, v the linear velocity and ω the angular velocity. Because
r lives on the rotation group, rigid bodies override the state-difference
methods so that differences are taken in the 3-dimensional tangent space.

Example:
    >>> class DoubleIntegrator(AbstractModel):
    ...     state_dim = 2
    ...     control_dim = 1
    ...     def dynamics(self, x, u, t=0.0):
    ...         return jnp.array([x[1], u[0]])
    >>> model = DoubleIntegrator()
    >>> x, u = model.zero_state_control()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from ..errors import DimensionMismatchError, ModelDimensionError, ModelNotImplementedError
from .diffmethods import DiffMethod
from .rotations import RotationParam, attitude_jacobian, rotation_difference


class AbstractModel(ABC):
    """
    Abstraction of a dynamical system ẋ = f(x, u).

    Class attributes:
        diff_method: Default differentiation strategy for this model's
            Jacobians. Models whose dynamics cannot be traced by jax should
            set ``DiffMethod.FINITE_DIFFERENCE``.
    """

    diff_method: DiffMethod = DiffMethod.FORWARD_AD

    def __new__(cls, *args, **kwargs):
        missing = sorted(getattr(cls, "__abstractmethods__", ()))
        if missing:
            raise ModelNotImplementedError(f"{cls.__name__} does not implement: {', '.join(missing)}")
        cls._check_capabilities()
        return super().__new__(cls)

    @classmethod
    def _check_capabilities(cls) -> None:
        """Hook for construction-time checks beyond the abstract members."""

    @property
    @abstractmethod
    def state_dim(self) -> int:
        """State dimension n."""

    @property
    @abstractmethod
    def control_dim(self) -> int:
        """Control dimension m."""

    @abstractmethod
    def dynamics(self, x: NDArray, u: NDArray, t: float = 0.0) -> NDArray:
        """
        Continuous-time dynamics ẋ = f(x, u, t).

        Must be a pure function of its arguments. Write it with ``jax.numpy``
        (or plain array arithmetic) to support ``DiffMethod.FORWARD_AD``.
        """

    @property
    def size(self) -> Tuple[int, int]:
        """(n, m), validated as positive integers."""
        n, m = self.state_dim, self.control_dim
        for name, value in (("state_dim", n), ("control_dim", m)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ModelDimensionError(f"{type(self).__name__}.{name} must be a positive int, got {value!r}")
        return int(n), int(m)

    # =========================================================================
    # State and Control Constructors
    # =========================================================================

    def sample_random_state_control(self, rng=None, dtype=np.float64) -> Tuple[NDArray, NDArray]:
        """
        Uniform samples on [0, 1) for a state and a control.

        Args:
            rng: numpy Generator, seed, or None
            dtype: Floating dtype

        Returns:
            (x, u) with shapes (n,) and (m,)
        """
        n, m = self.size
        rng = np.random.default_rng(rng)
        return rng.random(n).astype(dtype), rng.random(m).astype(dtype)

    def zero_state_control(self, dtype=np.float64) -> Tuple[NDArray, NDArray]:
        n, m = self.size
        return np.zeros(n, dtype=dtype), np.zeros(m, dtype=dtype)

    def ones_state_control(self, dtype=np.float64) -> Tuple[NDArray, NDArray]:
        n, m = self.size
        return np.ones(n, dtype=dtype), np.ones(m, dtype=dtype)

    def filled_state_control(self, value: float) -> Tuple[NDArray, NDArray]:
        """State and control with every component equal to ``value``."""
        n, m = self.size
        return np.full(n, value), np.full(m, value)

    # =========================================================================
    # State Differentials
    # =========================================================================

    @property
    def state_diff_size(self) -> int:
        """Dimension of the tangent space used for state differences."""
        return self.size[0]

    def state_diff(self, x: NDArray, x0: NDArray) -> NDArray:
        """Difference δx between ``x`` and the reference ``x0`` (flat subtraction)."""
        return np.asarray(x) - np.asarray(x0)

    def state_diff_jacobian(self, x: NDArray) -> NDArray:
        """
        Map from tangent perturbations to state perturbations at ``x``.

        Returns:
            (n, state_diff_size) matrix; identity for vector-space states
        """
        return np.eye(self.size[0])

    def state_diff_jacobian_into(self, G: NDArray, x: NDArray) -> NDArray:
        """Write ``state_diff_jacobian(x)`` into the caller's buffer ``G``."""
        shape = (self.size[0], self.state_diff_size)
        if G.shape != shape:
            raise DimensionMismatchError(f"G has shape {G.shape}, expected {shape}")
        G[...] = self.state_diff_jacobian(x)
        return G

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n={self.state_dim}, m={self.control_dim})"


class LieGroupModel(AbstractModel):
    """Abstraction of a dynamical system whose state contains at least one rotation."""


class RigidBody(LieGroupModel):
    """
    Free-body dynamics with state [p; r; v; ω] (12 or 13 numbers).

    Subclasses set ``rotation`` to a ``RotationParam`` and implement
    ``control_dim``, ``dynamics``, ``inertia`` and ``mass``, plus either
    ``forces`` and ``moments`` or the combined ``wrenches``:

        forces(x, u)   -> force in the world frame (3,)
        moments(x, u)  -> moment in the body frame (3,)
        inertia(x, u)  -> inertia matrix (3, 3)
        mass(x, u)     -> scalar mass
        wrenches(x, u) -> (force, moment)

    The core never open-codes rigid-body dynamics; derivative machinery only
    sees ``dynamics``.
    """

    rotation: Optional[RotationParam] = None

    @classmethod
    def _check_capabilities(cls) -> None:
        if not isinstance(cls.rotation, RotationParam):
            raise ModelNotImplementedError(f"{cls.__name__} must declare a RotationParam as `rotation`")
        has_wrenches = cls.wrenches is not RigidBody.wrenches
        has_pair = cls.forces is not RigidBody.forces and cls.moments is not RigidBody.moments
        if not (has_wrenches or has_pair):
            raise ModelNotImplementedError(f"{cls.__name__} must implement `wrenches` or both `forces` and `moments`")

    @property
    def state_dim(self) -> int:
        return 9 + self.rotation.size

    @abstractmethod
    def inertia(self, x: NDArray, u: NDArray) -> NDArray:
        """3x3 inertia matrix in the body frame."""

    @abstractmethod
    def mass(self, x: NDArray, u: NDArray) -> float:
        """Mass as a real scalar."""

    def forces(self, x: NDArray, u: NDArray) -> NDArray:
        """Forces in the world frame."""
        raise ModelNotImplementedError(f"{type(self).__name__} does not implement forces")

    def moments(self, x: NDArray, u: NDArray) -> NDArray:
        """Moments in the body frame."""
        raise ModelNotImplementedError(f"{type(self).__name__} does not implement moments")

    def wrenches(self, x: NDArray, u: NDArray) -> Tuple[NDArray, NDArray]:
        """(force, moment) acting on the body."""
        return self.forces(x, u), self.moments(x, u)

    # =========================================================================
    # State Layout
    # =========================================================================

    @property
    def orientation_slice(self) -> slice:
        return slice(3, 3 + self.rotation.size)

    def position(self, x: NDArray) -> NDArray:
        return x[0:3]

    def orientation(self, x: NDArray) -> NDArray:
        return x[self.orientation_slice]

    def linear_velocity(self, x: NDArray) -> NDArray:
        k = self.rotation.size
        return x[3 + k : 6 + k]

    def angular_velocity(self, x: NDArray) -> NDArray:
        k = self.rotation.size
        return x[6 + k : 9 + k]

    def build_state(self, position, orientation, linear_velocity, angular_velocity) -> NDArray:
        """
        Pack state components into a state vector.

        Args:
            position: (3,)
            orientation: (3,) or (4,) in the model's parameterization
            linear_velocity: (3,)
            angular_velocity: (3,)

        Returns:
            State vector (n,)
        """
        orientation = np.asarray(orientation, dtype=float)
        if orientation.shape != (self.rotation.size,):
            raise DimensionMismatchError(
                f"orientation has shape {orientation.shape}, {self.rotation.name} needs ({self.rotation.size},)"
            )
        return np.concatenate(
            [np.asarray(position, dtype=float), orientation, np.asarray(linear_velocity, dtype=float),
             np.asarray(angular_velocity, dtype=float)]
        )

    # =========================================================================
    # Tangent-Space Differences
    # =========================================================================

    @property
    def state_diff_size(self) -> int:
        return 12

    def state_diff(self, x: NDArray, x0: NDArray) -> NDArray:
        """
        Tangent-space difference [δp; δθ; δv; δω] (12,).

        The orientation part is the rotation vector of R(x0)^-1 R(x).
        """
        x = np.asarray(x, dtype=float)
        x0 = np.asarray(x0, dtype=float)
        return np.concatenate(
            [
                self.position(x) - self.position(x0),
                rotation_difference(self.rotation, self.orientation(x), self.orientation(x0)),
                self.linear_velocity(x) - self.linear_velocity(x0),
                self.angular_velocity(x) - self.angular_velocity(x0),
            ]
        )

    def state_diff_jacobian(self, x: NDArray) -> NDArray:
        """(n, 12) map from tangent perturbations to state perturbations at ``x``."""
        x = np.asarray(x, dtype=float)
        k = self.rotation.size
        G = np.zeros((self.state_dim, 12))
        G[0:3, 0:3] = np.eye(3)
        G[3 : 3 + k, 3:6] = attitude_jacobian(self.rotation, self.orientation(x))
        G[3 + k : 6 + k, 6:9] = np.eye(3)
        G[6 + k : 9 + k, 9:12] = np.eye(3)
        return G


# =============================================================================
# Functional Forms
# =============================================================================


def state_diff(model: AbstractModel, x: NDArray, x0: NDArray) -> NDArray:
    return model.state_diff(x, x0)


def state_diff_jacobian(model: AbstractModel, x: NDArray) -> NDArray:
    return model.state_diff_jacobian(x)


def state_diff_size(model: AbstractModel) -> int:
    return model.state_diff_size
