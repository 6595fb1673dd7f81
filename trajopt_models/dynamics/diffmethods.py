"""
Differentiation Strategies for Dynamics Jacobians

Two interchangeable ways of producing the Jacobian of a map g: R^(n+m) -> R^p:

- FORWARD_AD: exact forward-mode differentiation (jax ``jacfwd``). The map
  must be written with array arithmetic / ``jax.numpy`` so it can be traced.
- FINITE_DIFFERENCE: forward or central difference quotients over numpy,
  using a reusable ``JacobianCache`` of scratch buffers.

Every model declares one strategy as its default (``diff_method`` class
attribute); callers can override it per call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from numpy.typing import NDArray

from ..errors import DimensionMismatchError, NumericDegeneracyError, UnsupportedConfigurationError

# Finite-difference tolerances in the cross-strategy checks assume double precision.
jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)


class DiffMethod(Enum):
    """How a dynamics Jacobian is produced."""

    FORWARD_AD = "forward_ad"
    FINITE_DIFFERENCE = "finite_difference"


class FiniteDifferenceType(Enum):
    """Difference quotients for the numeric strategy."""

    FORWARD = "forward"
    CENTRAL = "central"


_EPS = np.finfo(np.float64).eps
DEFAULT_REL_STEP = {
    FiniteDifferenceType.FORWARD: float(np.sqrt(_EPS)),
    FiniteDifferenceType.CENTRAL: float(np.cbrt(_EPS)),
}


@dataclass
class JacobianCache:
    """
    Scratch buffers for repeated finite-difference Jacobians.

    Owned by the caller and reused across calls. Not safe to share between
    concurrent calls: allocate one per worker.

    Attributes:
        x1: Perturbation vector (n + m,)
        fx: Output buffer (n,)
        fd_type: Difference quotient
        rel_step: Relative perturbation; the step for component i is
            ``rel_step * max(1, |z_i|)``. Defaults depend on ``fd_type``.
    """

    x1: NDArray
    fx: NDArray
    fd_type: FiniteDifferenceType = FiniteDifferenceType.FORWARD
    rel_step: Optional[float] = None
    f0: NDArray = field(init=False, repr=False)

    def __post_init__(self):
        self.fd_type = FiniteDifferenceType(self.fd_type)
        if self.rel_step is None:
            self.rel_step = DEFAULT_REL_STEP[self.fd_type]
        if self.rel_step <= 0:
            raise ValueError(f"rel_step must be positive, got {self.rel_step}")
        self.x1 = np.asarray(self.x1, dtype=float)
        self.fx = np.asarray(self.fx, dtype=float)
        self.f0 = np.zeros_like(self.fx)

    @classmethod
    def from_model(
        cls,
        model,
        fd_type: Union[FiniteDifferenceType, str] = FiniteDifferenceType.FORWARD,
        rel_step: Optional[float] = None,
        dtype=np.float64,
    ) -> "JacobianCache":
        """
        Create a cache sized from a model's (n, m).

        Args:
            model: Any model exposing ``size``
            fd_type: Difference quotient ("forward" or "central")
            rel_step: Relative step override
            dtype: Buffer dtype

        Returns:
            JacobianCache with x1 (n+m,) and fx (n,)
        """
        n, m = model.size
        return cls(np.zeros(n + m, dtype=dtype), np.zeros(n, dtype=dtype), FiniteDifferenceType(fd_type), rel_step)

    @property
    def input_dim(self) -> int:
        return self.x1.shape[0]

    @property
    def output_dim(self) -> int:
        return self.fx.shape[0]


class DynamicsJacobian:
    """
    Dense n x (n+m) Jacobian buffer with state and control views.

    ``A`` and ``B`` are views into ``data``, so writing the full Jacobian
    updates both blocks.

    Example:
        >>> J = DynamicsJacobian.from_model(model)
        >>> jacobian(model, z, J)
        >>> J.A, J.B
    """

    def __init__(self, n: int, m: int, dtype=np.float64):
        self.n = n
        self.m = m
        self.data = np.zeros((n, n + m), dtype=dtype)

    @classmethod
    def from_model(cls, model, dtype=np.float64) -> "DynamicsJacobian":
        n, m = model.size
        return cls(n, m, dtype)

    @property
    def A(self) -> NDArray:
        """State block ∂f/∂x (n, n)."""
        return self.data[:, : self.n]

    @property
    def B(self) -> NDArray:
        """Control block ∂f/∂u (n, m)."""
        return self.data[:, self.n :]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    def __repr__(self) -> str:
        return f"DynamicsJacobian(n={self.n}, m={self.m})"


def resolve_buffer(out, shape: Tuple[int, ...], name: str = "out") -> NDArray:
    """
    Validate (or allocate) an output buffer before anything is written to it.

    Args:
        out: ndarray, DynamicsJacobian, or None to allocate
        shape: Required shape
        name: Argument name used in error messages

    Returns:
        The ndarray that will be overwritten in place
    """
    if out is None:
        return np.zeros(shape)
    if isinstance(out, DynamicsJacobian):
        out = out.data
    if not isinstance(out, np.ndarray):
        raise TypeError(f"{name} must be a numpy array or DynamicsJacobian, got {type(out).__name__}")
    if out.shape != tuple(shape):
        raise DimensionMismatchError(f"{name} has shape {out.shape}, expected {tuple(shape)}")
    if not out.flags.writeable:
        raise ValueError(f"{name} is read-only")
    return out


def _evaluate(f: Callable[[NDArray], NDArray], z: NDArray, n_out: int) -> NDArray:
    value = np.asarray(f(z), dtype=float)
    if value.shape != (n_out,):
        raise DimensionMismatchError(f"function returned shape {value.shape}, expected ({n_out},)")
    return value


def finite_difference_jacobian(
    f: Callable[[NDArray], NDArray],
    z: NDArray,
    out: NDArray,
    cache: JacobianCache,
) -> NDArray:
    """
    Numeric Jacobian of ``f`` at ``z``, written into ``out``.

    Args:
        f: Map R^(n+m) -> R^n, evaluated on numpy arrays
        z: Expansion point (n+m,)
        out: Output buffer (n, n+m), overwritten
        cache: Scratch buffers sized (n+m, n)

    Returns:
        ``out``

    Raises:
        DimensionMismatchError: ``z``, ``out`` or ``f`` disagree with the cache sizes
        NumericDegeneracyError: Any difference quotient is NaN or Inf
    """
    n_in, n_out = cache.input_dim, cache.output_dim
    z = np.asarray(z, dtype=float)
    if z.shape != (n_in,):
        raise DimensionMismatchError(f"expansion point has shape {z.shape}, expected ({n_in},)")
    if out.shape != (n_out, n_in):
        raise DimensionMismatchError(f"Jacobian buffer has shape {out.shape}, expected {(n_out, n_in)}")

    x1 = cache.x1
    x1[:] = z

    if cache.fd_type == FiniteDifferenceType.FORWARD:
        cache.f0[:] = _evaluate(f, x1, n_out)
        for i in range(n_in):
            h = cache.rel_step * max(1.0, abs(z[i]))
            x1[i] = z[i] + h
            h = x1[i] - z[i]  # exactly representable step
            cache.fx[:] = _evaluate(f, x1, n_out)
            out[:, i] = (cache.fx - cache.f0) / h
            x1[i] = z[i]

    else:
        for i in range(n_in):
            h = cache.rel_step * max(1.0, abs(z[i]))
            x1[i] = z[i] + h
            h_plus = x1[i] - z[i]  # exactly representable step
            cache.fx[:] = _evaluate(f, x1, n_out)
            x1[i] = z[i] - h
            h_minus = z[i] - x1[i]
            cache.f0[:] = _evaluate(f, x1, n_out)
            out[:, i] = (cache.fx - cache.f0) / (h_plus + h_minus)
            x1[i] = z[i]

    bad = ~np.isfinite(out)
    if bad.any():
        cols = np.flatnonzero(bad.any(axis=0)).tolist()
        raise NumericDegeneracyError(f"finite-difference Jacobian is not finite in columns {cols}")

    return out


def _traced(fn: Callable, z: NDArray):
    try:
        return fn(jnp.asarray(z, dtype=jnp.float64))
    except (jax.errors.TracerArrayConversionError, jax.errors.ConcretizationTypeError) as err:
        raise UnsupportedConfigurationError(
            "dynamics could not be traced for forward-mode differentiation; "
            "write it with jax.numpy or declare diff_method = DiffMethod.FINITE_DIFFERENCE"
        ) from err


def forward_jacobian(f: Callable, z: NDArray, out: NDArray) -> NDArray:
    """
    Exact Jacobian of ``f`` at ``z`` by forward-mode differentiation.

    Args:
        f: Traceable map R^(n+m) -> R^n
        z: Expansion point (n+m,)
        out: Output buffer (n, n+m), overwritten

    Returns:
        ``out``
    """
    J = np.asarray(_traced(jax.jacfwd(f), z))
    if J.shape != out.shape:
        raise DimensionMismatchError(f"Jacobian has shape {J.shape}, expected {out.shape}")
    out[...] = J
    return out


def forward_hessian(g: Callable, z: NDArray, out: NDArray) -> NDArray:
    """
    Exact Hessian of the scalar map ``g`` at ``z`` (forward-over-forward).

    Args:
        g: Traceable map R^k -> R
        z: Expansion point (k,)
        out: Output buffer (k, k), overwritten

    Returns:
        ``out``
    """
    H = np.asarray(_traced(jax.jacfwd(jax.jacfwd(g)), z))
    if H.shape != out.shape:
        raise DimensionMismatchError(f"Hessian has shape {H.shape}, expected {out.shape}")
    out[...] = H
    return out


def resolve_method(model, method: Optional[Union[DiffMethod, str]]) -> DiffMethod:
    """Per-call override if given, otherwise the model's declared default."""
    if method is None:
        return DiffMethod(getattr(model, "diff_method", DiffMethod.FORWARD_AD))
    return DiffMethod(method)


def ensure_cache(model, cache: Optional[JacobianCache]) -> JacobianCache:
    """Return ``cache``, building one sized from ``model`` if it is None."""
    if cache is None:
        logger.debug("Building JacobianCache for %s", type(model).__name__)
        return JacobianCache.from_model(model)
    n, m = model.size
    if (cache.input_dim, cache.output_dim) != (n + m, n):
        raise DimensionMismatchError(
            f"JacobianCache sized ({cache.input_dim}, {cache.output_dim}), model needs ({n + m}, {n})"
        )
    return cache
