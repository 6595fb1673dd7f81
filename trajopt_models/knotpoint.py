"""
Knot Points

A knot point is one sample (state, control, time, step size) along a
discretized trajectory. State and control are stored back to back in a
single vector ``data = [x; u]`` so Jacobians can be taken with respect to
the concatenation without copying.
"""

from __future__ import annotations

from typing import Optional, Protocol

import numpy as np
from numpy.typing import NDArray

from .errors import DimensionMismatchError


class KnotPointLike(Protocol):
    """What the dynamics engines read from a knot point."""

    t: float
    dt: float

    @property
    def data(self) -> NDArray: ...

    @property
    def ix(self) -> slice: ...

    @property
    def iu(self) -> slice: ...

    @property
    def state(self) -> NDArray: ...

    @property
    def control(self) -> NDArray: ...

    def set_state(self, x: NDArray) -> None: ...


class KnotPoint:
    """
    Concrete knot point backed by one contiguous vector.

    Example:
        >>> z = KnotPoint(x, u, t=0.0, dt=0.1)
        >>> z.state, z.control
        >>> z.set_state(x_next)
    """

    def __init__(self, x: NDArray, u: NDArray, t: float = 0.0, dt: float = 0.0):
        x = np.asarray(x, dtype=float).ravel()
        u = np.asarray(u, dtype=float).ravel()
        self._n = x.shape[0]
        self._m = u.shape[0]
        self._data = np.concatenate([x, u])
        self.t = float(t)
        self.dt = float(dt)

    @classmethod
    def from_model(cls, model, x: Optional[NDArray] = None, u: Optional[NDArray] = None,
                   t: float = 0.0, dt: float = 0.0) -> "KnotPoint":
        """Knot point sized from ``model``; missing state or control are zeros."""
        n, m = model.size
        x = np.zeros(n) if x is None else x
        u = np.zeros(m) if u is None else u
        z = cls(x, u, t, dt)
        if (z.n, z.m) != (n, m):
            raise DimensionMismatchError(f"knot point is ({z.n}, {z.m}), model is ({n}, {m})")
        return z

    @property
    def n(self) -> int:
        return self._n

    @property
    def m(self) -> int:
        return self._m

    @property
    def data(self) -> NDArray:
        """Concatenated [x; u] (n + m,)."""
        return self._data

    @property
    def ix(self) -> slice:
        return slice(0, self._n)

    @property
    def iu(self) -> slice:
        return slice(self._n, self._n + self._m)

    @property
    def state(self) -> NDArray:
        return self._data[self.ix]

    @property
    def control(self) -> NDArray:
        return self._data[self.iu]

    def set_state(self, x: NDArray) -> None:
        x = np.asarray(x, dtype=float)
        if x.shape != (self._n,):
            raise DimensionMismatchError(f"state has shape {x.shape}, expected ({self._n},)")
        self._data[self.ix] = x

    def set_control(self, u: NDArray) -> None:
        u = np.asarray(u, dtype=float)
        if u.shape != (self._m,):
            raise DimensionMismatchError(f"control has shape {u.shape}, expected ({self._m},)")
        self._data[self.iu] = u

    def __repr__(self) -> str:
        return f"KnotPoint(n={self._n}, m={self._m}, t={self.t}, dt={self.dt})"
