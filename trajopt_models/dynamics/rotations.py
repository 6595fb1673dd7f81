"""
Rotation Parameterizations for Rigid-Body States

The orientation block of a rigid-body state holds one of:

- UNIT_QUATERNION: [w, x, y, z] (4 numbers, scalar first)
- MRP: modified Rodrigues parameters (3 numbers)
- RODRIGUES: Rodrigues / Gibbs vector (3 numbers)

Differences between orientations are taken on the rotation group through
scipy's ``Rotation`` and expressed as a rotation vector (log map), so the
tangent space is always 3-dimensional.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation


class RotationParam(Enum):
    """Orientation parameterizations with their state-block size."""

    UNIT_QUATERNION = "unit_quaternion"
    MRP = "mrp"
    RODRIGUES = "rodrigues"

    @property
    def size(self) -> int:
        return 4 if self is RotationParam.UNIT_QUATERNION else 3


def skew(v: NDArray) -> NDArray:
    """Cross-product matrix: skew(a) @ b == a x b."""
    return np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])


def quat_left(q: NDArray) -> NDArray:
    """Left-multiplication matrix: quat_left(q1) @ q2 == q1 ⊗ q2."""
    w, v = q[0], q[1:]
    L = np.zeros((4, 4))
    L[0, 0] = w
    L[0, 1:] = -v
    L[1:, 0] = v
    L[1:, 1:] = w * np.eye(3) + skew(v)
    return L


def to_quaternion(param: RotationParam, r: NDArray) -> NDArray:
    """
    Convert an orientation block to a unit quaternion [w, x, y, z].

    Args:
        param: Parameterization of ``r``
        r: Orientation block (3,) or (4,)

    Returns:
        Unit quaternion (4,)
    """
    r = np.asarray(r, dtype=float)
    if param is RotationParam.UNIT_QUATERNION:
        return r / np.linalg.norm(r)

    if param is RotationParam.MRP:
        p2 = r @ r
        return np.concatenate([[1.0 - p2], 2.0 * r]) / (1.0 + p2)

    return np.concatenate([[1.0], r]) / np.sqrt(1.0 + r @ r)


def to_rotation(param: RotationParam, r: NDArray) -> Rotation:
    """Orientation block as a scipy ``Rotation``."""
    q = to_quaternion(param, r)
    return Rotation.from_quat(q[[1, 2, 3, 0]])


def rotation_difference(param: RotationParam, r: NDArray, r0: NDArray) -> NDArray:
    """
    Rotation vector of the relative rotation R(r0)^-1 R(r).

    Zero when ``r`` and ``r0`` describe the same rotation, including the
    antipodal quaternions q and -q.

    Args:
        param: Parameterization of both blocks
        r: Orientation block
        r0: Reference orientation block

    Returns:
        Tangent vector (3,)
    """
    R = to_rotation(param, r)
    R0 = to_rotation(param, r0)
    return (R0.inv() * R).as_rotvec()


def attitude_jacobian(param: RotationParam, r: NDArray) -> NDArray:
    """
    Derivative of the orientation block under a right perturbation.

    For r(δ) = param(R(r) Exp(δ)), returns ∂r/∂δ at δ = 0.

    Args:
        param: Parameterization of ``r``
        r: Orientation block (k,)

    Returns:
        Attitude Jacobian (k, 3)
    """
    q = to_quaternion(param, r)
    H = np.vstack([np.zeros((1, 3)), np.eye(3)])
    dq = 0.5 * quat_left(q) @ H

    if param is RotationParam.UNIT_QUATERNION:
        return dq

    w, v = q[0], q[1:]
    if param is RotationParam.MRP:
        dr_dq = np.hstack([-v[:, None] / (1.0 + w) ** 2, np.eye(3) / (1.0 + w)])
    else:
        dr_dq = np.hstack([-v[:, None] / w**2, np.eye(3) / w])
    return dr_dq @ dq
