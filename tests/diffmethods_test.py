"""
Unit tests for differentiation strategies

Tests cover:
1. JacobianCache construction and defaults
2. Finite-difference kernel (forward and central)
3. Numeric degeneracy detection
4. Forward-mode kernels
5. Buffer validation and DynamicsJacobian views
"""

import jax.numpy as jnp
import numpy as np
import pytest

from trajopt_models.dynamics import DiffMethod, DynamicsJacobian, FiniteDifferenceType, JacobianCache
from trajopt_models.dynamics.diffmethods import (
    ensure_cache,
    finite_difference_jacobian,
    forward_hessian,
    forward_jacobian,
    resolve_buffer,
    resolve_method,
)
from trajopt_models.errors import DimensionMismatchError, NumericDegeneracyError, UnsupportedConfigurationError


def f_np(z):
    """R^3 -> R^2 test map."""
    return np.array([z[0] * z[1] + np.sin(z[2]), z[2] ** 2 - 3.0 * z[0]])


def f_jnp(z):
    return jnp.stack([z[0] * z[1] + jnp.sin(z[2]), z[2] ** 2 - 3.0 * z[0]])


def f_jacobian(z):
    return np.array([[z[1], z[0], np.cos(z[2])], [-3.0, 0.0, 2.0 * z[2]]])


Z = np.array([0.3, -1.2, 0.8])


# ============================================================================
# Test Class 1: JacobianCache
# ============================================================================


class TestJacobianCache:
    def test_from_model_sizes(self, quat_body):
        cache = JacobianCache.from_model(quat_body)
        assert cache.x1.shape == (19,)
        assert cache.fx.shape == (13,)
        assert cache.input_dim == 19
        assert cache.output_dim == 13

    def test_default_steps(self):
        forward = JacobianCache(np.zeros(3), np.zeros(2))
        central = JacobianCache(np.zeros(3), np.zeros(2), FiniteDifferenceType.CENTRAL)
        assert forward.rel_step == pytest.approx(np.sqrt(np.finfo(float).eps))
        assert central.rel_step == pytest.approx(np.cbrt(np.finfo(float).eps))

    def test_string_fd_type(self, double_integrator):
        cache = JacobianCache.from_model(double_integrator, fd_type="central")
        assert cache.fd_type is FiniteDifferenceType.CENTRAL

    def test_invalid_step(self):
        with pytest.raises(ValueError):
            JacobianCache(np.zeros(3), np.zeros(2), rel_step=0.0)

    def test_ensure_cache_builds_when_missing(self, double_integrator):
        cache = ensure_cache(double_integrator, None)
        assert (cache.input_dim, cache.output_dim) == (3, 2)

    def test_ensure_cache_rejects_wrong_size(self, double_integrator, quat_body):
        with pytest.raises(DimensionMismatchError):
            ensure_cache(double_integrator, JacobianCache.from_model(quat_body))


# ============================================================================
# Test Class 2: Finite Differences
# ============================================================================


class TestFiniteDifference:
    @pytest.mark.parametrize("fd_type", [FiniteDifferenceType.FORWARD, FiniteDifferenceType.CENTRAL])
    def test_matches_analytic(self, fd_type):
        cache = JacobianCache(np.zeros(3), np.zeros(2), fd_type)
        out = np.zeros((2, 3))
        result = finite_difference_jacobian(f_np, Z, out, cache)
        assert result is out
        np.testing.assert_allclose(out, f_jacobian(Z), rtol=1e-6, atol=1e-7)

    def test_does_not_modify_input(self):
        z = Z.copy()
        finite_difference_jacobian(f_np, z, np.zeros((2, 3)), JacobianCache(np.zeros(3), np.zeros(2)))
        np.testing.assert_array_equal(z, Z)

    def test_cache_is_reusable(self):
        cache = JacobianCache(np.zeros(3), np.zeros(2))
        first = finite_difference_jacobian(f_np, Z, np.zeros((2, 3)), cache).copy()
        finite_difference_jacobian(f_np, Z + 1.0, np.zeros((2, 3)), cache)
        second = finite_difference_jacobian(f_np, Z, np.zeros((2, 3)), cache)
        np.testing.assert_array_equal(first, second)

    def test_central_step_on_large_component(self):
        z = np.array([1234.567])
        cache = JacobianCache(np.zeros(1), np.zeros(1), FiniteDifferenceType.CENTRAL)
        out = finite_difference_jacobian(lambda s: s**2, z, np.zeros((1, 1)), cache)
        np.testing.assert_allclose(out, [[2.0 * z[0]]], rtol=1e-9)

    def test_wrong_output_length(self):
        cache = JacobianCache(np.zeros(3), np.zeros(3))
        with pytest.raises(DimensionMismatchError):
            finite_difference_jacobian(f_np, Z, np.zeros((3, 3)), cache)

    def test_wrong_point_length(self):
        cache = JacobianCache(np.zeros(3), np.zeros(2))
        with pytest.raises(DimensionMismatchError):
            finite_difference_jacobian(f_np, np.zeros(4), np.zeros((2, 3)), cache)

    def test_non_finite_is_reported(self):
        def f(z):
            return np.array([z[0], np.nan if z[1] != 0.0 else 0.0])

        cache = JacobianCache(np.zeros(2), np.zeros(2))
        with pytest.raises(NumericDegeneracyError, match=r"\[1\]"):
            finite_difference_jacobian(f, np.zeros(2), np.zeros((2, 2)), cache)


# ============================================================================
# Test Class 3: Forward Mode
# ============================================================================


class TestForwardMode:
    def test_jacobian_exact(self):
        out = np.zeros((2, 3))
        forward_jacobian(f_jnp, Z, out)
        np.testing.assert_allclose(out, f_jacobian(Z), rtol=1e-12)

    def test_hessian(self):
        b = np.array([2.0, -1.0])

        def g(z):
            return jnp.dot(f_jnp(z), b)

        out = np.zeros((3, 3))
        forward_hessian(g, Z, out)
        expected = np.array(
            [
                [0.0, 2.0, 0.0],
                [2.0, 0.0, 0.0],
                [0.0, 0.0, -2.0 * np.sin(Z[2]) - 2.0],
            ]
        )
        np.testing.assert_allclose(out, expected, atol=1e-12)

    def test_untraceable_function(self):
        with pytest.raises(UnsupportedConfigurationError, match="FINITE_DIFFERENCE"):
            forward_jacobian(f_np, Z, np.zeros((2, 3)))

    def test_resolve_method(self, numpy_pendulum, double_integrator):
        assert resolve_method(numpy_pendulum, None) is DiffMethod.FINITE_DIFFERENCE
        assert resolve_method(numpy_pendulum, DiffMethod.FORWARD_AD) is DiffMethod.FORWARD_AD
        assert resolve_method(double_integrator, "finite_difference") is DiffMethod.FINITE_DIFFERENCE


# ============================================================================
# Test Class 4: Buffers
# ============================================================================


class TestBuffers:
    def test_allocates_when_none(self):
        buf = resolve_buffer(None, (2, 3))
        assert buf.shape == (2, 3)

    def test_rejects_wrong_shape(self):
        with pytest.raises(DimensionMismatchError):
            resolve_buffer(np.zeros((3, 3)), (2, 3))

    def test_rejects_read_only(self):
        buf = np.zeros((2, 3))
        buf.setflags(write=False)
        with pytest.raises(ValueError):
            resolve_buffer(buf, (2, 3))

    def test_rejects_non_array(self):
        with pytest.raises(TypeError):
            resolve_buffer([[0.0] * 3] * 2, (2, 3))

    def test_dynamics_jacobian_views(self, quat_body):
        J = DynamicsJacobian.from_model(quat_body)
        assert J.shape == (13, 19)
        assert J.A.shape == (13, 13)
        assert J.B.shape == (13, 6)
        J.data[:] = 1.0
        assert np.all(J.A == 1.0) and np.all(J.B == 1.0)
        assert resolve_buffer(J, (13, 19)) is J.data
