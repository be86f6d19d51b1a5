"""
Tests for Matsubara kernel functions.
"""

import jax.numpy as jnp
import pytest

from matsubara_qr.kernels import (
    KernelType,
    apply_kernel,
    kernel_bose,
    kernel_fermi,
    matsubara_frequency,
)


class TestMatsubaraFrequency:
    """Test frequency conversion."""

    def test_fermionic(self):
        """Fermionic frequencies should be odd multiples of pi."""
        n = jnp.array([-1, 0, 1, 2])
        result = matsubara_frequency(n, is_fermi=True)
        assert jnp.allclose(result, jnp.array([-1.0, 1.0, 3.0, 5.0]) * jnp.pi)

    def test_bosonic(self):
        """Bosonic frequencies should be even multiples of pi."""
        n = jnp.array([-1, 0, 1])
        result = matsubara_frequency(n, is_fermi=False)
        assert jnp.allclose(result, jnp.array([-2.0, 0.0, 2.0]) * jnp.pi)

    def test_beta_scaling(self):
        """Frequencies should scale as 1/beta."""
        n = jnp.array([0, 3])
        assert jnp.allclose(
            matsubara_frequency(n, True, beta=2.0), matsubara_frequency(n, True) / 2.0
        )


class TestKernelFermi:
    """Test fermionic kernel."""

    def test_value_at_origin(self):
        """K(0, 0) should be 1 / (i pi)."""
        result = kernel_fermi(jnp.array(0), jnp.array(0.0))
        assert jnp.allclose(result, -1j / jnp.pi)

    def test_negative_frequency_symmetry(self):
        """K(-n-1, omega) should equal conj(K(n, omega)) for real omega."""
        n = jnp.arange(0, 5)
        omega = jnp.array([0.3, -1.0, 2.5, 7.0, -4.0])
        lhs = kernel_fermi(-n - 1, omega)
        rhs = jnp.conj(kernel_fermi(n, omega))
        assert jnp.allclose(lhs, rhs)

    def test_decay(self):
        """Kernel magnitude should decay with |n|."""
        n = jnp.array([0, 1, 10, 100])
        result = jnp.abs(kernel_fermi(n, jnp.array(1.0)))
        assert jnp.all(result[:-1] > result[1:])


class TestKernelBose:
    """Test bosonic kernel."""

    def test_degenerate_limit(self):
        """K(0, 0) should take its limit -1."""
        result = kernel_bose(jnp.array(0), jnp.array(0.0))
        assert jnp.allclose(result, -1.0)
        assert not jnp.isnan(result)

    def test_zero_frequency_static(self):
        """At n = 0 the kernel should be -1 for any omega."""
        result = kernel_bose(jnp.array(0), jnp.array([-3.0, 0.5, 2.0]))
        assert jnp.allclose(result, -1.0)

    def test_zero_omega(self):
        """For n != 0 the kernel should vanish at omega = 0."""
        result = kernel_bose(jnp.array([1, -2]), jnp.array(0.0))
        assert jnp.allclose(result, 0.0)


class TestApplyKernel:
    """Test kernel dispatcher."""

    def test_shape(self):
        """Result should be (n_points, n_omega)."""
        result = apply_kernel(jnp.arange(-3, 3), jnp.linspace(-1.0, 1.0, 5))
        assert result.shape == (6, 5)

    def test_dispatch_fermi(self):
        """'fermi' should match kernel_fermi."""
        n = jnp.array([0, 2])
        omega = jnp.array([0.5, 1.5])
        result = apply_kernel(n, omega, "fermi")
        expected = kernel_fermi(n[:, None], omega[None, :])
        assert jnp.allclose(result, expected)

    def test_dispatch_bose(self):
        """'bose' should match kernel_bose."""
        n = jnp.array([0, 2])
        omega = jnp.array([0.5, 1.5])
        result = apply_kernel(n, omega, "bose", beta=2.0)
        expected = kernel_bose(n[:, None], omega[None, :], beta=2.0)
        assert jnp.allclose(result, expected)

    def test_complex_output(self):
        """Kernel values should be complex."""
        result = apply_kernel(jnp.array([0]), jnp.array([1.0]))
        assert jnp.iscomplexobj(result)

    def test_invalid_kernel_raises(self):
        """Unknown kernel should raise ValueError."""
        with pytest.raises(ValueError):
            apply_kernel(jnp.array([0]), jnp.array([1.0]), "lorentzian")

    def test_kernel_type_enum(self):
        """KernelType enum should have the expected values."""
        assert KernelType.FERMI.value == "fermi"
        assert KernelType.BOSE.value == "bose"
