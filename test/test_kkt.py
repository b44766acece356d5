"""Test KKT diagnostics."""

import numpy as np

from pdipm.kkt import is_kkt_optimal, kkt_residuals


def test_optimal_point() -> None:
    """Test minimize (1/2)|x|^2 - x1 subject to x1 <= 0.5, x1 + x2 = 0.5."""
    P = np.eye(2)
    q = np.array([-1.0, 0.0])
    G = np.array([[1.0, 0.0]])
    h = np.array([0.5])
    A = np.array([[1.0, 1.0]])
    b = np.array([0.5])

    # Stationarity: x - e1 + lmbda * e1 + nu * (1, 1) = 0
    x = np.array([0.5, 0.0])
    lmbda = np.array([0.5])
    nu = np.array([0.0])

    residuals = kkt_residuals(P, q, G, h, A, b, x, lmbda, nu)
    for value in residuals.values():
        assert value <= 1e-12
    assert is_kkt_optimal(P, q, G, h, A, b, x, lmbda, nu)


def test_violations() -> None:
    """Test each residual picks up its own violation."""
    P = np.eye(2)
    q = np.zeros(2)
    G = np.array([[1.0, 0.0]])
    h = np.array([0.0])
    A = np.array([[0.0, 1.0]])
    b = np.array([1.0])

    x = np.array([0.5, 0.0])
    lmbda = np.array([-0.25])

    residuals = kkt_residuals(P, q, G, h, A, b, x, lmbda)
    np.testing.assert_allclose(residuals["stationarity"], 0.25)
    np.testing.assert_allclose(residuals["primal_eq"], 1.0)
    np.testing.assert_allclose(residuals["primal_ineq"], 0.5)
    np.testing.assert_allclose(residuals["dual_feasibility"], 0.25)
    np.testing.assert_allclose(residuals["complementary"], 0.125)
    assert not is_kkt_optimal(P, q, G, h, A, b, x, lmbda)


def test_unconstrained() -> None:
    """Test constraints may be omitted."""
    P = 2.0 * np.eye(3)
    q = np.array([2.0, -4.0, 0.0])
    x = np.array([-1.0, 2.0, 0.0])

    residuals = kkt_residuals(P, q, None, None, None, None, x)
    assert residuals["stationarity"] == 0.0
    assert residuals["primal_eq"] == 0.0
    assert is_kkt_optimal(P, q, None, None, None, None, x)
