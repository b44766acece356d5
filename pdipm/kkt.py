"""Karush-Kuhn-Tucker diagnostics for quadratic programs."""

from typing import Dict, Optional

import numpy as np
import numpy.typing as npt


def kkt_residuals(
    P: npt.NDArray[np.float64],
    q: npt.NDArray[np.float64],
    G: Optional[npt.NDArray[np.float64]],
    h: Optional[npt.NDArray[np.float64]],
    A: Optional[npt.NDArray[np.float64]],
    b: Optional[npt.NDArray[np.float64]],
    x: npt.NDArray[np.float64],
    lmbda: Optional[npt.NDArray[np.float64]] = None,
    nu: Optional[npt.NDArray[np.float64]] = None,
) -> Dict[str, float]:
    """Compute infinity norms of the KKT residuals of a quadratic program.

    Parameters
    ----------
     P, q, G, h, A, b : problem data
        As for `QP.solve`. Constraints may be None.
     x : vector
        Candidate solution.
     lmbda, nu : vectors, optional
        Lagrange multipliers for the inequality and equality constraints. Default to
        zero.

    Returns
    -------
     residuals : dict
        "stationarity": | P x + q + G^T lmbda + A^T nu |,
        "primal_eq": | A x - b |,
        "primal_ineq": | max(G x - h, 0) |,
        "dual_feasibility": | min(lmbda, 0) |,
        "complementary": | lmbda * (h - G x) |.

    """
    x = np.asarray(x, dtype=np.float64)
    stationarity = np.asarray(P, dtype=np.float64) @ x + np.asarray(q, dtype=np.float64)

    primal_eq = 0.0
    if A is not None and np.size(A) > 0:
        A = np.asarray(A, dtype=np.float64)
        nu_vec = np.zeros(A.shape[0]) if nu is None else np.asarray(nu)
        stationarity = stationarity + A.T @ nu_vec
        primal_eq = float(np.linalg.norm(A @ x - b, ord=np.inf))

    primal_ineq = 0.0
    dual_feasibility = 0.0
    complementary = 0.0
    if G is not None and np.size(G) > 0:
        G = np.asarray(G, dtype=np.float64)
        lmbda_vec = np.zeros(G.shape[0]) if lmbda is None else np.asarray(lmbda)
        stationarity = stationarity + G.T @ lmbda_vec
        slack = h - G @ x
        primal_ineq = float(np.max(np.maximum(-slack, 0.0)))
        dual_feasibility = float(np.max(np.maximum(-lmbda_vec, 0.0)))
        complementary = float(np.linalg.norm(lmbda_vec * slack, ord=np.inf))

    return {
        "stationarity": float(np.linalg.norm(stationarity, ord=np.inf)),
        "primal_eq": primal_eq,
        "primal_ineq": primal_ineq,
        "dual_feasibility": dual_feasibility,
        "complementary": complementary,
    }


def is_kkt_optimal(
    P: npt.NDArray[np.float64],
    q: npt.NDArray[np.float64],
    G: Optional[npt.NDArray[np.float64]],
    h: Optional[npt.NDArray[np.float64]],
    A: Optional[npt.NDArray[np.float64]],
    b: Optional[npt.NDArray[np.float64]],
    x: npt.NDArray[np.float64],
    lmbda: Optional[npt.NDArray[np.float64]] = None,
    nu: Optional[npt.NDArray[np.float64]] = None,
    tol: float = 1e-6,
) -> bool:
    """Return True if all KKT residuals are below `tol`."""
    residuals = kkt_residuals(P, q, G, h, A, b, x, lmbda, nu)
    return all(value <= tol for value in residuals.values())
