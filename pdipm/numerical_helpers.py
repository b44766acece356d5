"""Numerical linear algebra routines."""

from collections.abc import Callable
from typing import Any, Optional

import numpy as np
import numpy.typing as npt
from scipy import linalg

from .exceptions import NewtonStepError

RANK_TOLERANCE = 1e-10

# Smallest relative pivot accepted by the direct path of `solve_newton_system`.
CONDITION_TOLERANCE = 1e-9


def cholesky_factor(
    H: npt.NDArray[np.float64],
    rtol: Optional[float] = None,
) -> tuple[npt.NDArray[np.float64], bool]:
    """Cholesky factorization of a symmetric matrix, H.

    Unlike `scipy.linalg.cho_factor`, this treats a matrix whose smallest pivot is
    tiny relative to its largest diagonal entry as singular.

    Parameters
    ----------
     H : npt.NDArray[np.float64]
        Symmetric matrix.
     rtol : float, optional
        Pivots no larger than rtol times the largest diagonal entry of H are rejected.
        Defaults to the dimension of H times machine precision.

    Returns
    -------
     cho : tuple
        Factorization suitable for `solve_cholesky`.

    Raises
    ------
     np.linalg.LinAlgError
        If H is not (numerically) positive definite.

    """
    if rtol is None:
        rtol = H.shape[0] * np.finfo(np.float64).eps

    c, lower = linalg.cho_factor(H, lower=True)
    pivots = np.square(np.diag(c))
    scale = max(float(np.max(np.abs(np.diag(H)))), 1.0)
    if pivots.size > 0 and np.min(pivots) <= rtol * scale:
        raise np.linalg.LinAlgError("Matrix is numerically singular.")
    return c, lower


def solve_cholesky(
    b: npt.NDArray[np.float64],
    cho: tuple[npt.NDArray[np.float64], bool],
) -> npt.NDArray[np.float64]:
    """Solve H * x = b, given the Cholesky factorization of H.

    Parameters
    ----------
     b : npt.NDArray[np.float64]
        Right hand side. Can be either a vector or a matrix, in which case we solve the
        system for each column of b.
     cho : tuple
        Output of `cholesky_factor(H)`.

    Returns
    -------
     x : npt.NDArray[np.float64]
        The solution.

    """
    if b.ndim not in (1, 2):
        raise ValueError("b must be either a 1D or 2D NumPy array.")
    return linalg.cho_solve(cho, b)


def solve_kkt_system(
    A: npt.NDArray[np.float64],
    g: npt.NDArray[np.float64],
    hessian_solve: Callable[..., npt.NDArray[np.float64]],
    h: Optional[npt.NDArray[np.float64]] = None,
    **kwargs: Any,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Solve a KKT system of equations.

    Parameters
    ----------
     A : p-by-M matrix.
        Parameter.
     g : vector of length M
        Right-hand-side, top block.
     hessian_solve : Callable
        A function that solves H * x = y. The first argument to hessian_solve will be y.
        Additional arguments will be passed via **kwargs.
     h : vector of length p, optional
        Right-hand-side, bottom block. Defaults to zero.
     kwargs
        Extra arguments to pass to hessian_solve.

    Returns
    -------
     delta_x : vector of length M
        Solution to system. See Notes.
     nu : vector of length p
        Solution to system. See Notes.

    Notes
    -----
    Solves:
           _       _   _       _     _   _
          | H   A^T | | delta_x |   |  g  |
          | A    0  | |   nu    | = |  h  |
           -       -   -       -     -   -
    where H is the Hessian.

    Per the discussion in Boyd and Vandenberghe (2004), Algorithm C.4 (page
    673):
      1. Form B = H^{-1} * A^T and b = H^{-1} * g.
      2. Form S = -A * B and c = h - A * b.
      3. Solve S * nu = c via Cholesky decomposition. (S is negative definite, so we
         instead solve -S * nu = -c.)
         a. If A is not full rank, S won't be, either. We then fall back to the
            Singular Value Decomposition and take the least-squares solution. When h
            is not in the range of A (inconsistent equality constraints) the result
            is the step that best reduces the equality residual.
      4. Solve H * delta_x = g - A^T * nu.

    """
    p, M = A.shape
    if len(g) != M:
        raise ValueError(
            "Dimension mismatch: g should have one entry for each column of A."
        )
    if h is None:
        h = np.zeros(p)
    elif len(h) != p:
        raise ValueError(
            "Dimension mismatch: h should have one entry for each row of A."
        )

    if p == 0:
        return hessian_solve(g, **kwargs), np.zeros(0)

    # Step 1: form B = H^{-1} * A^T and b = H^{-1} * g
    B = hessian_solve(A.T, **kwargs)
    b = hessian_solve(g, **kwargs)

    # Step 2: form -S = A * B and -c = A * b - h
    neg_S = A @ B
    neg_c = A @ b - h

    # Step 3: Solve -S * nu = -c
    try:
        c, lower = cholesky_factor(neg_S)
        nu = linalg.cho_solve((c, lower), neg_c)
    except np.linalg.LinAlgError:
        U, s, Vh = linalg.svd(neg_S, full_matrices=False)
        rank = int(np.sum(s > RANK_TOLERANCE * max(s[0], 1.0)))
        s_inv = np.zeros_like(s)
        s_inv[0:rank] = 1.0 / s[0:rank]
        nu = Vh.T @ (s_inv * (U.T @ neg_c))

    # Step 4: Solve H * delta_x = g - A^T * nu
    delta_x = hessian_solve(g - (A.T @ nu), **kwargs)

    return delta_x, nu


def solve_newton_system(
    H: npt.NDArray[np.float64],
    A: npt.NDArray[np.float64],
    g: npt.NDArray[np.float64],
    h: npt.NDArray[np.float64],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Solve the reduced Newton system of a primal-dual interior point method.

    Parameters
    ----------
     H : M-by-M matrix
        Symmetric positive semidefinite (1, 1) block.
     A : p-by-M matrix
        Equality constraint matrix. May be rank deficient.
     g, h : vectors of length M and p
        Right hand side.

    Returns
    -------
     delta_x : vector of length M
     nu : vector of length p

    Raises
    ------
     NewtonStepError
        If the system is singular.

    Notes
    -----
    When H is well conditioned, we use `solve_kkt_system` directly. Otherwise H is
    only positive definite on the null space of A (if at all), and we solve the
    equivalent system
           _                _   _       _     _             _
          | H + A^T A   A^T  | | delta_x |   | g + A^T * h  |
          |     A        0   | |   nu    | = |      h       |
           -                -   -       -     -             -
    (Boyd and Vandenberghe, 2004, section 10.4.2), whose (1, 1) block is positive
    definite whenever the original KKT matrix is nonsingular. Without equality
    constraints we settle for any factorization of H that succeeds.

    """
    try:
        cho = cholesky_factor(H, rtol=CONDITION_TOLERANCE)
    except np.linalg.LinAlgError:
        pass
    else:
        return solve_kkt_system(A, g, solve_cholesky, h=h, cho=cho)

    if A.shape[0] == 0:
        try:
            cho = cholesky_factor(H)
        except np.linalg.LinAlgError:
            raise NewtonStepError(
                "Hessian is singular and there are no equality constraints."
            ) from None
        return solve_kkt_system(A, g, solve_cholesky, h=h, cho=cho)

    try:
        cho = cholesky_factor(H + A.T @ A)
    except np.linalg.LinAlgError:
        raise NewtonStepError(
            "KKT system is singular: Hessian is not positive definite on the null "
            "space of A."
        ) from None

    return solve_kkt_system(A, g + A.T @ h, solve_cholesky, h=h, cho=cho)
