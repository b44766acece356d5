"""Quadratic programs."""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
import numpy.typing as npt

from .exceptions import DimensionMismatchError
from .optimization import (
    OptimizationSettings,
    PrimalDualInteriorPointSolver,
    PrimalDualResult,
)


@dataclass
class _QPData:
    """Problem data, held for the duration of a single call to `QP.solve`."""

    x0: npt.NDArray[np.float64]
    P: npt.NDArray[np.float64]
    q: npt.NDArray[np.float64]
    r: float
    G: npt.NDArray[np.float64]
    h: npt.NDArray[np.float64]
    A: npt.NDArray[np.float64]
    b: npt.NDArray[np.float64]
    hessian: npt.NDArray[np.float64]
    grad_constraints: npt.NDArray[np.float64]
    A_aug: npt.NDArray[np.float64]
    b_aug: npt.NDArray[np.float64]


def _as_vector(
    v: Optional[npt.ArrayLike], name: str, length: Optional[int] = None
) -> npt.NDArray[np.float64]:
    if v is None:
        return np.zeros(length or 0)
    arr = np.asarray(v, dtype=np.float64)
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr[:, 0]
    if arr.ndim != 1:
        raise DimensionMismatchError(f"{name} must be a vector; got shape {arr.shape}.")
    if length is not None and arr.shape[0] != length:
        raise DimensionMismatchError(
            f"{name} has {arr.shape[0]} entries; expected {length}."
        )
    return arr


def _as_matrix(
    M: Optional[npt.ArrayLike], name: str, num_cols: int
) -> npt.NDArray[np.float64]:
    if M is None:
        return np.zeros((0, num_cols))
    arr = np.asarray(M, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, num_cols))
    if arr.ndim != 2 or arr.shape[1] != num_cols:
        raise DimensionMismatchError(
            f"{name} must have {num_cols} columns; got shape {arr.shape}."
        )
    return arr


def _as_scalar(r: Union[float, npt.ArrayLike], name: str) -> float:
    arr = np.asarray(r, dtype=np.float64)
    if arr.size != 1:
        raise DimensionMismatchError(
            f"{name} must be a scalar or single element array; got shape {arr.shape}."
        )
    return float(arr.reshape(-1)[0])


class QP(PrimalDualInteriorPointSolver):
    r"""A Quadratic Program solver.

    The problem is:
      minimize    (1/2) x^T P x + q^T x + r
      subject to  G x <= h
                  A x = b,
    with x in R^n, P symmetric positive semidefinite (n-by-n), G m-by-n and A p-by-n.

    Internally a slack variable s is introduced so the method can start from an
    infeasible x:
      minimize_{x, s}  (1/2) x^T P x + q^T x + r
      subject to       G x <= h + s * 1
                       A x = b
                       s = 0.
    We initialize s as initial_margin + max(0, max(G x0 - h)), guaranteeing the
    relaxed inequalities hold strictly at the starting point, whatever x0 is. The
    equality s = 0 is only reached at convergence, which is what ties the relaxed
    problem back to the original one.

    Parameters
    ----------
     initial_margin : float, default=1.0
        Safety buffer added to the initial slack. Larger values start further from the
        boundary of the relaxed inequalities.
     settings : OptimizationSettings, optional
        Optimization settings.

    """

    def __init__(
        self,
        initial_margin: float = 1.0,
        settings: Optional[OptimizationSettings] = None,
    ) -> None:
        super().__init__(settings=settings)
        if not initial_margin > 0:
            raise ValueError("initial_margin must be positive.")
        self.initial_margin = initial_margin
        self._converged = False
        self._data: Optional[_QPData] = None

    def solve(
        self,
        x: npt.ArrayLike,
        P: npt.ArrayLike,
        q: npt.ArrayLike,
        r: Union[float, npt.ArrayLike] = 0.0,
        G: Optional[npt.ArrayLike] = None,
        h: Optional[npt.ArrayLike] = None,
        A: Optional[npt.ArrayLike] = None,
        b: Optional[npt.ArrayLike] = None,
    ) -> PrimalDualResult:
        """Solve the quadratic program.

        Parameters
        ----------
         x : vector of length n
            Initial guess. Need not be feasible. Not modified.
         P : n-by-n matrix
         q : vector of length n
         r : float
         G : m-by-n matrix, optional
         h : vector of length m, optional
         A : p-by-n matrix, optional
         b : vector of length p, optional

        Returns
        -------
         res : PrimalDualResult
            The solution, in `res.solution`, along with Lagrange multipliers for the
            original constraints and convergence information. Check `res.converged`
            (or `is_converged()`) before relying on the solution.

        Raises
        ------
         DimensionMismatchError
            If the problem data have inconsistent shapes.
         NumericalFailureError
            If the Newton system is singular or a residual is not finite.

        """
        self._converged = False
        self._data = self._validate(x, P, q, r, G, h, A, b)
        p = self._data.A.shape[0]
        try:
            result = self.optimize()
        finally:
            self._data = None

        result.equality_multipliers = result.equality_multipliers[0:p]
        return result

    def is_converged(self) -> bool:
        """Indicate whether the previous call to `solve` converged."""
        return self._converged

    @staticmethod
    def _validate(
        x: npt.ArrayLike,
        P: npt.ArrayLike,
        q: npt.ArrayLike,
        r: Union[float, npt.ArrayLike],
        G: Optional[npt.ArrayLike],
        h: Optional[npt.ArrayLike],
        A: Optional[npt.ArrayLike],
        b: Optional[npt.ArrayLike],
    ) -> _QPData:
        """Check dimensions and build the data reused at every iteration."""
        x0 = _as_vector(x, "x")
        n = x0.shape[0]
        P_arr = np.asarray(P, dtype=np.float64)
        if P_arr.shape != (n, n):
            raise DimensionMismatchError(
                f"P must be {n}-by-{n}; got shape {P_arr.shape}."
            )
        q_vec = _as_vector(q, "q", n)
        r_val = _as_scalar(r, "r")

        if (G is None) != (h is None):
            raise DimensionMismatchError("G and h must be provided together.")
        G_mat = _as_matrix(G, "G", n)
        h_vec = _as_vector(h, "h", G_mat.shape[0])

        if (A is None) != (b is None):
            raise DimensionMismatchError("A and b must be provided together.")
        A_mat = _as_matrix(A, "A", n)
        b_vec = _as_vector(b, "b", A_mat.shape[0])

        m = G_mat.shape[0]
        p = A_mat.shape[0]

        hessian = np.zeros((n + 1, n + 1))
        hessian[0:n, 0:n] = P_arr

        grad_constraints = np.zeros((m, n + 1))
        grad_constraints[:, 0:n] = G_mat
        grad_constraints[:, n] = -1.0

        A_aug = np.zeros((p + 1, n + 1))
        A_aug[0:p, 0:n] = A_mat
        A_aug[p, n] = 1.0
        b_aug = np.zeros(p + 1)
        b_aug[0:p] = b_vec

        return _QPData(
            x0=x0,
            P=P_arr,
            q=q_vec,
            r=r_val,
            G=G_mat,
            h=h_vec,
            A=A_mat,
            b=b_vec,
            hessian=hessian,
            grad_constraints=grad_constraints,
            A_aug=A_aug,
            b_aug=b_aug,
        )

    @property
    def data(self) -> _QPData:
        """Problem data of the call in progress."""
        if self._data is None:
            raise RuntimeError("Problem data is only available during solve().")
        return self._data

    @property
    def dimension(self) -> int:
        """Number of variables, including the slack."""
        return self.data.x0.shape[0] + 1

    @property
    def num_ineq_constraints(self) -> int:
        """Count inequality constraints."""
        return self.data.G.shape[0]

    @property
    def num_eq_constraints(self) -> int:
        """Count equality constraints, including s = 0."""
        return self.data.A.shape[0] + 1

    def initial_point(self) -> npt.NDArray[np.float64]:
        """Start from the caller's guess, with slack large enough to be feasible."""
        data = self.data
        n = data.x0.shape[0]
        z = np.zeros(n + 1)
        z[0:n] = data.x0
        violation = data.G @ data.x0 - data.h
        max_violation = float(np.max(violation)) if violation.size else 0.0
        z[n] = self.initial_margin + max(0.0, max_violation)
        return z

    def final_point(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        nu: npt.NDArray[np.float64],
        converged: bool,
    ) -> npt.NDArray[np.float64]:
        """Record the convergence flag and drop the slack."""
        self._converged = converged
        return x[0:-1].copy()

    def evaluate_objective(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate (1/2) x^T P x + q^T x + r."""
        data = self.data
        w = x[0:-1]
        return float(0.5 * np.dot(w, data.P @ w) + np.dot(data.q, w) + data.r)

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate [P x + q; 0]."""
        data = self.data
        grad = np.zeros_like(x)
        grad[0:-1] = data.P @ x[0:-1] + data.q
        return grad

    def hessian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Hessian of the objective, which does not depend on x."""
        return self.data.hessian

    def constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate G x - h - s * 1."""
        data = self.data
        return data.G @ x[0:-1] - data.h - x[-1]

    def grad_constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate the gradients of constraints.

        In this case, the matrix of gradients is:
           _       _
          | G  -1  |
           -       -

        """
        return self.data.grad_constraints

    def hessian_constraint(
        self, x: npt.NDArray[np.float64], i: int
    ) -> npt.NDArray[np.float64]:
        """Constraints are affine."""
        return np.zeros((self.dimension, self.dimension))

    def hessian_constraints_weighted(
        self, x: npt.NDArray[np.float64], lmbda: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Constraints are affine."""
        return np.zeros((self.dimension, self.dimension))

    def equality_constraints(
        self,
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        r"""Return A and b, augmented with the row s = 0.

        The matrix is:
           _      _
          | A   0  |
          | 0   1  |
           -      -

        """
        return self.data.A_aug, self.data.b_aug
