r"""Primal-dual interior point methods for convex quadratic programs.

Introduction
------------
This package solves convex optimization problems of the form:
    minimize    f0(x)
    subject to  fi(x) <= 0, i=1, ..., m
                A * x = b
with an infeasible start primal-dual interior point method (Boyd and Vandenberghe,
2004, section 11.7). The method is implemented once, in
PrimalDualInteriorPointSolver, and driven entirely through hooks describing the
objective and the constraints. Two problem shapes are provided:
- QP, for minimize (1/2) x^T P x + q^T x + r subject to G x <= h, A x = b
- LP, for minimize c^T x + d subject to G x <= h, A x = b

Both add a slack variable to the inequality constraints so that the caller's initial
guess need not be feasible.

Usage
-----
    qp = QP()
    res = qp.solve(x0, P, q, r, G, h, A, b)
    if qp.is_converged():
        x = res.solution

References
----------
- Boyd, Stephen and Vandenberghe, Lieven, Convex Optimization, Cambridge University
  Press, 2004.

"""

from .exceptions import (
    BacktrackingLineSearchError,
    ConstraintBoundaryError,
    DimensionMismatchError,
    KKTSystemError,
    NewtonStepError,
    NonFiniteResidualError,
    NumericalFailureError,
    SevereCurvatureError,
)
from .kkt import is_kkt_optimal, kkt_residuals
from .lp import LP
from .numerical_helpers import solve_kkt_system, solve_newton_system
from .optimization import (
    OptimizationResult,
    OptimizationSettings,
    PrimalDualInteriorPointSolver,
    PrimalDualResult,
)
from .qp import QP

__all__ = [
    "QP",
    "LP",
    "OptimizationResult",
    "OptimizationSettings",
    "PrimalDualInteriorPointSolver",
    "PrimalDualResult",
    "BacktrackingLineSearchError",
    "ConstraintBoundaryError",
    "DimensionMismatchError",
    "KKTSystemError",
    "NewtonStepError",
    "NonFiniteResidualError",
    "NumericalFailureError",
    "SevereCurvatureError",
    "is_kkt_optimal",
    "kkt_residuals",
    "solve_kkt_system",
    "solve_newton_system",
]
