"""Primal-dual interior point method."""

import time
from abc import ABC, abstractmethod, abstractproperty
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt
from matplotlib.axes import Axes

from .exceptions import (
    BacktrackingLineSearchError,
    ConstraintBoundaryError,
    KKTSystemError,
    NewtonStepError,
    NonFiniteResidualError,
    SevereCurvatureError,
)
from .numerical_helpers import solve_newton_system


@dataclass
class OptimizationSettings:
    """Optimization settings.

    Parameters
    ----------
    feasibility_tolerance : float, default=1e-8
        The method has converged only when the norm of the primal residual, A * x - b,
        is below feasibility_tolerance * (1 + |b|), and the norm of the dual residual,
        grad_f0 + Df^T * lambda + A^T * nu, is below
        feasibility_tolerance * (1 + |grad_f0(x)|).
    gap_tolerance : float, default=1e-8
        The method has converged only when the surrogate duality gap, -f(x)^T * lambda,
        is below this level. The barrier parameter stops growing once the gap is this
        small.
    max_iterations : int, default=256
        The maximum number of Newton iterations. When it is exhausted, the last iterate
        is returned and flagged as not converged.
    barrier_multiplier : float, default=10.0
        The barrier parameter is set to t = barrier_multiplier * m / eta at each
        iteration, where eta is the surrogate duality gap (at least gap_tolerance). Must
        exceed 1.
    fraction_to_boundary : float, default=0.99
        Fraction of the largest step keeping the inequality multipliers non-negative
        that the line search starts from.
    backtracking_alpha : float, default=0.1
        Required fraction of the linearized decrease in the residual norm for the
        backtracking line search to accept a step.
    backtracking_beta : float, default=0.8
        The factor used to reduce the step size in the backtracking line search.
    backtracking_min_step : float, default=1e-10
        The minimum allowable step size for backtracking line search. When even steps
        this small do not make progress, the method stops and reports that it did not
        converge.
    verbose : bool, default=False
        If True, print status along with how long it took to execute each step.

    """

    feasibility_tolerance: float = 1e-8
    gap_tolerance: float = 1e-8
    max_iterations: int = 256
    barrier_multiplier: float = 10.0
    fraction_to_boundary: float = 0.99
    backtracking_alpha: float = 0.1
    backtracking_beta: float = 0.8
    backtracking_min_step: float = 1e-10
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.barrier_multiplier <= 1.0:
            raise ValueError("barrier_multiplier must be greater than 1.")
        if not 0.0 < self.fraction_to_boundary < 1.0:
            raise ValueError("fraction_to_boundary must be in (0, 1).")
        if not 0.0 < self.backtracking_alpha < 0.5:
            raise ValueError("backtracking_alpha must be in (0, 0.5).")
        if not 0.0 < self.backtracking_beta < 1.0:
            raise ValueError("backtracking_beta must be in (0, 1).")
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative.")


@dataclass
class OptimizationResult:
    """Wrapper for generic optimization result."""

    solution: npt.NDArray[np.float64]


@dataclass
class PrimalDualResult(OptimizationResult):
    """Wrapper for the results of the primal-dual interior point method.

    Parameters
    ----------
    solution : vector
        The solution.
    objective_value : float
        Objective value at the solution.
    inequality_multipliers, equality_multipliers : vectors
        Lagrange multipliers for constraints.
    converged : bool
        Whether the residuals and surrogate duality gap reached the desired tolerance.
    status : int
        Solution status:
          0 : method completed successfully
          1 : iteration limit reached before convergence
          2 : line search could not make progress, or the Newton system became
              singular once the duality gap was within tolerance
    message : str
        Summary of result.
    nits : int
        Number of Newton steps taken.
    primal_residuals, dual_residuals, duality_gaps : List[float]
        Norm of primal residual, norm of dual residual, and surrogate duality gap at
        each iterate, including the last.
    step_sizes : List[float]
        Step size accepted at each iteration.

    """

    objective_value: float
    inequality_multipliers: npt.NDArray[np.float64]
    equality_multipliers: npt.NDArray[np.float64]
    converged: bool
    status: Literal[0, 1, 2]
    message: str
    nits: int
    primal_residuals: List[float] = field(default_factory=list)
    dual_residuals: List[float] = field(default_factory=list)
    duality_gaps: List[float] = field(default_factory=list)
    step_sizes: List[float] = field(default_factory=list)

    def plot_convergence(self, ax: Optional[Axes] = None) -> Axes:
        """Plot convergence."""
        if ax is None:
            _, ax = plt.subplots()

        iterations = [ii for ii in range(len(self.primal_residuals))]
        ax.plot(iterations, self.primal_residuals, marker="o", label="Primal residual")
        ax.plot(iterations, self.dual_residuals, marker="o", label="Dual residual")
        if any(gap > 0 for gap in self.duality_gaps):
            ax.plot(iterations, self.duality_gaps, marker="o", label="Duality gap")
        ax.set_yscale("log")
        ax.set_xlabel("Iteration")
        ax.set_ylabel("Residual")
        ax.legend()
        return ax


class PrimalDualInteriorPointSolver(ABC):
    r"""Base class for a primal-dual interior point method.

    Solves:
       minimize    f0(x)
       subject to  fi(x) <= 0, i=1, ..., m
                   A * x = b,
    with f0 and fi convex and twice differentiable. Subclasses describe the problem by
    implementing the objective and constraint hooks; the iteration itself lives in
    `optimize`.

    The starting point returned by `initial_point` must satisfy fi(x0) < 0, but need
    not satisfy A * x0 = b: the primal residual is driven to zero along with the dual
    residual (Boyd and Vandenberghe, 2004, section 11.7).

    """

    def __init__(
        self,
        settings: Optional[OptimizationSettings] = None,
        **kwargs,
    ) -> None:
        """Initialize optimizer."""
        if settings is None:
            self.settings: OptimizationSettings = OptimizationSettings()
        else:
            self.settings = settings

    @abstractproperty
    def dimension(self) -> int:
        """Number of variables."""

    @abstractproperty
    def num_ineq_constraints(self) -> int:
        """Count inequality constraints."""

    @abstractproperty
    def num_eq_constraints(self) -> int:
        """Count equality constraints."""

    def optimize(self) -> PrimalDualResult:
        """Run the primal-dual interior point method.

        Returns
        -------
         res : PrimalDualResult
            The final iterate and convergence information. The solution is whatever
            `final_point` makes of the final iterate.

        Raises
        ------
         KKTSystemError
            If the Newton system is singular.
         NonFiniteResidualError
            If a residual becomes NaN or infinite.

        """
        x = np.array(self.initial_point(), dtype=np.float64)
        if x.shape != (self.dimension,):
            raise ValueError(
                f"Initial point has shape {x.shape}; expected ({self.dimension},)."
            )

        A, b = self.equality_constraints()
        m = self.num_ineq_constraints
        p = self.num_eq_constraints

        f = self.constraints(x)
        if np.any(f >= 0):
            raise ValueError("Initial point must strictly satisfy the inequalities.")

        lmbda = -1.0 / f
        nu = np.zeros(p)
        norm_b = float(np.linalg.norm(b))

        settings = self.settings
        primal_residuals: List[float] = []
        dual_residuals: List[float] = []
        duality_gaps: List[float] = []
        step_sizes: List[float] = []
        converged = False
        status: Literal[0, 1, 2] = 1
        message = "Iteration limit reached before convergence"

        if settings.verbose:
            overall_start_time = time.time()
            print(f"  Starting primal-dual IPM with {m} inequalities, {p} equalities")

        nit = 0
        while True:
            eta = self.surrogate_duality_gap(x, lmbda)
            t = self.barrier_parameter(eta)
            r_dual, r_cent, r_pri = self.residuals(x, lmbda, nu, t, A, b)

            if not (
                np.all(np.isfinite(r_dual))
                and np.all(np.isfinite(r_cent))
                and np.all(np.isfinite(r_pri))
            ):
                raise NonFiniteResidualError(
                    message="Residual is not finite",
                    nits=nit,
                    last_iterate=x,
                )

            norm_pri = float(np.linalg.norm(r_pri))
            norm_dual = float(np.linalg.norm(r_dual))
            norm_grad = float(np.linalg.norm(self.gradient(x)))
            primal_residuals.append(norm_pri)
            dual_residuals.append(norm_dual)
            duality_gaps.append(eta)

            if settings.verbose:
                print(
                    f"  {nit:03d} |r_pri|={norm_pri:.03e} |r_dual|={norm_dual:.03e} "
                    f"eta={eta:.03e} t={t:.03e}"
                )

            if (
                norm_pri <= settings.feasibility_tolerance * (1.0 + norm_b)
                and norm_dual <= settings.feasibility_tolerance * (1.0 + norm_grad)
                and eta <= settings.gap_tolerance
            ):
                converged = True
                status = 0
                message = (
                    "Interior Point Method completed successfully to the desired "
                    "tolerance"
                )
                break

            if nit >= settings.max_iterations:
                break

            if settings.verbose:
                start_time = time.time()

            try:
                delta_x, delta_lmbda, delta_nu = self.calculate_newton_step(
                    x, lmbda, r_dual, r_cent, r_pri, A
                )
            except NewtonStepError as e:
                if m > 0 and eta <= settings.gap_tolerance:
                    status = 2
                    message = f"Newton system became singular near the solution: {e}"
                    if settings.verbose:
                        print(f"  {nit:03d} {message}")
                    break
                raise KKTSystemError(
                    message="Failed to calculate Newton step",
                    nits=nit,
                    last_iterate=x,
                ) from e

            if settings.verbose:
                end_time = time.time()

            try:
                btls_s = self.backtracking_line_search(
                    x, lmbda, nu, delta_x, delta_lmbda, delta_nu, t, A, b
                )
            except BacktrackingLineSearchError as e:
                status = 2
                message = f"Line search could not make progress: {e}"
                if settings.verbose:
                    print(f"  {nit:03d} {message}")
                break

            if settings.verbose:
                print(
                    f"  {nit:03d} Newton step calculated in "
                    f"{1000 * (end_time - start_time):.03f} ms; {btls_s=:.03g}"
                )

            x = x + btls_s * delta_x
            lmbda = lmbda + btls_s * delta_lmbda
            nu = nu + btls_s * delta_nu
            step_sizes.append(btls_s)
            nit += 1

        if settings.verbose:
            overall_end_time = time.time()
            print(
                f"  IPM completed in "
                f"{1000 * (overall_end_time - overall_start_time):.03f} ms; {message}"
            )

        return PrimalDualResult(
            solution=self.final_point(x, lmbda, nu, converged),
            objective_value=self.evaluate_objective(x),
            inequality_multipliers=lmbda,
            equality_multipliers=nu,
            converged=converged,
            status=status,
            message=message,
            nits=nit,
            primal_residuals=primal_residuals,
            dual_residuals=dual_residuals,
            duality_gaps=duality_gaps,
            step_sizes=step_sizes,
        )

    def surrogate_duality_gap(
        self, x: npt.NDArray[np.float64], lmbda: npt.NDArray[np.float64]
    ) -> float:
        """Calculate eta = -f(x)^T * lambda."""
        if self.num_ineq_constraints == 0:
            return 0.0
        return float(-np.dot(self.constraints(x), lmbda))

    def barrier_parameter(self, eta: float) -> float:
        """Calculate t = mu * m / eta, with eta bounded below by the gap tolerance."""
        if self.num_ineq_constraints == 0:
            return np.inf
        eta = max(eta, self.settings.gap_tolerance)
        if eta <= 0:
            return np.inf
        return self.settings.barrier_multiplier * self.num_ineq_constraints / eta

    def residuals(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        nu: npt.NDArray[np.float64],
        t: float,
        A: npt.NDArray[np.float64],
        b: npt.NDArray[np.float64],
    ) -> Tuple[
        npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]
    ]:
        """Calculate dual, centrality and primal residuals.

        Returns
        -------
         r_dual : vector
            grad_f0(x) + Df(x)^T * lambda + A^T * nu.
         r_cent : vector
            -diag(lambda) * f(x) - (1/t) * 1.
         r_pri : vector
            A * x - b.

        """
        r_dual = self.gradient(x) + A.T @ nu
        if self.num_ineq_constraints > 0:
            r_dual = r_dual + self.grad_constraints(x).T @ lmbda
        r_cent = -lmbda * self.constraints(x) - 1.0 / t
        r_pri = A @ x - b
        return r_dual, r_cent, r_pri

    def calculate_newton_step(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        r_dual: npt.NDArray[np.float64],
        r_cent: npt.NDArray[np.float64],
        r_pri: npt.NDArray[np.float64],
        A: npt.NDArray[np.float64],
    ) -> Tuple[
        npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]
    ]:
        r"""Calculate primal-dual search direction.

        Notes
        -----
        The search direction solves:
           _                                     _   _       _       _        _
          | H_lag           Df^T           A^T    | | delta_x |     | r_dual   |
          | -diag(lmbda)*Df -diag(f)        0     | | delta_l | = - | r_cent   |
          | A               0               0     | | delta_n |     | r_pri    |
           -                                     -   -       -       -        -
        where H_lag = Hessian(f0) + \sum_i lambda_i * Hessian(fi). Eliminating delta_l
        leaves the reduced system:
           _          _   _       _     _                                    _
          | H_pd   A^T | | delta_x |   | -r_dual - Df^T * diag(f)^{-1} r_cent |
          | A       0  | | delta_n | = |               -r_pri                 |
           -          -   -       -     -                                    -
        with H_pd = H_lag + Df^T * diag(lambda / -f) * Df, after which
          delta_l = diag(f)^{-1} * (r_cent - diag(lambda) * Df * delta_x).

        """
        H = self.hessian(x)
        g = -r_dual
        if self.num_ineq_constraints > 0:
            f = self.constraints(x)
            Df = self.grad_constraints(x)
            H = (
                H
                + self.hessian_constraints_weighted(x, lmbda)
                + Df.T @ ((lmbda / -f)[:, np.newaxis] * Df)
            )
            g = g - Df.T @ (r_cent / f)

        delta_x, delta_nu = solve_newton_system(H, A, g, -r_pri)

        if self.num_ineq_constraints > 0:
            delta_lmbda = (r_cent - lmbda * (Df @ delta_x)) / f
        else:
            delta_lmbda = np.zeros(0)
        return delta_x, delta_lmbda, delta_nu

    def backtracking_line_search(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        nu: npt.NDArray[np.float64],
        delta_x: npt.NDArray[np.float64],
        delta_lmbda: npt.NDArray[np.float64],
        delta_nu: npt.NDArray[np.float64],
        t: float,
        A: npt.NDArray[np.float64],
        b: npt.NDArray[np.float64],
    ) -> float:
        """Perform backtracking line search.

        Starts from a fraction of the largest step keeping lambda non-negative, then
        backtracks until the inequalities hold strictly and the norm of the residual has
        decreased sufficiently.

        Returns
        -------
         btls_s : float
            Step modifier.

        """
        alpha = self.settings.backtracking_alpha
        beta = self.settings.backtracking_beta
        min_step = self.settings.backtracking_min_step

        btls_s = self.settings.fraction_to_boundary * self.btls_keep_nonnegative(
            lmbda, delta_lmbda
        )

        while np.any(self.constraints(x + btls_s * delta_x) >= 0):
            btls_s *= beta
            if btls_s < min_step:
                raise ConstraintBoundaryError(
                    message="Descent step takes us too close to constraint boundaries.",
                )

        residual_norm = self.residual_norm(x, lmbda, nu, t, A, b)
        while (
            new_norm := self.residual_norm(
                x + btls_s * delta_x,
                lmbda + btls_s * delta_lmbda,
                nu + btls_s * delta_nu,
                t,
                A,
                b,
            )
        ) > (1.0 - alpha * btls_s) * residual_norm:
            btls_s *= beta
            if btls_s < min_step:
                raise SevereCurvatureError(
                    message="Small step sizes did not adequately decrease residual.",
                    required_norm=(1.0 - alpha * btls_s) * residual_norm,
                    actual_norm=new_norm,
                )

        return btls_s

    def btls_keep_nonnegative(
        self, lmbda: npt.NDArray[np.float64], delta_lmbda: npt.NDArray[np.float64]
    ) -> float:
        """Largest step size in (0, 1] keeping lambda + s * delta_lambda >= 0."""
        decreasing = delta_lmbda < 0
        if not np.any(decreasing):
            return 1.0
        return min(1.0, float(np.min(-lmbda[decreasing] / delta_lmbda[decreasing])))

    def residual_norm(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        nu: npt.NDArray[np.float64],
        t: float,
        A: npt.NDArray[np.float64],
        b: npt.NDArray[np.float64],
    ) -> float:
        """Norm of the stacked residual, used as merit function by the line search."""
        r_dual, r_cent, r_pri = self.residuals(x, lmbda, nu, t, A, b)
        return float(np.sqrt(r_dual @ r_dual + r_cent @ r_cent + r_pri @ r_pri))

    def hessian_constraints_weighted(
        self, x: npt.NDArray[np.float64], lmbda: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        r"""Calculate \sum_i lambda_i * Hessian(fi) at x.

        This base implementation calls `hessian_constraint` once per constraint.
        Problems with affine constraints can simply return zeros.

        """
        H = np.zeros((self.dimension, self.dimension))
        for ii in range(self.num_ineq_constraints):
            H += lmbda[ii] * self.hessian_constraint(x, ii)
        return H

    @abstractmethod
    def initial_point(self) -> npt.NDArray[np.float64]:
        """Starting point; must satisfy fi(x0) < 0 but not necessarily A * x0 = b."""

    @abstractmethod
    def final_point(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        nu: npt.NDArray[np.float64],
        converged: bool,
    ) -> npt.NDArray[np.float64]:
        """Receive the last iterate and return the solution reported to the caller."""

    @abstractmethod
    def evaluate_objective(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate f0 at x."""

    @abstractmethod
    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate gradient of f0 at x."""

    @abstractmethod
    def hessian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate Hessian of f0 at x."""

    @abstractmethod
    def constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate the vector of constraints, fi(x) <= 0."""

    @abstractmethod
    def grad_constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate the gradients of constraints fi(x) <= 0, one row per constraint."""

    @abstractmethod
    def hessian_constraint(
        self, x: npt.NDArray[np.float64], i: int
    ) -> npt.NDArray[np.float64]:
        """Calculate Hessian of the i-th constraint at x."""

    @abstractmethod
    def equality_constraints(
        self,
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Return A and b describing the equality constraints A * x = b."""
