"""Test the primal-dual interior point method."""

from typing import Optional, Tuple

import matplotlib

matplotlib.use("Agg")

import numpy as np
import numpy.typing as npt
import pytest

from pdipm.exceptions import KKTSystemError, NewtonStepError, NonFiniteResidualError
from pdipm.optimization import (
    OptimizationSettings,
    PrimalDualInteriorPointSolver,
    PrimalDualResult,
)


class DiscProblem(PrimalDualInteriorPointSolver):
    r"""Minimize c^T x subject to \| x - center \|_2^2 <= radius^2.

    The solution is center - radius * c / \| c \|_2.

    """

    def __init__(
        self,
        c: npt.NDArray[np.float64],
        center: npt.NDArray[np.float64],
        radius: float,
        x0: Optional[npt.NDArray[np.float64]] = None,
        A: Optional[npt.NDArray[np.float64]] = None,
        b: Optional[npt.NDArray[np.float64]] = None,
        settings: Optional[OptimizationSettings] = None,
    ) -> None:
        super().__init__(settings=settings)
        self.c = c
        self.center = center
        self.radius = radius
        self.x0 = center.copy() if x0 is None else x0
        self.A = np.zeros((0, len(c))) if A is None else A
        self.b = np.zeros(0) if b is None else b
        self.final_calls = 0

    @property
    def dimension(self) -> int:
        return len(self.c)

    @property
    def num_ineq_constraints(self) -> int:
        return 1

    @property
    def num_eq_constraints(self) -> int:
        return self.A.shape[0]

    def initial_point(self) -> npt.NDArray[np.float64]:
        return self.x0

    def final_point(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        nu: npt.NDArray[np.float64],
        converged: bool,
    ) -> npt.NDArray[np.float64]:
        self.final_calls += 1
        return x

    def evaluate_objective(self, x: npt.NDArray[np.float64]) -> float:
        return float(np.dot(self.c, x))

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        return self.c

    def hessian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        return np.zeros((self.dimension, self.dimension))

    def constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        d = x - self.center
        return np.array([np.dot(d, d) - self.radius**2])

    def grad_constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        return 2.0 * (x - self.center)[np.newaxis, :]

    def hessian_constraint(
        self, x: npt.NDArray[np.float64], i: int
    ) -> npt.NDArray[np.float64]:
        return 2.0 * np.eye(self.dimension)

    def equality_constraints(
        self,
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        return self.A, self.b


@pytest.mark.parametrize(
    "seed,n",
    [
        (1101, 2),
        (2101, 5),
        (3101, 10),
    ],
)
def test_nonlinear_constraint(seed: int, n: int) -> None:
    """Test a problem with a curved feasible set."""
    np.random.seed(seed)
    c = np.random.randn(n)
    center = np.random.randn(n)
    radius = 1.0 + np.random.rand()

    problem = DiscProblem(c, center, radius)
    res = problem.optimize()

    x_expected = center - radius * c / np.linalg.norm(c)
    assert isinstance(res, PrimalDualResult)
    assert res.converged
    assert res.status == 0
    assert problem.final_calls == 1
    np.testing.assert_allclose(res.solution, x_expected, rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(
        res.objective_value, np.dot(c, x_expected), rtol=1e-6, atol=1e-6
    )
    assert np.all(res.inequality_multipliers > 0)
    assert res.nits == len(res.step_sizes)
    assert len(res.primal_residuals) == res.nits + 1


def test_equality_constrained_infeasible_start() -> None:
    """Test equality constraints need not hold at the starting point."""
    c = np.array([1.0, 1.0])
    center = np.zeros(2)
    A = np.array([[1.0, -1.0]])
    b = np.array([0.5])

    problem = DiscProblem(c, center, 2.0, A=A, b=b)
    res = problem.optimize()

    assert res.converged
    x = res.solution
    np.testing.assert_allclose(A @ x, b, atol=1e-7)
    assert np.dot(x, x) <= 4.0 + 1e-7
    # Minimizing x1 + x2 along x1 - x2 = 0.5 pushes to the boundary of the disc.
    np.testing.assert_allclose(np.dot(x, x), 4.0, atol=1e-5)
    assert x[0] < 0 and x[1] < 0


def test_iteration_limit() -> None:
    """Test running out of iterations is reported, not raised."""
    settings = OptimizationSettings(max_iterations=2)
    problem = DiscProblem(np.array([1.0, 0.0]), np.zeros(2), 1.0, settings=settings)
    res = problem.optimize()

    assert not res.converged
    assert res.status == 1
    assert res.nits == 2
    assert problem.final_calls == 1


def test_initial_point_must_satisfy_inequalities() -> None:
    """Test an initial point outside the disc is rejected."""
    problem = DiscProblem(
        np.array([1.0, 0.0]), np.zeros(2), 1.0, x0=np.array([5.0, 0.0])
    )
    with pytest.raises(ValueError):
        problem.optimize()


def test_non_finite_residual() -> None:
    """Test a NaN in the problem data is reported as a numerical failure."""
    problem = DiscProblem(np.array([np.nan, 0.0]), np.zeros(2), 1.0)
    with pytest.raises(NonFiniteResidualError) as excinfo:
        problem.optimize()

    assert excinfo.value.nits == 0
    assert problem.final_calls == 0


def test_barrier_parameter_held_below_gap_tolerance() -> None:
    """Test t stops growing once the gap is below tolerance."""
    settings = OptimizationSettings(barrier_multiplier=10.0, gap_tolerance=1e-8)
    problem = DiscProblem(np.array([1.0, 0.0]), np.zeros(2), 1.0, settings=settings)

    np.testing.assert_allclose(problem.barrier_parameter(1e-2), 1e3)
    np.testing.assert_allclose(problem.barrier_parameter(1e-8), 1e9)
    np.testing.assert_allclose(problem.barrier_parameter(1e-20), 1e9)


class SingularNewtonDiscProblem(DiscProblem):
    """Disc problem whose Newton system can never be solved."""

    def calculate_newton_step(self, *args, **kwargs):
        raise NewtonStepError("singular")


def test_singular_newton_system_near_solution() -> None:
    """Test a singular Newton system once the gap is small stops the method."""
    settings = OptimizationSettings(gap_tolerance=10.0, feasibility_tolerance=1e-20)
    problem = SingularNewtonDiscProblem(
        np.array([1.0, 0.0]), np.zeros(2), 1.0, settings=settings
    )
    res = problem.optimize()

    assert not res.converged
    assert res.status == 2
    assert res.nits == 0
    assert problem.final_calls == 1
    np.testing.assert_array_equal(res.solution, np.zeros(2))


def test_singular_newton_system_far_from_solution() -> None:
    """Test a singular Newton system is an error while the gap is large."""
    problem = SingularNewtonDiscProblem(np.array([1.0, 0.0]), np.zeros(2), 1.0)
    with pytest.raises(KKTSystemError) as excinfo:
        problem.optimize()

    assert excinfo.value.nits == 0
    assert problem.final_calls == 0


def test_verbose(capsys: pytest.CaptureFixture) -> None:
    """Test verbose mode prints progress."""
    settings = OptimizationSettings(verbose=True)
    problem = DiscProblem(np.array([1.0, 0.0]), np.zeros(2), 1.0, settings=settings)
    problem.optimize()

    captured = capsys.readouterr()
    assert "Starting primal-dual IPM" in captured.out
    assert "IPM completed" in captured.out


def test_plot_convergence() -> None:
    """Test convergence plot."""
    problem = DiscProblem(np.array([1.0, 2.0]), np.zeros(2), 1.0)
    res = problem.optimize()
    ax = res.plot_convergence()
    assert ax.get_xlabel() == "Iteration"
    assert len(ax.get_lines()) == 3


@pytest.mark.parametrize(
    "kwargs",
    [
        {"barrier_multiplier": 1.0},
        {"fraction_to_boundary": 1.0},
        {"backtracking_alpha": 0.5},
        {"backtracking_beta": 0.0},
        {"max_iterations": -1},
    ],
)
def test_invalid_settings(kwargs: dict) -> None:
    """Test settings are validated."""
    with pytest.raises(ValueError):
        OptimizationSettings(**kwargs)
