"""Linear programs."""

from typing import Optional, Union

import numpy as np
import numpy.typing as npt

from .optimization import PrimalDualResult
from .qp import QP, _as_vector


class LP(QP):
    r"""A Linear Program solver.

    The problem is:
      minimize    c^T x + d
      subject to  G x <= h
                  A x = b.

    This is the quadratic program with P = 0, solved with the same slack variable
    technique as `QP`, so the initial guess need not be feasible. Unbounded problems
    typically make the Newton system singular, resulting in a KKTSystemError.

    """

    def solve(  # type: ignore[override]
        self,
        x: npt.ArrayLike,
        c: npt.ArrayLike,
        d: Union[float, npt.ArrayLike] = 0.0,
        G: Optional[npt.ArrayLike] = None,
        h: Optional[npt.ArrayLike] = None,
        A: Optional[npt.ArrayLike] = None,
        b: Optional[npt.ArrayLike] = None,
    ) -> PrimalDualResult:
        """Solve the linear program.

        Parameters
        ----------
         x : vector of length n
            Initial guess. Need not be feasible. Not modified.
         c : vector of length n
         d : float
         G, h, A, b
            Constraints, as for `QP.solve`.

        Returns
        -------
         res : PrimalDualResult

        """
        n = _as_vector(x, "x").shape[0]
        c_vec = _as_vector(c, "c", n)
        return super().solve(x, np.zeros((n, n)), c_vec, d, G, h, A, b)
