"""Custom exceptions."""

from typing import Optional

import numpy as np
import numpy.typing as npt


class DimensionMismatchError(ValueError):
    """Raised when problem data have inconsistent shapes."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        """Pretty-print error."""
        return self.message


class NewtonStepError(Exception):
    """Raised when we cannot calculate Newton step."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        """Pretty-print error."""
        return self.message


class BacktrackingLineSearchError(Exception):
    """Raised when BTLS fails."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        """Pretty-print error."""
        return self.message


class ConstraintBoundaryError(BacktrackingLineSearchError):
    """Raised when BTLS fails because even small steps violated a constraint."""


class SevereCurvatureError(BacktrackingLineSearchError):
    """Raised when BTLS fails because the residual norm did not decrease.

    Usually this happens because the linearization of the residual doesn't hold even
    for small step sizes, or because the residual cannot be reduced any further (e.g.
    inconsistent equality constraints).

    """

    def __init__(
        self,
        message: str,
        required_norm: float,
        actual_norm: float,
    ) -> None:
        self.message = message
        self.required_norm = required_norm
        self.actual_norm = actual_norm

    def __str__(self) -> str:
        """Pretty-print error."""
        msg = (
            f"{self.message} (required residual norm <= {self.required_norm:.03g}"
            f"; actual residual norm = {self.actual_norm:.03g})"
        )
        return msg


class NumericalFailureError(Exception):
    """Base class for numerical failures of the interior point method."""

    def __init__(
        self,
        message: str,
        nits: int,
        last_iterate: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        self.message = message
        self.nits = nits
        self.last_iterate = last_iterate

    def __str__(self) -> str:
        """Pretty-print error."""
        msg = f"{self.message} (after {self.nits} iteration(s))"
        return msg


class KKTSystemError(NumericalFailureError):
    """Raised when the Newton (KKT) system is singular."""


class NonFiniteResidualError(NumericalFailureError):
    """Raised when a residual becomes NaN or infinite."""
