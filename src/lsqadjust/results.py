# src/lsqadjust/results.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

import torch

from lsqadjust.linalg import inv_symmetric


def _fmt(x: float, digits: int = 6) -> str:
    """Format a float in scientific notation."""
    return f"{x:.{digits}e}"


@dataclass(frozen=True)
class AdjustmentResult:
    """
    Outcome of one least-squares adjustment.

    correction          : (..., k)     parameter correction dx (add to the current estimate)
    inverse_covariance  : (..., k, k)  N = P0^{-1} + H' W H
    condition_number    : (...)        condition number of N, or None if not checked
    postfit_residuals   : (..., n)     r - H dx
    weighted_ssr        : (...)        sum_i w_i (r - H dx)_i^2

    Unpacks as the pair (correction, inverse_covariance):

        dx, N = adjust(H, r, w)
    """

    correction: torch.Tensor
    inverse_covariance: torch.Tensor
    condition_number: Optional[torch.Tensor]
    postfit_residuals: torch.Tensor
    weighted_ssr: torch.Tensor
    nobs: int
    nparams: int
    param_names: Optional[Sequence[str]] = None
    extras: dict[str, Any] = field(default_factory=dict)

    def __iter__(self) -> Iterator[torch.Tensor]:
        yield self.correction
        yield self.inverse_covariance

    def covariance(self) -> torch.Tensor:
        """P = N^{-1}. Raises SingularMatrixError if N is singular."""
        return inv_symmetric(self.inverse_covariance, name="inverse_covariance")

    def std_errors(self) -> torch.Tensor:
        return torch.sqrt(torch.diagonal(self.covariance(), dim1=-2, dim2=-1))

    def correlation(self) -> torch.Tensor:
        P = self.covariance()
        sd = torch.sqrt(torch.diagonal(P, dim1=-2, dim2=-1))
        return P / (sd.unsqueeze(-1) * sd.unsqueeze(-2))

    def weighted_rms(self) -> torch.Tensor:
        """sqrt(weighted SSR / n)."""
        return torch.sqrt(self.weighted_ssr / float(self.nobs))

    def summary(self, digits: int = 6) -> str:
        """Plain-text table of corrections and standard errors (unbatched results only)."""
        if self.correction.ndim != 1:
            raise ValueError("summary() is only available for unbatched results.")

        names = list(self.param_names) if self.param_names is not None else [
            f"x{j}" for j in range(self.nparams)
        ]
        se = self.std_errors()
        width = max(len(s) for s in names + ["param"])

        lines = [
            f"Least-squares adjustment: nobs={self.nobs}, nparams={self.nparams}",
        ]
        if self.condition_number is not None:
            lines.append(f"Condition number: {_fmt(float(self.condition_number), digits)}")
        lines.append(f"Weighted RMS: {_fmt(float(self.weighted_rms()), digits)}")
        lines.append(f"{'param':<{width}}  {'correction':>16}  {'std err':>16}")
        for name, dx, s in zip(names, self.correction.tolist(), se.tolist()):
            lines.append(f"{name:<{width}}  {_fmt(dx, digits):>16}  {_fmt(s, digits):>16}")
        return "\n".join(lines)
