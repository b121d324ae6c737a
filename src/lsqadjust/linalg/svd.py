from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import torch

from lsqadjust.diagnostics import DiagnosticSink, resolve_sink
from lsqadjust.exceptions import DimensionMismatchError, SingularMatrixError
from lsqadjust.typing import ArrayLike, as_matrix, as_vector, check_rows

DEFAULT_MAX_CONDITION_NUMBER = 1e8


@dataclass(frozen=True)
class SvdDecomposition:
    """
    Thin SVD  M = U diag(s) Vh  of a (..., m, n) matrix.

    singular_values : (..., min(m,n)), non-increasing
    U               : (..., m, min(m,n))
    Vh              : (..., min(m,n), n)
    """

    U: torch.Tensor
    singular_values: torch.Tensor
    Vh: torch.Tensor

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.U.shape[-2]), int(self.Vh.shape[-1])

    def default_rcond(self) -> float:
        m, n = self.shape
        return min(m, n) * torch.finfo(self.singular_values.dtype).eps

    def condition_number(self) -> torch.Tensor:
        """s_max / s_min per problem: +inf if rank deficient, nan for a zero matrix."""
        s = self.singular_values
        return s[..., 0] / s[..., -1]

    def rank(self, rcond: Optional[float] = None) -> torch.Tensor:
        rcond = self.default_rcond() if rcond is None else float(rcond)
        s = self.singular_values
        return (s > rcond * s[..., :1]).sum(dim=-1)

    def solve(self, b: torch.Tensor, rcond: Optional[float] = None) -> torch.Tensor:
        """
        Minimum-norm least-squares solution of M x = b.

        Singular values below rcond * s_max are treated as zero.
        b : (..., m)  ->  x : (..., n)
        """
        m, _ = self.shape
        if int(b.shape[-1]) != m:
            raise DimensionMismatchError(f"b must have length {m}. Got {tuple(b.shape)}")

        rcond = self.default_rcond() if rcond is None else float(rcond)
        s = self.singular_values
        keep = s > rcond * s[..., :1]
        s_inv = torch.where(keep, s.reciprocal(), torch.zeros_like(s))

        Ut_b = (self.U.transpose(-1, -2) @ b.unsqueeze(-1)).squeeze(-1)  # (..., r)
        return (self.Vh.transpose(-1, -2) @ (s_inv * Ut_b).unsqueeze(-1)).squeeze(-1)


def decompose(M: ArrayLike) -> SvdDecomposition:
    """Thin SVD of M (..., m, n)."""
    M = as_matrix(M, "M")
    if min(M.shape[-2:]) == 0:
        raise DimensionMismatchError(f"M must be non-empty. Got {tuple(M.shape)}")
    if not torch.isfinite(M).all():
        raise SingularMatrixError("SVD failed: matrix contains inf/nan")

    try:
        U, s, Vh = torch.linalg.svd(M, full_matrices=False)
    except torch.linalg.LinAlgError as e:
        raise SingularMatrixError(f"SVD failed: {e}") from e
    return SvdDecomposition(U=U, singular_values=s, Vh=Vh)


def condition_number(decomposition: SvdDecomposition) -> torch.Tensor:
    return decomposition.condition_number()


def condition_number_of_matrix(M: ArrayLike) -> torch.Tensor:
    return decompose(M).condition_number()


def check_condition_number(
    decomposition: SvdDecomposition,
    *,
    max_condition_number: float,
    sink: Optional[DiagnosticSink] = None,
) -> torch.Tensor:
    """
    Compute the condition number(s) and report at most one diagnostic when any
    problem in the batch exceeds `max_condition_number` (nan counts as exceeding).
    """
    cond = decomposition.condition_number()
    exceeded = ~(cond <= max_condition_number)
    if bool(exceeded.any()):
        worst = float(cond[exceeded].max().detach().cpu().item())
        resolve_sink(sink).warn(
            f"Warning when performing least squares, condition number is {worst:.6e} "
            f"(max allowed {max_condition_number:.1e})",
            condition_number=worst,
        )
    return cond


def solve_svd(
    A: ArrayLike,
    b: ArrayLike,
    *,
    check_condition: bool = True,
    max_condition_number: float = DEFAULT_MAX_CONDITION_NUMBER,
    sink: Optional[DiagnosticSink] = None,
    rcond: Optional[float] = None,
) -> torch.Tensor:
    """
    Solve A x = b with an SVD of A, optionally checking its condition number.

    A : (..., m, n)
    b : (..., m)
    returns x : (..., n)

    Ill-conditioning is advisory: a diagnostic is sent to `sink` and the
    minimum-norm solution is still returned.
    """
    A = as_matrix(A, "A")
    b = as_vector(b, "b", like=A)
    check_rows(A, b, h_name="A", v_name="b")
    if not max_condition_number > 0:
        raise ValueError(f"max_condition_number must be > 0. Got {max_condition_number!r}")

    svd = decompose(A)
    if check_condition:
        check_condition_number(svd, max_condition_number=max_condition_number, sink=sink)
    return svd.solve(b, rcond=rcond)
