from __future__ import annotations

from typing import Optional

import torch

from lsqadjust.exceptions import DimensionMismatchError, SingularMatrixError
from lsqadjust.linalg.svd import decompose


def inv_checked(A: torch.Tensor, *, name: str = "A", rcond: Optional[float] = None) -> torch.Tensor:
    """
    Batched inverse via SVD. Raises SingularMatrixError when any matrix in the
    batch is numerically rank deficient, i.e. has a singular value at or below
    rcond * s_max (default rcond = k * eps).
    """
    if A.ndim < 2 or A.shape[-1] != A.shape[-2]:
        raise DimensionMismatchError(f"{name} must be (...,k,k). Got {tuple(A.shape)}")
    if not torch.isfinite(A).all():
        raise SingularMatrixError(f"{name} contains inf/nan")

    svd = decompose(A)
    k = int(A.shape[-1])
    rank = svd.rank(rcond)
    if bool((rank < k).any()):
        raise SingularMatrixError(
            f"{name} is singular and cannot be inverted (rank {int(rank.min())} < {k})."
        )

    s_inv = svd.singular_values.reciprocal()
    return svd.Vh.transpose(-1, -2) @ (s_inv.unsqueeze(-1) * svd.U.transpose(-1, -2))


def inv_symmetric(A: torch.Tensor, *, name: str = "A", rcond: Optional[float] = None) -> torch.Tensor:
    """Inverse of a symmetric matrix, symmetrized to remove round-off asymmetry."""
    A_inv = inv_checked(A, name=name, rcond=rcond)
    return 0.5 * (A_inv + A_inv.transpose(-1, -2))
