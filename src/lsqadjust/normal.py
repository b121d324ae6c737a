# src/lsqadjust/normal.py
from __future__ import annotations

from typing import Optional

import torch

from lsqadjust.linalg import inv_symmetric
from lsqadjust.typing import ArrayLike, as_matrix, as_square, check_batch_shapes
from lsqadjust.weights import WeightsMode, as_weights


def _weighted(H: torch.Tensor, w: torch.Tensor) -> torch.Tensor:
    # diag(w) H without building diag(w)
    return H * w.unsqueeze(-1)


def weight_information_matrix(
    H: ArrayLike,
    weights: Optional[ArrayLike],
    *,
    weights_mode: WeightsMode = "precision",
    check_weights: bool = True,
) -> torch.Tensor:
    """
    Scale row i of the information matrix by w_i, i.e. W H with W = diag(w).

    H       : (..., n, k)
    weights : None (unit), scalar, (n,) or (..., n)
    returns : (..., n, k)
    """
    H = as_matrix(H, "H")
    n = int(H.shape[-2])
    w = as_weights(weights, n=n, like=H, mode=weights_mode, check=check_weights)
    return _weighted(H, w)


def inverse_updated_covariance(
    H: ArrayLike,
    weights: Optional[ArrayLike] = None,
    apriori_inverse_covariance: Optional[ArrayLike] = None,
    *,
    weights_mode: WeightsMode = "precision",
    check_weights: bool = True,
) -> torch.Tensor:
    """
    Inverse covariance after processing a batch of observations:

        N = P0^{-1} + H' W H

    H       : (..., n, k)
    weights : None (unit), scalar, (n,) or (..., n)
    apriori_inverse_covariance : None (no prior) or (..., k, k)
    returns N : (..., k, k)

    The prior enters additively, so information from earlier arcs or iterations
    can be carried forward as P0^{-1}.
    """
    H = as_matrix(H, "H")
    n, k = int(H.shape[-2]), int(H.shape[-1])
    w = as_weights(weights, n=n, like=H, mode=weights_mode, check=check_weights)

    P0_inv = None
    if apriori_inverse_covariance is not None:
        P0_inv = as_square(apriori_inverse_covariance, "apriori_inverse_covariance", k=k, like=H)
        check_batch_shapes(
            H=H.shape[:-2], weights=w.shape[:-1], apriori_inverse_covariance=P0_inv.shape[:-2]
        )

    N = H.transpose(-1, -2) @ _weighted(H, w)
    if P0_inv is not None:
        N = P0_inv + N
    return N


def covariance_from_inverse(inverse_covariance: ArrayLike) -> torch.Tensor:
    """P = N^{-1}. Raises SingularMatrixError when N cannot be inverted."""
    N = as_matrix(inverse_covariance, "inverse_covariance")
    return inv_symmetric(N, name="inverse_covariance")
