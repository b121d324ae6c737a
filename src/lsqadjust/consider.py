from __future__ import annotations

from typing import Optional

import torch

from lsqadjust.exceptions import DimensionMismatchError
from lsqadjust.linalg import inv_symmetric
from lsqadjust.normal import _weighted, inverse_updated_covariance
from lsqadjust.typing import ArrayLike, as_matrix, check_batch_shapes
from lsqadjust.weights import WeightsMode, as_weights


def _check_consider_shapes(
    H: torch.Tensor,
    Hc: torch.Tensor,
    Pc: torch.Tensor,
) -> None:
    """
    H  : (..., n, k)  information matrix of estimated parameters
    Hc : (..., n, c)  information matrix of consider parameters
    Pc : (..., c, c)  covariance of consider parameters
    """
    n = int(H.shape[-2])
    if int(Hc.shape[-2]) != n:
        raise DimensionMismatchError(
            f"consider_information_matrix must have n={n} rows. Got {tuple(Hc.shape)}"
        )
    c = int(Hc.shape[-1])
    if Pc.ndim < 2 or tuple(Pc.shape[-2:]) != (c, c):
        raise DimensionMismatchError(
            f"consider_covariance must be (..., {c}, {c}). Got {tuple(Pc.shape)}"
        )


def _consider_terms(
    H: ArrayLike,
    weights: Optional[ArrayLike],
    apriori_inverse_covariance: Optional[ArrayLike],
    consider_information_matrix: ArrayLike,
    consider_covariance: ArrayLike,
    weights_mode: WeightsMode,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Return (P_noise, (S Hc) Pc (S Hc)')."""
    H = as_matrix(H, "H")
    Hc = as_matrix(consider_information_matrix, "consider_information_matrix")
    Hc = Hc.to(dtype=H.dtype, device=H.device)
    Pc = as_matrix(consider_covariance, "consider_covariance").to(dtype=H.dtype, device=H.device)
    _check_consider_shapes(H, Hc, Pc)

    w = as_weights(weights, n=int(H.shape[-2]), like=H, mode=weights_mode)
    check_batch_shapes(
        H=H.shape[:-2],
        weights=w.shape[:-1],
        consider_information_matrix=Hc.shape[:-2],
        consider_covariance=Pc.shape[:-2],
    )

    N = inverse_updated_covariance(H, w, apriori_inverse_covariance, check_weights=False)
    P_noise = inv_symmetric(N, name="inverse_covariance")  # (..., k, k)

    S = P_noise @ _weighted(H, w).transpose(-1, -2)  # (..., k, n)

    SHc = S @ Hc  # (..., k, c)
    return P_noise, SHc @ Pc @ SHc.transpose(-1, -2)


def covariance_with_consider_parameters(
    H: ArrayLike,
    weights: Optional[ArrayLike],
    apriori_inverse_covariance: Optional[ArrayLike],
    consider_information_matrix: ArrayLike,
    consider_covariance: ArrayLike,
    *,
    weights_mode: WeightsMode = "precision",
) -> torch.Tensor:
    """
    Covariance of the estimated parameters including the effect of consider
    parameters (parameters not solved for, with known covariance Pc):

        P_noise = (P0^{-1} + H' W H)^{-1}
        S       = P_noise (W H)'
        P       = P_noise + (S Hc) Pc (Hc' S')

    `weights=None` means unit weights and `apriori_inverse_covariance=None`
    means no prior. Raises SingularMatrixError if the inverse covariance
    cannot be inverted.
    """
    P_noise, inflation = _consider_terms(
        H,
        weights,
        apriori_inverse_covariance,
        consider_information_matrix,
        consider_covariance,
        weights_mode,
    )
    return P_noise + inflation


def consider_covariance_inflation(
    H: ArrayLike,
    weights: Optional[ArrayLike],
    apriori_inverse_covariance: Optional[ArrayLike],
    consider_information_matrix: ArrayLike,
    consider_covariance: ArrayLike,
    *,
    weights_mode: WeightsMode = "precision",
) -> torch.Tensor:
    """Only the consider term (S Hc) Pc (S Hc)'; PSD whenever Pc is PSD."""
    _, inflation = _consider_terms(
        H,
        weights,
        apriori_inverse_covariance,
        consider_information_matrix,
        consider_covariance,
        weights_mode,
    )
    return inflation
