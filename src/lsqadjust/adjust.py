# src/lsqadjust/adjust.py
from __future__ import annotations

from typing import Optional, Union

import torch

from lsqadjust.diagnostics import DiagnosticSink
from lsqadjust.exceptions import DimensionMismatchError
from lsqadjust.linalg import DEFAULT_MAX_CONDITION_NUMBER, check_condition_number, decompose
from lsqadjust.normal import inverse_updated_covariance
from lsqadjust.results import AdjustmentResult
from lsqadjust.typing import (
    ArrayLike,
    _is_pandas_df,
    as_matrix,
    as_square,
    as_vector,
    check_batch_shapes,
    check_rows,
)
from lsqadjust.weights import WeightsMode, as_weights


def adjust(
    H: ArrayLike,
    residuals: ArrayLike,
    weights: Optional[ArrayLike] = None,
    apriori_inverse_covariance: Optional[ArrayLike] = None,
    *,
    apriori_correction: Optional[ArrayLike] = None,
    weights_mode: WeightsMode = "precision",
    check_weights: bool = True,
    check_condition: bool = True,
    max_condition_number: float = DEFAULT_MAX_CONDITION_NUMBER,
    sink: Optional[DiagnosticSink] = None,
    rcond: Optional[float] = None,
    dtype: Optional[torch.dtype] = None,
    device: Optional[Union[str, torch.device]] = None,
) -> AdjustmentResult:
    """One weighted least-squares adjustment from an information matrix.

    Solves the normal equations

        (P0^{-1} + H' W H) dx = H' W r + P0^{-1} dx0

    with an SVD of the left-hand side, where W = diag(w) and dx0 is
    `apriori_correction` (zero unless the prior is centred away from the
    current linearization point).

    Inputs
    - H: (n,k) or (..., n, k) information (design) matrix
    - residuals: (n,) or (..., n) observed minus computed
    - weights: None (unit weights), scalar, (n,) or (..., n)
    - apriori_inverse_covariance: None (no prior) or (k,k) / (..., k, k)
    - apriori_correction: None or (k,) / (..., k)

    Conditioning
    - The condition number of N is checked against `max_condition_number`;
      exceeding it sends one diagnostic to `sink` and the solution is still
      returned.

    Returns an AdjustmentResult, which unpacks as (correction, inverse_covariance).
    """
    param_names = None
    if _is_pandas_df(H):
        param_names = [str(c) for c in H.columns]  # type: ignore[attr-defined]

    H = as_matrix(H, "H", dtype=dtype, device=device)
    r = as_vector(residuals, "residuals", like=H)
    check_rows(H, r, h_name="H", v_name="residuals")

    n, k = int(H.shape[-2]), int(H.shape[-1])
    w = as_weights(weights, n=n, like=H, mode=weights_mode, check=check_weights)

    P0_inv = None
    if apriori_inverse_covariance is not None:
        P0_inv = as_square(apriori_inverse_covariance, "apriori_inverse_covariance", k=k, like=H)

    dx0 = None
    if apriori_correction is not None:
        if P0_inv is None:
            raise ValueError("apriori_correction requires apriori_inverse_covariance")
        dx0 = as_vector(apriori_correction, "apriori_correction", like=H)
        if int(dx0.shape[-1]) != k:
            raise DimensionMismatchError(
                f"apriori_correction must have length k={k}. Got {tuple(dx0.shape)}"
            )

    batch_shapes = {"H": H.shape[:-2], "residuals": r.shape[:-1], "weights": w.shape[:-1]}
    if P0_inv is not None:
        batch_shapes["apriori_inverse_covariance"] = P0_inv.shape[:-2]
    if dx0 is not None:
        batch_shapes["apriori_correction"] = dx0.shape[:-1]
    check_batch_shapes(**batch_shapes)

    if not max_condition_number > 0:
        raise ValueError(f"max_condition_number must be > 0. Got {max_condition_number!r}")

    # g = H' (w * r)
    rhs = (H.transpose(-1, -2) @ (w * r).unsqueeze(-1)).squeeze(-1)  # (..., k)
    if dx0 is not None:
        rhs = rhs + (P0_inv @ dx0.unsqueeze(-1)).squeeze(-1)

    # weights are already precision weights here
    N = inverse_updated_covariance(H, w, P0_inv, check_weights=False)  # (..., k, k)

    svd = decompose(N)
    cond = None
    if check_condition:
        cond = check_condition_number(svd, max_condition_number=max_condition_number, sink=sink)
    dx = svd.solve(rhs, rcond=rcond)

    post = r - (H @ dx.unsqueeze(-1)).squeeze(-1)
    wssr = (w * post * post).sum(dim=-1)

    if param_names is not None and dx.ndim != 1:
        param_names = None

    extras: dict[str, object] = {
        "weights_mode": weights_mode,
        "has_apriori": P0_inv is not None,
        "max_condition_number": max_condition_number if check_condition else None,
        "rank": svd.rank(rcond),
    }

    return AdjustmentResult(
        correction=dx,
        inverse_covariance=N,
        condition_number=cond,
        postfit_residuals=post,
        weighted_ssr=wssr,
        nobs=n,
        nparams=k,
        param_names=param_names,
        extras=extras,
    )
