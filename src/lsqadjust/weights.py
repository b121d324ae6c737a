from __future__ import annotations

from typing import Any, Literal, Optional
import warnings
import torch

from lsqadjust.exceptions import DimensionMismatchError, InvalidWeightsError
from lsqadjust.typing import as_torch, check_batch_shapes

WeightsMode = Literal["precision", "variance", "sqrt_precision", "sqrt_variance"]

DEFAULT_WEIGHT_RATIO_WARNING = 1e8


def as_weights(
    weights: Optional[Any],
    *,
    n: int,
    like: torch.Tensor,
    mode: WeightsMode = "precision",
    check: bool = True,
    max_ratio: Optional[float] = None,
) -> torch.Tensor:
    """
    Coerce weights to (..., n) precision weights (the diagonal of W).

    Accepted inputs:
      - None   : unit weights (ordinary least squares)
      - scalar
      - (n,)
      - (..., n)

    mode:
      - "precision"      : w = 1/Var(r_i)
      - "variance"       : v = Var(r_i) (converted to w=1/v)
      - "sqrt_precision" : s = sqrt(w)
      - "sqrt_variance"  : sigma = sqrt(v) (converted to w=1/sigma^2)

    Zero weights are allowed and remove an observation from the adjustment.

    If `like` is the information matrix (..., n, k), the batch dims of the
    weights must broadcast against it. `max_ratio` (e.g.
    DEFAULT_WEIGHT_RATIO_WARNING) enables a RuntimeWarning when the ratio of
    the largest to the smallest positive weight exceeds it; the adjustment
    functions leave it off so their only side effect is the diagnostic sink.
    """
    if weights is None:
        return torch.ones(n, dtype=like.dtype, device=like.device)

    w = as_torch(weights, dtype=like.dtype, device=like.device)

    if w.ndim == 0:
        w = w.expand(n)
    elif int(w.shape[-1]) != n:
        raise DimensionMismatchError(f"weights has shape {tuple(w.shape)} but n={n}")
    if like.ndim >= 2:
        check_batch_shapes(H=like.shape[:-2], weights=w.shape[:-1])

    if mode == "precision":
        w_prec = w
    elif mode == "variance":
        w_prec = 1.0 / w
    elif mode == "sqrt_precision":
        w_prec = w * w
    elif mode == "sqrt_variance":
        w_prec = 1.0 / (w * w)
    else:
        raise InvalidWeightsError(
            "mode must be one of {'precision','variance','sqrt_precision','sqrt_variance'}"
        )

    if check:
        if not torch.isfinite(w_prec).all():
            raise InvalidWeightsError("weights contain inf/nan after coercion")
        if (w_prec < 0).any():
            raise InvalidWeightsError("weights must be non-negative")

        positive = w_prec[w_prec > 0]
        if max_ratio is not None and positive.numel() > 0:
            wmin = float(positive.min().detach().cpu().item())
            wmax = float(positive.max().detach().cpu().item())
            ratio = wmax / wmin
            if ratio > max_ratio:
                warnings.warn(
                    f"Very large weight ratio max/min = {ratio:.2e}. This can cause numerical issues.",
                    RuntimeWarning,
                    stacklevel=2,
                )

    return w_prec
