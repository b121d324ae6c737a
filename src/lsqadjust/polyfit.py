from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Sequence

import torch

from lsqadjust.adjust import adjust
from lsqadjust.exceptions import DimensionMismatchError
from lsqadjust.typing import _is_pandas_series, as_torch


def polynomial_design_matrix(x: Any, powers: Sequence[float]) -> torch.Tensor:
    """
    H[i, j] = x_i ** p_j

    x      : (n,)
    powers : k exponents (need not be integers or sorted)
    returns (n, k)
    """
    xt = as_torch(x)
    if xt.ndim != 1:
        raise DimensionMismatchError(f"x must be (n,). Got {tuple(xt.shape)}")
    if len(powers) == 0:
        raise DimensionMismatchError("powers must be non-empty")
    p = torch.as_tensor(list(powers), dtype=xt.dtype, device=xt.device)
    return torch.pow(xt.unsqueeze(-1), p)


def polynomial_fit(x: Any, y: Any, powers: Sequence[float], **adjust_kwargs: Any) -> torch.Tensor:
    """
    Unweighted least-squares fit of y ~ sum_j c_j x^p_j. Returns c (k,).

    Extra keywords (check_condition, max_condition_number, sink, ...) are
    forwarded to `adjust`.
    """
    yt = as_torch(y)
    H = polynomial_design_matrix(x, powers)
    if yt.ndim != 1 or int(yt.shape[0]) != int(H.shape[0]):
        raise DimensionMismatchError(
            f"x and y must have equal length. Got x {int(H.shape[0])}, y {tuple(yt.shape)}"
        )
    return adjust(H, yt, **adjust_kwargs).correction


def polynomial_fit_from_map(
    values: Any,
    powers: Sequence[float],
    **adjust_kwargs: Any,
) -> list[float]:
    """
    Same as `polynomial_fit` for samples given as a mapping x -> y (or a
    pandas.Series indexed by x). Samples are taken in ascending order of x.
    """
    if _is_pandas_series(values):
        values = values.sort_index()
        xs = values.index.to_numpy(dtype=float)
        ys = values.to_numpy(dtype=float)
    elif isinstance(values, Mapping):
        items = sorted(values.items())
        xs = [float(k) for k, _ in items]
        ys = [float(v) for _, v in items]
    else:
        raise TypeError(f"values must be a mapping or pandas.Series. Got {type(values).__name__}")

    return polynomial_fit(xs, ys, powers, **adjust_kwargs).tolist()
