# src/lsqadjust/typing.py
from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np
import torch

from lsqadjust.exceptions import DimensionMismatchError


ArrayLike = Union[torch.Tensor, np.ndarray, Sequence[Any]]
Device = Union[str, torch.device]


def _is_pandas_df(x: Any) -> bool:
    try:
        import pandas as pd  # type: ignore
        return isinstance(x, pd.DataFrame)
    except Exception:
        return False


def _is_pandas_series(x: Any) -> bool:
    try:
        import pandas as pd  # type: ignore
        return isinstance(x, pd.Series)
    except Exception:
        return False


def as_torch(
    x: Any,
    *,
    dtype: Optional[torch.dtype] = None,
    device: Optional[Device] = None,
) -> torch.Tensor:
    """
    Convert common array-likes to torch.Tensor.

    Supports:
    - torch.Tensor
    - numpy.ndarray
    - Python scalars and lists/tuples (nested)
    - pandas.DataFrame / pandas.Series (if pandas installed)

    Integer and boolean inputs are promoted to float64 unless `dtype` is given;
    floating tensors keep their dtype.
    """
    if _is_pandas_df(x) or _is_pandas_series(x):
        x = x.to_numpy()  # type: ignore[attr-defined]

    t = x if isinstance(x, torch.Tensor) else torch.as_tensor(x)

    if dtype is not None:
        t = t.to(dtype=dtype)
    elif not (t.is_floating_point() or t.is_complex()):
        t = t.to(dtype=torch.float64)
    if device is not None:
        t = t.to(device=device)
    return t


def as_matrix(
    x: Any,
    name: str,
    *,
    dtype: Optional[torch.dtype] = None,
    device: Optional[Device] = None,
) -> torch.Tensor:
    """Coerce to a (..., m, n) tensor."""
    t = as_torch(x, dtype=dtype, device=device)
    if t.ndim < 2:
        raise DimensionMismatchError(f"{name} must be (..., m, n). Got {tuple(t.shape)}")
    return t


def as_vector(
    x: Any,
    name: str,
    *,
    like: torch.Tensor,
) -> torch.Tensor:
    """Coerce to a (..., n) tensor on the dtype/device of `like`."""
    t = as_torch(x, dtype=like.dtype, device=like.device)
    if t.ndim < 1:
        raise DimensionMismatchError(f"{name} must be (..., n). Got a scalar")
    return t


def as_square(
    x: Any,
    name: str,
    *,
    k: int,
    like: torch.Tensor,
) -> torch.Tensor:
    """Coerce to a (..., k, k) tensor on the dtype/device of `like`."""
    t = as_torch(x, dtype=like.dtype, device=like.device)
    if t.ndim < 2 or tuple(t.shape[-2:]) != (k, k):
        raise DimensionMismatchError(f"{name} must be (..., {k}, {k}). Got {tuple(t.shape)}")
    if like.ndim >= 2:
        check_batch_shapes(**{"H": like.shape[:-2], name: t.shape[:-2]})
    return t


def check_batch_shapes(**batch_shapes: Sequence[int]) -> torch.Size:
    """
    Return the broadcast of the given leading (batch) shapes, raising
    DimensionMismatchError when they do not broadcast together.
    """
    try:
        return torch.broadcast_shapes(*(tuple(s) for s in batch_shapes.values()))
    except RuntimeError as e:
        detail = ", ".join(f"{name} {tuple(s)}" for name, s in batch_shapes.items())
        raise DimensionMismatchError(f"Batch dims do not broadcast: {detail}") from e


def check_rows(H: torch.Tensor, v: torch.Tensor, *, h_name: str, v_name: str) -> None:
    """Raise if rows(H) != len(v) or their batch dims do not broadcast."""
    n = int(H.shape[-2])
    if int(v.shape[-1]) != n:
        raise DimensionMismatchError(
            f"{v_name} has length {int(v.shape[-1])} but {h_name} has {n} rows "
            f"({h_name} {tuple(H.shape)}, {v_name} {tuple(v.shape)})"
        )
    check_batch_shapes(**{h_name: H.shape[:-2], v_name: v.shape[:-1]})
