# src/lsqadjust/vectors.py
from __future__ import annotations

from typing import Any, Callable

import torch

from lsqadjust.exceptions import DimensionMismatchError
from lsqadjust.typing import as_torch


def _as_3vec(v: Any, name: str) -> torch.Tensor:
    t = as_torch(v)
    if t.ndim < 1 or int(t.shape[-1]) != 3:
        raise DimensionMismatchError(f"{name} must be (..., 3). Got {tuple(t.shape)}")
    return t


def cross_product_matrix(v: Any) -> torch.Tensor:
    """
    Skew-symmetric matrix [v]x such that [v]x @ u == cross(v, u).

    v : (..., 3)  ->  (..., 3, 3)
    """
    v = _as_3vec(v, "v")
    x, y, z = v[..., 0], v[..., 1], v[..., 2]
    zero = torch.zeros_like(x)
    return torch.stack(
        [
            torch.stack([zero, -z, y], dim=-1),
            torch.stack([z, zero, -x], dim=-1),
            torch.stack([-y, x, zero], dim=-1),
        ],
        dim=-2,
    )


def cosine_of_angle_between_vectors(a: Any, b: Any) -> torch.Tensor:
    """Cosine of the angle between a and b, clamped to [-1, 1]."""
    a = as_torch(a)
    b = as_torch(b, dtype=a.dtype, device=a.device)
    if int(a.shape[-1]) != int(b.shape[-1]):
        raise DimensionMismatchError(
            f"vectors must have equal size. Got {tuple(a.shape)} and {tuple(b.shape)}"
        )
    a_hat = a / torch.linalg.vector_norm(a, dim=-1, keepdim=True)
    b_hat = b / torch.linalg.vector_norm(b, dim=-1, keepdim=True)
    return torch.clamp((a_hat * b_hat).sum(dim=-1), -1.0, 1.0)


def angle_between_vectors(a: Any, b: Any) -> torch.Tensor:
    """Angle in radians, in [0, pi]."""
    return torch.acos(cosine_of_angle_between_vectors(a, b))


def vector_difference(a: Any, b: Any) -> torch.Tensor:
    a = _as_3vec(a, "a")
    return a - _as_3vec(b, "b").to(dtype=a.dtype, device=a.device)


def norm_of_vector_difference(a: Any, b: Any) -> torch.Tensor:
    return torch.linalg.vector_norm(vector_difference(a, b), dim=-1)


def vector_norm(v: Any) -> torch.Tensor:
    return torch.linalg.vector_norm(_as_3vec(v, "v"), dim=-1)


def evaluate_second_block_in_state_vector(
    state_function: Callable[[float], Any],
    time: float,
) -> torch.Tensor:
    """Velocity block (elements 3:6) of a 6-element state evaluated once at `time`."""
    state = as_torch(state_function(time))
    if int(state.shape[-1]) != 6:
        raise DimensionMismatchError(f"state must be (..., 6). Got {tuple(state.shape)}")
    return state[..., 3:6]


def vector_norm_from_function(vector_function: Callable[[], Any]) -> torch.Tensor:
    return vector_norm(vector_function())
