import torch
import pytest

@pytest.fixture(scope="session")
def torch_dtype():
    # Use float64 in tests for numerical stability.
    return torch.float64

def make_design(n: int, k: int, *, seed: int = 123, dtype=torch.float64):
    """
    Deterministic-ish linearized observation model with full column rank (almost surely).
    Returns:
      H : (n,k)
      dx_true : (k,)
      r : (n,)  = H dx_true + small noise
    """
    g = torch.Generator().manual_seed(seed)
    H = torch.randn((n, k), generator=g, dtype=dtype)
    dx_true = torch.linspace(-1.0, 1.0, k, dtype=dtype)
    r = H @ dx_true + 1e-3 * torch.randn(n, generator=g, dtype=dtype)
    return H, dx_true, r


def make_spd(k: int, *, seed: int = 0, dtype=torch.float64):
    g = torch.Generator().manual_seed(seed)
    A = torch.randn(k, k, generator=g, dtype=dtype)
    return A @ A.T + 0.5 * torch.eye(k, dtype=dtype)
