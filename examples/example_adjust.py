"""
Batch least-squares example (linearized range observations, two data arcs)

Goal
- Show one adjustment iteration with lsqadjust.adjust on a small linearized
  problem: estimate a position offset and a range bias from range residuals.
- Carry the information of the first arc into the second as an a-priori
  inverse covariance.
- Report the covariance with an unestimated station-delay parameter
  "considered".

Design
- Stations on a circle observe a target near the origin.
- Partials of range w.r.t. (x, y, bias) form the information matrix H.
- Observation sigma is known per station, so weights are passed as sigma
  (weights_mode="sqrt_variance").
"""

from __future__ import annotations

import math

import torch

from lsqadjust import LoggingSink, adjust, covariance_with_consider_parameters


def range_partials(stations: torch.Tensor, position: torch.Tensor) -> torch.Tensor:
    """d(range)/d(x, y, bias) for each station. stations: (n,2), position: (2,)."""
    los = position.unsqueeze(0) - stations                      # (n,2)
    rho = torch.linalg.vector_norm(los, dim=1, keepdim=True)     # (n,1)
    return torch.cat([los / rho, torch.ones_like(rho)], dim=1)   # (n,3)


def main() -> None:
    torch.manual_seed(7)
    dtype = torch.float64

    n = 12
    angles = torch.linspace(0.0, 2.0 * math.pi, n + 1, dtype=dtype)[:-1]
    stations = 100.0 * torch.stack([torch.cos(angles), torch.sin(angles)], dim=1)  # (n,2)
    sigma = 0.05 + 0.05 * torch.rand(n, dtype=dtype)                               # (n,)

    truth = torch.tensor([1.5, -0.7, 0.3], dtype=dtype)  # x, y, bias
    nominal = torch.zeros(3, dtype=dtype)

    H = range_partials(stations, nominal[:2])
    sink = LoggingSink()

    # ----------------------------
    # Arc 1: no prior
    # ----------------------------
    r1 = H @ (truth - nominal) + sigma * torch.randn(n, dtype=dtype)
    arc1 = adjust(H, r1, sigma, weights_mode="sqrt_variance", sink=sink)
    print("Arc 1")
    print(arc1.summary())

    # ----------------------------
    # Arc 2: arc 1 as prior
    # ----------------------------
    r2 = H @ (truth - nominal) + sigma * torch.randn(n, dtype=dtype)
    arc2 = adjust(
        H,
        r2,
        sigma,
        arc1.inverse_covariance,
        apriori_correction=arc1.correction,
        weights_mode="sqrt_variance",
        sink=sink,
    )
    print("\nArc 2 (arc 1 as prior)")
    print(arc2.summary())

    # ----------------------------
    # Consider a common station delay (not estimated), sd = 2 cm
    # ----------------------------
    Hc = torch.linspace(0.5, 1.5, n, dtype=dtype).unsqueeze(1)  # (n,1) elevation-dependent mapping
    Pc = torch.tensor([[0.02**2]], dtype=dtype)
    P = covariance_with_consider_parameters(
        H, sigma, arc1.inverse_covariance, Hc, Pc, weights_mode="sqrt_variance"
    )

    print("\nStd errors (noise only):", arc2.std_errors().tolist())
    print("Std errors (with consider):", torch.sqrt(torch.diagonal(P)).tolist())


if __name__ == "__main__":
    main()
