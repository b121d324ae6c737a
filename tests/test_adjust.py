import warnings

import torch
import pytest

from lsqadjust import (
    AdjustmentResult,
    NullSink,
    DimensionMismatchError,
    RecordingSink,
    SingularMatrixError,
    adjust,
    inverse_updated_covariance,
)

from conftest import make_design, make_spd


def test_exact_overdetermined_fit():
    H = [[1, 0], [0, 1], [1, 1]]
    r = [1, 2, 3]

    res = adjust(H, r, [1, 1, 1])

    assert isinstance(res, AdjustmentResult)
    assert torch.allclose(res.correction, torch.tensor([1.0, 2.0], dtype=torch.float64), atol=1e-12)
    assert torch.max(torch.abs(res.postfit_residuals)).item() < 1e-12
    assert res.weighted_ssr.item() < 1e-20


def test_unpacks_as_correction_and_inverse_covariance(torch_dtype):
    H, _, r = make_design(20, 3, dtype=torch_dtype)
    dx, N = adjust(H, r)
    assert dx.shape == (3,)
    assert N.shape == (3, 3)


def test_unit_weights_equal_closed_form_ols(torch_dtype):
    H, _, r = make_design(40, 4, seed=99, dtype=torch_dtype)

    res = adjust(H, r, torch.ones(40, dtype=torch_dtype))
    closed_form = torch.linalg.inv(H.T @ H) @ H.T @ r

    assert torch.max(torch.abs(res.correction - closed_form)).item() < 1e-10
    assert torch.allclose(res.inverse_covariance, H.T @ H)


def test_default_weights_and_prior_match_explicit(torch_dtype):
    H, _, r = make_design(15, 3, seed=4, dtype=torch_dtype)

    res_default = adjust(H, r)
    res_explicit = adjust(H, r, torch.ones(15, dtype=torch_dtype), torch.zeros(3, 3, dtype=torch_dtype))

    assert torch.allclose(res_default.correction, res_explicit.correction, atol=1e-12)
    assert torch.allclose(res_default.inverse_covariance, res_explicit.inverse_covariance)


def test_weighted_matches_normal_equations(torch_dtype):
    H, _, r = make_design(30, 3, seed=12, dtype=torch_dtype)
    w = 1.0 + torch.linspace(0.1, 3.0, 30, dtype=torch_dtype)
    P0_inv = make_spd(3, seed=1, dtype=torch_dtype)

    res = adjust(H, r, w, P0_inv)

    N = P0_inv + H.T @ torch.diag(w) @ H
    expected = torch.linalg.solve(N, H.T @ (w * r))
    assert torch.allclose(res.correction, expected, atol=1e-10)
    assert torch.allclose(res.inverse_covariance, inverse_updated_covariance(H, w, P0_inv))


def test_weights_mode_sigma_equals_precision(torch_dtype):
    H, _, r = make_design(25, 2, seed=3, dtype=torch_dtype)
    sigma = torch.linspace(0.5, 2.0, 25, dtype=torch_dtype)

    res_sigma = adjust(H, r, sigma, weights_mode="sqrt_variance")
    res_prec = adjust(H, r, 1.0 / sigma**2)

    assert torch.allclose(res_sigma.correction, res_prec.correction, atol=1e-12)


def test_zero_weight_drops_observation(torch_dtype):
    H, _, r = make_design(10, 2, seed=5, dtype=torch_dtype)
    w = torch.ones(10, dtype=torch_dtype)
    w[3] = 0.0
    r_outlier = r.clone()
    r_outlier[3] = 1e6

    res_clean = adjust(H, r, w)
    res_outlier = adjust(H, r_outlier, w)

    assert torch.allclose(res_clean.correction, res_outlier.correction, atol=1e-10)


def test_strong_prior_pulls_towards_apriori_correction(torch_dtype):
    H, _, r = make_design(10, 2, seed=6, dtype=torch_dtype)
    dx0 = torch.tensor([5.0, -5.0], dtype=torch_dtype)
    P0_inv = 1e12 * torch.eye(2, dtype=torch_dtype)

    res = adjust(H, r, None, P0_inv, apriori_correction=dx0)

    assert torch.allclose(res.correction, dx0, atol=1e-6)


def test_apriori_correction_requires_prior(torch_dtype):
    H, _, r = make_design(10, 2, dtype=torch_dtype)
    with pytest.raises(ValueError):
        adjust(H, r, apriori_correction=[0.0, 0.0])


def test_ill_conditioned_warns_once_and_returns(torch_dtype):
    H = torch.tensor([[1.0, 1.0], [1.0, 1.0 + 1e-7], [1.0, 1.0 - 1e-7]], dtype=torch_dtype)
    r = torch.tensor([2.0, 2.0, 2.0], dtype=torch_dtype)
    sink = RecordingSink()

    res = adjust(H, r, sink=sink)

    assert len(sink) == 1
    assert res.condition_number.item() > 1e8
    assert torch.isfinite(res.correction).all()


def test_condition_number_reported(torch_dtype):
    H, _, r = make_design(20, 3, dtype=torch_dtype)
    res = adjust(H, r)
    expected = torch.linalg.cond(H.T @ H)
    assert res.condition_number.item() == pytest.approx(expected.item(), rel=1e-8)

    unchecked = adjust(H, r, check_condition=False)
    assert unchecked.condition_number is None


def test_batched_adjustment(torch_dtype):
    H1, _, r1 = make_design(12, 3, seed=1, dtype=torch_dtype)
    H2, _, r2 = make_design(12, 3, seed=2, dtype=torch_dtype)

    res = adjust(torch.stack([H1, H2]), torch.stack([r1, r2]))

    assert res.correction.shape == (2, 3)
    assert res.inverse_covariance.shape == (2, 3, 3)
    assert torch.allclose(res.correction[0], adjust(H1, r1).correction, atol=1e-12)
    assert torch.allclose(res.correction[1], adjust(H2, r2).correction, atol=1e-12)


def test_covariance_and_std_errors(torch_dtype):
    H, _, r = make_design(30, 3, dtype=torch_dtype)
    res = adjust(H, r)

    P = res.covariance()
    assert torch.allclose(P, torch.linalg.inv(H.T @ H), atol=1e-12)
    assert torch.allclose(res.std_errors(), torch.sqrt(torch.diagonal(P)))
    corr = res.correlation()
    assert torch.allclose(torch.diagonal(corr), torch.ones(3, dtype=torch_dtype))

    text = res.summary()
    assert "x0" in text and "Weighted RMS" in text


def test_singular_normal_matrix_covariance_raises(torch_dtype):
    H = torch.tensor([[1.0, 2.0], [2.0, 4.0]], dtype=torch_dtype)
    res = adjust(H, [1.0, 2.0], check_condition=False)
    with pytest.raises(SingularMatrixError):
        res.covariance()


def test_dimension_mismatch(torch_dtype):
    H, _, r = make_design(10, 2, dtype=torch_dtype)
    with pytest.raises(DimensionMismatchError):
        adjust(H, r[:-1])
    with pytest.raises(DimensionMismatchError):
        adjust(H, r, torch.ones(9, dtype=torch_dtype))
    with pytest.raises(DimensionMismatchError):
        adjust(H, r, None, torch.eye(3, dtype=torch_dtype))
    with pytest.raises(DimensionMismatchError):
        adjust(H, r, None, torch.eye(2, dtype=torch_dtype), apriori_correction=[1.0])


def test_collinear_non_integer_rows_covariance_raises(torch_dtype):
    H = torch.tensor([[0.1, 0.3], [0.2, 0.6], [0.7, 2.1]], dtype=torch_dtype)
    res = adjust(H, [0.4, 0.8, 2.8], check_condition=False)

    assert int(res.extras["rank"]) == 1
    with pytest.raises(SingularMatrixError):
        res.covariance()


def test_batch_dimension_mismatch(torch_dtype):
    g = torch.Generator().manual_seed(0)
    H = torch.randn((2, 5, 2), generator=g, dtype=torch_dtype)
    r = torch.randn((2, 5), generator=g, dtype=torch_dtype)

    with pytest.raises(DimensionMismatchError):
        adjust(H, torch.randn((3, 5), generator=g, dtype=torch_dtype))
    with pytest.raises(DimensionMismatchError):
        adjust(H, r, torch.ones((3, 5), dtype=torch_dtype))
    with pytest.raises(DimensionMismatchError):
        adjust(H, r, None, torch.eye(2, dtype=torch_dtype).expand(3, 2, 2))
    with pytest.raises(DimensionMismatchError):
        adjust(
            H,
            r,
            None,
            torch.eye(2, dtype=torch_dtype),
            apriori_correction=torch.zeros((3, 2), dtype=torch_dtype),
        )
    # broadcasting batch dims are accepted
    res = adjust(H, r[0], torch.ones((1, 5), dtype=torch_dtype))
    assert res.correction.shape == (2, 2)


def test_null_sink_silences_all_side_effects(torch_dtype):
    H, _, r = make_design(3, 2, seed=8, dtype=torch_dtype)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        res = adjust(H, r, [1e-6, 1.0, 1e4], max_condition_number=1.0, sink=NullSink())
    assert torch.isfinite(res.correction).all()
