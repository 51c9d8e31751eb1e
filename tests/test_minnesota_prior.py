import numpy as np
import pytest

from macrobvar.errors import ConfigurationError
from macrobvar.spec import MinnesotaPrior, ModelSpec, SamplerConfig


def test_minnesota_prior_shapes_and_own_lag_mean() -> None:
    rng = np.random.default_rng(123)
    y = rng.standard_normal((80, 3))

    prior = MinnesotaPrior.from_data(y, p=2, kappa1=0.2, kappa2=10.0)

    k_expected = 1 + 3 * 2
    assert prior.a0.shape == (k_expected, 3)
    assert prior.v0.shape == (k_expected, k_expected)
    assert prior.s0.shape == (3, 3)
    assert prior.nu0 == 4.0
    assert (prior.k, prior.n, prior.p) == (k_expected, 3, 2)

    # identity block on own first lags, zeros elsewhere
    assert np.allclose(prior.a0[1:4, :], np.eye(3))
    assert np.allclose(prior.a0[0, :], 0.0)
    assert np.allclose(prior.a0[4:, :], 0.0)

    assert np.all(np.diag(prior.s0) > 0)
    assert np.allclose(prior.s0, np.diag(np.diag(prior.s0)))


def test_minnesota_prior_variances() -> None:
    prior = MinnesotaPrior.from_hyperparameters(
        n=2, p=3, kappa1=0.5, kappa2=100.0, sigma_hat=np.diag([1.0, 2.0])
    )
    v = prior.v0_diag
    assert v[0] == 100.0
    assert np.allclose(v[1:3], 0.5)
    assert np.allclose(v[3:5], 0.5 / 4.0)
    assert np.allclose(v[5:7], 0.5 / 9.0)
    assert np.allclose(np.diag(prior.s0), [1.0, 2.0])


def test_minnesota_prior_shrinkage_is_monotone_in_lag() -> None:
    prior = MinnesotaPrior.from_hyperparameters(n=3, p=4, kappa1=0.1, kappa2=10.0, sigma_hat=np.eye(3))
    per_lag = prior.v0_diag[1:].reshape(4, 3)
    assert np.all(np.diff(per_lag[:, 0]) < 0)
    assert np.allclose(per_lag, per_lag[:, :1])


def test_minnesota_prior_ignores_sigma_hat_off_diagonal() -> None:
    sigma_hat = np.array([[1.0, 0.8], [0.8, 1.0]])
    prior = MinnesotaPrior.from_hyperparameters(n=2, p=1, kappa1=0.1, kappa2=1.0, sigma_hat=sigma_hat)
    assert np.allclose(prior.s0, np.eye(2))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n": 2, "p": 0, "kappa1": 0.1, "kappa2": 1.0},
        {"n": 0, "p": 1, "kappa1": 0.1, "kappa2": 1.0},
        {"n": 2, "p": 1, "kappa1": 0.0, "kappa2": 1.0},
        {"n": 2, "p": 1, "kappa1": 0.1, "kappa2": -1.0},
    ],
)
def test_minnesota_prior_invalid_hyperparameters_raise(kwargs: dict) -> None:
    with pytest.raises(ConfigurationError):
        MinnesotaPrior.from_hyperparameters(sigma_hat=np.eye(max(kwargs["n"], 1)), **kwargs)


def test_minnesota_prior_sigma_hat_shape_mismatch_raises() -> None:
    with pytest.raises(ConfigurationError):
        MinnesotaPrior.from_hyperparameters(n=2, p=1, kappa1=0.1, kappa2=1.0, sigma_hat=np.eye(3))


def test_minnesota_prior_from_data_too_short_raises() -> None:
    with pytest.raises(ConfigurationError):
        MinnesotaPrior.from_data(np.zeros((2, 2)), p=2)


def test_prior_validation_rejects_small_nu0() -> None:
    with pytest.raises(ConfigurationError):
        MinnesotaPrior(a0=np.zeros((3, 2)), v0=np.eye(3), s0=np.eye(2), nu0=2.0)


def test_prior_validation_rejects_non_diagonal_v0() -> None:
    v0 = np.eye(3)
    v0[0, 1] = v0[1, 0] = 0.1
    with pytest.raises(ConfigurationError):
        MinnesotaPrior(a0=np.zeros((3, 2)), v0=v0, s0=np.eye(2), nu0=3.0)


def test_model_and_sampler_validation() -> None:
    with pytest.raises(ConfigurationError):
        ModelSpec(p=0)
    with pytest.raises(ConfigurationError):
        SamplerConfig(draws=0)
    with pytest.raises(ConfigurationError):
        SamplerConfig(draws=10, thin=0)

    for bad in (
        {"draws": 10.5, "burn_in": 0},
        {"draws": 10.0, "burn_in": 0},
        {"draws": 10, "burn_in": 1.5},
        {"draws": 10, "burn_in": 0, "thin": 2.0},
        {"draws": True, "burn_in": 0},
        {"draws": 5, "burn_in": 5},
        {"draws": 5, "burn_in": 9},
    ):
        with pytest.raises(ConfigurationError):
            SamplerConfig(**bad)
    with pytest.raises(ConfigurationError):
        ModelSpec(p=2.0)

    assert SamplerConfig(draws=10, burn_in=4, thin=2).kept == 3
    assert SamplerConfig(draws=5, burn_in=4, thin=3).kept == 1
    assert SamplerConfig(draws=np.int64(6), burn_in=np.int64(0)).kept == 6
    assert not ModelSpec(p=1).stochastic_volatility
