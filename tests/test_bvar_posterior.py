import numpy as np
import pytest

from macrobvar.bvar import posterior_niw, sample_posterior_niw
from macrobvar.errors import ConfigurationError, NumericalError
from macrobvar.spec import MinnesotaPrior
from macrobvar.var import design_matrix, simulate_var


def _toy_problem(seed: int = 0, t: int = 120) -> tuple[np.ndarray, np.ndarray, MinnesotaPrior]:
    rng = np.random.default_rng(seed)
    beta = np.array([[0.2, -0.1], [0.5, 0.1], [0.0, 0.4], [0.1, 0.0], [0.0, -0.2]])
    sigma = np.array([[0.5, 0.1], [0.1, 0.3]])
    y = simulate_var(beta=beta, sigma=sigma, t=t, rng=rng, burn_in=50)
    x, yt = design_matrix(y, 2)
    prior = MinnesotaPrior.from_data(y, p=2, kappa1=0.3, kappa2=10.0)
    return x, yt, prior


def test_conjugacy_identity() -> None:
    x, y, prior = _toy_problem()
    post = posterior_niw(x=x, y=y, prior=prior)

    # S_bar written through the posterior-mean residuals
    inv_v0 = np.diag(1.0 / prior.v0_diag)
    resid = y - x @ post.mn
    dev = post.mn - prior.a0
    expected = prior.s0 + resid.T @ resid + dev.T @ inv_v0 @ dev

    assert np.allclose(post.sn, expected, rtol=1e-8, atol=1e-10)

    direct = prior.s0 + y.T @ y + prior.a0.T @ inv_v0 @ prior.a0 - post.mn.T @ post.inv_vn @ post.mn
    assert np.allclose(post.sn, direct, rtol=1e-8, atol=1e-10)
    assert post.nun == x.shape[0] + prior.nu0


def test_posterior_matrices_symmetric_positive_definite() -> None:
    x, y, prior = _toy_problem(1)
    post = posterior_niw(x=x, y=y, prior=prior)

    for m in (post.inv_vn, post.vn, post.sn, post.inv_sn):
        assert np.allclose(m, m.T)
        assert np.all(np.linalg.eigvalsh(m) > 0)

    assert np.allclose(post.vn @ post.inv_vn, np.eye(x.shape[1]), atol=1e-8)
    assert np.allclose(post.sn @ post.inv_sn, np.eye(2), atol=1e-8)


def test_unit_weights_match_unweighted_posterior() -> None:
    x, y, prior = _toy_problem(2)
    a = posterior_niw(x=x, y=y, prior=prior)
    b = posterior_niw(x=x, y=y, prior=prior, weights=np.ones(x.shape[0]))
    assert np.allclose(a.mn, b.mn)
    assert np.allclose(a.sn, b.sn)


def test_weights_equal_row_rescaling() -> None:
    x, y, prior = _toy_problem(3)
    rng = np.random.default_rng(4)
    w = rng.uniform(0.2, 3.0, size=x.shape[0])

    weighted = posterior_niw(x=x, y=y, prior=prior, weights=w)
    scaled = posterior_niw(x=x * np.sqrt(w)[:, None], y=y * np.sqrt(w)[:, None], prior=prior)

    assert np.allclose(weighted.mn, scaled.mn)
    assert np.allclose(weighted.sn, scaled.sn)


def test_invalid_weights_raise() -> None:
    x, y, prior = _toy_problem()
    with pytest.raises(ConfigurationError):
        posterior_niw(x=x, y=y, prior=prior, weights=np.zeros(x.shape[0]))
    with pytest.raises(ConfigurationError):
        posterior_niw(x=x, y=y, prior=prior, weights=np.ones(3))


def test_shape_mismatch_raises() -> None:
    x, y, prior = _toy_problem()
    with pytest.raises(ConfigurationError):
        posterior_niw(x=x[:, :3], y=y, prior=prior)
    with pytest.raises(ConfigurationError):
        posterior_niw(x=x[:-1], y=y, prior=prior)


def test_degenerate_regressors_raise_numerical_error() -> None:
    x, y, prior = _toy_problem()
    x = x.copy()
    x[5, 1] = np.inf
    with pytest.raises(NumericalError) as exc:
        posterior_niw(x=x, y=y, prior=prior)
    assert exc.value.matrix == "posterior precision"


def test_overflowing_scale_raises_numerical_error() -> None:
    x, y, prior = _toy_problem()
    y = y.copy()
    y[3, 0] = 1e200
    with pytest.raises(NumericalError) as exc:
        posterior_niw(x=x, y=y, prior=prior)
    assert exc.value.matrix == "posterior scale"


def test_sample_posterior_shapes_and_reproducibility() -> None:
    x, y, prior = _toy_problem()
    post = posterior_niw(x=x, y=y, prior=prior)

    b1, s1 = sample_posterior_niw(post, draws=25, rng=np.random.default_rng(7))
    b2, s2 = sample_posterior_niw(post, draws=25, rng=np.random.default_rng(7))

    assert b1.shape == (25, 5, 2)
    assert s1.shape == (25, 2, 2)
    assert np.array_equal(b1, b2)
    assert np.array_equal(s1, s2)
    assert np.all(np.linalg.eigvalsh(s1) > 0)


def test_sample_posterior_moments() -> None:
    x, y, prior = _toy_problem(5)
    post = posterior_niw(x=x, y=y, prior=prior)
    beta, sigma = sample_posterior_niw(post, draws=20_000, rng=np.random.default_rng(8))

    n = 2
    sigma_mean = post.sn / (post.nun - n - 1)
    assert np.allclose(sigma.mean(axis=0), sigma_mean, rtol=0.05, atol=5e-3)
    assert np.allclose(beta.mean(axis=0), post.mn, atol=0.02)
