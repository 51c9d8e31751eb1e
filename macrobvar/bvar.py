from __future__ import annotations

import numpy as np

from .errors import ConfigurationError, NumericalError
from .linalg import cholesky, inv_psd, sample_matrix_normal, sample_wishart, symmetrize
from .results import PosteriorNIW
from .spec import MinnesotaPrior


def posterior_niw(
    *,
    x: np.ndarray,
    y: np.ndarray,
    prior: MinnesotaPrior,
    weights: np.ndarray | None = None,
) -> PosteriorNIW:
    """Compute NIW posterior parameters for VAR coefficients.

    Model:
        Y | A, Sigma ~ MN(X A, Sigma, Omega^-1)
        A | Sigma ~ MN(a0, Sigma, V0)
        Sigma ~ InvWishart(nu0, S0)

    ``weights`` is the diagonal of the precision weighting ``Omega`` (length T).
    ``None`` gives the homoskedastic model; ``1 / sigma2_t`` gives the conditional
    posterior of the stochastic volatility model.

    Posterior:
        inv_vn = X' Omega X + V0^-1
        mn     = vn (X' Omega Y + V0^-1 a0)
        nun    = T + nu0
        sn     = S0 + Y' Omega Y + a0' V0^-1 a0 - mn' inv_vn mn

    Raises:
        NumericalError: if ``inv_vn`` or ``sn`` is not positive-definite.
    """
    xt = np.asarray(x, dtype=float)
    yt = np.asarray(y, dtype=float)

    if xt.ndim != 2 or yt.ndim != 2:
        raise ConfigurationError("x and y must be 2D arrays")

    t, k = xt.shape
    if t < 1:
        raise ConfigurationError("x must have at least one row")
    if yt.shape[0] != t:
        raise ConfigurationError("x and y must have the same number of rows")

    n = yt.shape[1]
    if prior.a0.shape != (k, n):
        raise ConfigurationError("prior.a0 must have shape (K, N) matching x and y")

    if weights is None:
        w = np.ones(t, dtype=float)
    else:
        w = np.asarray(weights, dtype=float).reshape(-1)
        if w.shape != (t,):
            raise ConfigurationError("weights must have shape (T,)")
        if np.any(~np.isfinite(w)) or np.any(w <= 0):
            raise ConfigurationError("weights must be finite and > 0")

    inv_v0_diag = 1.0 / prior.v0_diag
    xw = xt * w[:, None]

    inv_vn = symmetrize(xt.T @ xw + np.diag(inv_v0_diag))
    vn = inv_psd(inv_vn, name="posterior precision")

    rhs = xw.T @ yt + inv_v0_diag[:, None] * prior.a0
    mn = vn @ rhs

    sn = (
        prior.s0
        + yt.T @ (w[:, None] * yt)
        + prior.a0.T @ (inv_v0_diag[:, None] * prior.a0)
        - mn.T @ inv_vn @ mn
    )
    sn = symmetrize(sn)
    inv_sn = inv_psd(sn, name="posterior scale")

    return PosteriorNIW(inv_vn=inv_vn, vn=vn, mn=mn, nun=float(t + prior.nu0), sn=sn, inv_sn=inv_sn)


def sample_posterior_niw(
    posterior: PosteriorNIW,
    *,
    draws: int,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray]:
    """Sample (A, Sigma) from a matrix-normal inverse-Wishart posterior.

    Each draw takes ``Sigma^-1 ~ Wishart(nun, sn^-1)`` and then
    ``A = mn + chol(vn) Z chol(Sigma)'`` with ``Z`` standard normal (K, N).
    All precision draws are taken in one batch before the coefficient draws.

    Returns:
        beta_draws: (D, K, N)
        sigma_draws: (D, N, N)
    """
    if draws < 1:
        raise ValueError("draws must be >= 1")

    lv = cholesky(posterior.vn, name="posterior coefficient covariance")
    prec = sample_wishart(
        df=posterior.nun, scale=posterior.inv_sn, rng=rng, size=draws, name="inverse posterior scale"
    )

    try:
        sigma = np.linalg.inv(prec)
        sigma = 0.5 * (sigma + np.swapaxes(sigma, 1, 2))
        ls = np.linalg.cholesky(sigma)
    except np.linalg.LinAlgError as e:
        raise NumericalError("error covariance draw is not positive-definite", matrix="error covariance") from e

    beta = sample_matrix_normal(mean=posterior.mn, row_chol=lv, col_chol=ls, rng=rng)
    return beta, sigma
