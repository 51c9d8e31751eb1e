from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np
import scipy.linalg
import scipy.special

from .errors import ConfigurationError, SamplingDegeneracy
from .linalg import cholesky, tridiagonal_backward, tridiagonal_cholesky, tridiagonal_forward
from .rng import inverse_chi2


@dataclass(frozen=True, slots=True)
class VolatilitySpec:
    """Stochastic volatility configuration (common log-volatility random walk).

    When enabled in :class:`macrobvar.spec.ModelSpec`, the error covariance at
    time ``t`` is ``exp(h_t) * Sigma`` with ``h_t = h_{t-1} + v_t``,
    ``v_t ~ N(0, sigma_v2)``.

    Parameters
    ----------
    enabled:
        Whether stochastic volatility is enabled.
    epsilon:
        Small positive constant used in the transform ``log((z_t + epsilon)^2)``
        to avoid ``log(0)``.
    h0_prior_mean, h0_prior_var:
        Normal prior for the initial log-volatility state ``h0``.
    sigma_v_prior_scale, sigma_v_prior_df:
        Scaled inverse chi-squared prior for the state innovation variance:
        ``sigma_v2 ~ scale / chi^2(df)``.
    """
    enabled: bool = True
    epsilon: float = 1e-4
    h0_prior_mean: float = 0.0
    h0_prior_var: float = 10.0
    sigma_v_prior_scale: float = 0.05
    sigma_v_prior_df: float = 5.0

    def __post_init__(self) -> None:
        if self.epsilon <= 0 or not np.isfinite(self.epsilon):
            raise ConfigurationError("epsilon must be positive")
        if not np.isfinite(self.h0_prior_mean):
            raise ConfigurationError("h0_prior_mean must be finite")
        if self.h0_prior_var <= 0 or not np.isfinite(self.h0_prior_var):
            raise ConfigurationError("h0_prior_var must be positive")
        if self.sigma_v_prior_scale <= 0 or not np.isfinite(self.sigma_v_prior_scale):
            raise ConfigurationError("sigma_v_prior_scale must be positive")
        if self.sigma_v_prior_df <= 0 or not np.isfinite(self.sigma_v_prior_df):
            raise ConfigurationError("sigma_v_prior_df must be positive")


# Ten-component normal mixture approximating log(chi^2_1)
# (Omori, Chib, Shephard & Nakajima, 2007).
MIXTURE_WEIGHTS = np.array(
    [0.00609, 0.04775, 0.13057, 0.20674, 0.22715, 0.18842, 0.12047, 0.05591, 0.01575, 0.00115],
    dtype=float,
)
MIXTURE_MEANS = np.array(
    [1.92677, 1.34744, 0.73504, 0.02266, -0.85173, -1.97278, -3.46788, -5.55246, -8.68384, -14.65000],
    dtype=float,
)
MIXTURE_VARIANCES = np.array(
    [0.11265, 0.17788, 0.26768, 0.40611, 0.62699, 0.98583, 1.57469, 2.54498, 4.16591, 7.33342],
    dtype=float,
)
_LOG_MIXTURE_WEIGHTS = np.log(MIXTURE_WEIGHTS)
_LOG_SQRT_2PI = 0.5 * np.log(2.0 * np.pi)


@dataclass(frozen=True, slots=True)
class SVState:
    """State of the stochastic volatility Gibbs chain.

    Attributes
    ----------
    h:
        Log-volatility path, shape ``(T,)``.
    h0:
        Initial log-volatility state.
    sigma_v2:
        Innovation variance of the log-volatility random walk.
    s:
        Mixture component index per period, shape ``(T,)`` with entries in
        ``{0, ..., 9}``.
    beta:
        Current VAR coefficient draw, shape ``(K, N)``.
    sigma:
        Current error covariance draw, shape ``(N, N)``.
    """
    h: np.ndarray  # (T,)
    h0: float
    sigma_v2: float
    s: np.ndarray  # (T,)
    beta: np.ndarray  # (K, N)
    sigma: np.ndarray  # (N, N)

    @property
    def sigma2(self) -> np.ndarray:
        """Volatility path ``exp(h)``, shape ``(T,)``."""
        return np.exp(self.h)

    @staticmethod
    def initial(*, t: int, k: int, n: int, spec: VolatilitySpec) -> "SVState":
        """Homoskedastic starting point: ``h = 0`` so the first coefficient draw is unweighted."""
        return SVState(
            h=np.zeros(t, dtype=float),
            h0=float(spec.h0_prior_mean),
            sigma_v2=float(spec.sigma_v_prior_scale / spec.sigma_v_prior_df),
            s=np.zeros(t, dtype=int),
            beta=np.zeros((k, n), dtype=float),
            sigma=np.eye(n, dtype=float),
        )


def standardized_residuals(*, y: np.ndarray, x: np.ndarray, beta: np.ndarray, sigma: np.ndarray) -> np.ndarray:
    """Collapse VAR residuals into one standardized series.

    With ``R`` the upper Cholesky factor of ``Sigma`` (``Sigma = R'R``), the rows of
    ``(Y - X A) R^-1`` are i.i.d. ``N(0, sigma2_t)`` across columns, so their sum
    divided by ``sqrt(N)`` is ``N(0, sigma2_t)``.

    Returns:
        Array of shape (T,).
    """
    e = np.asarray(y, dtype=float) - np.asarray(x, dtype=float) @ np.asarray(beta, dtype=float)
    n = e.shape[1]
    l = cholesky(sigma, name="error covariance")
    u = scipy.linalg.solve_triangular(l, e.T, lower=True, check_finite=False)
    return u.sum(axis=0) / np.sqrt(float(n))


def log_squared(z: np.ndarray, *, epsilon: float) -> np.ndarray:
    """Return ``log((z + epsilon)^2)``, the observation for the mixture approximation."""
    v = np.asarray(z, dtype=float) + float(epsilon)
    return np.log(v * v)


def sample_h0(*, h1: float, sigma_v2: float, prior_mean: float, prior_var: float, rng: np.random.Generator) -> float:
    """Draw the initial log-volatility from its conjugate normal update.

    ``h0 ~ N(h0_hat, 1 / k)`` with ``k = 1/sigma_v2 + 1/prior_var`` and
    ``h0_hat = (prior_mean/prior_var + h1/sigma_v2) / k``.
    """
    if sigma_v2 <= 0 or not np.isfinite(sigma_v2):
        raise ConfigurationError("sigma_v2 must be positive")
    if prior_var <= 0 or not np.isfinite(prior_var):
        raise ConfigurationError("prior_var must be positive")

    k_h0 = (1.0 / sigma_v2) + (1.0 / prior_var)
    h0_hat = ((prior_mean / prior_var) + (h1 / sigma_v2)) / k_h0
    sd = float(np.sqrt(1.0 / k_h0))
    return float(h0_hat + sd * rng.standard_normal())


def sample_sigma_v2(
    *,
    h: np.ndarray,
    h0: float,
    prior_scale: float,
    prior_df: float,
    rng: np.random.Generator,
) -> float:
    """Draw the random-walk innovation variance.

    ``sigma_v2 ~ (prior_scale + sum_t (h_t - h_{t-1})^2) / chi^2(prior_df + T)``
    with ``h_0 = h0``.
    """
    ht = np.asarray(h, dtype=float).reshape(-1)
    dh = ht - np.concatenate([np.array([h0], dtype=float), ht[:-1]])
    scale = float(prior_scale + np.sum(dh * dh))
    df = float(prior_df + ht.shape[0])
    return inverse_chi2(scale=scale, df=df, rng=rng)


def mixture_log_probabilities(*, y_star: np.ndarray, h: np.ndarray) -> np.ndarray:
    """Normalized log-probabilities of the ten mixture components, shape (T, 10).

    Raises:
        SamplingDegeneracy: if every component weight of some period underflows.
    """
    y = np.asarray(y_star, dtype=float).reshape(-1)
    ht = np.asarray(h, dtype=float).reshape(-1)
    if y.shape != ht.shape:
        raise ValueError("y_star and h must have the same shape")

    sd = np.sqrt(MIXTURE_VARIANCES)
    z = (y[:, None] - ht[:, None] - MIXTURE_MEANS[None, :]) / sd[None, :]
    log_q = _LOG_MIXTURE_WEIGHTS[None, :] - _LOG_SQRT_2PI - np.log(sd)[None, :] - 0.5 * z * z

    norm = scipy.special.logsumexp(log_q, axis=1, keepdims=True)
    if not np.all(np.isfinite(norm)):
        bad = int(np.argmin(np.isfinite(norm).reshape(-1)))
        raise SamplingDegeneracy(
            f"all mixture weights underflowed at period {bad}",
            matrix="mixture weights",
        )
    return log_q - norm


def sample_mixture_indicators(*, y_star: np.ndarray, h: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Sample mixture indicators for the log-chi-square approximation.

    Conditional on ``s_t = k`` the observation equation is

        y*_t = h_t + m_k + u_t,   u_t ~ N(0, v_k)

    Indicators are drawn by inverse CDF against one uniform per period.

    Returns:
        Integer array of shape (T,) with entries in {0, ..., 9}.
    """
    q = np.exp(mixture_log_probabilities(y_star=y_star, h=h))
    cdf = np.cumsum(q, axis=1)
    cdf[:, -1] = 1.0

    u = rng.random(q.shape[0])
    return (u[:, None] < cdf).argmax(axis=1).astype(int)


def sample_log_volatility(
    *,
    y_star: np.ndarray,
    s: np.ndarray,
    sigma_v2: float,
    h0: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw the log-volatility path jointly from its Gaussian full conditional.

    The precision is tridiagonal,

        P = diag(1 / v_{s_t}) + HH / sigma_v2

    where ``HH = D'D`` for the first-difference operator ``D`` (random-walk prior).
    The mean solves ``P h = b`` with ``b = (y* - m_s) / v_s + (h0 / sigma_v2) e_1``.
    Both the mean and the draw ``L^-T z`` use the O(T) tridiagonal Cholesky factor.

    Returns:
        Array of shape (T,).
    """
    y = np.asarray(y_star, dtype=float).reshape(-1)
    idx = np.asarray(s, dtype=int).reshape(-1)
    if y.shape != idx.shape:
        raise ValueError("y_star and s must have the same shape")
    if sigma_v2 <= 0 or not np.isfinite(sigma_v2):
        raise ConfigurationError("sigma_v2 must be positive")

    t = y.shape[0]
    inv_omega = 1.0 / MIXTURE_VARIANCES[idx]
    inv_sig = 1.0 / float(sigma_v2)

    diag_hh = np.full(t, 2.0, dtype=float)
    diag_hh[-1] = 1.0
    diag = inv_omega + inv_sig * diag_hh
    sub = np.full(t - 1, -inv_sig, dtype=float)

    rhs = (y - MIXTURE_MEANS[idx]) * inv_omega
    rhs[0] += h0 * inv_sig

    l, m = tridiagonal_cholesky(diag, sub, name="state precision")
    h_hat = tridiagonal_backward(l, m, tridiagonal_forward(l, m, rhs))

    z = rng.standard_normal(t)
    return h_hat + tridiagonal_backward(l, m, z)


def sv_sweep(
    state: SVState,
    *,
    y: np.ndarray,
    x: np.ndarray,
    spec: VolatilitySpec,
    rng: np.random.Generator,
) -> SVState:
    """One Gibbs sweep over the volatility block given the state's ``(beta, sigma)``.

    Order: standardize residuals, ``h0``, ``sigma_v2``, mixture indicators, ``h``.
    Returns a new state; the input is not modified.
    """
    z = standardized_residuals(y=y, x=x, beta=state.beta, sigma=state.sigma)
    y_star = log_squared(z, epsilon=spec.epsilon)

    h0 = sample_h0(
        h1=float(state.h[0]),
        sigma_v2=state.sigma_v2,
        prior_mean=spec.h0_prior_mean,
        prior_var=spec.h0_prior_var,
        rng=rng,
    )
    sigma_v2 = sample_sigma_v2(
        h=state.h,
        h0=h0,
        prior_scale=spec.sigma_v_prior_scale,
        prior_df=spec.sigma_v_prior_df,
        rng=rng,
    )
    s = sample_mixture_indicators(y_star=y_star, h=state.h, rng=rng)
    h = sample_log_volatility(y_star=y_star, s=s, sigma_v2=sigma_v2, h0=h0, rng=rng)

    return replace(state, h=h, h0=h0, sigma_v2=sigma_v2, s=s)
