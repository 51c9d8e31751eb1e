from __future__ import annotations

import numpy as np

from .errors import NumericalError


def simulate_forecast(
    *,
    beta_draws: np.ndarray,
    sigma_draws: np.ndarray,
    y_last: np.ndarray,
    horizon: int,
    rng: np.random.Generator,
    h_last: np.ndarray | None = None,
    sigma_v2: np.ndarray | None = None,
) -> np.ndarray:
    """Simulate one forecast path per posterior draw.

    For each draw ``s`` and step ``i = 1..horizon``:

        x_i = [1, y_{i-1}, ..., y_{i-p}]
        y_i ~ N(x_i A^(s), Sigma^(s))

    and ``y_i`` is appended to the lag window (the oldest lag drops out).

    When ``h_last`` and ``sigma_v2`` are given, the log-volatility is propagated as a
    random walk, ``h_i = h_{i-1} + sqrt(sigma_v2) v_i``, and the step covariance is
    ``exp(h_i) Sigma^(s)``. Otherwise ``Sigma^(s)`` is used unscaled at every step.

    Args:
        beta_draws: (S, K, N)
        sigma_draws: (S, N, N)
        y_last: (p, N) last p observations in chronological order.
            Convention: y_last[0] is the oldest lag and y_last[-1] is the most recent.
        horizon: number of steps to simulate.
        h_last: optional (S,) final in-sample log-volatility per draw.
        sigma_v2: optional (S,) random-walk innovation variance per draw.

    Returns:
        paths: (S, horizon, N)
    """
    beta = np.asarray(beta_draws, dtype=float)
    sigma = np.asarray(sigma_draws, dtype=float)
    lags0 = np.asarray(y_last, dtype=float)

    if beta.ndim != 3 or sigma.ndim != 3:
        raise ValueError("beta_draws must be (S, K, N) and sigma_draws (S, N, N)")
    if lags0.ndim != 2:
        raise ValueError("y_last must be 2D (p, N)")

    s_draws, k, n = beta.shape
    p = lags0.shape[0]
    if lags0.shape[1] != n or k != 1 + n * p:
        raise ValueError("beta_draws has wrong shape for given y_last")
    if sigma.shape != (s_draws, n, n):
        raise ValueError("sigma_draws must have shape (S, N, N)")
    if horizon < 1:
        raise ValueError("horizon must be >= 1")
    if (h_last is None) != (sigma_v2 is None):
        raise ValueError("h_last and sigma_v2 must be given together")

    try:
        lsig = np.linalg.cholesky(0.5 * (sigma + np.swapaxes(sigma, 1, 2)))
    except np.linalg.LinAlgError as e:
        raise NumericalError("error covariance draw is not positive-definite", matrix="error covariance") from e

    h = None
    sd_v = None
    if h_last is not None and sigma_v2 is not None:
        h = np.asarray(h_last, dtype=float).reshape(-1).copy()
        sd_v = np.sqrt(np.asarray(sigma_v2, dtype=float).reshape(-1))
        if h.shape != (s_draws,) or sd_v.shape != (s_draws,):
            raise ValueError("h_last and sigma_v2 must have shape (S,)")

    paths = np.empty((s_draws, horizon, n), dtype=float)
    lags = np.broadcast_to(lags0, (s_draws, p, n)).copy()
    ones = np.ones((s_draws, 1), dtype=float)

    for i in range(horizon):
        # lag 1 first, then lag 2, ...
        x = np.concatenate([ones, lags[:, ::-1, :].reshape(s_draws, p * n)], axis=1)
        mean = np.einsum("sk,skn->sn", x, beta)

        eps = np.einsum("sij,sj->si", lsig, rng.standard_normal((s_draws, n)))
        if h is not None and sd_v is not None:
            h = h + sd_v * rng.standard_normal(s_draws)
            eps = eps * np.exp(0.5 * h)[:, None]

        y_next = mean + eps
        paths[:, i, :] = y_next
        lags = np.concatenate([lags[:, 1:, :], y_next[:, None, :]], axis=1)

    return paths
