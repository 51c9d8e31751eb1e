from __future__ import annotations

import numpy as np

from .errors import ConfigurationError


def lag_matrix(y: np.ndarray, p: int) -> np.ndarray:
    v = np.asarray(y, dtype=float)
    if v.ndim != 2:
        raise ConfigurationError("y must be a 2D array of shape (T, N)")
    if p < 1:
        raise ConfigurationError("p must be >= 1")

    t, _n = v.shape
    if t <= p:
        raise ConfigurationError("T must be > p")

    xlags = [v[p - lag : t - lag, :] for lag in range(1, p + 1)]
    return np.concatenate(xlags, axis=1)


def design_matrix(y: np.ndarray, p: int) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(X, Y)`` with ``X = [1, y_{t-1}, ..., y_{t-p}]`` and ``Y = y[p:]``.

    ``X`` has shape ``(T - p, 1 + N * p)``; lag blocks are ordered lag 1 first.
    """
    v = np.asarray(y, dtype=float)
    xl = lag_matrix(v, p)
    yt = v[p:, :]
    x = np.concatenate([np.ones((xl.shape[0], 1), dtype=float), xl], axis=1)
    return x, yt


def regressor_row(lags: np.ndarray) -> np.ndarray:
    """Build ``[1, y_{t-1}, ..., y_{t-p}]`` from a chronological ``(p, N)`` lag window."""
    w = np.asarray(lags, dtype=float)
    return np.concatenate([np.array([1.0], dtype=float), w[::-1].reshape(-1)])


def ols_residual_covariance(x: np.ndarray, y: np.ndarray, *, min_var: float = 1e-12) -> np.ndarray:
    """OLS residual covariance ``E'E / (T - K)`` with the diagonal floored at ``min_var``."""
    xt = np.asarray(x, dtype=float)
    yt = np.asarray(y, dtype=float)
    if xt.ndim != 2 or yt.ndim != 2 or xt.shape[0] != yt.shape[0]:
        raise ConfigurationError("x and y must be 2D with the same number of rows")

    b, *_ = np.linalg.lstsq(xt, yt, rcond=None)
    resid = yt - xt @ b
    denom = max(int(xt.shape[0] - xt.shape[1]), 1)
    cov = (resid.T @ resid) / float(denom)
    cov = 0.5 * (cov + cov.T)
    idx = np.diag_indices_from(cov)
    cov[idx] = np.maximum(cov[idx], float(min_var))
    return cov


def companion_matrix(beta: np.ndarray, n: int, p: int) -> np.ndarray:
    b = np.asarray(beta, dtype=float)
    if b.shape != (1 + n * p, n):
        raise ValueError("beta must have shape (K, N) with K = 1 + N*p")

    top = b[1:, :].T
    if p == 1:
        return top

    eye = np.eye(n * (p - 1), dtype=float)
    bottom = np.concatenate([eye, np.zeros((n * (p - 1), n), dtype=float)], axis=1)
    return np.concatenate([top, bottom], axis=0)


def is_stationary(beta: np.ndarray, n: int, p: int, *, tol: float = 1e-10) -> bool:
    f = companion_matrix(beta, n=n, p=p)
    eigvals = np.linalg.eigvals(f)
    return bool(np.max(np.abs(eigvals)) < (1.0 - tol))


def simulate_var(
    *,
    beta: np.ndarray,
    sigma: np.ndarray,
    t: int,
    rng: np.random.Generator,
    y0: np.ndarray | None = None,
    burn_in: int = 0,
) -> np.ndarray:
    """Simulate ``t`` observations from ``y_t = x_t beta + e_t``, ``e_t ~ N(0, sigma)``.

    Args:
        beta: (K, N) coefficients with the intercept in row 0.
        sigma: (N, N) error covariance.
        y0: optional (p, N) initial lags in chronological order; zeros if omitted.
        burn_in: number of leading simulated observations to discard.

    Returns:
        Array of shape (t, N).
    """
    b = np.asarray(beta, dtype=float)
    s = np.asarray(sigma, dtype=float)
    k, n = b.shape
    if (k - 1) % n != 0 or k < 1 + n:
        raise ValueError("beta must have shape (1 + N*p, N)")
    p = (k - 1) // n
    if s.shape != (n, n):
        raise ValueError("sigma must have shape (N, N)")
    if t < 1 or burn_in < 0:
        raise ValueError("t must be >= 1 and burn_in >= 0")

    lags = np.zeros((p, n), dtype=float) if y0 is None else np.asarray(y0, dtype=float).copy()
    if lags.shape != (p, n):
        raise ValueError("y0 must have shape (p, N)")

    ls = np.linalg.cholesky(s)
    total = t + burn_in
    out = np.empty((total, n), dtype=float)
    for i in range(total):
        y_next = regressor_row(lags) @ b + ls @ rng.standard_normal(n)
        out[i] = y_next
        lags = np.vstack([lags[1:, :], y_next]) if p > 1 else y_next.reshape(1, -1)

    return out[burn_in:]
