from __future__ import annotations

import arviz as az
import numpy as np


def hdi(samples: np.ndarray, mass: float, *, axis: int = 0) -> tuple[np.ndarray, np.ndarray]:
    """Highest-density interval estimated from draws.

    The draws along ``axis`` are flattened to ``(S, K)`` and passed to
    :func:`arviz.hdi` as a single chain. Each interval is the narrowest window of
    ``floor(mass * S) + 1`` sorted draws, which for a unimodal distribution is the
    empirical highest-density interval.

    Returns:
        ``(lower, upper)`` with ``axis`` removed.
    """
    m = float(mass)
    if not np.isfinite(m) or not (0.0 < m < 1.0):
        raise ValueError("mass must be in (0, 1)")

    x = np.moveaxis(np.asarray(samples, dtype=float), axis, 0)
    s = x.shape[0]
    if s < 1:
        raise ValueError("samples must be non-empty along axis")
    if np.any(np.isnan(x)):
        raise ValueError("samples must not contain NaN")

    rest = x.shape[1:]
    flat = x.reshape(s, -1)

    # (chain, draw, K) -> (K, 2)
    bounds = np.asarray(az.hdi(flat[None, ...], hdi_prob=m), dtype=float)
    bounds = bounds.reshape(flat.shape[1], 2)

    return bounds[:, 0].reshape(rest), bounds[:, 1].reshape(rest)


def empirical_moments(samples: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Mean (N,) and covariance (N, N) of draws with shape (S, N)."""
    x = np.asarray(samples, dtype=float)
    if x.ndim != 2 or x.shape[0] < 2:
        raise ValueError("samples must have shape (S, N) with S >= 2")
    return x.mean(axis=0), np.atleast_2d(np.cov(x, rowvar=False))
