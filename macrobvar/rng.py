from __future__ import annotations

import numpy as np


def make_rng(seed: int | np.random.SeedSequence | None = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def spawn_rngs(seed: int | np.random.SeedSequence | None, n: int) -> list[np.random.Generator]:
    """Independent generators for ``n`` chains or draw slices.

    Streams come from :meth:`numpy.random.SeedSequence.spawn`, so a fixed ``seed``
    reproduces every slice regardless of which worker runs it.
    """
    if n < 1:
        raise ValueError("n must be >= 1")
    ss = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return [np.random.default_rng(child) for child in ss.spawn(int(n))]


def inverse_chi2(*, scale: float, df: float, rng: np.random.Generator) -> float:
    """Draw ``scale / X`` with ``X ~ chi^2(df)``, i.e. InvGamma(df/2, scale/2)."""
    if scale <= 0 or not np.isfinite(scale):
        raise ValueError("scale must be finite and > 0")
    if df <= 0 or not np.isfinite(df):
        raise ValueError("df must be finite and > 0")

    return float(scale / rng.chisquare(df))
