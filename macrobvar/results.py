from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

import numpy as np
import pandas as pd

from .data.dataset import Dataset
from .spec import MinnesotaPrior, ModelSpec, SamplerConfig
from .var import is_stationary


@dataclass(frozen=True, slots=True)
class PosteriorNIW:
    """NIW posterior parameter block.

    Attributes
    ----------
    inv_vn:
        Posterior coefficient precision with shape ``(K, K)``.
    vn:
        Posterior coefficient covariance with shape ``(K, K)``.
    mn:
        Posterior mean of VAR coefficients with shape ``(K, N)``.
    nun:
        Posterior degrees of freedom.
    sn:
        Posterior scale matrix for the inverse-Wishart with shape ``(N, N)``.
    inv_sn:
        Inverse of ``sn``; the Wishart scale for ``Sigma^-1``.
    """
    inv_vn: np.ndarray  # (K, K)
    vn: np.ndarray  # (K, K)
    mn: np.ndarray  # (K, N)
    nun: float
    sn: np.ndarray  # (N, N)
    inv_sn: np.ndarray  # (N, N)


@dataclass(frozen=True, slots=True)
class FitResult:
    """Output of :func:`macrobvar.api.fit`: the posterior ensemble.

    All ``*_draws`` arrays carry the draw index as the outermost dimension. Draws
    from the conjugate model are i.i.d.; draws from the stochastic volatility model
    come from a Markov chain and are autocorrelated.

    Attributes
    ----------
    dataset:
        Observed dataset.
    model, prior, sampler:
        Specifications used for estimation.
    posterior:
        Closed-form NIW posterior parameters (conjugate model only).
    beta_draws, sigma_draws:
        Posterior draws of VAR parameters.
    sigma2_draws, h0_draws, sigma_v2_draws:
        Stochastic volatility draws (SV model only). ``sigma2_draws`` has shape
        ``(D, T - p)`` and holds ``exp(h_t)``.
    cancelled:
        True when the SV chain was stopped early and the ensemble is the retained
        prefix.
    """
    dataset: Dataset
    model: ModelSpec
    prior: MinnesotaPrior
    sampler: SamplerConfig
    posterior: PosteriorNIW | None
    beta_draws: np.ndarray  # (D, K, N)
    sigma_draws: np.ndarray  # (D, N, N)
    sigma2_draws: np.ndarray | None = None  # (D, T)
    h0_draws: np.ndarray | None = None  # (D,)
    sigma_v2_draws: np.ndarray | None = None  # (D,)
    cancelled: bool = False

    @property
    def n_draws(self) -> int:
        return int(self.beta_draws.shape[0])

    @property
    def h_draws(self) -> np.ndarray | None:
        """Log-volatility draws ``log(sigma2)``, shape ``(D, T)``."""
        if self.sigma2_draws is None:
            return None
        return np.log(self.sigma2_draws)

    def posterior_mean(self) -> tuple[np.ndarray, np.ndarray]:
        """Monte Carlo means of ``A`` (K, N) and ``Sigma`` (N, N)."""
        if self.n_draws < 1:
            raise ValueError("fit contains no retained draws")
        return self.beta_draws.mean(axis=0), self.sigma_draws.mean(axis=0)

    def stationary_share(self) -> float:
        """Fraction of coefficient draws whose companion matrix is stable."""
        if self.n_draws < 1:
            raise ValueError("fit contains no retained draws")
        n = self.dataset.N
        flags = [is_stationary(b, n=n, p=self.model.p) for b in self.beta_draws]
        return float(np.mean(flags))


def concatenate_fits(fits: Sequence[FitResult]) -> FitResult:
    """Join independently sampled ensemble slices along the draw axis.

    Slices must come from the same dataset shape, model and prior; the returned
    result keeps the metadata of the first slice.
    """
    items = list(fits)
    if not items:
        raise ValueError("fits must be non-empty")

    first = items[0]
    for f in items[1:]:
        if f.model != first.model:
            raise ValueError("all fits must share the same model specification")
        if f.beta_draws.shape[1:] != first.beta_draws.shape[1:]:
            raise ValueError("all fits must have the same coefficient shape")
        if (f.sigma2_draws is None) != (first.sigma2_draws is None):
            raise ValueError("cannot mix stochastic volatility and homoskedastic fits")

    def _cat(name: str) -> np.ndarray | None:
        arrs = [getattr(f, name) for f in items]
        if arrs[0] is None:
            return None
        return np.concatenate(arrs, axis=0)

    return replace(
        first,
        beta_draws=np.concatenate([f.beta_draws for f in items], axis=0),
        sigma_draws=np.concatenate([f.sigma_draws for f in items], axis=0),
        sigma2_draws=_cat("sigma2_draws"),
        h0_draws=_cat("h0_draws"),
        sigma_v2_draws=_cat("sigma_v2_draws"),
        cancelled=any(f.cancelled for f in items),
    )


@dataclass(frozen=True, slots=True)
class ForecastResult:
    """Output of :func:`macrobvar.api.forecast`.

    Attributes
    ----------
    variables:
        Variable names.
    horizon:
        Number of steps simulated.
    draws:
        Predictive simulation draws with shape ``(S, H, N)``.
    mean:
        Point forecast (mean over draws) with shape ``(H, N)``.
    lower, upper:
        Highest-density interval bounds with shape ``(H, N)``.
    credibility:
        Probability mass of the interval.
    volatility:
        ``"static"`` or ``"stochastic"``; how the error variance was projected.
    """
    variables: list[str]
    horizon: int
    draws: np.ndarray  # (S, H, N)
    mean: np.ndarray  # (H, N)
    lower: np.ndarray  # (H, N)
    upper: np.ndarray  # (H, N)
    credibility: float
    volatility: str = "static"

    def to_frame(self) -> pd.DataFrame:
        """Tidy summary with one row per (horizon, variable)."""
        rows = []
        for h in range(self.horizon):
            for j, name in enumerate(self.variables):
                rows.append(
                    {
                        "horizon": h + 1,
                        "variable": name,
                        "mean": float(self.mean[h, j]),
                        "lower": float(self.lower[h, j]),
                        "upper": float(self.upper[h, j]),
                    }
                )
        return pd.DataFrame(rows, columns=["horizon", "variable", "mean", "lower", "upper"])
