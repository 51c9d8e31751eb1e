from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

import numpy as np

from .bvar import posterior_niw, sample_posterior_niw
from .data.dataset import Dataset
from .results import FitResult
from .spec import MinnesotaPrior, ModelSpec, SamplerConfig
from .sv import SVState, VolatilitySpec, sv_sweep
from .var import design_matrix

Progress = Callable[[str, dict[str, Any]], None]


def gibbs_step(
    state: SVState,
    *,
    y: np.ndarray,
    x: np.ndarray,
    prior: MinnesotaPrior,
    spec: VolatilitySpec,
    rng: np.random.Generator,
) -> SVState:
    """One outer Gibbs iteration: ``(A, Sigma) | sigma2`` then the volatility sweep."""
    post = posterior_niw(x=x, y=y, prior=prior, weights=1.0 / state.sigma2)
    beta_draws, sigma_draws = sample_posterior_niw(post, draws=1, rng=rng)
    state = replace(state, beta=beta_draws[0], sigma=sigma_draws[0])
    return sv_sweep(state, y=y, x=x, spec=spec, rng=rng)


def _fit_conjugate(
    *,
    dataset: Dataset,
    model: ModelSpec,
    prior: MinnesotaPrior,
    sampler: SamplerConfig,
    rng: np.random.Generator,
) -> FitResult:
    x, y = design_matrix(dataset.values, model.p)

    posterior = posterior_niw(x=x, y=y, prior=prior)
    beta_all, sigma_all = sample_posterior_niw(posterior, draws=sampler.draws, rng=rng)

    keep_idx = np.arange(sampler.burn_in, sampler.draws, sampler.thin, dtype=int)
    return FitResult(
        dataset=dataset,
        model=model,
        prior=prior,
        sampler=sampler,
        posterior=posterior,
        beta_draws=beta_all[keep_idx],
        sigma_draws=sigma_all[keep_idx],
    )


def _fit_sv(
    *,
    dataset: Dataset,
    model: ModelSpec,
    prior: MinnesotaPrior,
    sampler: SamplerConfig,
    rng: np.random.Generator,
    should_stop: Callable[[], bool] | None = None,
    progress: Progress | None = None,
    progress_every: int = 100,
) -> FitResult:
    vol = model.volatility
    if vol is None or not vol.enabled:
        raise ValueError("volatility must be enabled")

    x, y = design_matrix(dataset.values, model.p)
    t_eff, k = x.shape
    n = y.shape[1]

    state = SVState.initial(t=t_eff, k=k, n=n, spec=vol)

    beta_keep: list[np.ndarray] = []
    sigma_keep: list[np.ndarray] = []
    sigma2_keep: list[np.ndarray] = []
    h0_keep: list[float] = []
    sigma_v2_keep: list[float] = []
    cancelled = False

    for it in range(sampler.draws):
        state = gibbs_step(state, y=y, x=x, prior=prior, spec=vol, rng=rng)

        if it >= sampler.burn_in and ((it - sampler.burn_in) % sampler.thin == 0):
            beta_keep.append(state.beta.copy())
            sigma_keep.append(state.sigma.copy())
            sigma2_keep.append(state.sigma2)
            h0_keep.append(state.h0)
            sigma_v2_keep.append(state.sigma_v2)

        if progress is not None and ((it + 1) % progress_every == 0 or it + 1 == sampler.draws):
            progress(
                "gibbs_progress",
                {"iteration": it + 1, "draws": sampler.draws, "kept": len(beta_keep)},
            )

        if should_stop is not None and it + 1 < sampler.draws and should_stop():
            cancelled = True
            break

    return FitResult(
        dataset=dataset,
        model=model,
        prior=prior,
        sampler=sampler,
        posterior=None,
        beta_draws=np.stack(beta_keep) if beta_keep else np.empty((0, k, n), dtype=float),
        sigma_draws=np.stack(sigma_keep) if sigma_keep else np.empty((0, n, n), dtype=float),
        sigma2_draws=np.stack(sigma2_keep) if sigma2_keep else np.empty((0, t_eff), dtype=float),
        h0_draws=np.asarray(h0_keep, dtype=float),
        sigma_v2_draws=np.asarray(sigma_v2_keep, dtype=float),
        cancelled=cancelled,
    )
