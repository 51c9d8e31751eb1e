from __future__ import annotations

from concurrent.futures import Executor
from typing import Any, Callable

import numpy as np

from .data.dataset import Dataset
from .errors import ConfigurationError
from .forecast import simulate_forecast
from .metrics import hdi
from .results import FitResult, ForecastResult, concatenate_fits
from .rng import make_rng, spawn_rngs
from .samplers import _fit_conjugate, _fit_sv
from .spec import MinnesotaPrior, ModelSpec, SamplerConfig


def fit(
    dataset: Dataset,
    model: ModelSpec,
    prior: MinnesotaPrior,
    sampler: SamplerConfig,
    *,
    rng: np.random.Generator | None = None,
    should_stop: Callable[[], bool] | None = None,
    progress: Callable[[str, dict[str, Any]], None] | None = None,
) -> FitResult:
    """Fit a BVAR and return the posterior ensemble.

    This is the primary user-facing entry point for estimation.

    Supported configurations
    ------------------------
    - Conjugate BVAR with Minnesota NIW prior (i.i.d. posterior draws)
    - Stochastic volatility (``model.volatility.enabled``): Gibbs sampler alternating
      ``(A, Sigma) | sigma2`` and the mixture-based log-volatility sweep

    Parameters
    ----------
    dataset:
        Observed data (T, N), chronologically ordered, no missing values.
    model:
        Model configuration, including lag order ``p`` and optional SV spec.
    prior:
        Minnesota prior whose dimensions match ``dataset.N`` and ``model.p``.
    sampler:
        Draw counts (draws, burn-in, thinning).
    rng:
        Generator used for every draw. Pass a seeded generator for reproducible
        output; there is no module-level random state.
    should_stop:
        SV model only. Polled after each completed Gibbs sweep; returning True stops
        the chain and returns the retained prefix with ``cancelled=True``.
    progress:
        Optional callback receiving ``("gibbs_progress", payload)`` events.

    Returns
    -------
    FitResult
        For the conjugate model ``posterior`` is populated and draws are i.i.d.;
        for the SV model ``sigma2_draws``, ``h0_draws`` and ``sigma_v2_draws`` are
        populated.

    Raises
    ------
    ConfigurationError
        On dimension mismatches or ``T <= p``.
    NumericalError
        If a posterior or state precision matrix is not positive-definite. No
        partial ensemble is returned.
    """
    if prior.n != dataset.N:
        raise ConfigurationError("prior dimension N does not match dataset.N")
    if prior.p != model.p:
        raise ConfigurationError("prior lag order does not match model.p")
    if dataset.T <= model.p:
        raise ConfigurationError("dataset is too short for requested lag order p")

    if rng is None:
        rng = make_rng()

    if model.stochastic_volatility:
        return _fit_sv(
            dataset=dataset,
            model=model,
            prior=prior,
            sampler=sampler,
            rng=rng,
            should_stop=should_stop,
            progress=progress,
        )

    return _fit_conjugate(dataset=dataset, model=model, prior=prior, sampler=sampler, rng=rng)


def fit_chains(
    dataset: Dataset,
    model: ModelSpec,
    prior: MinnesotaPrior,
    sampler: SamplerConfig,
    *,
    chains: int,
    seed: int | np.random.SeedSequence | None = None,
    executor: Executor | None = None,
) -> FitResult:
    """Run ``chains`` independent fits and concatenate their ensembles.

    Each chain gets its own generator spawned from ``seed``, so the result does not
    depend on how chains are scheduled. With ``executor`` (e.g. a
    :class:`concurrent.futures.ThreadPoolExecutor`) chains run concurrently;
    otherwise they run in order.
    """
    if isinstance(chains, bool) or int(chains) != chains or chains < 1:
        raise ConfigurationError("chains must be an integer >= 1")

    rngs = spawn_rngs(seed, int(chains))
    if executor is None:
        fits = [fit(dataset, model, prior, sampler, rng=r) for r in rngs]
    else:
        futures = [executor.submit(fit, dataset, model, prior, sampler, rng=r) for r in rngs]
        fits = [f.result() for f in futures]

    return concatenate_fits(fits)


def forecast(
    fit: FitResult,
    horizon: int,
    *,
    draws: int | None = None,
    credibility: float = 0.68,
    volatility: str = "static",
    rng: np.random.Generator | None = None,
) -> ForecastResult:
    """Simulate the posterior predictive distribution ``horizon`` steps ahead.

    Parameters
    ----------
    fit:
        Result from :func:`macrobvar.api.fit`.
    horizon:
        Number of steps to simulate.
    draws:
        ``None`` simulates one path per retained posterior draw. An integer resamples
        posterior draws with replacement to produce that many paths.
    credibility:
        Mass of the highest-density interval reported per horizon and variable.
    volatility:
        ``"static"`` uses each draw's ``Sigma`` at every step (for SV fits this is the
        time-invariant component, not scaled by ``sigma2``). ``"stochastic"``
        (SV fits only) propagates the draw's final log-volatility forward as a random
        walk with the draw's ``sigma_v2``.

    Returns
    -------
    ForecastResult
        ``draws`` has shape ``(S, H, N)``; ``mean``, ``lower`` and ``upper`` have shape
        ``(H, N)``.

    Notes
    -----
    ``result.mean[0]`` corresponds to horizon 1.
    """
    if rng is None:
        rng = make_rng()

    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)) or int(horizon) < 1:
        raise ConfigurationError("horizon must be a positive integer")
    horizon = int(horizon)

    cred = float(credibility)
    if not np.isfinite(cred) or not (0.0 < cred < 1.0):
        raise ConfigurationError("credibility must be in (0, 1)")

    if volatility not in {"static", "stochastic"}:
        raise ConfigurationError("volatility must be one of: static, stochastic")
    if volatility == "stochastic" and (fit.sigma2_draws is None or fit.sigma_v2_draws is None):
        raise ConfigurationError("volatility='stochastic' requires a stochastic volatility fit")

    if fit.n_draws < 1:
        raise ValueError(
            "fit contains no retained draws; "
            "this can happen if the chain was cancelled during burn-in"
        )

    if draws is None:
        idx = np.arange(fit.n_draws)
    else:
        if isinstance(draws, bool) or not isinstance(draws, (int, np.integer)) or int(draws) < 1:
            raise ConfigurationError("draws must be a positive integer")
        idx = rng.integers(0, fit.n_draws, size=int(draws))

    p = fit.model.p
    y_last = fit.dataset.values[-p:, :]

    h_last = None
    sigma_v2 = None
    if volatility == "stochastic" and fit.sigma2_draws is not None and fit.sigma_v2_draws is not None:
        h_last = np.log(fit.sigma2_draws[idx, -1])
        sigma_v2 = fit.sigma_v2_draws[idx]

    sims = simulate_forecast(
        beta_draws=fit.beta_draws[idx],
        sigma_draws=fit.sigma_draws[idx],
        y_last=y_last,
        horizon=horizon,
        rng=rng,
        h_last=h_last,
        sigma_v2=sigma_v2,
    )

    lower, upper = hdi(sims, cred, axis=0)
    return ForecastResult(
        variables=list(fit.dataset.variables),
        horizon=horizon,
        draws=sims,
        mean=sims.mean(axis=0),
        lower=lower,
        upper=upper,
        credibility=cred,
        volatility=volatility,
    )
