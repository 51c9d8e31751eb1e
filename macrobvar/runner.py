from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import time

import numpy as np
import pandas as pd

from .api import fit, forecast
from .data.dataset import Dataset
from .errors import ConfigurationError
from .results import FitResult, ForecastResult
from .rng import make_rng
from .spec import MinnesotaPrior, ModelSpec, SamplerConfig
from .sv import VolatilitySpec


@dataclass(frozen=True, slots=True)
class RunArtifacts:
    fit_result: FitResult
    forecast_result: ForecastResult | None


def _prepare_from_config(
    cfg: dict[str, Any],
    *,
    emit: Callable[[str, dict[str, Any]], None] | None = None,
) -> tuple[
    Dataset,
    ModelSpec,
    MinnesotaPrior,
    SamplerConfig,
    np.random.Generator,
    dict[str, Any] | None,
    dict[str, Any],
]:
    ds = load_dataset_from_csv(cfg)
    start = None
    end = None
    if isinstance(ds.time_index, pd.DatetimeIndex) and len(ds.time_index) > 0:
        start = ds.time_index[0]
        end = ds.time_index[-1]

    if emit is not None:
        emit(
            "summary",
            {
                "kind": "dataset",
                "T": ds.T,
                "N": ds.N,
                "variables": list(ds.variables),
                "start": str(start) if start is not None else None,
                "end": str(end) if end is not None else None,
            },
        )

    model = build_model(cfg)
    if ds.T <= model.p:
        raise ConfigurationError("dataset is too short for model.p")
    if emit is not None:
        emit("summary", {"kind": "model", "p": model.p, "sv": model.stochastic_volatility})

    prior = build_prior(cfg, dataset=ds, model=model)
    if emit is not None:
        emit(
            "summary",
            {
                "kind": "prior",
                "kappa1": float(prior.v0[1, 1]),
                "kappa2": float(prior.v0[0, 0]),
                "nu0": prior.nu0,
            },
        )

    sampler, rng = build_sampler(cfg)
    if emit is not None:
        emit(
            "summary",
            {
                "kind": "sampler",
                "draws": sampler.draws,
                "burn_in": sampler.burn_in,
                "thin": sampler.thin,
            },
        )

    fc_cfg = build_forecast_config(cfg)
    if fc_cfg is not None and fc_cfg["volatility"] == "stochastic" and not model.stochastic_volatility:
        raise ConfigurationError("forecast.volatility='stochastic' requires model.volatility")
    if emit is not None and fc_cfg is not None:
        emit(
            "summary",
            {
                "kind": "forecast",
                "horizon": int(fc_cfg["horizon"]),
                "draws": fc_cfg["draws"],
                "credibility": float(fc_cfg["credibility"]),
                "volatility": str(fc_cfg["volatility"]),
            },
        )

    output_cfg = build_output_config(cfg)
    return ds, model, prior, sampler, rng, fc_cfg, output_cfg


def _require_pyyaml() -> Any:
    try:
        import yaml  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError(
            "PyYAML is required for the config-driven CLI. Install with 'macrobvar[cli]'."
        ) from e
    return yaml


def load_config(path: str | Path) -> dict[str, Any]:
    yaml = _require_pyyaml()
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"config file not found: {p}")
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ConfigurationError("config root must be a mapping")
    return raw


def _get(cfg: dict[str, Any], key: str, *, default: Any = None, required: bool = False) -> Any:
    if key in cfg:
        return cfg[key]
    if required:
        raise ConfigurationError(f"missing required key: {key}")
    return default


def _as_bool(x: Any, *, key: str) -> bool:
    if isinstance(x, bool):
        return x
    raise ConfigurationError(f"{key} must be a boolean")


def _as_int(x: Any, *, key: str, min_value: int | None = None) -> int:
    if not isinstance(x, (int, np.integer)) or isinstance(x, bool):
        raise ConfigurationError(f"{key} must be an integer")
    v = int(x)
    if min_value is not None and v < min_value:
        raise ConfigurationError(f"{key} must be >= {min_value}")
    return v


def _as_float(x: Any, *, key: str) -> float:
    if not isinstance(x, (float, int, np.floating, np.integer)) or isinstance(x, bool):
        raise ConfigurationError(f"{key} must be a number")
    return float(x)


def _as_str_list(x: Any, *, key: str) -> list[str]:
    if not isinstance(x, list) or not all(isinstance(v, str) for v in x):
        raise ConfigurationError(f"{key} must be a list[str]")
    return list(x)


def load_dataset_from_csv(cfg: dict[str, Any]) -> Dataset:
    data_cfg = _get(cfg, "data", required=True)
    if not isinstance(data_cfg, dict):
        raise ConfigurationError("data must be a mapping")

    csv_path = Path(_get(data_cfg, "csv_path", required=True))
    if not csv_path.exists():
        raise ConfigurationError(f"data.csv_path not found: {csv_path}")

    date_column = _get(data_cfg, "date_column", required=True)
    if not isinstance(date_column, str) or not date_column:
        raise ConfigurationError("data.date_column must be a non-empty string")

    variables = _as_str_list(_get(data_cfg, "variables", required=True), key="data.variables")
    if not variables:
        raise ConfigurationError("data.variables must be non-empty")

    dropna = _as_bool(_get(data_cfg, "dropna", default=True), key="data.dropna")

    df = pd.read_csv(csv_path)
    if date_column not in df.columns:
        raise ConfigurationError(f"data.date_column not in CSV columns: {date_column}")

    missing = [v for v in variables if v not in df.columns]
    if missing:
        raise ConfigurationError(f"data.variables missing from CSV columns: {missing}")

    dt = pd.to_datetime(df[date_column], errors="raise")
    df = df.drop(columns=[date_column])
    df.index = pd.DatetimeIndex(dt, name=date_column)
    df = df.sort_index()

    x = df.loc[:, variables]
    if dropna:
        x = x.dropna(axis=0, how="any")

    return Dataset.from_frame(x, variables=variables)


def build_model(cfg: dict[str, Any]) -> ModelSpec:
    model_cfg = _get(cfg, "model", required=True)
    if not isinstance(model_cfg, dict):
        raise ConfigurationError("model must be a mapping")

    p = _as_int(_get(model_cfg, "p", required=True), key="model.p", min_value=1)

    vol_spec: VolatilitySpec | None = None
    vol_cfg = _get(model_cfg, "volatility", default=None)
    if vol_cfg is not None:
        if not isinstance(vol_cfg, dict):
            raise ConfigurationError("model.volatility must be a mapping")
        enabled = _as_bool(_get(vol_cfg, "enabled", default=True), key="model.volatility.enabled")
        if enabled:
            defaults = VolatilitySpec()
            kwargs: dict[str, float] = {}
            for name in [
                "epsilon",
                "h0_prior_mean",
                "h0_prior_var",
                "sigma_v_prior_scale",
                "sigma_v_prior_df",
            ]:
                kwargs[name] = _as_float(
                    _get(vol_cfg, name, default=getattr(defaults, name)),
                    key=f"model.volatility.{name}",
                )
            vol_spec = VolatilitySpec(enabled=True, **kwargs)

    return ModelSpec(p=p, volatility=vol_spec)


def build_prior(cfg: dict[str, Any], *, dataset: Dataset, model: ModelSpec) -> MinnesotaPrior:
    prior_cfg = _get(cfg, "prior", default={})
    if not isinstance(prior_cfg, dict):
        raise ConfigurationError("prior must be a mapping")

    kappa1 = _as_float(_get(prior_cfg, "kappa1", default=4e-4), key="prior.kappa1")
    kappa2 = _as_float(_get(prior_cfg, "kappa2", default=100.0), key="prior.kappa2")
    return MinnesotaPrior.from_data(dataset.values, p=model.p, kappa1=kappa1, kappa2=kappa2)


def build_sampler(cfg: dict[str, Any]) -> tuple[SamplerConfig, np.random.Generator]:
    sampler_cfg = _get(cfg, "sampler", required=True)
    if not isinstance(sampler_cfg, dict):
        raise ConfigurationError("sampler must be a mapping")

    draws = _as_int(_get(sampler_cfg, "draws", default=2000), key="sampler.draws", min_value=1)
    burn_in = _as_int(_get(sampler_cfg, "burn_in", default=500), key="sampler.burn_in", min_value=0)
    thin = _as_int(_get(sampler_cfg, "thin", default=1), key="sampler.thin", min_value=1)

    seed = _get(sampler_cfg, "seed", default=None)
    if seed is not None:
        seed = _as_int(seed, key="sampler.seed", min_value=0)
    rng = make_rng(seed)

    return SamplerConfig(draws=draws, burn_in=burn_in, thin=thin), rng


def build_forecast_config(cfg: dict[str, Any]) -> dict[str, Any] | None:
    fc_cfg = _get(cfg, "forecast", default=None)
    if fc_cfg is None:
        return None
    if not isinstance(fc_cfg, dict):
        raise ConfigurationError("forecast must be a mapping")

    enabled = _as_bool(_get(fc_cfg, "enabled", default=True), key="forecast.enabled")
    if not enabled:
        return None

    horizon = _as_int(_get(fc_cfg, "horizon", required=True), key="forecast.horizon", min_value=1)

    draws_raw = _get(fc_cfg, "draws", default=None)
    draws = None if draws_raw is None else _as_int(draws_raw, key="forecast.draws", min_value=1)

    credibility = _as_float(_get(fc_cfg, "credibility", default=0.68), key="forecast.credibility")
    if not (0.0 < credibility < 1.0):
        raise ConfigurationError("forecast.credibility must be in (0, 1)")

    volatility = _get(fc_cfg, "volatility", default="static")
    if volatility not in {"static", "stochastic"}:
        raise ConfigurationError("forecast.volatility must be one of: static, stochastic")

    return {"horizon": horizon, "draws": draws, "credibility": credibility, "volatility": volatility}


def build_output_config(cfg: dict[str, Any]) -> dict[str, Any]:
    output_cfg = _get(cfg, "output", default={})
    if output_cfg is None:
        output_cfg = {}
    if not isinstance(output_cfg, dict):
        raise ConfigurationError("output must be a mapping")

    out_dir = _get(output_cfg, "out_dir", default="outputs")
    if not isinstance(out_dir, str) or not out_dir:
        raise ConfigurationError("output.out_dir must be a non-empty string")

    save_fit = _as_bool(_get(output_cfg, "save_fit", default=True), key="output.save_fit")
    save_forecast = _as_bool(_get(output_cfg, "save_forecast", default=True), key="output.save_forecast")
    return {"out_dir": out_dir, "save_fit": save_fit, "save_forecast": save_forecast}


def validate_config(cfg: dict[str, Any]) -> None:
    _prepare_from_config(cfg, emit=None)


def _save_fit_npz(path: Path, fit_res: FitResult) -> None:
    arrays: dict[str, np.ndarray] = {
        "variables": np.asarray(fit_res.dataset.variables, dtype=str),
        "values": fit_res.dataset.values,
        "beta_draws": fit_res.beta_draws,
        "sigma_draws": fit_res.sigma_draws,
    }
    if fit_res.sigma2_draws is not None:
        arrays["sigma2_draws"] = fit_res.sigma2_draws
    if fit_res.h0_draws is not None:
        arrays["h0_draws"] = fit_res.h0_draws
    if fit_res.sigma_v2_draws is not None:
        arrays["sigma_v2_draws"] = fit_res.sigma_v2_draws
    np.savez_compressed(path, **arrays)


def _save_forecast_npz(path: Path, fc: ForecastResult) -> None:
    np.savez_compressed(
        path,
        variables=np.asarray(fc.variables, dtype=str),
        draws=fc.draws,
        mean=fc.mean,
        lower=fc.lower,
        upper=fc.upper,
        credibility=np.asarray(fc.credibility, dtype=float),
    )


def run_from_config(
    config_path: str | Path,
    *,
    out_dir: str | Path | None = None,
    validate_only: bool = False,
    progress: Callable[[str, dict[str, Any]], None] | None = None,
) -> RunArtifacts | None:
    t0_total = time.perf_counter()

    def emit(event: str, payload: dict[str, Any]) -> None:
        if progress is not None:
            progress(event, payload)

    emit("stage_start", {"name": "load_config"})
    t0 = time.perf_counter()
    cfg = load_config(config_path)
    emit("stage_end", {"name": "load_config", "elapsed_s": time.perf_counter() - t0})

    emit("stage_start", {"name": "validate_config"})
    t0 = time.perf_counter()
    ds, model, prior, sampler, rng, fc_cfg, output_cfg = _prepare_from_config(cfg, emit=emit)
    emit("stage_end", {"name": "validate_config", "elapsed_s": time.perf_counter() - t0})
    if validate_only:
        emit("validate_end", {"elapsed_s": time.perf_counter() - t0_total})
        return None

    emit("stage_start", {"name": "fit"})
    t0 = time.perf_counter()
    fit_res = fit(ds, model, prior, sampler, rng=rng, progress=emit)
    emit("stage_end", {"name": "fit", "elapsed_s": time.perf_counter() - t0})

    fc_res: ForecastResult | None = None
    if fc_cfg is not None:
        emit("stage_start", {"name": "forecast"})
        t0 = time.perf_counter()
        fc_res = forecast(
            fit_res,
            fc_cfg["horizon"],
            draws=fc_cfg["draws"],
            credibility=fc_cfg["credibility"],
            volatility=fc_cfg["volatility"],
            rng=rng,
        )
        emit("stage_end", {"name": "forecast", "elapsed_s": time.perf_counter() - t0})

    emit("stage_start", {"name": "write_artifacts"})
    t0 = time.perf_counter()
    out = Path(out_dir) if out_dir is not None else Path(output_cfg["out_dir"])
    out.mkdir(parents=True, exist_ok=True)
    emit(
        "summary",
        {
            "kind": "output",
            "out_dir": str(out),
            "save_fit": output_cfg["save_fit"],
            "save_forecast": output_cfg["save_forecast"],
        },
    )

    cfg_out = out / "config.yml"
    cfg_out.write_text(Path(config_path).read_text(encoding="utf-8"), encoding="utf-8")
    emit("artifact", {"path": str(cfg_out), "bytes": int(cfg_out.stat().st_size), "kind": "config"})

    if output_cfg["save_fit"]:
        fit_path = out / "fit_result.npz"
        _save_fit_npz(fit_path, fit_res)
        emit("artifact", {"path": str(fit_path), "bytes": int(fit_path.stat().st_size), "kind": "fit"})

    if fc_res is not None and output_cfg["save_forecast"]:
        fc_path = out / "forecast_result.npz"
        _save_forecast_npz(fc_path, fc_res)
        emit("artifact", {"path": str(fc_path), "bytes": int(fc_path.stat().st_size), "kind": "forecast"})

        summary_path = out / "forecast_summary.csv"
        fc_res.to_frame().to_csv(summary_path, index=False)
        emit("artifact", {"path": str(summary_path), "bytes": int(summary_path.stat().st_size), "kind": "table"})

    emit("stage_end", {"name": "write_artifacts", "elapsed_s": time.perf_counter() - t0})
    emit("run_end", {"elapsed_s": time.perf_counter() - t0_total})
    return RunArtifacts(fit_result=fit_res, forecast_result=fc_res)
