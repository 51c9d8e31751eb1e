import numpy as np

from macrobvar import Dataset, MinnesotaPrior, ModelSpec, SamplerConfig, VolatilitySpec
from macrobvar.api import fit, forecast


def main() -> None:
    rng = np.random.default_rng(7)

    t = 240
    vol = np.exp(0.5 * np.cumsum(0.1 * rng.standard_normal(t)))
    y = np.zeros((t, 2))
    for i in range(1, t):
        y[i] = np.array([0.6, 0.3]) * y[i - 1] + vol[i] * 0.3 * rng.standard_normal(2)

    ds = Dataset.from_arrays(values=y, variables=["y1", "y2"])
    model = ModelSpec(p=1, volatility=VolatilitySpec())
    prior = MinnesotaPrior.from_data(ds.values, p=model.p, kappa1=0.2, kappa2=10.0)
    sampler = SamplerConfig(draws=1500, burn_in=500, thin=2)

    def report(event: str, payload: dict) -> None:
        if event == "gibbs_progress" and payload["iteration"] % 500 == 0:
            print(f"sweep {payload['iteration']}/{payload['draws']}")

    fit_res = fit(ds, model, prior, sampler, rng=rng, progress=report)
    fc_static = forecast(fit_res, 4, credibility=0.68, rng=rng)
    fc_sv = forecast(fit_res, 4, credibility=0.68, volatility="stochastic", rng=rng)

    assert fit_res.sigma2_draws is not None
    print("fit complete (stochastic volatility)")
    print("last-period volatility (posterior mean):", float(fit_res.sigma2_draws[:, -1].mean()))
    print("h=4 interval width, static:    ", (fc_static.upper - fc_static.lower)[-1].round(3).tolist())
    print("h=4 interval width, stochastic:", (fc_sv.upper - fc_sv.lower)[-1].round(3).tolist())


if __name__ == "__main__":
    main()
