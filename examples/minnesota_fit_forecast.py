import numpy as np

from macrobvar import Dataset, MinnesotaPrior, ModelSpec, SamplerConfig
from macrobvar.api import fit, forecast
from macrobvar.var import simulate_var


def main() -> None:
    rng = np.random.default_rng(123)

    beta = np.array(
        [
            [0.2, 0.1],
            [0.7, 0.1],
            [0.0, 0.5],
            [0.1, 0.0],
            [0.0, 0.1],
        ]
    )
    sigma = np.array([[0.3, 0.05], [0.05, 0.2]])
    y = simulate_var(beta=beta, sigma=sigma, t=200, rng=rng, burn_in=100)
    ds = Dataset.from_arrays(values=y, variables=["r", "y"])

    model = ModelSpec(p=2)
    prior = MinnesotaPrior.from_data(ds.values, p=model.p, kappa1=0.2, kappa2=100.0)
    sampler = SamplerConfig(draws=2000, burn_in=0, thin=1)

    fit_res = fit(ds, model, prior, sampler, rng=rng)
    fc = forecast(fit_res, 8, credibility=0.9, rng=rng)

    beta_mean, _sigma_mean = fit_res.posterior_mean()
    print("fit complete (Minnesota prior)")
    print("posterior mean of lag-1 block:\n", np.round(beta_mean[1:3], 3))
    print("share of stationary draws:", fit_res.stationary_share())
    print(fc.to_frame().head(6).to_string(index=False))


if __name__ == "__main__":
    main()
