from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .errors import ConfigurationError
from .sv import VolatilitySpec
from .var import design_matrix, ols_residual_covariance


def _is_int(x: object) -> bool:
    return isinstance(x, (int, np.integer)) and not isinstance(x, bool)


@dataclass(frozen=True, slots=True)
class ModelSpec:
    """Model configuration for BVAR estimation.

    Parameters
    ----------
    p:
        VAR lag order. The design matrix always carries an intercept, so
        ``K = 1 + N * p``.
    volatility:
        Optional stochastic volatility configuration. When enabled, the error
        covariance at time ``t`` is ``sigma2_t * Sigma`` with ``log(sigma2_t)``
        following a random walk.
    """
    p: int
    volatility: VolatilitySpec | None = None

    def __post_init__(self) -> None:
        if not _is_int(self.p) or self.p < 1:
            raise ConfigurationError("p must be an integer >= 1")

    @property
    def stochastic_volatility(self) -> bool:
        return self.volatility is not None and self.volatility.enabled


@dataclass(frozen=True, slots=True)
class MinnesotaPrior:
    """Conjugate Normal-Inverse-Wishart prior with Minnesota shrinkage.

    Model:
        A | Sigma ~ MN(a0, Sigma, v0)
        Sigma ~ InvWishart(nu0, s0)

    Notes
    -----
    Shapes follow the conventions used throughout the package:

    - ``a0`` has shape ``(K, N)`` where ``K = 1 + N * p``
    - ``v0`` has shape ``(K, K)`` and is diagonal
    - ``s0`` has shape ``(N, N)`` and is diagonal
    - ``nu0 >= N + 1``
    """
    a0: np.ndarray  # (K, N)
    v0: np.ndarray  # (K, K)
    s0: np.ndarray  # (N, N)
    nu0: float

    def __post_init__(self) -> None:
        a0 = np.asarray(self.a0, dtype=float)
        v0 = np.asarray(self.v0, dtype=float)
        s0 = np.asarray(self.s0, dtype=float)
        if a0.ndim != 2:
            raise ConfigurationError("a0 must be a 2D array of shape (K, N)")
        k, n = a0.shape
        if v0.shape != (k, k):
            raise ConfigurationError("v0 must have shape (K, K)")
        if s0.shape != (n, n):
            raise ConfigurationError("s0 must have shape (N, N)")
        if np.any(v0 != np.diag(np.diag(v0))) or np.any(np.diag(v0) <= 0):
            raise ConfigurationError("v0 must be diagonal with positive entries")
        if np.any(s0 != np.diag(np.diag(s0))) or np.any(np.diag(s0) <= 0):
            raise ConfigurationError("s0 must be diagonal with positive entries")
        if not np.isfinite(self.nu0) or self.nu0 < n + 1:
            raise ConfigurationError("nu0 must be >= N + 1")

        object.__setattr__(self, "a0", a0)
        object.__setattr__(self, "v0", v0)
        object.__setattr__(self, "s0", s0)
        object.__setattr__(self, "nu0", float(self.nu0))

    @property
    def k(self) -> int:
        return int(self.a0.shape[0])

    @property
    def n(self) -> int:
        return int(self.a0.shape[1])

    @property
    def p(self) -> int:
        return (self.k - 1) // self.n

    @property
    def v0_diag(self) -> np.ndarray:
        return np.diag(self.v0).copy()

    @staticmethod
    def from_hyperparameters(
        *,
        n: int,
        p: int,
        kappa1: float,
        kappa2: float,
        sigma_hat: np.ndarray,
    ) -> "MinnesotaPrior":
        """Build the Minnesota prior from dimensions and two shrinkage scalars.

        Parameters
        ----------
        n:
            Number of endogenous variables ``N``.
        p:
            VAR lag order.
        kappa1:
            Lag-coefficient tightness; the prior variance of every lag-``l``
            coefficient is ``kappa1 / l**2``.
        kappa2:
            Prior variance of the intercept.
        sigma_hat:
            Residual covariance estimate ``(N, N)``; only its diagonal is used, as the
            diagonal of ``s0``.

        Returns
        -------
        MinnesotaPrior
            ``a0`` is zero except for an identity block on each variable's own
            first lag (rows ``1..N``), encoding random-walk persistence.
        """
        if isinstance(n, bool) or int(n) != n or n < 1:
            raise ConfigurationError("n must be an integer >= 1")
        if isinstance(p, bool) or int(p) != p or p < 1:
            raise ConfigurationError("p must be an integer >= 1")
        if not np.isfinite(kappa1) or kappa1 <= 0:
            raise ConfigurationError("kappa1 must be > 0")
        if not np.isfinite(kappa2) or kappa2 <= 0:
            raise ConfigurationError("kappa2 must be > 0")

        n = int(n)
        p = int(p)
        sh = np.asarray(sigma_hat, dtype=float)
        if sh.shape != (n, n):
            raise ConfigurationError("sigma_hat must have shape (N, N)")
        sigma2 = np.diag(sh).copy()
        if np.any(~np.isfinite(sigma2)) or np.any(sigma2 <= 0):
            raise ConfigurationError("sigma_hat must have a finite, positive diagonal")

        k = 1 + n * p
        a0 = np.zeros((k, n), dtype=float)
        a0[1 : n + 1, :] = np.eye(n, dtype=float)

        v0_diag = np.empty(k, dtype=float)
        v0_diag[0] = float(kappa2)
        for lag in range(1, p + 1):
            v0_diag[1 + (lag - 1) * n : 1 + lag * n] = float(kappa1) / float(lag**2)

        return MinnesotaPrior(a0=a0, v0=np.diag(v0_diag), s0=np.diag(sigma2), nu0=float(n + 1))

    @staticmethod
    def from_data(
        y: np.ndarray,
        *,
        p: int,
        kappa1: float = 4e-4,
        kappa2: float = 100.0,
    ) -> "MinnesotaPrior":
        """Minnesota prior with ``sigma_hat`` taken from a VAR(p) OLS fit of ``y`` (T, N)."""
        v = np.asarray(y, dtype=float)
        if v.ndim != 2:
            raise ConfigurationError("y must be a 2D array of shape (T, N)")
        x, yt = design_matrix(v, p)
        sigma_hat = ols_residual_covariance(x, yt)
        return MinnesotaPrior.from_hyperparameters(
            n=v.shape[1], p=p, kappa1=kappa1, kappa2=kappa2, sigma_hat=sigma_hat
        )


@dataclass(frozen=True, slots=True)
class SamplerConfig:
    """Draw counts for the posterior samplers.

    Parameters
    ----------
    draws:
        Total number of iterations (SV) or i.i.d. draws (conjugate model).
    burn_in:
        Number of initial iterations to discard.
    thin:
        Keep every ``thin``-th draw after burn-in.

    Notes
    -----
    For the conjugate model draws are sampled directly and burn-in/thinning is
    applied post hoc. For the SV Gibbs sampler burn-in/thinning is applied online.
    """
    draws: int = 2000
    burn_in: int = 500
    thin: int = 1

    def __post_init__(self) -> None:
        if not _is_int(self.draws) or self.draws < 1:
            raise ConfigurationError("draws must be an integer >= 1")
        if not _is_int(self.burn_in) or self.burn_in < 0:
            raise ConfigurationError("burn_in must be an integer >= 0")
        if not _is_int(self.thin) or self.thin < 1:
            raise ConfigurationError("thin must be an integer >= 1")
        if self.burn_in >= self.draws:
            raise ConfigurationError("burn_in must be smaller than draws")

    @property
    def kept(self) -> int:
        """Number of retained draws for a run that is not cancelled (always >= 1)."""
        return len(range(self.burn_in, self.draws, self.thin))
