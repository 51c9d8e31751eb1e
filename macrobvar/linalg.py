from __future__ import annotations

import numpy as np
import scipy.linalg
import scipy.stats

from .errors import NumericalError


def symmetrize(a: np.ndarray) -> np.ndarray:
    x = np.asarray(a, dtype=float)
    if x.ndim != 2 or x.shape[0] != x.shape[1]:
        raise ValueError("a must be a square 2D array")
    return 0.5 * (x + x.T)


def cholesky(a: np.ndarray, *, name: str = "matrix") -> np.ndarray:
    """Lower Cholesky factor of a symmetric positive-definite matrix.

    Raises
    ------
    NumericalError
        If ``a`` is not positive-definite. The error's ``matrix`` attribute is ``name``.
    """
    x = symmetrize(a)
    if not np.all(np.isfinite(x)):
        raise NumericalError(f"{name} contains non-finite entries", matrix=name)
    try:
        return np.linalg.cholesky(x)
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"{name} is not positive-definite", matrix=name) from e


def solve_psd(a: np.ndarray, b: np.ndarray, *, name: str = "matrix") -> np.ndarray:
    l = cholesky(a, name=name)
    return scipy.linalg.cho_solve((l, True), np.asarray(b, dtype=float), check_finite=False)


def inv_psd(a: np.ndarray, *, name: str = "matrix") -> np.ndarray:
    x = np.asarray(a, dtype=float)
    return symmetrize(solve_psd(x, np.eye(x.shape[0], dtype=float), name=name))


def tridiagonal_cholesky(
    diag: np.ndarray, sub: np.ndarray, *, name: str = "tridiagonal matrix"
) -> tuple[np.ndarray, np.ndarray]:
    """Cholesky factor of a symmetric tridiagonal matrix in O(T).

    For ``M`` with diagonal ``d`` (length T) and sub-diagonal ``e`` (length T-1),
    returns ``(l, m)`` such that the lower bidiagonal ``L`` with diagonal ``l`` and
    sub-diagonal ``m`` satisfies ``L @ L.T == M``:

        l_1 = sqrt(d_1)
        m_i = e_i / l_i
        l_{i+1} = sqrt(d_{i+1} - m_i^2)
    """
    d = np.asarray(diag, dtype=float).reshape(-1)
    e = np.asarray(sub, dtype=float).reshape(-1)
    t = d.shape[0]
    if t < 1:
        raise ValueError("diag must be non-empty")
    if e.shape != (t - 1,):
        raise ValueError("sub must have length len(diag) - 1")

    l = np.empty(t, dtype=float)
    m = np.empty(t - 1, dtype=float)

    pivot = d[0]
    for i in range(t):
        if not (pivot > 0.0) or not np.isfinite(pivot):
            raise NumericalError(f"{name} is not positive-definite (pivot {i})", matrix=name)
        l[i] = np.sqrt(pivot)
        if i < t - 1:
            m[i] = e[i] / l[i]
            pivot = d[i + 1] - m[i] * m[i]

    return l, m


def tridiagonal_forward(l: np.ndarray, m: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve ``L y = b`` for lower bidiagonal ``L`` (diagonal ``l``, sub-diagonal ``m``)."""
    rhs = np.asarray(b, dtype=float).reshape(-1)
    t = l.shape[0]
    if rhs.shape != (t,):
        raise ValueError("b must have the same length as l")

    y = np.empty(t, dtype=float)
    y[0] = rhs[0] / l[0]
    for i in range(1, t):
        y[i] = (rhs[i] - m[i - 1] * y[i - 1]) / l[i]
    return y


def tridiagonal_backward(l: np.ndarray, m: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Solve ``L.T x = y`` for lower bidiagonal ``L`` (diagonal ``l``, sub-diagonal ``m``)."""
    rhs = np.asarray(y, dtype=float).reshape(-1)
    t = l.shape[0]
    if rhs.shape != (t,):
        raise ValueError("y must have the same length as l")

    x = np.empty(t, dtype=float)
    x[-1] = rhs[-1] / l[-1]
    for i in range(t - 2, -1, -1):
        x[i] = (rhs[i] - m[i] * x[i + 1]) / l[i]
    return x


def tridiagonal_solve(
    diag: np.ndarray, sub: np.ndarray, b: np.ndarray, *, name: str = "tridiagonal matrix"
) -> np.ndarray:
    l, m = tridiagonal_cholesky(diag, sub, name=name)
    return tridiagonal_backward(l, m, tridiagonal_forward(l, m, b))


def sample_wishart(
    *,
    df: float,
    scale: np.ndarray,
    rng: np.random.Generator,
    size: int | None = None,
    name: str = "wishart scale",
) -> np.ndarray:
    """Draw ``W ~ Wishart(df, scale)`` using the caller's generator.

    Returns ``(N, N)`` when ``size`` is None, else ``(size, N, N)``.
    """
    s = symmetrize(scale)
    n = s.shape[0]
    if not np.isfinite(df) or df <= n - 1:
        raise ValueError("df must be > N - 1")
    if size is not None and size < 1:
        raise ValueError("size must be >= 1")

    # surfaces a non-PD scale as NumericalError before scipy sees it
    cholesky(s, name=name)

    d = 1 if size is None else int(size)
    w = scipy.stats.wishart(df=df, scale=s).rvs(size=d, random_state=rng)
    w = np.asarray(w, dtype=float).reshape(d, n, n)
    w = 0.5 * (w + np.swapaxes(w, 1, 2))
    return w[0] if size is None else w


def sample_matrix_normal(
    *, mean: np.ndarray, row_chol: np.ndarray, col_chol: np.ndarray, rng: np.random.Generator
) -> np.ndarray:
    """Draw ``A ~ MN(mean, row_chol row_chol', col_chol col_chol')``.

    Uses ``vec(L_r Z L_c') ~ N(0, (L_c L_c') kron (L_r L_r'))`` for standard normal ``Z``.
    ``col_chol`` may carry leading batch dimensions, e.g. ``(D, N, N)``, in which case
    one draw per batch entry is returned with shape ``(D, K, N)``.
    """
    m = np.asarray(mean, dtype=float)
    lc = np.asarray(col_chol, dtype=float)
    z = rng.standard_normal(lc.shape[:-2] + m.shape)
    return m + row_chol @ z @ np.swapaxes(lc, -1, -2)
