import numpy as np
import pytest
import scipy.linalg

from macrobvar.errors import NumericalError
from macrobvar.linalg import (
    cholesky,
    inv_psd,
    sample_matrix_normal,
    sample_wishart,
    solve_psd,
    symmetrize,
    tridiagonal_backward,
    tridiagonal_cholesky,
    tridiagonal_forward,
    tridiagonal_solve,
)


def _random_walk_precision(t: int, rng: np.random.Generator) -> tuple[np.ndarray, np.ndarray]:
    omega = rng.uniform(0.1, 8.0, size=t)
    inv_sig = 1.0 / 0.05
    diag = 1.0 / omega + inv_sig * np.r_[np.full(t - 1, 2.0), 1.0]
    sub = np.full(t - 1, -inv_sig)
    return diag, sub


def _dense(diag: np.ndarray, sub: np.ndarray) -> np.ndarray:
    return np.diag(diag) + np.diag(sub, -1) + np.diag(sub, 1)


def test_symmetrize() -> None:
    a = np.array([[1.0, 2.0], [0.0, 3.0]])
    s = symmetrize(a)
    assert np.allclose(s, np.array([[1.0, 1.0], [1.0, 3.0]]))


def test_solve_psd_matches_direct_solve() -> None:
    a = np.array([[2.0, 0.2], [0.2, 1.0]])
    b = np.array([1.0, 2.0])
    x = solve_psd(a, b)
    assert np.allclose(a @ x, b)


def test_solve_psd_non_square_raises() -> None:
    with pytest.raises(ValueError):
        solve_psd(np.zeros((2, 3)), np.zeros(2))


def test_inv_psd_is_symmetric_inverse() -> None:
    a = np.array([[4.0, 1.0, 0.5], [1.0, 3.0, 0.2], [0.5, 0.2, 2.0]])
    inv = inv_psd(a)
    assert np.allclose(inv, inv.T)
    assert np.allclose(inv @ a, np.eye(3), atol=1e-12)


def test_cholesky_names_the_failing_matrix() -> None:
    a = np.array([[1.0, 2.0], [2.0, 1.0]])
    with pytest.raises(NumericalError) as exc:
        cholesky(a, name="posterior precision")
    assert exc.value.matrix == "posterior precision"
    assert isinstance(exc.value, np.linalg.LinAlgError)


def test_tridiagonal_cholesky_matches_dense_factor() -> None:
    rng = np.random.default_rng(0)
    diag, sub = _random_walk_precision(50, rng)

    l, m = tridiagonal_cholesky(diag, sub)
    dense_l = np.linalg.cholesky(_dense(diag, sub))

    assert np.allclose(l, np.diag(dense_l), rtol=1e-10)
    assert np.allclose(m, np.diag(dense_l, -1), rtol=1e-10)


def test_tridiagonal_cholesky_matches_scipy_banded() -> None:
    rng = np.random.default_rng(1)
    diag, sub = _random_walk_precision(50, rng)

    ab = np.zeros((2, 50))
    ab[0] = diag
    ab[1, :-1] = sub
    banded = scipy.linalg.cholesky_banded(ab, lower=True)

    l, m = tridiagonal_cholesky(diag, sub)
    assert np.allclose(l, banded[0], rtol=1e-10)
    assert np.allclose(m, banded[1, :-1], rtol=1e-10)


def test_tridiagonal_solves_match_dense() -> None:
    rng = np.random.default_rng(2)
    diag, sub = _random_walk_precision(50, rng)
    b = rng.standard_normal(50)

    dense = _dense(diag, sub)
    dense_l = np.linalg.cholesky(dense)
    l, m = tridiagonal_cholesky(diag, sub)

    y = tridiagonal_forward(l, m, b)
    assert np.allclose(y, scipy.linalg.solve_triangular(dense_l, b, lower=True), rtol=1e-10)

    x = tridiagonal_backward(l, m, y)
    assert np.allclose(x, scipy.linalg.cho_solve((dense_l, True), b), rtol=1e-9)
    assert np.allclose(tridiagonal_solve(diag, sub, b), x)


def test_tridiagonal_cholesky_single_period() -> None:
    l, m = tridiagonal_cholesky(np.array([4.0]), np.array([]))
    assert np.allclose(l, [2.0])
    assert m.shape == (0,)


def test_tridiagonal_cholesky_non_pd_raises() -> None:
    diag = np.array([1.0, 1.0, 1.0])
    sub = np.array([2.0, 0.0])
    with pytest.raises(NumericalError) as exc:
        tridiagonal_cholesky(diag, sub, name="state precision")
    assert exc.value.matrix == "state precision"


def test_sample_wishart_shapes_and_mean() -> None:
    scale = np.array([[1.0, 0.3], [0.3, 0.5]])
    rng = np.random.default_rng(3)

    one = sample_wishart(df=6.0, scale=scale, rng=rng)
    assert one.shape == (2, 2)

    many = sample_wishart(df=6.0, scale=scale, rng=rng, size=20000)
    assert many.shape == (20000, 2, 2)
    assert np.allclose(many, np.swapaxes(many, 1, 2))
    assert np.allclose(many.mean(axis=0), 6.0 * scale, rtol=0.03, atol=0.03)


def test_sample_wishart_univariate_shape() -> None:
    w = sample_wishart(df=4.0, scale=np.array([[2.0]]), rng=np.random.default_rng(4), size=5)
    assert w.shape == (5, 1, 1)
    assert np.all(w > 0)


def test_sample_wishart_non_pd_scale_raises() -> None:
    with pytest.raises(NumericalError):
        sample_wishart(df=5.0, scale=np.array([[1.0, 2.0], [2.0, 1.0]]), rng=np.random.default_rng(0))


def test_sample_matrix_normal_batched_shape() -> None:
    rng = np.random.default_rng(5)
    mean = np.zeros((3, 2))
    lc = np.broadcast_to(np.eye(2), (7, 2, 2))
    out = sample_matrix_normal(mean=mean, row_chol=np.eye(3), col_chol=lc, rng=rng)
    assert out.shape == (7, 3, 2)
