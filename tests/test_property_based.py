import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra import numpy as hnp

from macrobvar.metrics import hdi
from macrobvar.var import design_matrix
from macrobvar.var import lag_matrix


@st.composite
def _y_p(draw: st.DrawFn) -> tuple[np.ndarray, int]:
    n = draw(st.integers(min_value=1, max_value=4))
    p = draw(st.integers(min_value=1, max_value=4))
    t = draw(st.integers(min_value=p + 1, max_value=p + 15))
    y = draw(
        hnp.arrays(
            dtype=np.float64,
            shape=(t, n),
            elements=st.floats(min_value=-10, max_value=10, allow_nan=False, allow_infinity=False),
        )
    )
    return y, p


@settings(max_examples=75, deadline=None)
@given(_y_p())
def test_design_matrix_shapes_and_targets(arg: tuple[np.ndarray, int]) -> None:
    y, p = arg

    x, yt = design_matrix(y, p)

    t, n = y.shape
    assert yt.shape == (t - p, n)
    assert np.allclose(yt, y[p:, :])
    assert x.shape == (t - p, 1 + n * p)
    assert np.allclose(x[:, 0], 1.0)


@settings(max_examples=75, deadline=None)
@given(_y_p())
def test_lag_matrix_matches_design_matrix_without_intercept(arg: tuple[np.ndarray, int]) -> None:
    y, p = arg

    xl = lag_matrix(y, p)
    x, _yt = design_matrix(y, p)

    assert np.allclose(xl, x[:, 1:])


@settings(max_examples=100, deadline=None)
@given(
    hnp.arrays(
        dtype=np.float64,
        shape=hnp.array_shapes(min_dims=1, max_dims=3, min_side=1, max_side=30),
        elements=st.floats(min_value=-1e3, max_value=1e3, allow_nan=False, allow_infinity=False),
    ),
    st.floats(min_value=0.05, max_value=0.95),
)
def test_hdi_contains_required_mass(samples: np.ndarray, mass: float) -> None:
    lower, upper = hdi(samples, mass, axis=0)

    s = samples.shape[0]
    assert lower.shape == samples.shape[1:]
    assert np.all(lower <= upper)

    inside = np.sum((samples >= lower) & (samples <= upper), axis=0)
    assert np.all(inside >= int(np.floor(mass * s)) + 1)
