from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from ..errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Dataset:
    """Container for the balanced, regularly sampled series the model is fit on.

    The values matrix has shape ``(T, N)``:

    - ``T`` is the number of time points (chronologically ordered)
    - ``N`` is the number of variables (series)

    Parameters
    ----------
    time_index:
        Time index for the observations. Can be a :class:`pandas.Index` (e.g. a
        :class:`pandas.DatetimeIndex`) or anything coercible to one.
    variables:
        Variable names of length ``N``.
    values:
        Numeric array of shape ``(T, N)`` without missing values.

    Notes
    -----
    Transformations (logs, differencing, temporal disaggregation) are the caller's
    responsibility; the estimation code only ever reads ``values``.
    """
    time_index: pd.Index
    variables: list[str]
    values: np.ndarray

    @staticmethod
    def from_arrays(
        *,
        values: np.ndarray,
        variables: Sequence[str],
        time_index: Iterable[object] | pd.Index | None = None,
    ) -> "Dataset":
        """Construct a :class:`~macrobvar.data.dataset.Dataset` from array-like inputs.

        Parameters
        ----------
        values:
            A numeric array of shape ``(T, N)``.
        variables:
            Sequence of variable names of length ``N``.
        time_index:
            Optional time index. If omitted, a :class:`pandas.RangeIndex` with
            ``start=0`` is used.

        Raises
        ------
        ConfigurationError
            If shapes are inconsistent or ``values`` contains NaN/inf.
        """
        x = np.asarray(values, dtype=float)
        if x.ndim != 2:
            raise ConfigurationError("values must be a 2D array of shape (T, N)")

        vars_list = list(variables)
        if len(vars_list) != x.shape[1]:
            raise ConfigurationError("len(variables) must equal values.shape[1]")

        if time_index is None:
            idx = pd.RangeIndex(start=0, stop=x.shape[0], step=1)
        else:
            idx = time_index if isinstance(time_index, pd.Index) else pd.Index(list(time_index))
            if len(idx) != x.shape[0]:
                raise ConfigurationError("len(time_index) must equal values.shape[0]")

        return Dataset(time_index=idx, variables=vars_list, values=x)

    @staticmethod
    def from_frame(df: pd.DataFrame, *, variables: Sequence[str] | None = None) -> "Dataset":
        """Construct a dataset from the columns of a :class:`pandas.DataFrame`."""
        cols = list(df.columns) if variables is None else list(variables)
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise ConfigurationError(f"columns not found in frame: {missing}")
        return Dataset.from_arrays(
            values=df.loc[:, cols].to_numpy(dtype=float, copy=True),
            variables=[str(c) for c in cols],
            time_index=df.index,
        )

    def __post_init__(self) -> None:
        x = np.asarray(self.values, dtype=float)
        if x.ndim != 2:
            raise ConfigurationError("values must be a 2D array of shape (T, N)")
        if x.shape[1] < 1:
            raise ConfigurationError("dataset must contain at least one variable")
        if not np.all(np.isfinite(x)):
            raise ConfigurationError("values must not contain missing or infinite entries")

        if len(self.variables) != x.shape[1]:
            raise ConfigurationError("len(variables) must equal values.shape[1]")

        if len(self.time_index) != x.shape[0]:
            raise ConfigurationError("len(time_index) must equal values.shape[0]")

        object.__setattr__(self, "values", x)
        if not isinstance(self.time_index, pd.Index):
            object.__setattr__(self, "time_index", pd.Index(self.time_index))

    @property
    def T(self) -> int:
        """Number of time points (rows) in the dataset."""
        return int(self.values.shape[0])

    @property
    def N(self) -> int:
        """Number of variables (columns) in the dataset."""
        return int(self.values.shape[1])
