#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import numbers

import numpy as np
import pandas as pd
from sklearn.utils import check_random_state, check_scalar


def make_linear_regression(
    num_samples=100,
    num_features=1,
    *,
    intercept=3.0,
    coef=None,
    noise=0.1,
    random_state=None,
    as_frame=False,
):
    """Simulate data from the linear model y = intercept + X @ coef + noise.

    Features and noise are drawn from normal distributions. The defaults
    give the model y = 3 + 5 * x1 + noise with noise standard deviation 0.1.

    Parameters
    ----------
    num_samples : int, optional
        Number of observations. The default is 100.
    num_features : int, optional
        Number of features, excluding the intercept. The default is 1.
    intercept : float, optional
        The true intercept. The default is 3.0.
    coef : array-like or None, optional
        The true coefficients, of length `num_features`. The default is None,
        which sets every coefficient to 5.
    noise : float, optional
        Standard deviation of the Gaussian noise. The default is 0.1.
    random_state : int, RandomState instance or None, optional
        Seed for reproducible data. The default is None.
    as_frame : bool, optional
        If True, return a DataFrame with columns x1, ..., xp and a Series
        named y. The default is False.

    Returns
    -------
    X : np.ndarray or pd.DataFrame
        Features of shape (num_samples, num_features), without an intercept
        column.
    y : np.ndarray or pd.Series
        Targets of shape (num_samples,).

    Examples
    --------
    >>> X, y = make_linear_regression(num_samples=5, num_features=3, random_state=0)
    >>> X.shape, y.shape
    ((5, 3), (5,))
    >>> X, y = make_linear_regression(num_samples=5, num_features=2, as_frame=True)
    >>> list(X.columns), y.name
    (['x1', 'x2'], 'y')
    """
    num_samples = check_scalar(num_samples, "num_samples", numbers.Integral, min_val=1)
    num_features = check_scalar(num_features, "num_features", numbers.Integral, min_val=0)
    noise = check_scalar(noise, "noise", numbers.Real, min_val=0)

    if coef is None:
        coef = np.full(num_features, 5.0)
    coef = np.asarray(coef, dtype=float)
    if coef.shape != (num_features,):
        raise ValueError(f"Parameter `coef` must have shape ({num_features},), got {coef.shape}.")

    rng = check_random_state(random_state)
    X = rng.standard_normal(size=(num_samples, num_features))
    y = intercept + X @ coef + noise * rng.standard_normal(size=num_samples)

    if as_frame:
        columns = [f"x{i + 1}" for i in range(num_features)]
        return pd.DataFrame(X, columns=columns), pd.Series(y, name="y")

    return X, y
