#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Ordinary least squares building blocks.

Backfitting never solves a multiple regression problem. It only needs to
regress a partial residual on a single column, which is what the
simple regression primitives in this module do. The one-shot multiple
regression `least_squares` is the answer backfitting converges to.

>>> x = np.array([0., 1., 2., 3.])
>>> y = 1 + 2 * x
>>> simple_linear_regression(x, y)
SimpleRegression(intercept=1.0, slope=2.0)

"""
from collections import namedtuple

import numpy as np
import scipy as sp

from backfitting.exceptions import InvalidInputError, NumericDegeneracyError
from backfitting.utils import MACHINE_EPSILON, check_design

SimpleRegression = namedtuple("SimpleRegression", ["intercept", "slope"])


def _check_pair(x, y):
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.ndim != 1 or y.ndim != 1:
        raise InvalidInputError(f"x and y must be 1-dimensional, got shapes {x.shape} and {y.shape}.")
    if len(x) != len(y):
        raise InvalidInputError(f"x has {len(x)} entries, but y has {len(y)} entries.")
    if len(x) == 0:
        raise InvalidInputError("x and y must be non-empty.")
    return x, y


def simple_linear_regression(x, y, fit_intercept=True):
    """Regress y on a single predictor x using the closed form solution.

    With an intercept the slope is cov(x, y) / var(x), and the intercept
    makes the fitted line pass through (mean(x), mean(y)). Without an
    intercept the slope is <x, y> / <x, x> and the returned intercept is 0.

    Parameters
    ----------
    x : np.ndarray
        The predictor, shape (num_samples,).
    y : np.ndarray
        The response, shape (num_samples,).
    fit_intercept : bool, optional
        Whether to fit an intercept. The default is True.

    Returns
    -------
    SimpleRegression
        A named tuple (intercept, slope).

    Raises
    ------
    NumericDegeneracyError
        If the slope is undefined: x is constant and an intercept is fitted,
        or x is all zeros and no intercept is fitted.

    Examples
    --------
    >>> x = np.array([1., 2., 3.])
    >>> y = np.array([2., 4., 6.])
    >>> simple_linear_regression(x, y, fit_intercept=False)
    SimpleRegression(intercept=0.0, slope=2.0)
    >>> simple_linear_regression(np.ones(3), y)
    Traceback (most recent call last):
    ...
    backfitting.exceptions.NumericDegeneracyError: Slope is undefined, since x has zero variance.
    """
    x, y = _check_pair(x, y)

    if not fit_intercept:
        denominator = np.dot(x, x)
        if denominator == 0:
            raise NumericDegeneracyError("Slope is undefined, since x is all zeros.")
        return SimpleRegression(intercept=0.0, slope=float(np.dot(x, y) / denominator))

    x_mean, y_mean = x.mean(), y.mean()
    x_centered = x - x_mean
    denominator = np.dot(x_centered, x_centered)
    if denominator <= MACHINE_EPSILON * np.dot(x, x):
        raise NumericDegeneracyError("Slope is undefined, since x has zero variance.")

    slope = np.dot(x_centered, y - y_mean) / denominator
    return SimpleRegression(intercept=float(y_mean - slope * x_mean), slope=float(slope))


def lstsq_simple_linear_regression(x, y, fit_intercept=True):
    """Regress y on a single predictor x using `scipy.linalg.lstsq`.

    Same contract as `simple_linear_regression`, but the work is done by
    LAPACK on a one or two column design matrix.

    Examples
    --------
    >>> x = np.array([0., 1., 2., 3.])
    >>> result = lstsq_simple_linear_regression(x, 3 - x)
    >>> round(result.intercept, 6), round(result.slope, 6)
    (3.0, -1.0)
    """
    x, y = _check_pair(x, y)

    if fit_intercept:
        A = np.column_stack([np.ones_like(x), x])
    else:
        A = x.reshape(-1, 1)

    coef, _, rank, _ = sp.linalg.lstsq(A, y)
    if rank < A.shape[1]:
        msg = "x has zero variance." if fit_intercept else "x is all zeros."
        raise NumericDegeneracyError(f"Slope is undefined, since {msg}")

    if fit_intercept:
        return SimpleRegression(intercept=float(coef[0]), slope=float(coef[1]))
    return SimpleRegression(intercept=0.0, slope=float(coef[0]))


def least_squares(X, y):
    """Solve the multiple regression problem min |y - X @ beta|^2 in one shot.

    This is the estimate that backfitting approximates. When X does not have
    full column rank, the minimum norm solution is returned.

    Parameters
    ----------
    X : np.ndarray
        Design matrix of shape (num_samples, num_coefficients).
    y : np.ndarray
        Response of shape (num_samples,).

    Returns
    -------
    np.ndarray
        Coefficients of shape (num_coefficients,).

    Examples
    --------
    >>> X = np.array([[1., 0.], [1., 1.], [1., 2.]])
    >>> y = np.array([1., 3., 5.])
    >>> least_squares(X, y).round(6)
    array([1., 2.])
    """
    X, y = check_design(X, y)
    coef, *_ = sp.linalg.lstsq(X, y)
    return coef


if __name__ == "__main__":
    import pytest

    pytest.main(args=[__file__, "--capture=sys", "--doctest-modules", "--maxfail=1"])
