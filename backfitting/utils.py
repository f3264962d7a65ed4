#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Helpers shared by the solver and the estimator: input validation, column
diagnostics and the package logger.
"""

import logging
import sys
from numbers import Integral, Real

import numpy as np
import scipy as sp
from sklearn.utils import check_scalar

from backfitting.exceptions import InvalidInputError

MACHINE_EPSILON = np.finfo(float).eps
EPSILON = np.sqrt(MACHINE_EPSILON)


def check_design(X, y):
    """Validate a design matrix and a response vector.

    Returns float64 copies of both. Every violation raises an
    InvalidInputError.

    Examples
    --------
    >>> X, y = check_design([[1, 2], [1, 3], [1, 5]], [1, 2, 3])
    >>> X.dtype, y.shape
    (dtype('float64'), (3,))
    >>> check_design(np.ones((5, 2)), np.ones(4))
    Traceback (most recent call last):
    ...
    backfitting.exceptions.InvalidInputError: X has 5 rows, but y has 4 entries.
    >>> check_design(np.ones((5, 0)), np.ones(5))
    Traceback (most recent call last):
    ...
    backfitting.exceptions.InvalidInputError: X must have at least one column.
    """
    try:
        X = np.array(X, dtype=float)
        y = np.array(y, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"X and y must be numeric arrays: {exc}") from exc

    if X.ndim != 2:
        raise InvalidInputError(f"X must be 2-dimensional, but found {X.ndim} dimensions.")
    if y.ndim != 1:
        raise InvalidInputError(f"y must be 1-dimensional, but found {y.ndim} dimensions.")

    num_samples, num_coefficients = X.shape
    if num_samples != len(y):
        raise InvalidInputError(f"X has {num_samples} rows, but y has {len(y)} entries.")
    if num_coefficients == 0:
        raise InvalidInputError("X must have at least one column.")
    if num_samples == 0:
        raise InvalidInputError("X and y must have at least one row.")

    if not np.all(np.isfinite(X)):
        raise InvalidInputError("X contains NaN or Inf.")
    if not np.all(np.isfinite(y)):
        raise InvalidInputError("y contains NaN or Inf.")

    return X, y


def check_max_iter(max_iter):
    """Return `max_iter` if it is a positive integer.

    >>> check_max_iter(10)
    10
    >>> check_max_iter(0)
    Traceback (most recent call last):
    ...
    backfitting.exceptions.InvalidInputError: max_iter == 0, must be >= 1.
    """
    try:
        return check_scalar(max_iter, "max_iter", target_type=Integral, min_val=1, include_boundaries="left")
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(str(exc)) from exc


def check_tol(tol):
    """Return `tol` if it is None or a positive real number.

    >>> check_tol(None) is None
    True
    >>> check_tol(1e-6)
    1e-06
    >>> check_tol(0.0)
    Traceback (most recent call last):
    ...
    backfitting.exceptions.InvalidInputError: tol == 0.0, must be > 0.0.
    >>> check_tol(float("nan"))
    Traceback (most recent call last):
    ...
    backfitting.exceptions.InvalidInputError: tol == nan, must be a finite number.
    """
    if tol is None:
        return None
    try:
        tol = check_scalar(tol, "tol", target_type=Real, min_val=0.0, include_boundaries="neither")
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(str(exc)) from exc

    if not np.isfinite(tol):
        raise InvalidInputError(f"tol == {tol}, must be a finite number.")
    return tol


def check_verbose(verbose):
    """Return `verbose` if it is a non-negative integer.

    >>> check_verbose(2)
    2
    >>> check_verbose(None)
    Traceback (most recent call last):
    ...
    backfitting.exceptions.InvalidInputError: verbose must be an instance of ..., not NoneType.
    """
    try:
        return check_scalar(verbose, "verbose", target_type=Integral, min_val=0)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(str(exc)) from exc


def intercept_columns(X):
    """Return a boolean mask of the columns that are all ones.

    >>> X = np.array([[1., 2., 1.],
    ...               [1., 3., 1.]])
    >>> intercept_columns(X)
    array([ True, False,  True])
    """
    return np.all(X == 1.0, axis=0)


def constant_columns(X):
    """Return a boolean mask of the columns with zero variance.

    Only exactly constant columns are flagged. A column with a tiny spread
    around a large offset is ill-conditioned but still has a defined slope,
    see `identifiable_parameters`.

    >>> X = np.array([[1., 2., 0., 7.],
    ...               [1., 3., 0., 7.]])
    >>> constant_columns(X)
    array([ True, False,  True,  True])
    >>> constant_columns(np.array([[1e9], [1e9 + 10]]))
    array([False])
    """
    return np.ptp(X, axis=0) == 0


def degenerate_columns(X):
    """Return a boolean mask of columns whose regression slope is undefined.

    A column is degenerate if it is all zeros, or if it is constant and an
    earlier column is constant too. In the latter case the column duplicates
    the intercept, and the coefficient split between them is arbitrary.

    Examples
    --------
    >>> X = np.array([[1., 2., 0., 7.],
    ...               [1., 3., 0., 7.]])
    >>> degenerate_columns(X)
    array([False, False,  True,  True])

    A single constant column acts as the intercept:

    >>> degenerate_columns(np.array([[2., 1.], [2., 0.]]))
    array([False, False])
    """
    zero = ~np.any(X, axis=0)
    constant = constant_columns(X) & ~zero
    duplicate = constant & (np.cumsum(constant) > 1)
    return zero | duplicate


def identifiable_parameters(X):
    """Return a boolean mask indicating identifiable parameters.

    Parameters that are not identifiable belong to columns that are linear
    combinations of other columns. Least squares has no unique solution if
    any such column exists.

    Parameters
    ----------
    X : np.ndarray
        A matrix.

    Returns
    -------
    identifiable_mask : np.ndarray
        One dimensional boolean array.

    Examples
    --------
    >>> X = np.array([[1, 0, 1],
    ...               [1, 0, 1],
    ...               [1, 1, 0]])
    >>> identifiable_parameters(X)
    array([ True, False,  True])

    More rows than columns:

    >>> X = np.array([[1, 1, 0],
    ...               [1, 1, 0],
    ...               [1, 1, 0],
    ...               [1, 0, 1]])
    >>> identifiable_parameters(X)
    array([ True, False,  True])

    """
    # Compute Q R = A P
    # https://en.wikipedia.org/wiki/QR_decomposition#Column_pivoting
    Q, R, pivot = sp.linalg.qr(X, mode="economic", pivoting=True)

    # Inverse pivot mapping
    pivot_inv = np.zeros_like(pivot)
    pivot_inv[pivot] = np.arange(len(pivot))

    # Columns with a vanishing diagonal entry in R are linearly dependent
    sizes = np.zeros(X.shape[1], dtype=float)
    sizes[: (R.shape[0])] = np.diag(R)
    scale = np.abs(sizes).max() if len(sizes) else 0.0
    identifiable = (np.abs(sizes) > EPSILON * max(scale, 1.0))[pivot_inv]

    return identifiable


def residual_sum_of_squares(X, y, beta):
    """Compute |y - X @ beta|^2.

    >>> X = np.array([[1., 0.], [1., 1.], [1., 2.]])
    >>> y = np.array([1., 2., 4.])
    >>> residual_sum_of_squares(X, y, np.array([1., 1.]))
    1.0
    """
    residuals = y - X @ beta
    return float(residuals @ residuals)


def set_logger():
    log = logging.getLogger("backfitting")

    # https://docs.python.org/3/library/logging.html#logging.Logger
    log.propagate = False  # Do not propagate to top-level logger

    # Create handler
    stream_handler = logging.StreamHandler(stream=sys.stdout)
    stream_handler.setLevel(logging.DEBUG)

    # Create and set formatter
    formatter = logging.Formatter("%(levelname)-8s: %(message)s")
    stream_handler.setFormatter(formatter)

    # Set handler
    if not log.handlers:
        log.addHandler(stream_handler)

    # Messages are gated by the `verbose` arguments, not by the logger level
    if log.level == logging.NOTSET:
        log.setLevel(logging.DEBUG)

    return log


if __name__ == "__main__":
    import pytest

    pytest.main(args=[__file__, "--capture=sys", "--doctest-modules", "--maxfail=1"])
