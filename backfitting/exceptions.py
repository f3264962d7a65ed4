#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Errors and warnings raised by the backfitting package.
"""


class InvalidInputError(ValueError):
    """Raised when the data or the solver arguments are malformed.

    Examples are a design matrix and a response with different numbers of
    rows, a design matrix with zero columns, or a non-positive `max_iter`.
    It is always raised before any sweep is performed.

    Examples
    --------
    >>> issubclass(InvalidInputError, ValueError)
    True
    """


class NumericDegeneracyError(ArithmeticError):
    """Raised when a least squares slope is undefined.

    This happens when a column has zero variance, so that regressing on it
    divides by zero.
    """


class NumericDegeneracyWarning(UserWarning):
    """Warning used when degenerate columns are detected but tolerated."""
