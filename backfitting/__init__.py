#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""

Backfitting
-----------

Backfitting fits a multiple linear regression

    y = beta_0 + beta_1 x_1 + ... + beta_p x_p + noise

using only simple linear regression. The coefficients are updated one at a
time: coefficient j is set to the least squares slope of the partial
residual (y minus the fitted contribution of every other column) on column
j, and the new value is used right away for the next coefficient. One pass
over all coefficients is a sweep. Repeating sweeps converges to the
ordinary least squares solution.

>>> import numpy as np
>>> from backfitting import backfit, least_squares
>>> rng = np.random.default_rng(1)
>>> X = np.column_stack([np.ones(100), rng.standard_normal((100, 3))])
>>> y = X @ np.array([1., 2., 3., 4.]) + rng.standard_normal(100)
>>> result = backfit(X, y, max_iter=100)
>>> np.allclose(result.coef, least_squares(X, y))
True

The same algorithm in a scikit-learn estimator:

>>> from backfitting import BackfittingRegressor
>>> model = BackfittingRegressor().fit(X[:, 1:], y)
>>> np.allclose(model.coef_, result.coef[1:])
True

Hastie, T., Tibshirani, R., Friedman, J.
The Elements of Statistical Learning, 2nd ed. Springer (2009). Section 9.1.1.

"""

import importlib.metadata

from backfitting.datasets import make_linear_regression
from backfitting.exceptions import InvalidInputError, NumericDegeneracyError, NumericDegeneracyWarning
from backfitting.linear_model import BackfittingRegressor
from backfitting.ols import least_squares, lstsq_simple_linear_regression, simple_linear_regression
from backfitting.optimizers import Backfitting, backfit

__version__ = importlib.metadata.version("backfitting")

__all__ = [
    "Backfitting",
    "BackfittingRegressor",
    "InvalidInputError",
    "NumericDegeneracyError",
    "NumericDegeneracyWarning",
    "backfit",
    "least_squares",
    "lstsq_simple_linear_regression",
    "make_linear_regression",
    "simple_linear_regression",
]
