#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
A scikit-learn estimator for linear regression fitted by backfitting.
"""

import copy
import functools
import sys
import warnings
from numbers import Integral, Real

import numpy as np
import pandas as pd
import tabulate
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils import check_array, check_consistent_length, column_or_1d
from sklearn.utils._param_validation import Interval, StrOptions
from sklearn.utils.validation import _get_feature_names, check_is_fitted

from backfitting.exceptions import NumericDegeneracyWarning
from backfitting.optimizers import DEGENERATE_POLICIES, Backfitting
from backfitting.utils import identifiable_parameters


class BackfittingRegressor(RegressorMixin, BaseEstimator):
    """Initialize a linear regression model fitted by backfitting.

    The coefficients minimize the residual sum of squares, just like
    ordinary least squares, but they are found by cycling through the
    coefficients and regressing the partial residual on one column at a
    time.

    Parameters
    ----------
    fit_intercept : bool, optional
        Whether or not to add a column of ones to the data.
        The default is True.
    max_iter : int, optional
        Maximum number of sweeps over the coefficients.
        The default is 100.
    tol : float or None, optional
        Stop once a sweep changes the coefficients by at most `tol` in
        Euclidean norm. If None, `max_iter` sweeps are always performed.
        The default is 1e-8.
    init : None, "random" or array-like, optional
        Starting coefficients, including the intercept (first) when
        `fit_intercept` is True. None starts at zero.
        The default is None.
    random_state : int, RandomState instance or None, optional
        Used when `init="random"`. The default is None.
    degenerate : str, optional
        Either "warn" or "raise". What to do with all-zero columns or
        columns that duplicate the intercept. The default is "warn".
    verbose : int, optional
        Verbosity level. The higher the number, the more info is logged.
        The default is 0.

    Examples
    --------
    >>> from backfitting.datasets import make_linear_regression
    >>> X, y = make_linear_regression(num_samples=100, num_features=2, random_state=1)
    >>> model = BackfittingRegressor().fit(X, y)
    >>> round(model.intercept_, 1), model.coef_.round(1)
    (3.0, array([5., 5.]))
    >>> model.predict(X).shape
    (100,)

    """

    _parameter_constraints: dict = {
        "fit_intercept": ["boolean"],
        "max_iter": [Interval(Integral, 1, None, closed="left")],
        "tol": [Interval(Real, 0.0, None, closed="neither"), None],
        "init": [StrOptions({"random"}), "array-like", None],
        "random_state": ["random_state"],
        "degenerate": [StrOptions(set(DEGENERATE_POLICIES))],
        "verbose": [Integral, "boolean"],
    }

    def __init__(
        self,
        *,
        fit_intercept=True,
        max_iter=100,
        tol=1e-8,
        init=None,
        random_state=None,
        degenerate="warn",
        verbose=0,
    ):
        self.fit_intercept = fit_intercept
        self.max_iter = max_iter
        self.tol = tol
        self.init = init
        self.random_state = random_state
        self.degenerate = degenerate
        self.verbose = verbose

    def _model_matrix(self, X):
        if self.fit_intercept:
            return np.column_stack([np.ones(X.shape[0]), X])
        return X

    def _coefficient_names(self):
        names = list(self.feature_names_in_) if hasattr(self, "feature_names_in_") else []
        if not names:
            names = [f"x{i}" for i in range(self.n_features_in_)]
        return (["intercept"] if self.fit_intercept else []) + names

    def fit(self, X, y):
        """Fit model to data.

        Parameters
        ----------
        X : np.ndarray or pd.DataFrame
            Features of shape (num_samples, num_features), without an
            intercept column.
        y : np.ndarray or pd.Series
            An array of target values.

        Returns
        -------
        BackfittingRegressor
            Returns the instance.

        """
        self._validate_params()

        feature_names = _get_feature_names(X)
        check_consistent_length(X, y)
        X = check_array(X, dtype=np.float64, ensure_min_features=0)
        y = column_or_1d(y).astype(np.float64)

        self.n_features_in_ = X.shape[1]
        if feature_names is not None:
            self.feature_names_in_ = feature_names
        elif hasattr(self, "feature_names_in_"):
            del self.feature_names_in_

        model_matrix = self._model_matrix(X)

        # Backfitting still runs, but the solution it reaches is not unique
        identifiable = identifiable_parameters(model_matrix)
        if not np.all(identifiable):
            names = [name for (name, ok) in zip(self._coefficient_names(), identifiable) if not ok]
            msg = f"The design matrix is rank deficient. Coefficients {names} are not identifiable, "
            msg += "so the estimate depends on the initial value."
            warnings.warn(msg, NumericDegeneracyWarning)

        optimizer = Backfitting(
            X=model_matrix,
            y=y,
            max_iter=self.max_iter,
            tol=self.tol,
            init=self.init,
            random_state=self.random_state,
            degenerate=self.degenerate,
            verbose=self.verbose,
        )

        # Copy over solver information
        coef = optimizer.solve().copy()
        self.results_ = copy.deepcopy(optimizer.results_)
        self.n_iter_ = self.results_.n_iter

        if self.fit_intercept:
            self.intercept_, self.coef_ = float(coef[0]), coef[1:]
        else:
            self.intercept_, self.coef_ = 0.0, coef

        self.results_.r2 = self.score(X, y)
        return self

    def predict(self, X):
        """Predict with the fitted model.

        Parameters
        ----------
        X : np.ndarray or pd.DataFrame
            Features of shape (num_samples, num_features).

        Returns
        -------
        np.ndarray
            An array with predictions X @ coef_ + intercept_.

        """
        check_is_fitted(self, attributes=["coef_"])

        # Columns are matched by position, so names must be in the fitted order
        feature_names = _get_feature_names(X)
        fitted_names = getattr(self, "feature_names_in_", None)
        if feature_names is not None and fitted_names is not None:
            if not np.array_equal(feature_names, fitted_names):
                msg = f"The feature names {list(feature_names)} do not match those seen in fit, "
                msg += f"{list(fitted_names)}. Columns must have the same names, in the same order."
                raise ValueError(msg)

        X = check_array(X, dtype=np.float64, ensure_min_features=0)
        if X.shape[1] != self.n_features_in_:
            raise ValueError(f"X has {X.shape[1]} features, but {type(self).__name__} expects {self.n_features_in_}.")
        return X @ self.coef_ + self.intercept_

    def history(self):
        """Return the coefficients and the residual sum of squares per sweep.

        Returns
        -------
        pd.DataFrame
            One row per sweep, indexed by sweep number starting at 1.

        Examples
        --------
        >>> X = np.array([[0.], [1.], [2.], [3.]])
        >>> y = np.array([1., 3., 5., 7.])
        >>> model = BackfittingRegressor(max_iter=3, tol=None).fit(X, y)
        >>> list(model.history().columns)
        ['intercept', 'x0', 'rss']
        >>> len(model.history())
        3
        """
        check_is_fitted(self, attributes=["coef_"])

        df = pd.DataFrame(np.array(self.results_.iters_coef), columns=self._coefficient_names())
        df["rss"] = self.results_.iters_loss
        df.index = pd.RangeIndex(1, len(df) + 1, name="sweep")
        return df

    def summary(self, file=None):
        """Print a model summary.

        Parameters
        ----------
        file : filehandle, optional
            A file handle to write to.
            The default is None, which maps to sys.stdout.

        Returns
        -------
        None.

        """
        check_is_fitted(self, attributes=["coef_"])

        if file is None:
            file = sys.stdout

        p = functools.partial(print, file=file)
        fmt = functools.partial(np.format_float_positional, precision=4, min_digits=4)

        # ======================= MODEL PROPERTIES =======================
        rows = []
        rows.append(("Model", type(self).__name__))
        rows.append(("Sweeps", self.n_iter_))
        rows.append(("Converged", self.results_.converged))
        rows.append(("RSS", fmt(self.results_.iters_loss[-1])))
        rows.append(("R2", fmt(self.results_.r2)))

        p(tabulate.tabulate(rows, headers=("Property", "Value"), tablefmt="github"))

        # ============================ COEFFICIENTS ============================
        coef = np.concatenate([[self.intercept_], self.coef_]) if self.fit_intercept else self.coef_
        rows = [(name, fmt(value)) for (name, value) in zip(self._coefficient_names(), coef)]

        p()
        p(tabulate.tabulate(rows, headers=("Coefficient", "Estimate"), tablefmt="github"))


if __name__ == "__main__":
    import pytest

    pytest.main(args=[__file__, "-v", "--capture=sys", "--doctest-modules", "--maxfail=1"])
