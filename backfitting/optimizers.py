#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Backfitting for linear regression.

Backfitting estimates the coefficients of a multiple linear regression

    y ~ X @ beta

using nothing but simple (single predictor) regression. Each coefficient is
updated in turn by regressing the partial residual

    r_j = y - sum_{k != j} X[:, k] * beta_k

on the column X[:, j], holding every other coefficient fixed. The updated
value is used immediately by the next coordinate (Gauss-Seidel). A full
pass over the coefficients is called a sweep. Since the least squares
objective is a convex quadratic, repeated sweeps converge to the ordinary
least squares solution from any finite starting point, and the residual
sum of squares never increases from one sweep to the next.

See Algorithm 9.1 in Hastie, Tibshirani and Friedman, The Elements of
Statistical Learning, 2nd ed, and exercise 7.11 in James, Witten, Hastie
and Tibshirani, An Introduction to Statistical Learning.

>>> rng = np.random.default_rng(42)
>>> x = rng.standard_normal(100)
>>> X = np.column_stack([np.ones(100), x])
>>> y = 3 + 5 * x
>>> backfit(X, y, max_iter=10).coef.round(6)
array([3., 5.])

"""
import functools
import warnings

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils import Bunch, check_random_state

from backfitting.exceptions import InvalidInputError, NumericDegeneracyError, NumericDegeneracyWarning
from backfitting.ols import simple_linear_regression
from backfitting.utils import (
    check_design,
    check_max_iter,
    check_tol,
    check_verbose,
    degenerate_columns,
    intercept_columns,
    residual_sum_of_squares,
    set_logger,
)

DEGENERATE_POLICIES = ("warn", "raise")


class Backfitting:
    """Fit linear regression coefficients by backfitting.

    Parameters
    ----------
    X : np.ndarray
        Design matrix of shape (num_samples, num_coefficients). Columns of
        all ones are treated as intercepts, and their coefficient is the
        mean of the partial residual. Column 0 is conventionally the
        intercept, but any column may be.
    y : np.ndarray
        Response vector of shape (num_samples,).
    max_iter : int, optional
        Maximum number of sweeps. The default is 10.
    tol : float or None, optional
        Stop once the Euclidean norm of the change in the coefficients over
        one sweep is at most `tol`. If None, exactly `max_iter` sweeps are
        performed. The default is None.
    init : None, "random" or np.ndarray, optional
        Starting coefficients. None starts at zero, "random" draws standard
        normal values using `random_state`. The default is None.
    random_state : int, RandomState instance or None, optional
        Used when `init="random"`. The default is None.
    degenerate : str, optional
        Either "warn" or "raise". What to do with columns whose regression
        slope is undefined, see `degenerate_columns`. With "warn" their
        coefficients are set to zero, whatever `init` says, and left out
        of the sweeps.
        The default is "warn".
    regressor : callable, optional
        Simple regression primitive with signature
        `regressor(x, y, fit_intercept) -> SimpleRegression`.
        The default is `simple_linear_regression`.
    callback : callable or None, optional
        Called as `callback(iteration, coef)` after every sweep. If it
        returns True the solver stops. The default is None.
    verbose : int, optional
        Verbosity level. The higher the number, the more info is logged.
        The default is 0.

    Examples
    --------
    >>> X = np.array([[1., 0.], [1., 1.], [1., 2.], [1., 3.]])
    >>> y = np.array([1., 3., 5., 7.])
    >>> optimizer = Backfitting(X=X, y=y, max_iter=200, tol=1e-12)
    >>> optimizer.solve().round(6)
    array([1., 2.])
    >>> optimizer.results_.converged
    True
    """

    # Printing options
    PRECISION = 4
    MIN_DIGITS = 4
    EXP_DIGITS = 2

    def __init__(
        self,
        *,
        X,
        y,
        max_iter=10,
        tol=None,
        init=None,
        random_state=None,
        degenerate="warn",
        regressor=simple_linear_regression,
        callback=None,
        verbose=0,
    ):
        self.X, self.y = check_design(X, y)
        self.max_iter = check_max_iter(max_iter)
        self.tol = check_tol(tol)
        self.init = init
        self.random_state = random_state
        self.degenerate = degenerate
        self.regressor = regressor
        self.callback = callback
        self.verbose = check_verbose(verbose)

        self._validate_params()
        self.results_ = Bunch(iters_coef=[], iters_loss=[])
        self.logger = set_logger()
        self.fmt = functools.partial(
            np.format_float_scientific,
            precision=self.PRECISION,
            min_digits=self.MIN_DIGITS,
            exp_digits=self.EXP_DIGITS,
        )

    def _validate_params(self):
        """Validate the parameters that are not validated on assignment."""
        if self.degenerate not in DEGENERATE_POLICIES:
            raise InvalidInputError(f"Parameter `degenerate` must be in {DEGENERATE_POLICIES}, got {self.degenerate!r}.")

        if not callable(self.regressor):
            raise InvalidInputError("Parameter `regressor` must be callable.")

        if self.callback is not None and not callable(self.callback):
            raise InvalidInputError("Parameter `callback` must be callable or None.")

    def initial_estimate(self):
        """Return the starting coefficients as a new array."""
        num_coefficients = self.X.shape[1]

        if self.init is None:
            return np.zeros(num_coefficients, dtype=float)

        if isinstance(self.init, str):
            if self.init != "random":
                raise InvalidInputError(f"Parameter `init` must be None, 'random' or an array, got {self.init!r}.")
            rng = check_random_state(self.random_state)
            return rng.standard_normal(size=num_coefficients)

        try:
            beta = np.array(self.init, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Parameter `init` must be numeric: {exc}") from exc

        if beta.shape != (num_coefficients,):
            raise InvalidInputError(f"Parameter `init` must have shape ({num_coefficients},), got {beta.shape}.")
        if not np.all(np.isfinite(beta)):
            raise InvalidInputError("Parameter `init` contains NaN or Inf.")

        return beta

    def evaluate_objective(self, beta):
        """Evaluate the objective, the residual sum of squares |y - X @ beta|^2."""
        return residual_sum_of_squares(self.X, self.y, beta)

    def log(self, beta):
        """Log the coefficients and the objective after a sweep."""
        self.results_.iters_coef.append(beta.copy())
        self.results_.iters_loss.append(self.evaluate_objective(beta))

    def _should_stop(self, *, step):
        if self.tol is None:
            return False

        assert np.isfinite(step)
        return bool(step <= self.tol)

    def sweep(self, beta, eta):
        """Update every active coefficient once, in increasing column order.

        Both `beta` and the fitted values `eta = X @ beta` are updated in
        place, so coordinate j + 1 sees the new value of coordinate j.
        """
        X, y = self.X, self.y

        for j in self._active:
            x_j = X[:, j]

            # Add back the contribution of column j to get its partial residual
            partial_residual = y - eta + x_j * beta[j]

            if self._intercepts[j]:
                beta_j = partial_residual.mean()
            else:
                beta_j = self.regressor(x_j, partial_residual, fit_intercept=False).slope

            eta += x_j * (beta_j - beta[j])
            beta[j] = beta_j

        return beta, eta

    def _handle_degenerate_columns(self, beta):
        degenerate = degenerate_columns(self.X)
        self.results_.degenerate_columns = np.flatnonzero(degenerate)
        self._active = np.flatnonzero(~degenerate)

        if not np.any(degenerate):
            return beta

        columns = self.results_.degenerate_columns.tolist()
        msg = f"Columns {columns} of X are all zeros or duplicate another constant column, "
        msg += "so their regression slopes are undefined."
        if self.degenerate == "raise":
            raise NumericDegeneracyError(msg)

        msg += " Their coefficients are set to zero and not updated."
        warnings.warn(msg, NumericDegeneracyWarning)

        beta[degenerate] = 0.0
        return beta

    def solve(self):
        """Run the sweeps and return the final coefficients."""
        fmt = self.fmt  # Number formatter
        num_samples, num_coefficients = self.X.shape

        # =============================================================================
        # GENERAL SETUP
        # =============================================================================
        self.results_ = Bunch(iters_coef=[], iters_loss=[])
        beta = self.initial_estimate()
        beta = self._handle_degenerate_columns(beta)
        self._intercepts = intercept_columns(self.X)

        if self.verbose >= 2:
            self.logger.debug(f"Backfitting {num_coefficients} coefficients on {num_samples} samples.")
            self.logger.debug(f"Degenerate columns: {self.results_.degenerate_columns.tolist()}")
            self.logger.debug(f"Initial guess:  RSS: {fmt(self.evaluate_objective(beta))}")

        # =============================================================================
        # MAIN LOOP
        # =============================================================================
        converged = False
        for iteration in range(1, self.max_iter + 1):
            # Fitted values are recomputed from scratch once per sweep
            eta = self.X @ beta
            beta_previous = beta.copy()

            beta, eta = self.sweep(beta, eta)
            self.log(beta)

            step = np.linalg.norm(beta - beta_previous)

            if self.verbose >= 1:
                lpad = int(np.floor(np.log10(self.max_iter))) + 1
                msg = f"Iteration: {str(iteration).rjust(lpad, ' ')}/{self.max_iter}   "
                msg += f"RSS: {fmt(self.results_.iters_loss[-1])}   "
                msg += f"Coef. rmse: {fmt(np.sqrt(np.mean(beta**2)))}   "
                msg += f"Step: {fmt(step)}"
                self.logger.info(msg)

            converged = self._should_stop(step=step)
            stop = self.callback is not None and bool(self.callback(iteration, beta.copy()))

            if converged:
                if self.verbose >= 1:
                    self.logger.info(" => SUCCESS: Solver converged (met tolerance criterion).")
                break

            if stop:
                if self.verbose >= 1:
                    self.logger.info(f" => Stopped by callback after {iteration} sweeps.")
                break

        # Tolerance was given, but not met
        else:
            if self.tol is not None:
                if self.verbose >= 1:
                    self.logger.info(f" => FAILURE: Solver did not converge in {self.max_iter} sweeps.")

                msg = f"Solver did not converge in {self.max_iter} sweeps.\n"
                msg += "Increase `max_iter`, increase `tol` or decorrelate the columns of X."
                warnings.warn(msg, ConvergenceWarning)

        self.results_.n_iter = iteration
        self.results_.converged = converged

        return beta


def backfit(
    X,
    y,
    *,
    max_iter=10,
    init=None,
    tol=None,
    random_state=None,
    return_history=False,
    degenerate="warn",
    regressor=simple_linear_regression,
    callback=None,
    verbose=0,
):
    """Estimate linear regression coefficients by backfitting.

    Parameters
    ----------
    X : array-like
        Design matrix of shape (num_samples, num_coefficients). Column 0 is
        conventionally all ones (the intercept).
    y : array-like
        Response vector of shape (num_samples,).
    max_iter : int, optional
        Maximum number of sweeps. The default is 10.
    init : None, "random" or array-like, optional
        Starting coefficients. The default is None, which starts at zero.
    tol : float or None, optional
        Stop early once a sweep changes the coefficients by at most `tol`
        in Euclidean norm. The default is None, which always performs
        `max_iter` sweeps.
    random_state : int, RandomState instance or None, optional
        Used when `init="random"`. The default is None.
    return_history : bool, optional
        Whether to include the coefficients and the residual sum of squares
        after every sweep. The default is False.
    degenerate : str, optional
        Either "warn" or "raise". The default is "warn".
    regressor : callable, optional
        Simple regression primitive. The default is `simple_linear_regression`.
    callback : callable or None, optional
        Called as `callback(iteration, coef)` after every sweep. Returning
        True stops the solver. The default is None.
    verbose : int, optional
        Verbosity level. The default is 0.

    Returns
    -------
    Bunch
        With keys `coef`, `n_iter` and `converged`, plus `iters_coef` and
        `iters_loss` if `return_history` is True.

    Examples
    --------
    With only an intercept, the answer is the mean after one sweep:

    >>> X = np.ones((4, 1))
    >>> y = np.array([1., 2., 3., 6.])
    >>> result = backfit(X, y, max_iter=5, tol=1e-12)
    >>> result.coef, result.n_iter
    (array([3.]), 2)

    The history has one entry per sweep:

    >>> result = backfit(X, y, max_iter=3, return_history=True)
    >>> len(result.iters_coef), result.iters_loss[-1]
    (3, 14.0)
    """
    optimizer = Backfitting(
        X=X,
        y=y,
        max_iter=max_iter,
        tol=tol,
        init=init,
        random_state=random_state,
        degenerate=degenerate,
        regressor=regressor,
        callback=callback,
        verbose=verbose,
    )
    coef = optimizer.solve()

    result = Bunch(coef=coef, n_iter=optimizer.results_.n_iter, converged=optimizer.results_.converged)
    if return_history:
        result.iters_coef = optimizer.results_.iters_coef
        result.iters_loss = optimizer.results_.iters_loss

    return result


if __name__ == "__main__":
    import pytest

    pytest.main(args=[__file__, "-v", "--capture=sys", "--doctest-modules"])
