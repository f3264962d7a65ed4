#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging
import logging.handlers
import warnings

import numpy as np
import pytest
from sklearn.exceptions import ConvergenceWarning

from backfitting.datasets import make_linear_regression
from backfitting.exceptions import InvalidInputError, NumericDegeneracyError, NumericDegeneracyWarning
from backfitting.ols import least_squares, lstsq_simple_linear_regression, simple_linear_regression
from backfitting.optimizers import Backfitting, backfit
from backfitting.utils import degenerate_columns, set_logger


def linear_problem(seed, num_samples=100, num_features=5):
    """Return a design matrix with an intercept column, and a response."""
    X, y = make_linear_regression(
        num_samples=num_samples,
        num_features=num_features,
        coef=np.linspace(-2, 2, num=num_features),
        noise=1.0,
        random_state=seed,
    )
    return np.column_stack([np.ones(num_samples), X]), y


class TestConvergence:
    @pytest.mark.parametrize("num_features", [1, 3, 10])
    @pytest.mark.parametrize("seed", list(range(10)))
    def test_that_backfitting_converges_to_least_squares(self, seed, num_features):
        X, y = linear_problem(seed, num_features=num_features)

        result = backfit(X, y, max_iter=100)
        expected = least_squares(X, y)

        assert np.allclose(result.coef, expected, rtol=1e-6, atol=1e-8)

    def test_many_features(self):
        # p = 100 predictors and n = 1000 observations
        X, y = linear_problem(seed=42, num_samples=1000, num_features=100)

        result = backfit(X, y, max_iter=100)
        assert np.allclose(result.coef, least_squares(X, y), atol=1e-6)

    @pytest.mark.parametrize("seed", list(range(5)))
    def test_that_correlated_features_converge(self, seed):
        rng = np.random.default_rng(seed)
        z = rng.standard_normal(size=200)
        X = np.column_stack([np.ones(200), z + 0.3 * rng.standard_normal(size=200), z, rng.uniform(size=200)])
        y = X @ np.array([1.0, 2.0, -1.0, 0.5]) + rng.standard_normal(size=200)

        result = backfit(X, y, max_iter=2000, tol=1e-10)
        assert result.converged
        assert np.allclose(result.coef, least_squares(X, y), rtol=1e-6, atol=1e-8)

    @pytest.mark.parametrize("seed", list(range(10)))
    def test_that_initial_value_does_not_matter(self, seed):
        X, y = linear_problem(seed)
        rng = np.random.default_rng(seed)

        result1 = backfit(X, y, max_iter=100, init=rng.normal(scale=100, size=X.shape[1]))
        result2 = backfit(X, y, max_iter=100, init="random", random_state=seed)
        result3 = backfit(X, y, max_iter=100)

        assert np.allclose(result1.coef, result2.coef)
        assert np.allclose(result1.coef, result3.coef)

    @pytest.mark.parametrize("max_iter", [1, 2, 10])
    @pytest.mark.parametrize("seed", list(range(5)))
    def test_that_intercept_only_model_gives_the_mean(self, seed, max_iter):
        rng = np.random.default_rng(seed)
        y = rng.normal(loc=7, size=25)
        X = np.ones((25, 1))

        result = backfit(X, y, max_iter=max_iter, init=[123.0], return_history=True)

        # The mean is found in the first sweep
        assert np.isclose(result.iters_coef[0][0], np.mean(y))
        assert np.isclose(result.coef[0], np.mean(y))

    @pytest.mark.parametrize("seed", list(range(10)))
    def test_that_residual_sum_of_squares_never_increases(self, seed):
        X, y = linear_problem(seed, num_features=8)

        result = backfit(X, y, max_iter=30, init="random", random_state=seed, return_history=True)
        losses = np.array(result.iters_loss)

        assert len(losses) == 30
        assert np.all(np.diff(losses) <= 1e-9 * losses[0])

    def test_generative_model_with_ten_sweeps(self):
        # y = 3 + 5 x1 + noise, with noise standard deviation 0.1
        X, y = make_linear_regression(num_samples=100, num_features=1, random_state=1)
        X = np.column_stack([np.ones(100), X])

        result = backfit(X, y, max_iter=10)

        assert result.n_iter == 10
        assert np.allclose(result.coef, [3, 5], atol=0.05)
        assert np.allclose(result.coef, least_squares(X, y), atol=1e-6)

    def test_that_intercept_may_be_any_column(self):
        X, y = linear_problem(seed=3, num_features=3)
        X_reversed = X[:, ::-1]

        result = backfit(X_reversed, y, max_iter=100)
        assert np.allclose(result.coef[::-1], least_squares(X, y))

    def test_that_regressors_give_equal_results(self):
        X, y = linear_problem(seed=7, num_features=4)

        result1 = backfit(X, y, max_iter=20, regressor=simple_linear_regression, return_history=True)
        result2 = backfit(X, y, max_iter=20, regressor=lstsq_simple_linear_regression, return_history=True)

        assert np.allclose(result1.iters_coef, result2.iters_coef)


class TestSweep:
    def test_that_updates_use_latest_values(self):
        # Two correlated columns and no intercept: the second update must see
        # the first one, which makes it differ from a simultaneous update
        X = np.array([[1.0, 1.0], [1.0, 2.0], [2.0, 1.0], [0.0, 1.0]])
        y = np.array([1.0, 2.0, 3.0, 4.0])

        result = backfit(X, y, max_iter=1)

        beta_0 = simple_linear_regression(X[:, 0], y, fit_intercept=False).slope
        beta_1 = simple_linear_regression(X[:, 1], y - X[:, 0] * beta_0, fit_intercept=False).slope
        assert np.allclose(result.coef, [beta_0, beta_1])

    def test_that_inputs_are_not_mutated(self):
        X, y = linear_problem(seed=1)
        init = np.ones(X.shape[1])
        X_copy, y_copy, init_copy = X.copy(), y.copy(), init.copy()

        backfit(X, y, max_iter=5, init=init)

        assert np.array_equal(X, X_copy)
        assert np.array_equal(y, y_copy)
        assert np.array_equal(init, init_copy)

    def test_that_history_snapshots_are_independent(self):
        X, y = linear_problem(seed=2)
        result = backfit(X, y, max_iter=5, return_history=True)

        assert len(result.iters_coef) == 5
        assert not np.array_equal(result.iters_coef[0], result.iters_coef[-1])
        assert np.array_equal(result.iters_coef[-1], result.coef)

    def test_that_each_solve_starts_a_fresh_history(self):
        X, y = linear_problem(seed=2)
        optimizer = Backfitting(X=X, y=y, max_iter=3)

        first = optimizer.solve()
        second = optimizer.solve()

        assert np.array_equal(first, second)
        assert optimizer.results_.n_iter == 3
        assert len(optimizer.results_.iters_coef) == 3
        assert len(optimizer.results_.iters_loss) == 3


class TestStopping:
    def test_that_fixed_iteration_count_is_default(self):
        X, y = linear_problem(seed=0)
        result = backfit(X, y, max_iter=7)

        assert result.n_iter == 7
        assert not result.converged
        assert "iters_coef" not in result

    def test_that_tolerance_stops_early(self):
        X, y = linear_problem(seed=0)
        result = backfit(X, y, max_iter=1000, tol=1e-10, return_history=True)

        assert result.converged
        assert result.n_iter < 1000
        assert len(result.iters_coef) == result.n_iter
        assert np.linalg.norm(result.iters_coef[-1] - result.iters_coef[-2]) <= 1e-10

    def test_that_unmet_tolerance_warns(self):
        X, y = linear_problem(seed=0)

        with pytest.warns(ConvergenceWarning):
            result = backfit(X, y, max_iter=1, tol=1e-14)

        assert result.n_iter == 1
        assert not result.converged

    def test_that_no_tolerance_does_not_warn(self):
        X, y = linear_problem(seed=0)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            backfit(X, y, max_iter=1)

    def test_that_callback_can_stop_the_solver(self):
        X, y = linear_problem(seed=0)
        calls = []

        def callback(iteration, coef):
            calls.append((iteration, coef))
            return iteration == 3

        result = backfit(X, y, max_iter=50, callback=callback, return_history=True)

        assert result.n_iter == 3
        assert [iteration for (iteration, _) in calls] == [1, 2, 3]
        assert np.array_equal(calls[-1][1], result.coef)
        assert len(result.iters_coef) == 3

    def test_that_callback_receives_copies(self):
        X, y = linear_problem(seed=0)

        def callback(iteration, coef):
            coef[:] = np.nan

        result = backfit(X, y, max_iter=3, callback=callback)
        assert np.all(np.isfinite(result.coef))


class TestInvalidInput:
    def test_that_mismatched_rows_raise_before_any_sweep(self):
        calls = []
        with pytest.raises(InvalidInputError):
            backfit(np.ones((5, 2)), np.ones(4), callback=lambda *args: calls.append(args))
        assert calls == []

    @pytest.mark.parametrize(
        "X, y",
        [
            (np.ones((5, 0)), np.ones(5)),
            (np.ones(5), np.ones(5)),
            (np.ones((5, 2)), np.ones((5, 1))),
            (np.ones((0, 2)), np.ones(0)),
            (np.array([[1.0, np.nan], [1.0, 2.0]]), np.ones(2)),
            (np.ones((2, 2)), np.array([1.0, np.inf])),
        ],
    )
    def test_that_malformed_data_raises(self, X, y):
        with pytest.raises(InvalidInputError):
            backfit(X, y)

    @pytest.mark.parametrize("max_iter", [0, -1, 2.5, "10"])
    def test_that_invalid_max_iter_raises(self, max_iter):
        X, y = linear_problem(seed=0)
        with pytest.raises(InvalidInputError):
            backfit(X, y, max_iter=max_iter)

    @pytest.mark.parametrize("tol", [0, -1e-3, "small", np.nan, np.inf])
    def test_that_invalid_tol_raises(self, tol):
        X, y = linear_problem(seed=0)
        with pytest.raises(InvalidInputError):
            backfit(X, y, tol=tol)

    @pytest.mark.parametrize("init", ["zeros", np.ones(3), np.array([np.nan] * 6), [[1.0] * 6]])
    def test_that_invalid_init_raises(self, init):
        X, y = linear_problem(seed=0)
        with pytest.raises(InvalidInputError):
            backfit(X, y, init=init)

    @pytest.mark.parametrize("verbose", [None, -1, "high", 1.5])
    def test_that_invalid_verbose_raises(self, verbose):
        X, y = linear_problem(seed=0)
        with pytest.raises(InvalidInputError):
            backfit(X, y, verbose=verbose)

    def test_that_invalid_degenerate_policy_raises(self):
        X, y = linear_problem(seed=0)
        with pytest.raises(InvalidInputError):
            backfit(X, y, degenerate="ignore")

    def test_that_invalid_input_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            backfit(np.ones((5, 2)), np.ones(4))


class TestDegenerateColumns:
    def test_that_zero_column_warns_and_is_held_at_zero(self):
        X, y = linear_problem(seed=0, num_features=2)
        X_degenerate = np.column_stack([X, np.zeros(len(y))])

        with pytest.warns(NumericDegeneracyWarning):
            result = backfit(X_degenerate, y, max_iter=100, init="random", random_state=1)

        assert result.coef[-1] == 0
        assert np.all(np.isfinite(result.coef))
        assert np.allclose(result.coef[:-1], least_squares(X, y))

    def test_that_duplicate_intercept_warns(self):
        X, y = linear_problem(seed=0, num_features=2)
        X_degenerate = np.column_stack([X, np.full(len(y), 2.0)])

        with pytest.warns(NumericDegeneracyWarning):
            result = backfit(X_degenerate, y, max_iter=100)

        assert result.coef[-1] == 0
        assert np.allclose(result.coef[:-1], least_squares(X, y))

    def test_that_degenerate_columns_can_raise(self):
        X, y = linear_problem(seed=0, num_features=2)
        X_degenerate = np.column_stack([X, np.zeros(len(y))])

        with pytest.raises(NumericDegeneracyError):
            backfit(X_degenerate, y, degenerate="raise")

    def test_that_degenerate_columns_are_recorded(self):
        X, y = linear_problem(seed=0, num_features=2)
        X_degenerate = np.column_stack([np.zeros(len(y)), X])

        optimizer = Backfitting(X=X_degenerate, y=y, max_iter=3)
        with pytest.warns(NumericDegeneracyWarning):
            optimizer.solve()

        assert optimizer.results_.degenerate_columns.tolist() == [0]

    def test_that_collinear_columns_do_not_produce_nan(self):
        X, y = linear_problem(seed=0, num_features=2)
        X_collinear = np.column_stack([X, 2 * X[:, 1]])

        result = backfit(X_collinear, y, max_iter=200)
        fitted = X_collinear @ result.coef

        # The coefficients are not unique, but the fitted values are
        assert np.all(np.isfinite(result.coef))
        assert np.allclose(fitted, X @ least_squares(X, y), atol=1e-6)

    def test_that_init_of_degenerate_column_is_overridden(self):
        X, y = linear_problem(seed=0, num_features=2)
        X_degenerate = np.column_stack([X, np.zeros(len(y))])

        with pytest.warns(NumericDegeneracyWarning):
            result = backfit(X_degenerate, y, max_iter=3, init=[0.0, 0.0, 0.0, 7.0], return_history=True)

        assert result.coef[-1] == 0
        assert all(coef[-1] == 0 for coef in result.iters_coef)

    @pytest.mark.parametrize("offset, spread", [(1e3, 1e-6), (1.7e9, 10.0)])
    def test_that_offset_columns_with_variance_are_not_degenerate(self, offset, spread):
        rng = np.random.default_rng(0)
        x = offset + spread * rng.uniform(size=50)
        X = np.column_stack([np.ones(50), x])
        y = 1 + 2 * (x - offset) / spread + rng.standard_normal(size=50)

        assert not np.any(degenerate_columns(X))

        with warnings.catch_warnings():
            warnings.simplefilter("error", NumericDegeneracyWarning)
            result = backfit(X, y, max_iter=2)

        assert result.coef[1] != 0
        assert np.all(np.isfinite(result.coef))


class TestLogging:
    def test_that_verbose_solver_logs_every_sweep(self):
        X, y = linear_problem(seed=0)

        logger = set_logger()
        handler = logging.handlers.BufferingHandler(capacity=1000)
        logger.addHandler(handler)
        try:
            backfit(X, y, max_iter=4, verbose=2)
        finally:
            logger.removeHandler(handler)

        messages = [record.getMessage() for record in handler.buffer]
        assert sum(message.startswith("Iteration:") for message in messages) == 4
        assert any(message.startswith("Backfitting 6 coefficients") for message in messages)

    def test_that_silent_solver_logs_nothing(self):
        X, y = linear_problem(seed=0)

        logger = set_logger()
        handler = logging.handlers.BufferingHandler(capacity=1000)
        logger.addHandler(handler)
        try:
            backfit(X, y, max_iter=4)
        finally:
            logger.removeHandler(handler)

        assert handler.buffer == []


if __name__ == "__main__":
    pytest.main(args=[__file__, "-v", "--capture=sys"])
