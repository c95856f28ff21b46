# File: tests/unit/test_beta_binom.py
"""
Unit tests for allelebias/beta_binom.py.

Covers:
- incremental extension gives the same tables as a single update
- parameter changes reset the tables
- binomial (rho == 0) and beta-binomial log-likelihoods against scipy.stats
- argument validation and release
"""

from __future__ import annotations

import math

import numpy as np
import pytest
from scipy import stats

from allelebias.beta_binom import BetaBinomialEngine, LogGammaIncrementalCache


@pytest.mark.unit
class TestLogGammaIncrementalCache:
    def test_fresh_cache_is_unset(self):
        cache = LogGammaIncrementalCache()
        assert math.isnan(cache.p)
        assert math.isnan(cache.rho)
        assert cache.n1 == 0
        assert cache.n2 == 0
        np.testing.assert_array_equal(cache.terms_alpha, [0.0])

    def test_incremental_extension_matches_direct(self):
        stepwise = LogGammaIncrementalCache()
        stepwise.update(0.3, 0.1, 5, 5)
        stepwise.update(0.3, 0.1, 10, 10)

        direct = LogGammaIncrementalCache()
        direct.update(0.3, 0.1, 10, 10)

        assert stepwise.n1 == 10
        assert stepwise.n2 == 10
        np.testing.assert_array_equal(stepwise.terms_alpha, direct.terms_alpha)
        np.testing.assert_array_equal(stepwise.terms_beta, direct.terms_beta)
        np.testing.assert_array_equal(stepwise.terms_alpha_beta, direct.terms_alpha_beta)

    def test_many_small_steps_match_direct(self):
        stepwise = LogGammaIncrementalCache()
        for n in range(1, 300, 7):
            stepwise.update(0.5, 0.2, n, n + 3)
        direct = LogGammaIncrementalCache()
        direct.update(0.5, 0.2, stepwise.n1, stepwise.n2)
        np.testing.assert_allclose(stepwise.terms_alpha, direct.terms_alpha, rtol=1e-14)
        np.testing.assert_allclose(stepwise.terms_alpha_beta, direct.terms_alpha_beta, rtol=1e-14)

    def test_tables_never_shrink(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.3, 0.1, 10, 12)
        cache.update(0.3, 0.1, 4, 4)
        assert cache.n1 == 10
        assert cache.n2 == 12

    def test_rho_change_resets_tables(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.3, 0.1, 10, 10)
        cache.update(0.3, 0.2, 0, 0)
        assert cache.rho == 0.2
        assert cache.n1 == 0
        assert len(cache.terms_alpha) == 1
        assert len(cache.terms_alpha_beta) == 1

    def test_p_change_resets_and_recomputes(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.3, 0.1, 10, 10)
        cache.update(0.6, 0.1, 10, 10)

        direct = LogGammaIncrementalCache()
        direct.update(0.6, 0.1, 10, 10)
        np.testing.assert_array_equal(cache.terms_alpha, direct.terms_alpha)

    def test_terms_match_log_gamma_ratio(self):
        p, rho = 0.4, 0.25
        s = (1 - rho) / rho
        alpha = p * s
        cache = LogGammaIncrementalCache()
        cache.update(p, rho, 20, 20)
        n = np.arange(21)
        expected = [
            math.lgamma(k + alpha) - math.lgamma(alpha) - math.lgamma(k + 1) for k in n
        ]
        np.testing.assert_allclose(cache.terms_alpha, expected, rtol=1e-10, atol=1e-10)

    def test_binomial_terms(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.25, 0.0, 6, 6)
        expected = [k * math.log(0.25) - math.lgamma(k + 1) for k in range(7)]
        np.testing.assert_allclose(cache.terms_alpha, expected)
        np.testing.assert_allclose(
            cache.terms_alpha_beta, [-math.lgamma(k + 1) for k in range(7)]
        )

    def test_views_are_read_only(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.3, 0.1, 3, 3)
        with pytest.raises(ValueError):
            cache.terms_alpha[0] = 1.0

    def test_terms_survive_parameter_change(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.3, 0.1, 5, 5)
        before = cache.terms_alpha
        expected = before.copy()
        cache.update(0.6, 0.2, 5, 5)
        np.testing.assert_array_equal(before, expected)
        assert not np.array_equal(cache.terms_alpha, expected)

    @pytest.mark.parametrize(
        "p, rho, n1, n2",
        [(0.5, 0.1, -1, 2), (0.5, 0.1, 2, -1), (1.5, 0.1, 2, 2), (0.5, 1.0, 2, 2)],
    )
    def test_invalid_arguments(self, p, rho, n1, n2):
        cache = LogGammaIncrementalCache()
        with pytest.raises(ValueError):
            cache.update(p, rho, n1, n2)

    def test_release_forgets_parameters(self):
        cache = LogGammaIncrementalCache()
        cache.update(0.3, 0.1, 10, 10)
        cache.release()
        assert math.isnan(cache.p)
        assert cache.n1 == 0
        assert len(cache.terms_beta) == 1


@pytest.mark.unit
class TestBetaBinomialEngine:
    @pytest.mark.parametrize("k, n", [(0, 0), (0, 7), (3, 7), (7, 7), (12, 40)])
    def test_binomial_matches_scipy(self, k, n):
        engine = BetaBinomialEngine()
        expected = stats.binom.logpmf(k, n, 0.35)
        assert engine.log_likelihood(0.35, 0.0, k, n) == pytest.approx(expected, rel=1e-10)

    @pytest.mark.parametrize("k, n", [(0, 5), (2, 5), (5, 5), (17, 60)])
    def test_beta_binomial_matches_scipy(self, k, n):
        p, rho = 0.45, 0.05
        s = (1 - rho) / rho
        engine = BetaBinomialEngine()
        expected = stats.betabinom.logpmf(k, n, p * s, (1 - p) * s)
        assert engine.log_likelihood(p, rho, k, n) == pytest.approx(expected, rel=1e-9)

    def test_counts_sum_matches_scipy(self):
        p, rho = 0.5, 0.1
        s = (1 - rho) / rho
        alt = np.array([3, 10, 0, 7])
        ref = np.array([5, 9, 4, 0])
        engine = BetaBinomialEngine()
        expected = stats.betabinom.logpmf(alt, alt + ref, p * s, (1 - p) * s).sum()
        assert engine.log_likelihood_counts(p, rho, alt, ref) == pytest.approx(expected)

    def test_counts_empty_input(self):
        engine = BetaBinomialEngine()
        assert engine.log_likelihood_counts(0.5, 0.1, [], []) == 0.0

    def test_counts_shape_mismatch(self):
        engine = BetaBinomialEngine()
        with pytest.raises(ValueError):
            engine.log_likelihood_counts(0.5, 0.1, [1, 2], [1])

    def test_invalid_count(self):
        engine = BetaBinomialEngine()
        with pytest.raises(ValueError):
            engine.log_likelihood(0.5, 0.1, 4, 3)

    def test_pmf_sums_to_one(self):
        engine = BetaBinomialEngine()
        total = sum(math.exp(engine.log_likelihood(0.3, 0.2, k, 25)) for k in range(26))
        assert total == pytest.approx(1.0)

    def test_release(self):
        engine = BetaBinomialEngine()
        engine.log_likelihood(0.3, 0.2, 3, 25)
        engine.release()
        assert engine.cache.n2 == 0
