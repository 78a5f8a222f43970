"""
Tests for the month matrix and k-means model search.
"""

import numpy as np
import pandas as pd
import pytest

from rental_trends.clustering import (
    ClusterMatrix,
    build_cluster_matrix,
    check_reproducible,
    fit_cluster_models,
    fits_to_frame,
    month_dates,
    same_partition,
    select_model,
    summarize_within_ss,
)
from rental_trends.errors import (
    CaseStudyError,
    IncompleteGroupError,
    ModelSelectionError,
    NonFiniteValueError,
)
from rental_trends.models.kmeans import ClusterFit, KMeansClusterer, kmeans_labels


def long_table(listing_days: dict, start='2019-04-01') -> pd.DataFrame:
    """Long remainder table: {listing_id: n_days from start}."""
    rows = []
    for listing_id, n_days in listing_days.items():
        for i, date in enumerate(pd.date_range(start, periods=n_days, freq='D')):
            rows.append({'listing_id': listing_id, 'date': date, 'remainder': float(listing_id + i)})
    return pd.DataFrame(rows)


def two_group_matrix(n_per_group=5, n_days=30, seed=0) -> ClusterMatrix:
    """Listings 1..n are near 0, listings n+1..2n are near 10."""
    rng = np.random.RandomState(seed)
    low = rng.normal(0, 0.5, size=(n_per_group, n_days))
    high = rng.normal(10, 0.5, size=(n_per_group, n_days))
    return ClusterMatrix(
        listing_ids=np.arange(1, 2 * n_per_group + 1),
        dates=month_dates(2019, 4).to_numpy()[:n_days],
        values=np.vstack([low, high])
    )


class TestMonthDates:
    """Test calendar windows."""

    @pytest.mark.parametrize('year,month,n_days', [(2019, 4, 30), (2019, 2, 28), (2020, 2, 29), (2019, 12, 31)])
    def test_days_in_month(self, year, month, n_days):
        """Every day of the month, first to last."""
        days = month_dates(year, month)
        assert len(days) == n_days
        assert days[0] == pd.Timestamp(year=year, month=month, day=1)


class TestBuildClusterMatrix:
    """Test the exact-window month matrix."""

    def test_only_complete_windows_kept(self):
        """29 and 31 rows are both excluded; exactly 30 is kept."""
        table = long_table({1: 30, 2: 29, 3: 30})
        # Listing 4: all 30 days plus a duplicate of one day
        extra = long_table({4: 30})
        table = pd.concat([table, extra, extra.iloc[[5]]], ignore_index=True)

        matrix = build_cluster_matrix(table, 2019, 4)

        assert matrix.listing_ids.tolist() == [1, 3]
        assert matrix.n_excluded == 2
        assert matrix.values.shape == (2, 30)

    def test_rows_outside_month_ignored(self):
        """Days before and after the month don't count toward the window."""
        table = long_table({7: 40}, start='2019-03-25')

        matrix = build_cluster_matrix(table, 2019, 4)

        assert matrix.listing_ids.tolist() == [7]
        assert pd.Timestamp(matrix.dates[0]) == pd.Timestamp('2019-04-01')
        # 2019-04-01 is day 7 of the series
        assert matrix.values[0, 0] == 7 + 7

    def test_rows_sorted_by_listing_id(self):
        """Rows come out in listing id order whatever the input order."""
        table = long_table({30: 30, 10: 30, 20: 30}).sample(frac=1, random_state=1)

        matrix = build_cluster_matrix(table, 2019, 4)

        assert matrix.listing_ids.tolist() == [10, 20, 30]
        np.testing.assert_allclose(matrix.values[1], 20 + np.arange(30))

    def test_non_finite_cell_raises(self):
        """A NaN inside a complete window names the listing."""
        table = long_table({1: 30, 2: 30})
        table.loc[(table['listing_id'] == 2) & (table['date'] == '2019-04-10'), 'remainder'] = np.nan

        with pytest.raises(NonFiniteValueError) as exc_info:
            build_cluster_matrix(table, 2019, 4)
        assert exc_info.value.listing_id == 2

    def test_empty_window(self):
        """No complete listings gives an empty matrix, not an error."""
        matrix = build_cluster_matrix(long_table({1: 10}), 2019, 4)

        assert matrix.n_listings == 0
        assert matrix.n_excluded == 1

    def test_to_frame(self):
        """Wide frame is indexed by listing id with one column per day."""
        matrix = build_cluster_matrix(long_table({1: 30, 2: 30}), 2019, 4)
        frame = matrix.to_frame()

        assert frame.index.tolist() == [1, 2]
        assert len(frame.columns) == 30


class TestClusterMatrix:
    """Test row identity."""

    def test_take_moves_ids_with_rows(self):
        """Reordering rows keeps each id next to its values."""
        matrix = two_group_matrix()
        order = np.random.RandomState(0).permutation(matrix.n_listings)

        shuffled = matrix.take(order)

        for i, listing_id in enumerate(shuffled.listing_ids):
            original_row = np.where(matrix.listing_ids == listing_id)[0][0]
            np.testing.assert_array_equal(shuffled.values[i], matrix.values[original_row])

    def test_shape_mismatch(self):
        """values must match ids x dates."""
        with pytest.raises(ValueError):
            ClusterMatrix(listing_ids=[1, 2], dates=month_dates(2019, 4).to_numpy(), values=np.zeros((3, 30)))

    def test_duplicate_ids(self):
        """Listing ids must be unique."""
        with pytest.raises(ValueError):
            ClusterMatrix(listing_ids=[1, 1], dates=month_dates(2019, 4).to_numpy(), values=np.zeros((2, 30)))


class TestKMeansClusterer:
    """Test seeded k-means restarts."""

    def test_one_fit_per_restart(self):
        """n_restarts fits with 1-based labels."""
        matrix = two_group_matrix()
        fits = KMeansClusterer(2, n_restarts=4, seed=1).fit(matrix.values, matrix.listing_ids)

        assert [f.restart for f in fits] == [0, 1, 2, 3]
        for fit in fits:
            assert set(fit.labels) <= {1, 2}
            assert fit.centers.shape == (2, 30)

    def test_separates_groups(self):
        """Well separated groups end up in different clusters."""
        matrix = two_group_matrix()
        labels = kmeans_labels(matrix.values, 2, n_restarts=5, seed=1234)

        assert len(set(labels[:5])) == 1
        assert len(set(labels[5:])) == 1
        assert labels[0] != labels[5]

    def test_cluster_returns_best_labels(self):
        """cluster() gives the labels of the lowest within-SS restart."""
        matrix = two_group_matrix(seed=4)
        clusterer = KMeansClusterer(3, n_restarts=4, seed=8)

        best = clusterer.best(clusterer.fit(matrix.values))
        np.testing.assert_array_equal(clusterer.cluster(matrix.values), best.labels)

    def test_same_seed_same_result(self):
        """Same seed and matrix give identical labels and within-SS."""
        matrix = two_group_matrix(seed=3)
        first = KMeansClusterer(3, n_restarts=5, seed=99).fit(matrix.values, matrix.listing_ids)
        second = KMeansClusterer(3, n_restarts=5, seed=99).fit(matrix.values, matrix.listing_ids)

        for a, b in zip(first, second):
            np.testing.assert_array_equal(a.labels, b.labels)
            assert a.tot_withinss == b.tot_withinss
            assert a.seed == b.seed

    def test_single_cluster_withinss(self):
        """k=1 within-SS is the total sum of squares about the column means."""
        matrix = two_group_matrix()
        fit = KMeansClusterer(1, n_restarts=1).fit(matrix.values)[0]

        expected = np.sum((matrix.values - matrix.values.mean(axis=0)) ** 2)
        assert fit.tot_withinss == pytest.approx(expected, rel=1e-6)
        assert set(fit.labels) == {1}

    def test_non_finite_raises(self):
        """NaN rows are rejected with the listing id."""
        values = np.zeros((4, 5))
        values[2, 1] = np.nan

        with pytest.raises(NonFiniteValueError) as exc_info:
            KMeansClusterer(2).fit(values, listing_ids=np.array([11, 12, 13, 14]))
        assert exc_info.value.listing_id == 13

    def test_fewer_rows_than_k(self):
        """k larger than the number of listings raises."""
        with pytest.raises(IncompleteGroupError):
            KMeansClusterer(3).fit(np.zeros((2, 5)))

    def test_best_restart(self):
        """best() picks the lowest within-SS."""
        fits = [
            ClusterFit(2, 0, 1, np.array([1]), np.array([1]), 5.0, np.zeros((2, 1))),
            ClusterFit(2, 1, 2, np.array([1]), np.array([1]), 3.0, np.zeros((2, 1))),
        ]
        assert KMeansClusterer.best(fits).restart == 1


class TestModelSearch:
    """Test fitting every k and choosing one."""

    def test_fits_every_k(self):
        """n_restarts models for every candidate k."""
        matrix = two_group_matrix()
        fits = fit_cluster_models(matrix, k_values=(1, 2, 3), n_restarts=3, seed=5)

        frame = fits_to_frame(fits)
        assert frame.groupby('k').size().to_dict() == {1: 3, 2: 3, 3: 3}
        assert list(frame.columns) == ['k', 'restart', 'seed', 'tot_withinss']

    def test_skips_k_above_listing_count(self):
        """Candidate k larger than the number of listings is skipped."""
        matrix = two_group_matrix(n_per_group=2)
        fits = fit_cluster_models(matrix, k_values=range(1, 11), n_restarts=2)

        assert sorted({f.k for f in fits}) == [1, 2, 3, 4]

    def test_too_few_listings(self):
        """Fewer listings than the smallest k raises."""
        matrix = two_group_matrix(n_per_group=1)
        with pytest.raises(IncompleteGroupError):
            fit_cluster_models(matrix, k_values=(3, 4))

    def test_summarize_within_ss(self):
        """Mean within-SS per k, sorted by k."""
        matrix = two_group_matrix()
        fits = fit_cluster_models(matrix, k_values=(2, 1), n_restarts=4)

        summary = summarize_within_ss(fits)

        assert summary['k'].tolist() == [1, 2]
        assert summary['n_models'].tolist() == [4, 4]
        expected = np.mean([f.tot_withinss for f in fits if f.k == 2])
        assert summary.loc[1, 'withinss'] == pytest.approx(expected)
        # Splitting two clear groups removes most of the variation
        assert summary.loc[1, 'withinss'] < summary.loc[0, 'withinss'] / 10

    def test_select_model(self):
        """select_model returns the requested (k, restart)."""
        fits = fit_cluster_models(two_group_matrix(), k_values=(1, 2), n_restarts=3)
        chosen = select_model(fits, k=2, restart=1)

        assert (chosen.k, chosen.restart) == (2, 1)

    def test_select_missing_model(self):
        """Asking for an unfitted k or restart raises ModelSelectionError."""
        fits = fit_cluster_models(two_group_matrix(), k_values=(1, 2), n_restarts=2)

        with pytest.raises(ModelSelectionError):
            select_model(fits, k=5)
        with pytest.raises(ModelSelectionError):
            select_model(fits, k=2, restart=2)

    def test_select_k_above_listing_count(self):
        """A k larger than the number of listings is a too-few-listings error."""
        fits = fit_cluster_models(two_group_matrix(n_per_group=2), k_values=range(1, 11), n_restarts=2)

        with pytest.raises(IncompleteGroupError):
            select_model(fits, k=5)

    def test_selection_errors_are_pipeline_errors(self):
        """Selection failures can be caught as CaseStudyError."""
        assert issubclass(ModelSelectionError, CaseStudyError)


class TestReproducibility:
    """Test partition comparison."""

    def test_check_reproducible(self):
        """Same seed twice passes the check."""
        fits = check_reproducible(two_group_matrix(), k=2, n_restarts=3, seed=42)
        assert len(fits) == 3

    def test_relabeled_partition_is_same(self):
        """Swapping label names doesn't change the partition."""
        ids = np.array([1, 2, 3, 4])
        a = ClusterFit(2, 0, 0, ids, np.array([1, 1, 2, 2]), 0.0, np.zeros((2, 1)))
        b = ClusterFit(2, 0, 0, ids, np.array([2, 2, 1, 1]), 0.0, np.zeros((2, 1)))
        assert same_partition(a, b)

    def test_rows_aligned_by_id(self):
        """Row order doesn't matter, only which listing got which group."""
        a = ClusterFit(2, 0, 0, np.array([1, 2, 3, 4]), np.array([1, 1, 2, 2]), 0.0, np.zeros((2, 1)))
        b = ClusterFit(2, 0, 0, np.array([4, 3, 2, 1]), np.array([1, 1, 2, 2]), 0.0, np.zeros((2, 1)))
        assert same_partition(a, b)

    def test_different_partition(self):
        """Moving one listing to the other group is a different partition."""
        ids = np.array([1, 2, 3, 4])
        a = ClusterFit(2, 0, 0, ids, np.array([1, 1, 2, 2]), 0.0, np.zeros((2, 1)))
        b = ClusterFit(2, 0, 0, ids, np.array([1, 2, 2, 2]), 0.0, np.zeros((2, 1)))
        assert not same_partition(a, b)

    def test_different_listings(self):
        """Fits over different listings never match."""
        a = ClusterFit(1, 0, 0, np.array([1, 2]), np.array([1, 1]), 0.0, np.zeros((1, 1)))
        b = ClusterFit(1, 0, 0, np.array([1, 3]), np.array([1, 1]), 0.0, np.zeros((1, 1)))
        assert not same_partition(a, b)
