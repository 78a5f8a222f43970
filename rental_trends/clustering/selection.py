"""
Model search over the number of clusters.

Fits n_restarts seeded k-means models for every candidate k and reports the
mean total within-cluster sum of squares per k. Choosing k is left to the
analyst: look at the table (or the elbow plot) and pass the chosen k to
select_model.
"""

import logging
from typing import Iterable, List

import numpy as np
import pandas as pd

from rental_trends.config import K_VALUES, MAX_ITER, N_RESTARTS, RANDOM_SEED
from rental_trends.errors import IncompleteGroupError, ModelSelectionError, SeedMismatchError
from rental_trends.models.kmeans import ClusterFit, KMeansClusterer

from .matrix import ClusterMatrix

logger = logging.getLogger(__name__)


def fit_cluster_models(
    matrix: ClusterMatrix,
    k_values: Iterable[int] = K_VALUES,
    n_restarts: int = N_RESTARTS,
    seed: int = RANDOM_SEED,
    max_iter: int = MAX_ITER
) -> List[ClusterFit]:
    """
    Fit n_restarts k-means models for every candidate k.

    Candidate k values larger than the number of listings are skipped.

    Args:
        matrix: Listing x day matrix
        k_values: Candidate numbers of clusters
        n_restarts: Seeded restarts per k
        seed: Base seed (same seed + same matrix -> same models)
        max_iter: Lloyd iterations per restart

    Returns:
        List of ClusterFit ordered by k, then restart

    Raises:
        IncompleteGroupError: Fewer listings than the smallest candidate k
    """
    k_values = sorted(set(int(k) for k in k_values))
    if not k_values:
        raise ValueError("k_values must not be empty")
    if matrix.n_listings < k_values[0]:
        raise IncompleteGroupError(
            f"{matrix.n_listings} listings in the matrix, smallest candidate k is {k_values[0]}"
        )

    fits = []
    for k in k_values:
        if k > matrix.n_listings:
            logger.info(f"  Skipping k={k}: only {matrix.n_listings} listings")
            continue
        clusterer = KMeansClusterer(k, n_restarts=n_restarts, seed=seed, max_iter=max_iter)
        fits.extend(clusterer.fit(matrix.values, matrix.listing_ids))

    logger.info(f"  Fitted {len(fits)} k-means models on {matrix.n_listings:,} listings")
    return fits


def fits_to_frame(fits: List[ClusterFit]) -> pd.DataFrame:
    """One row per fitted model: k, restart, seed, tot_withinss."""
    return pd.DataFrame(
        [
            {'k': f.k, 'restart': f.restart, 'seed': f.seed, 'tot_withinss': f.tot_withinss}
            for f in fits
        ],
        columns=['k', 'restart', 'seed', 'tot_withinss']
    )


def summarize_within_ss(fits: List[ClusterFit]) -> pd.DataFrame:
    """
    Mean total within-cluster sum of squares per k.

    Returns:
        DataFrame with k, withinss, n_models sorted by k
    """
    performance = fits_to_frame(fits)
    return (
        performance.groupby('k')
        .agg(withinss=('tot_withinss', 'mean'), n_models=('tot_withinss', 'size'))
        .reset_index()
        .sort_values('k')
        .reset_index(drop=True)
    )


def select_model(fits: List[ClusterFit], k: int, restart: int = 0) -> ClusterFit:
    """
    Pick the fitted model for the analyst's chosen k.

    Raises:
        IncompleteGroupError: k is larger than the number of clustered listings
        ModelSelectionError: No model was fitted for (k, restart)
    """
    for fit in fits:
        if fit.k == k and fit.restart == restart:
            return fit
    n_listings = len(fits[0].listing_ids) if fits else 0
    if k > n_listings:
        raise IncompleteGroupError(
            f"Chosen k={k} but only {n_listings} listings were clustered"
        )
    available = sorted({f.k for f in fits})
    raise ModelSelectionError(
        f"No model for k={k}, restart={restart}. Fitted k values: {available}"
    )


def same_partition(a: ClusterFit, b: ClusterFit) -> bool:
    """
    True when two fits split the same listings into the same groups.

    Label names don't matter ({1, 2} vs {2, 1} is the same partition). Rows are
    aligned by listing id, not by position.
    """
    labels_a = pd.Series(a.labels, index=a.listing_ids)
    labels_b = pd.Series(b.labels, index=b.listing_ids)
    if set(labels_a.index) != set(labels_b.index):
        return False

    labels_b = labels_b.reindex(labels_a.index)
    pairs = set(zip(labels_a.to_numpy(), labels_b.to_numpy()))
    return len(pairs) == labels_a.nunique() == labels_b.nunique()


def check_reproducible(
    matrix: ClusterMatrix,
    k: int,
    n_restarts: int = N_RESTARTS,
    seed: int = RANDOM_SEED
) -> List[ClusterFit]:
    """
    Fit the same k twice with the same seed and compare every restart.

    Returns:
        Fits of the first run

    Raises:
        SeedMismatchError: Any restart produced a different partition
    """
    first = KMeansClusterer(k, n_restarts=n_restarts, seed=seed).fit(matrix.values, matrix.listing_ids)
    second = KMeansClusterer(k, n_restarts=n_restarts, seed=seed).fit(matrix.values, matrix.listing_ids)

    for fit_a, fit_b in zip(first, second):
        if not same_partition(fit_a, fit_b):
            raise SeedMismatchError(
                f"Restart {fit_a.restart} for k={k} is not reproducible with seed={seed}"
            )
        if not np.isclose(fit_a.tot_withinss, fit_b.tot_withinss):
            raise SeedMismatchError(
                f"Restart {fit_a.restart} for k={k} has different within-SS with seed={seed}"
            )
    return first
