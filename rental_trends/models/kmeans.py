"""
Seeded k-means with multiple random restarts.

Each restart is one scikit-learn KMeans run (Lloyd's algorithm) initialized
from k randomly chosen rows. Restart seeds are drawn from a single
RandomState(seed), so the same seed and the same matrix always reproduce the
same partitions.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from sklearn.cluster import KMeans

from rental_trends.config import MAX_ITER, N_RESTARTS, RANDOM_SEED
from rental_trends.errors import IncompleteGroupError, NonFiniteValueError


@dataclass
class ClusterFit:
    """
    One fitted k-means model.

    Attributes:
        k: Number of clusters
        restart: Restart index within this k (0-based)
        seed: Seed passed to KMeans for this restart
        listing_ids: Listing id of each matrix row, in row order
        labels: Cluster label of each row (1-based), aligned with listing_ids
        tot_withinss: Total within-cluster sum of squares
        centers: Cluster centroids, shape (k, n_columns)
    """
    k: int
    restart: int
    seed: int
    listing_ids: np.ndarray
    labels: np.ndarray
    tot_withinss: float
    centers: np.ndarray


class KMeansClusterer:
    """
    k-means with seeded restarts for a single k.

    Usage:
        clusterer = KMeansClusterer(k=2, n_restarts=10, seed=1234)
        fits = clusterer.fit(values, listing_ids)
        labels = clusterer.best(fits).labels
        labels = clusterer.cluster(values)  # best restart in one call
    """

    def __init__(
        self,
        k: int,
        n_restarts: int = N_RESTARTS,
        seed: int = RANDOM_SEED,
        max_iter: int = MAX_ITER
    ):
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if n_restarts < 1:
            raise ValueError(f"n_restarts must be >= 1, got {n_restarts}")

        self.k = k
        self.n_restarts = n_restarts
        self.seed = seed
        self.max_iter = max_iter

    def restart_seeds(self) -> np.ndarray:
        """Seeds for each restart, drawn deterministically from self.seed."""
        rng = np.random.RandomState(self.seed)
        return rng.randint(0, np.iinfo(np.int32).max, size=self.n_restarts)

    def fit(
        self,
        values: np.ndarray,
        listing_ids: Optional[np.ndarray] = None
    ) -> List[ClusterFit]:
        """
        Fit one model per restart.

        Args:
            values: Matrix with one row per listing
            listing_ids: Id of each row (defaults to row numbers)

        Returns:
            List of ClusterFit, one per restart
        """
        values = np.asarray(values, dtype=float)
        if values.ndim != 2:
            raise ValueError(f"values must be a 2-D matrix, got shape {values.shape}")
        if listing_ids is None:
            listing_ids = np.arange(values.shape[0])
        listing_ids = np.asarray(listing_ids)
        if len(listing_ids) != values.shape[0]:
            raise ValueError(
                f"{len(listing_ids)} listing ids for {values.shape[0]} matrix rows"
            )

        bad_rows = ~np.all(np.isfinite(values), axis=1)
        if bad_rows.any():
            raise NonFiniteValueError(
                "Clustering matrix contains non-finite values",
                listing_id=listing_ids[bad_rows][0]
            )
        if values.shape[0] < self.k:
            raise IncompleteGroupError(
                f"Only {values.shape[0]} listings to cluster into k={self.k} clusters"
            )

        fits = []
        for restart, restart_seed in enumerate(self.restart_seeds()):
            model = KMeans(
                n_clusters=self.k,
                init='random',
                n_init=1,
                max_iter=self.max_iter,
                algorithm='lloyd',
                random_state=int(restart_seed)
            )
            model.fit(values)

            fits.append(ClusterFit(
                k=self.k,
                restart=restart,
                seed=int(restart_seed),
                listing_ids=listing_ids.copy(),
                labels=model.labels_.astype(int) + 1,
                tot_withinss=float(model.inertia_),
                centers=model.cluster_centers_
            ))

        return fits

    def cluster(self, values: np.ndarray) -> np.ndarray:
        """Labels (1-based) of the best restart."""
        return self.best(self.fit(values)).labels

    @staticmethod
    def best(fits: List[ClusterFit]) -> ClusterFit:
        """Restart with the lowest total within-cluster sum of squares."""
        return min(fits, key=lambda f: (f.tot_withinss, f.restart))


def kmeans_labels(
    values: np.ndarray,
    k: int,
    n_restarts: int = N_RESTARTS,
    seed: int = RANDOM_SEED
) -> np.ndarray:
    """Cluster labels (1-based) of the best of n_restarts seeded runs."""
    return KMeansClusterer(k, n_restarts=n_restarts, seed=seed).cluster(values)
