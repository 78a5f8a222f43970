"""
End-to-end case study pipeline.

Stages:
1. Load price and listing fragments (DuckDB)
2. Clean: exclude rows/listings that can't be modeled
3. Decompose each listing's price_per into trend + periodic + remainder
4. Build the month x listing remainder matrix and fit k-means for every k
5. Pick the analyst's chosen k and label prices and listings

Every stage returns new tables; nothing is modified after it's handed on.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from rental_trends.clustering import (
    ClusterMatrix,
    build_cluster_matrix,
    cluster_lookup,
    fit_cluster_models,
    label_listings,
    label_prices,
    select_model,
    summarize_within_ss,
)
from rental_trends.config import CaseStudyConfig
from rental_trends.data.loader import fetch_listings, fetch_prices, init_db
from rental_trends.data.validator import CleaningConfig, DataCleaner
from rental_trends.errors import CaseStudyError
from rental_trends.features.decomposition import TrendDecomposer, add_periodic_component
from rental_trends.models.kmeans import ClusterFit

logger = logging.getLogger(__name__)


@dataclass
class CaseStudyResult:
    """
    Every table produced by a pipeline run.

    Attributes:
        prices: Input price observations
        decomposed: price_per, trend, residual, std_error, weekday, periodic, remainder
        matrix: Month x listing remainder matrix
        fits: Every fitted k-means model
        within_ss: Mean total within-SS per k (inspect this to choose k)
        chosen: The model for the chosen k
        lookup: listing_id -> cluster
        labeled_prices: Decomposed prices of clustered listings, with cluster
        labeled_listings: Metadata of clustered listings, with cluster
        stats: Exclusion counts per stage
    """
    prices: pd.DataFrame
    decomposed: pd.DataFrame
    matrix: ClusterMatrix
    fits: List[ClusterFit]
    within_ss: pd.DataFrame
    chosen: ClusterFit
    lookup: pd.DataFrame
    labeled_prices: pd.DataFrame
    labeled_listings: pd.DataFrame
    stats: Dict[str, int] = field(default_factory=dict)


class CaseStudyPipeline:
    """
    Runs decomposition, clustering and labeling on loaded tables.

    Usage:
        pipeline = CaseStudyPipeline(CaseStudyConfig())
        result = pipeline.run(prices, listings)
        result.within_ss        # choose k from this
        result.labeled_listings # feed to the map
    """

    def __init__(self, config: Optional[CaseStudyConfig] = None):
        self.config = config or CaseStudyConfig()
        self.stats: Dict[str, int] = {}

    def _stage(self, name: str, func, *args, **kwargs):
        logger.info(f"[{name}]")
        try:
            return func(*args, **kwargs)
        except CaseStudyError as e:
            e.stage = e.stage or name
            raise

    def decompose(self, prices: pd.DataFrame) -> pd.DataFrame:
        decomposer = TrendDecomposer(self.config.decomposition)
        decomposed = decomposer.transform(prices)
        self.stats.update(decomposer.stats)
        return add_periodic_component(decomposed)

    def run(self, prices: pd.DataFrame, listings: pd.DataFrame) -> CaseStudyResult:
        """
        Run every stage after loading.

        Args:
            prices: listing_id, date, price_per
            listings: Listing metadata keyed by config.listings_key

        Returns:
            CaseStudyResult
        """
        cluster_config = self.config.clustering
        self.stats = {}

        decomposed = self._stage("decompose", self.decompose, prices)

        matrix = self._stage(
            "cluster_matrix",
            build_cluster_matrix,
            decomposed,
            year=cluster_config.year,
            month=cluster_config.month
        )
        self.stats['listings_incomplete_window'] = matrix.n_excluded
        self.stats['listings_clustered'] = matrix.n_listings

        fits = self._stage(
            "cluster_models",
            fit_cluster_models,
            matrix,
            k_values=cluster_config.k_values,
            n_restarts=cluster_config.n_restarts,
            seed=cluster_config.seed,
            max_iter=cluster_config.max_iter
        )
        within_ss = summarize_within_ss(fits)

        chosen = self._stage(
            "select_model",
            select_model,
            fits,
            k=cluster_config.chosen_k,
            restart=cluster_config.chosen_restart
        )
        lookup = cluster_lookup(chosen)

        labeled_prices = self._stage("label_prices", label_prices, decomposed, lookup)
        labeled_listings = self._stage(
            "label_listings",
            label_listings,
            listings,
            lookup,
            listings_key=self.config.listings_key,
            require_all=self.config.require_all_metadata
        )

        return CaseStudyResult(
            prices=prices,
            decomposed=decomposed,
            matrix=matrix,
            fits=fits,
            within_ss=within_ss,
            chosen=chosen,
            lookup=lookup,
            labeled_prices=labeled_prices,
            labeled_listings=labeled_listings,
            stats=dict(self.stats)
        )


def run_case_study(
    prices_dir: Union[str, Path],
    listings_dir: Union[str, Path],
    config: Optional[CaseStudyConfig] = None,
    cleaning: Optional[CleaningConfig] = None
) -> CaseStudyResult:
    """
    Load, clean and run the full case study from two data directories.

    Args:
        prices_dir: Directory of price CSV fragments
        listings_dir: Directory of listing CSV fragments
        config: Pipeline configuration
        cleaning: Cleaning rules configuration

    Returns:
        CaseStudyResult (stats include the cleaning rule counts)
    """
    try:
        con = init_db(prices_dir, listings_dir)
    except CaseStudyError as e:
        e.stage = e.stage or "load"
        raise

    try:
        cleaner = DataCleaner(cleaning or CleaningConfig())
        cleaner.clean(con)
        prices = fetch_prices(con)
        listings = fetch_listings(con)
    finally:
        con.close()

    pipeline = CaseStudyPipeline(config)
    result = pipeline.run(prices, listings)
    result.stats.update({f"cleaning: {name}": count for name, count in cleaner.stats.items()})
    return result
