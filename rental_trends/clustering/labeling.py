"""
Cluster labels joined back onto prices and listing metadata.

The lookup table is built from the fit's own listing_ids and labels, which
were stored side by side, so a label can only ever reach the listing whose
row produced it.
"""

import logging

import pandas as pd

from rental_trends.config import LISTING_KEY, PRICE_KEY
from rental_trends.errors import MissingKeyError
from rental_trends.models.kmeans import ClusterFit

logger = logging.getLogger(__name__)


def cluster_lookup(fit: ClusterFit) -> pd.DataFrame:
    """
    Listing id -> cluster label table for a fitted model.

    Returns:
        DataFrame with listing_id, cluster (one row per clustered listing)
    """
    lookup = pd.DataFrame({PRICE_KEY: fit.listing_ids, 'cluster': fit.labels})
    if lookup[PRICE_KEY].duplicated().any():
        raise ValueError("Cluster fit has duplicate listing ids")
    return lookup.sort_values(PRICE_KEY).reset_index(drop=True)


def _require_key(df: pd.DataFrame, key: str, table: str) -> None:
    if key not in df.columns:
        raise MissingKeyError(f"Join key '{key}' not found in {table} (columns: {list(df.columns)})")


def label_prices(
    prices: pd.DataFrame,
    lookup: pd.DataFrame,
    key: str = PRICE_KEY
) -> pd.DataFrame:
    """
    Attach cluster labels to price observations.

    Rows of listings without a cluster are dropped (inner join).

    Args:
        prices: Price (or decomposed price) table
        lookup: Output of cluster_lookup
        key: Listing id column in both tables

    Returns:
        New DataFrame with a cluster column
    """
    _require_key(prices, key, 'prices')
    _require_key(lookup, key, 'cluster lookup')

    labeled = prices.merge(lookup[[key, 'cluster']], on=key, how='inner')
    n_dropped = len(prices) - len(labeled)
    logger.info(f"  Labeled {len(labeled):,} price rows ({n_dropped:,} rows without a cluster dropped)")
    return labeled


def label_listings(
    listings: pd.DataFrame,
    lookup: pd.DataFrame,
    listings_key: str = LISTING_KEY,
    lookup_key: str = PRICE_KEY,
    require_all: bool = False
) -> pd.DataFrame:
    """
    Attach cluster labels to listing metadata.

    The metadata names its identifier differently from the price table, so
    the key mapping is explicit: listings[listings_key] == lookup[lookup_key].

    Args:
        listings: Listing metadata
        lookup: Output of cluster_lookup
        listings_key: Identifier column in listings
        lookup_key: Identifier column in lookup
        require_all: Raise if a clustered listing has no metadata row

    Returns:
        New DataFrame of metadata for clustered listings, with a cluster column

    Raises:
        MissingKeyError: A key column is absent, or (require_all) a clustered
            listing is absent from the metadata
    """
    _require_key(listings, listings_key, 'listings')
    _require_key(lookup, lookup_key, 'cluster lookup')

    without_metadata = lookup.loc[~lookup[lookup_key].isin(listings[listings_key]), lookup_key]
    if len(without_metadata):
        if require_all:
            raise MissingKeyError(
                f"{len(without_metadata)} clustered listings have no metadata row",
                listing_id=without_metadata.iloc[0]
            )
        logger.info(f"  {len(without_metadata):,} clustered listings have no metadata row")

    labeled = listings.merge(
        lookup[[lookup_key, 'cluster']],
        left_on=listings_key,
        right_on=lookup_key,
        how='inner'
    )
    if lookup_key != listings_key:
        labeled = labeled.drop(columns=[lookup_key])
    return labeled
