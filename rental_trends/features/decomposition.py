"""
Additive decomposition of per-listing price series.

    price_per = trend + periodic + remainder

- trend: LOESS fit of price_per on date, one model per listing
- periodic: mean trend residual for the listing's weekday
- remainder: what neither component explains

Listings are fit independently, so one listing's components never depend on
another listing's data.

Note: the periodic component of a listing with few observations per weekday
rests on very few residuals. No correction is applied for sparse listings.
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd

from rental_trends.config import DecompositionConfig, WEEKDAY_LABELS
from rental_trends.errors import DuplicateObservationError
from rental_trends.models.loess import LoessSmoother

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ['listing_id', 'date', 'price_per']
TREND_COLUMNS = ['trend', 'residual', 'std_error']


def date_ordinal(dates: pd.Series) -> np.ndarray:
    """Days since 1970-01-01 as floats (monotonic in date)."""
    dates = pd.to_datetime(dates)
    return ((dates - pd.Timestamp('1970-01-01')) / pd.Timedelta(days=1)).to_numpy(dtype=float)


def weekday_label(dates: pd.Series) -> pd.Series:
    """
    Weekday of each date as an ordered categorical Sun < Mon < ... < Sat.

    Labels are fixed English abbreviations, independent of the system locale.
    """
    dates = pd.to_datetime(pd.Series(dates))
    # pandas: Monday=0 ... Sunday=6; shift so Sunday=0
    codes = ((dates.dt.dayofweek + 1) % 7).to_numpy()
    labels = pd.Categorical.from_codes(codes, categories=list(WEEKDAY_LABELS), ordered=True)
    return pd.Series(labels, index=dates.index, name='weekday')


def _check_columns(df: pd.DataFrame, columns: list) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


class TrendDecomposer:
    """
    Fits a LOESS trend to each listing's price-per-person series.

    Usage:
        decomposer = TrendDecomposer(DecompositionConfig(span=0.25))
        decomposed = decomposer.transform(prices)
        decomposer.stats  # {'non_finite_rows': 3, 'listings_below_minimum': 2, ...}
    """

    def __init__(self, config: Optional[DecompositionConfig] = None):
        self.config = config or DecompositionConfig()
        self.stats: Dict[str, int] = {}

    def make_smoother(self) -> LoessSmoother:
        return LoessSmoother(span=self.config.span, degree=self.config.degree)

    def min_observations(self) -> int:
        """Listings with fewer rows than this are dropped."""
        return max(self.config.min_observations, self.make_smoother().min_observations())

    def transform(self, prices: pd.DataFrame) -> pd.DataFrame:
        """
        Decompose each listing's series into trend and residual.

        Args:
            prices: DataFrame with listing_id, date, price_per

        Returns:
            New DataFrame with the input columns plus trend, residual, std_error,
            sorted by listing_id and date. Dropped listings have no rows.

        Raises:
            DuplicateObservationError: A listing has two rows for the same date
        """
        _check_columns(prices, PRICE_COLUMNS)
        df = prices.copy()
        df['date'] = pd.to_datetime(df['date'])
        self.stats = {}

        # Rows that can't enter a regression
        valid = np.isfinite(df['price_per'].astype(float)) & df['date'].notna()
        n_invalid = int((~valid).sum())
        if n_invalid:
            logger.info(f"  Excluded {n_invalid:,} rows with missing date or non-finite price_per")
        self.stats['non_finite_rows'] = n_invalid
        df = df[valid]

        duplicated = df.duplicated(['listing_id', 'date'], keep=False)
        if duplicated.any():
            first = df.loc[duplicated, 'listing_id'].iloc[0]
            raise DuplicateObservationError(
                f"{int(duplicated.sum())} rows share a (listing_id, date) pair",
                listing_id=first
            )

        # Listings too short for a local fit
        min_n = self.min_observations()
        sizes = df.groupby('listing_id').size()
        too_small = sizes[sizes < min_n].index
        if len(too_small):
            logger.info(
                f"  Dropped {len(too_small):,} listings with fewer than {min_n} observations"
            )
        self.stats['listings_below_minimum'] = len(too_small)
        df = df[~df['listing_id'].isin(too_small)]

        pieces = []
        for listing_id, group in df.groupby('listing_id', sort=True):
            group = group.sort_values('date')
            smoother = self.make_smoother().fit(date_ordinal(group['date']), group['price_per'])

            piece = group.copy()
            piece['trend'] = smoother.fitted_
            piece['residual'] = smoother.residuals_
            piece['std_error'] = smoother.std_error_
            pieces.append(piece)

        self.stats['listings_decomposed'] = len(pieces)

        if not pieces:
            empty = df.iloc[0:0].copy()
            for col in TREND_COLUMNS:
                empty[col] = pd.Series(dtype=float)
            return empty.reset_index(drop=True)

        return pd.concat(pieces).sort_values(['listing_id', 'date']).reset_index(drop=True)


def decompose_trend(
    prices: pd.DataFrame,
    config: Optional[DecompositionConfig] = None
) -> pd.DataFrame:
    """Fit a LOESS trend per listing. See TrendDecomposer.transform."""
    return TrendDecomposer(config).transform(prices)


def add_periodic_component(decomposed: pd.DataFrame) -> pd.DataFrame:
    """
    Add weekday, periodic and remainder columns.

    periodic is the mean residual of the listing on that weekday (missing
    residuals are left out of the mean, not counted as zero). A listing only
    gets periodic values for the weekdays it actually has.

    Args:
        decomposed: Output of decompose_trend

    Returns:
        New DataFrame with weekday, periodic, remainder added
    """
    _check_columns(decomposed, PRICE_COLUMNS + ['trend', 'residual'])
    out = decomposed.copy()

    out['weekday'] = weekday_label(out['date'])
    out['periodic'] = (
        out.groupby(['listing_id', 'weekday'], observed=True)['residual']
        .transform('mean')
    )
    out['remainder'] = out['price_per'] - out['trend'] - out['periodic']
    return out


def decompose(
    prices: pd.DataFrame,
    config: Optional[DecompositionConfig] = None
) -> pd.DataFrame:
    """Full decomposition: trend, then periodic and remainder."""
    return add_periodic_component(decompose_trend(prices, config))
