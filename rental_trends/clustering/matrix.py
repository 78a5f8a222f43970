"""
Listing x day matrix of one month's remainder values.

The matrix keeps the listing id of every row next to the values, so labels
computed on the rows can always be mapped back to listings by id.
"""

import calendar
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from rental_trends.errors import NonFiniteValueError

logger = logging.getLogger(__name__)


@dataclass
class ClusterMatrix:
    """
    Dense matrix with explicit row identity.

    Attributes:
        listing_ids: Listing id of each row
        dates: Calendar day of each column
        values: Cell values, shape (len(listing_ids), len(dates))
        n_excluded: Listings dropped for not having a complete window
    """
    listing_ids: np.ndarray
    dates: np.ndarray
    values: np.ndarray
    n_excluded: int = 0

    def __post_init__(self):
        self.listing_ids = np.asarray(self.listing_ids)
        self.dates = np.asarray(self.dates)
        self.values = np.asarray(self.values, dtype=float)
        expected = (len(self.listing_ids), len(self.dates))
        if self.values.shape != expected:
            raise ValueError(f"values has shape {self.values.shape}, expected {expected}")
        if len(np.unique(self.listing_ids)) != len(self.listing_ids):
            raise ValueError("listing_ids must be unique")

    @property
    def n_listings(self) -> int:
        return len(self.listing_ids)

    def take(self, order) -> 'ClusterMatrix':
        """New matrix with rows reordered; ids move together with their rows."""
        order = np.asarray(order)
        return ClusterMatrix(
            listing_ids=self.listing_ids[order],
            dates=self.dates.copy(),
            values=self.values[order],
            n_excluded=self.n_excluded
        )

    def to_frame(self) -> pd.DataFrame:
        """Wide DataFrame indexed by listing_id with one column per day."""
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.listing_ids, name='listing_id'),
            columns=pd.DatetimeIndex(self.dates, name='date')
        )


def month_dates(year: int, month: int) -> pd.DatetimeIndex:
    """Every calendar day of a month."""
    n_days = calendar.monthrange(year, month)[1]
    return pd.date_range(start=pd.Timestamp(year=year, month=month, day=1), periods=n_days, freq='D')


def build_cluster_matrix(
    decomposed: pd.DataFrame,
    year: int,
    month: int,
    value_col: str = 'remainder',
    key: str = 'listing_id'
) -> ClusterMatrix:
    """
    Reshape one month of values into a listing x day matrix.

    Only listings with exactly one row for every day of the month are kept;
    a listing with a missing day or an extra (duplicate) day is excluded
    entirely. Exclusions are counted in ClusterMatrix.n_excluded and logged.

    Args:
        decomposed: Long table with key, date and value_col
        year: Calendar year of the window
        month: Calendar month of the window (1-12)
        value_col: Column to put in the cells
        key: Listing identifier column

    Returns:
        ClusterMatrix with rows sorted by listing id

    Raises:
        NonFiniteValueError: A retained cell is NaN or infinite
    """
    missing = [c for c in (key, 'date', value_col) if c not in decomposed.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    days = month_dates(year, month)
    dates = pd.to_datetime(decomposed['date'])
    in_month = (dates.dt.year == year) & (dates.dt.month == month)

    window = decomposed.loc[in_month, [key, value_col]].copy()
    window['date'] = dates[in_month].dt.normalize().astype('datetime64[ns]')

    counts = window.groupby(key).agg(n_rows=('date', 'size'), n_days=('date', 'nunique'))
    is_complete = (counts['n_rows'] == len(days)) & (counts['n_days'] == len(days))
    complete = counts.index[is_complete]
    n_excluded = int((~is_complete).sum())

    logger.info(
        f"  {len(complete):,} listings with a complete {year}-{month:02d} window "
        f"({n_excluded:,} excluded)"
    )

    window = window[window[key].isin(complete)]
    wide = (
        window.pivot(index=key, columns='date', values=value_col)
        .reindex(columns=days)
        .sort_index()
    )

    values = wide.to_numpy(dtype=float)
    bad_rows = ~np.all(np.isfinite(values), axis=1)
    if bad_rows.any():
        raise NonFiniteValueError(
            f"{int(bad_rows.sum())} listings have non-finite {value_col} values",
            listing_id=wide.index[bad_rows][0]
        )

    return ClusterMatrix(
        listing_ids=wide.index.to_numpy(),
        dates=days.to_numpy(),
        values=values,
        n_excluded=n_excluded
    )
