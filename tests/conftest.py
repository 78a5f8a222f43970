"""
Shared pytest fixtures: synthetic price series, listing metadata and CSV
fragment directories.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest


# 2019-03-29 .. 2019-05-02: 35 days covering all of April
START_DATE = '2019-03-29'
N_DAYS = 35
SPIKE_DATES = pd.to_datetime(['2019-04-19', '2019-04-20', '2019-04-21'])
WEEKEND_PREMIUM = 5.0


def make_price_series(
    listing_id: int,
    base: float,
    spike: float = 0.0,
    start: str = START_DATE,
    n_days: int = N_DAYS,
    weekend_premium: float = WEEKEND_PREMIUM
) -> pd.DataFrame:
    """Daily price_per: flat base + Fri/Sat premium + optional spike."""
    dates = pd.date_range(start, periods=n_days, freq='D')
    price = np.full(n_days, base, dtype=float)
    price[dates.dayofweek.isin([4, 5])] += weekend_premium
    price[dates.isin(SPIKE_DATES)] += spike
    return pd.DataFrame({'listing_id': listing_id, 'date': dates, 'price_per': price})


@pytest.fixture
def price_factory():
    """Factory building one listing's price series."""
    return make_price_series


@pytest.fixture
def synthetic_prices():
    """3 listings x 35 days: 101 and 102 spike mid-April, 103 stays flat."""
    return pd.concat([
        make_price_series(101, base=50.0, spike=40.0),
        make_price_series(102, base=65.0, spike=36.0),
        make_price_series(103, base=45.0),
    ], ignore_index=True)


@pytest.fixture
def synthetic_listings():
    """Metadata for the synthetic listings plus one listing with no prices."""
    return pd.DataFrame({
        'id': [101, 102, 103, 999],
        'name': ['Sunny loft', 'Harbor view', 'Quiet studio', 'No prices here'],
        'latitude': [42.355, 42.361, 42.340, 42.300],
        'longitude': [-71.060, -71.055, -71.100, -71.000],
        'review_scores_rating': [95.0, 88.0, 91.0, 80.0],
        'room_type': ['Entire home/apt', 'Private room', 'Entire home/apt', 'Shared room'],
    })


def write_fragments(df: pd.DataFrame, directory, prefix: str, n_fragments: int = 2) -> None:
    """Split a table into CSV fragments, the way the raw data is delivered."""
    directory.mkdir(parents=True, exist_ok=True)
    out = df.copy()
    if 'date' in out.columns:
        out['date'] = pd.to_datetime(out['date']).dt.strftime('%Y-%m-%d')
    for i, chunk in enumerate(np.array_split(np.arange(len(out)), n_fragments)):
        out.iloc[chunk].to_csv(directory / f"{prefix}_{i}.csv", index=False)


@pytest.fixture
def fragment_writer():
    """Writes a table as CSV fragments into a directory."""
    return write_fragments


@pytest.fixture
def data_dirs(tmp_path, synthetic_prices, synthetic_listings):
    """prices/ and listings/ directories of CSV fragments."""
    prices_dir = tmp_path / 'prices'
    listings_dir = tmp_path / 'listings'
    write_fragments(synthetic_prices, prices_dir, 'prices', n_fragments=3)
    write_fragments(synthetic_listings, listings_dir, 'listings', n_fragments=2)
    return prices_dir, listings_dir
