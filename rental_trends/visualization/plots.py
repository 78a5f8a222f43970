"""
Visualization functions for the price decomposition and clusters.

Each function returns a matplotlib Figure and optionally saves it.
"""

from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from rental_trends.config import CLUSTER_COLORS

COMPONENTS = ['price_per', 'trend', 'periodic', 'remainder']


def _save(fig: plt.Figure, output_path: Optional[Path]) -> None:
    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        print(f"Saved to {output_path}")


def plot_mean_price(
    prices: pd.DataFrame,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Mean price per person across all listings, by date.

    Args:
        prices: listing_id, date, price_per
        output_path: Optional path to save figure

    Returns:
        matplotlib Figure
    """
    daily = prices.groupby('date', as_index=False)['price_per'].mean()

    fig, ax = plt.subplots(figsize=(12, 5))
    sns.lineplot(data=daily, x='date', y='price_per', ax=ax, color='black')
    ax.set_xlabel('Date', fontsize=12)
    ax.set_ylabel('Mean price per person', fontsize=12)
    ax.set_title('Mean Price per Person Over Time', fontsize=14)

    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_listing_trends(
    decomposed: pd.DataFrame,
    listing_ids: Optional[Sequence[int]] = None,
    max_listings: int = 6,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Observed price and fitted trend, one panel per listing.

    Args:
        decomposed: Output of decompose_trend / decompose
        listing_ids: Listings to show (defaults to the first max_listings)
        max_listings: Panel count when listing_ids isn't given
        output_path: Optional path to save figure
    """
    if listing_ids is None:
        listing_ids = decomposed['listing_id'].drop_duplicates().head(max_listings).tolist()

    fig, axes = plt.subplots(len(listing_ids), 1, figsize=(12, 2.5 * len(listing_ids)), sharex=True, squeeze=False)

    for ax, listing_id in zip(axes[:, 0], listing_ids):
        series = decomposed[decomposed['listing_id'] == listing_id].sort_values('date')
        ax.plot(series['date'], series['price_per'], color='black', linewidth=1)
        ax.plot(series['date'], series['trend'], color='red', linewidth=1.5)
        ax.set_ylabel(str(listing_id), fontsize=9)

    axes[0, 0].set_title('Price per Person (black) and LOESS Trend (red)', fontsize=14)
    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_decomposition(
    decomposed: pd.DataFrame,
    n_rows: int = 1500,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    price_per, trend, periodic and remainder as stacked facets.

    Args:
        decomposed: Output of decompose
        n_rows: Only the first n_rows rows are drawn
        output_path: Optional path to save figure
    """
    subset = decomposed.head(n_rows)
    long = subset.melt(
        id_vars=['listing_id', 'date'],
        value_vars=COMPONENTS,
        var_name='metric',
        value_name='value'
    )
    long['listing_id'] = long['listing_id'].astype(str)

    fig, axes = plt.subplots(len(COMPONENTS), 1, figsize=(12, 10), sharex=True)
    for ax, metric in zip(axes, COMPONENTS):
        sns.lineplot(
            data=long[long['metric'] == metric],
            x='date',
            y='value',
            hue='listing_id',
            units='listing_id',
            estimator=None,
            legend=False,
            palette='tab10',
            linewidth=0.8,
            ax=ax
        )
        ax.set_ylabel(metric, fontsize=11)

    axes[-1].set_xlabel('Date', fontsize=12)
    axes[0].set_title('Price Decomposition', fontsize=14)
    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_mean_remainder(
    decomposed: pd.DataFrame,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """Mean remainder across listings by date."""
    daily = decomposed.groupby('date', as_index=False)['remainder'].mean()

    fig, ax = plt.subplots(figsize=(12, 5))
    sns.lineplot(data=daily, x='date', y='remainder', ax=ax, color='black')
    ax.axhline(0, color='gray', linestyle='--', linewidth=1)
    ax.set_xlabel('Date', fontsize=12)
    ax.set_ylabel('Mean remainder', fontsize=12)
    ax.set_title('Signal Left After Trend and Weekday Effects', fontsize=14)

    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_within_ss(
    within_ss: pd.DataFrame,
    chosen_k: Optional[int] = None,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Mean total within-cluster sum of squares by k (elbow plot).

    Args:
        within_ss: Output of summarize_within_ss
        chosen_k: Highlight this k if given
        output_path: Optional path to save figure
    """
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(within_ss['k'], within_ss['withinss'], marker='o', color='black')

    if chosen_k is not None and chosen_k in set(within_ss['k']):
        chosen = within_ss[within_ss['k'] == chosen_k]
        ax.scatter(chosen['k'], chosen['withinss'], s=150, color='orange', zorder=3, label=f'k={chosen_k}')
        ax.legend()

    ax.set_xlabel('k', fontsize=12)
    ax.set_ylabel('Mean total within-cluster SS', fontsize=12)
    ax.set_title('k-means Model Comparison', fontsize=14)
    ax.set_xticks(within_ss['k'])

    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_cluster_trends(
    labeled_prices: pd.DataFrame,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Mean price per person by date for each cluster.

    Two clusters are drawn navy and orange; more clusters fall back to the
    seaborn default palette.
    """
    daily = (
        labeled_prices.groupby(['date', 'cluster'], as_index=False)['price_per']
        .mean()
    )
    daily['cluster'] = daily['cluster'].astype(str)
    clusters = sorted(daily['cluster'].unique())

    if len(clusters) <= len(CLUSTER_COLORS):
        palette = dict(zip(clusters, CLUSTER_COLORS))
    else:
        palette = dict(zip(clusters, sns.color_palette(n_colors=len(clusters))))

    fig, ax = plt.subplots(figsize=(12, 5))
    sns.lineplot(data=daily, x='date', y='price_per', hue='cluster', palette=palette, ax=ax)
    ax.set_xlabel('Date', fontsize=12)
    ax.set_ylabel('Mean price per person', fontsize=12)
    ax.set_title('Mean Price per Person by Cluster', fontsize=14)

    plt.tight_layout()
    _save(fig, output_path)
    return fig
