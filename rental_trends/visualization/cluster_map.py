"""
Interactive map of clustered listings.

One small circle per listing, colored by cluster, on CartoDB Positron tiles.
The navy/orange encoding covers the two-cluster case; more clusters fall back
to a longer color list.
"""

import logging
from pathlib import Path
from typing import Optional

import folium
import pandas as pd

from rental_trends.config import CLUSTER_COLORS

logger = logging.getLogger(__name__)

FALLBACK_COLORS = ['red', 'blue', 'green', 'purple', 'darkred', 'cadetblue', 'darkgreen', 'black', 'gray']


def cluster_palette(clusters) -> dict:
    """Map each cluster label to a color."""
    clusters = sorted(set(clusters))
    colors = list(CLUSTER_COLORS) if len(clusters) <= len(CLUSTER_COLORS) else FALLBACK_COLORS
    return {cluster: colors[i % len(colors)] for i, cluster in enumerate(clusters)}


def create_cluster_map(
    labeled_listings: pd.DataFrame,
    output_path: Optional[str] = None,
    radius: float = 50,
    title: str = "Listings by Cluster"
) -> folium.Map:
    """
    Create a folium map of listings colored by cluster.

    Parameters
    ----------
    labeled_listings : pd.DataFrame
        Output of label_listings: latitude, longitude, name,
        review_scores_rating, cluster
    output_path : str, optional
        HTML file to write the map to
    radius : float, default 50
        Circle radius in meters
    title : str, default "Listings by Cluster"
        Title shown in the legend

    Returns
    -------
    folium.Map
        Interactive map that can be displayed in Jupyter

    Example
    -------
    >>> result = run_case_study('data/prices', 'data/listings')
    >>> m = create_cluster_map(result.labeled_listings)
    >>> m.save("clusters.html")
    """
    missing = [
        c for c in ('latitude', 'longitude', 'name', 'review_scores_rating', 'cluster')
        if c not in labeled_listings.columns
    ]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    located = labeled_listings.dropna(subset=['latitude', 'longitude'])
    n_unlocated = len(labeled_listings) - len(located)
    if n_unlocated:
        logger.info(f"  {n_unlocated:,} listings without coordinates left off the map")

    if len(located):
        center = [located['latitude'].mean(), located['longitude'].mean()]
    else:
        center = [0.0, 0.0]

    m = folium.Map(
        location=center,
        zoom_start=12,
        tiles='CartoDB positron',
        control_scale=True
    )

    palette = cluster_palette(located['cluster'])

    for _, row in located.iterrows():
        color = palette[row['cluster']]
        folium.Circle(
            location=[row['latitude'], row['longitude']],
            radius=radius,
            color=color,
            fill=True,
            fill_color=color,
            tooltip=f"{row['name']} : {row['review_scores_rating']}"
        ).add_to(m)

    # Legend (bottom left)
    items = "".join(
        f'<div><span style="display:inline-block; width:10px; height:10px; '
        f'background:{color}; margin-right:6px;"></span>Cluster {cluster}</div>'
        for cluster, color in palette.items()
    )
    legend_html = f"""
    <div style="
        position: fixed; bottom: 24px; left: 24px; z-index: 1000;
        background: #fff; border: 1px solid #999;
        padding: 6px 10px; font-size: 12px;
    ">
        <strong style="font-size: 12px;">{title}</strong>
        <div style="margin-top: 6px;">{items}</div>
    </div>
    """
    m.get_root().html.add_child(folium.Element(legend_html))

    if output_path:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        m.save(str(output_path))
        print(f"Map written to {output_path}")

    return m
