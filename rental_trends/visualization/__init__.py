"""Charts and maps for the case study."""
from .plots import (
    plot_cluster_trends,
    plot_decomposition,
    plot_listing_trends,
    plot_mean_price,
    plot_mean_remainder,
    plot_within_ss,
)
from .cluster_map import cluster_palette, create_cluster_map
