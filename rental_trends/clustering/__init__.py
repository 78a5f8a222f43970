"""Clustering of listings by their remainder in one month."""
from .matrix import ClusterMatrix, build_cluster_matrix, month_dates
from .selection import (
    check_reproducible,
    fit_cluster_models,
    fits_to_frame,
    same_partition,
    select_model,
    summarize_within_ss,
)
from .labeling import cluster_lookup, label_listings, label_prices
