#!/usr/bin/env python
"""
Run the rental price case study.

Usage:
    python entrypoint/case_study.py
    python entrypoint/case_study.py --k 3 --month 4 --year 2019
    python entrypoint/case_study.py --prices-dir data/prices --listings-dir data/listings
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

import matplotlib.pyplot as plt

from rental_trends.config import (
    CLUSTER_MONTH,
    CLUSTER_YEAR,
    CHOSEN_K,
    DEFAULT_SPAN,
    RANDOM_SEED,
    CaseStudyConfig,
    ClusterConfig,
    DecompositionConfig,
)
from rental_trends.errors import CaseStudyError
from rental_trends.pipeline import run_case_study
from rental_trends.visualization import (
    create_cluster_map,
    plot_cluster_trends,
    plot_decomposition,
    plot_listing_trends,
    plot_mean_price,
    plot_mean_remainder,
    plot_within_ss,
)


def main():
    parser = argparse.ArgumentParser(description='Rental price trend case study')
    parser.add_argument('--prices-dir', type=str, default='data/prices',
                        help='Directory of price CSV files')
    parser.add_argument('--listings-dir', type=str, default='data/listings',
                        help='Directory of listing CSV files')
    parser.add_argument('--year', type=int, default=CLUSTER_YEAR, help='Year of the clustering month')
    parser.add_argument('--month', type=int, default=CLUSTER_MONTH, help='Clustering month (1-12)')
    parser.add_argument('--k', type=int, default=CHOSEN_K,
                        help='Number of clusters, chosen from the within-SS table')
    parser.add_argument('--seed', type=int, default=RANDOM_SEED, help='k-means seed')
    parser.add_argument('--span', type=float, default=DEFAULT_SPAN, help='LOESS span')
    parser.add_argument('--output-dir', type=str, default='outputs/case_study',
                        help='Where to save figures and the map')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(message)s')

    config = CaseStudyConfig(
        decomposition=DecompositionConfig(span=args.span),
        clustering=ClusterConfig(
            year=args.year,
            month=args.month,
            seed=args.seed,
            chosen_k=args.k
        )
    )

    print("=" * 70)
    print("RENTAL PRICE CASE STUDY")
    print("=" * 70)

    print("\n1. Loading, cleaning, decomposing and clustering...")
    try:
        result = run_case_study(args.prices_dir, args.listings_dir, config)
    except CaseStudyError as e:
        print(f"\nFAILED: {e}")
        sys.exit(1)

    print("\n2. Model comparison (choose k from this table):")
    print(result.within_ss.to_string(index=False))

    print("\n3. Saving figures...")
    output_dir = Path(args.output_dir)
    figures = [
        plot_mean_price(result.prices, output_dir / 'mean_price.png'),
        plot_listing_trends(result.decomposed, output_path=output_dir / 'listing_trends.png'),
        plot_decomposition(result.decomposed, output_path=output_dir / 'decomposition.png'),
        plot_mean_remainder(result.decomposed, output_dir / 'mean_remainder.png'),
        plot_within_ss(result.within_ss, chosen_k=args.k, output_path=output_dir / 'within_ss.png'),
        plot_cluster_trends(result.labeled_prices, output_dir / 'cluster_trends.png'),
    ]
    for fig in figures:
        plt.close(fig)

    print("\n4. Building map...")
    create_cluster_map(result.labeled_listings, output_path=str(output_dir / 'cluster_map.html'))

    print("\n" + "=" * 70)
    print("CASE STUDY COMPLETE")
    print("=" * 70)
    print(f"\nClustered listings: {result.matrix.n_listings:,} (k={args.k})")
    print("Cluster sizes:")
    for cluster, count in result.lookup['cluster'].value_counts().sort_index().items():
        print(f"  - Cluster {cluster}: {count:,}")
    print("Exclusions:")
    for name, count in result.stats.items():
        print(f"  - {name}: {count:,}")


if __name__ == "__main__":
    main()
