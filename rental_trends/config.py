"""
Configuration for the rental price case study.

Contains the input schemas, decomposition and clustering defaults, and the
dataclasses that bundle them for a pipeline run.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

# Required columns and their DuckDB types. Extra columns in the files are kept
# as VARCHAR.
PRICE_SCHEMA: Dict[str, str] = {
    'listing_id': 'BIGINT',
    'date': 'DATE',
    'price_per': 'DOUBLE',
}

LISTING_SCHEMA: Dict[str, str] = {
    'id': 'BIGINT',
    'name': 'VARCHAR',
    'latitude': 'DOUBLE',
    'longitude': 'DOUBLE',
    'review_scores_rating': 'DOUBLE',
}

# Identifier columns: the metadata table names its key differently
PRICE_KEY = 'listing_id'
LISTING_KEY = 'id'

# Strings treated as missing when parsing
NULL_STRINGS: Tuple[str, ...] = ('NA', 'NULL')


# =============================================================================
# DECOMPOSITION
# =============================================================================

# Fraction of points in each local neighborhood
DEFAULT_SPAN = 0.25

# Degree of the local polynomial (R's loess default)
DEFAULT_DEGREE = 2

# Two weeks: every weekday seen at least twice
MIN_LISTING_OBSERVATIONS = 14

# Sunday first, locale independent
WEEKDAY_LABELS: Tuple[str, ...] = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')


# =============================================================================
# CLUSTERING
# =============================================================================

CLUSTER_YEAR = 2019
CLUSTER_MONTH = 4  # April
K_VALUES: Tuple[int, ...] = tuple(range(1, 11))
N_RESTARTS = 10
RANDOM_SEED = 1234
CHOSEN_K = 2
MAX_ITER = 300

# Two-cluster map / chart encoding
CLUSTER_COLORS: Tuple[str, ...] = ('navy', 'orange')


# =============================================================================
# CONFIG DATACLASSES
# =============================================================================

@dataclass
class DecompositionConfig:
    """Configuration for trend + periodic decomposition."""
    span: float = DEFAULT_SPAN
    degree: int = DEFAULT_DEGREE
    min_observations: int = MIN_LISTING_OBSERVATIONS


@dataclass
class ClusterConfig:
    """Configuration for the month window and k-means model search."""
    year: int = CLUSTER_YEAR
    month: int = CLUSTER_MONTH
    k_values: Tuple[int, ...] = K_VALUES
    n_restarts: int = N_RESTARTS
    seed: int = RANDOM_SEED
    chosen_k: int = CHOSEN_K  # Picked by hand from the within-SS table
    chosen_restart: int = 0
    max_iter: int = MAX_ITER


@dataclass
class CaseStudyConfig:
    """Bundle of every stage's configuration."""
    decomposition: DecompositionConfig = field(default_factory=DecompositionConfig)
    clustering: ClusterConfig = field(default_factory=ClusterConfig)
    listings_key: str = LISTING_KEY
    require_all_metadata: bool = False
