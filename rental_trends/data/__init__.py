"""Data loading and cleaning utilities."""
from .loader import (
    init_db,
    get_clean_connection,
    read_directory,
    fetch_prices,
    fetch_listings,
    load_prices,
    load_listings,
)
from .validator import CleaningConfig, DataCleaner, Rule, check_data_quality
