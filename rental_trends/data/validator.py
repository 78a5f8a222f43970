"""
Exclusion rules for the prices and listings tables.

Every cleaning operation is an exclusion: rows (or whole listings) that can't be
modeled are removed, never patched with a default value. Each rule has a
check_query that counts the affected rows and an action_query that removes
them, so every exclusion is counted in DataCleaner.stats and logged.
"""

import logging
from dataclasses import dataclass
from typing import List

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)

# ============================================================================
# RULES
# ============================================================================

@dataclass
class Rule:
    """
    One exclusion: check_query counts the rows it would remove, action_query
    removes them.
    """
    name: str
    check_query: str
    action_query: str
    enabled: bool = True

# ============================================================================
# CONFIG
# ============================================================================

@dataclass
class CleaningConfig:
    """
    Which exclusion rules run. One flag per rule.
    """
    # Prices
    remove_null_listing_ids: bool = True
    remove_null_dates: bool = True
    remove_null_prices: bool = True
    remove_non_finite_prices: bool = True  # NaN / inf after casting
    exclude_duplicate_date_listings: bool = True  # Whole listing, not one row

    # Listings
    remove_null_listing_keys: bool = True
    exclude_duplicate_listing_keys: bool = True

    # Logging
    verbose: bool = False

# ============================================================================
# CLEANER
# ============================================================================

class DataCleaner:
    """
    Runs the enabled exclusion rules against a DuckDB connection.

    Usage:
        cleaner = DataCleaner(CleaningConfig(verbose=True))
        clean_con = cleaner.clean(init_db(prices_dir, listings_dir))
        cleaner.stats  # {'NULL Price': 12, ...}
    """

    def __init__(self, config: CleaningConfig):
        self.config = config
        self.rules = self._build_rules()
        self.stats = {}

    def _build_rules(self) -> List[Rule]:
        """Rules enabled in self.config, prices first."""
        rules = []

        # ===== PRICES =====
        if self.config.remove_null_listing_ids:
            rules.append(Rule(
                "NULL Listing ID",
                "SELECT COUNT(*) FROM prices WHERE listing_id IS NULL",
                "DELETE FROM prices WHERE listing_id IS NULL"
            ))

        if self.config.remove_null_dates:
            rules.append(Rule(
                "NULL Date",
                'SELECT COUNT(*) FROM prices WHERE "date" IS NULL',
                'DELETE FROM prices WHERE "date" IS NULL'
            ))

        if self.config.remove_null_prices:
            rules.append(Rule(
                "NULL Price",
                "SELECT COUNT(*) FROM prices WHERE price_per IS NULL",
                "DELETE FROM prices WHERE price_per IS NULL"
            ))

        if self.config.remove_non_finite_prices:
            rules.append(Rule(
                "Non-finite Price",
                "SELECT COUNT(*) FROM prices WHERE isnan(price_per) OR isinf(price_per)",
                "DELETE FROM prices WHERE isnan(price_per) OR isinf(price_per)"
            ))

        if self.config.exclude_duplicate_date_listings:
            duplicated = """
                SELECT listing_id FROM prices
                GROUP BY listing_id, "date"
                HAVING COUNT(*) > 1
            """
            rules.append(Rule(
                "Listing With Duplicate Dates",
                f"SELECT COUNT(*) FROM prices WHERE listing_id IN ({duplicated})",
                f"DELETE FROM prices WHERE listing_id IN ({duplicated})"
            ))

        # ===== LISTINGS =====
        if self.config.remove_null_listing_keys:
            rules.append(Rule(
                "NULL Listing Key",
                "SELECT COUNT(*) FROM listings WHERE id IS NULL",
                "DELETE FROM listings WHERE id IS NULL"
            ))

        if self.config.exclude_duplicate_listing_keys:
            duplicated_ids = """
                SELECT id FROM listings
                GROUP BY id
                HAVING COUNT(*) > 1
            """
            rules.append(Rule(
                "Duplicate Listing Key",
                f"SELECT COUNT(*) FROM listings WHERE id IN ({duplicated_ids})",
                f"DELETE FROM listings WHERE id IN ({duplicated_ids})"
            ))

        return rules

    def clean(self, con: duckdb.DuckDBPyConnection) -> duckdb.DuckDBPyConnection:
        """
        Apply all enabled rules to the prices and listings tables in place.

        Returns the same connection for chaining.
        """
        if self.config.verbose:
            logger.info(f"Cleaning with {len(self.rules)} rules")

        for rule in self.rules:
            if not rule.enabled:
                continue

            affected = con.execute(rule.check_query).fetchone()[0]

            if affected > 0:
                con.execute(rule.action_query)
                self.stats[rule.name] = affected
                logger.info(f"  ✓ {rule.name}: {affected:,} rows excluded")
            elif self.config.verbose:
                logger.info(f"  - {rule.name}: 0 rows")

        if self.config.verbose:
            prices = con.execute("SELECT COUNT(*) FROM prices").fetchone()[0]
            listings = con.execute("SELECT COUNT(*) FROM listings").fetchone()[0]
            logger.info(f"Final: {prices:,} price rows, {listings:,} listings")

        return con

# ============================================================================
# REPORT
# ============================================================================

def check_data_quality(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """
    Count what every rule would remove, leaving the tables untouched.

    Returns DataFrame with one row per rule: name, failed, total, pct.
    """
    cleaner = DataCleaner(CleaningConfig())

    results = []
    for rule in cleaner.rules:
        failed = con.execute(rule.check_query).fetchone()[0]
        table = "listings" if "FROM listings" in rule.check_query else "prices"
        total = con.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        pct = (failed / total * 100) if total > 0 else 0

        results.append({
            'name': rule.name,
            'failed': failed,
            'total': total,
            'pct': round(pct, 2),
        })

    return pd.DataFrame(results)
