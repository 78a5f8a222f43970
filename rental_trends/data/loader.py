"""
Data loading utilities for the rental price case study.

Prices and listings arrive as directories of CSV fragments. Every fragment is
read into DuckDB as text, checked against the expected schema, cast to proper
types and stacked into one table. A directory loads completely or not at all.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import duckdb
import pandas as pd

from rental_trends.config import LISTING_SCHEMA, NULL_STRINGS, PRICE_SCHEMA
from rental_trends.errors import LoadError, SchemaError

from .validator import CleaningConfig, DataCleaner

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def list_data_files(directory: PathLike) -> List[Path]:
    """
    List every regular file in a data directory.

    Args:
        directory: Directory holding CSV fragments

    Returns:
        Sorted list of file paths (subdirectories and hidden files are ignored)
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise LoadError(f"Data directory not found: {directory}", file=str(directory))

    # Hidden files (.DS_Store, .gitkeep) are not data
    files = sorted(
        p for p in directory.iterdir()
        if p.is_file() and not p.name.startswith('.')
    )
    if not files:
        raise LoadError(f"No files found in {directory}", file=str(directory))
    return files


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _null_cleaned(column: str) -> str:
    """SQL expression turning NA/NULL markers into real NULLs."""
    expr = _quote_identifier(column)
    for marker in NULL_STRINGS:
        expr = f"NULLIF({expr}, {_quote_literal(marker)})"
    return expr


def _typed_select(temp_table: str, columns: List[str], schema: Dict[str, str]) -> str:
    """Build a SELECT casting required columns and passing extras through."""
    select_items = []
    for column, sql_type in schema.items():
        select_items.append(
            f"CAST({_null_cleaned(column)} AS {sql_type}) AS {_quote_identifier(column)}"
        )
    for column in columns:
        if column not in schema:
            select_items.append(_quote_identifier(column))
    return f"SELECT {', '.join(select_items)} FROM {temp_table}"


def read_directory(
    con: duckdb.DuckDBPyConnection,
    directory: PathLike,
    schema: Dict[str, str],
    table_name: str
) -> int:
    """
    Read every file in a directory into a single typed DuckDB table.

    Each file is parsed with all columns as text, checked for the required
    columns and strictly cast (a value that doesn't parse is an error, not a
    NULL). Fragments are stacked with UNION ALL BY NAME, so files may carry
    different extra columns.

    Args:
        con: DuckDB connection to create the table in
        directory: Directory of CSV fragments
        schema: Required column name -> DuckDB type
        table_name: Name of the table to create (replaced if it exists)

    Returns:
        Number of rows loaded

    Raises:
        LoadError: Directory is missing or empty
        SchemaError: A file can't be parsed against the schema
    """
    files = list_data_files(directory)
    temp_tables = []

    try:
        for i, file_path in enumerate(files):
            raw_table = f"raw_{table_name}_{i}"
            temp_table = f"temp_{table_name}_{i}"
            temp_tables.extend([raw_table, temp_table])
            try:
                con.execute(f"""
                    CREATE OR REPLACE TEMP TABLE {raw_table} AS
                    SELECT * FROM read_csv_auto({_quote_literal(str(file_path))}, header=True, all_varchar=True)
                """)
            except duckdb.Error as e:
                raise SchemaError(f"Could not parse file: {e}", file=file_path.name) from e

            columns = con.execute(f"DESCRIBE {raw_table}").fetchdf()['column_name'].tolist()
            missing = [c for c in schema if c not in columns]
            if missing:
                raise SchemaError(
                    f"Missing required columns {missing} (found {columns})",
                    file=file_path.name
                )

            try:
                con.execute(f"""
                    CREATE OR REPLACE TEMP TABLE {temp_table} AS
                    {_typed_select(raw_table, columns, schema)}
                """)
            except duckdb.Error as e:
                raise SchemaError(f"Column type mismatch: {e}", file=file_path.name) from e

        typed_tables = temp_tables[1::2]
        union = " UNION ALL BY NAME ".join(f"SELECT * FROM {t}" for t in typed_tables)
        con.execute(f"CREATE OR REPLACE TABLE {table_name} AS {union}")
    finally:
        for temp_table in temp_tables:
            con.execute(f"DROP TABLE IF EXISTS {temp_table}")

    n_rows = con.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]
    logger.info(f"Loaded {len(files)} files from {Path(directory).name} into '{table_name}' ({n_rows:,} rows)")
    return n_rows


def init_db(
    prices_dir: PathLike,
    listings_dir: PathLike,
    db_path: str = ":memory:"
) -> duckdb.DuckDBPyConnection:
    """
    Load price and listing fragments into DuckDB.

    Returns a connection with typed `prices` and `listings` tables.
    """
    con = duckdb.connect(database=db_path, read_only=False)
    read_directory(con, prices_dir, PRICE_SCHEMA, "prices")
    read_directory(con, listings_dir, LISTING_SCHEMA, "listings")
    return con


def get_clean_connection(
    prices_dir: PathLike,
    listings_dir: PathLike,
    config: Optional[CleaningConfig] = None
) -> duckdb.DuckDBPyConnection:
    """
    Initialize database with the standard cleaning rules applied.

    Args:
        prices_dir: Directory of price fragments
        listings_dir: Directory of listing fragments
        config: Cleaning configuration (defaults to CleaningConfig())

    Returns:
        Cleaned DuckDB connection
    """
    cleaner = DataCleaner(config or CleaningConfig())
    return cleaner.clean(init_db(prices_dir, listings_dir))


def fetch_prices(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Fetch the prices table as a DataFrame ordered by listing and date."""
    df = con.execute("SELECT * FROM prices ORDER BY listing_id, \"date\"").fetchdf()
    df['date'] = pd.to_datetime(df['date']).astype('datetime64[ns]')
    return df


def fetch_listings(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Fetch the listings table as a DataFrame ordered by id."""
    return con.execute("SELECT * FROM listings ORDER BY id").fetchdf()


def load_prices(prices_dir: PathLike) -> pd.DataFrame:
    """
    Load all price fragments from a directory.

    Returns DataFrame with listing_id, date, price_per (plus any extra columns).
    """
    con = duckdb.connect(":memory:")
    try:
        read_directory(con, prices_dir, PRICE_SCHEMA, "prices")
        return fetch_prices(con)
    finally:
        con.close()


def load_listings(listings_dir: PathLike) -> pd.DataFrame:
    """
    Load all listing fragments from a directory.

    Returns DataFrame with id, name, latitude, longitude, review_scores_rating
    plus any extra columns as text.
    """
    con = duckdb.connect(":memory:")
    try:
        read_directory(con, listings_dir, LISTING_SCHEMA, "listings")
        return fetch_listings(con)
    finally:
        con.close()
