"""
DuckDB connection helpers for the warehouse.

connect() opens a connection from a ConnectionDetails descriptor, disconnect()
closes it. DuckDBConnectionProvider exposes both as open()/close() for the runner.
"""

import logging
import os

import duckdb

from feasibility.constants import SUPPORTED_DBMS, get_temp_dir
from feasibility.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)


def connect(connection_details, logger=logger):
    """Open a DuckDB connection configured from the descriptor."""
    if connection_details.dbms not in SUPPORTED_DBMS:
        raise DatabaseConnectionError(f"Unsupported dbms '{connection_details.dbms}'")

    database = connection_details.database
    if database != ":memory:":
        parent = os.path.dirname(os.path.abspath(database))
        if connection_details.read_only and not os.path.exists(database):
            raise DatabaseConnectionError(f"Database file not found: {database}")
        if not os.path.isdir(parent):
            raise DatabaseConnectionError(f"Database folder does not exist: {parent}")

    try:
        conn = duckdb.connect(database=database, read_only=connection_details.read_only)
    except (duckdb.Error, OSError) as e:
        logger.error(f"❌ Failed to create DuckDB connection to {database}: {e}")
        raise DatabaseConnectionError(f"Could not connect to {database}: {e}") from e

    try:
        tmp_dir = get_temp_dir()
        if tmp_dir:
            conn.execute(f"SET temp_directory = '{tmp_dir}'")
        if connection_details.threads:
            conn.execute(f"SET threads = {int(connection_details.threads)}")
        if connection_details.memory_limit:
            conn.execute(f"SET memory_limit = '{connection_details.memory_limit}'")

        # S3 setup only when the warehouse reads from a bucket
        if connection_details.s3_region:
            conn.execute("INSTALL httpfs; LOAD httpfs;")
            conn.execute("INSTALL aws; LOAD aws;")
            conn.execute("CALL load_aws_credentials();")
            conn.execute(f"SET s3_region='{connection_details.s3_region}'")
            conn.execute("SET s3_url_style='path'")
    except duckdb.Error as e:
        conn.close()
        logger.error(f"❌ Failed to configure DuckDB connection: {e}")
        raise DatabaseConnectionError(f"Could not configure connection to {database}: {e}") from e

    logger.info(f"✅ DuckDB connection opened: {database}")
    return conn


def disconnect(conn, logger=logger):
    """Close a DuckDB connection."""
    if conn is None:
        return
    conn.close()
    logger.info("✅ DuckDB connection closed")


def quote_identifier(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def qualify(conn, schema: str, table: str = None) -> str:
    """Catalog-qualified, quoted name of a schema or of a table in it.

    A database file X.duckdb is attached as catalog X, so a bare X.table is
    ambiguous when a schema is also named X.
    """
    catalog = conn.execute("SELECT current_database()").fetchone()[0]
    parts = [catalog, schema] + ([table] if table else [])
    return ".".join(quote_identifier(part) for part in parts)


class DuckDBConnectionProvider:
    """Connection provider used for the cohort-construction phase."""

    def open(self, connection_details):
        return connect(connection_details)

    def close(self, conn):
        disconnect(conn)
