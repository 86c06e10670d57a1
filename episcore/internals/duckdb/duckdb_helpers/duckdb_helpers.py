import os
import tempfile
import uuid

import duckdb


def validate_duckdb_connection(connection, logger):
    """Check that the requested duckdb connection is usable.

    Raises:
        TypeError: If the connection is neither a string nor a
            DuckDBPyConnection. An uncommon file suffix is only logged.
    """

    if isinstance(connection, duckdb.DuckDBPyConnection):
        return

    if not isinstance(connection, str):
        raise TypeError(
            "Connection must be a string in the form: :memory:, :temporary: "
            "or the name of a new or existing duckdb database."
        )

    connection = connection.lower()

    if connection in [":memory:", ":temporary:"]:
        return

    if connection.endswith((".duckdb", ".db")):
        return

    logger.info(
        f"The registered connection -- {connection} -- has an uncommon file type. "
        "We recommend a suffix of '.db' or '.duckdb' for on-disk databases."
    )


def create_temporary_duckdb_connection(db_api):
    """Connect to a fresh database file inside a temporary directory that lives
    as long as the owning DuckDBAPI."""
    db_api._temp_dir = tempfile.TemporaryDirectory(dir="")
    fname = uuid.uuid4().hex[:7]
    path = os.path.join(db_api._temp_dir.name, f"{fname}.duckdb")
    return duckdb.connect(database=path, read_only=False)
