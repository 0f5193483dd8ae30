"""
Snowflake Database Client
=========================
Handles connections and table initialization for Snowflake.
"""

import snowflake.connector
from config.settings import settings


def get_connection() -> snowflake.connector.SnowflakeConnection:
    """Return a Snowflake connection using environment credentials."""
    return snowflake.connector.connect(
        account=settings.SNOWFLAKE_ACCOUNT,
        user=settings.SNOWFLAKE_USER,
        password=settings.SNOWFLAKE_PASSWORD,
        database=settings.SNOWFLAKE_DATABASE,
        schema=settings.SNOWFLAKE_SCHEMA,
        warehouse=settings.SNOWFLAKE_WAREHOUSE,
    )


def init_tables() -> None:
    """Create application tables if they do not already exist."""
    ddl_statements = [
        """
        CREATE TABLE IF NOT EXISTS stored_objects (
            bucket        STRING,
            path          STRING,
            content_type  STRING,
            data          BINARY,
            created_at    TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP(),
            PRIMARY KEY (bucket, path)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS analysis_jobs (
            job_id        STRING PRIMARY KEY,
            status        STRING DEFAULT 'pending',
            input_files   VARIANT,
            output_file   STRING,
            error         STRING,
            summary_stats VARIANT,
            failures      VARIANT,
            created_at    TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP(),
            updated_at    TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP()
        )
        """,
    ]

    conn = get_connection()
    try:
        cur = conn.cursor()
        for ddl in ddl_statements:
            cur.execute(ddl)
    finally:
        conn.close()
