"""
PostgreSQL connection helper.
Provides get_db() for use by services.
"""

import os
import logging
import psycopg2
from psycopg2.extras import DictCursor
from dotenv import load_dotenv

# Load .env variables from the project root
load_dotenv()

# Get the database URL from environment variable
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")

def get_db():
    """
    Returns a new psycopg2 connection with dictionary-based row access.

    Usage:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(...)

    The connection's own `with` block only commits (or rolls back) the
    transaction; `contextlib.closing` is what closes it.

    Returns:
        psycopg2.extensions.connection: A connection object with DictCursor factory.

    Raises:
        psycopg2.Error: If connection fails.
    """
    try:
        conn = psycopg2.connect(DATABASE_URL)

        # Rows come back as dictionaries, e.g. {"user_id": 1, "email": "..."}
        conn.cursor_factory = DictCursor
        return conn
    except Exception as e:
        logging.error(f"Error connecting to database: {e}")
        raise
