"""
Postgres connection helpers

Connection parameters default to DB_* environment variables (.env is loaded
by utils.config).
"""
import os
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2

from upi_expenses.utils import config  # noqa: F401  (loads .env)


def connection_params(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> dict:
    return {
        'host': host or os.getenv('DB_HOST', 'localhost'),
        'port': port or int(os.getenv('DB_PORT', '5432')),
        'database': database or os.getenv('DB_NAME', 'upi_expenses'),
        'user': user or os.getenv('DB_USER', 'upi_user'),
        'password': password or os.getenv('DB_PASSWORD', 'upi_password_local_dev'),
    }


def get_db_connection(**overrides):
    """
    Open a psycopg2 connection.

    Keyword overrides (host, port, database, user, password) win over the
    environment.
    """
    return psycopg2.connect(**connection_params(**overrides))


@contextmanager
def db_session(**overrides) -> Iterator:
    """Yield a connection and close it afterwards"""
    conn = get_db_connection(**overrides)
    try:
        yield conn
    finally:
        conn.close()


def check_connection() -> bool:
    """Return True when the configured database answers SELECT 1"""
    try:
        with db_session() as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
        return True
    except psycopg2.Error as e:
        print(f"❌ Database connection failed: {e}")
        return False
