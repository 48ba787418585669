"""Utility script to prepare the configured database for local use."""
from __future__ import annotations

import argparse
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql
from sqlalchemy.exc import SQLAlchemyError

from parley.core.settings import settings


def normalize_to_psycopg(uri: str) -> str:
    """Return a Postgres URI suitable for psycopg.connect().

    Strips surrounding quotes and converts SQLAlchemy schemes
    (``postgresql+psycopg`` and friends) to plain ``postgresql``.
    """
    uri = (uri or "").strip()
    if (uri.startswith("'") and uri.endswith("'")) or (uri.startswith('"') and uri.endswith('"')):
        uri = uri[1:-1]
    if not uri:
        raise ValueError("DATABASE_URL is empty")

    parts = urlsplit(uri)
    scheme = parts.scheme
    if scheme.startswith("postgresql+"):
        scheme = "postgresql"
    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))


def ensure_postgres_database(db_url: str) -> None:
    """Create the configured Postgres database if it is missing."""
    parts = urlsplit(normalize_to_psycopg(db_url))
    target_db = parts.path.lstrip("/") or "postgres"
    admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))

    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is None:
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
            print(f"[ensure_db] created database {target_db}")
        else:
            print(f"[ensure_db] database {target_db} already exists")


def main() -> None:
    parser = argparse.ArgumentParser(description="Ensure the configured database and its tables")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every direct message table before recreating them.",
    )
    args = parser.parse_args()

    db_url = settings.effective_database_url
    try:
        if db_url.startswith("postgresql"):
            ensure_postgres_database(db_url)

        # Imported late so the engine is only built once the database exists.
        from parley.db.session import create_tables, drop_tables

        if args.drop_tables:
            drop_tables()
            print("[ensure_db] dropped all tables")
        create_tables()
        print("[ensure_db] tables are up to date")
    except (psycopg.Error, SQLAlchemyError, ValueError) as exc:
        print(f"[ensure_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
