"""
PostgreSQL profile store adapter - Implements ProfileStore protocol.

This module provides the PostgreSQL implementation of the domain's
profile store port using psycopg3 with raw SQL.

Concurrency Design:
-------------------
1. **Upsert**: save() is a single INSERT ... ON CONFLICT DO UPDATE, so a
   reader sees either the previous document or the new one. The whole
   document is written in one statement; there are no partial writes.

2. **Per-profile critical section**: save() takes
   pg_advisory_xact_lock(hashtext(profile_id)) inside its transaction.
   Concurrent saves of the same profile queue on the lock and commit one
   after another (last write wins); saves of other profiles proceed.

3. **Session key**: one row per session key, so load() at session start
   is a primary-key lookup.
"""

import logging
from pathlib import Path

import psycopg
from psycopg_pool import ConnectionPool

from src.domain.exceptions import ProfileStoreError
from src.domain.models import PersistedProfile

from .document import dump_profile, parse_profile

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


class PostgresProfileStore:
    """
    Implements ProfileStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool, session_key: str = "auth") -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            session_key: Row key the session's profile is stored under
        """
        self._pool = pool
        self._session_key = session_key

    def load(self) -> PersistedProfile | None:
        """Fetch the session's profile document, if any."""
        sql = "SELECT document FROM profiles WHERE session_key = %s"

        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (self._session_key,))
                row = cursor.fetchone()
        except psycopg.Error as e:
            logger.error(f"Profile load failed for session {self._session_key}: {e}")
            raise ProfileStoreError("Cannot load profile") from e

        if row is None:
            return None
        return parse_profile(row[0])

    def save(self, profile: PersistedProfile) -> None:
        """
        Upsert the full profile document.

        Serialized per profile id with a transaction-scoped advisory lock.
        """
        lock_sql = "SELECT pg_advisory_xact_lock(hashtext(%s))"
        upsert_sql = """
            INSERT INTO profiles (session_key, profile_id, document, updated_at)
            VALUES (%s, %s, %s::jsonb, NOW())
            ON CONFLICT (session_key) DO UPDATE
            SET profile_id = EXCLUDED.profile_id,
                document = EXCLUDED.document,
                updated_at = NOW()
        """
        payload = dump_profile(profile)

        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(lock_sql, (profile.id,))
                cursor.execute(upsert_sql, (self._session_key, profile.id, payload))
                conn.commit()
        except psycopg.Error as e:
            logger.error(f"Profile save failed for {profile.id}: {e}")
            raise ProfileStoreError("Cannot save profile") from e

        logger.info("Profile %s saved (postgres)", profile.id)

    def clear(self) -> None:
        """Delete the session's profile row."""
        sql = "DELETE FROM profiles WHERE session_key = %s"

        try:
            with self._pool.connection() as conn:
                conn.execute(sql, (self._session_key,))
                conn.commit()
        except psycopg.Error as e:
            logger.error(f"Profile delete failed for session {self._session_key}: {e}")
            raise ProfileStoreError("Cannot clear profile") from e


def run_migrations(pool: ConnectionPool, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """
    Apply pending SQL files from `migrations_dir` in filename order.

    Applied file names are recorded in schema_migrations in the same
    transaction as the file itself, so each file runs once per database
    and a failed file leaves nothing behind.

    Returns:
        Names of the files applied by this call

    Raises:
        ProfileStoreError: A migration failed
    """
    if not migrations_dir.is_dir():
        logger.warning("No migrations directory at %s", migrations_dir)
        return []

    applied: list[str] = []
    with pool.connection() as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            " name TEXT PRIMARY KEY,"
            " applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW())"
        )
        done = {row[0] for row in conn.execute("SELECT name FROM schema_migrations").fetchall()}
        conn.commit()

        for sql_file in sorted(migrations_dir.glob("*.sql")):
            if sql_file.name in done:
                continue
            try:
                with conn.transaction():
                    conn.execute(sql_file.read_text(encoding="utf-8"))
                    conn.execute(
                        "INSERT INTO schema_migrations (name) VALUES (%s)", (sql_file.name,)
                    )
            except psycopg.Error as e:
                logger.error(f"Migration failed: {sql_file.name} - {e}")
                raise ProfileStoreError(f"Database migration failed: {sql_file.name}") from e
            logger.info("Applied migration %s", sql_file.name)
            applied.append(sql_file.name)

    if not applied:
        logger.info("Database schema up to date")
    return applied
