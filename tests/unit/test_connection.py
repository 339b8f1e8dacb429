"""Tests for the ledger database connection."""

import pytest

from schemagraph.core.connection import DatabaseConnection, _normalize_url
from schemagraph.exceptions import LedgerConnectionError


class TestDatabaseConnection:
    """Tests for DatabaseConnection class."""

    def test_sqlite_memory_connection(self):
        """Can connect to an in-memory SQLite ledger."""
        conn = DatabaseConnection("sqlite:///:memory:")
        assert conn.test_connection() is True
        assert conn.dialect == "sqlite"
        conn.close()

    def test_engine_created_lazily(self):
        """Engine is not created until accessed."""
        conn = DatabaseConnection("sqlite:///:memory:")
        assert conn._engine is None
        _ = conn.engine
        assert conn._engine is not None
        conn.close()

    def test_memory_sessions_share_data(self):
        """Sessions on an in-memory ledger see the same database."""
        from sqlalchemy import text

        conn = DatabaseConnection("sqlite:///:memory:")
        with conn.get_session() as session:
            session.execute(text("CREATE TABLE t (x INTEGER)"))
            session.execute(text("INSERT INTO t VALUES (1)"))
            session.commit()
        with conn.get_session() as session:
            assert session.execute(text("SELECT x FROM t")).scalar() == 1
        conn.close()

    def test_foreign_keys_enforced(self):
        """SQLite connections enable foreign key enforcement."""
        from sqlalchemy import text

        conn = DatabaseConnection("sqlite:///:memory:")
        with conn.engine.connect() as c:
            assert c.execute(text("PRAGMA foreign_keys")).scalar() == 1
        conn.close()

    def test_context_manager(self):
        """Can use as context manager."""
        with DatabaseConnection("sqlite:///:memory:") as conn:
            assert conn.test_connection() is True

    def test_close_disposes_engine(self):
        """Closing disposes engine and session factory."""
        conn = DatabaseConnection("sqlite:///:memory:")
        _ = conn.engine
        _ = conn.session_factory
        conn.close()
        assert conn._engine is None
        assert conn._session_factory is None

    def test_invalid_url(self):
        """Invalid URL raises LedgerConnectionError."""
        conn = DatabaseConnection("invalid://not-a-real-db")
        with pytest.raises(LedgerConnectionError):
            conn.test_connection()


def test_postgresql_url_uses_psycopg():
    """Plain postgresql:// URLs are routed to psycopg 3."""
    assert _normalize_url("postgresql://u@h/db") == "postgresql+psycopg://u@h/db"
    assert _normalize_url("sqlite:///x.db") == "sqlite:///x.db"
