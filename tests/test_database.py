import sqlite3
import unittest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.database import get_session, init_db, set_sqlite_pragma
from src.core.permissions import Tier
from src.core.utils import utcnow
from src.domain.invitations.models import Invitation
from src.domain.users.models import User
from tests.base import BaseTest


class TestDatabaseCore(unittest.IsolatedAsyncioTestCase):
    """Test suite for database configuration and connection pragmas."""

    async def asyncSetUp(self) -> None:
        """Initializes the in-memory SQLite schema for testing."""
        await init_db()

    async def test_get_session_yields_active_session(self) -> None:
        """Validates that the session dependency yields a functional AsyncSession."""
        session_gen = get_session()
        session = await anext(session_gen)

        result = await session.exec(text("SELECT 1"))
        self.assertEqual(result.first()[0], 1)

        try:
            await anext(session_gen)
        except StopAsyncIteration:
            pass

    async def test_init_db_creates_every_table_and_is_idempotent(self) -> None:
        """Validates that schema creation covers all hub tables and tolerates re-runs."""
        target = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        try:
            await init_db(target)
            await init_db(target)

            async with target.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
        finally:
            await target.dispose()

        self.assertTrue(
            {"user", "resource", "category", "label", "accesslog", "invitation", "alloweddomain", "setting"} <= tables
        )

    @patch("src.core.database.logger.error")
    def test_set_sqlite_pragma_execution(self, mock_logger: MagicMock) -> None:
        """Validates that SQLite pragmas are executed on connection creation.

        Args:
            mock_logger: Mocked Loguru logger to verify error handling.
        """
        mock_dbapi_connection = MagicMock()
        mock_cursor = MagicMock()
        mock_dbapi_connection.cursor.return_value = mock_cursor

        set_sqlite_pragma(mock_dbapi_connection, MagicMock())

        mock_cursor.execute.assert_any_call("PRAGMA journal_mode=WAL")
        mock_cursor.execute.assert_any_call("PRAGMA synchronous=NORMAL")
        mock_cursor.execute.assert_any_call("PRAGMA busy_timeout=30000")
        mock_cursor.close.assert_called_once()
        mock_logger.assert_not_called()

    @patch("src.core.database.logger.error")
    def test_set_sqlite_pragma_exception_handling(self, mock_logger: MagicMock) -> None:
        """Validates exception logging and raising during pragma configuration.

        Args:
            mock_logger: Mocked Loguru logger.
        """
        mock_dbapi_connection = MagicMock()
        mock_cursor = MagicMock()
        mock_dbapi_connection.cursor.return_value = mock_cursor

        # Simulate a locked database on the first pragma
        mock_cursor.execute.side_effect = sqlite3.OperationalError("database is locked")

        with self.assertRaises(sqlite3.OperationalError):
            set_sqlite_pragma(mock_dbapi_connection, MagicMock())

        mock_logger.assert_called_once()
        mock_cursor.close.assert_called_once()


class TestDatetimeContract(BaseTest):
    """Timestamps are written and read back as naive UTC."""

    async def test_timestamps_round_trip_as_naive_utc(self) -> None:
        before = utcnow()
        user = await self.create_user("clock@acme.com", tier=Tier.TIER_1)
        async with self.test_session_maker() as session:
            session.add(Invitation(email="new@acme.com", token="c" * 32, invited_by=user.id, expires_at=before))
            await session.commit()

        async with self.test_session_maker() as session:
            stored_user = await session.get(User, user.id)
            invitation = await session.get(Invitation, 1)

        for value in (stored_user.created_at, stored_user.last_signed_in, invitation.created_at, invitation.expires_at):
            self.assertIsNone(value.tzinfo)
        self.assertLessEqual(before, stored_user.created_at)
        self.assertLess(stored_user.created_at - before, timedelta(minutes=1))
        self.assertEqual(invitation.expires_at, before)
        self.assertTrue(invitation.is_expired(before + timedelta(seconds=1)))
        self.assertFalse(invitation.is_expired(before - timedelta(seconds=1)))


if __name__ == "__main__":
    unittest.main()
