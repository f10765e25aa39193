# tests/infra/test_database.py
"""
Tests for the database manager.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from parceltrack.common.exceptions import StorageUnavailableError
from parceltrack.infra.database import DatabaseManager, retry_on_connection_error


class TestRetryOnConnectionError:
    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def successful_func():
            return "success"

        assert await successful_func() == "success"

    @pytest.mark.asyncio
    async def test_retry_then_success(self) -> None:
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def failing_then_success():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionRefusedError("Connection refused")
            return "success"

        with patch("parceltrack.infra.database.asyncio.sleep", new=AsyncMock()):
            assert await failing_then_success() == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_attempts_become_storage_unavailable(self) -> None:
        call_count = 0

        @retry_on_connection_error(max_attempts=2, delay=0.01)
        async def always_failing():
            nonlocal call_count
            call_count += 1
            raise ConnectionRefusedError("Connection refused")

        with patch("parceltrack.infra.database.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(StorageUnavailableError) as exc_info:
                await always_failing()

        assert call_count == 2
        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self) -> None:
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def raises_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("Not a connection error")

        with pytest.raises(ValueError):
            await raises_value_error()
        assert call_count == 1


class TestDatabaseManager:
    @pytest.fixture
    def db(self) -> DatabaseManager:
        DatabaseManager._instance = None
        DatabaseManager._pool = None
        return DatabaseManager()

    @staticmethod
    def attach_connection(db: DatabaseManager, conn: AsyncMock) -> None:
        @asynccontextmanager
        async def acquire():
            yield conn

        pool = MagicMock()
        pool.acquire = acquire
        db._pool = pool

    def test_singleton(self, db: DatabaseManager) -> None:
        assert DatabaseManager() is db

    def test_pool_not_initialized(self, db: DatabaseManager) -> None:
        with pytest.raises(RuntimeError):
            _ = db.pool

    @pytest.mark.asyncio
    async def test_connect_creates_pool_once(self, db: DatabaseManager) -> None:
        pool = MagicMock()
        with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)) as create_pool:
            await db.connect(dsn="postgresql://u:p@h:5432/d", min_size=1, max_size=2)
            await db.connect(dsn="postgresql://u:p@h:5432/d")

        create_pool.assert_awaited_once()
        assert db.pool is pool

    @pytest.mark.asyncio
    async def test_queries_go_through_pool(self, db: DatabaseManager) -> None:
        conn = AsyncMock()
        conn.fetchval = AsyncMock(return_value=1)
        conn.fetch = AsyncMock(return_value=[{"id": 1}])
        conn.execute = AsyncMock(return_value="UPDATE 1")
        self.attach_connection(db, conn)

        assert await db.fetchval("SELECT 1") == 1
        assert await db.fetch("SELECT id FROM shipments WHERE customer_id = $1", "c") == [{"id": 1}]
        assert await db.execute("UPDATE shipments SET notes = $1", "x") == "UPDATE 1"
        conn.fetch.assert_awaited_once_with("SELECT id FROM shipments WHERE customer_id = $1", "c")

    @pytest.mark.asyncio
    async def test_health_check(self, db: DatabaseManager) -> None:
        conn = AsyncMock()
        conn.fetchval = AsyncMock(return_value=1)
        self.attach_connection(db, conn)

        assert await db.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_without_pool(self, db: DatabaseManager) -> None:
        assert await db.health_check() is False

    @pytest.mark.asyncio
    async def test_disconnect(self, db: DatabaseManager) -> None:
        pool = MagicMock()
        pool.close = AsyncMock()
        db._pool = pool

        await db.disconnect()

        pool.close.assert_awaited_once()
        assert db._pool is None

    @staticmethod
    def attach_transactional_connection(db: DatabaseManager, conn: AsyncMock) -> MagicMock:
        tx = MagicMock()
        tx.__aenter__ = AsyncMock(return_value=None)
        tx.__aexit__ = AsyncMock(return_value=False)
        conn.transaction = MagicMock(return_value=tx)
        TestDatabaseManager.attach_connection(db, conn)
        return tx

    @pytest.mark.asyncio
    async def test_transaction_yields_connection(self, db: DatabaseManager) -> None:
        conn = AsyncMock()
        tx = self.attach_transactional_connection(db, conn)

        async with db.transaction() as tx_conn:
            await tx_conn.execute("UPDATE shipments SET notes = $1", "x")

        conn.execute.assert_awaited_once()
        tx.__aexit__.assert_awaited_once()
        assert tx.__aexit__.call_args.args[0] is None

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, db: DatabaseManager) -> None:
        conn = AsyncMock()
        tx = self.attach_transactional_connection(db, conn)

        with pytest.raises(ValueError):
            async with db.transaction():
                raise ValueError("boom")

        assert tx.__aexit__.call_args.args[0] is ValueError

    @pytest.mark.asyncio
    async def test_transaction_connection_loss_is_not_retried(self, db: DatabaseManager) -> None:
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(side_effect=ConnectionResetError("reset by peer"))
        self.attach_transactional_connection(db, conn)

        with pytest.raises(StorageUnavailableError):
            async with db.transaction() as tx_conn:
                await tx_conn.fetchrow("UPDATE shipments SET status = $2 WHERE id = $1", 1, "assigned")

        conn.fetchrow.assert_awaited_once()
