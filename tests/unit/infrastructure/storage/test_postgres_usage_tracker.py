# tests/unit/infrastructure/storage/test_postgres_usage_tracker.py
import pytest
from unittest.mock import AsyncMock, MagicMock

from infrastructure.storage.postgres_usage_tracker import PostgresUsageTracker

@pytest.fixture
def mock_db_pool():
    pool = MagicMock()
    conn = AsyncMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = None
    return pool

class TestPostgresUsageTracker:
    @pytest.mark.asyncio
    async def test_increment_returns_new_count(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchval.return_value = 3
        tracker = PostgresUsageTracker(mock_db_pool)

        count = await tracker.increment("chat", "u1:2024-05-01")

        assert count == 3
        query, resource, scope = conn.fetchval.call_args.args
        assert "ON CONFLICT (resource, scope)" in query
        assert (resource, scope) == ("chat", "u1:2024-05-01")

    @pytest.mark.asyncio
    async def test_increment_within_is_a_single_conditional_upsert(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchval.return_value = 4
        tracker = PostgresUsageTracker(mock_db_pool)

        count = await tracker.increment_within("superboss", "monthly:2024-05:u1", 10)

        assert count == 4
        query, resource, scope, limit = conn.fetchval.call_args.args
        assert "WHERE usage_counters.count < $3" in query
        assert "RETURNING count" in query
        assert limit == 10

    @pytest.mark.asyncio
    async def test_increment_within_at_limit_returns_none(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchval.return_value = None

        assert await PostgresUsageTracker(mock_db_pool).increment_within("chat", "s", 2) is None

    @pytest.mark.asyncio
    async def test_zero_limit_never_touches_the_database(self, mock_db_pool):
        assert await PostgresUsageTracker(mock_db_pool).increment_within("superboss", "s", 0) is None

        mock_db_pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_counter_is_zero(self, mock_db_pool):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchval.return_value = None

        assert await PostgresUsageTracker(mock_db_pool).get("tts", "u1:2024-05-01") == 0
