# infrastructure/storage/postgres_usage_tracker.py
from typing import Optional
import asyncpg
from application.services.usage_tracker import UsageTracker


class PostgresUsageTracker(UsageTracker):
    """Usage counters persisted with atomic upserts"""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def increment(self, resource: str, scope: str) -> int:
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval("""
                INSERT INTO usage_counters (resource, scope, count, updated_at)
                VALUES ($1, $2, 1, CURRENT_TIMESTAMP)
                ON CONFLICT (resource, scope) DO UPDATE SET
                count = usage_counters.count + 1, updated_at = CURRENT_TIMESTAMP
                RETURNING count
            """, resource, scope)

    async def increment_within(self, resource: str, scope: str, limit: int) -> Optional[int]:
        if limit <= 0:
            return None
        async with self.db_pool.acquire() as conn:
            # No row comes back when the conflicting row is already at the limit
            return await conn.fetchval("""
                INSERT INTO usage_counters (resource, scope, count, updated_at)
                VALUES ($1, $2, 1, CURRENT_TIMESTAMP)
                ON CONFLICT (resource, scope) DO UPDATE SET
                count = usage_counters.count + 1, updated_at = CURRENT_TIMESTAMP
                WHERE usage_counters.count < $3
                RETURNING count
            """, resource, scope, limit)

    async def get(self, resource: str, scope: str) -> int:
        async with self.db_pool.acquire() as conn:
            count = await conn.fetchval("""
                SELECT count FROM usage_counters
                WHERE resource = $1 AND scope = $2
            """, resource, scope)
        return count or 0
