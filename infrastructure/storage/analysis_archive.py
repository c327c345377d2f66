# infrastructure/storage/analysis_archive.py
import json
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
import asyncpg
from domain.models.analysis import Analysis
from shared.logging import logger


def analysis_record(user_id: str, analysis: Analysis, record_id: Optional[str] = None,
                    created_at: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "id": record_id or str(uuid.uuid4()),
        "user_id": user_id,
        "problem": analysis.problem,
        "involved_agents": [solution.agent.id for solution in analysis.solutions],
        "solutions": [
            {
                "agent_id": solution.agent.id,
                "agent_name": solution.agent.name,
                "solution": solution.solution,
                "fallback": solution.fallback,
            }
            for solution in analysis.solutions
        ],
        "created_at": (created_at or datetime.utcnow()).isoformat(),
    }


class AnalysisStore(ABC):
    """Session history of SuperBoss analyses per user"""

    async def initialize(self):
        pass

    @abstractmethod
    async def save(self, user_id: str, analysis: Analysis) -> str:
        """Persist an analysis and return its id"""

    @abstractmethod
    async def list_recent(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent analyses first"""

    async def close(self):
        pass


class InMemoryAnalysisArchive(AnalysisStore):
    def __init__(self, max_per_user: int = 100):
        self.max_per_user = max_per_user
        self._records: Dict[str, List[Dict[str, Any]]] = {}

    async def save(self, user_id: str, analysis: Analysis) -> str:
        record = analysis_record(user_id, analysis)
        records = self._records.setdefault(user_id, [])
        records.insert(0, record)
        del records[self.max_per_user:]
        return record["id"]

    async def list_recent(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return list(self._records.get(user_id, [])[:limit])


class AnalysisArchive(AnalysisStore):
    """asyncpg backed archive, solutions kept as JSONB"""

    def __init__(self, database_url: Optional[str] = None, pool: Optional[asyncpg.Pool] = None):
        self.database_url = database_url
        self.connection_pool: Optional[asyncpg.Pool] = pool
        self._owns_pool = pool is None

    async def initialize(self):
        """Initialize database connection pool and create the history table"""
        if self.connection_pool is None:
            self.connection_pool = await asyncpg.create_pool(
                self.database_url,
                min_size=1,
                max_size=10,
                command_timeout=60
            )
        async with self.connection_pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS analysis_history (
                    id VARCHAR(36) PRIMARY KEY,
                    user_id VARCHAR(255) NOT NULL,
                    problem TEXT NOT NULL,
                    involved_agents JSONB NOT NULL DEFAULT '[]',
                    solutions JSONB NOT NULL DEFAULT '[]',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_analysis_history_user ON analysis_history(user_id, created_at DESC)"
            )

    async def save(self, user_id: str, analysis: Analysis) -> str:
        record = analysis_record(user_id, analysis)
        async with self.connection_pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO analysis_history (id, user_id, problem, involved_agents, solutions)
                VALUES ($1, $2, $3, $4, $5)
            """, record["id"], user_id, record["problem"],
                json.dumps(record["involved_agents"]),
                json.dumps(record["solutions"], ensure_ascii=False))

        logger.info("Analysis archived", analysis_id=record["id"], user_id=user_id,
                    agents=record["involved_agents"])
        return record["id"]

    async def list_recent(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        async with self.connection_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, user_id, problem, involved_agents, solutions, created_at
                FROM analysis_history
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
            """, user_id, limit)

        return [
            {
                "id": row["id"],
                "user_id": row["user_id"],
                "problem": row["problem"],
                "involved_agents": json.loads(row["involved_agents"]),
                "solutions": json.loads(row["solutions"]),
                "created_at": row["created_at"].isoformat() if row["created_at"] else None,
            }
            for row in rows
        ]

    async def close(self):
        if self.connection_pool is not None and self._owns_pool:
            await self.connection_pool.close()
