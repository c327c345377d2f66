# scripts/setup_database.py
"""
Database setup script for SuperBoss
Creates the circuit breaker, usage counter and analysis history tables
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import asyncpg
from shared.logging import logger, setup_logging

EXPECTED_TABLES = {
    'analysis_history',
    'circuit_breaker_state',
    'usage_counters'
}

async def create_database_if_not_exists(admin_url: str, database_name: str):
    """Create database if it doesn't exist"""
    admin_conn = await asyncpg.connect(admin_url)
    try:
        db_exists = await admin_conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", database_name
        )

        if not db_exists:
            await admin_conn.execute(f'CREATE DATABASE "{database_name}"')
            logger.info("Created database", database=database_name)
        else:
            logger.info("Database already exists", database=database_name)
    finally:
        await admin_conn.close()

async def setup_tables(database_url: str):
    """Create all required tables and indexes"""

    conn = await asyncpg.connect(database_url)

    try:
        logger.info("Creating database tables...")

        # Circuit breaker state table
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS circuit_breaker_state (
                breaker_name VARCHAR(100) PRIMARY KEY,
                state VARCHAR(20) NOT NULL,
                failure_count INTEGER DEFAULT 0,
                last_failure_time TIMESTAMP,
                success_count INTEGER DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                CONSTRAINT chk_circuit_state CHECK (state IN ('closed', 'open', 'half_open'))
            )
        """)
        logger.info("✓ Created circuit_breaker_state table")

        # Usage counters per resource and scope (daily:<date>:<user> or monthly:<yyyy-mm>:<user>)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_counters (
                resource VARCHAR(50) NOT NULL,
                scope VARCHAR(300) NOT NULL,
                count INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (resource, scope),
                CONSTRAINT chk_usage_count CHECK (count >= 0)
            )
        """)
        logger.info("✓ Created usage_counters table")

        # SuperBoss analysis history
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
        logger.info("✓ Created analysis_history table")

        logger.info("Creating database indexes...")

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_analysis_history_user ON analysis_history(user_id, created_at DESC)
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_usage_updated ON usage_counters(updated_at)
        """)

        logger.info("✓ Created all indexes")

        # Create a function to update timestamps automatically
        await conn.execute("""
            CREATE OR REPLACE FUNCTION update_updated_at_column()
            RETURNS TRIGGER AS $$
            BEGIN
                NEW.updated_at = CURRENT_TIMESTAMP;
                RETURN NEW;
            END;
            $$ language 'plpgsql'
        """)

        await conn.execute("""
            DROP TRIGGER IF EXISTS update_circuit_breaker_state_updated_at ON circuit_breaker_state;
            CREATE TRIGGER update_circuit_breaker_state_updated_at
                BEFORE UPDATE ON circuit_breaker_state
                FOR EACH ROW
                EXECUTE FUNCTION update_updated_at_column()
        """)

        logger.info("✓ Created automatic timestamp triggers")
        logger.info("Database setup completed successfully!")

    finally:
        await conn.close()

async def verify_setup(database_url: str):
    """Verify the database setup is working correctly"""

    conn = await asyncpg.connect(database_url)

    try:
        logger.info("Verifying database setup...")

        tables = await conn.fetch("""
            SELECT table_name FROM information_schema.tables
            WHERE table_schema = 'public'
            ORDER BY table_name
        """)

        found_tables = {row['table_name'] for row in tables}

        if not EXPECTED_TABLES.issubset(found_tables):
            missing = EXPECTED_TABLES - found_tables
            raise RuntimeError(f"Missing tables: {missing}")

        logger.info(f"✓ All {len(EXPECTED_TABLES)} tables found")

        # Exercise the usage counter upsert
        test_scope = 'daily:setup-verification'
        count = await conn.fetchval("""
            INSERT INTO usage_counters (resource, scope, count)
            VALUES ('chat', $1, 1)
            ON CONFLICT (resource, scope) DO UPDATE SET count = usage_counters.count + 1
            RETURNING count
        """, test_scope)

        if not count:
            raise RuntimeError("Failed to upsert test usage counter")

        await conn.execute("""
            DELETE FROM usage_counters WHERE resource = 'chat' AND scope = $1
        """, test_scope)

        logger.info("✓ Basic database operations working")
        logger.info("Database verification completed successfully!")

    finally:
        await conn.close()

async def main():
    """Main setup function"""

    setup_logging(level="INFO", json_logs=False)

    logger.info("Starting SuperBoss database setup")

    database_url = os.getenv("DATABASE_URL")

    if not database_url:
        # Default local development setup
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        database = os.getenv("DB_NAME", "superboss")

        database_url = f"postgresql://{user}:{password}@{host}:{port}/{database}"
        admin_url = f"postgresql://{user}:{password}@{host}:{port}/postgres"

        logger.info(f"Using database: {host}:{port}/{database}")

        try:
            await create_database_if_not_exists(admin_url, database)
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Could not create database (may already exist): {e}")

    try:
        await setup_tables(database_url)
        await verify_setup(database_url)

        logger.info("🎉 Database setup completed successfully!")

    except (asyncpg.PostgresError, OSError, RuntimeError) as e:
        logger.error(f"Database setup failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    asyncio.run(main())
