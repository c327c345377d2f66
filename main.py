# main.py
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Depends
import asyncpg

# Internal imports
from application.orchestrators.superboss_orchestrator import SuperBossOrchestrator
from application.services.conversation_service import ConversationService
from application.services.question_engine import QuestionEngine
from application.services.usage_tracker import InMemoryUsageTracker, QuotaPolicy
from domain.persona_registry import DEFAULT_REGISTRY
from infrastructure.generation.mock_adapter import MockGenerativeBackend
from infrastructure.generation.openai_adapter import OpenAIGenerativeBackend
from infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry
from infrastructure.storage.analysis_archive import AnalysisArchive, InMemoryAnalysisArchive
from infrastructure.storage.postgres_usage_tracker import PostgresUsageTracker
from infrastructure.web.chat_api import app_state, router as chat_router
from shared.config import Settings
from shared.logging import logger, setup_logging

VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""

    settings = Settings.from_env()
    setup_logging(level=settings.log_level, json_logs=settings.json_logs)
    logger.info("Starting SuperBoss", version=VERSION)

    try:
        db_pool = None
        if settings.database_url:
            db_pool = await asyncpg.create_pool(settings.database_url, min_size=2, max_size=10)
            app_state["db_pool"] = db_pool
        else:
            logger.warning("DATABASE_URL not set, usage counters and history are kept in memory")

        circuit_breaker_registry = CircuitBreakerRegistry(db_pool)
        app_state["circuit_breaker_registry"] = circuit_breaker_registry

        registry = DEFAULT_REGISTRY
        app_state["registry"] = registry

        if settings.openai_api_key:
            backend = OpenAIGenerativeBackend(settings, registry, circuit_breaker_registry)
        else:
            logger.warning("OPENAI_API_KEY not set, using the offline mock backend")
            backend = MockGenerativeBackend()
        app_state["backend"] = backend

        if db_pool is not None:
            usage_tracker = PostgresUsageTracker(db_pool)
            archive = AnalysisArchive(pool=db_pool)
        else:
            usage_tracker = InMemoryUsageTracker()
            archive = InMemoryAnalysisArchive()
        await archive.initialize()
        app_state["archive"] = archive

        quota_policy = QuotaPolicy(settings.plan_limits)
        question_engine = QuestionEngine(
            settings.stage_thresholds,
            settings.pricing,
            pricing_enabled=settings.local_heuristics_enabled,
        )

        app_state["conversation_service"] = ConversationService(
            backend, question_engine, usage_tracker, quota_policy
        )
        app_state["orchestrator"] = SuperBossOrchestrator(
            registry, backend,
            usage_tracker=usage_tracker,
            quota_policy=quota_policy,
            archive=archive,
            settings=settings,
        )
        app_state["settings"] = settings

        logger.info("Application initialized successfully",
                    personas=len(registry),
                    backend=type(backend).__name__,
                    persistence="postgres" if db_pool is not None else "memory")

    except (asyncpg.PostgresError, OSError) as e:
        logger.error("Failed to initialize application", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down SuperBoss")

    if "backend" in app_state:
        await app_state["backend"].close()

    if "archive" in app_state:
        await app_state["archive"].close()

    if "db_pool" in app_state:
        await app_state["db_pool"].close()

    app_state.clear()

# Create FastAPI app
app = FastAPI(
    title="SuperBoss",
    description="Multi-agent business consulting: persona chat and SuperBoss delegation",
    version=VERSION,
    lifespan=lifespan
)

# Dependency injection
async def get_circuit_breaker_registry() -> CircuitBreakerRegistry:
    return app_state["circuit_breaker_registry"]

@app.get("/health")
async def health_check(
    circuit_breaker_registry: CircuitBreakerRegistry = Depends(get_circuit_breaker_registry)
):
    """System health check"""

    circuit_status = await circuit_breaker_registry.get_all_status()
    open_circuits = [name for name, status in circuit_status.items()
                     if status["state"] == "open"]

    database = "not_configured"
    if "db_pool" in app_state:
        try:
            async with app_state["db_pool"].acquire() as conn:
                await conn.fetchval("SELECT 1")
            database = "connected"
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.utcnow().isoformat()
            }

    return {
        "status": "healthy" if not open_circuits else "degraded",
        "database": database,
        "circuit_breakers": circuit_status,
        "open_circuits": open_circuits,
        "version": VERSION,
        "timestamp": datetime.utcnow().isoformat()
    }

@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "service": "SuperBoss",
        "description": "Multi-agent business consulting with specialist delegation",
        "features": [
            "Thirty specialist personas and the SuperBoss orchestrator",
            "Deterministic question engine with pricing heuristic",
            "Concurrent specialist consultation with per-agent fallback",
            "Circuit breaker fault tolerance",
            "Plan based usage quotas"
        ],
        "endpoints": {
            "agents": "GET /agents",
            "greeting": "GET /agents/{agent_id}/greeting",
            "next_question": "POST /agents/{agent_id}/next-question",
            "chat": "POST /agents/{agent_id}/chat",
            "speech": "POST /agents/{agent_id}/speech",
            "superboss_analyze": "POST /superboss/analyze",
            "superboss_messages": "POST /superboss/messages",
            "superboss_history": "GET /superboss/history/{user_id}",
            "health_check": "GET /health"
        }
    }

# Include chat router
app.include_router(chat_router)

if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload
    )
