# infrastructure/resilience/circuit_breaker.py
from enum import Enum
from datetime import datetime, timedelta
from typing import Callable, Any, Optional, Dict
import asyncio
from dataclasses import dataclass
import asyncpg
from shared.logging import logger, log_circuit_breaker_event

class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout: timedelta = timedelta(minutes=2)
    success_threshold: int = 1
    timeout_seconds: float = 45.0

class CircuitBreakerRegistry:
    """Registry of the circuit breakers guarding each backend operation"""

    def __init__(self, db_pool: Optional[asyncpg.Pool] = None):
        self.db_pool = db_pool
        self.breakers: Dict[str, 'CircuitBreaker'] = {}

    async def get_breaker(self, name: str, config: Optional[CircuitBreakerConfig] = None) -> 'CircuitBreaker':
        if name not in self.breakers:
            breaker = CircuitBreaker(name, config or CircuitBreakerConfig(), self.db_pool)
            await breaker.initialize()
            self.breakers[name] = breaker
        return self.breakers[name]

    async def get_all_status(self) -> Dict[str, Dict[str, Any]]:
        status = {}
        for name, breaker in self.breakers.items():
            status[name] = await breaker.get_status()
        return status

class CircuitBreaker:
    def __init__(self, name: str, config: CircuitBreakerConfig, db_pool: Optional[asyncpg.Pool] = None):
        self.name = name
        self.config = config
        self.db_pool = db_pool
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.success_count = 0

    async def initialize(self):
        """Load state from database when persistence is configured"""
        if self.db_pool is None:
            return
        try:
            async with self.db_pool.acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT state, failure_count, last_failure_time, success_count
                    FROM circuit_breaker_state
                    WHERE breaker_name = $1
                """, self.name)

                if row:
                    self.state = CircuitState(row['state'])
                    self.failure_count = row['failure_count']
                    self.last_failure_time = row['last_failure_time']
                    self.success_count = row['success_count']
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning("Failed to load circuit breaker state", breaker=self.name, error=str(e))

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                await self._transition(CircuitState.HALF_OPEN)
                self.success_count = 0
            else:
                raise CircuitOpenError(f"Circuit breaker for {self.name} is OPEN")

        try:
            result = await asyncio.wait_for(
                func(*args, **kwargs),
                timeout=self.config.timeout_seconds
            )
        except Exception:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        if not self.last_failure_time:
            return False
        return datetime.utcnow() - self.last_failure_time > self.config.recovery_timeout

    async def _on_success(self):
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.success_threshold:
                self.failure_count = 0
                await self._transition(CircuitState.CLOSED)
        elif self.state == CircuitState.CLOSED and self.failure_count > 0:
            self.failure_count = 0
            await self._persist_state()

    async def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = datetime.utcnow()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.config.failure_threshold:
            await self._transition(CircuitState.OPEN)
        else:
            await self._persist_state()

    async def _transition(self, new_state: CircuitState):
        previous = self.state
        self.state = new_state
        if previous != new_state:
            log_circuit_breaker_event(
                name=self.name,
                event_type=f"{previous.value}_to_{new_state.value}",
                state=new_state.value,
                failure_count=self.failure_count,
            )
        await self._persist_state()

    async def _persist_state(self):
        if self.db_pool is None:
            return
        try:
            async with self.db_pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO circuit_breaker_state
                    (breaker_name, state, failure_count, last_failure_time, success_count, updated_at)
                    VALUES ($1, $2, $3, $4, $5, CURRENT_TIMESTAMP)
                    ON CONFLICT (breaker_name) DO UPDATE SET
                    state = $2, failure_count = $3, last_failure_time = $4,
                    success_count = $5, updated_at = CURRENT_TIMESTAMP
                """, self.name, self.state.value, self.failure_count,
                    self.last_failure_time, self.success_count)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Failed to persist circuit breaker state", breaker=self.name, error=str(e))

    async def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "success_count": self.success_count
        }

    async def force_open(self):
        """Manually open circuit breaker for testing or emergency"""
        self.last_failure_time = datetime.utcnow()
        await self._transition(CircuitState.OPEN)

    async def force_close(self):
        """Manually close circuit breaker for testing or recovery"""
        self.failure_count = 0
        self.success_count = 0
        await self._transition(CircuitState.CLOSED)

class CircuitOpenError(Exception):
    pass
