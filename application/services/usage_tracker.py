# application/services/usage_tracker.py
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional, Tuple
from shared.config import PlanLimits
from shared.logging import logger, log_usage

RESOURCE_CHAT = "chat"
RESOURCE_TTS = "tts"
RESOURCE_SUPERBOSS = "superboss"

QUOTA_MESSAGES = {
    RESOURCE_CHAT: "Você atingiu o limite diário de mensagens do seu plano. Tente novamente amanhã ou faça upgrade.",
    RESOURCE_TTS: "Você atingiu o limite diário de áudios do seu plano. Tente novamente amanhã ou faça upgrade.",
    RESOURCE_SUPERBOSS: "Você atingiu o limite mensal de análises do SuperBoss no seu plano.",
}


class QuotaExceededError(Exception):
    """Raised when a plan quota would be exceeded by one more use"""

    def __init__(self, resource: str, scope: str, limit: int):
        self.resource = resource
        self.scope = scope
        self.limit = limit
        super().__init__(QUOTA_MESSAGES.get(resource, "Limite de uso atingido."))


def daily_scope(user_id: Optional[str], day: Optional[date] = None) -> str:
    day = day or datetime.utcnow().date()
    return f"daily:{day.isoformat()}:{user_id or 'anonymous'}"


def monthly_scope(user_id: Optional[str], day: Optional[date] = None) -> str:
    day = day or datetime.utcnow().date()
    return f"monthly:{day.strftime('%Y-%m')}:{user_id or 'anonymous'}"


class UsageTracker(ABC):
    """Counter store keyed by (resource, scope)"""

    @abstractmethod
    async def increment(self, resource: str, scope: str) -> int:
        """Add one use and return the new count"""

    @abstractmethod
    async def increment_within(self, resource: str, scope: str, limit: int) -> Optional[int]:
        """Atomically add one use while the count is below limit; None when it is not"""

    @abstractmethod
    async def get(self, resource: str, scope: str) -> int:
        """Current count, zero when never used"""


class InMemoryUsageTracker(UsageTracker):
    """Process local counters for development and tests"""

    def __init__(self):
        self._counts: Dict[Tuple[str, str], int] = {}
        self._lock = asyncio.Lock()

    async def increment(self, resource: str, scope: str) -> int:
        async with self._lock:
            key = (resource, scope)
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    async def increment_within(self, resource: str, scope: str, limit: int) -> Optional[int]:
        async with self._lock:
            key = (resource, scope)
            current = self._counts.get(key, 0)
            if current >= limit:
                return None
            self._counts[key] = current + 1
            return self._counts[key]

    async def get(self, resource: str, scope: str) -> int:
        return self._counts.get((resource, scope), 0)


@dataclass(frozen=True)
class PlanContext:
    plan: str = "free"
    cycle: str = "monthly"  # "monthly" | "yearly"


class QuotaPolicy:
    """Plan limits per resource; None means unlimited"""

    def __init__(self, limits: PlanLimits = PlanLimits()):
        self.limits = limits

    def limit_for(self, resource: str, plan: PlanContext) -> Optional[int]:
        plan_name = (plan.plan or "free").lower()
        if resource == RESOURCE_CHAT:
            return self.limits.chat_daily.get(plan_name, self.limits.chat_daily["free"])
        if resource == RESOURCE_TTS:
            return self.limits.tts_daily.get(plan_name, self.limits.tts_daily["free"])
        if resource == RESOURCE_SUPERBOSS:
            if plan_name == "premium":
                return None
            if plan_name == "pro" and plan.cycle == "yearly":
                return self.limits.superboss_monthly_pro_yearly
            return 0
        return None

    def scope_for(self, resource: str, user_id: Optional[str], day: Optional[date] = None) -> str:
        if resource == RESOURCE_SUPERBOSS:
            return monthly_scope(user_id, day)
        return daily_scope(user_id, day)

    async def consume(self, tracker: UsageTracker, resource: str, plan: PlanContext,
                      user_id: Optional[str], day: Optional[date] = None) -> int:
        """Check the quota and count one use; raises QuotaExceededError when exhausted"""
        scope = self.scope_for(resource, user_id, day)
        limit = self.limit_for(resource, plan)

        if limit is None:
            count = await tracker.increment(resource, scope)
        else:
            count = await tracker.increment_within(resource, scope, limit)
            if count is None:
                log_usage(resource, scope, limit, limit, exceeded=True)
                raise QuotaExceededError(resource, scope, limit)

        log_usage(resource, scope, count, limit, exceeded=False)
        return count

    async def remaining(self, tracker: UsageTracker, resource: str, plan: PlanContext,
                        user_id: Optional[str], day: Optional[date] = None) -> Optional[int]:
        limit = self.limit_for(resource, plan)
        if limit is None:
            return None
        used = await tracker.get(resource, self.scope_for(resource, user_id, day))
        remaining = max(0, limit - used)
        if remaining == 0:
            logger.debug("Quota exhausted", resource=resource, user_id=user_id)
        return remaining
