# shared/config.py
import os
from dataclasses import dataclass, field
from typing import Dict, Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class StageThresholds:
    """Number of question-bearing agent messages needed to enter each stage"""
    prioritization: int = 1
    execution: int = 2
    followup: int = 3


@dataclass(frozen=True)
class PricingConfig:
    """Multipliers used by the pricing heuristic to build the three price tiers"""
    lookback_messages: int = 6

    # Competitor anchored tiers
    competitor_low: float = 0.95
    competitor_mid: float = 1.0
    competitor_high: float = 1.15

    # Cost-only tiers
    cost_low: float = 1.5
    cost_mid: float = 1.7
    cost_high: float = 2.0

    # Safety floors over the unit cost
    floor_low: float = 1.2
    floor_mid: float = 1.32
    floor_high: float = 1.5

    # Minimum ratio between the highest and the lowest tier
    spread: float = 1.3


@dataclass(frozen=True)
class PlanLimits:
    chat_daily: Dict[str, int] = field(default_factory=lambda: {
        "free": 50, "starter": 200, "pro": 500, "premium": 1000
    })
    tts_daily: Dict[str, int] = field(default_factory=lambda: {
        "free": 50, "starter": 200, "pro": 500, "premium": 1000
    })
    superboss_monthly_pro_yearly: int = 10

    @classmethod
    def from_env(cls) -> "PlanLimits":
        plans = ("free", "starter", "pro", "premium")
        defaults = cls()
        return cls(
            chat_daily={
                plan: _env_int(f"CHAT_DAILY_LIMIT_{plan.upper()}", defaults.chat_daily[plan])
                for plan in plans
            },
            tts_daily={
                plan: _env_int(f"TTS_DAILY_LIMIT_{plan.upper()}", defaults.tts_daily[plan])
                for plan in plans
            },
            superboss_monthly_pro_yearly=_env_int(
                "SUPERBOSS_MONTHLY_LIMIT_PRO_YEARLY", defaults.superboss_monthly_pro_yearly
            ),
        )


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    chat_model: str = "gpt-4o-mini"
    image_model: str = "gpt-image-1"
    tts_model: str = "gpt-4o-mini-tts"
    database_url: Optional[str] = None
    log_level: str = "INFO"
    json_logs: bool = True
    backend_timeout_seconds: float = 45.0
    backend_failure_threshold: int = 5
    local_heuristics_enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    stage_thresholds: StageThresholds = field(default_factory=StageThresholds)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    plan_limits: PlanLimits = field(default_factory=PlanLimits)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            chat_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
            image_model=os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1"),
            tts_model=os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"),
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=_env_bool("JSON_LOGS", True),
            backend_timeout_seconds=_env_float("BACKEND_TIMEOUT_SECONDS", 45.0),
            backend_failure_threshold=_env_int("BACKEND_FAILURE_THRESHOLD", 5),
            local_heuristics_enabled=_env_bool("LOCAL_HEURISTICS", True),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            reload=_env_bool("RELOAD", False),
            plan_limits=PlanLimits.from_env(),
        )
