# shared/logging.py
import structlog
import logging
import sys
from typing import Any, Dict, List, Optional

_SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]

# Configure structured logging
structlog.configure(
    processors=_SHARED_PROCESSORS + [structlog.processors.JSONRenderer(ensure_ascii=False)],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Get logger instance
logger = structlog.get_logger("superboss")

# Configure standard library logging
logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=logging.INFO,
)

def setup_logging(level: str = "INFO", json_logs: bool = True):
    """Setup logging configuration"""
    log_level = getattr(logging, level.upper())
    logging.getLogger().setLevel(log_level)

    if not json_logs:
        # Human-readable output for local development
        structlog.configure(
            processors=_SHARED_PROCESSORS + [structlog.dev.ConsoleRenderer()],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

def log_specialist_consultation(
    agent_id: str,
    execution_time_ms: int,
    success: bool,
    fallback_used: bool = False,
    error_message: Optional[str] = None
):
    """Log one specialist call of a SuperBoss fan-out"""
    extra_data = {
        "agent_id": agent_id,
        "execution_time_ms": execution_time_ms,
        "success": success,
        "fallback_used": fallback_used
    }

    if error_message:
        extra_data["error_message"] = error_message
        logger.warning("Specialist consultation failed", **extra_data)
    else:
        logger.info("Specialist consultation completed", **extra_data)

def log_delegation_decision(
    summary: Optional[str],
    involved_agent_ids: Optional[List[str]],
    source: str
):
    """Log the outcome of a SuperBoss triage"""
    if summary is None:
        logger.info("SuperBoss replied conversationally", source=source)
        return

    logger.info("SuperBoss delegation decided",
               summary=summary,
               involved_agent_ids=involved_agent_ids,
               source=source)

def log_circuit_breaker_event(
    name: str,
    event_type: str,
    state: str,
    failure_count: int,
    additional_context: Optional[Dict[str, Any]] = None
):
    """Log circuit breaker state changes"""
    extra_data = {
        "breaker": name,
        "event_type": event_type,
        "circuit_state": state,
        "failure_count": failure_count
    }

    if additional_context:
        extra_data.update(additional_context)

    logger.info("Circuit breaker event", **extra_data)

def log_usage(
    resource: str,
    scope: str,
    count: int,
    limit: Optional[float],
    exceeded: bool
):
    """Log usage counter changes"""
    logger.info("Usage recorded",
               resource=resource,
               scope=scope,
               count=count,
               limit=limit,
               exceeded=exceeded)
