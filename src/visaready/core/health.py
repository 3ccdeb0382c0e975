"""
Health checks for the VisaReady API.

Checks are plain callables (sync or async) returning True when healthy. The
checker runs them concurrently with a per-check timeout; a failing critical
check makes the service unhealthy, a failing non-critical one only degrades it.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict

import psutil

from .interfaces import SessionStore

logger = logging.getLogger(__name__)

MEMORY_THRESHOLD_PERCENT = 90.0


class HealthStatus(Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheck:
    """A registered check."""
    name: str
    check_function: Callable
    timeout_seconds: float = 5.0
    critical: bool = True
    description: str = ""


@dataclass
class HealthResult:
    """Outcome of one check run."""
    name: str
    status: HealthStatus
    message: str
    duration_ms: float
    critical: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "critical": self.critical
        }


class HealthChecker:
    """
    Registry of health checks with an aggregated status.
    """

    def __init__(self):
        self.checks: Dict[str, HealthCheck] = {}

    def register_check(
        self,
        name: str,
        check_function: Callable,
        timeout_seconds: float = 5.0,
        critical: bool = True,
        description: str = ""
    ):
        """
        Register a health check, replacing any check with the same name.

        Args:
            name: Check name as reported by /health/detailed
            check_function: Sync or async callable returning True if healthy
            timeout_seconds: Time allowed before the check counts as failed
            critical: Whether a failure makes the whole service unhealthy
            description: Human-readable description
        """
        self.checks[name] = HealthCheck(name, check_function, timeout_seconds, critical, description)
        logger.info(f"Registered health check '{name}' (critical: {critical})")

    async def run_check(self, name: str) -> HealthResult:
        check = self.checks.get(name)
        if check is None:
            return HealthResult(name, HealthStatus.UNKNOWN, f"Health check '{name}' not found", 0.0, False)

        if inspect.iscoroutinefunction(check.check_function):
            pending = check.check_function()
        else:
            # Sync checks may block (psutil), keep them off the event loop
            pending = asyncio.to_thread(check.check_function)

        start_time = time.perf_counter()
        try:
            healthy = bool(await asyncio.wait_for(pending, timeout=check.timeout_seconds))
            status = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
            message = "Check passed" if healthy else "Check failed"
        except asyncio.TimeoutError:
            status = HealthStatus.UNHEALTHY
            message = f"Check timed out after {check.timeout_seconds}s"
        except Exception as e:
            logger.warning(f"Health check '{name}' raised: {str(e)}")
            status = HealthStatus.UNHEALTHY
            message = f"Check failed with error: {str(e)}"

        return HealthResult(
            name=name,
            status=status,
            message=message,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            critical=check.critical
        )

    async def get_overall_health(self) -> Dict[str, Any]:
        """
        Run every check and summarize.

        Returns:
            Dict with overall `status`, a `message` and per-check `checks`
        """
        names = list(self.checks)
        results = await asyncio.gather(*(self.run_check(name) for name in names))

        if not results:
            overall, message = HealthStatus.UNKNOWN, "No health checks configured"
        else:
            failed_critical = sum(1 for r in results if r.critical and r.status != HealthStatus.HEALTHY)
            failed_other = sum(1 for r in results if not r.critical and r.status != HealthStatus.HEALTHY)

            if failed_critical:
                overall, message = HealthStatus.UNHEALTHY, f"{failed_critical} critical check(s) unhealthy"
            elif failed_other:
                overall, message = HealthStatus.DEGRADED, f"{failed_other} non-critical check(s) unhealthy"
            else:
                overall, message = HealthStatus.HEALTHY, "All checks healthy"

        return {
            "status": overall.value,
            "message": message,
            "timestamp": datetime.now().isoformat(),
            "checks": {result.name: result.to_dict() for result in results}
        }


def memory_health_check() -> bool:
    return psutil.virtual_memory().percent < MEMORY_THRESHOLD_PERCENT


def setup_default_health_checks(checker: HealthChecker, catalog, store: SessionStore) -> HealthChecker:
    """Register the catalog, session store and memory checks."""

    async def session_store_check() -> bool:
        return await store.session_count() >= 0

    checker.register_check(
        "catalog",
        lambda: len(catalog) > 0,
        timeout_seconds=1.0,
        description="Requirement catalog loaded"
    )
    checker.register_check(
        "session_store",
        session_store_check,
        description="Session store reachable"
    )
    checker.register_check(
        "memory",
        memory_health_check,
        critical=False,
        description=f"System memory usage below {MEMORY_THRESHOLD_PERCENT:.0f}%"
    )
    return checker
