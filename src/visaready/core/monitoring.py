"""
Logging and monitoring utilities for VisaReady.
Provides structured logging, in-process metrics and operation timing.
"""

import inspect
import json
import logging
import threading
import time
from collections import defaultdict, deque
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Deque, Dict, Optional


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    EXTRA_FIELDS = (
        "request_id",
        "session_id",
        "service",
        "operation",
        "execution_time_ms",
        "success",
        "error_type",
    )

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        entry.update({
            field: getattr(record, field)
            for field in self.EXTRA_FIELDS
            if hasattr(record, field)
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(log_level: str = "INFO", structured: bool = True):
    """
    Configure the root logger with a single console handler.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Emit JSON lines instead of plain text
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        StructuredFormatter() if structured
        else logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def metric_key(name: str, tags: Optional[Dict[str, str]] = None) -> str:
    """Flatten a metric name and its tags, e.g. `operation_count[service=x,success=True]`."""
    if not tags:
        return name
    return name + "[" + ",".join(f"{k}={v}" for k, v in sorted(tags.items())) + "]"


class MetricsCollector:
    """
    Thread-safe counters and bounded timer samples, keyed by name and tags.
    """

    def __init__(self, max_samples: int = 1000):
        self.max_samples = max_samples
        self._counters: Dict[str, float] = defaultdict(float)
        self._timers: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=self.max_samples))
        self._lock = threading.Lock()

    def increment_counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None):
        with self._lock:
            self._counters[metric_key(name, tags)] += value

    def record_timer(self, name: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        with self._lock:
            self._timers[metric_key(name, tags)].append(duration_ms)

    def get_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._counters.get(metric_key(name, tags), 0.0)

    def get_timer_stats(self, name: str, tags: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        """count/min/max/mean/p50/p95 over retained samples; empty if none."""
        with self._lock:
            samples = list(self._timers.get(metric_key(name, tags), ()))
        return summarize(samples)

    def get_all_metrics(self) -> Dict[str, Any]:
        with self._lock:
            counters = dict(self._counters)
            timers = {key: list(samples) for key, samples in self._timers.items()}
        return {
            "counters": counters,
            "timers": {key: summarize(samples) for key, samples in timers.items()},
            "timestamp": datetime.now().isoformat()
        }

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._timers.clear()


def summarize(samples) -> Dict[str, float]:
    if not samples:
        return {}

    ordered = sorted(samples)
    count = len(ordered)
    return {
        "count": count,
        "min": ordered[0],
        "max": ordered[-1],
        "mean": sum(ordered) / count,
        "p50": ordered[count // 2],
        "p95": ordered[min(int(count * 0.95), count - 1)]
    }


def monitor_operation(
    service: str,
    operation: str,
    collector: Optional[MetricsCollector] = None
):
    """
    Decorator recording duration and outcome of a service operation.

    Emits the `operation_duration` timer and the `operation_count` counter
    (tagged with `success`), and logs failures with their exception type.

    Args:
        service: Service name
        operation: Operation name
        collector: Metrics collector (defaults to the module-level one)
    """
    logger = logging.getLogger(f"{service}.{operation}")
    base_tags = {"service": service, "operation": operation}

    def record(started: float, error: Optional[BaseException]):
        metrics = collector or metrics_collector
        duration_ms = (time.perf_counter() - started) * 1000
        success = error is None

        metrics.record_timer("operation_duration", duration_ms, base_tags)
        metrics.increment_counter("operation_count", 1.0, {**base_tags, "success": str(success)})

        extra = {**base_tags, "execution_time_ms": duration_ms, "success": success}
        if success:
            logger.debug("Operation completed", extra=extra)
        else:
            logger.warning("Operation failed", extra={**extra, "error_type": type(error).__name__})

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    record(started, e)
                    raise
                record(started, None)
                return result

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                record(started, e)
                raise
            record(started, None)
            return result

        return sync_wrapper

    return decorator


# Global instances
metrics_collector = MetricsCollector()


def get_monitoring_status() -> Dict[str, Any]:
    """Payload served at /metrics."""
    return {
        "metrics": metrics_collector.get_all_metrics(),
        "timestamp": datetime.now().isoformat()
    }
