"""
Logging configuration module for the capability registry.

This module provides centralized logging configuration and performance metrics
collection for the registry, the dispatcher and the server adapter.
"""

import json
import logging
import logging.handlers
import os
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

ROOT_LOGGER_NAME = 'capability_registry'


@dataclass
class PerformanceMetrics:
    """Performance metrics collection"""
    operation_name: str
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[int] = None
    success: bool = True
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def finish(self, success: bool = True, error_message: Optional[str] = None, **metadata):
        """Mark the operation as finished and calculate duration"""
        self.end_time = time.time()
        self.duration_ms = int((self.end_time - self.start_time) * 1000)
        self.success = success
        self.error_message = error_message
        self.metadata.update(metadata)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging"""
        return {
            'operation': self.operation_name,
            'duration_ms': self.duration_ms,
            'success': self.success,
            'error_message': self.error_message,
            'metadata': self.metadata,
            'timestamp': datetime.fromtimestamp(self.start_time).isoformat()
        }


class MetricsCollector:
    """Centralized metrics collection"""

    def __init__(self, max_entries: int = 1000):
        self._metrics: List[PerformanceMetrics] = []
        self._max_entries = max_entries
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.metrics")

    def start_operation(self, operation_name: str, **metadata) -> PerformanceMetrics:
        """Start tracking an operation"""
        metrics = PerformanceMetrics(
            operation_name=operation_name,
            start_time=time.time(),
            metadata=metadata
        )
        self._metrics.append(metrics)
        # Keep the newest entries only
        if len(self._metrics) > self._max_entries:
            del self._metrics[:len(self._metrics) - self._max_entries]

        self._logger.debug(
            f"Started operation: {operation_name}",
            extra={'metrics_metadata': metadata}
        )

        return metrics

    def get_metrics(self, operation_name: Optional[str] = None) -> List[PerformanceMetrics]:
        """Recorded metrics, oldest first, optionally only those of one operation"""
        if operation_name:
            return [m for m in self._metrics if m.operation_name == operation_name]
        return list(self._metrics)

    def clear_metrics(self):
        self._metrics.clear()

    def summarize(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation call counts, failures and mean duration of finished calls"""
        summary: Dict[str, Dict[str, Any]] = {}
        for metric in self._metrics:
            stats = summary.setdefault(
                metric.operation_name,
                {'count': 0, 'errors': 0, 'finished': 0, 'total_ms': 0}
            )
            stats['count'] += 1
            if not metric.success:
                stats['errors'] += 1
            if metric.duration_ms is not None:
                stats['finished'] += 1
                stats['total_ms'] += metric.duration_ms

        for stats in summary.values():
            finished = stats.pop('finished')
            total_ms = stats.pop('total_ms')
            stats['avg_duration_ms'] = total_ms / finished if finished else 0.0
        return summary

    def log_metrics_summary(self):
        """Log one line per operation with its call count, errors and mean duration"""
        for operation, stats in self.summarize().items():
            self._logger.info(
                f"Dispatch metrics - {operation}: "
                f"count={stats['count']}, "
                f"errors={stats['errors']}, "
                f"avg_duration_ms={stats['avg_duration_ms']:.1f}",
                extra={'metrics_metadata': stats}
            )


# Global metrics collector instance
_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance"""
    return _metrics_collector


@contextmanager
def track_operation(operation_name: str, **metadata):
    """Context manager for tracking operation performance"""
    metrics = _metrics_collector.start_operation(operation_name, **metadata)
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.operations")

    try:
        logger.debug(f"Starting operation: {operation_name}", extra={'operation_metadata': metadata})
        yield metrics
        if metrics.end_time is None:
            metrics.finish(success=True)
        logger.debug(
            f"Completed operation: {operation_name} in {metrics.duration_ms}ms",
            extra={'operation_metrics': metrics.to_dict()}
        )
    except Exception as e:
        metrics.finish(success=False, error_message=str(e))
        logger.debug(
            f"Failed operation: {operation_name} after {metrics.duration_ms}ms - {str(e)}",
            extra={'operation_metrics': metrics.to_dict()}
        )
        raise


class StructuredFormatter(logging.Formatter):
    """Custom formatter that adds structured data to log records"""

    STRUCTURED_ATTRIBUTES = (
        'operation_metadata',
        'operation_metrics',
        'metrics_metadata',
        'capability_kind',
        'identifier',
        'session_id',
    )

    def format(self, record):
        if not hasattr(record, 'timestamp'):
            record.timestamp = datetime.fromtimestamp(record.created).isoformat()

        # Component name is the last segment below one of our packages
        parts = record.name.split('.')
        if len(parts) >= 2 and parts[0] in (ROOT_LOGGER_NAME, 'starter_server'):
            record.component = parts[-1]
        else:
            record.component = parts[0]

        formatted = super().format(record)

        structured_data = {}
        for attr in self.STRUCTURED_ATTRIBUTES:
            if hasattr(record, attr):
                structured_data[attr] = getattr(record, attr)

        if structured_data:
            formatted += f" | {json.dumps(structured_data, separators=(',', ':'), default=str)}"

        return formatted


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    enable_console: bool = True,
    structured_format: bool = True
) -> logging.Logger:
    """
    Setup centralized logging configuration for the registry and the server.

    Console output always goes to stderr: stdout carries protocol messages
    when the server runs on the stdio transport.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). If None, uses MCP_LOG_LEVEL
        log_file: Optional log file path. If None, uses environment variable MCP_LOG_FILE
        max_file_size: Maximum size of log file before rotation (bytes)
        backup_count: Number of backup files to keep
        enable_console: Whether to enable console logging
        structured_format: Whether to use structured logging format

    Returns:
        logging.Logger: Configured root logger for the registry
    """
    level = (level or os.getenv('MCP_LOG_LEVEL', 'INFO')).upper()
    log_file = log_file or os.getenv('MCP_LOG_FILE')
    max_file_size = int(os.getenv('MCP_LOG_MAX_SIZE', str(max_file_size)))
    backup_count = int(os.getenv('MCP_LOG_BACKUP_COUNT', str(backup_count)))
    enable_console = os.getenv('MCP_LOG_CONSOLE', str(enable_console)).lower() in ('true', '1', 'yes')
    structured_format = os.getenv('MCP_LOG_STRUCTURED', str(structured_format)).lower() in ('true', '1', 'yes')

    if structured_format:
        formatter = StructuredFormatter(
            fmt='%(timestamp)s | %(levelname)-8s | %(component)-12s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers: List[logging.Handler] = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(getattr(logging, level, logging.INFO))
        handlers.append(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)  # File gets all messages
        handlers.append(file_handler)

    # The core and the server package share one handler set
    for name in (ROOT_LOGGER_NAME, 'starter_server'):
        package_logger = logging.getLogger(name)
        package_logger.setLevel(getattr(logging, level, logging.INFO))
        package_logger.handlers.clear()
        for handler in handlers:
            package_logger.addHandler(handler)
        # Prevent propagation to root logger to avoid duplicate messages
        package_logger.propagate = False

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if log_file:
        logger.info(f"Logging configured - Level: {level}, File: {log_file}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific component.

    Args:
        name: Component name (e.g., 'store', 'dispatcher')

    Returns:
        logging.Logger: Logger instance for the component
    """
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')


def log_registry_event(
    logger: logging.Logger,
    event: str,
    kind: str,
    identifier: str,
    level: int = logging.INFO,
    **kwargs
):
    """
    Log a registry-related event with structured data.

    Args:
        logger: Logger instance to use
        event: Event description
        kind: Capability kind (tools, resources, prompts)
        identifier: Capability name, URI or URI template
        level: Log level
        **kwargs: Additional metadata
    """
    logger.log(
        level,
        f"Registry event: {event}",
        extra={
            'capability_kind': kind,
            'identifier': identifier,
            'event_type': 'registry',
            **kwargs
        }
    )
