# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Observability module for the job store.

Classes:
- ObservabilityContextManager: Singleton for context management
- StructuredLogger: Logger with context injection
- LoggerFactory: Factory for creating loggers
- JSONFormatter/ConsoleFormatter: Log formatters

Events:
- StoreEvent: job and trigger mutation events

Usage:
    from src.jobstore.observability import initialize_logging, get_logger

    # Initialize once at startup
    initialize_logging(level=logging.INFO, log_format="json")

    logger = get_logger(__name__)
"""

from src.jobstore.observability.context import (
    ContextData,
    ObservabilityContextManager,
    ObservabilityScope,
    clear_context,
    get_correlation_id,
    get_instance_id,
    set_correlation_id,
)
from src.jobstore.observability.events import (
    LogLevel,
    StoreEvent,
    create_store_event,
)
from src.jobstore.observability.logger import (
    ConsoleFormatter,
    JSONFormatter,
    LogFormatter,
    LoggerFactory,
    StructuredLogger,
    get_logger,
    initialize_logging,
)

__all__ = [
    "ContextData",
    "ObservabilityContextManager",
    "ObservabilityScope",
    "clear_context",
    "get_correlation_id",
    "get_instance_id",
    "set_correlation_id",
    "LogLevel",
    "StoreEvent",
    "create_store_event",
    "LogFormatter",
    "JSONFormatter",
    "ConsoleFormatter",
    "StructuredLogger",
    "LoggerFactory",
    "get_logger",
    "initialize_logging",
]
