"""Utility functions and helpers.

- security: Secret redaction for logs and error text
- async_helpers: Exceptions, opt-in retry, single-flight sequencing, delayed calls
- logging: Structured logging with secret sanitization
- metrics: In-process counters and histograms
"""

from delearner.utils.async_helpers import (
    AnalysisFailure,
    AssistantError,
    DelayedCall,
    IngestionError,
    RequestSequencer,
    create_retry,
)
from delearner.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from delearner.utils.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from delearner.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    "AnalysisFailure",
    "AssistantError",
    "Counter",
    "DelayedCall",
    "Histogram",
    "IngestionError",
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    "RedactionError",
    "RequestSequencer",
    "SecretRedactor",
    "SecurityError",
    "Timer",
    "bind_context",
    "clear_context",
    "configure_logging",
    "create_retry",
    "get_logger",
    "get_metrics",
    "unbind_context",
]
