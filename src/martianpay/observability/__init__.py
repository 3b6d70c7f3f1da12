from martianpay.observability.log import LOG_LEVELS, configure_logging
from martianpay.observability.metrics import (
    WEBHOOK_EVENTS,
    WEBHOOK_PROCESSING,
    WEBHOOK_REQUESTS,
    generate_metrics,
    get_content_type,
)

__all__ = [
    # Logging
    "LOG_LEVELS",
    "configure_logging",
    # Metrics
    "WEBHOOK_REQUESTS",
    "WEBHOOK_EVENTS",
    "WEBHOOK_PROCESSING",
    "generate_metrics",
    "get_content_type",
]
