from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

WEBHOOK_REQUESTS = Counter(
    "martianpay_webhook_requests_total",
    "Total webhook requests",
    ["outcome"],  # outcome: success or a VerificationStatus value
)

WEBHOOK_EVENTS = Counter(
    "martianpay_webhook_events_total",
    "Verified webhook events by dispatch route",
    ["prefix"],  # prefix: matched route, or "unhandled"
)

WEBHOOK_PROCESSING = Histogram(
    "martianpay_webhook_processing_seconds",
    "Time spent verifying, decoding and dispatching a webhook",
    buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
