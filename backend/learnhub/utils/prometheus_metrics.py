"""
Prometheus Metrics Integration

This module sets up Prometheus metrics for the FastAPI application.
Metrics are exposed at /api/metrics endpoint.
"""

from typing import Callable

from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator, metrics
from prometheus_fastapi_instrumentator.metrics import Info

from learnhub.config import settings

# Custom metrics for business logic
AUTH_LOGINS = Counter(
    "auth_logins_total",
    "Login attempts by account kind",
    ["role", "outcome"],  # outcome: success/failure
)

CHECKOUT_SESSIONS_CREATED = Counter(
    "checkout_sessions_created_total",
    "Checkout sessions created at the payment provider",
)

PAYMENT_WEBHOOK_EVENTS = Counter(
    "payment_webhook_events_total",
    "Verified payment webhook events by type and handling outcome",
    ["type", "outcome"],
)

ENTITLEMENTS_GRANTED = Counter(
    "entitlements_granted_total",
    "Course entitlements newly granted",
    ["source"],  # webhook, purchase
)


def setup_prometheus(app):
    """
    Initialize Prometheus instrumentation for the FastAPI app.

    This sets up:
    - Default HTTP request metrics (latency, count)
    - /api/metrics endpoint for Prometheus scraping
    """
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        excluded_handlers=["/api/metrics", "/api/health"],
    )

    instrumentator.add(
        metrics.latency(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )
    instrumentator.add(
        metrics.requests(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )
    instrumentator.add(app_info())

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/api/metrics", include_in_schema=False)

    return instrumentator


def app_info() -> Callable[[Info], None]:
    """Custom metric to expose application version info."""
    from prometheus_client import Info as PrometheusInfo

    app_info_metric = PrometheusInfo("learnhub_app", "LearnHub application info")
    app_info_metric.info({"version": settings.APP_VERSION, "environment": settings.ENV})

    def instrumentation(info: Info) -> None:
        pass

    return instrumentation
