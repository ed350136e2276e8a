# backend/streamsite/core/metrics.py

from prometheus_client import Counter, Gauge, Histogram
import logging

logger = logging.getLogger(__name__)

# Status read metrics
STATUS_READS = Counter(
    "streamsite_status_reads_total",
    "Total number of effective status reads",
    ["source"]  # source: cache, platform, declared, default
)

STATUS_READ_DURATION = Histogram(
    "streamsite_status_read_duration_seconds",
    "Time spent resolving the effective status"
)

# Reconciliation metrics
RECONCILE_CORRECTIONS = Counter(
    "streamsite_reconcile_corrections_total",
    "Corrective writes issued by the reconciler",
    ["outcome"]  # outcome: applied, failed, missing
)

EFFECTIVE_STATUS = Gauge(
    "streamsite_effective_status",
    "1 for the status currently shown to viewers, 0 otherwise",
    ["status"]  # live, offline, scheduled, archived
)

# Webhook metrics
WEBHOOK_EVENTS = Counter(
    "streamsite_webhook_events_total",
    "Webhook deliveries received from the video platform",
    ["event_type", "outcome"]  # outcome: applied, unmatched, ignored, duplicate, failed, rejected
)

# Collaborator metrics
COLLABORATOR_ERRORS = Counter(
    "streamsite_collaborator_errors_total",
    "Failed calls to the CMS or the video platform",
    ["collaborator", "kind"]  # collaborator: cms, platform; kind: timeout, transport, status, decode
)

# WebSocket metrics
WEBSOCKET_CONNECTIONS = Gauge(
    "streamsite_websocket_connections",
    "Current number of viewers subscribed to status pushes"
)


def init_metrics():
    """
    Initialize metrics with default values.
    """
    try:
        for status in ("live", "offline", "scheduled", "archived"):
            EFFECTIVE_STATUS.labels(status=status).set(0)
        WEBSOCKET_CONNECTIONS.set(0)
        logger.info("Initialized metrics with default values")
    except Exception as e:
        logger.error(f"Failed to initialize metrics: {e}")


def record_effective_status(status: str):
    """
    Flip the effective status gauge to the given value.
    """
    try:
        for label in ("live", "offline", "scheduled", "archived"):
            EFFECTIVE_STATUS.labels(status=label).set(1 if label == status else 0)
    except Exception as e:
        logger.error(f"Failed to update effective status metric: {e}")


# Initialize metrics on module import
init_metrics()
