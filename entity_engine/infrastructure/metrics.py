from dashboard_shared.constants import MetricNames
from dashboard_shared.metrics import get_counter, get_gauge, get_histogram

SERVICE = "entity_engine"

# Backend HTTP calls
BACKEND_REQUESTS_TOTAL = get_counter(
    MetricNames.BACKEND_REQUESTS_TOTAL,
    "Backend requests by endpoint and outcome.",
    SERVICE,
    labelnames=("endpoint", "outcome"),
)
BACKEND_REQUEST_LATENCY_SECONDS = get_histogram(
    MetricNames.BACKEND_REQUEST_LATENCY_SECONDS,
    "Latency of backend requests.",
    SERVICE,
    labelnames=("endpoint",),
)

# Record cache
RECORD_CACHE_LOOKUPS_TOTAL = get_counter(
    MetricNames.RECORD_CACHE_LOOKUPS_TOTAL,
    "Record cache lookups by result (fresh|stale|miss).",
    SERVICE,
    labelnames=("result",),
)
RECORD_STORE_ERRORS_TOTAL = get_counter(
    MetricNames.RECORD_STORE_ERRORS_TOTAL,
    "Record store load/flush failures.",
    SERVICE,
    labelnames=("operation",),
)
RECORD_FALLBACKS_TOTAL = get_counter(
    MetricNames.RECORD_FALLBACKS_TOTAL,
    "Records served from a fallback (stale|synthetic).",
    SERVICE,
    labelnames=("kind",),
)

# Coalescing
COALESCED_JOINS_TOTAL = get_counter(
    MetricNames.COALESCED_JOINS_TOTAL,
    "Callers that joined an already in-flight request.",
    SERVICE,
)
COALESCER_IN_FLIGHT = get_gauge(
    MetricNames.COALESCER_IN_FLIGHT,
    "Entity ids with a request currently in flight.",
    SERVICE,
)

# Batch degradation path
INDIVIDUAL_RETRIES_TOTAL = get_counter(
    MetricNames.INDIVIDUAL_RETRIES_TOTAL,
    "Individual fetches issued for ids a batch did not resolve.",
    SERVICE,
)
INDIVIDUAL_RETRIES_SKIPPED_TOTAL = get_counter(
    MetricNames.INDIVIDUAL_RETRIES_SKIPPED_TOTAL,
    "Unresolved ids left without retry because too many failed.",
    SERVICE,
)

# Aggregation
AGGREGATE_FETCH_FAILURES_TOTAL = get_counter(
    MetricNames.AGGREGATE_FETCH_FAILURES_TOTAL,
    "Per-entity aggregate fetches that failed and were counted as zero.",
    SERVICE,
)
