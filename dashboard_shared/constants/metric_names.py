class MetricNames:
    """Centralised Prometheus metric name definitions"""

    BACKEND_REQUESTS_TOTAL = "backend_requests_total"
    BACKEND_REQUEST_LATENCY_SECONDS = "backend_request_latency_seconds"

    RECORD_CACHE_LOOKUPS_TOTAL = "record_cache_lookups_total"
    RECORD_STORE_ERRORS_TOTAL = "record_store_errors_total"
    RECORD_FALLBACKS_TOTAL = "record_fallbacks_total"

    COALESCED_JOINS_TOTAL = "coalesced_joins_total"
    COALESCER_IN_FLIGHT = "coalescer_in_flight"

    INDIVIDUAL_RETRIES_TOTAL = "individual_retries_total"
    INDIVIDUAL_RETRIES_SKIPPED_TOTAL = "individual_retries_skipped_total"

    AGGREGATE_FETCH_FAILURES_TOTAL = "aggregate_fetch_failures_total"

    @classmethod
    def all_names(cls) -> list[str]:
        return [
            value
            for key, value in vars(cls).items()
            if key.isupper() and isinstance(value, str)
        ]
