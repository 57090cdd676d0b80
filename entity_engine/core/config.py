from pydantic import Field, field_validator

from dashboard_shared.config import BaseServiceConfig
from dashboard_shared.constants import StorageKeys


class Settings(BaseServiceConfig):
    # Backend HTTP surface (base URL and timeout come from BaseBackendConfig)
    backend_resolve_path: str = "/resolve"
    backend_batch_path: str = "/resolve/batch"
    backend_aggregate_path: str = "/aggregate"
    backend_entities_path: str = "/entities"

    # Record cache
    record_cache_ttl_seconds: int = 7 * 24 * 60 * 60  # 7 days
    record_store_backend: str = "redis"  # redis|file
    record_store_key: str = StorageKeys.RECORD_CACHE
    record_store_file_path: str = "data/record_cache.json"

    # Redis
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0

    # Request shaping
    resolve_batch_size: int = Field(default=100, ge=1, le=100)  # backend ceiling
    individual_retry_limit: int = Field(default=10, ge=0)
    aggregate_concurrency: int = Field(default=5, ge=1)

    # Identifier listing (the only hard-failing call)
    listing_retries: int = Field(default=3, ge=1)
    listing_retry_base_delay: float = 0.5
    listing_retry_max_delay: float = 4.0

    # Rankings
    leaderboard_default_limit: int = Field(default=100, ge=1)

    # Tracing (spans are no-ops unless enabled)
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"

    otel_service_name: str = "entity-engine"

    @field_validator("record_store_backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("redis", "file"):
            raise ValueError("record_store_backend must be 'redis' or 'file'")
        return v

    @property
    def record_cache_ttl_ms(self) -> int:
        return self.record_cache_ttl_seconds * 1000


settings = Settings()
