class StorageKeys:
    """Centralised persistent storage key definitions"""

    # Whole record cache, one serialized blob
    RECORD_CACHE = "entity_engine:record_cache"

    # Namespaced variant for deployments sharing one Redis
    RECORD_CACHE_NAMESPACED = "entity_engine:{namespace}:record_cache"

    @classmethod
    def record_cache_key(cls, namespace: str | None = None) -> str:
        """Generate the record cache key, optionally namespaced."""
        if not namespace:
            return cls.RECORD_CACHE
        return cls.RECORD_CACHE_NAMESPACED.format(namespace=namespace)
