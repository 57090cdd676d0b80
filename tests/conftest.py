import os

# Settings are read at import time; pin a local, file-backed configuration
# before any entity_engine module is imported.
os.environ.setdefault("APP_ENVIRONMENT", "testing")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")
os.environ.setdefault("RECORD_STORE_BACKEND", "file")
os.environ.setdefault("BACKEND_BASE_URL", "http://backend.test")
