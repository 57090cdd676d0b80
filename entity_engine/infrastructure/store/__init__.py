from .backends import BlobBackend, FileBlobBackend, RedisBlobBackend
from .record_store import PersistentRecordStore

__all__ = [
    "BlobBackend",
    "FileBlobBackend",
    "PersistentRecordStore",
    "RedisBlobBackend",
]
