"""Record repositories and their document store backends."""

from .documents import DocumentStore, JsonDocumentStore, PostgresDocumentStore
from .thread import ThreadRepository, apply_thread_info
from .user import UserRepository

__all__ = [
    "DocumentStore",
    "JsonDocumentStore",
    "PostgresDocumentStore",
    "ThreadRepository",
    "UserRepository",
    "apply_thread_info",
]
