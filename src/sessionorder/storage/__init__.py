"""
SessionOrder Storage

The persistence boundary: a Repository protocol and an in-memory
implementation with secondary indexes.
"""
from .repository import INDEXES, InMemoryRepository, Repository

__all__ = [
    "INDEXES",
    "InMemoryRepository",
    "Repository",
]
