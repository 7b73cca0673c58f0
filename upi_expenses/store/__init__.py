"""
Storage backends

PostgresStore is the persistent store; MemoryStore offers the same
operations in-process.
"""
from .memory import MemoryStore
from .postgres import PostgresStore

__all__ = [
    'MemoryStore',
    'PostgresStore',
]
