"""
원본 저장소(PostgreSQL) 접근
"""

from .repositories import PostgresStore, PrimaryStore

__all__ = [
    "PrimaryStore",
    "PostgresStore",
]
