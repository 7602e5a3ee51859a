"""
Utility modules for the SOV tracker
"""

from .database import (
    get_db,
    get_db_context,
    init_db,
    close_db,
)
from .locks import (
    BrandLocks,
    LocalBrandLocks,
    RedisBrandLocks,
    get_brand_locks,
)

__all__ = [
    # Database
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    # Locks
    "BrandLocks",
    "LocalBrandLocks",
    "RedisBrandLocks",
    "get_brand_locks",
]
