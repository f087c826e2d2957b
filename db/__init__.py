"""Database package for the sequence progression service."""
from db.connection import (
    StoreUnavailableError,
    dispose_engine,
    ensure_store,
    get_db,
    get_engine,
)

__all__ = ["get_engine", "get_db", "ensure_store", "dispose_engine", "StoreUnavailableError"]
