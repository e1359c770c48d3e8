"""Repository modules - Data access layer"""
from typing import Optional

from .store import PafStore, StoreSession
from .memory_store import InMemoryPafStore
from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


def get_store(backend: Optional[str] = None) -> PafStore:
    """Return the store for the configured persistence backend"""
    backend = (backend or settings.persistence_backend).lower()
    if backend == "memory":
        logger.info("Using in-memory PAF store")
        return InMemoryPafStore()
    if backend == "mongo":
        from .mongo_store import MongoPafStore

        logger.info("Using MongoDB PAF store")
        return MongoPafStore()
    raise ValueError(f"Unknown persistence backend: {backend}")


__all__ = [
    "PafStore",
    "StoreSession",
    "InMemoryPafStore",
    "get_store",
]
