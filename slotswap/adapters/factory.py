"""
Builds the configured store adapter.
"""

import logging
from typing import Union

from ..config import StoreConfig
from .memory_store import MemorySwapStore
from .sqlalchemy_store import SqlAlchemySwapStore

logger = logging.getLogger(__name__)


def build_store(config: StoreConfig) -> Union[MemorySwapStore, SqlAlchemySwapStore]:
    """
    Return the store selected by ``config.backend``.

    The memory backend lives only as long as the process, so each CLI
    invocation starts from an empty store.
    """
    if config.backend == "memory":
        logger.warning(
            "Using the in-memory store: slots and swap requests are lost when this process exits"
        )
        return MemorySwapStore()
    return SqlAlchemySwapStore(url=config.url)
