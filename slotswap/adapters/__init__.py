"""
Adapters layer - Storage backends and the identity provider.
"""

from .factory import build_store
from .memory_store import MemorySwapStore
from .sqlalchemy_store import SqlAlchemySwapStore
from .user_directory import ConfiguredUserDirectory

__all__ = ["build_store", "MemorySwapStore", "SqlAlchemySwapStore", "ConfiguredUserDirectory"]
