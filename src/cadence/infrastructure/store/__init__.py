# Card Store adapters
from .memory import InMemoryCardStore
from .sqlite import SqliteCardStore

__all__ = ["InMemoryCardStore", "SqliteCardStore"]
