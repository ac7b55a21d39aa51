"""
Card Store Factory
Centralizes the logic for selecting the appropriate CardStore adapter.
"""

import logging

from cadence.application.config import AppConfig
from cadence.domain.ports import CardStore
from cadence.infrastructure.store.memory import InMemoryCardStore
from cadence.infrastructure.store.sqlite import SqliteCardStore

logger = logging.getLogger(__name__)


def get_card_store(config: AppConfig) -> CardStore:
    """
    Returns the CardStore implementation selected by config.backend.
    """
    if config.backend == "memory":
        logger.debug("Backend: in-memory")
        return InMemoryCardStore()

    logger.debug(f"Backend: SQLite at {config.database}")
    return SqliteCardStore(config.database)
