"""
Engine Factory
Centralizes the logic for selecting the persistence adapter and clock.
"""

from recall.application.config import EngineConfig
from recall.application.engine import StudyEngine
from recall.domain.ports import SnapshotRepository
from recall.infrastructure.adapters import InMemoryRepository, JsonFileRepository
from recall.infrastructure.clock import SystemClock


def get_repository(config: EngineConfig) -> SnapshotRepository:
    """
    Returns the SnapshotRepository implementation selected by config.
    """
    if config.backend == "memory":
        return InMemoryRepository()
    return JsonFileRepository(config.data_file)


async def open_engine(config: EngineConfig) -> StudyEngine:
    """
    Build an engine for ``config`` and hydrate it from persisted data.
    """
    engine = StudyEngine(get_repository(config), SystemClock(config.timezone), config)
    await engine.open()
    return engine
