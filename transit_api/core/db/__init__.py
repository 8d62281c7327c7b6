from transit_api.core.db.config import (
    async_engine,
    AsyncSessionLocal,
    Base,
    build_engine,
    dispose_db,
    init_db,
)

__all__ = [
    "async_engine",
    "AsyncSessionLocal",
    "Base",
    "build_engine",
    "dispose_db",
    "init_db",
]
