"""
Database Package

Database models, connection management, and data persistence layer.
"""
from src.homematch.db.base import Base
from src.homematch.db.session import (
    create_engine_from_url,
    create_session_factory,
    get_db_session,
    create_all_tables,
    drop_all_tables,
)
from src.homematch.db.models import (
    Property,
    Neighborhood,
    PropertyVibes,
    NeighborhoodVibes,
)
from src.homematch.db.repository import (
    BaseRepository,
    PropertyRepository,
    NeighborhoodRepository,
    VibesRepository,
    PropertyVibesRepository,
    NeighborhoodVibesRepository,
)
from src.homematch.db.store import VibesStore

__all__ = [
    # Base
    "Base",
    # Session management
    "create_engine_from_url",
    "create_session_factory",
    "get_db_session",
    "create_all_tables",
    "drop_all_tables",
    # Models
    "Property",
    "Neighborhood",
    "PropertyVibes",
    "NeighborhoodVibes",
    # Repositories
    "BaseRepository",
    "PropertyRepository",
    "NeighborhoodRepository",
    "VibesRepository",
    "PropertyVibesRepository",
    "NeighborhoodVibesRepository",
    # Store
    "VibesStore",
]
