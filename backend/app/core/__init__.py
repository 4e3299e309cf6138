"""Core application components."""

from app.core.config import settings
from app.core.database import Base, get_db, engine

__all__ = ["settings", "Base", "get_db", "engine"]
