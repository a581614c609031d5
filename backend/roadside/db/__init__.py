"""
Database package
"""
from roadside.db.base import Base
from roadside.db.session import engine, SessionLocal, get_db
from roadside.db.models import *

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
]
