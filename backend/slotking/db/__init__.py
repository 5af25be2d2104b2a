from slotking.db.base import Base
from slotking.db.session import get_db, engine, SessionLocal
from slotking.db.tables import ALL_TABLE_NAMES, RESET_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "RESET_TABLE_NAMES"]
