"""Declarative base shared by all models and the alembic env."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
