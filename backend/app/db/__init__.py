# backend/app/db/__init__.py

"""
Case and user persistence: engine, session factory, ORM models and API schemas.
"""

from app.db.database import Base, engine, SessionLocal, get_db, init_db
from app.db.models import Case, CaseNote, User
from app.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'Case',
    'CaseNote',
    'User',
    'models',
    'schemas',
]
