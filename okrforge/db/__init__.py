"""
Database Package
================

Exports key database components.
"""

from okrforge.db.models import Base, SessionContextRecord
from okrforge.db.connection import init_db, get_session_maker, close_db
