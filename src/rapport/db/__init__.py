"""Database subsystem for Rapport.

Public API::

    from rapport.db import init_database, UnitOfWork
"""

from rapport.db.init import init_database
from rapport.db.unit_of_work import UnitOfWork

__all__ = [
    "UnitOfWork",
    "init_database",
]
