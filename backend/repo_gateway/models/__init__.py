"""ORM models package.

Importing this module ensures every model is registered with the
SQLAlchemy ``Base.metadata`` so that Alembic autogenerate can detect
all tables.
"""

from repo_gateway.models.activity import Activity, ActivityAction
from repo_gateway.models.repository import Repository
from repo_gateway.models.user import User

__all__ = [
    "Activity",
    "ActivityAction",
    "Repository",
    "User",
]
