"""
SQLAlchemy models.
"""

from sessionauth.models.session import Session
from sessionauth.models.user import Account

__all__ = ["Session", "Account"]
