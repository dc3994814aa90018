"""
Database modules
"""

from .session import Database
from .models import Base, PeerKey

__all__ = [
    # Session
    "Database",
    # Models
    "Base",
    "PeerKey",
]
