"""
Kernel Data Models

SQLAlchemy models backing the identity kernel.
"""

from identity_api.kernel.models.base import Base, TimestampMixin
from identity_api.kernel.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
]
