"""User model.

Identity is owned by the external auth provider; this table only mirrors the
ids that own sessions and attempts.
"""

import uuid
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, String, Uuid

from examprep.common.clock import utcnow
from examprep.db.base import Base


class UserRole(str, Enum):
    """User role enum."""

    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class User(Base):
    """User model."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    role = Column(String(32), nullable=False, default=UserRole.STUDENT.value)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
