"""Admin user model definitions."""

from sqlalchemy import Column, Integer, String
from salon_backend.database import Base


class AdminUser(Base):
    """An email address allowed to use the capacity administration endpoints."""
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
