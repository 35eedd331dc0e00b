"""Customer model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from salon_backend.database import Base


class Customer(Base):
    """A person who books appointments, keyed by email."""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    first_name = Column(String)
    last_name = Column(String)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String)
    created_at = Column(DateTime, default=datetime.now)
