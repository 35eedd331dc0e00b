"""Service catalog model definitions."""

from sqlalchemy import Boolean, Column, Float, Integer, String
from salon_backend.database import Base


class Service(Base):
    """A bookable salon service and its per-slot capacity settings."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String)
    price = Column(Float, default=0)
    duration = Column(Integer)  # minutes
    is_active = Column(Boolean, default=True)

    # Unset capacity fields fall back to the system defaults in core.config.
    max_bookings_per_slot = Column(Integer)
    default_start_time = Column(String)
    default_end_time = Column(String)
    slot_duration = Column(Integer)
    buffer_time = Column(Integer)
