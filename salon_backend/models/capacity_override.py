"""Capacity override model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from salon_backend.database import Base


class CapacityOverride(Base):
    """Replaces a service's per-slot capacity for one exact date and time."""
    __tablename__ = "capacity_overrides"
    __table_args__ = (
        UniqueConstraint('service_id', 'override_date', 'override_time', name='uq_capacity_override_slot'),
    )

    id = Column(Integer, primary_key=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    override_date = Column(String, nullable=False)
    override_time = Column(String, nullable=False)
    max_bookings = Column(Integer, nullable=False)
    reason = Column(String)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
