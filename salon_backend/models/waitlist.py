"""Waitlist model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from salon_backend.database import Base


class WaitlistEntry(Base):
    """A customer waiting for a fully booked slot to open up."""
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    preferred_date = Column(String, nullable=False)
    preferred_time = Column(String, nullable=False)
    alternative_dates = Column(JSON, default=list)
    alternative_times = Column(JSON, default=list)
    status = Column(String, default='active')
    created_at = Column(DateTime, default=datetime.now)
