"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from salon_backend.database import Base

APPOINTMENT_STATUSES = ('pending', 'confirmed', 'completed', 'cancelled')
CANCELLED_STATUS = 'cancelled'


class Appointment(Base):
    """Represents a booked appointment at a wall-clock date and time."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"))
    appointment_date = Column(String, nullable=False)  # YYYY-MM-DD
    appointment_time = Column(String, nullable=False)  # HH:MM
    status = Column(String, default='pending', nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.now)

    services = relationship("AppointmentService", back_populates="appointment")


class AppointmentService(Base):
    """Links an appointment to one service; quantity consumes capacity units."""
    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    price_at_booking = Column(Float, default=0)

    appointment = relationship("Appointment", back_populates="services")
