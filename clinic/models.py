# clinic/models.py
import uuid

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, JSON, Numeric, Index
)
from sqlalchemy.sql import func
from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Patient(Base):
    """Registered patient"""
    __tablename__ = "patients"
    __table_args__ = (
        Index('idx_patients_name', 'name'),
        Index('idx_patients_mobile', 'mobile'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    mobile = Column(String(20), nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(String(10), nullable=True)
    blood_group = Column(String(5), nullable=True)
    address = Column(Text, nullable=True)
    allergies = Column(Text, nullable=True)
    chronic_conditions = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Visit(Base):
    """One consultation; append-only per patient"""
    __tablename__ = "visits"
    __table_args__ = (
        Index('idx_visits_patient_date', 'patient_id', 'date'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    # No ON DELETE CASCADE: dependent visits are removed by the repository
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    symptoms = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    prescription = Column(JSON, nullable=True)  # list of prescription items
    notes = Column(Text, nullable=True)
    fees = Column(Numeric(10, 2), nullable=False, default=0)
    next_follow_up = Column(String(10), nullable=True)


class Appointment(Base):
    """Booked or walk-in appointment; patient_id is advisory only"""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_date_time', 'date', 'time'),
        Index('idx_appointments_status_date', 'status', 'date'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_name = Column(String(255), nullable=False)
    patient_id = Column(String(36), nullable=True)
    mobile = Column(String(20), nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    time = Column(String(5), nullable=False)  # HH:MM
    status = Column(String(20), nullable=False, default="Pending")
    type = Column(String(20), nullable=False, default="Walk-in")
    notes = Column(Text, nullable=True)


class InventoryItem(Base):
    """Medicine stock line"""
    __tablename__ = "inventory"
    __table_args__ = (
        Index('idx_inventory_name', 'name'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    potency = Column(String(20), nullable=True)
    type = Column(String(30), nullable=False, default="Other")
    quantity = Column(Integer, nullable=False, default=0)
    min_level = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Expense(Base):
    """Clinic expense; append/delete only"""
    __tablename__ = "expenses"
    __table_args__ = (
        Index('idx_expenses_date', 'date'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    category = Column(String(50), nullable=True)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    notes = Column(Text, nullable=True)
