"""SQLAlchemy models for clinicsplit database.

Timestamps are naive local datetimes so they compare directly with report
windows, which start at local midnight.
"""

from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Patient(Base):
    """Patient model."""

    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False, index=True)
    document = Column(String(40), nullable=True)
    phone = Column(String(40), nullable=True)
    notes = Column(String(1000), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    # Relationships
    cases = relationship("Case", back_populates="patient")


class Case(Base):
    """Financial case (treatment) model."""

    __tablename__ = "cases"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    treatment_type = Column(String, default="both", nullable=False)
    description = Column(String(300), nullable=True)

    gross_price = Column(Integer, nullable=False)
    fixed_amount_a = Column(Integer, default=0, nullable=False)
    fixed_amount_b = Column(Integer, default=0, nullable=False)
    # NULL only on rows created before the mode column existed
    distribution_mode = Column(String, nullable=True, index=True)
    frozen_percent_a = Column(Float, nullable=True)
    frozen_percent_b = Column(Float, nullable=True)

    status = Column(String, default="active", nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False, index=True)
    closed_at = Column(DateTime, nullable=True)

    # Relationships
    patient = relationship("Patient", back_populates="cases")
    expenses = relationship("Expense", back_populates="case", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="case", cascade="all, delete-orphan")


class Expense(Base):
    """Expense model."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    case_id = Column(Integer, ForeignKey("cases.id"), nullable=False, index=True)
    kind = Column(String, default="reimbursable", nullable=False, index=True)
    description = Column(String(200), nullable=True)
    amount = Column(Integer, nullable=False)
    date = Column(DateTime, default=datetime.now, nullable=False, index=True)
    settled = Column(Boolean, default=False, nullable=False)

    # Relationships
    case = relationship("Case", back_populates="expenses")


class Payment(Base):
    """Payment model."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    case_id = Column(Integer, ForeignKey("cases.id"), nullable=False, index=True)
    date = Column(DateTime, default=datetime.now, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    method = Column(String, nullable=False, index=True)
    reference = Column(String(80), nullable=True)
    notes = Column(String(300), nullable=True)

    # Relationships
    case = relationship("Case", back_populates="payments")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
