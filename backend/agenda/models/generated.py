from sqlalchemy import (
    JSON,
    Column,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Users(Base):
    __tablename__ = 'users'

    first_name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    last_name = Column(Text)
    email = Column(Text)
    phone = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    professional = relationship('Professionals', uselist=False, back_populates='user')


class Professionals(Base):
    __tablename__ = 'professionals'

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    license_number = Column(Text, nullable=False, unique=True)
    professional_id = Column(Integer, primary_key=True)
    specialization = Column(Text)
    status = Column(
        Enum('active', 'inactive', 'suspended', 'pending_approval'),
        nullable=False,
        server_default=text("'pending_approval'"),
    )
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    user = relationship('Users', back_populates='professional')
    schedules = relationship('Schedules', back_populates='professional')
    availability_exceptions = relationship('AvailabilityExceptions', back_populates='professional')
    time_slots = relationship('TimeSlots', back_populates='professional')
    appointments = relationship('Appointments', back_populates='professional')


class Schedules(Base):
    __tablename__ = 'schedules'
    __table_args__ = (
        Index('ix_schedules_professional_day', 'professional_id', 'day_of_week'),
    )

    professional_id = Column(ForeignKey('professionals.professional_id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(
        Enum('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday'),
        nullable=False,
    )
    start_time = Column(Text, nullable=False)  # HH:MM
    end_time = Column(Text, nullable=False)  # HH:MM
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    schedule_id = Column(Integer, primary_key=True)
    valid_from = Column(Text)  # YYYY-MM-DD, NULL = unbounded
    valid_until = Column(Text)  # YYYY-MM-DD, NULL = unbounded
    has_break = Column(Integer, nullable=False, server_default=text('0'))
    break_start_time = Column(Text)
    break_end_time = Column(Text)
    break_description = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    professional = relationship('Professionals', back_populates='schedules')


class AvailabilityExceptions(Base):
    __tablename__ = 'availability_exceptions'
    __table_args__ = (
        Index('ix_exceptions_professional_date', 'professional_id', 'exception_date'),
    )

    professional_id = Column(ForeignKey('professionals.professional_id', ondelete='CASCADE'), nullable=False)
    exception_date = Column(Text, nullable=False)  # YYYY-MM-DD
    type = Column(Enum('unavailable', 'available', 'break', 'vacation'), nullable=False)
    exception_id = Column(Integer, primary_key=True)
    start_time = Column(Text)  # NULL together with end_time = full day
    end_time = Column(Text)
    reason = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    professional = relationship('Professionals', back_populates='availability_exceptions')


class TimeSlots(Base):
    __tablename__ = 'time_slots'
    __table_args__ = (
        # Backstop for the read-then-write overlap check
        UniqueConstraint('professional_id', 'slot_date', 'start_time'),
    )

    professional_id = Column(ForeignKey('professionals.professional_id', ondelete='CASCADE'), nullable=False)
    slot_date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(
        Enum('available', 'booked', 'blocked', 'cancelled'),
        nullable=False,
        server_default=text("'available'"),
    )
    slot_id = Column(Integer, primary_key=True)
    price_override = Column(Float)
    max_bookings = Column(Integer, nullable=False, server_default=text('1'))
    current_bookings = Column(Integer, nullable=False, server_default=text('0'))
    metadata_ = Column('metadata', JSON)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    professional = relationship('Professionals', back_populates='time_slots')


class Appointments(Base):
    """Read-only here: owned by the booking module."""
    __tablename__ = 'appointments'

    professional_id = Column(ForeignKey('professionals.professional_id', ondelete='CASCADE'), nullable=False)
    scheduled_at = Column(Text, nullable=False)  # ISO datetime
    duration_minutes = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'scheduled'"))
    appointment_id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='SET NULL'))

    professional = relationship('Professionals', back_populates='appointments')
