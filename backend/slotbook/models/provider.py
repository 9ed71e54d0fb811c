"""Provider (tenant) model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Integer
from sqlalchemy.orm import relationship
from slotbook.database import Base


class Provider(Base):
    """Provider entity - a salon, coach or practice that takes bookings."""
    
    __tablename__ = "providers"
    
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    
    # Basic Info
    name = Column(String(255), nullable=False)
    
    # Configuration
    timezone = Column(String(50), default="Europe/Paris")
    is_active = Column(Boolean, default=True)
    
    # Booking settings
    requires_confirmation = Column(Boolean, default=False)  # New bookings start as pending
    default_buffer_time = Column(Integer, default=0)  # Minutes after each appointment
    slot_interval = Column(Integer)  # Minutes between candidate starts; null = app default
    min_booking_notice_minutes = Column(Integer, default=0)
    max_booking_advance_days = Column(Integer)  # Null = no limit beyond the scan cap
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    locations = relationship("Location", back_populates="provider")
    members = relationship("Member", back_populates="provider")
    services = relationship("Service", back_populates="provider")
    
    def __repr__(self):
        return f"<Provider {self.name}>"
