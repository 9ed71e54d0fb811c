"""Catalog service model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship
from slotbook.database import Base


class Service(Base):
    """A bookable service with a fixed duration."""
    
    __tablename__ = "services"
    
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_id = Column(String(64), ForeignKey("providers.id"), nullable=False, index=True)
    
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # Minutes
    buffer_time = Column(Integer)  # Minutes; null = provider default
    is_active = Column(Boolean, default=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    provider = relationship("Provider", back_populates="services")
    
    def __repr__(self):
        return f"<Service {self.name} {self.duration}min>"
