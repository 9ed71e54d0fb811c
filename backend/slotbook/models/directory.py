"""Location and member models."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from slotbook.database import Base


class Location(Base):
    """A place where a provider receives clients."""
    
    __tablename__ = "locations"
    
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_id = Column(String(64), ForeignKey("providers.id"), nullable=False, index=True)
    
    name = Column(String(255), nullable=False)
    address = Column(String(500))
    is_active = Column(Boolean, default=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    provider = relationship("Provider", back_populates="locations")
    members = relationship("Member", back_populates="location")
    
    def __repr__(self):
        return f"<Location {self.name}>"


class Member(Base):
    """Member entity - a bookable staff resource tied to one location."""
    
    __tablename__ = "members"
    
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_id = Column(String(64), ForeignKey("providers.id"), nullable=False, index=True)
    location_id = Column(String(64), ForeignKey("locations.id"), nullable=False)
    
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    is_default = Column(Boolean, default=False)  # Preselected in the booking flow
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    provider = relationship("Provider", back_populates="members")
    location = relationship("Location", back_populates="members")
    
    def __repr__(self):
        return f"<Member {self.name}>"
