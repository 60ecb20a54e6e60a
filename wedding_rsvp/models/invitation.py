"""
Invitation model
"""

import uuid
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from wedding_rsvp.core.db import Base

class Invitation(Base):
    __tablename__ = "invitation"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nom = Column(String(255), nullable=True)
    type = Column(String(32), nullable=True)  # full, partial-mairie, partial-chateau
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    regime = Column(String(255), nullable=True)
    allergie = Column(String(500), nullable=True)
    hebergement = Column(Boolean, nullable=True)
    # Column name kept as spelled in the production schema
    herbergement_nombre = Column(Integer, nullable=True)
    link_music = Column(String(500), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    url = Column(String(500), nullable=True)

    # Relationships
    invites = relationship("Guest", back_populates="invitation", order_by="Guest.id")
