"""
Guest model
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from wedding_rsvp.core.db import Base

class Guest(Base):
    __tablename__ = "invites"

    id = Column(Integer, primary_key=True, index=True)
    nom = Column(String(255), nullable=True)
    fk_invitation = Column(String(36), ForeignKey("invitation.id"), nullable=False, index=True)
    mairie = Column(Boolean, nullable=True)
    cocktail = Column(Boolean, nullable=True)
    chateau = Column(Boolean, nullable=True)
    brunch = Column(Boolean, default=False)
    autorisation_ia = Column(Boolean, nullable=True)

    # Relationships
    invitation = relationship("Invitation", back_populates="invites")
