"""
Admin account model
"""

from sqlalchemy import Column, Integer, String

from wedding_rsvp.core.db import Base

class Admin(Base):
    __tablename__ = "admin"

    id = Column(Integer, primary_key=True, index=True)
    login = Column(String(120), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)  # werkzeug hash or legacy sha256 hex
