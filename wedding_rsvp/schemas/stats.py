"""
Administrator statistics schemas
"""

from typing import Dict, List
from pydantic import BaseModel, Field

class CategoryCounter(BaseModel):
    accepted: int = 0
    refused: int = 0
    total: int = 0

class RegimeGroup(BaseModel):
    count: int = 0
    invitations: List[str] = Field(default_factory=list)

class EventStats(BaseModel):
    """Event-wide counters, recomputed from a full snapshot"""
    complete: CategoryCounter = Field(default_factory=CategoryCounter)
    mairie: CategoryCounter = Field(default_factory=CategoryCounter)
    chateau: CategoryCounter = Field(default_factory=CategoryCounter)
    accommodation: int = 0
    regimes: Dict[str, RegimeGroup] = Field(default_factory=dict)
    invitations_total: int = 0
    invitations_confirmed: int = 0
    guests_total: int = 0

class PersonEntry(BaseModel):
    nom: str
    invitation_nom: str

class AccommodationEntry(BaseModel):
    nom: str
    nombre: int
