"""
Invitation and guest answer schemas
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, StrictInt, field_validator

from wedding_rsvp.models.enums import TriState

class GuestState(BaseModel):
    """One guest's answers as held in memory"""
    id: int
    nom: Optional[str] = None
    fk_invitation: str
    mairie: TriState = TriState.pending
    cocktail: TriState = TriState.pending
    chateau: TriState = TriState.pending
    brunch: bool = False
    autorisation_ia: TriState = TriState.pending

    @field_validator("mairie", "cocktail", "chateau", "autorisation_ia", mode="before")
    @classmethod
    def _coerce_tristate(cls, value):
        return TriState.coerce(value)

    @field_validator("brunch", mode="before")
    @classmethod
    def _brunch_defaults_false(cls, value):
        return bool(value)

    class Config:
        from_attributes = True

class InvitationState(BaseModel):
    """An invitation with its guests, in insertion order"""
    id: str
    nom: Optional[str] = None
    type: Optional[str] = None
    regime: Optional[str] = None
    allergie: Optional[str] = None
    hebergement: TriState = TriState.pending
    herbergement_nombre: Optional[int] = None
    link_music: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    url: Optional[str] = None
    invites: List[GuestState] = []

    @field_validator("hebergement", mode="before")
    @classmethod
    def _coerce_tristate(cls, value):
        return TriState.coerce(value)

    class Config:
        from_attributes = True

class InvitationView(BaseModel):
    """What the guest page needs to render the form"""
    invitation: InvitationState
    required_fields: List[str]
    show_mairie: bool
    show_chateau: bool
    read_only: bool

class GuestAnswers(BaseModel):
    """Answers submitted for one guest; omitted fields keep their stored value"""
    id: int
    mairie: Optional[TriState] = None
    cocktail: Optional[TriState] = None
    chateau: Optional[TriState] = None
    brunch: Optional[bool] = None
    autorisation_ia: Optional[TriState] = None

    @field_validator("mairie", "cocktail", "chateau", "autorisation_ia", mode="before")
    @classmethod
    def _coerce_tristate(cls, value):
        return TriState.coerce(value)

class RSVPSubmission(BaseModel):
    """Guest submission; the token travels in the body, never in logs"""
    token: str = ""
    regime: Optional[str] = None
    allergie: Optional[str] = None
    hebergement: Optional[TriState] = None
    herbergement_nombre: Optional[StrictInt] = None
    link_music: Optional[str] = None
    invites: List[GuestAnswers] = []

    @field_validator("hebergement", mode="before")
    @classmethod
    def _coerce_tristate(cls, value):
        return TriState.coerce(value)

class MissingField(BaseModel):
    """One reason a response cannot be accepted yet"""
    field: str
    message: str
    guest_id: Optional[int] = None
    guest_nom: Optional[str] = None

class ValidationResult(BaseModel):
    ok: bool
    missing: List[MissingField] = Field(default_factory=list)
