"""
Admin authentication and provisioning schemas
"""

from datetime import datetime
from pydantic import BaseModel

class LoginRequest(BaseModel):
    login: str
    password: str

class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime

class ProvisionedInvitation(BaseModel):
    """Returned once after provisioning; the url is the only copy of the raw token"""
    id: str
    nom: str
    type: str
    guests: int
    url: str
