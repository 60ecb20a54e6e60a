"""
Pydantic schemas package
"""

from .common import *
from .invitation import *
from .stats import *
from .admin import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "GuestState",
    "InvitationState",
    "InvitationView",
    "GuestAnswers",
    "RSVPSubmission",
    "MissingField",
    "ValidationResult",
    "CategoryCounter",
    "RegimeGroup",
    "EventStats",
    "PersonEntry",
    "AccommodationEntry",
    "LoginRequest",
    "SessionResponse",
    "ProvisionedInvitation",
]
