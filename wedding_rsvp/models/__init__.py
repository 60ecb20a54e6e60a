"""
Database models package
"""

from .enums import InvitationType, TriState
from .invitation import Invitation
from .guest import Guest
from .admin import Admin

__all__ = ["Invitation", "Guest", "Admin", "InvitationType", "TriState"]
