"""
Domain enumerations shared by models, schemas and services
"""

import enum
from typing import Optional


class InvitationType(str, enum.Enum):
    full = "full"
    partial_mairie = "partial-mairie"
    partial_chateau = "partial-chateau"

    @classmethod
    def parse(cls, value) -> Optional["InvitationType"]:
        """Return the matching member, or None for anything the store should not hold"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class TriState(str, enum.Enum):
    """Answer to a yes/no question that may not have been answered yet"""

    yes = "yes"
    no = "no"
    pending = "pending"

    @classmethod
    def coerce(cls, value) -> "TriState":
        # The store keeps these as nullable booleans
        if value is None:
            return cls.pending
        if value is True:
            return cls.yes
        if value is False:
            return cls.no
        return cls(value)

    def to_bool(self) -> Optional[bool]:
        if self is TriState.yes:
            return True
        if self is TriState.no:
            return False
        return None
