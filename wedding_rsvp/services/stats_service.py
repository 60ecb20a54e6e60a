"""
Event-wide statistics for the administrator dashboard
"""

import enum
from typing import Dict, FrozenSet, List, Sequence, Tuple

from wedding_rsvp.models.enums import InvitationType, TriState
from wedding_rsvp.schemas.invitation import InvitationState
from wedding_rsvp.schemas.stats import AccommodationEntry, EventStats, PersonEntry, RegimeGroup


class StatsCategory(str, enum.Enum):
    complete = "complete"
    mairie = "mairie"
    chateau = "chateau"


class ResponseStatus(str, enum.Enum):
    accepted = "accepted"
    refused = "refused"


# category -> (invitation types counted, guest answer read)
CATEGORY_RULES: Dict[StatsCategory, Tuple[FrozenSet[InvitationType], str]] = {
    StatsCategory.complete: (frozenset({InvitationType.full}), "chateau"),
    StatsCategory.mairie: (
        frozenset({InvitationType.full, InvitationType.partial_mairie}),
        "mairie",
    ),
    StatsCategory.chateau: (
        frozenset({InvitationType.full, InvitationType.partial_chateau}),
        "chateau",
    ),
}

_STATUS_ANSWER = {
    ResponseStatus.accepted: TriState.yes,
    ResponseStatus.refused: TriState.no,
}


class StatsService:
    """Pure folds over a full snapshot of invitations and their guests"""

    @staticmethod
    def aggregate(invitations: Sequence[InvitationState]) -> EventStats:
        stats = EventStats()

        for invitation in invitations:
            stats.invitations_total += 1
            if invitation.confirmed_at is not None:
                stats.invitations_confirmed += 1

            invitation_type = InvitationType.parse(invitation.type)
            for guest in invitation.invites:
                stats.guests_total += 1
                for category, (types, answer_field) in CATEGORY_RULES.items():
                    if invitation_type not in types:
                        continue
                    counter = getattr(stats, category.value)
                    counter.total += 1
                    answer = getattr(guest, answer_field)
                    if answer is TriState.yes:
                        counter.accepted += 1
                    elif answer is TriState.no:
                        counter.refused += 1

            if invitation.hebergement is TriState.yes:
                stats.accommodation += invitation.herbergement_nombre or 0

            if invitation.regime and invitation.regime.strip():
                group = stats.regimes.setdefault(invitation.regime, RegimeGroup())
                group.count += 1
                group.invitations.append(invitation.nom or "")

        return stats

    @staticmethod
    def list_guests(
        invitations: Sequence[InvitationState],
        category: StatsCategory,
        status: ResponseStatus,
    ) -> List[PersonEntry]:
        """Guests whose answer for a category matches the requested status"""
        types, answer_field = CATEGORY_RULES[StatsCategory(category)]
        wanted = _STATUS_ANSWER[ResponseStatus(status)]

        people = []
        for invitation in invitations:
            if InvitationType.parse(invitation.type) not in types:
                continue
            for guest in invitation.invites:
                if getattr(guest, answer_field) is wanted:
                    people.append(PersonEntry(
                        nom=guest.nom or "Invité",
                        invitation_nom=invitation.nom or "Invitation",
                    ))
        return people

    @staticmethod
    def list_accommodations(invitations: Sequence[InvitationState]) -> List[AccommodationEntry]:
        return [
            AccommodationEntry(
                nom=invitation.nom or "Invitation",
                nombre=invitation.herbergement_nombre or 0,
            )
            for invitation in invitations
            if invitation.hebergement is TriState.yes
        ]
