"""
Response completeness rules.

Which questions an invitation must answer depends only on its type. The
functions here are pure: they never touch the store and keep no state
between calls, so the guest form can re-run them before every submission
and the submission endpoint can run them again on the merged answers.
"""

import enum
from typing import Dict, FrozenSet, List, Sequence

from wedding_rsvp.models.enums import InvitationType, TriState
from wedding_rsvp.schemas.invitation import GuestState, InvitationState, MissingField, ValidationResult


class GuestField(str, enum.Enum):
    mairie = "mairie"
    cocktail = "cocktail"
    chateau = "chateau"
    brunch = "brunch"
    autorisation_ia = "autorisation_ia"


class UnknownInvitationType(ValueError):
    pass


# brunch is a plain boolean: required by the table but never "missing"
TRI_STATE_FIELDS = (
    GuestField.mairie,
    GuestField.cocktail,
    GuestField.chateau,
    GuestField.autorisation_ia,
)

REQUIRED_FIELDS: Dict[InvitationType, FrozenSet[GuestField]] = {
    InvitationType.full: frozenset({
        GuestField.mairie,
        GuestField.cocktail,
        GuestField.chateau,
        GuestField.brunch,
        GuestField.autorisation_ia,
    }),
    InvitationType.partial_mairie: frozenset({
        GuestField.mairie,
        GuestField.cocktail,
        GuestField.autorisation_ia,
    }),
    InvitationType.partial_chateau: frozenset({
        GuestField.chateau,
        GuestField.brunch,
        GuestField.autorisation_ia,
    }),
}

_GUEST_MESSAGES = {
    GuestField.mairie: "Veuillez confirmer votre présence à la mairie pour {nom}",
    GuestField.cocktail: "Veuillez confirmer votre présence au cocktail pour {nom}",
    GuestField.chateau: "Veuillez confirmer votre présence au château pour {nom}",
    GuestField.autorisation_ia: "Veuillez répondre à la question sur l'IA pour {nom}",
}

ACCOMMODATION = "accommodation"
ACCOMMODATION_COUNT = "accommodation-count"


def required_fields(invitation_type) -> FrozenSet[GuestField]:
    """Questions every guest of an invitation of this type must answer"""
    parsed = InvitationType.parse(invitation_type)
    if parsed is None:
        raise UnknownInvitationType(f"Unknown invitation type: {invitation_type!r}")
    return REQUIRED_FIELDS[parsed]


def validate(invitation: InvitationState, guests: Sequence[GuestState]) -> ValidationResult:
    """Check that a response is complete enough to be confirmed.

    Every reason is reported, guests in insertion order, then accommodation.
    """
    missing: List[MissingField] = []

    try:
        required = required_fields(invitation.type)
    except UnknownInvitationType:
        required = None
        missing.append(MissingField(
            field="type",
            message="Type d'invitation inconnu, veuillez nous recontacter",
        ))

    if required is not None:
        for guest in guests:
            nom = guest.nom or "l'invité"
            for field in TRI_STATE_FIELDS:
                if field not in required:
                    continue
                if getattr(guest, field.value) is TriState.pending:
                    missing.append(MissingField(
                        field=field.value,
                        message=_GUEST_MESSAGES[field].format(nom=nom),
                        guest_id=guest.id,
                        guest_nom=guest.nom,
                    ))

    if invitation.hebergement is TriState.pending:
        missing.append(MissingField(
            field=ACCOMMODATION,
            message="Veuillez confirmer si vous dormez au château",
        ))
    elif invitation.hebergement is TriState.yes:
        count = invitation.herbergement_nombre
        if count is None or count <= 0:
            missing.append(MissingField(
                field=ACCOMMODATION_COUNT,
                message="Veuillez indiquer le nombre de personnes pour l'hébergement",
            ))

    return ValidationResult(ok=not missing, missing=missing)


def normalize(invitation: InvitationState) -> InvitationState:
    """Clear the accommodation headcount unless accommodation is accepted"""
    if invitation.hebergement is not TriState.yes and invitation.herbergement_nombre is not None:
        return invitation.model_copy(update={"herbergement_nombre": None})
    return invitation
