"""
Invitation lookup and RSVP submission
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from wedding_rsvp.models.enums import TriState
from wedding_rsvp.schemas.invitation import (
    GuestState,
    InvitationState,
    InvitationView,
    RSVPSubmission,
    ValidationResult,
)
from wedding_rsvp.services.repositories import GuestRepo, InvitationRepo, store_errors, use_firestore
from wedding_rsvp.services.validation_service import (
    GuestField,
    UnknownInvitationType,
    normalize,
    required_fields,
    validate,
)
from wedding_rsvp.utils.security import hash_token

logger = logging.getLogger(__name__)

INVITATION_FIELDS = (
    "id", "nom", "type", "regime", "allergie", "hebergement",
    "herbergement_nombre", "link_music", "confirmed_at", "url",
)
ANSWER_FIELDS = frozenset({"regime", "allergie", "hebergement", "herbergement_nombre", "link_music"})
GUEST_ANSWER_FIELDS = ("mairie", "cocktail", "chateau", "brunch", "autorisation_ia")


class UnknownGuestError(ValueError):
    """Submitted answers name guests that do not belong to the invitation"""

    def __init__(self, guest_ids: List[int]):
        super().__init__(f"Unknown guests: {guest_ids}")
        self.guest_ids = guest_ids


class IncompleteResponseError(ValueError):
    """The merged answers do not pass validation"""

    def __init__(self, result: ValidationResult):
        super().__init__("Incomplete response")
        self.result = result


def _field(record, name: str):
    """Read a field from an ORM row or a Firestore dict"""
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name)


def _record_fields(record) -> Dict[str, Any]:
    return {name: _field(record, name) for name in INVITATION_FIELDS}


def build_state(invitation_record, guest_records: Iterable) -> InvitationState:
    """Turn a stored invitation and its guests (ORM rows or dicts) into state"""
    data = _record_fields(invitation_record)
    data["invites"] = [GuestState.model_validate(g) for g in guest_records]
    return InvitationState.model_validate(data)


def apply_submission(current: InvitationState, submission: RSVPSubmission) -> InvitationState:
    """Overlay the supplied answers onto the current state, without validating"""
    fields = submission.model_dump(include=set(submission.model_fields_set) & ANSWER_FIELDS)

    guests_by_id = {guest.id: guest for guest in current.invites}
    unknown = [answers.id for answers in submission.invites if answers.id not in guests_by_id]
    if unknown:
        raise UnknownGuestError(unknown)

    for answers in submission.invites:
        updates = answers.model_dump(include=set(answers.model_fields_set) - {"id"})
        if "brunch" in updates and updates["brunch"] is None:
            updates["brunch"] = False
        guests_by_id[answers.id] = guests_by_id[answers.id].model_copy(update=updates)

    fields["invites"] = [guests_by_id[guest.id] for guest in current.invites]
    return current.model_copy(update=fields)


def _store_invitation_values(state: InvitationState) -> Dict[str, Any]:
    return {
        "regime": state.regime,
        "allergie": state.allergie,
        "hebergement": state.hebergement.to_bool(),
        "herbergement_nombre": state.herbergement_nombre,
        "link_music": state.link_music,
        "confirmed_at": state.confirmed_at,
    }


def _store_guest_values(guest: GuestState) -> Dict[str, Any]:
    values = {}
    for name in GUEST_ANSWER_FIELDS:
        value = getattr(guest, name)
        values[name] = value.to_bool() if isinstance(value, TriState) else value
    return values


class InvitationService:
    """Service for invitation lookup and guest responses"""

    @staticmethod
    def resolve(token: str, db: Session) -> Optional[InvitationState]:
        """Find the invitation behind a guest link token, with its guests"""
        if not token or not token.strip():
            return None

        token_hash = hash_token(token)

        with store_errors(db):
            if not use_firestore():
                invitation = InvitationRepo.get_by_token_hash_sql(db, token_hash)
                if not invitation:
                    logger.info("No invitation for token hash %s...", token_hash[:8])
                    return None
                guests = GuestRepo.list_for_invitation_sql(db, invitation.id)
            else:
                invitation = InvitationRepo.get_by_token_hash_fs(token_hash)
                if not invitation:
                    logger.info("No invitation for token hash %s...", token_hash[:8])
                    return None
                guests = GuestRepo.list_for_invitation_fs(invitation["id"])

        return build_state(invitation, guests)

    @staticmethod
    def get_by_id(db: Session, invitation_id: str) -> Optional[InvitationState]:
        with store_errors(db):
            if not use_firestore():
                invitation = InvitationRepo.get_by_id_sql(db, invitation_id)
                if not invitation:
                    return None
                guests = GuestRepo.list_for_invitation_sql(db, invitation.id)
            else:
                invitation = InvitationRepo.get_by_id_fs(invitation_id)
                if not invitation:
                    return None
                guests = GuestRepo.list_for_invitation_fs(invitation_id)

        return build_state(invitation, guests)

    @staticmethod
    def load_all(db: Session) -> List[InvitationState]:
        """Bulk fetch every invitation with its guests for the dashboard"""
        with store_errors(db):
            if not use_firestore():
                invitations = InvitationRepo.list_all_sql(db)
                guests = GuestRepo.list_all_sql(db)
            else:
                invitations = InvitationRepo.list_all_fs()
                guests = GuestRepo.list_all_fs()

        guests_by_invitation: Dict[str, list] = {}
        for guest in guests:
            guests_by_invitation.setdefault(_field(guest, "fk_invitation"), []).append(guest)

        return [
            build_state(invitation, guests_by_invitation.get(_field(invitation, "id"), []))
            for invitation in invitations
        ]

    @staticmethod
    def view(state: InvitationState) -> InvitationView:
        """Wrap state with what the guest form needs to know about its type"""
        try:
            fields = required_fields(state.type)
        except UnknownInvitationType:
            fields = frozenset()

        return InvitationView(
            invitation=state,
            required_fields=sorted(field.value for field in fields),
            show_mairie=GuestField.mairie in fields,
            show_chateau=GuestField.chateau in fields,
            read_only=state.confirmed_at is not None,
        )

    @staticmethod
    def check(current: InvitationState, submission: RSVPSubmission) -> ValidationResult:
        """Validate a submission against stored state without writing anything"""
        merged = normalize(apply_submission(current, submission))
        return validate(merged, merged.invites)

    @staticmethod
    def submit(db: Session, submission: RSVPSubmission) -> Optional[InvitationState]:
        """Overwrite the answers of the invitation behind ``submission.token``.

        Returns None for an unknown token. Raises UnknownGuestError or
        IncompleteResponseError without writing anything; on success every
        answer field is overwritten and ``confirmed_at`` stamped.
        """
        current = InvitationService.resolve(submission.token, db)
        if current is None:
            return None

        merged = normalize(apply_submission(current, submission))
        result = validate(merged, merged.invites)
        if not result.ok:
            raise IncompleteResponseError(result)

        merged = merged.model_copy(update={"confirmed_at": datetime.now(timezone.utc)})
        fields = _store_invitation_values(merged)
        guest_updates = {guest.id: _store_guest_values(guest) for guest in merged.invites}

        with store_errors(db):
            if not use_firestore():
                invitation = InvitationRepo.get_by_id_sql(db, merged.id)
                InvitationRepo.save_answers_sql(db, invitation, fields, guest_updates)
            else:
                InvitationRepo.save_answers_fs(merged.id, fields, guest_updates)

        logger.info("RSVP recorded for invitation %s (%d guests)", merged.id, len(merged.invites))
        return merged
