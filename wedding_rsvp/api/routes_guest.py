"""
Guest-facing API routes
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wedding_rsvp.core.db import get_db
from wedding_rsvp.schemas.invitation import RSVPSubmission
from wedding_rsvp.services.invitation_service import (
    IncompleteResponseError,
    InvitationService,
    UnknownGuestError,
)
from wedding_rsvp.services.repositories import StoreUnavailableError
from wedding_rsvp.utils.security import rate_limit_check, get_client_ip
from wedding_rsvp.utils.responses import (
    INCOMPLETE_RESPONSE,
    success_response,
    error_response,
    rate_limit_error,
    store_unavailable_response,
)

router = APIRouter()

# Same wording whether the token never existed or its data is gone
NOT_FOUND_MESSAGE = "Invitation introuvable. Le lien que vous avez utilisé n'est pas valide."

def _invitation_not_found():
    return error_response(
        message=NOT_FOUND_MESSAGE,
        status_code=404
    )

def _unknown_guests(exc: UnknownGuestError):
    return error_response(
        message="Certains invités ne font pas partie de cette invitation.",
        error_code="UNKNOWN_GUEST",
        details={"guest_ids": exc.guest_ids},
        status_code=422
    )

@router.get("/rsvp/{token}")
async def get_invitation(
    request: Request,
    token: str,
    db: Session = Depends(get_db)
):
    """Load an invitation and its guests from a personal link"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    try:
        state = InvitationService.resolve(token, db)
    except StoreUnavailableError:
        return store_unavailable_response()

    if state is None:
        return _invitation_not_found()

    message = "Réponse déjà enregistrée" if state.confirmed_at else "Invitation trouvée"
    return success_response(
        message=message,
        data=InvitationService.view(state)
    )

@router.post("/rsvp/{token}/validate")
async def validate_answers(
    request: Request,
    token: str,
    submission: RSVPSubmission,
    db: Session = Depends(get_db)
):
    """Check answers for completeness without recording them"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    try:
        state = InvitationService.resolve(token, db)
    except StoreUnavailableError:
        return store_unavailable_response()

    if state is None:
        return _invitation_not_found()

    try:
        result = InvitationService.check(state, submission)
    except UnknownGuestError as exc:
        return _unknown_guests(exc)

    return success_response(
        message="Réponse complète" if result.ok else "Réponse incomplète",
        data=result
    )

@router.post("/api/rsvp")
async def submit_rsvp(
    request: Request,
    submission: RSVPSubmission,
    db: Session = Depends(get_db)
):
    """Record a guest response and stamp its confirmation time"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    try:
        state = InvitationService.submit(db, submission)
    except UnknownGuestError as exc:
        return _unknown_guests(exc)
    except IncompleteResponseError as exc:
        return error_response(
            message="Veuillez compléter votre réponse.",
            error_code=INCOMPLETE_RESPONSE,
            details=exc.result.missing,
            status_code=422
        )
    except StoreUnavailableError:
        return store_unavailable_response()

    if state is None:
        return _invitation_not_found()

    return success_response(
        message="Votre réponse a bien été enregistrée",
        data={"ok": True, "confirmed_at": state.confirmed_at}
    )
