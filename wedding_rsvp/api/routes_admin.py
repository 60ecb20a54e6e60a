"""
Admin API routes - requires authentication
"""

from fastapi import APIRouter, Depends, Request, UploadFile, File, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from wedding_rsvp.core.config import settings
from wedding_rsvp.core.db import get_db
from wedding_rsvp.schemas.admin import LoginRequest, SessionResponse
from wedding_rsvp.services.auth_service import AuthService
from wedding_rsvp.services.excel_service import ExcelService
from wedding_rsvp.services.invitation_service import InvitationService
from wedding_rsvp.services.qr_service import QRService
from wedding_rsvp.services.repositories import StoreUnavailableError
from wedding_rsvp.services.stats_service import ResponseStatus, StatsCategory, StatsService
from wedding_rsvp.utils.security import get_client_ip, rate_limit_check, verify_admin_session
from wedding_rsvp.utils.responses import (
    success_response,
    error_response,
    not_found_error,
    rate_limit_error,
    store_unavailable_response,
)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

@router.post("/login")
async def login(
    request: Request,
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """Exchange admin credentials for a signed, expiring session"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    try:
        session = AuthService.login(db, credentials.login, credentials.password)
    except StoreUnavailableError:
        return store_unavailable_response()

    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Login ou mot de passe incorrect."
        )

    token, expires_at = session
    return success_response(
        message="Connexion réussie",
        data=SessionResponse(access_token=token, expires_at=expires_at)
    )

@router.get("/invitations")
async def list_invitations(
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """List every invitation with its guests"""
    try:
        invitations = InvitationService.load_all(db)
    except StoreUnavailableError:
        return store_unavailable_response()

    return success_response(
        message="Invitations retrieved successfully",
        data=invitations
    )

@router.get("/invitations/{invitation_id}")
async def get_invitation_details(
    invitation_id: str,
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """Drill down into one invitation"""
    try:
        invitation = InvitationService.get_by_id(db, invitation_id)
    except StoreUnavailableError:
        return store_unavailable_response()

    if not invitation:
        not_found_error("Invitation")

    return success_response(
        message="Invitation details retrieved",
        data=invitation
    )

@router.get("/invitations/{invitation_id}/qr.png")
async def get_invitation_qr(
    invitation_id: str,
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """QR code of the invitation's personal link"""
    try:
        invitation = InvitationService.get_by_id(db, invitation_id)
    except StoreUnavailableError:
        return store_unavailable_response()

    if not invitation or not invitation.url:
        not_found_error("Invitation link")

    return Response(
        content=QRService.generate_link_qr(invitation.url),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{invitation_id}.png"}
    )

@router.get("/stats")
async def get_stats(
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """Confirmation summary, recomputed from all invitations"""
    try:
        invitations = InvitationService.load_all(db)
    except StoreUnavailableError:
        return store_unavailable_response()

    return success_response(
        message="Statistics computed",
        data=StatsService.aggregate(invitations)
    )

@router.get("/stats/accommodation")
async def get_accommodation_details(
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """Invitations staying at the château, with headcounts"""
    try:
        invitations = InvitationService.load_all(db)
    except StoreUnavailableError:
        return store_unavailable_response()

    return success_response(
        message="Accommodation details",
        data=StatsService.list_accommodations(invitations)
    )

@router.get("/stats/{category}/{response_status}")
async def get_stats_details(
    category: StatsCategory,
    response_status: ResponseStatus,
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """Guests who accepted or refused a given category"""
    try:
        invitations = InvitationService.load_all(db)
    except StoreUnavailableError:
        return store_unavailable_response()

    return success_response(
        message=f"{category.value} / {response_status.value}",
        data=StatsService.list_guests(invitations, category, response_status)
    )

@router.get("/export/responses.xlsx")
async def export_responses(
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """Download every response as an Excel workbook"""
    try:
        invitations = InvitationService.load_all(db)
    except StoreUnavailableError:
        return store_unavailable_response()

    return Response(
        content=ExcelService.export_responses(invitations),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=reponses_rsvp.xlsx"}
    )

@router.get("/template.xlsx")
async def download_template(
    admin_id: str = Depends(verify_admin_session)
):
    """Download the provisioning template"""
    return Response(
        content=ExcelService.create_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=invitations_template.xlsx"}
    )

@router.post("/invitations/upload")
async def upload_invitations(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin_id: str = Depends(verify_admin_session)
):
    """Create invitations from an Excel sheet and return their personal links"""
    if not file.filename or not file.filename.endswith('.xlsx'):
        return error_response(
            message="Invalid file format. Please upload an Excel file (.xlsx)",
            status_code=400
        )

    file_content = await file.read()
    if len(file_content) > settings.MAX_UPLOAD_SIZE:
        return error_response(
            message="File too large",
            status_code=413
        )

    try:
        success, errors, created = ExcelService.process_provisioning_upload(file_content, db)
    except StoreUnavailableError:
        return store_unavailable_response()

    if not success:
        return error_response(
            message="Excel file validation failed",
            details=errors,
            status_code=422
        )

    return success_response(
        message=f"{len(created)} invitations created.",
        data=created,
        status_code=201
    )
