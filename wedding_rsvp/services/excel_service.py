"""
Excel processing service for invitation provisioning and response export
"""

import io
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from wedding_rsvp.models.enums import InvitationType, TriState
from wedding_rsvp.schemas.admin import ProvisionedInvitation
from wedding_rsvp.schemas.invitation import InvitationState
from wedding_rsvp.services.qr_service import QRService
from wedding_rsvp.services.repositories import InvitationRepo, store_errors, use_firestore
from wedding_rsvp.services.stats_service import StatsService
from wedding_rsvp.utils.security import generate_token, hash_token

logger = logging.getLogger(__name__)

_GUEST_SEPARATOR = re.compile(r"[;\n]")

# Labels used on the dashboard are accepted alongside the stored values
_TYPE_ALIASES = {
    "full": InvitationType.full,
    "complete": InvitationType.full,
    "complète": InvitationType.full,
    "partial-mairie": InvitationType.partial_mairie,
    "mairie": InvitationType.partial_mairie,
    "partial-chateau": InvitationType.partial_chateau,
    "chateau": InvitationType.partial_chateau,
    "château": InvitationType.partial_chateau,
}

_ANSWER_LABELS = {
    TriState.yes: "Oui",
    TriState.no: "Non",
    TriState.pending: "",
}

# Leading characters a spreadsheet reads as the start of a formula
_FORMULA_PREFIXES = ('=', '+', '-', '@')

def _text_cell(value):
    """Neutralize guest-typed text so the workbook never evaluates it"""
    if isinstance(value, str) and value.startswith(_FORMULA_PREFIXES):
        return "'" + value
    return value

class ExcelService:
    """Service for handling Excel operations"""

    REQUIRED_COLUMNS = ['invitation', 'type', 'invités']

    @staticmethod
    def create_template() -> bytes:
        """Create provisioning template with required columns"""
        df = pd.DataFrame(columns=['Invitation', 'Type', 'Invités'])

        # Sample rows for guidance
        sample_data = [
            ['Famille Martin', 'full', 'Paul Martin; Claire Martin'],
            ['Sophie Durand', 'partial-mairie', 'Sophie Durand'],
            ['Les Bernard', 'partial-chateau', 'Luc Bernard; Anne Bernard; Léa Bernard'],
        ]

        for row in sample_data:
            df.loc[len(df)] = row

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Invitations')

        return buffer.getvalue()

    @staticmethod
    def _column_mapping(df: pd.DataFrame) -> Dict[str, str]:
        mapping = {}
        for col in df.columns:
            col_lower = str(col).lower().strip()
            if col_lower in ('invitation', 'nom'):
                mapping['invitation'] = col
            elif col_lower == 'type':
                mapping['type'] = col
            elif col_lower in ('invités', 'invites', 'guests'):
                mapping['invités'] = col
        return mapping

    @staticmethod
    def parse_type(value) -> Optional[InvitationType]:
        if value is None or pd.isna(value):
            return None
        return _TYPE_ALIASES.get(str(value).strip().lower())

    @staticmethod
    def split_guests(value) -> List[str]:
        if value is None or pd.isna(value):
            return []
        return [name.strip() for name in _GUEST_SEPARATOR.split(str(value)) if name.strip()]

    @staticmethod
    def validate_excel_structure(df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Validate provisioning sheet structure"""
        errors = []

        mapping = ExcelService._column_mapping(df)
        missing_columns = [col for col in ExcelService.REQUIRED_COLUMNS if col not in mapping]

        if missing_columns:
            errors.append(f"Missing required columns: {', '.join(missing_columns)}")

        return len(errors) == 0, errors

    @staticmethod
    def validate_data_constraints(df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Validate row contents: known types, at least one guest, unique names"""
        errors = []
        mapping = ExcelService._column_mapping(df)
        seen = set()

        for index, row in df.iterrows():
            line = index + 2  # header is row 1
            name = row[mapping['invitation']]
            if pd.isna(name) or str(name).strip() == '':
                continue
            name = str(name).strip()

            if ExcelService.parse_type(row[mapping['type']]) is None:
                errors.append(f"Row {line}: unknown invitation type '{row[mapping['type']]}'")

            if not ExcelService.split_guests(row[mapping['invités']]):
                errors.append(f"Row {line}: invitation '{name}' has no guests")

            if name in seen:
                errors.append(f"Row {line}: duplicate invitation '{name}'")
            seen.add(name)

        return len(errors) == 0, errors

    @staticmethod
    def process_provisioning_upload(
        file_content: bytes,
        db: Session
    ) -> Tuple[bool, List[str], List[ProvisionedInvitation]]:
        """Create invitations and guests from an uploaded sheet.

        Each invitation gets a fresh token; only its digest is used for
        lookup. The links returned here are the way to distribute tokens.
        """
        try:
            df = pd.read_excel(io.BytesIO(file_content))
        except Exception as e:
            logger.warning("Unreadable provisioning sheet: %s", e)
            return False, ["Unreadable Excel file"], []

        valid_structure, structure_errors = ExcelService.validate_excel_structure(df)
        if not valid_structure:
            return False, structure_errors, []

        valid_data, data_errors = ExcelService.validate_data_constraints(df)
        if not valid_data:
            return False, data_errors, []

        mapping = ExcelService._column_mapping(df)
        created: List[ProvisionedInvitation] = []

        with store_errors(db):
            for _, row in df.iterrows():
                name = row[mapping['invitation']]
                if pd.isna(name) or str(name).strip() == '':
                    continue

                name = str(name).strip()
                invitation_type = ExcelService.parse_type(row[mapping['type']])
                guest_names = ExcelService.split_guests(row[mapping['invités']])

                token = generate_token()
                url = QRService.invitation_url(token)

                if not use_firestore():
                    invitation = InvitationRepo.add_sql(
                        db, name, invitation_type.value, hash_token(token), url, guest_names
                    )
                    invitation_id = invitation.id
                else:
                    invitation_id = InvitationRepo.create_fs(
                        name, invitation_type.value, hash_token(token), url, guest_names
                    )["id"]

                created.append(ProvisionedInvitation(
                    id=invitation_id,
                    nom=name,
                    type=invitation_type.value,
                    guests=len(guest_names),
                    url=url,
                ))

            if not use_firestore():
                db.commit()

        logger.info("Provisioned %d invitations", len(created))
        return True, [], created

    @staticmethod
    def export_responses(invitations: Sequence[InvitationState]) -> bytes:
        """Export invitations, per-guest answers and a summary to Excel"""
        invitation_rows = []
        guest_rows = []

        for invitation in invitations:
            invitation_rows.append({
                'Invitation': _text_cell(invitation.nom),
                'Type': _text_cell(invitation.type),
                'Confirmée le': invitation.confirmed_at.strftime('%Y-%m-%d %H:%M') if invitation.confirmed_at else '',
                'Hébergement': _ANSWER_LABELS[invitation.hebergement],
                'Personnes hébergées': invitation.herbergement_nombre,
                'Régime': _text_cell(invitation.regime),
                'Allergies': _text_cell(invitation.allergie),
                'Musique': _text_cell(invitation.link_music),
                'Lien': _text_cell(invitation.url),
            })
            for guest in invitation.invites:
                guest_rows.append({
                    'Invitation': _text_cell(invitation.nom),
                    'Invité': _text_cell(guest.nom),
                    'Mairie': _ANSWER_LABELS[guest.mairie],
                    'Cocktail': _ANSWER_LABELS[guest.cocktail],
                    'Château': _ANSWER_LABELS[guest.chateau],
                    'Brunch': 'Oui' if guest.brunch else 'Non',
                    'Autorisation IA': _ANSWER_LABELS[guest.autorisation_ia],
                })

        stats = StatsService.aggregate(invitations)
        summary_rows = [
            {
                'Catégorie': label,
                'Confirmés': counter.accepted,
                'Refusés': counter.refused,
                'Total': counter.total,
            }
            for label, counter in (
                ('Complète', stats.complete),
                ('Mairie', stats.mairie),
                ('Château', stats.chateau),
            )
        ]
        summary_rows.append({'Catégorie': 'Hébergement', 'Total': stats.accommodation})

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            pd.DataFrame(invitation_rows, columns=[
                'Invitation', 'Type', 'Confirmée le', 'Hébergement', 'Personnes hébergées',
                'Régime', 'Allergies', 'Musique', 'Lien',
            ]).to_excel(writer, index=False, sheet_name='Invitations')
            pd.DataFrame(guest_rows, columns=[
                'Invitation', 'Invité', 'Mairie', 'Cocktail', 'Château', 'Brunch', 'Autorisation IA',
            ]).to_excel(writer, index=False, sheet_name='Invités')
            pd.DataFrame(summary_rows).to_excel(writer, index=False, sheet_name='Résumé')

        return buffer.getvalue()
