"""
Tests for Excel provisioning and response export
"""

import pytest
import pandas as pd
import io
from openpyxl import load_workbook
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from wedding_rsvp.core.db import Base
from wedding_rsvp.models import Guest, Invitation, InvitationType
from wedding_rsvp.schemas.invitation import InvitationState
from wedding_rsvp.services.excel_service import ExcelService
from wedding_rsvp.services.invitation_service import InvitationService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_excel.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

def to_excel_bytes(df):
    buffer = io.BytesIO()
    df.to_excel(buffer, index=False)
    return buffer.getvalue()

def token_from_url(url):
    return url.rsplit("/", 1)[1]

def test_validate_excel_structure_valid():
    """Test valid Excel structure"""
    df = pd.DataFrame({
        'Invitation': ['Famille Martin'],
        'Type': ['full'],
        'Invités': ['Paul Martin; Claire Martin'],
    })

    is_valid, errors = ExcelService.validate_excel_structure(df)

    assert is_valid
    assert len(errors) == 0

def test_validate_excel_structure_alternate_headers():
    df = pd.DataFrame({
        'nom': ['Famille Martin'],
        'TYPE': ['full'],
        'guests': ['Paul Martin'],
    })

    is_valid, errors = ExcelService.validate_excel_structure(df)

    assert is_valid

def test_validate_excel_structure_missing_columns():
    """Test Excel structure with missing required columns"""
    df = pd.DataFrame({
        'Invitation': ['Famille Martin'],
    })

    is_valid, errors = ExcelService.validate_excel_structure(df)

    assert not is_valid
    assert len(errors) == 1
    assert "type" in errors[0]
    assert "invités" in errors[0]

def test_validate_data_constraints_valid():
    df = pd.DataFrame({
        'Invitation': ['Famille Martin', 'Sophie Durand'],
        'Type': ['full', 'mairie'],
        'Invités': ['Paul Martin; Claire Martin', 'Sophie Durand'],
    })

    is_valid, errors = ExcelService.validate_data_constraints(df)

    assert is_valid
    assert errors == []

def test_validate_data_constraints_errors():
    """Unknown types, empty guest lists and duplicates are reported per row"""
    df = pd.DataFrame({
        'Invitation': ['Famille Martin', 'Sophie Durand', 'Famille Martin'],
        'Type': ['full', 'brunch-only', 'full'],
        'Invités': ['Paul Martin', '', 'Claire Martin'],
    })

    is_valid, errors = ExcelService.validate_data_constraints(df)

    assert not is_valid
    assert any("Row 3: unknown invitation type" in error for error in errors)
    assert any("Row 3: invitation 'Sophie Durand' has no guests" in error for error in errors)
    assert any("Row 4: duplicate invitation 'Famille Martin'" in error for error in errors)

@pytest.mark.parametrize("value,expected", [
    ("full", InvitationType.full),
    (" Complète ", InvitationType.full),
    ("partial-mairie", InvitationType.partial_mairie),
    ("Château", InvitationType.partial_chateau),
    ("other", None),
    (None, None),
])
def test_parse_type(value, expected):
    assert ExcelService.parse_type(value) == expected

def test_split_guests():
    assert ExcelService.split_guests("Paul; Claire\nLéa ;") == ["Paul", "Claire", "Léa"]
    assert ExcelService.split_guests(float("nan")) == []

def test_create_template_has_required_columns():
    df = pd.read_excel(io.BytesIO(ExcelService.create_template()))

    is_valid, _ = ExcelService.validate_excel_structure(df)

    assert is_valid
    assert len(df) == 3

def test_provisioning_creates_resolvable_invitations(db_session):
    df = pd.DataFrame({
        'Invitation': ['Famille Martin', 'Sophie Durand', None],
        'Type': ['full', 'partial-mairie', None],
        'Invités': ['Paul Martin; Claire Martin', 'Sophie Durand', None],
    })

    success, errors, created = ExcelService.process_provisioning_upload(to_excel_bytes(df), db_session)

    assert success
    assert errors == []
    assert [(c.nom, c.type, c.guests) for c in created] == [
        ('Famille Martin', 'full', 2),
        ('Sophie Durand', 'partial-mairie', 1),
    ]

    state = InvitationService.resolve(token_from_url(created[0].url), db_session)
    assert state.id == created[0].id
    assert [g.nom for g in state.invites] == ['Paul Martin', 'Claire Martin']
    assert state.confirmed_at is None
    assert state.url == created[0].url

def test_provisioning_stores_only_token_digest(db_session):
    df = pd.DataFrame({
        'Invitation': ['Famille Martin'],
        'Type': ['full'],
        'Invités': ['Paul Martin'],
    })

    _, _, created = ExcelService.process_provisioning_upload(to_excel_bytes(df), db_session)

    token = token_from_url(created[0].url)
    stored = db_session.query(Invitation).one()
    assert stored.token_hash != token
    assert len(stored.token_hash) == 64

def test_provisioning_rejects_invalid_sheet(db_session):
    df = pd.DataFrame({
        'Invitation': ['Famille Martin'],
        'Type': ['unknown'],
        'Invités': ['Paul Martin'],
    })

    success, errors, created = ExcelService.process_provisioning_upload(to_excel_bytes(df), db_session)

    assert not success
    assert created == []
    assert db_session.query(Invitation).count() == 0

def test_provisioning_unreadable_file(db_session):
    success, errors, created = ExcelService.process_provisioning_upload(b"not an excel file", db_session)

    assert not success
    assert errors == ["Unreadable Excel file"]

def test_export_responses_sheets():
    invitations = [
        InvitationState.model_validate({
            "id": "a",
            "nom": "Famille Martin",
            "type": "full",
            "hebergement": True,
            "herbergement_nombre": 2,
            "confirmed_at": datetime(2026, 5, 1, 12, 0),
            "invites": [
                {"id": 1, "nom": "Paul Martin", "fk_invitation": "a",
                 "mairie": True, "cocktail": True, "chateau": False, "brunch": True},
            ],
        }),
        InvitationState.model_validate({
            "id": "b",
            "nom": "Sophie Durand",
            "type": "partial-mairie",
            "invites": [{"id": 2, "nom": "Sophie Durand", "fk_invitation": "b"}],
        }),
    ]

    sheets = pd.read_excel(io.BytesIO(ExcelService.export_responses(invitations)), sheet_name=None)

    assert list(sheets) == ['Invitations', 'Invités', 'Résumé']
    assert list(sheets['Invitations']['Invitation']) == ['Famille Martin', 'Sophie Durand']
    assert sheets['Invitations']['Confirmée le'][0] == '2026-05-01 12:00'

    guests = sheets['Invités']
    assert list(guests['Invité']) == ['Paul Martin', 'Sophie Durand']
    assert guests['Château'][0] == 'Non'
    assert guests['Brunch'][0] == 'Oui'

    summary = sheets['Résumé'].set_index('Catégorie')
    assert summary.loc['Mairie', 'Confirmés'] == 1
    assert summary.loc['Mairie', 'Total'] == 2
    assert summary.loc['Château', 'Refusés'] == 1
    assert summary.loc['Hébergement', 'Total'] == 2

def test_export_from_store(db_session):
    invitation = Invitation(id="inv-1", nom="Famille Martin", type="full", token_hash="x" * 64)
    db_session.add(invitation)
    db_session.flush()
    db_session.add(Guest(nom="Paul Martin", fk_invitation="inv-1"))
    db_session.commit()

    content = ExcelService.export_responses(InvitationService.load_all(db_session))

    sheets = pd.read_excel(io.BytesIO(content), sheet_name=None)
    assert list(sheets['Invités']['Invité']) == ['Paul Martin']

def test_export_neutralizes_formula_text():
    """Guest-typed text starting like a formula stays plain text in the workbook"""
    payload = '=HYPERLINK("http://evil.example","x")'
    invitations = [InvitationState.model_validate({
        "id": "a",
        "nom": "@SUM(A1:A2)",
        "type": "full",
        "regime": payload,
        "allergie": "+arachides",
        "link_music": "-1",
        "invites": [{"id": 1, "nom": "=1+1", "fk_invitation": "a"}],
    })]

    workbook = load_workbook(io.BytesIO(ExcelService.export_responses(invitations)))

    sheet = workbook['Invitations']
    headers = [cell.value for cell in sheet[1]]
    row = {header: cell for header, cell in zip(headers, sheet[2])}
    for column in ('Invitation', 'Régime', 'Allergies', 'Musique'):
        assert row[column].data_type != "f"
    assert row['Régime'].value == "'" + payload

    guest_cell = workbook['Invités']['B2']
    assert guest_cell.data_type != "f"
    assert guest_cell.value == "'=1+1"

def test_export_keeps_ordinary_text():
    invitations = [InvitationState.model_validate({
        "id": "a", "nom": "Famille Martin", "type": "full", "regime": "végétarien", "invites": [],
    })]

    sheets = pd.read_excel(io.BytesIO(ExcelService.export_responses(invitations)), sheet_name=None)

    assert sheets['Invitations']['Régime'][0] == 'végétarien'
