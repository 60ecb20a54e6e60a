"""
Tests for invitation lookup and RSVP submission
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from wedding_rsvp.core.db import Base
from wedding_rsvp.models import Guest, Invitation, TriState
from wedding_rsvp.schemas.invitation import RSVPSubmission
from wedding_rsvp.services.invitation_service import (
    IncompleteResponseError,
    InvitationService,
    UnknownGuestError,
)
from wedding_rsvp.services.repositories import InvitationRepo, StoreUnavailableError
from wedding_rsvp.utils.security import hash_token

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_invitations.db"
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

@pytest.fixture
def provisioned(db_session):
    """Three invitations, one per type"""
    martin = Invitation(
        id="inv-martin",
        nom="Famille Martin",
        type="full",
        token_hash=hash_token("tok-martin"),
        url="http://localhost:8000/rsvp/tok-martin",
    )
    durand = Invitation(
        id="inv-durand",
        nom="Sophie Durand",
        type="partial-mairie",
        token_hash=hash_token("tok-durand"),
    )
    bernard = Invitation(
        id="inv-bernard",
        nom="Les Bernard",
        type="partial-chateau",
        token_hash=hash_token("tok-bernard"),
        hebergement=True,
        herbergement_nombre=2,
        regime="végétarien",
    )
    db_session.add_all([martin, durand, bernard])
    db_session.flush()

    # Interleaved so insertion order differs from grouping order
    db_session.add_all([
        Guest(nom="Paul Martin", fk_invitation="inv-martin"),
        Guest(nom="Luc Bernard", fk_invitation="inv-bernard", chateau=True, autorisation_ia=True),
        Guest(nom="Claire Martin", fk_invitation="inv-martin"),
        Guest(nom="Sophie Durand", fk_invitation="inv-durand"),
        Guest(nom="Anne Bernard", fk_invitation="inv-bernard", chateau=False, brunch=True, autorisation_ia=False),
    ])
    db_session.commit()
    return db_session

def full_answers(state, **invitation_fields):
    """Submission answering yes to everything for every guest"""
    data = {
        "token": "tok-martin",
        "hebergement": False,
        "invites": [
            {
                "id": guest.id,
                "mairie": True,
                "cocktail": True,
                "chateau": True,
                "brunch": True,
                "autorisation_ia": True,
            }
            for guest in state.invites
        ],
    }
    data.update(invitation_fields)
    return RSVPSubmission.model_validate(data)

def test_resolve_token(provisioned):
    state = InvitationService.resolve("tok-martin", provisioned)

    assert state is not None
    assert state.id == "inv-martin"
    assert state.nom == "Famille Martin"
    assert state.confirmed_at is None
    assert state.hebergement is TriState.pending
    assert [g.nom for g in state.invites] == ["Paul Martin", "Claire Martin"]
    assert all(g.mairie is TriState.pending for g in state.invites)
    assert all(g.brunch is False for g in state.invites)

def test_resolve_preserves_stored_answers(provisioned):
    state = InvitationService.resolve("tok-bernard", provisioned)

    assert [g.nom for g in state.invites] == ["Luc Bernard", "Anne Bernard"]
    assert state.invites[0].chateau is TriState.yes
    assert state.invites[1].chateau is TriState.no
    assert state.invites[1].brunch is True
    assert state.hebergement is TriState.yes
    assert state.herbergement_nombre == 2

@pytest.mark.parametrize("token", ["unknown", "", "   ", "TOK-MARTIN"])
def test_resolve_unknown_token(provisioned, token):
    assert InvitationService.resolve(token, provisioned) is None

def test_resolve_uses_digest_not_raw_token(provisioned):
    """The stored hash itself is not a valid token"""
    assert InvitationService.resolve(hash_token("tok-martin"), provisioned) is None

def test_submit_round_trip(provisioned):
    state = InvitationService.resolve("tok-martin", provisioned)
    submission = full_answers(
        state,
        hebergement=True,
        herbergement_nombre=2,
        regime="sans gluten",
        allergie="arachides",
        link_music="https://example.com/song",
    )
    submission.invites[1].chateau = TriState.no

    saved = InvitationService.submit(provisioned, submission)
    assert saved.confirmed_at is not None

    reloaded = InvitationService.resolve("tok-martin", provisioned)
    assert reloaded.confirmed_at is not None
    assert reloaded.hebergement is TriState.yes
    assert reloaded.herbergement_nombre == 2
    assert reloaded.regime == "sans gluten"
    assert reloaded.allergie == "arachides"
    assert reloaded.link_music == "https://example.com/song"
    assert reloaded.invites[0].chateau is TriState.yes
    assert reloaded.invites[1].chateau is TriState.no
    assert all(g.brunch for g in reloaded.invites)

def test_submit_incomplete_writes_nothing(provisioned):
    state = InvitationService.resolve("tok-martin", provisioned)
    submission = full_answers(state)
    submission.invites[0].chateau = TriState.pending

    with pytest.raises(IncompleteResponseError) as exc_info:
        InvitationService.submit(provisioned, submission)

    missing = exc_info.value.result.missing
    assert [(m.field, m.guest_nom) for m in missing] == [("chateau", "Paul Martin")]

    reloaded = InvitationService.resolve("tok-martin", provisioned)
    assert reloaded.confirmed_at is None
    assert reloaded.invites[1].mairie is TriState.pending

def test_submit_accommodation_count_required(provisioned):
    state = InvitationService.resolve("tok-martin", provisioned)

    with pytest.raises(IncompleteResponseError) as exc_info:
        InvitationService.submit(provisioned, full_answers(state, hebergement=True, herbergement_nombre=None))
    assert [m.field for m in exc_info.value.result.missing] == ["accommodation-count"]

    saved = InvitationService.submit(provisioned, full_answers(state, hebergement=True, herbergement_nombre=2))
    assert saved.herbergement_nombre == 2

def test_submit_declined_accommodation_clears_count(provisioned):
    state = InvitationService.resolve("tok-bernard", provisioned)
    submission = RSVPSubmission.model_validate({
        "token": "tok-bernard",
        "hebergement": False,
        "herbergement_nombre": 4,
    })

    InvitationService.submit(provisioned, submission)

    reloaded = InvitationService.resolve("tok-bernard", provisioned)
    assert reloaded.hebergement is TriState.no
    assert reloaded.herbergement_nombre is None
    # Omitted guest answers keep their stored values
    assert [g.chateau for g in reloaded.invites] == [state.invites[0].chateau, state.invites[1].chateau]

def test_submit_partial_mairie_skips_chateau(provisioned):
    state = InvitationService.resolve("tok-durand", provisioned)
    submission = RSVPSubmission.model_validate({
        "token": "tok-durand",
        "hebergement": False,
        "invites": [{
            "id": state.invites[0].id,
            "mairie": True,
            "cocktail": False,
            "autorisation_ia": True,
        }],
    })

    saved = InvitationService.submit(provisioned, submission)

    assert saved.invites[0].chateau is TriState.pending
    assert saved.invites[0].cocktail is TriState.no

def test_submit_unknown_guest(provisioned):
    other = InvitationService.resolve("tok-bernard", provisioned)
    submission = RSVPSubmission.model_validate({
        "token": "tok-martin",
        "invites": [{"id": other.invites[0].id, "chateau": True}],
    })

    with pytest.raises(UnknownGuestError) as exc_info:
        InvitationService.submit(provisioned, submission)
    assert exc_info.value.guest_ids == [other.invites[0].id]

def test_submit_unknown_token(provisioned):
    submission = RSVPSubmission.model_validate({"token": "nope", "hebergement": False})
    assert InvitationService.submit(provisioned, submission) is None

def test_resubmission_restamps_confirmation(provisioned):
    state = InvitationService.resolve("tok-martin", provisioned)
    first = InvitationService.submit(provisioned, full_answers(state))

    second = InvitationService.submit(provisioned, full_answers(state, regime="vegan"))

    assert second.confirmed_at >= first.confirmed_at
    assert InvitationService.resolve("tok-martin", provisioned).regime == "vegan"

def test_view_flags(provisioned):
    view = InvitationService.view(InvitationService.resolve("tok-durand", provisioned))

    assert view.show_mairie is True
    assert view.show_chateau is False
    assert view.read_only is False
    assert view.required_fields == ["autorisation_ia", "cocktail", "mairie"]

def test_view_read_only_after_submission(provisioned):
    state = InvitationService.resolve("tok-martin", provisioned)
    InvitationService.submit(provisioned, full_answers(state))

    view = InvitationService.view(InvitationService.resolve("tok-martin", provisioned))

    assert view.read_only is True

def test_load_all_groups_guests(provisioned):
    invitations = InvitationService.load_all(provisioned)

    by_id = {inv.id: inv for inv in invitations}
    assert set(by_id) == {"inv-martin", "inv-durand", "inv-bernard"}
    assert [g.nom for g in by_id["inv-martin"].invites] == ["Paul Martin", "Claire Martin"]
    assert [g.nom for g in by_id["inv-bernard"].invites] == ["Luc Bernard", "Anne Bernard"]
    assert len(by_id["inv-durand"].invites) == 1

def test_get_by_id(provisioned):
    assert InvitationService.get_by_id(provisioned, "inv-durand").nom == "Sophie Durand"
    assert InvitationService.get_by_id(provisioned, "missing") is None

def test_store_failure_is_translated(provisioned, monkeypatch):
    def broken(db, token_hash):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(InvitationRepo, "get_by_token_hash_sql", staticmethod(broken))

    with pytest.raises(StoreUnavailableError):
        InvitationService.resolve("tok-martin", provisioned)
