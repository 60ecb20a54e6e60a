"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Repositories return raw records (ORM rows or Firestore dicts); services turn
them into schemas. Store failures surface as ``StoreUnavailableError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from google.api_core.exceptions import GoogleAPIError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wedding_rsvp.core.config import settings
from wedding_rsvp.models import Admin, Guest, Invitation
from wedding_rsvp.services.firebase_client import ADMINS, GUESTS, INVITATIONS, get_firestore_client

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """The record store could not complete a read or write"""


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


@contextmanager
def store_errors(db: Optional[Session] = None):
    """Translate backend exceptions into StoreUnavailableError"""
    try:
        yield
    except (SQLAlchemyError, GoogleAPIError) as exc:
        if db is not None:
            db.rollback()
        logger.exception("Record store operation failed")
        raise StoreUnavailableError(type(exc).__name__) from exc


def _doc_to_dict(doc) -> Dict[str, Any]:
    data = doc.to_dict()
    data.setdefault("id", doc.id)
    return data


# -------- Invitation repository --------

class InvitationRepo:
    @staticmethod
    def get_by_token_hash_sql(db: Session, token_hash: str) -> Optional[Invitation]:
        return db.query(Invitation).filter(Invitation.token_hash == token_hash).first()

    @staticmethod
    def get_by_id_sql(db: Session, invitation_id: str) -> Optional[Invitation]:
        return db.query(Invitation).filter(Invitation.id == invitation_id).first()

    @staticmethod
    def list_all_sql(db: Session) -> List[Invitation]:
        return db.query(Invitation).order_by(Invitation.nom).all()

    @staticmethod
    def add_sql(db: Session, nom: str, type: str, token_hash: str, url: str, guest_names: Iterable[str]) -> Invitation:
        """Stage an invitation with its guests; the caller commits"""
        invitation = Invitation(nom=nom, type=type, token_hash=token_hash, url=url)
        db.add(invitation)
        db.flush()
        for guest_name in guest_names:
            db.add(Guest(nom=guest_name, fk_invitation=invitation.id, brunch=False))
        db.flush()
        return invitation

    @staticmethod
    def save_answers_sql(
        db: Session,
        invitation: Invitation,
        fields: Dict[str, Any],
        guest_updates: Dict[int, Dict[str, Any]],
    ) -> None:
        """Overwrite answer fields of an invitation and its guests in one transaction"""
        for name, value in fields.items():
            setattr(invitation, name, value)

        if guest_updates:
            guests = db.query(Guest).filter(
                Guest.fk_invitation == invitation.id,
                Guest.id.in_(list(guest_updates.keys()))
            ).all()
            for guest in guests:
                for name, value in guest_updates[guest.id].items():
                    setattr(guest, name, value)

        db.commit()

    # Firestore shape: collection "invitation/{id}" documents with the SQL column names
    @staticmethod
    def get_by_token_hash_fs(token_hash: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        if not fs:
            return None
        docs = fs.collection(INVITATIONS).where("token_hash", "==", token_hash).limit(1).get()
        if docs:
            return _doc_to_dict(docs[0])
        return None

    @staticmethod
    def get_by_id_fs(invitation_id: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        if not fs:
            return None
        doc = fs.collection(INVITATIONS).document(invitation_id).get()
        return _doc_to_dict(doc) if doc.exists else None

    @staticmethod
    def list_all_fs() -> List[Dict[str, Any]]:
        fs = get_firestore_client()
        docs = fs.collection(INVITATIONS).order_by("nom").get()
        return [_doc_to_dict(d) for d in docs]

    @staticmethod
    def create_fs(nom: str, type: str, token_hash: str, url: str, guest_names: Iterable[str]) -> Dict[str, Any]:
        fs = get_firestore_client()
        ref = fs.collection(INVITATIONS).document()
        data = {
            "id": ref.id,
            "nom": nom,
            "type": type,
            "token_hash": token_hash,
            "url": url,
            "regime": None,
            "allergie": None,
            "hebergement": None,
            "herbergement_nombre": None,
            "link_music": None,
            "confirmed_at": None,
        }

        batch = fs.batch()
        batch.set(ref, data)
        next_id = GuestRepo.next_id_fs()
        for offset, guest_name in enumerate(guest_names):
            guest_id = next_id + offset
            batch.set(fs.collection(GUESTS).document(str(guest_id)), {
                "id": guest_id,
                "nom": guest_name,
                "fk_invitation": ref.id,
                "mairie": None,
                "cocktail": None,
                "chateau": None,
                "brunch": False,
                "autorisation_ia": None,
            })
        batch.commit()
        return data

    @staticmethod
    def save_answers_fs(
        invitation_id: str,
        fields: Dict[str, Any],
        guest_updates: Dict[int, Dict[str, Any]],
    ) -> None:
        fs = get_firestore_client()
        batch = fs.batch()
        payload = dict(fields)
        if payload.get("confirmed_at") is not None:
            payload["confirmed_at"] = payload["confirmed_at"].isoformat()
        batch.set(fs.collection(INVITATIONS).document(invitation_id), payload, merge=True)
        for guest_id, updates in guest_updates.items():
            batch.set(fs.collection(GUESTS).document(str(guest_id)), updates, merge=True)
        batch.commit()


# -------- Guest repository --------

class GuestRepo:
    @staticmethod
    def list_for_invitation_sql(db: Session, invitation_id: str) -> List[Guest]:
        return db.query(Guest).filter(Guest.fk_invitation == invitation_id).order_by(Guest.id).all()

    @staticmethod
    def list_all_sql(db: Session) -> List[Guest]:
        return db.query(Guest).order_by(Guest.id).all()

    # Firestore guest docs live in the top-level "invites" collection, keyed by their integer id
    @staticmethod
    def list_for_invitation_fs(invitation_id: str) -> List[Dict[str, Any]]:
        fs = get_firestore_client()
        docs = fs.collection(GUESTS).where("fk_invitation", "==", invitation_id).order_by("id").get()
        return [_doc_to_dict(d) for d in docs]

    @staticmethod
    def list_all_fs() -> List[Dict[str, Any]]:
        fs = get_firestore_client()
        docs = fs.collection(GUESTS).order_by("id").get()
        return [_doc_to_dict(d) for d in docs]

    @staticmethod
    def next_id_fs() -> int:
        from google.cloud.firestore import Query

        fs = get_firestore_client()
        docs = fs.collection(GUESTS).order_by("id", direction=Query.DESCENDING).limit(1).get()
        if docs:
            return int(docs[0].to_dict().get("id", 0)) + 1
        return 1


# -------- Admin repository --------

class AdminRepo:
    @staticmethod
    def get_by_login_sql(db: Session, login: str) -> Optional[Admin]:
        return db.query(Admin).filter(Admin.login == login).first()

    @staticmethod
    def update_password_sql(db: Session, admin: Admin, password_hash: str) -> None:
        admin.password = password_hash
        db.commit()

    @staticmethod
    def get_by_login_fs(login: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        if not fs:
            return None
        docs = fs.collection(ADMINS).where("login", "==", login).limit(1).get()
        if docs:
            data = _doc_to_dict(docs[0])
            data["doc_id"] = docs[0].id
            return data
        return None

    @staticmethod
    def update_password_fs(doc_id: str, password_hash: str) -> None:
        fs = get_firestore_client()
        fs.collection(ADMINS).document(doc_id).set({"password": password_hash}, merge=True)
