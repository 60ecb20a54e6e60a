"""
Administrator login
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from wedding_rsvp.services.repositories import AdminRepo, store_errors, use_firestore
from wedding_rsvp.utils.security import create_admin_session, hash_password, verify_password

logger = logging.getLogger(__name__)

# Checked for unknown logins so both failure paths pay for one hash
_DUMMY_PASSWORD_HASH = hash_password("wedding-rsvp-unknown-admin")


class AuthService:
    """Checks admin credentials and issues sessions"""

    @staticmethod
    def login(db: Session, login: str, password: str) -> Optional[Tuple[str, datetime]]:
        """Return ``(session_token, expires_at)``, or None for bad credentials.

        Unknown logins and wrong passwords are indistinguishable to the caller.
        A legacy digest is replaced by a salted hash after a successful login.
        """
        with store_errors(db):
            if not use_firestore():
                admin = AdminRepo.get_by_login_sql(db, login)
                stored = admin.password if admin else None
                admin_id = admin.id if admin else None
            else:
                admin = AdminRepo.get_by_login_fs(login)
                stored = admin.get("password") if admin else None
                admin_id = admin.get("id") if admin else None

        if admin is None:
            verify_password(password, _DUMMY_PASSWORD_HASH)
            logger.warning("Admin login failed: unknown login %r", login)
            return None

        valid, needs_upgrade = verify_password(password, stored)
        if not valid:
            logger.warning("Admin login failed: wrong password for %r", login)
            return None

        if needs_upgrade:
            with store_errors(db):
                if not use_firestore():
                    AdminRepo.update_password_sql(db, admin, hash_password(password))
                else:
                    AdminRepo.update_password_fs(admin["doc_id"], hash_password(password))
            logger.info("Upgraded legacy password digest for admin %r", login)

        return create_admin_session(admin_id)
