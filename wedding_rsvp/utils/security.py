"""
Security utilities and authentication
"""

import hashlib
import hmac
import re
import secrets
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Tuple

import jwt
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from werkzeug.security import generate_password_hash, check_password_hash

from wedding_rsvp.core.config import settings

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer(auto_error=False)

ADMIN_SCOPE = "admin"
_LEGACY_DIGEST = re.compile(r"[0-9a-fA-F]{64}")

# -------- Invitation tokens --------

def generate_token() -> str:
    """Generate a shareable invitation token (high entropy, URL safe)"""
    return secrets.token_urlsafe(24)

def hash_token(token: str) -> str:
    """One-way digest used as the invitation lookup key"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

# -------- Admin passwords --------

def hash_password(password: str) -> str:
    return generate_password_hash(password)

def verify_password(password: str, stored: str) -> Tuple[bool, bool]:
    """Check a password against its stored hash.

    Returns ``(valid, needs_upgrade)``. Rows written before salted hashes
    were introduced hold a bare sha256 hex digest; those are accepted while
    ``ALLOW_LEGACY_PASSWORD_DIGEST`` is set and flagged for re-hashing.
    """
    if not stored:
        return False, False

    if _LEGACY_DIGEST.fullmatch(stored):
        if not settings.ALLOW_LEGACY_PASSWORD_DIGEST:
            return False, False
        digest = hashlib.sha256(password.encode("utf-8")).hexdigest()
        valid = hmac.compare_digest(digest, stored.lower())
        return valid, valid

    try:
        return check_password_hash(stored, password), False
    except ValueError:
        # Unknown hash method prefix
        return False, False

# -------- Admin sessions --------

def create_admin_session(admin_id, expires_delta: timedelta = None) -> Tuple[str, datetime]:
    """Issue a signed admin session token and its expiry"""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ADMIN_SESSION_EXPIRE_MINUTES)

    expire = datetime.now(timezone.utc) + expires_delta
    payload = {
        "sub": str(admin_id),
        "scope": ADMIN_SCOPE,
        "exp": expire,
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return token, expire

def decode_admin_session(token: str) -> Dict:
    """Decode and verify an admin session, raising 401 on any failure"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired"
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin session"
        )

    if payload.get("scope") != ADMIN_SCOPE or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin session"
        )
    return payload

def verify_admin_session(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Verify admin session token; returns the admin id"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin session"
        )
    payload = decode_admin_session(credentials.credentials)
    return payload["sub"]

# -------- Rate limiting --------

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip]
        if req_time > minute_ago
    ]

    if len(rate_limiter[client_ip]) >= limit:
        return False

    rate_limiter[client_ip].append(current_time)
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"
