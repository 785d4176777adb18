"""
Session cookie and password helpers.

Passwords are stored as bcrypt hashes. The session cookie is an HS256 JWT
carrying the user id (sub), role, issue time and expiry, so the client cannot
edit the user id or role without the server secret.
"""
import time
from dataclasses import dataclass
from typing import Optional
import logging

import bcrypt
import jwt

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
BCRYPT_ROUNDS = 10
JWT_ALGORITHM = "HS256"

DEMO_USERS = [
    {"email": "agent@example.com", "password": "password123", "name": "John Smith", "role": "agent"},
    {"email": "admin@example.com", "password": "admin123", "name": "Admin User", "role": "admin"},
]

@dataclass
class Session:
    user_id: int
    issued_at: float  # seconds since epoch
    role: str

def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]

def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")

def verify_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), stored.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False

def create_session_token(user_id: int, role: str, secret: str, max_age: int, now: Optional[float] = None) -> str:
    issued = int(now if now is not None else time.time())
    claims = {"sub": str(user_id), "role": role, "iat": issued, "exp": issued + max_age}
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)

def parse_session_token(token: str, secret: str) -> Optional[Session]:
    """Decode a session cookie. Returns None if it is malformed, tampered with, or expired."""
    if not token:
        return None
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "role", "iat", "exp"]},
        )
        return Session(user_id=int(claims["sub"]), issued_at=float(claims["iat"]), role=str(claims["role"]))
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected session cookie: {e}")
        return None
    except (TypeError, ValueError):
        return None
