import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from passlib.exc import UnknownHashError
from passlib.hash import argon2

logger = logging.getLogger(__name__)

JWT_SECRET = os.environ.get("JWT_SECRET", "dev-secret")
JWT_ALG = os.environ.get("JWT_ALG", "HS256")
ACCESS_EXPIRE_MIN = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

def hash_password(password: str) -> str:
    return argon2.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return argon2.verify(password, password_hash)
    except (ValueError, UnknownHashError):
        # Seeded or imported accounts may carry a hash we cannot check
        return False

def create_access_token(sub: str, expires_minutes: Optional[int] = None) -> str:
    """Signed bearer token for the user's email."""
    issued = datetime.now(timezone.utc)
    expire = issued + timedelta(minutes=expires_minutes or ACCESS_EXPIRE_MIN)
    to_encode = {"sub": sub, "iat": issued, "exp": expire}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)

def decode_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        logger.debug("Rejected bearer token")
        return None
    return payload.get("sub")
