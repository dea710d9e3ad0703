import hashlib
import hmac
import os
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose.exceptions import ExpiredSignatureError, JWTError
from sqlmodel import Session

from ..database import get_session
from ..models.user import User
from .jwt import decode_access_token


ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 100_000
SALT_BYTES = 16


def _pbkdf2(password: str, salt: bytes, iterations: int = ITERATIONS) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str) -> str:
    salt = os.urandom(SALT_BYTES)
    return f"{ALGORITHM}${ITERATIONS}${salt.hex()}${_pbkdf2(password, salt).hex()}"


def verify_password(password: str, stored: str) -> bool:
    parts = stored.strip().split("$")
    if len(parts) != 4 or parts[0] != ALGORITHM:
        return False
    _, iterations, salt_hex, hash_hex = parts
    try:
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    return hmac.compare_digest(_pbkdf2(password, salt, rounds), expected)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Resolve the bearer token to a user; its id is the owner of every ledger call."""
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise _credentials_error("Token expired")
    except JWTError:
        raise _credentials_error("Invalid token")

    sub = payload.get("sub")
    if sub is None:
        raise _credentials_error("Invalid token: missing subject")
    try:
        user_id = uuid.UUID(str(sub))
    except ValueError:
        raise _credentials_error("Invalid token: bad subject format")

    user = session.get(User, user_id)
    if user is None:
        raise _credentials_error("User not found")
    return user
