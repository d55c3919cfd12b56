"""Password hashing and bearer-token identity for the portal API."""

from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import AuthenticationError
from portal.db.session import get_db
from portal.models.user import User
from portal.services.security_guards import ensure_admin
from portal.services.user_service import get_user_by_id

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=True)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_access_token(user_id: int, role: str | None = None) -> str:
    """Sign a token whose subject is the user id; the role is informational only."""
    claims: dict[str, object] = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes),
    }
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def read_token_subject(token: str) -> int:
    """Return the user id carried by ``token``.

    Roles are always re-read from the database, never trusted from the claims.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationError(error=str(exc)) from exc
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Token inválido") from exc


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    user = get_user_by_id(db, read_token_subject(credentials.credentials))
    if user is None:
        raise AuthenticationError("Usuario no encontrado")
    if not user.is_active:
        raise AuthenticationError("Usuario inactivo")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    ensure_admin(current_user)
    return current_user
