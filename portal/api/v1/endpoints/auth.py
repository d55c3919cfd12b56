"""Authentication endpoints (API JWT)."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from portal.core.security import get_current_user, issue_access_token
from portal.db.session import get_db
from portal.models.user import User
from portal.schemas.auth import AuthUserResponse, LoginRequest, TokenResponse
from portal.services.account_service import authenticate_user

router: APIRouter = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    user: User | None = authenticate_user(db, payload.email, payload.password)
    if user is None:
        logger.info("[AUTH] Failed login attempt for email=%s", payload.email.strip().lower())
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciales inválidas")
    return TokenResponse(access_token=issue_access_token(user.id, user.role))


@router.get("/me", response_model=AuthUserResponse)
def me(current_user: User = Depends(get_current_user)) -> AuthUserResponse:
    return AuthUserResponse.model_validate(current_user)
