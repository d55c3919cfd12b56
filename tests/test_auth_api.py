"""API authentication tests."""

from pathlib import Path

from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from portal.core.config import settings
from portal.core.security import get_password_hash, issue_access_token
from portal.db import session as db_session
from portal.db.base import Base
from portal.main import app
from portal.models import User


def _build_test_engine(db_file: Path) -> Engine:
    return create_engine(
        f"sqlite:///{db_file}",
        connect_args={"check_same_thread": False},
    )


def _setup_app(tmp_path: Path, monkeypatch, name: str) -> sessionmaker:
    engine = _build_test_engine(tmp_path / name)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", testing_session_local)
    monkeypatch.setattr(settings, "scheduler_enabled", False)

    with testing_session_local() as session:
        session.add_all(
            [
                User(name="Activo", email="activo@example.com", password_hash=get_password_hash("secret123")),
                User(
                    name="Inactivo",
                    email="inactivo@example.com",
                    password_hash=get_password_hash("secret123"),
                    is_active=False,
                ),
            ]
        )
        session.commit()
    return testing_session_local


def test_login_returns_token_and_me_resolves_user(tmp_path: Path, monkeypatch) -> None:
    testing_session_local = _setup_app(tmp_path, monkeypatch, "test_auth_login.db")

    with TestClient(app) as client:
        login = client.post("/api/v1/auth/login", json={"email": "Activo@Example.com ", "password": "secret123"})
        assert login.status_code == 200
        token = login.json()["access_token"]
        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert login.json()["token_type"] == "bearer"
    assert me.status_code == 200
    assert me.json()["email"] == "activo@example.com"
    assert me.json()["role"] == "CLIENT"
    with testing_session_local() as session:
        user = session.scalar(select(User).where(User.email == "activo@example.com"))
        assert user.last_login_at is not None


def test_login_rejects_bad_password_and_inactive_user(tmp_path: Path, monkeypatch) -> None:
    _setup_app(tmp_path, monkeypatch, "test_auth_rejects.db")

    with TestClient(app) as client:
        wrong = client.post("/api/v1/auth/login", json={"email": "activo@example.com", "password": "nope"})
        inactive = client.post("/api/v1/auth/login", json={"email": "inactivo@example.com", "password": "secret123"})

    assert wrong.status_code == 401
    assert wrong.json() == {"success": False, "message": "Credenciales inválidas"}
    assert inactive.status_code == 401


def test_bootstrap_admin_can_log_in(tmp_path: Path, monkeypatch) -> None:
    _setup_app(tmp_path, monkeypatch, "test_auth_admin.db")

    with TestClient(app) as client:
        login = client.post(
            "/api/v1/auth/login",
            json={"email": settings.admin_email, "password": settings.admin_password},
        )
        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})

    assert me.json()["role"] == "ADMIN"


def test_invalid_or_orphan_tokens_are_rejected(tmp_path: Path, monkeypatch) -> None:
    _setup_app(tmp_path, monkeypatch, "test_auth_tokens.db")

    with TestClient(app) as client:
        garbage = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        orphan = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {issue_access_token(9999)}"},
        )

    assert garbage.status_code == 401
    assert garbage.json()["success"] is False
    assert orphan.status_code == 401
    assert orphan.json()["message"] == "Usuario no encontrado"


def test_token_without_numeric_subject_or_for_inactive_user_is_rejected(tmp_path: Path, monkeypatch) -> None:
    testing_session_local = _setup_app(tmp_path, monkeypatch, "test_auth_subjects.db")
    with testing_session_local() as session:
        inactive_id = session.scalar(select(User.id).where(User.email == "inactivo@example.com"))
    bad_subject = jwt.encode({"sub": "abc"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    with TestClient(app) as client:
        unreadable = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {bad_subject}"})
        inactive = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {issue_access_token(inactive_id)}"},
        )

    assert unreadable.status_code == 401
    assert unreadable.json()["message"] == "Token inválido"
    assert inactive.status_code == 401
    assert inactive.json()["message"] == "Usuario inactivo"
