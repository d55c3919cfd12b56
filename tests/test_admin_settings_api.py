"""Admin settings endpoint tests, including scheduler resync."""

from pathlib import Path

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from portal.core.config import settings
from portal.core.security import get_password_hash
from portal.db import session as db_session
from portal.db.base import Base
from portal.db.session import enable_sqlite_foreign_keys
from portal.main import app
from portal.models import AdminSetting, AuditLog, User


def _build_test_engine(db_file: Path) -> Engine:
    return enable_sqlite_foreign_keys(
        create_engine(
            f"sqlite:///{db_file}",
            connect_args={"check_same_thread": False},
        )
    )


def _setup_app(tmp_path: Path, monkeypatch, name: str) -> sessionmaker:
    engine = _build_test_engine(tmp_path / name)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", testing_session_local)
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    monkeypatch.setattr(settings, "default_order_time_limit", "18:00")

    with testing_session_local() as session:
        session.add(
            User(name="Cliente", email="client@example.com", password_hash=get_password_hash("secret123"), role="CLIENT")
        )
        session.commit()
    return testing_session_local


def _login(client: TestClient, email: str, password: str) -> dict[str, str]:
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_clients_only_see_the_cutoff(tmp_path: Path, monkeypatch) -> None:
    _setup_app(tmp_path, monkeypatch, "test_admin_settings_client_view.db")

    with TestClient(app) as client:
        client_headers = _login(client, "client@example.com", "secret123")
        admin_headers = _login(client, settings.admin_email, settings.admin_password)

        client_view = client.get("/api/v1/admin/settings", headers=client_headers)
        admin_view = client.get("/api/v1/admin/settings", headers=admin_headers)

    assert client_view.json()["data"] == {"orderTimeLimit": "18:00"}
    assert admin_view.json()["data"]["orderTimeLimit"] == "18:00"
    assert "homeBannerImageUrl" in admin_view.json()["data"]
    assert "updatedAt" in admin_view.json()["data"]


def test_update_settings_requires_admin_and_valid_time(tmp_path: Path, monkeypatch) -> None:
    testing_session_local = _setup_app(tmp_path, monkeypatch, "test_admin_settings_validation.db")

    with TestClient(app) as client:
        client_headers = _login(client, "client@example.com", "secret123")
        admin_headers = _login(client, settings.admin_email, settings.admin_password)

        forbidden = client.put("/api/v1/admin/settings", json={"orderTimeLimit": "09:00"}, headers=client_headers)
        malformed = client.put("/api/v1/admin/settings", json={"orderTimeLimit": "9am"}, headers=admin_headers)
        missing = client.put("/api/v1/admin/settings", json={}, headers=admin_headers)

    assert forbidden.status_code == 403
    assert malformed.status_code == 400
    assert malformed.json()["success"] is False
    assert missing.status_code == 400
    with testing_session_local() as session:
        assert session.scalar(select(AdminSetting.order_time_limit)) == "18:00"


def test_update_settings_reschedules_status_task(tmp_path: Path, monkeypatch) -> None:
    testing_session_local = _setup_app(tmp_path, monkeypatch, "test_admin_settings_reschedule.db")

    with TestClient(app) as client:
        admin_headers = _login(client, settings.admin_email, settings.admin_password)
        scheduler = app.state.order_scheduler
        assert scheduler.order_time_limit == "18:00"

        response = client.put(
            "/api/v1/admin/settings",
            json={"orderTimeLimit": "09:00", "homeBannerImageUrl": "https://cdn.example.com/banner.png"},
            headers=admin_headers,
        )
        state = client.get("/api/v1/admin/scheduler", headers=admin_headers).json()["data"]

        assert response.status_code == 200
        assert response.json()["data"]["orderTimeLimit"] == "09:00"
        assert response.json()["data"]["homeBannerImageUrl"] == "https://cdn.example.com/banner.png"
        assert scheduler.order_time_limit == "09:00"
        assert len(scheduler.runner.active_tasks) == 1
        assert state["activeTasks"] == 1
        assert state["cronExpression"] == "5 9 * * 1,2,3,4,5"

    with testing_session_local() as session:
        audit = session.scalar(select(AuditLog).where(AuditLog.action_type == "SETTINGS_UPDATED"))
        assert audit.before_snapshot == {"orderTimeLimit": "18:00"}
        assert audit.after_snapshot == {"orderTimeLimit": "09:00"}
