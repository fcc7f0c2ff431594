from collections.abc import Generator
from io import BytesIO
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import esurat_api.models  # noqa: F401
from esurat_api.core.config import get_settings
from esurat_api.core.security import reset_revoked_tokens
from esurat_api.db.session import get_db
from esurat_api.main import app
from esurat_api.db.base import Base
from esurat_api.models.identity import Role, User, UserRole
from esurat_api.services.bootstrap import seed_defaults
from esurat_api.services.local_auth import hash_password

TEST_PASSWORD = "Rahasia123"


def make_pdf(pages: int = 1, pagesize: tuple[float, float] = A4) -> bytes:
    """生成指定页数的测试 PDF，默认 A4。"""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=pagesize)
    for index in range(pages):
        pdf.drawString(72, 760, f"Halaman {index + 1}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def session_factory(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("ESURAT_AUTH_JWT_SECRET", "esurat-test-secret-key-at-least-32-bytes")
    monkeypatch.setenv("ESURAT_AUTH_JWT_ALGORITHMS", "HS256")
    monkeypatch.setenv("ESURAT_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
    monkeypatch.setenv("ESURAT_UPLOAD_ROOT", str(tmp_path / "uploads"))
    monkeypatch.setenv("ESURAT_PUBLIC_BASE_URL", "http://esurat.test")
    monkeypatch.delenv("ESURAT_AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("ESURAT_AUTH_JWT_AUDIENCE", raising=False)
    get_settings.cache_clear()
    reset_revoked_tokens()

    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    with factory() as db:
        seed_defaults(db)
        db.commit()

    yield factory

    Base.metadata.drop_all(bind=engine)
    reset_revoked_tokens()
    get_settings.cache_clear()


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def api_client(session_factory) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def create_user(factory, *, name: str, email: str, roles: list[str], is_active: bool = True) -> UUID:
    """直接写库创建用户并挂载内置角色，返回用户 ID。"""
    with factory() as db:
        user = User(name=name, email=email, password_hash=hash_password(TEST_PASSWORD), is_active=is_active)
        db.add(user)
        db.flush()
        for role_name in roles:
            role = db.execute(select(Role).where(Role.name == role_name)).scalar_one()
            db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()
        return user.id


def login(client: TestClient, email: str, password: str = TEST_PASSWORD) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]["access_token"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def people(api_client, session_factory) -> dict[str, dict]:
    """内置角色各建用户并登录，返回 {key: {id, token}}。"""
    accounts = {
        "staff": ("Sari Staf", "sari@example.com", ["Staff"]),
        "lead": ("Tono Ketua", "tono@example.com", ["Ketua Tim"]),
        "lead2": ("Wati Ketua", "wati@example.com", ["Ketua Tim"]),
        "chief": ("Kepala Stasiun", "kepsta@example.com", ["Kepsta"]),
        "admin": ("Admin", "admin@example.com", ["Admin"]),
    }
    result = {}
    for key, (name, email, roles) in accounts.items():
        user_id = create_user(session_factory, name=name, email=email, roles=roles)
        result[key] = {"id": str(user_id), "token": login(api_client, email)}
    return result
