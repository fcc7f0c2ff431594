from uuid import UUID, uuid4

import pytest

from conftest import auth_headers, create_user, login
from esurat_api.models.letter import Letter


@pytest.fixture
def admin_token(api_client, session_factory) -> str:
    create_user(session_factory, name="Admin", email="admin@example.com", roles=["Admin"])
    return login(api_client, "admin@example.com")


def test_health_endpoints(api_client):
    live = api_client.get("/api/health/live")
    ready = api_client.get("/api/health/ready")

    assert live.status_code == 200
    assert live.json()["data"] == {"status": "ok"}
    assert live.headers["X-Request-Id"] == live.json()["request_id"]
    assert ready.json()["data"] == {"status": "ready"}


def test_login_me_and_logout(api_client, admin_token):
    me = api_client.get("/api/auth/me", headers=auth_headers(admin_token))
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "admin@example.com"
    assert "Admin" in me.json()["data"]["roles"]
    assert "letter.create" in me.json()["data"]["permissions"]

    logout = api_client.post("/api/auth/logout", headers=auth_headers(admin_token))
    assert logout.json()["data"] == {"revoked": True}

    after = api_client.get("/api/auth/me", headers=auth_headers(admin_token))
    assert after.status_code == 401


def test_login_rejects_wrong_password(api_client, session_factory):
    create_user(session_factory, name="Budi", email="budi@example.com", roles=["Staff"])

    response = api_client.post("/api/auth/login", json={"email": "BUDI@example.com", "password": "salah"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"
    assert response.json()["error"]["message"] == "Email atau password salah"


def test_login_rejects_inactive_user(api_client, session_factory):
    create_user(session_factory, name="Nonaktif", email="off@example.com", roles=["Staff"], is_active=False)

    response = api_client.post("/api/auth/login", json={"email": "off@example.com", "password": "Rahasia123"})

    assert response.status_code == 401


def test_category_crud_and_duplicate_code(api_client, admin_token):
    headers = auth_headers(admin_token)
    created = api_client.post(
        "/api/categories",
        json={"name": "Nota Dinas", "code": "ND", "color": "#112233"},
        headers=headers,
    )
    assert created.status_code == 200, created.text
    category_id = created.json()["data"]["id"]

    duplicate = api_client.post("/api/categories", json={"name": "Nota Lain", "code": "ND"}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "CATEGORY_CONFLICT"
    assert duplicate.json()["error"]["message"] == "Nama atau Kode kategori sudah ada"
    assert duplicate.json()["error"]["details"]["code"] == "ND"

    bad_color = api_client.post("/api/categories", json={"name": "X", "code": "X", "color": "merah"}, headers=headers)
    assert bad_color.status_code == 422
    assert bad_color.json()["error"]["message"] == "Format warna harus HEX (contoh: #FF0000)"

    updated = api_client.put(
        f"/api/categories/{category_id}",
        json={"name": "Nota Dinas Internal", "code": "NDI"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["code"] == "NDI"

    conflict = api_client.put(f"/api/categories/{category_id}", json={"name": "Memo", "code": "SK"}, headers=headers)
    assert conflict.status_code == 409
    assert conflict.json()["error"]["message"] == "Nama atau Kode kategori sudah digunakan"

    listing = api_client.get("/api/categories", headers=headers)
    assert listing.json()["data"]["can_manage"] is True
    assert any(item["code"] == "NDI" for item in listing.json()["data"]["items"])

    deleted = api_client.delete(f"/api/categories/{category_id}", headers=headers)
    assert deleted.json()["data"] == {"id": category_id, "deleted": True}


def test_category_in_use_cannot_be_deleted(api_client, admin_token, session_factory):
    headers = auth_headers(admin_token)
    category_id = api_client.post("/api/categories", json={"name": "Edaran", "code": "SE"}, headers=headers).json()[
        "data"
    ]["id"]
    me = api_client.get("/api/auth/me", headers=headers).json()["data"]

    with session_factory() as db:
        for index in range(2):
            db.add(
                Letter(
                    title=f"Surat {index}",
                    letter_number=f"SE/{index}",
                    category_id=UUID(category_id),
                    file_draft="/api/uploads/drafts/x.pdf",
                    qr_hash=str(uuid4()),
                    creator_id=UUID(me["id"]),
                )
            )
        db.commit()

    response = api_client.delete(f"/api/categories/{category_id}", headers=headers)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "CATEGORY_IN_USE"
    assert error["message"] == "Kategori sedang digunakan oleh 2 surat. Tidak dapat dihapus."
    assert error["details"]["reference_count"] == 2


def test_category_list_marks_readonly_user(api_client, session_factory):
    create_user(session_factory, name="Staf", email="staf@example.com", roles=["Staff"])
    token = login(api_client, "staf@example.com")

    listing = api_client.get("/api/categories", headers=auth_headers(token))

    assert listing.status_code == 200
    assert listing.json()["data"]["can_manage"] is False
    assert len(listing.json()["data"]["items"]) == 6


def test_archive_code_crud(api_client, admin_token):
    headers = auth_headers(admin_token)
    created = api_client.post("/api/archive-codes", json={"code": "000.1", "name": "Umum"}, headers=headers)
    assert created.status_code == 200
    code_id = created.json()["data"]["id"]

    duplicate = api_client.post("/api/archive-codes", json={"code": "000.1"}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["message"] == "Kode arsip sudah ada"
    assert duplicate.json()["error"]["details"]["code"] == "000.1"

    api_client.post("/api/archive-codes", json={"code": "000.2"}, headers=headers)
    conflict = api_client.put(f"/api/archive-codes/{code_id}", json={"code": "000.2"}, headers=headers)
    assert conflict.status_code == 409
    assert conflict.json()["error"]["message"] == "Kode arsip sudah digunakan"

    blank = api_client.post("/api/archive-codes", json={"code": "  "}, headers=headers)
    assert blank.status_code == 422
    assert blank.json()["error"]["message"] == "Kode harus diisi"

    listing = api_client.get("/api/archive-codes", headers=headers).json()["data"]
    assert [item["code"] for item in listing["items"]] == ["000.1", "000.2"]

    assert api_client.delete(f"/api/archive-codes/{code_id}", headers=headers).status_code == 200
    missing = api_client.delete(f"/api/archive-codes/{code_id}", headers=headers)
    assert missing.status_code == 404


def test_template_upload_and_delete(api_client, admin_token, pdf_factory):
    headers = auth_headers(admin_token)

    missing_file = api_client.post("/api/templates", data={"title": "Kosong"}, headers=headers)
    assert missing_file.status_code == 422
    assert missing_file.json()["error"]["message"] == "File template harus diunggah"

    wrong_type = api_client.post(
        "/api/templates",
        data={"title": "Gambar"},
        files={"file": ("a.png", b"\x89PNG", "image/png")},
        headers=headers,
    )
    assert wrong_type.status_code == 422
    assert wrong_type.json()["error"]["message"] == "Format file harus PDF atau Word (.doc, .docx)"

    created = api_client.post(
        "/api/templates",
        data={"title": "Template SK", "description": "Format baku"},
        files={"file": ("sk.pdf", pdf_factory(1), "application/pdf")},
        headers=headers,
    )
    assert created.status_code == 200, created.text
    template = created.json()["data"]
    assert template["file_type"] == "PDF"
    assert template["uploader_name"] == "Admin"

    served = api_client.get(template["file_url"])
    assert served.status_code == 200
    assert served.headers["content-type"] == "application/pdf"
    assert served.headers["cache-control"] == "public, max-age=3600"

    docx = api_client.post(
        "/api/templates",
        data={"title": "Template Memo"},
        files={"file": ("memo.docx", b"PK\x03\x04", "application/octet-stream")},
        headers=headers,
    )
    assert docx.json()["data"]["file_type"] == "DOCX"

    deleted = api_client.delete(f"/api/templates/{template['id']}", headers=headers)
    assert deleted.status_code == 200
    assert api_client.get(template["file_url"]).status_code == 404


def test_uploads_rejects_path_outside_root(api_client):
    response = api_client.get("/api/uploads//etc/passwd")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_PATH"


def test_roles_and_permissions(api_client, admin_token):
    headers = auth_headers(admin_token)
    permissions = api_client.get("/api/roles/permissions", headers=headers).json()["data"]
    view_ids = [item["id"] for item in permissions if item["name"] in {"letter.view", "category.view"}]

    created = api_client.post(
        "/api/roles",
        json={"name": "Arsiparis", "description": "Pengelola arsip", "permission_ids": view_ids},
        headers=headers,
    )
    assert created.status_code == 200
    role = created.json()["data"]
    assert role["is_system"] is False
    assert sorted(item["name"] for item in role["permissions"]) == ["category.view", "letter.view"]

    duplicate = api_client.post("/api/roles", json={"name": "Arsiparis"}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["message"] == "Nama role sudah digunakan"

    roles = api_client.get("/api/roles", headers=headers).json()["data"]
    admin_role = next(item for item in roles if item["name"] == "Admin")
    assert admin_role["user_count"] == 1

    locked = api_client.put(f"/api/roles/{admin_role['id']}", json={"name": "Root"}, headers=headers)
    assert locked.status_code == 409
    assert locked.json()["error"]["message"] == "Role sistem tidak dapat diubah"
    locked_delete = api_client.delete(f"/api/roles/{admin_role['id']}", headers=headers)
    assert locked_delete.json()["error"]["message"] == "Role sistem tidak dapat dihapus"

    updated = api_client.put(f"/api/roles/{role['id']}", json={"permission_ids": []}, headers=headers)
    assert updated.json()["data"]["permissions"] == []

    assert api_client.delete(f"/api/roles/{role['id']}", headers=headers).status_code == 200
    assert api_client.get(f"/api/roles/{role['id']}", headers=headers).status_code == 404


def test_user_management(api_client, admin_token):
    headers = auth_headers(admin_token)
    roles = api_client.get("/api/roles", headers=headers).json()["data"]
    staff_role = next(item for item in roles if item["name"] == "Staff")

    created = api_client.post(
        "/api/users",
        json={"name": "Dewi", "email": "Dewi@Example.com", "password": "rahasia1", "role_ids": [staff_role["id"]]},
        headers=headers,
    )
    assert created.status_code == 200, created.text
    user = created.json()["data"]
    assert user["email"] == "dewi@example.com"
    assert [item["name"] for item in user["roles"]] == ["Staff"]

    duplicate = api_client.post(
        "/api/users",
        json={"name": "Dewi 2", "email": "dewi@example.com", "password": "rahasia1"},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["message"] == "Email sudah digunakan"

    short = api_client.post(
        "/api/users",
        json={"name": "Eko", "email": "eko@example.com", "password": "123"},
        headers=headers,
    )
    assert short.status_code == 422
    assert short.json()["error"]["message"] == "Password minimal 6 karakter"

    updated = api_client.put(
        f"/api/users/{user['id']}",
        json={"name": "Dewi Lestari", "password": "baru12345", "role_ids": []},
        headers=headers,
    )
    assert updated.json()["data"]["name"] == "Dewi Lestari"
    assert updated.json()["data"]["roles"] == []
    assert login(api_client, "dewi@example.com", "baru12345")

    me = api_client.get("/api/auth/me", headers=headers).json()["data"]
    self_delete = api_client.delete(f"/api/users/{me['id']}", headers=headers)
    assert self_delete.status_code == 409
    assert self_delete.json()["error"]["message"] == "Tidak dapat menghapus akun sendiri"

    assert api_client.delete(f"/api/users/{user['id']}", headers=headers).status_code == 200
    assert api_client.get(f"/api/users/{user['id']}", headers=headers).status_code == 404


def test_settings_read_and_update(api_client, admin_token):
    headers = auth_headers(admin_token)

    current = api_client.get("/api/settings", headers=headers).json()["data"]["settings"]
    assert current["qr_default_size"] == 100

    updated = api_client.put("/api/settings", json={"values": {"qr.default_size": 150}}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["settings"]["qr_default_size"] == 150
    assert updated.json()["data"]["changed_keys"] == ["qr.default_size"]

    unknown = api_client.put("/api/settings", json={"values": {"foo": "bar"}}, headers=headers)
    assert unknown.status_code == 422
    assert unknown.json()["error"]["message"] == "Pengaturan tidak dikenal: foo"

    overflow = api_client.put("/api/settings", json={"values": {"qr.default_size": "1e999"}}, headers=headers)
    assert overflow.status_code == 422
    assert overflow.json()["error"]["message"] == "Nilai qr.default_size harus berupa angka"

    wa = api_client.put(
        "/api/settings/whatsapp",
        json={"api_url": "http://wa.local", "api_key": "k-1"},
        headers=headers,
    )
    assert sorted(wa.json()["data"]["changed_keys"]) == ["wa.api_key", "wa.api_url"]
    stored = api_client.get("/api/settings/whatsapp", headers=headers).json()["data"]
    assert stored == {"api_url": "http://wa.local", "session": "default", "api_key": "k-1"}


def test_settings_require_permission(api_client, session_factory):
    create_user(session_factory, name="Staf", email="staf@example.com", roles=["Staff"])
    token = login(api_client, "staf@example.com")

    assert api_client.get("/api/settings", headers=auth_headers(token)).status_code == 403
