from conftest import auth_headers, create_user, make_pdf


def _headers(people, key: str) -> dict[str, str]:
    return auth_headers(people[key]["token"])


def test_approver_and_signer_options(api_client, people, session_factory):
    create_user(session_factory, name="Budi Nonaktif", email="budi@example.com", roles=["Ketua Tim"], is_active=False)
    staff = _headers(people, "staff")

    approvers = api_client.get("/api/users/approvers", headers=staff)
    assert approvers.status_code == 200
    assert [(item["name"], item["role"]) for item in approvers.json()["data"]] == [
        ("Admin", "Admin"),
        ("Tono Ketua", "Ketua Tim"),
        ("Wati Ketua", "Ketua Tim"),
    ]

    signers = api_client.get("/api/users/signers", headers=staff).json()["data"]
    assert [item["name"] for item in signers] == ["Admin", "Kepala Stasiun"]
    assert signers[1]["email"] == "kepsta@example.com"

    assert api_client.get("/api/users/approvers").status_code == 401


def test_activity_log_listing_and_search(api_client, people):
    api_client.post(
        "/api/letters",
        data={"title": "Undangan Rapat", "letter_number": "UND/7/2026"},
        files={"file": ("u.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "staff"),
    )
    admin = _headers(people, "admin")

    page = api_client.get("/api/activity-logs", params={"limit": 2}, headers=admin).json()
    assert len(page["data"]) == 2
    assert page["meta"]["pagination"]["total"] == 6
    assert page["data"][0]["action"] == "CREATE"

    created = api_client.get("/api/activity-logs", params={"q": "membuat surat"}, headers=admin).json()["data"]
    assert len(created) == 1
    assert created[0]["description"] == "Membuat surat draft: Undangan Rapat"
    assert created[0]["user"] == {"name": "Sari Staf", "email": "sari@example.com"}
    assert created[0]["letter_id"] is not None

    by_user = api_client.get("/api/activity-logs", params={"q": "Tono"}, headers=admin).json()["data"]
    assert [item["action"] for item in by_user] == ["LOGIN"]

    forbidden = api_client.get("/api/activity-logs", headers=_headers(people, "staff"))
    assert forbidden.status_code == 403


def test_team_crud_and_membership(api_client, people):
    admin = _headers(people, "admin")

    created = api_client.post(
        "/api/teams",
        json={"name": "Tim Pemberitaan", "description": "  "},
        headers=admin,
    )
    assert created.status_code == 200, created.text
    team = created.json()["data"]
    assert team["description"] is None
    assert team["member_count"] == 0

    duplicate = api_client.post("/api/teams", json={"name": "Tim Pemberitaan"}, headers=admin)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["message"] == "Nama tim sudah digunakan"

    blank = api_client.post("/api/teams", json={"name": " "}, headers=admin)
    assert blank.status_code == 422
    assert blank.json()["error"]["message"] == "Nama tim harus diisi"

    added = api_client.post(
        f"/api/teams/{team['id']}/members",
        json={"user_id": people["lead"]["id"], "role": "LEADER"},
        headers=admin,
    )
    assert added.status_code == 200, added.text
    api_client.post(f"/api/teams/{team['id']}/members", json={"user_id": people["staff"]["id"]}, headers=admin)

    again = api_client.post(f"/api/teams/{team['id']}/members", json={"user_id": people["lead"]["id"]}, headers=admin)
    assert again.status_code == 409
    assert again.json()["error"]["message"] == "Pengguna sudah menjadi anggota tim ini"

    detail = api_client.get(f"/api/teams/{team['id']}", headers=admin).json()["data"]
    assert detail["member_count"] == 2
    assert [(item["name"], item["role"]) for item in detail["members"]] == [
        ("Tono Ketua", "LEADER"),
        ("Sari Staf", "MEMBER"),
    ]

    available = api_client.get(f"/api/teams/{team['id']}/available-users", headers=admin).json()["data"]
    assert [item["name"] for item in available] == ["Admin", "Kepala Stasiun", "Wati Ketua"]

    promoted = api_client.put(
        f"/api/teams/{team['id']}/members/{people['staff']['id']}",
        json={"role": "LEADER"},
        headers=admin,
    )
    assert {item["role"] for item in promoted.json()["data"]["members"]} == {"LEADER"}

    removed = api_client.delete(f"/api/teams/{team['id']}/members/{people['lead']['id']}", headers=admin)
    assert [item["name"] for item in removed.json()["data"]["members"]] == ["Sari Staf"]
    missing = api_client.delete(f"/api/teams/{team['id']}/members/{people['lead']['id']}", headers=admin)
    assert missing.status_code == 404

    renamed = api_client.put(
        f"/api/teams/{team['id']}",
        json={"name": "Tim Produksi", "is_active": False},
        headers=admin,
    ).json()["data"]
    assert renamed["name"] == "Tim Produksi"
    assert renamed["is_active"] is False

    listing = api_client.get("/api/teams", headers=admin).json()["data"]
    assert [item["name"] for item in listing] == ["Tim Produksi"]

    deleted = api_client.delete(f"/api/teams/{team['id']}", headers=admin)
    assert deleted.json()["data"] == {"id": team["id"], "deleted": True}
    assert api_client.get(f"/api/teams/{team['id']}", headers=admin).status_code == 404


def test_team_management_requires_user_permissions(api_client, people):
    staff = _headers(people, "staff")

    assert api_client.get("/api/teams", headers=staff).status_code == 403
    assert api_client.post("/api/teams", json={"name": "Tim Liar"}, headers=staff).status_code == 403
