import base64
from io import BytesIO
import json

from PIL import Image
from PyPDF2 import PdfReader

from conftest import auth_headers, login, make_pdf


def _headers(people, key: str) -> dict[str, str]:
    return auth_headers(people[key]["token"])


def _create_letter(api_client, people, *, pages: int = 2, **fields) -> dict:
    data = {"title": "Undangan Rapat", "letter_number": "UND/001/2026", **fields}
    response = api_client.post(
        "/api/letters",
        data=data,
        files={"file": ("undangan.pdf", make_pdf(pages), "application/pdf")},
        headers=_headers(people, "staff"),
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


def _signature_png() -> str:
    buffer = BytesIO()
    Image.new("RGBA", (40, 20), (0, 0, 255, 255)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


def _other_staff_token(api_client, people) -> str:
    """由管理员经接口创建一名与现有公文无关的 Staff 用户。"""
    headers = _headers(people, "admin")
    roles = api_client.get("/api/roles", headers=headers).json()["data"]
    staff_role = next(item for item in roles if item["name"] == "Staff")
    api_client.post(
        "/api/users",
        json={"name": "Lain", "email": "lain@example.com", "password": "rahasia1", "role_ids": [staff_role["id"]]},
        headers=headers,
    )
    return login(api_client, "lain@example.com", "rahasia1")


def _page_count(api_client, public_url: str) -> int:
    response = api_client.get(public_url)
    assert response.status_code == 200
    return len(PdfReader(BytesIO(response.content)).pages)


def test_create_letter_stores_draft(api_client, people):
    letter = _create_letter(api_client, people, description="  ", qr_page="2")

    assert letter["status"] == "DRAFT"
    assert letter["description"] is None
    assert letter["qr_page"] == 2
    assert letter["qr_size"] == 100
    assert letter["creator"]["name"] == "Sari Staf"
    assert [log["action"] for log in letter["logs"]] == ["CREATE"]
    assert _page_count(api_client, letter["file_draft"]) == 2


def test_create_letter_rejects_qr_page_beyond_document(api_client, people):
    response = api_client.post(
        "/api/letters",
        data={"title": "Memo", "letter_number": "M/1", "qr_page": "3"},
        files={"file": ("memo.pdf", make_pdf(2), "application/pdf")},
        headers=_headers(people, "staff"),
    )

    assert response.status_code == 422
    assert response.json()["error"]["message"] == "Halaman QR (3) melebihi jumlah halaman PDF (2)"


def test_create_letter_validates_fields_and_file(api_client, people):
    headers = _headers(people, "staff")

    no_title = api_client.post(
        "/api/letters",
        data={"letter_number": "M/1"},
        files={"file": ("memo.pdf", make_pdf(1), "application/pdf")},
        headers=headers,
    )
    assert no_title.status_code == 422
    assert no_title.json()["error"]["message"] == "Judul harus diisi"

    no_file = api_client.post("/api/letters", data={"title": "Memo", "letter_number": "M/1"}, headers=headers)
    assert no_file.status_code == 422
    assert no_file.json()["error"]["message"] == "File PDF harus diunggah"

    not_pdf = api_client.post(
        "/api/letters",
        data={"title": "Memo", "letter_number": "M/1"},
        files={"file": ("memo.pdf", b"bukan pdf", "application/pdf")},
        headers=headers,
    )
    assert not_pdf.status_code == 422
    assert not_pdf.json()["error"]["message"] == "File PDF tidak valid"

    too_many = api_client.post(
        "/api/letters",
        data={
            "title": "Memo",
            "letter_number": "M/1",
            "approvers": json.dumps([{"user_id": people["lead"]["id"]}] * 9),
        },
        files={"file": ("memo.pdf", make_pdf(1), "application/pdf")},
        headers=headers,
    )
    assert too_many.status_code == 422
    assert too_many.json()["error"]["message"] == "Maksimal 8 penyetuju"


def test_create_letter_rejects_repeated_approver(api_client, people):
    response = api_client.post(
        "/api/letters",
        data={
            "title": "Memo",
            "letter_number": "M/2",
            "approvers": json.dumps([{"user_id": people["lead"]["id"]}, {"user_id": people["lead"]["id"]}]),
        },
        files={"file": ("memo.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "staff"),
    )

    assert response.status_code == 422
    assert response.json()["error"]["message"] == "Penyetuju yang sama tidak boleh dipilih lebih dari sekali"
    listing = api_client.get("/api/letters", headers=_headers(people, "staff")).json()
    assert listing["meta"]["pagination"]["total"] == 0


def test_create_letter_requires_permission(api_client, people):
    response = api_client.post(
        "/api/letters",
        data={"title": "Memo", "letter_number": "M/1"},
        files={"file": ("memo.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "lead"),
    )

    assert response.status_code == 403


def test_single_approver_workflow_until_signed(api_client, people):
    letter = _create_letter(api_client, people, assigned_approver_id=people["lead"]["id"])
    letter_id = letter["id"]

    verify_draft = api_client.get(f"/api/letters/verify/{letter['qr_hash']}")
    assert verify_draft.json()["data"]["valid"] is False

    early = api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "lead"))
    assert early.status_code == 409
    assert early.json()["error"]["code"] == "LETTER_STATE_INVALID"

    not_creator = api_client.post(f"/api/letters/{letter_id}/submit", headers=_headers(people, "lead"))
    assert not_creator.status_code == 403

    submitted = api_client.post(f"/api/letters/{letter_id}/submit", headers=_headers(people, "staff"))
    assert submitted.json()["data"]["status"] == "PENDING_APPROVAL"
    assert submitted.json()["data"]["submitted_at"] is not None

    wrong_approver = api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "lead2"))
    assert wrong_approver.status_code == 403
    assert wrong_approver.json()["error"]["message"] == "Anda bukan pejabat yang ditunjuk untuk menyetujui surat ini"

    approved = api_client.post(
        f"/api/letters/{letter_id}/approve",
        json={"signature_image": _signature_png()},
        headers=_headers(people, "lead"),
    )
    assert approved.status_code == 200, approved.text
    body = approved.json()["data"]
    assert body["status"] == "PENDING_SIGN"
    assert body["approver"]["name"] == "Tono Ketua"
    assert body["file_stamped"].startswith("/api/uploads/stamped/stamped_")
    assert _page_count(api_client, body["file_stamped"]) == 2

    verified = api_client.get(f"/api/letters/verify/{letter['qr_hash']}").json()["data"]
    assert verified["valid"] is True
    assert verified["letter_number"] == "UND/001/2026"

    signed = api_client.post(
        f"/api/letters/{letter_id}/upload-signed",
        files={"file": ("ttd.pdf", make_pdf(2), "application/pdf")},
        headers=_headers(people, "chief"),
    )
    assert signed.status_code == 200, signed.text
    assert signed.json()["data"]["status"] == "SIGNED"
    assert signed.json()["data"]["signer"]["name"] == "Kepala Stasiun"
    assert signed.json()["data"]["file_final"].startswith("/api/uploads/signed/")

    detail = api_client.get(f"/api/letters/{letter_id}", headers=_headers(people, "staff")).json()["data"]
    assert {log["action"] for log in detail["logs"]} == {"CREATE", "SUBMIT", "APPROVE", "SIGN"}

    locked = api_client.delete(f"/api/letters/{letter_id}", headers=_headers(people, "admin"))
    assert locked.status_code == 409


def test_multi_approver_chain_is_ordered(api_client, people):
    approvers = json.dumps(
        [
            {"user_id": people["lead"]["id"], "paraf_x_percent": 0.2},
            {"user_id": people["lead2"]["id"], "paraf_x_percent": 0.5},
        ]
    )
    letter = _create_letter(api_client, people, approvers=approvers)
    letter_id = letter["id"]
    assert [item["order"] for item in letter["approvers"]] == [1, 2]
    api_client.post(f"/api/letters/{letter_id}/submit", headers=_headers(people, "staff"))

    out_of_order = api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "lead2"))
    assert out_of_order.status_code == 409
    assert out_of_order.json()["error"]["code"] == "APPROVAL_ORDER_PENDING"

    outsider = api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "admin"))
    assert outsider.status_code == 403

    first = api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "lead"))
    assert first.json()["data"]["status"] == "PENDING_APPROVAL"
    first_stamped = first.json()["data"]["file_stamped"]

    again = api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "lead"))
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "ALREADY_APPROVED"

    second = api_client.post(
        f"/api/letters/{letter_id}/approve",
        json={"signature_image": _signature_png()},
        headers=_headers(people, "lead2"),
    )
    assert second.json()["data"]["status"] == "PENDING_SIGN"
    assert second.json()["data"]["file_stamped"] != first_stamped
    assert api_client.get(first_stamped).status_code == 404

    detail = api_client.get(f"/api/letters/{letter_id}", headers=_headers(people, "lead2")).json()["data"]
    assert [item["status"] for item in detail["approvers"]] == ["APPROVED", "APPROVED"]


def test_reject_requires_reason_and_turn(api_client, people):
    approvers = json.dumps([{"user_id": people["lead"]["id"]}, {"user_id": people["lead2"]["id"]}])
    letter = _create_letter(api_client, people, approvers=approvers)
    letter_id = letter["id"]
    api_client.post(f"/api/letters/{letter_id}/submit", headers=_headers(people, "staff"))

    empty = api_client.post(f"/api/letters/{letter_id}/reject", json={"reason": "  "}, headers=_headers(people, "lead"))
    assert empty.status_code == 422
    assert empty.json()["error"]["message"] == "Alasan penolakan harus diisi"

    not_turn = api_client.post(
        f"/api/letters/{letter_id}/reject",
        json={"reason": "Belum lengkap"},
        headers=_headers(people, "lead2"),
    )
    assert not_turn.status_code == 403

    rejected = api_client.post(
        f"/api/letters/{letter_id}/reject",
        json={"reason": "Lampiran kurang"},
        headers=_headers(people, "lead"),
    )
    assert rejected.json()["data"]["status"] == "REJECTED"
    assert rejected.json()["data"]["rejection_reason"] == "Lampiran kurang"

    deleted = api_client.delete(f"/api/letters/{letter_id}", headers=_headers(people, "admin"))
    assert deleted.status_code == 200
    assert api_client.get(letter["file_draft"]).status_code == 404
    assert api_client.get(f"/api/letters/{letter_id}", headers=_headers(people, "admin")).status_code == 404


def test_signer_can_reject_pending_sign(api_client, people):
    letter = _create_letter(api_client, people, assigned_signer_id=people["chief"]["id"])
    letter_id = letter["id"]
    api_client.post(f"/api/letters/{letter_id}/submit", headers=_headers(people, "staff"))
    api_client.post(f"/api/letters/{letter_id}/approve", headers=_headers(people, "lead"))

    wrong_signer = api_client.post(
        f"/api/letters/{letter_id}/upload-signed",
        files={"file": ("ttd.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "admin"),
    )
    assert wrong_signer.status_code == 403

    rejected = api_client.post(
        f"/api/letters/{letter_id}/reject",
        json={"reason": "Salah tanggal"},
        headers=_headers(people, "chief"),
    )
    assert rejected.status_code == 200
    assert rejected.json()["data"]["status"] == "REJECTED"


def test_letter_list_scopes_and_filters(api_client, people):
    _create_letter(api_client, people, title="Undangan Rapat")
    _create_letter(api_client, people, title="Surat Tugas Liputan", letter_number="ST/9/2026")

    mine = api_client.get("/api/letters", params={"limit": 1}, headers=_headers(people, "staff")).json()
    assert len(mine["data"]) == 1
    assert mine["meta"]["pagination"] == {"page": 1, "limit": 1, "total": 2, "total_pages": 2}

    found = api_client.get("/api/letters", params={"search": "ST/9"}, headers=_headers(people, "staff")).json()
    assert [item["title"] for item in found["data"]] == ["Surat Tugas Liputan"]

    signed_only = api_client.get("/api/letters", params={"status": "SIGNED"}, headers=_headers(people, "staff")).json()
    assert signed_only["data"] == []

    other = _other_staff_token(api_client, people)
    assert api_client.get("/api/letters", headers=auth_headers(other)).json()["meta"]["pagination"]["total"] == 0

    overview = api_client.get("/api/letters", headers=_headers(people, "lead")).json()
    assert overview["meta"]["pagination"]["total"] == 2


def test_letter_detail_hidden_from_unrelated_user(api_client, people):
    letter = _create_letter(api_client, people)
    other = _other_staff_token(api_client, people)

    response = api_client.get(f"/api/letters/{letter['id']}", headers=auth_headers(other))

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Anda tidak memiliki akses untuk surat ini"


def test_verify_unknown_hash(api_client):
    response = api_client.get("/api/letters/verify/tidak-ada")

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Dokumen tidak ditemukan"


def test_user_referenced_by_letter_cannot_be_deleted(api_client, people):
    letter = _create_letter(api_client, people)
    admin = _headers(people, "admin")

    blocked = api_client.delete(f"/api/users/{people['staff']['id']}", headers=admin)

    assert blocked.status_code == 409
    assert blocked.json()["error"]["code"] == "USER_IN_USE"
    assert blocked.json()["error"]["details"]["reference_count"] == 1
    detail = api_client.get(f"/api/letters/{letter['id']}", headers=_headers(people, "staff")).json()["data"]
    assert detail["creator"]["name"] == "Sari Staf"

    unreferenced = api_client.delete(f"/api/users/{people['lead2']['id']}", headers=admin)
    assert unreferenced.status_code == 200
