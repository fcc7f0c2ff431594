from datetime import datetime, timezone
from io import BytesIO

from PyPDF2 import PdfReader
import pytest

from conftest import auth_headers, make_pdf
from esurat_api.services.storage import path_for_public_url
from esurat_api.utils.response import attachment_disposition


def _headers(people, key: str) -> dict[str, str]:
    return auth_headers(people[key]["token"])


def _sign_letter(api_client, people, letter_number: str) -> dict:
    """走完单审批人流程得到一份已签署公文。"""
    created = api_client.post(
        "/api/letters",
        data={"title": "Liputan Daerah", "letter_number": letter_number},
        files={"file": ("tugas.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "staff"),
    ).json()["data"]
    api_client.post(f"/api/letters/{created['id']}/submit", headers=_headers(people, "staff"))
    api_client.post(f"/api/letters/{created['id']}/approve", headers=_headers(people, "lead"))
    signed = api_client.post(
        f"/api/letters/{created['id']}/upload-signed",
        files={"file": ("ttd.pdf", make_pdf(2), "application/pdf")},
        headers=_headers(people, "chief"),
    )
    assert signed.status_code == 200, signed.text
    return signed.json()["data"]


@pytest.fixture
def signed_letter(api_client, people) -> dict:
    return _sign_letter(api_client, people, "ST/12/2026")


def _instruction_ids(api_client, people, count: int = 2) -> list[str]:
    items = api_client.get("/api/dispositions/instructions", headers=_headers(people, "chief")).json()["data"]
    return [item["id"] for item in items[:count]]


def _create_disposition(api_client, people, letter_id: str, **overrides) -> dict:
    payload = {
        "letter_id": letter_id,
        "recipient_ids": [people["staff"]["id"], people["lead"]["id"]],
        "instruction_ids": _instruction_ids(api_client, people),
        "urgency": "SEGERA",
        "notes": "Segera ditindaklanjuti",
        **overrides,
    }
    response = api_client.post("/api/dispositions", json=payload, headers=_headers(people, "chief"))
    assert response.status_code == 200, response.text
    return response.json()["data"]


def test_instructions_are_seeded_in_order(api_client, people):
    items = api_client.get("/api/dispositions/instructions", headers=_headers(people, "staff")).json()["data"]

    assert len(items) == 15
    assert items[0]["name"] == "Diteliti / diselesaikan"
    assert [item["sort_order"] for item in items] == sorted(item["sort_order"] for item in items)


def test_disposition_requires_signed_letter(api_client, people):
    draft = api_client.post(
        "/api/letters",
        data={"title": "Draf", "letter_number": "D/1"},
        files={"file": ("d.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "staff"),
    ).json()["data"]

    response = api_client.post(
        "/api/dispositions",
        json={
            "letter_id": draft["id"],
            "recipient_ids": [people["staff"]["id"]],
            "instruction_ids": _instruction_ids(api_client, people),
        },
        headers=_headers(people, "chief"),
    )

    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Hanya surat yang sudah ditandatangani yang dapat didisposisikan"


def test_disposition_create_validates_lists(api_client, people, signed_letter):
    response = api_client.post(
        "/api/dispositions",
        json={"letter_id": signed_letter["id"], "recipient_ids": [], "instruction_ids": []},
        headers=_headers(people, "chief"),
    )

    assert response.status_code == 422
    assert response.json()["error"]["message"] == "Pilih minimal satu penerima disposisi"


def test_disposition_number_sheet_and_bundle(api_client, people, signed_letter):
    disposition = _create_disposition(api_client, people, signed_letter["id"])
    assert disposition["status"] == "PENDING_NUMBER"
    assert disposition["number"] is None
    assert disposition["letter"]["letter_number"] == "ST/12/2026"
    assert len(disposition["recipients"]) == 2

    no_sheet = api_client.get(f"/api/letters/{signed_letter['id']}/bundle", headers=_headers(people, "staff"))
    assert no_sheet.status_code == 404

    pending = api_client.get("/api/dispositions/pending-number", headers=_headers(people, "admin")).json()["data"]
    assert [item["id"] for item in pending] == [disposition["id"]]

    suggested = api_client.get("/api/dispositions/next-number", headers=_headers(people, "admin")).json()["data"]
    year = datetime.now(timezone.utc).year
    assert suggested["number"] == f"DISP/{year}/0001"

    numbered = api_client.post(
        f"/api/dispositions/{disposition['id']}/number",
        json={"number": suggested["number"]},
        headers=_headers(people, "admin"),
    )
    assert numbered.status_code == 200, numbered.text
    body = numbered.json()["data"]
    assert body["status"] == "PENDING_SIGN"
    assert body["file_draft"].startswith("/api/uploads/dispositions/drafts/disposition-DISP-")

    following = api_client.get("/api/dispositions/next-number", headers=_headers(people, "admin")).json()["data"]
    assert following["number"] == f"DISP/{year}/0002"

    redirect = api_client.get(
        f"/api/dispositions/{disposition['id']}/pdf",
        headers=_headers(people, "staff"),
        follow_redirects=False,
    )
    assert redirect.status_code == 307
    assert redirect.headers["location"] == f"http://esurat.test{body['file_draft']}"

    sheet = api_client.get(body["file_draft"])
    sheet_pages = len(PdfReader(BytesIO(sheet.content)).pages)
    assert sheet_pages >= 1

    bundle = api_client.get(f"/api/letters/{signed_letter['id']}/bundle", headers=_headers(people, "staff"))
    assert bundle.status_code == 200
    assert bundle.headers["content-type"] == "application/pdf"
    assert bundle.headers["content-disposition"] == 'attachment; filename="Bundle-ST-12-2026.pdf"'
    assert len(PdfReader(BytesIO(bundle.content)).pages) == sheet_pages + 2


def _numbered_disposition(api_client, people, letter_id: str, number: str) -> dict:
    disposition = _create_disposition(api_client, people, letter_id)
    numbered = api_client.post(
        f"/api/dispositions/{disposition['id']}/number",
        json={"number": number},
        headers=_headers(people, "admin"),
    )
    assert numbered.status_code == 200, numbered.text
    return numbered.json()["data"]


def test_bundle_with_missing_source_file_is_merge_failure(api_client, people, signed_letter):
    _numbered_disposition(api_client, people, signed_letter["id"], "DISP/HILANG/1")
    path_for_public_url(signed_letter["file_final"]).unlink()

    response = api_client.get(f"/api/letters/{signed_letter['id']}/bundle", headers=_headers(people, "staff"))

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "BUNDLE_FAILED"
    assert error["message"] == "Gagal menggabungkan dokumen"


def test_bundle_filename_with_quotes_and_non_ascii(api_client, people):
    letter = _sign_letter(api_client, people, 'ST/"Ü"/2026')
    _numbered_disposition(api_client, people, letter["id"], "DISP/NAMA/1")

    bundle = api_client.get(f"/api/letters/{letter['id']}/bundle", headers=_headers(people, "staff"))

    assert bundle.status_code == 200
    assert bundle.headers["content-disposition"] == (
        "attachment; filename=\"Bundle-ST-___-2026.pdf\"; filename*=UTF-8''Bundle-ST-%22%C3%9C%22-2026.pdf"
    )


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("Bundle-ST-12-2026.pdf", 'attachment; filename="Bundle-ST-12-2026.pdf"'),
        ("a\\b.pdf", "attachment; filename=\"a_b.pdf\"; filename*=UTF-8''a%5Cb.pdf"),
        ("Surat Ketua.pdf", 'attachment; filename="Surat Ketua.pdf"'),
    ],
)
def test_attachment_disposition(filename, expected):
    assert attachment_disposition(filename) == expected


def test_disposition_number_must_be_unique(api_client, people, signed_letter):
    first = _create_disposition(api_client, people, signed_letter["id"])
    second = _create_disposition(api_client, people, signed_letter["id"])
    headers = _headers(people, "admin")
    api_client.post(f"/api/dispositions/{first['id']}/number", json={"number": "DISP/X/1"}, headers=headers)

    response = api_client.post(f"/api/dispositions/{second['id']}/number", json={"number": "DISP/X/1"}, headers=headers)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DISPOSITION_NUMBER_CONFLICT"
    assert response.json()["error"]["message"] == "Nomor disposisi sudah digunakan"

    renumber_self = api_client.post(
        f"/api/dispositions/{first['id']}/number",
        json={"number": "DISP/X/1"},
        headers=headers,
    )
    assert renumber_self.status_code == 200


def test_set_number_requires_permission(api_client, people, signed_letter):
    disposition = _create_disposition(api_client, people, signed_letter["id"])

    response = api_client.post(
        f"/api/dispositions/{disposition['id']}/number",
        json={"number": "DISP/1"},
        headers=_headers(people, "chief"),
    )

    assert response.status_code == 403


def test_recipient_read_complete_and_stats(api_client, people, signed_letter):
    disposition = _create_disposition(api_client, people, signed_letter["id"])
    staff = _headers(people, "staff")

    mine = api_client.get("/api/dispositions/mine", headers=staff).json()["data"]
    assert [item["id"] for item in mine] == [disposition["id"]]
    assert api_client.get("/api/dispositions/stats", headers=staff).json()["data"] == {
        "pending": 1,
        "read": 0,
        "completed": 0,
        "total": 1,
    }

    read = api_client.post(f"/api/dispositions/{disposition['id']}/read", headers=staff)
    assert read.json()["data"]["status"] == "READ"
    assert read.json()["data"]["read_at"] is not None

    read_again = api_client.post(f"/api/dispositions/{disposition['id']}/read", headers=staff)
    assert read_again.status_code == 409

    completed = api_client.post(
        f"/api/dispositions/{disposition['id']}/complete",
        json={"response": "Sudah dilaksanakan"},
        headers=staff,
    )
    assert completed.json()["data"]["status"] == "COMPLETED"
    assert completed.json()["data"]["response"] == "Sudah dilaksanakan"

    again = api_client.post(f"/api/dispositions/{disposition['id']}/complete", headers=staff)
    assert again.status_code == 409
    assert again.json()["error"]["message"] == "Disposisi sudah selesai"

    done = api_client.get("/api/dispositions/mine", params={"status": "COMPLETED"}, headers=staff).json()["data"]
    assert len(done) == 1
    waiting = api_client.get("/api/dispositions/mine", params={"status": "PENDING"}, headers=staff).json()["data"]
    assert waiting == []

    lead = _headers(people, "lead")
    skipped_read = api_client.post(f"/api/dispositions/{disposition['id']}/complete", headers=lead)
    assert skipped_read.json()["data"]["read_at"] is not None


def test_non_recipient_cannot_update(api_client, people, signed_letter):
    disposition = _create_disposition(api_client, people, signed_letter["id"], recipient_ids=[people["lead"]["id"]])

    response = api_client.post(f"/api/dispositions/{disposition['id']}/read", headers=_headers(people, "staff"))

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Anda bukan penerima disposisi ini"


def test_sender_uploads_signed_sheet(api_client, people, signed_letter):
    disposition = _create_disposition(api_client, people, signed_letter["id"])

    stranger = api_client.post(
        f"/api/dispositions/{disposition['id']}/upload-signed",
        files={"file": ("s.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "staff"),
    )
    assert stranger.status_code == 403

    uploaded = api_client.post(
        f"/api/dispositions/{disposition['id']}/upload-signed",
        files={"file": ("s.pdf", make_pdf(1), "application/pdf")},
        headers=_headers(people, "chief"),
    )
    assert uploaded.status_code == 200, uploaded.text
    assert uploaded.json()["data"]["status"] == "SUBMITTED"
    assert uploaded.json()["data"]["file_signed"].startswith("/api/uploads/signed/")

    sent = api_client.get("/api/dispositions/sent", headers=_headers(people, "chief")).json()["data"]
    assert [item["status"] for item in sent] == ["SUBMITTED"]
    for_letter = api_client.get(
        f"/api/dispositions/letter/{signed_letter['id']}",
        headers=_headers(people, "staff"),
    ).json()["data"]
    assert [item["id"] for item in for_letter] == [disposition["id"]]


def test_view_all_and_eligible_recipients(api_client, people, signed_letter):
    _create_disposition(api_client, people, signed_letter["id"])

    assert api_client.get("/api/dispositions/all", headers=_headers(people, "staff")).status_code == 403
    everything = api_client.get("/api/dispositions/all", headers=_headers(people, "chief")).json()["data"]
    assert len(everything) == 1

    eligible = api_client.get("/api/dispositions/eligible-recipients", headers=_headers(people, "chief")).json()["data"]
    names = [item["name"] for item in eligible]
    assert names == sorted(names)
    assert next(item for item in eligible if item["name"] == "Sari Staf")["roles"] == ["Staff"]
