"""公文流转服务。

状态机：DRAFT → PENDING_APPROVAL →（按顺序逐级审批）→ PENDING_SIGN → SIGNED。
审批或签署阶段可被驳回为 REJECTED。

审批链有两种形态：
1. 多级审批：letter_approvers 中按 order 排序的 1-8 个审批人，必须依次审批。
2. 单审批人：没有审批链时使用 letters.assigned_approver_id（为空表示任何有审批权限的人）。
"""

from datetime import datetime, timezone
import logging
from pathlib import PurePosixPath
from uuid import UUID, uuid4

from fastapi import Request, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from esurat_api.core.config import get_settings
from esurat_api.core.security import AuthenticatedPrincipal
from esurat_api.exceptions import api_error, bad_request, forbidden, invalid, not_found, upload_rejected
from esurat_api.models.disposition import Disposition
from esurat_api.models.enums import (
    DELETABLE_LETTER_STATUSES,
    VERIFIABLE_LETTER_STATUSES,
    ApproverStatus,
    LetterStatus,
    StampType,
)
from esurat_api.models.identity import User
from esurat_api.models.letter import Letter, LetterApprover, LetterCategory
from esurat_api.models.system import ActivityLog
from esurat_api.schemas.letter import LetterCreateRequest
from esurat_api.services.activity import activity_log
from esurat_api.services.pdf import StampConfig, get_pdf_page_count, is_valid_pdf, merge_pdfs, stamp_document
from esurat_api.services.permissions import PermissionAction, ensure_permission
from esurat_api.services.qr import verification_url
from esurat_api.services.storage import (
    UnsafePathError,
    UploadArea,
    UploadRejected,
    delete_file,
    read_public_file,
    save_buffer,
    save_upload,
    validate_upload,
)
from esurat_api.services.system_settings import load_system_settings

logger = logging.getLogger(__name__)

NO_ACCESS_MESSAGE = "Anda tidak memiliki akses untuk surat ini"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _state_error(message: str):
    return api_error(status.HTTP_409_CONFLICT, "LETTER_STATE_INVALID", message)


def get_letter_or_404(db: Session, letter_id: UUID) -> Letter:
    letter = db.get(Letter, letter_id)
    if not letter:
        raise not_found("LETTER_NOT_FOUND", "Surat tidak ditemukan")
    return letter


def list_letter_approvers(db: Session, letter_id: UUID) -> list[LetterApprover]:
    """按审批顺序返回审批链。"""
    stmt = select(LetterApprover).where(LetterApprover.letter_id == letter_id).order_by(LetterApprover.order.asc())
    return list(db.execute(stmt).scalars().all())


def can_access_letter(db: Session, letter: Letter, *, user_id: UUID, can_view_all: bool) -> bool:
    """查看全部权限，或本人是创建人、指定审批人、签署人、审批链成员之一。"""
    if can_view_all:
        return True
    if user_id in (letter.creator_id, letter.assigned_approver_id, letter.assigned_signer_id):
        return True
    stmt = (
        select(func.count())
        .select_from(LetterApprover)
        .where(LetterApprover.letter_id == letter.id)
        .where(LetterApprover.user_id == user_id)
    )
    return (db.execute(stmt).scalar_one() or 0) > 0


def ensure_letter_access(db: Session, letter: Letter, principal: AuthenticatedPrincipal, user_id: UUID) -> None:
    can_view_all = PermissionAction.LETTER_VIEW_ALL in principal.permissions
    if not can_access_letter(db, letter, user_id=user_id, can_view_all=can_view_all):
        raise forbidden(NO_ACCESS_MESSAGE)


def validate_pdf_upload(db: Session, *, content: bytes, filename: str | None, content_type: str | None) -> None:
    max_size = load_system_settings(db).upload_max_size
    try:
        validate_upload(filename=filename, content_type=content_type, size=len(content), max_size=max_size)
    except UploadRejected as exc:
        raise upload_rejected(exc) from exc
    if not is_valid_pdf(content):
        raise invalid("File PDF tidak valid")


def create_letter(
    db: Session,
    request: Request | None,
    *,
    user_id: UUID,
    payload: LetterCreateRequest,
    content: bytes,
    filename: str | None,
    content_type: str | None,
) -> Letter:
    """保存草稿文件并创建 DRAFT 公文及其审批链。"""
    if not content:
        raise invalid("File PDF harus diunggah")
    validate_pdf_upload(db, content=content, filename=filename, content_type=content_type)

    page_count = get_pdf_page_count(content)
    if payload.qr_page > page_count:
        raise invalid(f"Halaman QR ({payload.qr_page}) melebihi jumlah halaman PDF ({page_count})")

    if payload.category_id is not None and db.get(LetterCategory, payload.category_id) is None:
        raise not_found("CATEGORY_NOT_FOUND", "Kategori tidak ditemukan")

    approver_ids = [item.user_id for item in payload.approvers]
    if len(set(approver_ids)) != len(approver_ids):
        raise invalid("Penyetuju yang sama tidak boleh dipilih lebih dari sekali")
    if approver_ids:
        found = db.execute(select(func.count()).select_from(User).where(User.id.in_(approver_ids))).scalar_one()
        if found != len(approver_ids):
            raise invalid("Beberapa penyetuju tidak valid")

    qr_size = payload.qr_size or load_system_settings(db).qr_default_size
    stored = save_upload(content, UploadArea.DRAFTS, filename)

    letter = Letter(
        title=payload.title,
        description=payload.description,
        letter_number=payload.letter_number,
        category_id=payload.category_id,
        priority=payload.priority,
        security_level=payload.security_level,
        status=LetterStatus.DRAFT,
        file_draft=stored.public_url,
        qr_hash=str(uuid4()),
        qr_page=payload.qr_page,
        qr_x_percent=payload.qr_x_percent,
        qr_y_percent=payload.qr_y_percent,
        qr_size=qr_size,
        paraf_page=payload.paraf_page,
        paraf_x_percent=payload.paraf_x_percent,
        paraf_y_percent=payload.paraf_y_percent,
        paraf_size=payload.paraf_size,
        creator_id=user_id,
        assigned_approver_id=payload.assigned_approver_id,
        assigned_signer_id=payload.assigned_signer_id,
    )
    db.add(letter)
    db.flush()

    for index, item in enumerate(payload.approvers, start=1):
        db.add(
            LetterApprover(
                letter_id=letter.id,
                user_id=item.user_id,
                order=index,
                status=ApproverStatus.PENDING,
                paraf_page=item.paraf_page or payload.paraf_page,
                paraf_x_percent=item.paraf_x_percent,
                paraf_y_percent=item.paraf_y_percent,
                paraf_size=item.paraf_size or payload.paraf_size,
            )
        )

    activity_log(
        db,
        request,
        action="CREATE",
        description=f"Membuat surat draft: {letter.title}",
        user_id=user_id,
        letter_id=letter.id,
    )
    db.flush()
    return letter


def submit_letter(db: Session, request: Request | None, *, letter_id: UUID, user_id: UUID) -> Letter:
    """创建人将草稿提交审批。"""
    letter = get_letter_or_404(db, letter_id)
    if letter.creator_id != user_id:
        raise forbidden(NO_ACCESS_MESSAGE)
    if letter.status != LetterStatus.DRAFT:
        raise _state_error("Hanya surat dengan status DRAFT yang dapat diajukan")

    letter.status = LetterStatus.PENDING_APPROVAL
    letter.submitted_at = _now()
    activity_log(
        db,
        request,
        action="SUBMIT",
        description=f"Mengajukan surat untuk persetujuan: {letter.title}",
        user_id=user_id,
        letter_id=letter.id,
    )
    db.flush()
    return letter


def _current_approver(approvers: list[LetterApprover], user_id: UUID) -> LetterApprover | None:
    return next((item for item in approvers if item.user_id == user_id), None)


def _has_pending_predecessor(approvers: list[LetterApprover], current: LetterApprover) -> bool:
    return any(item.order < current.order and item.status != ApproverStatus.APPROVED for item in approvers)


def approve_letter(
    db: Session,
    request: Request | None,
    *,
    letter_id: UUID,
    user_id: UUID,
    signature_image: str | None = None,
) -> Letter:
    """审批公文：首次审批盖二维码，提供签名图时在草签位置盖章。"""
    letter = get_letter_or_404(db, letter_id)
    if letter.status != LetterStatus.PENDING_APPROVAL:
        raise _state_error("Surat ini tidak dalam status menunggu persetujuan")

    approvers = list_letter_approvers(db, letter.id)
    current: LetterApprover | None = None
    if approvers:
        current = _current_approver(approvers, user_id)
        if current is None:
            raise forbidden("Anda tidak terdaftar sebagai penyetuju surat ini")
        if current.status == ApproverStatus.APPROVED:
            raise api_error(status.HTTP_409_CONFLICT, "ALREADY_APPROVED", "Anda sudah menyetujui surat ini")
        if _has_pending_predecessor(approvers, current):
            raise api_error(
                status.HTTP_409_CONFLICT,
                "APPROVAL_ORDER_PENDING",
                "Menunggu persetujuan dari pejabat sebelumnya",
            )
    elif letter.assigned_approver_id is not None and letter.assigned_approver_id != user_id:
        raise forbidden("Anda bukan pejabat yang ditunjuk untuk menyetujui surat ini")

    source_url = letter.file_stamped or letter.file_draft
    source_bytes = read_public_file(source_url)

    stamps: list[StampConfig] = []
    if not letter.file_stamped:
        stamps.append(
            StampConfig(
                page=letter.qr_page,
                x_percent=letter.qr_x_percent,
                y_percent=letter.qr_y_percent,
                size=letter.qr_size,
                type=StampType.QR,
                data=verification_url(get_settings().verify_base_url, letter.qr_hash),
            )
        )
    if signature_image:
        position = current or letter
        stamps.append(
            StampConfig(
                page=position.paraf_page,
                x_percent=position.paraf_x_percent,
                y_percent=position.paraf_y_percent,
                size=position.paraf_size,
                type=StampType.IMAGE,
                data=signature_image,
            )
        )

    result = stamp_document(source_bytes, letter.qr_hash, stamps)
    timestamp_ms = int(_now().timestamp() * 1000)
    draft_name = PurePosixPath(letter.file_draft).name
    stored = save_buffer(result.pdf_bytes, UploadArea.STAMPED, f"stamped_{timestamp_ms}_{draft_name}")

    previous_stamped = letter.file_stamped
    letter.file_stamped = stored.public_url
    if previous_stamped and previous_stamped not in (letter.file_draft, stored.public_url):
        delete_file(previous_stamped)

    now = _now()
    if current is not None:
        current.status = ApproverStatus.APPROVED
        current.approved_at = now
        if current.order == len(approvers):
            letter.status = LetterStatus.PENDING_SIGN
            letter.approved_at = now
    else:
        letter.status = LetterStatus.PENDING_SIGN
        letter.approver_id = user_id
        letter.approved_at = now

    activity_log(
        db,
        request,
        action="APPROVE",
        description=f"Menyetujui surat: {letter.title} ({letter.letter_number})",
        user_id=user_id,
        letter_id=letter.id,
        metadata={"order": current.order if current is not None else None, "stamps": len(result.placements)},
    )
    db.flush()
    return letter


def reject_letter(
    db: Session,
    request: Request | None,
    *,
    letter_id: UUID,
    principal: AuthenticatedPrincipal,
    user_id: UUID,
    reason: str,
) -> Letter:
    """在审批或签署阶段驳回公文。"""
    reason = (reason or "").strip()
    if not reason:
        raise invalid("Alasan penolakan harus diisi")

    letter = get_letter_or_404(db, letter_id)
    if letter.status == LetterStatus.PENDING_APPROVAL:
        approvers = list_letter_approvers(db, letter.id)
        current: LetterApprover | None = None
        authorized = False
        if approvers:
            current = _current_approver(approvers, user_id)
            if (
                current is not None
                and current.status == ApproverStatus.PENDING
                and not _has_pending_predecessor(approvers, current)
            ):
                authorized = True
        elif letter.assigned_approver_id == user_id:
            authorized = True

        if not authorized:
            raise forbidden("Anda tidak memiliki hak akses untuk menolak surat ini saat ini")
        if current is not None:
            current.status = ApproverStatus.REJECTED
            current.notes = reason
    elif letter.status == LetterStatus.PENDING_SIGN:
        if letter.assigned_signer_id is not None and letter.assigned_signer_id != user_id:
            raise forbidden("Anda bukan pejabat yang ditunjuk untuk menandatangani/menolak surat ini")
        ensure_permission(
            principal,
            PermissionAction.LETTER_SIGN,
            "Anda tidak memiliki hak akses untuk menolak penandatanganan",
        )
    else:
        raise _state_error("Surat ini tidak dalam status yang dapat ditolak")

    letter.status = LetterStatus.REJECTED
    letter.rejection_reason = reason
    activity_log(
        db,
        request,
        action="REJECT",
        description=f"Menolak surat: {letter.title}. Alasan: {reason}",
        user_id=user_id,
        letter_id=letter.id,
    )
    db.flush()
    return letter


def upload_signed_letter(
    db: Session,
    request: Request | None,
    *,
    letter_id: UUID,
    user_id: UUID,
    content: bytes,
    filename: str | None,
    content_type: str | None,
) -> Letter:
    """签署人上传签署版，公文进入 SIGNED。"""
    if not content:
        raise invalid("File PDF bertanda tangan harus diunggah")
    validate_pdf_upload(db, content=content, filename=filename, content_type=content_type)

    letter = get_letter_or_404(db, letter_id)
    if letter.status != LetterStatus.PENDING_SIGN:
        raise _state_error("Surat ini tidak dalam status menunggu tanda tangan")
    if letter.assigned_signer_id is not None and letter.assigned_signer_id != user_id:
        raise forbidden("Anda bukan pejabat yang ditunjuk untuk menandatangani surat ini")

    stored = save_upload(content, UploadArea.SIGNED, filename)
    letter.status = LetterStatus.SIGNED
    letter.file_final = stored.public_url
    letter.signer_id = user_id
    letter.signed_at = _now()
    activity_log(
        db,
        request,
        action="SIGN",
        description=f"Mengunggah surat bertanda tangan: {letter.title}",
        user_id=user_id,
        letter_id=letter.id,
    )
    db.flush()
    return letter


def delete_letter(db: Session, request: Request | None, *, letter_id: UUID, user_id: UUID) -> Letter:
    """删除草稿、被驳回或已撤销的公文及其文件。"""
    letter = get_letter_or_404(db, letter_id)
    if letter.status not in DELETABLE_LETTER_STATUSES:
        raise _state_error("Hanya surat dengan status Draft, Ditolak, atau Dibatalkan yang dapat dihapus")

    for public_url in (letter.file_draft, letter.file_stamped, letter.file_final):
        delete_file(public_url)

    db.execute(delete(ActivityLog).where(ActivityLog.letter_id == letter.id))
    db.execute(delete(LetterApprover).where(LetterApprover.letter_id == letter.id))
    db.delete(letter)
    activity_log(
        db,
        request,
        action="DELETE",
        description=f"Menghapus surat: {letter.title}",
        user_id=user_id,
    )
    db.flush()
    return letter


def list_letters(
    db: Session,
    *,
    user_id: UUID,
    can_view_all: bool,
    status_filter: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    only_mine: bool = False,
) -> tuple[list[Letter], int]:
    """按访问范围、状态与关键字分页查询公文。"""
    stmt = select(Letter)
    if only_mine:
        stmt = stmt.where(Letter.creator_id == user_id)
    elif not can_view_all:
        approver_letter_ids = select(LetterApprover.letter_id).where(LetterApprover.user_id == user_id)
        stmt = stmt.where(
            or_(
                Letter.creator_id == user_id,
                Letter.assigned_approver_id == user_id,
                Letter.assigned_signer_id == user_id,
                Letter.id.in_(approver_letter_ids),
            )
        )

    if status_filter and status_filter != "ALL":
        stmt = stmt.where(Letter.status == status_filter)

    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Letter.title.ilike(pattern),
                Letter.letter_number.ilike(pattern),
                Letter.description.ilike(pattern),
            )
        )

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = (
        db.execute(stmt.order_by(Letter.created_at.desc()).offset((page - 1) * limit).limit(limit))
        .scalars()
        .all()
    )
    return list(rows), int(total or 0)


def find_letter_by_qr_hash(db: Session, qr_hash: str) -> Letter:
    letter = db.execute(select(Letter).where(Letter.qr_hash == qr_hash)).scalar_one_or_none()
    if not letter:
        raise not_found("LETTER_NOT_FOUND", "Dokumen tidak ditemukan")
    return letter


def is_verifiable(letter: Letter) -> bool:
    """二维码验证只认可已审批待签或已签署的公文。"""
    return letter.status in VERIFIABLE_LETTER_STATUSES


def bundle_filename(letter: Letter) -> str:
    return f"Bundle-{letter.letter_number.replace('/', '-')}.pdf"


def build_letter_bundle(db: Session, letter_id: UUID) -> tuple[bytes, str]:
    """合并最新批示单与签署版公文，返回 PDF 内容与下载文件名。"""
    letter = get_letter_or_404(db, letter_id)
    if not letter.file_final:
        raise bad_request("LETTER_NOT_SIGNED", "Surat belum ditandatangani")

    disposition = (
        db.execute(
            select(Disposition)
            .where(Disposition.letter_id == letter.id)
            .order_by(Disposition.created_at.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )
    if disposition is None or not disposition.file_draft:
        raise not_found("DISPOSITION_SHEET_NOT_FOUND", "Disposisi belum tersedia atau belum dicetak")

    try:
        sheet_bytes = read_public_file(disposition.file_draft)
        letter_bytes = read_public_file(letter.file_final)
    except (OSError, UnsafePathError) as exc:
        logger.exception("bundle source file unreadable for letter %s", letter.id)
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "BUNDLE_FAILED", "Gagal menggabungkan dokumen") from exc

    merged = merge_pdfs(sheet_bytes, letter_bytes)
    if merged is None:
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "BUNDLE_FAILED", "Gagal menggabungkan dokumen")
    return merged, bundle_filename(letter)
