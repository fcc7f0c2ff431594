"""批示服务。

流程：发起（PENDING_NUMBER）→ 登记编号并生成批示单（PENDING_SIGN）→ 发起人上传签署版（SUBMITTED）。
接收人各自推进 PENDING → READ → COMPLETED。
"""

from datetime import datetime, timezone
import logging
from uuid import UUID

from fastapi import Request, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from esurat_api.exceptions import api_error, conflict, forbidden, invalid, not_found
from esurat_api.models.disposition import (
    Disposition,
    DispositionInstruction,
    DispositionInstructionLink,
    DispositionRecipient,
)
from esurat_api.models.enums import DispositionStatus, LetterStatus, RecipientStatus
from esurat_api.models.identity import Role, User, UserRole
from esurat_api.schemas.disposition import DispositionCreateRequest
from esurat_api.services.activity import activity_log
from esurat_api.services.disposition_sheet import generate_disposition_sheet
from esurat_api.services.letters import get_letter_or_404, validate_pdf_upload
from esurat_api.services.storage import UploadArea, path_for_public_url, save_upload
from esurat_api.services.system_settings import load_system_settings

logger = logging.getLogger(__name__)

RECIPIENT_STATUS_FILTERS = {RecipientStatus.PENDING, RecipientStatus.READ, RecipientStatus.COMPLETED}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_disposition_or_404(db: Session, disposition_id: UUID) -> Disposition:
    disposition = db.get(Disposition, disposition_id)
    if not disposition:
        raise not_found("DISPOSITION_NOT_FOUND", "Disposisi tidak ditemukan")
    return disposition


def list_active_instructions(db: Session) -> list[DispositionInstruction]:
    stmt = (
        select(DispositionInstruction)
        .where(DispositionInstruction.is_active.is_(True))
        .order_by(DispositionInstruction.sort_order.asc())
    )
    return list(db.execute(stmt).scalars().all())


def next_disposition_number(db: Session, *, year: int | None = None) -> str:
    """按年份生成下一个建议编号，格式 DISP/{year}/{seq:04d}。"""
    prefix = f"DISP/{year or _now().year}/"
    last = (
        db.execute(
            select(Disposition.number)
            .where(Disposition.number.like(f"{prefix}%"))
            .order_by(Disposition.number.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )
    sequence = 1
    if last:
        tail = last.rsplit("/", 1)[-1]
        sequence = int(tail) + 1 if tail.isdigit() else 1
    return f"{prefix}{sequence:04d}"


def create_disposition(
    db: Session,
    request: Request | None,
    *,
    user_id: UUID,
    payload: DispositionCreateRequest,
) -> Disposition:
    """对已签署公文发起批示，编号留空待登记。"""
    letter = get_letter_or_404(db, payload.letter_id)
    if letter.status != LetterStatus.SIGNED:
        raise api_error(
            status.HTTP_409_CONFLICT,
            "LETTER_STATE_INVALID",
            "Hanya surat yang sudah ditandatangani yang dapat didisposisikan",
        )

    active_recipients = db.execute(
        select(func.count())
        .select_from(User)
        .where(User.id.in_(payload.recipient_ids))
        .where(User.is_active.is_(True))
    ).scalar_one()
    if active_recipients != len(payload.recipient_ids):
        raise invalid("Beberapa penerima tidak valid")

    known_instructions = db.execute(
        select(func.count())
        .select_from(DispositionInstruction)
        .where(DispositionInstruction.id.in_(payload.instruction_ids))
    ).scalar_one()
    if known_instructions != len(payload.instruction_ids):
        raise invalid("Beberapa instruksi tidak valid")

    disposition = Disposition(
        letter_id=letter.id,
        number=None,
        from_user_id=user_id,
        urgency=payload.urgency,
        notes=payload.notes,
        status=DispositionStatus.PENDING_NUMBER,
    )
    db.add(disposition)
    db.flush()

    for recipient_id in payload.recipient_ids:
        db.add(
            DispositionRecipient(disposition_id=disposition.id, user_id=recipient_id, status=RecipientStatus.PENDING)
        )
    for instruction_id in payload.instruction_ids:
        db.add(DispositionInstructionLink(disposition_id=disposition.id, instruction_id=instruction_id))

    activity_log(
        db,
        request,
        action="DISPOSITION_CREATED",
        description=f'Membuat draft disposisi untuk surat "{letter.title}"',
        user_id=user_id,
        letter_id=letter.id,
        metadata={
            "disposition_id": str(disposition.id),
            "recipient_ids": [str(item) for item in payload.recipient_ids],
            "urgency": str(payload.urgency),
        },
    )
    db.flush()
    return disposition


def _newest_first(stmt):
    return stmt.order_by(Disposition.created_at.desc())


def list_for_letter(db: Session, letter_id: UUID) -> list[Disposition]:
    stmt = _newest_first(select(Disposition).where(Disposition.letter_id == letter_id))
    return list(db.execute(stmt).scalars().all())


def list_for_recipient(db: Session, user_id: UUID, status_filter: str | None = None) -> list[Disposition]:
    """当前用户作为接收人的批示；状态筛选只接受 PENDING/READ/COMPLETED。"""
    recipient_stmt = select(DispositionRecipient.disposition_id).where(DispositionRecipient.user_id == user_id)
    if status_filter in RECIPIENT_STATUS_FILTERS:
        recipient_stmt = recipient_stmt.where(DispositionRecipient.status == status_filter)
    stmt = _newest_first(select(Disposition).where(Disposition.id.in_(recipient_stmt)))
    return list(db.execute(stmt).scalars().all())


def list_all(db: Session) -> list[Disposition]:
    return list(db.execute(_newest_first(select(Disposition))).scalars().all())


def list_sent(db: Session, user_id: UUID) -> list[Disposition]:
    stmt = _newest_first(select(Disposition).where(Disposition.from_user_id == user_id))
    return list(db.execute(stmt).scalars().all())


def list_pending_number(db: Session) -> list[Disposition]:
    stmt = _newest_first(select(Disposition).where(Disposition.status == DispositionStatus.PENDING_NUMBER))
    return list(db.execute(stmt).scalars().all())


def set_disposition_number(
    db: Session,
    request: Request | None,
    *,
    disposition_id: UUID,
    user_id: UUID,
    number: str,
) -> Disposition:
    """登记编号并生成批示单；生成失败只记录日志，不影响编号登记。"""
    disposition = get_disposition_or_404(db, disposition_id)
    existing = db.execute(select(Disposition).where(Disposition.number == number)).scalar_one_or_none()
    if existing is not None and existing.id != disposition.id:
        raise conflict("DISPOSITION_NUMBER_CONFLICT", "Nomor disposisi sudah digunakan", number=number)

    disposition.number = number
    disposition.status = DispositionStatus.PENDING_SIGN
    db.flush()

    try:
        generate_disposition_sheet(db, disposition, app_name=load_system_settings(db).app_name)
    except Exception:
        logger.exception("disposition sheet generation failed: %s", disposition.id)

    activity_log(
        db,
        request,
        action="DISPOSITION_NUMBERED",
        description=f"Mengisi nomor disposisi {number}",
        user_id=user_id,
        letter_id=disposition.letter_id,
    )
    db.flush()
    return disposition


def _get_recipient(db: Session, *, disposition_id: UUID, user_id: UUID) -> DispositionRecipient:
    recipient = db.execute(
        select(DispositionRecipient)
        .where(DispositionRecipient.disposition_id == disposition_id)
        .where(DispositionRecipient.user_id == user_id)
    ).scalar_one_or_none()
    if recipient is None:
        raise forbidden("Anda bukan penerima disposisi ini")
    return recipient


def mark_as_read(db: Session, request: Request | None, *, disposition_id: UUID, user_id: UUID) -> DispositionRecipient:
    disposition = get_disposition_or_404(db, disposition_id)
    recipient = _get_recipient(db, disposition_id=disposition.id, user_id=user_id)
    if recipient.status != RecipientStatus.PENDING:
        raise api_error(status.HTTP_409_CONFLICT, "DISPOSITION_ALREADY_READ", "Disposisi sudah dibaca")

    recipient.status = RecipientStatus.READ
    recipient.read_at = _now()
    activity_log(
        db,
        request,
        action="DISPOSITION_READ",
        description=f"Membaca disposisi {disposition.number or '-'}",
        user_id=user_id,
        letter_id=disposition.letter_id,
    )
    db.flush()
    return recipient


def mark_as_completed(
    db: Session,
    request: Request | None,
    *,
    disposition_id: UUID,
    user_id: UUID,
    response: str | None = None,
) -> DispositionRecipient:
    disposition = get_disposition_or_404(db, disposition_id)
    recipient = _get_recipient(db, disposition_id=disposition.id, user_id=user_id)
    if recipient.status == RecipientStatus.COMPLETED:
        raise api_error(status.HTTP_409_CONFLICT, "DISPOSITION_ALREADY_COMPLETED", "Disposisi sudah selesai")

    now = _now()
    recipient.status = RecipientStatus.COMPLETED
    recipient.completed_at = now
    recipient.read_at = recipient.read_at or now
    recipient.response = response
    activity_log(
        db,
        request,
        action="DISPOSITION_COMPLETED",
        description=f"Menyelesaikan disposisi {disposition.number or '-'}",
        user_id=user_id,
        letter_id=disposition.letter_id,
    )
    db.flush()
    return recipient


def recipient_stats(db: Session, user_id: UUID) -> dict[str, int]:
    """当前用户作为接收人的各状态计数。"""
    rows = db.execute(
        select(DispositionRecipient.status, func.count())
        .where(DispositionRecipient.user_id == user_id)
        .group_by(DispositionRecipient.status)
    ).all()
    counts = {str(row[0]): int(row[1]) for row in rows}
    pending = counts.get(RecipientStatus.PENDING.value, 0)
    read = counts.get(RecipientStatus.READ.value, 0)
    completed = counts.get(RecipientStatus.COMPLETED.value, 0)
    return {"pending": pending, "read": read, "completed": completed, "total": pending + read + completed}


def eligible_recipients(db: Session) -> list[dict[str, object]]:
    """全部启用用户及其角色名，按姓名排序。"""
    users = db.execute(select(User).where(User.is_active.is_(True)).order_by(User.name.asc())).scalars().all()
    role_rows = db.execute(
        select(UserRole.user_id, Role.name).join(Role, Role.id == UserRole.role_id).order_by(Role.name.asc())
    ).all()
    roles_by_user: dict[UUID, list[str]] = {}
    for user_id, role_name in role_rows:
        roles_by_user.setdefault(user_id, []).append(role_name)
    return [
        {"id": user.id, "name": user.name, "email": user.email, "roles": roles_by_user.get(user.id, [])}
        for user in users
    ]


def upload_signed_disposition(
    db: Session,
    request: Request | None,
    *,
    disposition_id: UUID,
    user_id: UUID,
    content: bytes,
    filename: str | None,
    content_type: str | None,
) -> Disposition:
    """发起人上传签署版批示单，批示下发给接收人。"""
    disposition = get_disposition_or_404(db, disposition_id)
    if disposition.from_user_id != user_id:
        raise forbidden("Anda tidak memiliki hak akses")
    if not content:
        raise invalid("File tidak ditemukan")
    validate_pdf_upload(db, content=content, filename=filename, content_type=content_type)

    stored = save_upload(content, UploadArea.SIGNED, filename)
    disposition.status = DispositionStatus.SUBMITTED
    disposition.file_signed = stored.public_url
    disposition.signed_at = _now()
    activity_log(
        db,
        request,
        action="DISPOSITION_SIGNED",
        description=f"Mengunggah disposisi bertanda tangan {disposition.number or '-'}",
        user_id=user_id,
        letter_id=disposition.letter_id,
    )
    db.flush()
    return disposition


def ensure_disposition_sheet(db: Session, disposition: Disposition) -> str:
    """返回批示单访问路径，文件缺失时重新生成。"""
    if disposition.file_draft and path_for_public_url(disposition.file_draft).is_file():
        return disposition.file_draft
    return generate_disposition_sheet(db, disposition, app_name=load_system_settings(db).app_name)
