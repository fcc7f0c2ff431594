"""批示单 PDF 生成。

批示单编号登记后生成 A4 表单：公文信息、紧急程度、接收人、勾选的批示意见、
备注与验证二维码，保存到 dispositions/drafts 分区并回写 file_draft。
"""

from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Image as RLImage
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.core.config import get_settings
from esurat_api.models.disposition import (
    Disposition,
    DispositionInstruction,
    DispositionInstructionLink,
    DispositionRecipient,
)
from esurat_api.models.identity import User
from esurat_api.models.letter import Letter
from esurat_api.services.qr import generate_qr_png, verification_url
from esurat_api.services.storage import UploadArea, save_buffer

logger = logging.getLogger(__name__)

MARGIN = 10 * mm
BORDER = colors.Color(0.2, 0.2, 0.2)
HEADER_BG = colors.Color(0.93, 0.94, 0.96)

URGENCY_LABELS = {
    "BIASA": "Biasa",
    "SEGERA": "Segera",
    "PENTING": "Penting",
    "RAHASIA": "Rahasia",
}

_TITLE = ParagraphStyle("DispTitle", fontName="Helvetica-Bold", fontSize=14, alignment=TA_CENTER, leading=18)
_SUBTITLE = ParagraphStyle("DispSubtitle", fontName="Helvetica", fontSize=9, alignment=TA_CENTER, leading=12)
_LABEL = ParagraphStyle("DispLabel", fontName="Helvetica-Bold", fontSize=9, leading=12)
_TEXT = ParagraphStyle("DispText", fontName="Helvetica", fontSize=9, leading=12)


@dataclass
class DispositionSheetData:
    """渲染批示单所需的全部字段。"""

    app_name: str
    number: str | None
    urgency: str
    letter_title: str
    letter_number: str
    from_name: str
    created_at: datetime | None
    recipients: list[str] = field(default_factory=list)
    # (意见名称, 是否勾选)
    instructions: list[tuple[str, bool]] = field(default_factory=list)
    notes: str | None = None
    verify_url: str | None = None


def _para(text: str | None, style: ParagraphStyle = _TEXT) -> Paragraph:
    return Paragraph(escape(text or "-"), style)


def render_disposition_sheet(data: DispositionSheetData) -> bytes:
    """渲染批示单并返回 PDF 字节。"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=f"Lembar Disposisi {data.number or ''}".strip(),
    )
    width = A4[0] - 2 * MARGIN
    elements: list = [
        Paragraph(escape(data.app_name), _SUBTITLE),
        Paragraph("LEMBAR DISPOSISI", _TITLE),
        Spacer(1, 4 * mm),
    ]

    info_rows = [
        [_para("Nomor Disposisi", _LABEL), _para(data.number)],
        [_para("Tanggal", _LABEL), _para(data.created_at.strftime("%d-%m-%Y") if data.created_at else None)],
        [_para("Sifat", _LABEL), _para(URGENCY_LABELS.get(data.urgency, data.urgency))],
        [_para("Perihal", _LABEL), _para(data.letter_title)],
        [_para("Nomor Surat", _LABEL), _para(data.letter_number)],
        [_para("Dari", _LABEL), _para(data.from_name)],
    ]
    info = Table(info_rows, colWidths=[45 * mm, width - 45 * mm])
    info.setStyle(
        TableStyle(
            [
                ("BOX", (0, 0), (-1, -1), 0.8, BORDER),
                ("INNERGRID", (0, 0), (-1, -1), 0.4, BORDER),
                ("BACKGROUND", (0, 0), (0, -1), HEADER_BG),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    elements.extend([info, Spacer(1, 4 * mm)])

    recipients = "<br/>".join(f"{index}. {escape(name)}" for index, name in enumerate(data.recipients, start=1))
    instructions = "<br/>".join(
        f"[{'X' if checked else '&nbsp;&nbsp;'}] {escape(name)}" for name, checked in data.instructions
    )
    body = Table(
        [
            [_para("Diteruskan Kepada", _LABEL), _para("Instruksi / Disposisi", _LABEL)],
            [Paragraph(recipients or "-", _TEXT), Paragraph(instructions or "-", _TEXT)],
        ],
        colWidths=[width / 2, width / 2],
    )
    body.setStyle(
        TableStyle(
            [
                ("BOX", (0, 0), (-1, -1), 0.8, BORDER),
                ("INNERGRID", (0, 0), (-1, -1), 0.4, BORDER),
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    elements.extend([body, Spacer(1, 4 * mm)])

    notes = Table([[_para("Catatan", _LABEL)], [_para(data.notes)]], colWidths=[width])
    notes.setStyle(TableStyle([("BOX", (0, 0), (-1, -1), 0.8, BORDER), ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG)]))
    elements.extend([notes, Spacer(1, 8 * mm)])

    if data.verify_url:
        qr = RLImage(BytesIO(generate_qr_png(data.verify_url)), width=25 * mm, height=25 * mm)
        elements.append(Table([[qr]], colWidths=[width], style=[("ALIGN", (0, 0), (-1, -1), "RIGHT")]))

    doc.build(elements)
    return buffer.getvalue()


def collect_sheet_data(db: Session, disposition: Disposition, *, app_name: str) -> DispositionSheetData:
    """从数据库汇总批示单内容。"""
    settings = get_settings()
    letter = db.get(Letter, disposition.letter_id)
    from_user = db.get(User, disposition.from_user_id)

    recipient_names = (
        db.execute(
            select(User.name)
            .join(DispositionRecipient, DispositionRecipient.user_id == User.id)
            .where(DispositionRecipient.disposition_id == disposition.id)
            .order_by(User.name.asc())
        )
        .scalars()
        .all()
    )
    selected_ids = set(
        db.execute(
            select(DispositionInstructionLink.instruction_id).where(
                DispositionInstructionLink.disposition_id == disposition.id
            )
        )
        .scalars()
        .all()
    )
    instructions = (
        db.execute(
            select(DispositionInstruction)
            .where(DispositionInstruction.is_active.is_(True))
            .order_by(DispositionInstruction.sort_order.asc())
        )
        .scalars()
        .all()
    )

    return DispositionSheetData(
        app_name=app_name,
        number=disposition.number,
        urgency=disposition.urgency,
        letter_title=letter.title if letter else "-",
        letter_number=letter.letter_number if letter else "-",
        from_name=from_user.name if from_user else "-",
        created_at=disposition.created_at,
        recipients=list(recipient_names),
        instructions=[(item.name, item.id in selected_ids) for item in instructions],
        notes=disposition.notes,
        verify_url=verification_url(settings.verify_base_url, letter.qr_hash) if letter else None,
    )


def generate_disposition_sheet(db: Session, disposition: Disposition, *, app_name: str) -> str:
    """生成并保存批示单，回写 file_draft（不提交事务），返回访问路径。"""
    pdf_bytes = render_disposition_sheet(collect_sheet_data(db, disposition, app_name=app_name))
    safe_number = disposition.number.replace("/", "-") if disposition.number else "draft"
    stored = save_buffer(pdf_bytes, UploadArea.DISPOSITION_DRAFTS, f"disposition-{safe_number}-draft.pdf")
    disposition.file_draft = stored.public_url
    logger.info("disposition sheet generated: %s -> %s", disposition.id, stored.public_url)
    return stored.public_url
